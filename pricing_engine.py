# pricing_engine.py
from bisect import bisect_left
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

import pandas as pd

import pricing_config as cfg
from logging_config import get_logger
from pricing_tables import (
    BasePriceRow,
    PricingTables,
    QuantityDiscountRow,
    available_area_tiers,
    available_quantities,
    load_pricing_tables,
)

logger = get_logger(__name__)

RUSH_PER_UNIT = "unit"
RUSH_ON_SUBTOTAL = "subtotal"


@dataclass(frozen=True)
class PricingRequest:
    area_units: float
    quantity: int
    rush_order: bool = False
    finish_multiplier: float = 1.0
    vibrancy_boost: bool = False
    wholesale_approved: bool = False


@dataclass(frozen=True)
class PricingResult:
    base_price: float
    discount_fraction: float
    unit_price: float
    total_price: float          # before wholesale
    area_units: float = 0.0
    quantity: int = 0
    subtotal: float = 0.0
    volume_discount: float = 0.0
    rush_fee: float = 0.0
    wholesale_discount: float = 0.0
    final_total: float = 0.0    # what the customer pays

    @classmethod
    def zero(cls, area_units: float = 0.0, quantity: int = 0) -> "PricingResult":
        return cls(
            base_price=0.0,
            discount_fraction=0.0,
            unit_price=0.0,
            total_price=0.0,
            area_units=area_units,
            quantity=quantity,
        )

    def as_dict(self, ndigits: Optional[int] = None) -> Dict[str, Any]:
        """Breakdown dict; pass ndigits=2 for display money rounding."""
        d = asdict(self)
        if ndigits is None:
            return d
        for k in ("base_price", "unit_price", "total_price", "subtotal", "volume_discount",
                  "rush_fee", "wholesale_discount", "final_total"):
            d[k] = round(d[k], ndigits)
        d["discount_fraction"] = round(d["discount_fraction"], 4)
        return d


@dataclass(frozen=True)
class ProductLine:
    """
    How one product family turns a base price into a final price.

    rush_mode "unit" multiplies the discounted unit price; "subtotal"
    adds (rush_multiplier - 1) x subtotal as a separate fee. Volume
    tiers are (min_qty, discount) pairs taken off the subtotal.
    """
    name: str
    premium: float = 1.0
    rush_multiplier: float = cfg.STICKER_RUSH_MULTIPLIER
    rush_mode: str = RUSH_PER_UNIT
    volume_discount_tiers: Tuple[Tuple[int, float], ...] = ()
    uses_tier_tables: bool = True


VINYL = ProductLine("vinyl")
HOLOGRAPHIC = ProductLine("holographic")
CLEAR = ProductLine("clear")
STICKER_SHEETS = ProductLine("sticker-sheets")
CHROME = ProductLine("chrome", premium=cfg.CHROME_PREMIUM)
BANNER = ProductLine(
    "banner",
    rush_multiplier=cfg.BANNER_RUSH_MULTIPLIER,
    rush_mode=RUSH_ON_SUBTOTAL,
    volume_discount_tiers=tuple((t["min_qty"], t["discount"]) for t in cfg.BANNER_VOLUME_DISCOUNT_TIERS),
    uses_tier_tables=False,
)

PRODUCT_LINES: Dict[str, ProductLine] = {
    p.name: p for p in (VINYL, HOLOGRAPHIC, CLEAR, STICKER_SHEETS, CHROME, BANNER)
}


def _require(cond: bool, msg: str) -> None:
    if not cond:
        raise ValueError(msg)


def get_product_line(product) -> ProductLine:
    if isinstance(product, ProductLine):
        return product
    _require(product in PRODUCT_LINES, f"unknown product line: {product}")
    return PRODUCT_LINES[product]


# ----------------------------
# Option multipliers
# ----------------------------
def finish_multiplier(white_option: Optional[str] = None, kiss_cut_option: Optional[str] = None) -> float:
    """White ink x kiss cut multiplier. Unknown or missing options count as 1.0."""
    mult = 1.0
    if white_option:
        if white_option not in cfg.WHITE_INK_MULTIPLIER:
            logger.debug("Unknown white ink option %r, pricing as color-only", white_option)
        mult *= cfg.WHITE_INK_MULTIPLIER.get(white_option, 1.0)
    if kiss_cut_option:
        if kiss_cut_option not in cfg.KISS_CUT_MULTIPLIER:
            logger.debug("Unknown kiss cut option %r, pricing as 1-3 cuts", kiss_cut_option)
        mult *= cfg.KISS_CUT_MULTIPLIER.get(kiss_cut_option, 1.0)
    return mult


# ----------------------------
# Resolver
# ----------------------------
def get_base_price(base_pricing: Sequence[BasePriceRow], area_units: float) -> float:
    """
    Base unit price for an area.

    Exact tier -> that price. Between tiers -> linear interpolation.
    Outside the table -> clamp to the nearest end (no extrapolation).
    """
    _require(len(base_pricing) > 0, "base price table is empty")

    rows = sorted(base_pricing, key=lambda r: r.area_units)
    areas = [r.area_units for r in rows]

    i = bisect_left(areas, area_units)
    if i < len(areas) and areas[i] == area_units:
        return rows[i].base_price

    if area_units <= areas[0]:
        return rows[0].base_price
    if area_units >= areas[-1]:
        return rows[-1].base_price

    lo, hi = rows[i - 1], rows[i]
    ratio = (area_units - lo.area_units) / (hi.area_units - lo.area_units)
    return lo.base_price + ratio * (hi.base_price - lo.base_price)


def get_discount_fraction(
    quantity_discounts: Sequence[QuantityDiscountRow],
    quantity: int,
    area_units: float,
) -> float:
    """
    Discount fraction for a quantity/area pair.

    Both lookups take the lower tier: the highest quantity tier <= quantity,
    then the highest area key of that row <= area (or the row's smallest key).
    Below the lowest quantity tier there is no discount.
    """
    row = None
    for r in sorted(quantity_discounts, key=lambda r: r.quantity):
        if quantity >= r.quantity:
            row = r
        else:
            break

    if row is None or not row.discounts_by_area:
        return 0.0

    tiers = sorted(row.discounts_by_area.keys())
    tier = tiers[0]
    for t in tiers:
        if area_units >= t:
            tier = t
        else:
            break

    return row.discounts_by_area.get(tier, 0.0)


# ----------------------------
# Composer
# ----------------------------
def _volume_discount_rate(tiers: Iterable[Tuple[int, float]], qty: int) -> float:
    rate = 0.0
    for min_qty, discount in sorted(tiers):
        if qty >= min_qty:
            rate = discount
        else:
            break
    return rate


def compose(
    base_price: float,
    discount_fraction: float,
    request: PricingRequest,
    product=VINYL,
) -> PricingResult:
    """
    Apply the multiplier chain, in this order:

        discount -> finish -> product premium -> vibrancy -> rush
        total = unit x quantity (less volume discount, plus rush fee)
        wholesale: 15% off the total

    Zero/negative area or quantity gives an all-zero result.
    """
    line = get_product_line(product)
    qty = request.quantity

    if qty <= 0 or request.area_units <= 0:
        return PricingResult.zero(request.area_units, qty)

    unit = base_price * (1 - discount_fraction)
    unit *= request.finish_multiplier
    unit *= line.premium
    if request.vibrancy_boost:
        unit *= cfg.VIBRANCY_BOOST_MULTIPLIER
    if request.rush_order and line.rush_mode == RUSH_PER_UNIT:
        unit *= line.rush_multiplier

    subtotal = unit * qty
    volume_discount = subtotal * _volume_discount_rate(line.volume_discount_tiers, qty)
    rush_fee = 0.0
    if request.rush_order and line.rush_mode == RUSH_ON_SUBTOTAL:
        rush_fee = subtotal * (line.rush_multiplier - 1)

    if volume_discount or rush_fee:
        total = subtotal - volume_discount + rush_fee
        unit_price = total / qty
    else:
        total = subtotal
        unit_price = unit

    final_total = total
    if request.wholesale_approved:
        final_total = total * (1 - cfg.WHOLESALE_DISCOUNT)

    return PricingResult(
        base_price=base_price,
        discount_fraction=discount_fraction,
        unit_price=unit_price,
        total_price=total,
        area_units=request.area_units,
        quantity=qty,
        subtotal=subtotal,
        volume_discount=volume_discount,
        rush_fee=rush_fee,
        wholesale_discount=total - final_total,
        final_total=final_total,
    )


# ----------------------------
# Entry points
# ----------------------------
def calculate_quote(tables: PricingTables, request: PricingRequest, product="vinyl") -> PricingResult:
    """Sticker quote from loaded tier tables."""
    line = get_product_line(product)
    _require(line.uses_tier_tables, f"{line.name} is not priced from the sticker tier tables")

    if request.quantity <= 0 or request.area_units <= 0:
        return PricingResult.zero(request.area_units, request.quantity)

    base_price = get_base_price(tables.base_pricing, request.area_units)
    discount = get_discount_fraction(tables.quantity_discounts, request.quantity, request.area_units)
    return compose(base_price, discount, request, line)


def calculate_price(
    base_pricing: Sequence[BasePriceRow],
    quantity_discounts: Sequence[QuantityDiscountRow],
    area_units: float,
    quantity: int,
    rush_order: bool = False,
    *,
    product="vinyl",
    finish_multiplier: float = 1.0,
    vibrancy_boost: bool = False,
    wholesale_approved: bool = False,
) -> PricingResult:
    request = PricingRequest(
        area_units=area_units,
        quantity=quantity,
        rush_order=rush_order,
        finish_multiplier=finish_multiplier,
        vibrancy_boost=vibrancy_boost,
        wholesale_approved=wholesale_approved,
    )
    tables = PricingTables(base_pricing=tuple(base_pricing), quantity_discounts=tuple(quantity_discounts))
    return calculate_quote(tables, request, product)


def calculate_legacy_price(
    area_units: float,
    quantity: int,
    rush_order: bool = False,
    *,
    product="vinyl",
    finish_multiplier: float = 1.0,
    vibrancy_boost: bool = False,
    wholesale_approved: bool = False,
) -> PricingResult:
    """
    Fallback when tier tables can't be loaded: the 3" price scaled by area,
    discounted only at the exact legacy quantities.
    """
    request = PricingRequest(
        area_units=area_units,
        quantity=quantity,
        rush_order=rush_order,
        finish_multiplier=finish_multiplier,
        vibrancy_boost=vibrancy_boost,
        wholesale_approved=wholesale_approved,
    )
    if quantity <= 0 or area_units <= 0:
        return PricingResult.zero(area_units, quantity)

    base_price = cfg.LEGACY_BASE_PRICE * (area_units / cfg.LEGACY_BASE_AREA)
    discount = 1 - cfg.LEGACY_QTY_MULTIPLIER.get(quantity, 1.0)
    return compose(base_price, discount, request, product)


# ----------------------------
# Banners
# ----------------------------
def banner_rate_per_sq_ft(sq_ft: float) -> float:
    for tier in cfg.BANNER_TIER_RATES:
        if tier["max_sq_ft"] is None or sq_ft <= tier["max_sq_ft"]:
            return tier["rate"]
    return cfg.BANNER_TIER_RATES[-1]["rate"]


def calculate_banner_price(
    sq_ft: float,
    quantity: int,
    rush_order: bool = False,
    finishing: str = "hemmed-grommeted",
    wholesale_approved: bool = False,
) -> PricingResult:
    if sq_ft <= 0 or quantity <= 0:
        return PricingResult.zero(sq_ft, quantity)

    base_price = sq_ft * banner_rate_per_sq_ft(sq_ft)
    request = PricingRequest(
        area_units=sq_ft,
        quantity=quantity,
        rush_order=rush_order,
        finish_multiplier=cfg.BANNER_FINISHING_MULTIPLIER.get(finishing, 1.0),
        wholesale_approved=wholesale_approved,
    )
    return compose(base_price, 0.0, request, BANNER)


# ----------------------------
# Store credit
# ----------------------------
@dataclass(frozen=True)
class CreditEarnings:
    credit_amount: float
    potential_amount: float
    is_limit_reached: bool
    is_limit_exceeded: bool
    message: str


def credit_rate(wholesale_approved: bool = False, wholesale_rate: Optional[float] = None) -> float:
    if wholesale_approved:
        return wholesale_rate or cfg.CREDIT_RATE_WHOLESALE
    return cfg.CREDIT_RATE_REGULAR


def calculate_credit_earnings(
    order_total: float,
    current_balance: float,
    rate: float = cfg.CREDIT_RATE_REGULAR,
) -> CreditEarnings:
    """Store credit earned on an order; the balance never goes past CREDIT_BALANCE_LIMIT."""
    limit = cfg.CREDIT_BALANCE_LIMIT
    potential = order_total * rate

    if current_balance >= limit:
        return CreditEarnings(
            credit_amount=0.0,
            potential_amount=potential,
            is_limit_reached=True,
            is_limit_exceeded=False,
            message=(
                f"You've reached the ${limit:.2f} credit limit. "
                "Please use your existing credits to earn more."
            ),
        )

    if current_balance + potential > limit:
        capped = limit - current_balance
        return CreditEarnings(
            credit_amount=capped,
            potential_amount=potential,
            is_limit_reached=False,
            is_limit_exceeded=True,
            message=(
                f"You'll earn ${capped:.2f} in store credit (capped at ${limit:.2f} limit). "
                f"Without the limit, you would have earned ${potential:.2f}."
            ),
        )

    return CreditEarnings(
        credit_amount=potential,
        potential_amount=potential,
        is_limit_reached=False,
        is_limit_exceeded=False,
        message=f"You'll earn ${potential:.2f} in store credit on this order!",
    )


# ----------------------------
# Sizes + summaries
# ----------------------------
def square_inches(width: float, height: float) -> float:
    return width * height


def pricing_matrix(
    tables: PricingTables,
    quantities: Optional[Sequence[int]] = None,
    areas: Optional[Sequence[float]] = None,
    product="vinyl",
) -> pd.DataFrame:
    """Unit price grid: one row per quantity tier, one column per area tier."""
    quantities = list(quantities or available_quantities(tables.quantity_discounts))
    areas = list(areas or available_area_tiers(tables.quantity_discounts))

    grid = [
        [calculate_quote(tables, PricingRequest(area_units=a, quantity=q), product).unit_price for a in areas]
        for q in quantities
    ]
    df = pd.DataFrame(grid, index=quantities, columns=areas)
    df.index.name = "quantity"
    df.columns.name = "sq_in"
    return df


def pricing_summary(tables: PricingTables) -> str:
    base = tables.base_pricing
    qtys = available_quantities(tables.quantity_discounts)
    tiers = available_area_tiers(tables.quantity_discounts)

    lines = [
        "Pricing Data Summary:",
        f"Base Pricing: {len(base)} entries ({base[0].area_units:g} to {base[-1].area_units:g} sq in)",
        f"Quantity Discounts: {len(qtys)} quantity tiers",
        f"Available Quantities: {', '.join(str(q) for q in qtys)}",
        f"Square Inch Tiers: {', '.join(f'{t:g}' for t in tiers)}",
        "",
        "Sample Calculations:",
    ]
    for area, qty in ((9, 100), (16, 500)):
        r = calculate_quote(tables, PricingRequest(area_units=area, quantity=qty))
        lines.append(f"{area} sq in, qty {qty}: ${r.unit_price:.2f}/each = ${r.total_price:.2f} total")
    return "\n".join(lines)


if __name__ == "__main__":
    from logging_config import setup_logging

    setup_logging(cfg.LOG_LEVEL)
    tables = load_pricing_tables()
    print(pricing_summary(tables))
    print()
    print(pricing_matrix(tables).round(2).to_string())

    result = calculate_banner_price(15, 10, rush_order=True)
    print()
    print("BANNER 3x5 x10 RUSH:", result.as_dict(ndigits=2))
