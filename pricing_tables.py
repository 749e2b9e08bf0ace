# pricing_tables.py
"""
Tier-table loader.

Two CSV sources feed the sticker pricing engine:

base-price.csv          qty-sq.csv
    Sq. Inches,Base Price       Quantity,Square Inches,,,
    9,$1.36                     ,1,4,9,16
    16,$1.92                    100,0.35,0.352,0.353,0.355
                                "1,000",0.74,0.742,0.743,0.745
                                * Use the lower quantity tier ...

Rows that don't parse are dropped (logged at DEBUG), never guessed.
A source that is empty, lacks its header token or yields zero rows is
rejected as a whole.
"""
import csv
import io
import math
import time
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Iterator, List, Mapping, Optional, Sequence, Tuple

import requests

import pricing_config as cfg
from logging_config import get_logger
from pricing_errors import DataUnavailable, MalformedRow

logger = get_logger(__name__)


@dataclass(frozen=True)
class BasePriceRow:
    area_units: float
    base_price: float


@dataclass(frozen=True)
class QuantityDiscountRow:
    quantity: int
    discounts_by_area: Mapping[float, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # read-only view so a loaded table can't be mutated by callers
        object.__setattr__(self, "discounts_by_area", MappingProxyType(dict(self.discounts_by_area)))


@dataclass(frozen=True)
class PricingTables:
    base_pricing: Tuple[BasePriceRow, ...]
    quantity_discounts: Tuple[QuantityDiscountRow, ...]


# ----------------------------
# Cell helpers
# ----------------------------
def _parse_number(raw: str) -> float:
    """'$1.36' -> 1.36, '"1,000 "' -> 1000.0, '35.3%' -> 0.353"""
    s = (raw or "").strip().strip('"').strip()
    percent = s.endswith("%")
    s = s.rstrip("%").replace("$", "").replace(",", "").replace(" ", "")
    if not s:
        raise ValueError("empty cell")
    value = float(s)
    if not math.isfinite(value):
        raise ValueError(f"not a finite number: {raw!r}")
    return value / 100.0 if percent else value


def _rows(text: str) -> Iterator[Tuple[int, List[str]]]:
    reader = csv.reader(io.StringIO(text))
    while True:
        try:
            cells = next(reader)
        except StopIteration:
            return
        except csv.Error as e:
            raise ValueError(f"line {reader.line_num}: {e}") from e
        cells = [c.strip() for c in cells]
        if not any(cells):
            continue
        if cells[0].startswith(cfg.NOTE_MARKER):
            continue
        yield reader.line_num, cells


def _is_header(cells: Sequence[str], token: str) -> bool:
    return any(token.lower() in c.lower() for c in cells)


def _require_content(text: str, token: str, label: str) -> None:
    if not text or not text.strip():
        raise ValueError(f"{label} source is empty")
    if token.lower() not in text.lower():
        raise ValueError(f"{label} source is missing the {token!r} header")


# ----------------------------
# Base price table
# ----------------------------
def _base_row(line_no: int, cells: Sequence[str]) -> BasePriceRow:
    if len(cells) < 2:
        raise MalformedRow(line_no, cells, "expected area and base price")
    try:
        area = _parse_number(cells[0])
        price = _parse_number(cells[1])
    except ValueError as e:
        raise MalformedRow(line_no, cells, str(e)) from e
    if area <= 0:
        raise MalformedRow(line_no, cells, f"area must be > 0, got {area}")
    if price <= 0:
        raise MalformedRow(line_no, cells, f"base price must be > 0, got {price}")
    return BasePriceRow(area_units=area, base_price=price)


def parse_base_pricing(text: str) -> Tuple[BasePriceRow, ...]:
    """Parse base-price.csv into rows sorted by area. Raises ValueError if unusable."""
    _require_content(text, cfg.BASE_PRICE_HEADER_TOKEN, "base price")

    by_area = {}
    for line_no, cells in _rows(text):
        if _is_header(cells, cfg.BASE_PRICE_HEADER_TOKEN):
            continue
        try:
            row = _base_row(line_no, cells)
        except MalformedRow as e:
            logger.debug("Skipping base price row: %s", e)
            continue
        if row.area_units in by_area:
            logger.debug("Skipping duplicate base price row for area %s (line %d)", row.area_units, line_no)
            continue
        by_area[row.area_units] = row

    if not by_area:
        raise ValueError("base price source has no valid rows")

    return tuple(sorted(by_area.values(), key=lambda r: r.area_units))


# ----------------------------
# Quantity discount matrix
# ----------------------------
def _area_columns(cells: Sequence[str]) -> List[Optional[float]]:
    columns: List[Optional[float]] = []
    for c in cells:
        try:
            area = _parse_number(c)
        except ValueError:
            columns.append(None)
            continue
        columns.append(area if area > 0 else None)
    if not any(a is not None for a in columns):
        raise ValueError("quantity discount source declares no area tiers")
    return columns


def _discount_row(line_no: int, cells: Sequence[str], area_columns: Sequence[Optional[float]]) -> QuantityDiscountRow:
    try:
        qty = _parse_number(cells[0])
    except ValueError as e:
        raise MalformedRow(line_no, cells, f"bad quantity: {e}") from e
    if qty <= 0 or qty != int(qty):
        raise MalformedRow(line_no, cells, f"quantity must be a positive whole number, got {qty}")

    discounts = {}
    for idx, area in enumerate(area_columns):
        pos = idx + 1
        if area is None or pos >= len(cells) or not cells[pos]:
            continue
        try:
            fraction = _parse_number(cells[pos])
        except ValueError:
            logger.debug("line %d: unreadable discount %r for area %s", line_no, cells[pos], area)
            continue
        if not 0 <= fraction < 1:
            logger.debug("line %d: discount %s for area %s outside [0, 1)", line_no, fraction, area)
            continue
        discounts[area] = fraction

    return QuantityDiscountRow(quantity=int(qty), discounts_by_area=discounts)


def parse_quantity_discounts(text: str) -> Tuple[QuantityDiscountRow, ...]:
    """
    Parse qty-sq.csv into rows sorted by quantity.

    The row after the "Quantity" header with an empty first cell declares
    the area tier of each column. Raises ValueError if unusable.
    """
    _require_content(text, cfg.QTY_DISCOUNT_HEADER_TOKEN, "quantity discount")

    area_columns: Optional[List[Optional[float]]] = None
    by_qty = {}

    for line_no, cells in _rows(text):
        if area_columns is None:
            if _is_header(cells, cfg.QTY_DISCOUNT_HEADER_TOKEN):
                continue
            if cells[0] == "":
                area_columns = _area_columns(cells[1:])
                continue
            raise ValueError(f"line {line_no}: quantity row found before the area tier row")

        try:
            row = _discount_row(line_no, cells, area_columns)
        except MalformedRow as e:
            logger.debug("Skipping quantity discount row: %s", e)
            continue
        if row.quantity in by_qty:
            logger.debug("Skipping duplicate quantity tier %d (line %d)", row.quantity, line_no)
            continue
        by_qty[row.quantity] = row

    if area_columns is None:
        raise ValueError("quantity discount source has no area tier row")
    if not by_qty:
        raise ValueError("quantity discount source has no valid rows")

    return tuple(sorted(by_qty.values(), key=lambda r: r.quantity))


def available_quantities(quantity_discounts: Sequence[QuantityDiscountRow]) -> List[int]:
    return sorted(r.quantity for r in quantity_discounts)


def available_area_tiers(quantity_discounts: Sequence[QuantityDiscountRow]) -> List[float]:
    tiers = set()
    for r in quantity_discounts:
        tiers.update(r.discounts_by_area.keys())
    return sorted(tiers)


# ----------------------------
# Loading (fetch + retry)
# ----------------------------
def fetch_source(source: str, *, timeout: float) -> str:
    """Read one table: http(s) URL via requests, anything else as a local path."""
    if source.startswith(("http://", "https://")):
        resp = requests.get(source, timeout=timeout)
        resp.raise_for_status()
        return resp.text
    return Path(source).read_text(encoding="utf-8-sig")


def backoff_delay(attempt: int) -> float:
    """Seconds to wait after a failed attempt (1-based): 1, 2, 4 ... capped."""
    return min(cfg.BACKOFF_BASE_SECONDS * (2 ** (attempt - 1)), cfg.BACKOFF_CAP_SECONDS)


def load_pricing_tables(
    base_source: Optional[str] = None,
    discount_source: Optional[str] = None,
    *,
    max_attempts: Optional[int] = None,
    timeout: Optional[float] = None,
) -> PricingTables:
    """
    Fetch + parse both tier tables, retrying with exponential backoff.

    Raises DataUnavailable once every attempt has failed. Its reason is
    "network" if the last failure was a fetch, "malformed" if the content
    was fetched but rejected.
    """
    base_source = base_source or cfg.BASE_PRICE_SOURCE
    discount_source = discount_source or cfg.QTY_DISCOUNT_SOURCE
    if max_attempts is None:
        max_attempts = cfg.MAX_ATTEMPTS
    max_attempts = max(1, max_attempts)
    if timeout is None:
        timeout = cfg.FETCH_TIMEOUT_SECONDS

    last_error: Optional[Exception] = None
    reason = DataUnavailable.NETWORK
    failed_source = base_source

    for attempt in range(1, max_attempts + 1):
        logger.info("Loading pricing tables (attempt %d/%d)", attempt, max_attempts)

        try:
            failed_source = base_source
            base_text = fetch_source(base_source, timeout=timeout)
            failed_source = discount_source
            discount_text = fetch_source(discount_source, timeout=timeout)
        except UnicodeDecodeError as e:
            last_error, reason = e, DataUnavailable.MALFORMED
        except (requests.RequestException, OSError) as e:
            last_error, reason = e, DataUnavailable.NETWORK
        else:
            try:
                failed_source = base_source
                base_pricing = parse_base_pricing(base_text)
                failed_source = discount_source
                quantity_discounts = parse_quantity_discounts(discount_text)
            except ValueError as e:
                last_error, reason = e, DataUnavailable.MALFORMED
            else:
                logger.info(
                    "Loaded pricing tables: %d base price rows, %d quantity tiers",
                    len(base_pricing),
                    len(quantity_discounts),
                )
                return PricingTables(base_pricing=base_pricing, quantity_discounts=quantity_discounts)

        if attempt < max_attempts:
            wait = backoff_delay(attempt)
            logger.warning(
                "Pricing table load attempt %d/%d failed (%s): %s; retrying in %.1fs",
                attempt, max_attempts, reason, last_error, wait,
            )
            time.sleep(wait)

    logger.error("All %d pricing table load attempts failed (%s): %s", max_attempts, reason, last_error)

    if reason == DataUnavailable.NETWORK:
        message = f"Pricing tables unreachable: {last_error}"
    else:
        message = f"Pricing tables malformed: {last_error}"
    raise DataUnavailable(message, reason=reason, attempts=max_attempts, source=failed_source) from last_error
