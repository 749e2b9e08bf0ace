import pytest

from pricing_engine import (
    BANNER,
    CHROME,
    PricingRequest,
    PricingResult,
    banner_rate_per_sq_ft,
    calculate_banner_price,
    calculate_credit_earnings,
    calculate_legacy_price,
    calculate_price,
    calculate_quote,
    compose,
    credit_rate,
    finish_multiplier,
    get_base_price,
    get_discount_fraction,
    get_product_line,
    pricing_matrix,
    pricing_summary,
    square_inches,
)
from pricing_tables import BasePriceRow, QuantityDiscountRow


# ----------------------------
# Resolver
# ----------------------------
class TestBasePrice:
    def test_exact_tier_has_no_drift(self, tables):
        for row in tables.base_pricing:
            assert get_base_price(tables.base_pricing, row.area_units) == row.base_price

    def test_interpolates_between_tiers(self, tables):
        # 10 sq in -> 1.44, 12 sq in -> 1.60
        assert get_base_price(tables.base_pricing, 11) == pytest.approx(1.52)

    def test_clamps_below_smallest(self, base_rows):
        assert get_base_price(base_rows, 1) == 0.91
        assert get_base_price(base_rows, 0.01) == 0.91

    def test_clamps_above_largest(self, base_rows):
        assert get_base_price(base_rows, 400) == 2.60

    def test_unsorted_input(self, base_rows):
        shuffled = list(reversed(base_rows))
        assert get_base_price(shuffled, 9) == 1.36
        assert get_base_price(shuffled, 12.5) == pytest.approx(1.36 + 0.5 * (1.92 - 1.36))

    def test_monotonic_in_area(self, tables):
        areas = [a / 4 for a in range(1, 700)]
        prices = [get_base_price(tables.base_pricing, a) for a in areas]
        assert all(b >= a for a, b in zip(prices, prices[1:]))

    def test_empty_table(self):
        with pytest.raises(ValueError):
            get_base_price([], 9)


class TestDiscountFraction:
    def test_quantity_floor(self, discount_rows):
        # 149 sits between the 100 and 150 tiers -> 100
        assert get_discount_fraction(discount_rows, 149, 9) == 0.353
        assert get_discount_fraction(discount_rows, 150, 9) == 0.45
        assert get_discount_fraction(discount_rows, 10_000, 9) == 0.537

    def test_below_lowest_quantity_tier(self, discount_rows):
        assert get_discount_fraction(discount_rows, 49, 9) == 0
        assert get_discount_fraction(discount_rows, 1, 16) == 0

    def test_area_floor(self, discount_rows):
        assert get_discount_fraction(discount_rows, 100, 12) == 0.353
        assert get_discount_fraction(discount_rows, 100, 500) == 0.355

    def test_area_below_smallest_key_uses_smallest(self, discount_rows):
        assert get_discount_fraction(discount_rows, 100, 2) == 0.35

    def test_row_without_entries(self):
        rows = [QuantityDiscountRow(100, {}), QuantityDiscountRow(200, {9: 0.5})]
        assert get_discount_fraction(rows, 150, 9) == 0

    def test_committed_tables(self, tables):
        assert get_discount_fraction(tables.quantity_discounts, 100, 9) == 0.353
        assert get_discount_fraction(tables.quantity_discounts, 1500, 9) == 0.743
        assert get_discount_fraction(tables.quantity_discounts, 25, 9) == 0


# ----------------------------
# Composer
# ----------------------------
class TestCompose:
    def test_rush_is_forty_percent_per_unit(self):
        result = compose(1.0, 0.0, PricingRequest(area_units=1, quantity=1, rush_order=True))
        assert result.unit_price == 1.4
        assert result.total_price == 1.4
        assert result.rush_fee == 0

    def test_multiplier_chain(self):
        request = PricingRequest(area_units=9, quantity=10, finish_multiplier=1.05, vibrancy_boost=True)
        result = compose(2.0, 0.5, request, CHROME)
        assert result.unit_price == pytest.approx(2.0 * 0.5 * 1.05 * 1.15 * 1.05)
        assert result.total_price == pytest.approx(result.unit_price * 10)

    def test_wholesale_comes_off_the_total(self):
        plain = compose(1.36, 0.353, PricingRequest(area_units=9, quantity=100))
        wholesale = compose(1.36, 0.353, PricingRequest(area_units=9, quantity=100, wholesale_approved=True))

        assert wholesale.unit_price == plain.unit_price
        assert wholesale.total_price == plain.total_price
        assert wholesale.final_total == pytest.approx(plain.total_price * 0.85)
        assert wholesale.final_total / 100 == pytest.approx((plain.total_price * 0.85) / 100)
        assert wholesale.wholesale_discount == pytest.approx(plain.total_price * 0.15)
        assert plain.final_total == plain.total_price

    @pytest.mark.parametrize("area, qty", [(0, 100), (9, 0), (-4, 10), (9, -1)])
    def test_zero_guard(self, area, qty):
        result = compose(1.36, 0.353, PricingRequest(area_units=area, quantity=qty, rush_order=True))
        assert (result.base_price, result.unit_price, result.total_price) == (0, 0, 0)
        assert result.final_total == 0

    def test_unknown_product(self):
        with pytest.raises(ValueError):
            get_product_line("tattoo")


class TestCalculatePrice:
    def test_concrete_scenario(self, base_rows, discount_rows):
        result = calculate_price(base_rows, discount_rows, 9, 100, False)
        assert result.base_price == 1.36
        assert result.discount_fraction == 0.353
        assert result.unit_price == pytest.approx(0.87992)
        assert result.total_price == pytest.approx(87.992)
        assert result.as_dict(ndigits=2)["total_price"] == 87.99

    def test_idempotent(self, base_rows, discount_rows):
        a = calculate_price(base_rows, discount_rows, 13.7, 420, True, product="chrome", wholesale_approved=True)
        b = calculate_price(base_rows, discount_rows, 13.7, 420, True, product="chrome", wholesale_approved=True)
        assert a == b

    def test_zero_inputs(self, base_rows, discount_rows):
        for area, qty in ((0, 100), (9, 0)):
            result = calculate_price(base_rows, discount_rows, area, qty)
            assert result.base_price == 0
            assert result.unit_price == 0
            assert result.total_price == 0

    def test_banner_is_not_a_tier_table_product(self, small_tables):
        with pytest.raises(ValueError):
            calculate_quote(small_tables, PricingRequest(area_units=9, quantity=100), "banner")

    def test_sticker_sheets_kiss_cuts(self, small_tables):
        request = PricingRequest(area_units=9, quantity=100, finish_multiplier=finish_multiplier(kiss_cut_option="4-7 cuts"))
        result = calculate_quote(small_tables, request, "sticker-sheets")
        assert result.unit_price == pytest.approx(1.36 * (1 - 0.353) * 1.15)


def test_finish_multiplier():
    assert finish_multiplier() == 1.0
    assert finish_multiplier("partial-white") == 1.05
    assert finish_multiplier("full-white", "8-15 cuts") == pytest.approx(1.1 * 1.3)
    assert finish_multiplier("glitter", "lots of cuts") == 1.0


# ----------------------------
# Banners
# ----------------------------
class TestBanner:
    @pytest.mark.parametrize("sq_ft, rate", [(2, 4.50), (10, 4.50), (10.5, 3.75), (25, 3.75), (50, 3.25), (51, 2.85)])
    def test_rate_tiers(self, sq_ft, rate):
        assert banner_rate_per_sq_ft(sq_ft) == rate

    def test_rush_is_a_fee_on_the_subtotal(self):
        # 3' x 5', ten of them, rush
        result = calculate_banner_price(15, 10, rush_order=True)
        assert result.base_price == pytest.approx(56.25)
        assert result.subtotal == pytest.approx(562.5)
        assert result.volume_discount == pytest.approx(56.25)
        assert result.rush_fee == pytest.approx(196.875)
        assert result.total_price == pytest.approx(703.125)
        assert result.unit_price == pytest.approx(70.3125)

    def test_volume_discount_schedule(self):
        assert calculate_banner_price(8, 4).volume_discount == 0
        assert calculate_banner_price(8, 5).volume_discount == pytest.approx(8 * 4.5 * 5 * 0.05)
        assert calculate_banner_price(8, 24).volume_discount == pytest.approx(8 * 4.5 * 24 * 0.15)
        assert calculate_banner_price(8, 25).volume_discount == pytest.approx(8 * 4.5 * 25 * 0.25)

    def test_raw_edges_finishing(self):
        result = calculate_banner_price(8, 1, finishing="no-finishing")
        assert result.unit_price == pytest.approx(8 * 4.5 * 0.85)

    def test_wholesale(self):
        result = calculate_banner_price(32, 2, wholesale_approved=True)
        assert result.final_total == pytest.approx(32 * 3.25 * 2 * 0.85)

    def test_zero_guard(self):
        assert calculate_banner_price(0, 5) == PricingResult.zero(0, 5)

    def test_product_line_config(self):
        assert BANNER.rush_multiplier == 1.35
        assert not BANNER.uses_tier_tables


# ----------------------------
# Legacy fallback
# ----------------------------
class TestLegacy:
    def test_listed_quantity(self):
        result = calculate_legacy_price(9, 100)
        assert result.unit_price == pytest.approx(1.36 * 0.647)

    def test_unlisted_quantity_pays_full_price(self):
        assert calculate_legacy_price(9, 150).unit_price == pytest.approx(1.36)

    def test_scales_by_area_and_rush(self):
        result = calculate_legacy_price(18, 50, rush_order=True)
        assert result.base_price == pytest.approx(2.72)
        assert result.unit_price == pytest.approx(2.72 * 1.4)

    def test_zero_guard(self):
        assert calculate_legacy_price(9, 0).total_price == 0


# ----------------------------
# Store credit
# ----------------------------
class TestCredits:
    def test_rates(self):
        assert credit_rate() == 0.05
        assert credit_rate(wholesale_approved=True) == 0.025
        assert credit_rate(wholesale_approved=True, wholesale_rate=0.03) == 0.03
        assert credit_rate(wholesale_approved=False, wholesale_rate=0.03) == 0.05

    def test_normal_earning(self):
        earned = calculate_credit_earnings(200, 10)
        assert earned.credit_amount == pytest.approx(10)
        assert not earned.is_limit_reached
        assert not earned.is_limit_exceeded
        assert "$10.00" in earned.message

    def test_capped_at_limit(self):
        earned = calculate_credit_earnings(200, 95)
        assert earned.credit_amount == pytest.approx(5)
        assert earned.potential_amount == pytest.approx(10)
        assert earned.is_limit_exceeded

    def test_limit_reached(self):
        earned = calculate_credit_earnings(200, 100)
        assert earned.credit_amount == 0
        assert earned.is_limit_reached


# ----------------------------
# Sizes + summaries
# ----------------------------
def test_square_inches():
    assert square_inches(3, 3) == 9
    assert square_inches(2.5, 4) == 10


def test_pricing_matrix(tables):
    df = pricing_matrix(tables, quantities=[50, 100], areas=[9, 16])
    assert df.shape == (2, 2)
    assert df.loc[100, 9] == pytest.approx(0.87992)
    assert df.loc[50, 16] == pytest.approx(1.92)


def test_pricing_summary(tables):
    text = pricing_summary(tables)
    assert "Available Quantities: 50, 100, 200" in text
    assert "9 sq in, qty 100: $0.88/each = $87.99 total" in text


def test_base_price_row_is_frozen():
    row = BasePriceRow(9, 1.36)
    with pytest.raises(AttributeError):
        row.base_price = 2.0
