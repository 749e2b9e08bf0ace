import pytest

import pricing_config as cfg
from pricing_tables import (
    BasePriceRow,
    PricingTables,
    QuantityDiscountRow,
    load_pricing_tables,
)


@pytest.fixture
def tables():
    """Tier tables loaded from the committed CSVs under data/."""
    return load_pricing_tables(str(cfg.DATA_DIR / "base-price.csv"), str(cfg.DATA_DIR / "qty-sq.csv"))


@pytest.fixture
def base_rows():
    return (
        BasePriceRow(4, 0.91),
        BasePriceRow(9, 1.36),
        BasePriceRow(16, 1.92),
        BasePriceRow(25, 2.60),
    )


@pytest.fixture
def discount_rows():
    return (
        QuantityDiscountRow(50, {4: 0.0, 9: 0.0, 16: 0.0}),
        QuantityDiscountRow(100, {4: 0.35, 9: 0.353, 16: 0.355}),
        QuantityDiscountRow(150, {4: 0.40, 9: 0.45, 16: 0.46}),
        QuantityDiscountRow(200, {4: 0.53, 9: 0.537, 16: 0.54}),
    )


@pytest.fixture
def small_tables(base_rows, discount_rows):
    return PricingTables(base_pricing=base_rows, quantity_discounts=discount_rows)
