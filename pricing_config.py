# pricing_config.py
"""
Pricing tuning knobs + environment config.

Tier tables (base price by area, discount by quantity x area) live in the
CSV files under data/. Everything else that shapes a price lives here.
"""
import os
from pathlib import Path

DATA_DIR = Path(__file__).resolve().parent / "data"

# ============================================================
# 1) TIER TABLE SOURCES (URL or local path)
# ============================================================
BASE_PRICE_SOURCE = os.environ.get("PRICING_BASE_PRICE_SOURCE", str(DATA_DIR / "base-price.csv"))
QTY_DISCOUNT_SOURCE = os.environ.get("PRICING_QTY_DISCOUNT_SOURCE", str(DATA_DIR / "qty-sq.csv"))

BASE_PRICE_HEADER_TOKEN = "Sq. Inches"
QTY_DISCOUNT_HEADER_TOKEN = "Quantity"
NOTE_MARKER = "*"

# Fetch / retry
FETCH_TIMEOUT_SECONDS = float(os.environ.get("PRICING_FETCH_TIMEOUT_SECONDS", "10"))
MAX_ATTEMPTS = int(os.environ.get("PRICING_MAX_ATTEMPTS", "3"))
BACKOFF_BASE_SECONDS = float(os.environ.get("PRICING_BACKOFF_BASE_SECONDS", "1"))
BACKOFF_CAP_SECONDS = float(os.environ.get("PRICING_BACKOFF_CAP_SECONDS", "5"))
TABLE_RETRY_COOLDOWN_SECONDS = float(os.environ.get("PRICING_TABLE_RETRY_COOLDOWN_SECONDS", "60"))

# ============================================================
# 2) STICKER OPTION MULTIPLIERS
# ============================================================
WHITE_INK_MULTIPLIER = {
    "color-only": 1.00,
    "partial-white": 1.05,
    "full-white": 1.10,
}

# Sticker sheets: number of kiss cuts per sheet
KISS_CUT_MULTIPLIER = {
    "1-3 cuts": 1.00,
    "4-7 cuts": 1.15,
    "8-15 cuts": 1.30,
}

VIBRANCY_BOOST_MULTIPLIER = 1.05
CHROME_PREMIUM = 1.15

# ============================================================
# 3) RUSH ORDERS
# ============================================================
STICKER_RUSH_MULTIPLIER = 1.40   # per unit, after discount
BANNER_RUSH_MULTIPLIER = 1.35    # banners: +35% of subtotal, added as a fee

# ============================================================
# 4) WHOLESALE + STORE CREDIT
# ============================================================
WHOLESALE_DISCOUNT = 0.15        # off the total

CREDIT_RATE_REGULAR = 0.05
CREDIT_RATE_WHOLESALE = 0.025
CREDIT_BALANCE_LIMIT = 100.0

# ============================================================
# 5) BANNERS
# ============================================================
# $/sq ft by banner area (upper bound inclusive); last tier is open-ended
BANNER_TIER_RATES = [
    {"max_sq_ft": 10, "rate": 4.50},
    {"max_sq_ft": 25, "rate": 3.75},
    {"max_sq_ft": 50, "rate": 3.25},
    {"max_sq_ft": None, "rate": 2.85},
]

BANNER_FINISHING_MULTIPLIER = {
    "hemmed-grommeted": 1.00,
    "no-finishing": 0.85,        # raw edges
}

# Volume discount on banner subtotal (independent of the tier tables)
BANNER_VOLUME_DISCOUNT_TIERS = [
    {"min_qty": 1, "discount": 0.00},
    {"min_qty": 5, "discount": 0.05},
    {"min_qty": 10, "discount": 0.10},
    {"min_qty": 15, "discount": 0.15},
    {"min_qty": 25, "discount": 0.25},
]

# ============================================================
# 6) LEGACY FORMULA (used when tier tables can't be loaded)
# ============================================================
LEGACY_BASE_PRICE = 1.36         # 3" x 3" sticker
LEGACY_BASE_AREA = 9.0

# Exact quantities only; anything else pays full price
LEGACY_QTY_MULTIPLIER = {
    50: 1.0,
    100: 0.647,
    200: 0.463,
    300: 0.39,
    500: 0.324,
    750: 0.324,
    1000: 0.257,
    2500: 0.213,
}

# ============================================================
# 7) SIZES
# ============================================================
PRESET_SIZES = {
    "small": {"width": 2, "height": 2, "sq_inches": 4, "label": 'Small (2" x 2")'},
    "medium": {"width": 3, "height": 3, "sq_inches": 9, "label": 'Medium (3" x 3")'},
    "large": {"width": 4, "height": 4, "sq_inches": 16, "label": 'Large (4" x 4")'},
    "xlarge": {"width": 5, "height": 5, "sq_inches": 25, "label": 'X-Large (5" x 5")'},
}

# ============================================================
# 8) API
# ============================================================
API_KEY = os.environ.get("API_KEY", "")
ALLOWED_ORIGINS = [
    o.strip()
    for o in os.environ.get("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
    if o.strip()
]
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
