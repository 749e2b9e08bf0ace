import time
from typing import Any, Dict, Optional

from fastapi import FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

import pricing_config as cfg
from logging_config import get_logger, setup_logging
from pricing_engine import (
    PRODUCT_LINES,
    PricingRequest,
    calculate_banner_price,
    calculate_credit_earnings,
    calculate_legacy_price,
    calculate_quote,
    credit_rate,
    finish_multiplier,
    get_product_line,
    square_inches,
)
from pricing_errors import DataUnavailable
from pricing_tables import PricingTables, available_area_tiers, available_quantities, load_pricing_tables

setup_logging(cfg.LOG_LEVEL)
logger = get_logger(__name__)


# ----------------------------
# App + config
# ----------------------------
app = FastAPI(title="Sticker Pricing API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cfg.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Loaded once, reused for every quote. After a failed load, requests inside
# the cooldown window go straight to legacy pricing without refetching.
_tables: Optional[PricingTables] = None
_last_failure: Optional[float] = None


def get_tables() -> Optional[PricingTables]:
    global _tables, _last_failure
    if _tables is not None:
        return _tables
    if _last_failure is not None and time.monotonic() - _last_failure < cfg.TABLE_RETRY_COOLDOWN_SECONDS:
        return None
    try:
        _tables = load_pricing_tables()
    except DataUnavailable as e:
        _last_failure = time.monotonic()
        logger.warning("Pricing tables unavailable, using legacy pricing: %s", e)
        return None
    _last_failure = None
    return _tables


def reset_tables() -> None:
    global _tables, _last_failure
    _tables = None
    _last_failure = None


# ----------------------------
# Helpers
# ----------------------------
def _require_api_key(x_api_key: Optional[str]) -> None:
    if cfg.API_KEY:
        if not x_api_key or x_api_key != cfg.API_KEY:
            raise HTTPException(status_code=401, detail="Unauthorized")


# ----------------------------
# Request models
# ----------------------------
class StickerQuoteRequest(BaseModel):
    product: str = "vinyl"
    quantity: int
    area_sq_in: Optional[float] = Field(default=None, allow_inf_nan=False)
    width_in: Optional[float] = Field(default=None, allow_inf_nan=False)
    height_in: Optional[float] = Field(default=None, allow_inf_nan=False)
    rush_order: bool = False
    white_option: Optional[str] = None
    kiss_cut_option: Optional[str] = None
    vibrancy_boost: bool = False
    wholesale_approved: bool = False


class BannerQuoteRequest(BaseModel):
    sq_ft: Optional[float] = Field(default=None, allow_inf_nan=False)
    width_ft: Optional[float] = Field(default=None, allow_inf_nan=False)
    height_ft: Optional[float] = Field(default=None, allow_inf_nan=False)
    quantity: int
    rush_order: bool = False
    finishing: str = "hemmed-grommeted"
    wholesale_approved: bool = False


class CreditEstimateRequest(BaseModel):
    order_total: float = Field(ge=0, allow_inf_nan=False)
    current_balance: float = Field(default=0.0, ge=0, allow_inf_nan=False)
    wholesale_approved: bool = False
    wholesale_rate: Optional[float] = Field(default=None, gt=0, lt=1)


def _area(explicit: Optional[float], width: Optional[float], height: Optional[float]) -> float:
    if explicit is not None:
        return explicit
    if width is not None and height is not None:
        return square_inches(width, height)
    raise HTTPException(status_code=422, detail="Provide an area or both width and height.")


# ----------------------------
# Routes
# ----------------------------
@app.get("/health")
def health():
    return {"ok": True, "tables_loaded": _tables is not None}


@app.post("/quote")
def quote(req: StickerQuoteRequest, x_api_key: Optional[str] = Header(default=None)) -> Dict[str, Any]:
    _require_api_key(x_api_key)

    if req.product not in PRODUCT_LINES or not get_product_line(req.product).uses_tier_tables:
        raise HTTPException(status_code=400, detail=f"Unknown sticker product: {req.product}")

    request = PricingRequest(
        area_units=_area(req.area_sq_in, req.width_in, req.height_in),
        quantity=req.quantity,
        rush_order=req.rush_order,
        finish_multiplier=finish_multiplier(req.white_option, req.kiss_cut_option),
        vibrancy_boost=req.vibrancy_boost,
        wholesale_approved=req.wholesale_approved,
    )

    tables = get_tables()
    if tables is not None:
        result = calculate_quote(tables, request, req.product)
        source = "tables"
    else:
        result = calculate_legacy_price(
            request.area_units,
            request.quantity,
            request.rush_order,
            product=req.product,
            finish_multiplier=request.finish_multiplier,
            vibrancy_boost=request.vibrancy_boost,
            wholesale_approved=request.wholesale_approved,
        )
        source = "legacy"

    out = result.as_dict(ndigits=2)
    out["product"] = req.product
    out["pricing_source"] = source
    return out


@app.post("/quote/banner")
def quote_banner(req: BannerQuoteRequest, x_api_key: Optional[str] = Header(default=None)) -> Dict[str, Any]:
    _require_api_key(x_api_key)

    if req.finishing not in cfg.BANNER_FINISHING_MULTIPLIER:
        raise HTTPException(status_code=400, detail=f"Unknown banner finishing: {req.finishing}")

    result = calculate_banner_price(
        _area(req.sq_ft, req.width_ft, req.height_ft),
        req.quantity,
        rush_order=req.rush_order,
        finishing=req.finishing,
        wholesale_approved=req.wholesale_approved,
    )
    out = result.as_dict(ndigits=2)
    out["product"] = "banner"
    return out


@app.post("/credits/estimate")
def credits_estimate(req: CreditEstimateRequest, x_api_key: Optional[str] = Header(default=None)) -> Dict[str, Any]:
    _require_api_key(x_api_key)
    rate = credit_rate(req.wholesale_approved, req.wholesale_rate)
    earned = calculate_credit_earnings(req.order_total, req.current_balance, rate)
    return {
        "credit_rate": rate,
        "credit_amount": round(earned.credit_amount, 2),
        "potential_amount": round(earned.potential_amount, 2),
        "is_limit_reached": earned.is_limit_reached,
        "is_limit_exceeded": earned.is_limit_exceeded,
        "message": earned.message,
    }


@app.get("/pricing/tiers")
def pricing_tiers(x_api_key: Optional[str] = Header(default=None)) -> Dict[str, Any]:
    _require_api_key(x_api_key)
    tables = get_tables()
    if tables is None:
        raise HTTPException(status_code=503, detail="Pricing tables unavailable")
    return {
        "quantities": available_quantities(tables.quantity_discounts),
        "area_tiers": available_area_tiers(tables.quantity_discounts),
        "base_areas": [r.area_units for r in tables.base_pricing],
        "preset_sizes": cfg.PRESET_SIZES,
    }
