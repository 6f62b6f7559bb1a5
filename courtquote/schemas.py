from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime
from .dimensions import MAX_DIMENSION
from .models import Sport, SizeTier, AddOnPricing
from .rounding import MAX_AMOUNT


# --- Quotation request ---

class CustomDimensions(BaseModel):
    length: Optional[float] = Field(default=None, le=float(MAX_DIMENSION))  # metres
    width: Optional[float] = Field(default=None, le=float(MAX_DIMENSION))   # metres
    # Forms compute this client-side; accepted for compatibility, never used for pricing
    area: Optional[float] = None

    class Config:
        extra = "forbid"


class ComputeQuotationRequest(BaseModel):
    sport: Sport
    size_tier: SizeTier
    custom_dimensions: Optional[CustomDimensions] = None  # required iff size_tier != standard
    add_ons: List[str] = []  # order = line item order

    class Config:
        extra = "forbid"


# --- Quotation response ---

class QuotationLineItem(BaseModel):
    position: int
    code: str
    label: str
    pricing: str
    unit_rate: float
    quantity: float
    subtotal: float

    class Config:
        from_attributes = True


class Quotation(BaseModel):
    id: str
    sport: str
    size_tier: str
    court_specification: dict
    resolved_area: float
    line_items: List[QuotationLineItem] = []
    total: float
    currency: str
    rates_snapshot_version: int
    rates_snapshot: dict
    created_at: datetime

    class Config:
        from_attributes = True


# --- Rate catalog ---

class AddOnPriceIn(BaseModel):
    label: Optional[str] = None
    price: float = Field(ge=0, le=float(MAX_AMOUNT))
    pricing: AddOnPricing = AddOnPricing.FLAT


class RateUpdate(BaseModel):
    base_area_rate: Optional[float] = Field(default=None, ge=0, le=float(MAX_AMOUNT))
    tier_multiplier: Optional[float] = Field(default=None, ge=1, le=999.999)
    add_on_prices: Optional[Dict[str, AddOnPriceIn]] = None

    class Config:
        extra = "forbid"


class QuotationPreview(BaseModel):
    """Priced breakdown for a request, not saved."""
    sport: str
    size_tier: str
    resolved_area: float
    line_items: List[QuotationLineItem] = []
    total: float
    currency: str
    rates_snapshot_version: int
