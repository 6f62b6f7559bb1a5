"""
Dimension Resolver: turns a court specification into the area that gets priced.

Standard tier  -> the sport's canonical standard area from the catalog.
                  Any dimensions sent with a standard request are ignored.
Custom/premium -> length x width, recomputed here and rounded half-up to 2dp.
                  A client-computed area is never trusted.
"""

import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from .errors import ValidationError
from .models import SizeTier, Sport
from .rounding import MAX_AMOUNT, round2, to_decimal

# Aspect ratio used for the advisory "recommended" rectangle
RECOMMENDED_ASPECT_RATIO = 1.5

# Longest side accepted for a custom court (metres)
MAX_DIMENSION = Decimal("10000")

# Reference layouts shown next to the custom-size inputs (metres)
COMMON_DIMENSIONS = {
    Sport.BASKETBALL: [
        {"name": "Full Court", "length": 28.0, "width": 15.0},
        {"name": "Half Court", "length": 14.0, "width": 15.0},
    ],
    Sport.TENNIS: [
        {"name": "Singles", "length": 23.77, "width": 8.23},
        {"name": "Doubles", "length": 23.77, "width": 10.97},
    ],
    Sport.BADMINTON: [
        {"name": "Singles", "length": 13.4, "width": 5.18},
        {"name": "Doubles", "length": 13.4, "width": 6.1},
    ],
    Sport.VOLLEYBALL: [
        {"name": "Standard", "length": 18.0, "width": 9.0},
    ],
    Sport.PICKLEBALL: [
        {"name": "Standard", "length": 13.4, "width": 6.1},
    ],
}


@dataclass(frozen=True)
class ResolvedDimensions:
    area: Decimal
    size_tier: SizeTier
    length: Optional[Decimal] = None
    width: Optional[Decimal] = None


def parse_sport(value) -> Sport:
    try:
        return Sport(value)
    except ValueError:
        raise ValidationError("sport", f"unsupported sport '{value}'")


def parse_size_tier(value) -> SizeTier:
    try:
        return SizeTier(value)
    except ValueError:
        raise ValidationError("size_tier", f"unsupported size tier '{value}'")


def _dimension(dims, name: str) -> Decimal:
    if isinstance(dims, dict):
        raw = dims.get(name)
    else:
        raw = getattr(dims, name, None)
    field = f"custom_dimensions.{name}"
    if raw is None or raw == "":
        raise ValidationError(field, "is required for custom and premium sizes")
    try:
        value = to_decimal(raw)
    except ValueError:
        raise ValidationError(field, "must be a number")
    if value <= 0:
        raise ValidationError(field, "must be greater than 0")
    if value > MAX_DIMENSION:
        raise ValidationError(field, f"must be at most {MAX_DIMENSION} metres")
    return value


def resolve_dimensions(spec, catalog) -> ResolvedDimensions:
    """
    Resolve the priced area for a request.

    Args:
        spec: ComputeQuotationRequest (or anything with sport, size_tier, custom_dimensions)
        catalog: object with get_standard_area(sport) -> Decimal | None

    Raises:
        ValidationError: unknown sport/tier, no standard area, or bad dimensions
    """
    sport = parse_sport(spec.sport)
    tier = parse_size_tier(spec.size_tier)

    if tier == SizeTier.STANDARD:
        area = catalog.get_standard_area(sport)
        if area is None:
            raise ValidationError("sport", f"no standard court size defined for {sport.value}")
        return ResolvedDimensions(area=round2(area), size_tier=tier)

    dims = spec.custom_dimensions
    if dims is None:
        raise ValidationError("custom_dimensions", "length and width are required for custom and premium sizes")
    length = _dimension(dims, "length")
    width = _dimension(dims, "width")
    area = round2(length * width)
    if area > MAX_AMOUNT:
        raise ValidationError("custom_dimensions", "area is too large to quote")
    if area <= 0:
        # e.g. 0.001 x 0.001 rounds to 0.00
        raise ValidationError("custom_dimensions", "area must be greater than 0")
    return ResolvedDimensions(area=area, size_tier=tier, length=length, width=width)


def recommended_dimensions(standard_area) -> Optional[dict]:
    """Illustrative rectangle with a 1.5 aspect ratio for a given area. Advisory only."""
    if standard_area is None:
        return None
    area = float(standard_area)
    if area <= 0:
        return None
    return {
        "length": round(math.sqrt(area * RECOMMENDED_ASPECT_RATIO), 1),
        "width": round(math.sqrt(area / RECOMMENDED_ASPECT_RATIO), 1),
    }
