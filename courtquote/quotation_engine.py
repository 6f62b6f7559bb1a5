"""
Quotation Compute Engine.

Turns a court request into an itemized, persisted quotation.
Pure arithmetic on Decimal; the only I/O is one catalog read and one store write.

    base      = round2(area x base_area_rate x tier_multiplier)
    per_area  = round2(area x add-on price)
    flat      = add-on price as-is
    total     = round2(sum of line subtotals)

Every line is rounded before summing so the displayed lines always add up to
the displayed total. Amounts too large for a Numeric(12, 2) column are
rejected as ValidationError rather than stored without their cents. All
validation happens before anything is written.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from .config import settings
from .dimensions import ResolvedDimensions, resolve_dimensions
from .errors import ValidationError
from .models import AddOnPricing, SizeTier
from .rate_catalog import RateSnapshot
from .rounding import MAX_AMOUNT, round2

logger = logging.getLogger(__name__)

BASE_LINE_CODE = "base"


@dataclass(frozen=True)
class PricedLine:
    code: str
    label: str
    pricing: str  # "area" | "flat" | "per_area"
    unit_rate: Decimal
    quantity: Decimal
    subtotal: Decimal


@dataclass(frozen=True)
class PricedQuote:
    """Fully computed, not yet persisted."""
    dimensions: ResolvedDimensions
    rates: RateSnapshot
    line_items: List[PricedLine]
    total: Decimal


class QuotationEngine:
    """
    Prices court requests against a rate catalog and records the result.

    The catalog and store are passed in so tests (or other callers) can swap
    in their own implementations:
        catalog: get_standard_area(sport), get_rate(sport, size_tier)
        store:   create(...) -> record
    """

    def __init__(self, catalog, store, currency: Optional[str] = None):
        self.catalog = catalog
        self.store = store
        self.currency = currency or settings.CURRENCY

    def price(self, request) -> PricedQuote:
        """Compute the breakdown without persisting anything."""
        dimensions = resolve_dimensions(request, self.catalog)
        rates = self.catalog.get_rate(request.sport, dimensions.size_tier)

        line_items = [self._base_line(dimensions, rates)]
        line_items.extend(self._add_on_lines(request.add_ons or [], dimensions.area, rates))

        total = round2(sum((line.subtotal for line in line_items), Decimal("0")))
        _check_amount(total, _area_field(dimensions))
        logger.debug(
            "Priced %s/%s area=%s lines=%d total=%s (rates v%d)",
            rates.sport, rates.size_tier, dimensions.area, len(line_items), total, rates.version,
        )
        return PricedQuote(dimensions=dimensions, rates=rates, line_items=line_items, total=total)

    def compute(self, request):
        """
        Price a request and persist the quotation snapshot.

        Raises:
            ValidationError: bad dimensions, unsupported sport/tier, unknown add-on
            NotFoundError: catalog has no entry for the (sport, size_tier) pair
            StorageError: the quotation could not be saved (retryable)
        """
        quote = self.price(request)
        return self.store.create(
            court_specification=_as_submitted(request),
            resolved_area=quote.dimensions.area,
            line_items=quote.line_items,
            total=quote.total,
            rates=quote.rates,
            currency=self.currency,
        )

    # --- Line items ---

    def _base_line(self, dimensions: ResolvedDimensions, rates: RateSnapshot) -> PricedLine:
        effective_rate = rates.base_area_rate * rates.tier_multiplier
        unit_rate = round2(effective_rate)
        subtotal = round2(dimensions.area * effective_rate)
        _check_amount(unit_rate, "size_tier")
        _check_amount(subtotal, _area_field(dimensions))
        sport = rates.sport.replace("_", " ").title()
        return PricedLine(
            code=BASE_LINE_CODE,
            label=f"{sport} court construction ({dimensions.size_tier.value} size)",
            pricing="area",
            unit_rate=unit_rate,
            quantity=dimensions.area,
            subtotal=subtotal,
        )

    def _add_on_lines(self, add_ons, area: Decimal, rates: RateSnapshot) -> List[PricedLine]:
        lines = []
        seen = set()
        for index, code in enumerate(add_ons):
            add_on = rates.add_ons.get(code)
            if add_on is None:
                raise ValidationError(f"add_ons[{index}]", f"unknown add-on '{code}'")
            if code in seen:
                raise ValidationError(f"add_ons[{index}]", f"add-on '{code}' selected more than once")
            seen.add(code)

            if add_on.pricing == AddOnPricing.PER_AREA:
                quantity = area
                subtotal = round2(area * add_on.price)
            else:
                quantity = Decimal("1")
                subtotal = round2(add_on.price)
            _check_amount(subtotal, f"add_ons[{index}]")
            lines.append(PricedLine(
                code=code,
                label=add_on.label,
                pricing=add_on.pricing.value,
                unit_rate=add_on.price,
                quantity=quantity,
                subtotal=subtotal,
            ))
        return lines


def _as_submitted(request) -> dict:
    if hasattr(request, "model_dump"):
        return request.model_dump(mode="json")
    return dict(request)


def _area_field(dimensions: ResolvedDimensions) -> str:
    return "size_tier" if dimensions.size_tier == SizeTier.STANDARD else "custom_dimensions"


def _check_amount(amount: Decimal, field: str) -> None:
    # Anything larger cannot be stored to the cent
    if amount > MAX_AMOUNT:
        raise ValidationError(field, f"amount {amount} exceeds the largest quotable amount {MAX_AMOUNT}")
