"""
Rate Catalog: current per-sport, per-tier unit rates and add-on prices.

Reads return immutable RateSnapshot values built from a single row fetch, so a
concurrent rate edit can never produce a half-old, half-new set of rates.

Bootstrap (ensure_defaults) is check-then-insert, but the guarantee of one row
per key comes from the unique constraints on rate_entries / court_sizes: if two
processes both see "absent" and both insert, the loser's IntegrityError is
swallowed as success.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .errors import CatalogEntryMissing, StorageError, ValidationError
from .models import AddOnPricing, SizeTier, Sport
from .rounding import MAX_AMOUNT, round2, to_decimal

logger = logging.getLogger(__name__)

# Numeric(6, 3) column limit
MAX_MULTIPLIER = Decimal("999.999")


# --- Defaults ---
# Standard playing areas (sq. metres) from official court dimensions:
# basketball 28 x 15, tennis doubles 23.77 x 10.97, badminton doubles 13.4 x 6.1,
# volleyball 18 x 9, pickleball 13.4 x 6.1
DEFAULT_COURT_SIZES = {
    Sport.BASKETBALL: Decimal("420.00"),
    Sport.TENNIS: Decimal("260.76"),
    Sport.BADMINTON: Decimal("81.74"),
    Sport.VOLLEYBALL: Decimal("162.00"),
    Sport.PICKLEBALL: Decimal("81.74"),
}

# Base construction rate per sq. metre (surface prep, base layers, markings)
DEFAULT_BASE_AREA_RATES = {
    Sport.BASKETBALL: Decimal("10.00"),
    Sport.TENNIS: Decimal("12.00"),
    Sport.BADMINTON: Decimal("15.00"),
    Sport.VOLLEYBALL: Decimal("9.00"),
    Sport.PICKLEBALL: Decimal("14.00"),
}

# Premium = enhanced materials and professional-grade finish
DEFAULT_TIER_MULTIPLIERS = {
    SizeTier.STANDARD: Decimal("1.0"),
    SizeTier.CUSTOM: Decimal("1.0"),
    SizeTier.PREMIUM: Decimal("1.25"),
}

DEFAULT_ADD_ONS = {
    "lighting": {"label": "LED floodlighting", "price": 500.0, "pricing": AddOnPricing.FLAT.value},
    "fencing": {"label": "Perimeter fencing", "price": 1.5, "pricing": AddOnPricing.PER_AREA.value},
    "acrylic_coating": {"label": "Acrylic cushion coating", "price": 4.0, "pricing": AddOnPricing.PER_AREA.value},
    "drainage": {"label": "Sub-surface drainage", "price": 3.0, "pricing": AddOnPricing.PER_AREA.value},
    "equipment": {"label": "Posts, nets and hoops", "price": 350.0, "pricing": AddOnPricing.FLAT.value},
    "shade_canopy": {"label": "Shade canopy", "price": 1200.0, "pricing": AddOnPricing.FLAT.value},
}

DEFAULT_RATES = {
    (sport, tier): {
        "base_area_rate": DEFAULT_BASE_AREA_RATES[sport],
        "tier_multiplier": DEFAULT_TIER_MULTIPLIERS[tier],
        "add_on_prices": DEFAULT_ADD_ONS,
    }
    for sport in Sport
    for tier in SizeTier
}


def _key(value) -> str:
    return value.value if isinstance(value, (Sport, SizeTier)) else str(value)


@dataclass(frozen=True)
class AddOnPrice:
    code: str
    label: str
    price: Decimal
    pricing: AddOnPricing


@dataclass(frozen=True)
class RateSnapshot:
    """All rate fields of one RateEntry, read together."""
    sport: str
    size_tier: str
    base_area_rate: Decimal
    tier_multiplier: Decimal
    add_ons: Dict[str, AddOnPrice] = field(default_factory=dict)
    version: int = 1
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: models.RateEntry) -> "RateSnapshot":
        add_ons = {
            code: AddOnPrice(
                code=code,
                label=data.get("label") or code.replace("_", " ").title(),
                price=to_decimal(data["price"]),
                pricing=AddOnPricing(data.get("pricing", AddOnPricing.FLAT.value)),
            )
            for code, data in (row.add_on_prices or {}).items()
        }
        return cls(
            sport=row.sport,
            size_tier=row.size_tier,
            base_area_rate=to_decimal(row.base_area_rate),
            tier_multiplier=to_decimal(row.tier_multiplier),
            add_ons=add_ons,
            version=row.version,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict:
        """JSON-safe form. Decimals are strings so the snapshot stays exact."""
        return {
            "sport": self.sport,
            "size_tier": self.size_tier,
            "base_area_rate": str(self.base_area_rate),
            "tier_multiplier": str(self.tier_multiplier),
            "add_on_prices": {
                code: {"label": a.label, "price": str(a.price), "pricing": a.pricing.value}
                for code, a in self.add_ons.items()
            },
            "version": self.version,
        }


def validate_add_on_prices(add_on_prices: dict) -> dict:
    """Normalize an add-on price mapping, rejecting negative or malformed prices."""
    if not isinstance(add_on_prices, dict):
        raise ValidationError("add_on_prices", "must be a mapping of add-on id to price")
    cleaned = {}
    for code, data in add_on_prices.items():
        if not isinstance(data, dict) or "price" not in data:
            raise ValidationError(f"add_on_prices.{code}", "must be an object with a price")
        try:
            price = to_decimal(data["price"])
        except ValueError:
            raise ValidationError(f"add_on_prices.{code}.price", "must be a number")
        if price < 0:
            raise ValidationError(f"add_on_prices.{code}.price", "must not be negative")
        if price > MAX_AMOUNT:
            raise ValidationError(f"add_on_prices.{code}.price", f"must be at most {MAX_AMOUNT}")
        if price != round2(price):
            raise ValidationError(f"add_on_prices.{code}.price", "must have at most 2 decimal places")
        pricing = data.get("pricing", AddOnPricing.FLAT.value)
        if pricing not in {p.value for p in AddOnPricing}:
            raise ValidationError(f"add_on_prices.{code}.pricing", "must be 'flat' or 'per_area'")
        cleaned[code] = {
            "label": data.get("label") or code.replace("_", " ").title(),
            "price": float(price),
            "pricing": pricing,
        }
    return cleaned


class RateCatalog:
    """Database-backed rate catalog bound to one SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    # --- Reads ---

    def get_rate(self, sport, size_tier) -> RateSnapshot:
        """Current rates for (sport, size_tier). Raises CatalogEntryMissing if absent."""
        try:
            row = self._rate_row(sport, size_tier)
        except SQLAlchemyError as e:
            raise StorageError(f"Rate catalog read failed: {e}") from e
        if row is None:
            logger.error("Rate catalog has no entry for %s/%s", _key(sport), _key(size_tier))
            raise CatalogEntryMissing(_key(sport), _key(size_tier))
        return RateSnapshot.from_row(row)

    def get_standard_area(self, sport) -> Optional[Decimal]:
        try:
            row = self._court_size_row(sport)
        except SQLAlchemyError as e:
            raise StorageError(f"Rate catalog read failed: {e}") from e
        if row is None or row.standard_area is None:
            return None
        return to_decimal(row.standard_area)

    def list_rates(self) -> List[RateSnapshot]:
        try:
            rows = self.db.query(models.RateEntry).order_by(
                models.RateEntry.sport, models.RateEntry.size_tier
            ).all()
        except SQLAlchemyError as e:
            raise StorageError(f"Rate catalog read failed: {e}") from e
        return [RateSnapshot.from_row(r) for r in rows]

    def list_court_sizes(self) -> Dict[str, Optional[Decimal]]:
        try:
            rows = self.db.query(models.CourtSize).order_by(models.CourtSize.sport).all()
        except SQLAlchemyError as e:
            raise StorageError(f"Rate catalog read failed: {e}") from e
        return {
            r.sport: to_decimal(r.standard_area) if r.standard_area is not None else None
            for r in rows
        }

    # --- Bootstrap ---

    def ensure_defaults(self) -> int:
        """Create any missing default court sizes and rate entries.

        Safe to run repeatedly and concurrently. Returns how many rows this call created.
        """
        try:
            missing_sizes = [
                (sport, area) for sport, area in DEFAULT_COURT_SIZES.items()
                if self._court_size_row(sport) is None
            ]
            missing_rates = [
                (sport, tier, data) for (sport, tier), data in DEFAULT_RATES.items()
                if self._rate_row(sport, tier) is None
            ]
        except SQLAlchemyError as e:
            raise StorageError(f"Rate catalog bootstrap failed: {e}") from e

        created = 0
        for sport, area in missing_sizes:
            created += self._insert_ignoring_duplicate(
                models.CourtSize(sport=sport.value, standard_area=area)
            )
        for sport, tier, data in missing_rates:
            created += self._insert_ignoring_duplicate(
                models.RateEntry(
                    sport=sport.value,
                    size_tier=tier.value,
                    base_area_rate=data["base_area_rate"],
                    tier_multiplier=data["tier_multiplier"],
                    add_on_prices=dict(data["add_on_prices"]),
                    version=1,
                )
            )
        if created:
            logger.info("Seeded %d default rate catalog rows", created)
        else:
            logger.info("Rate catalog defaults already present")
        return created

    def _insert_ignoring_duplicate(self, row) -> int:
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError:
            # A concurrent bootstrap inserted the same key first
            self.db.rollback()
            logger.debug("Default %s already created by another worker", type(row).__name__)
            return 0
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError(f"Rate catalog bootstrap failed: {e}") from e
        return 1

    # --- Administrative edit ---

    def update_rate(
        self,
        sport,
        size_tier,
        base_area_rate=None,
        tier_multiplier=None,
        add_on_prices: Optional[dict] = None,
    ) -> RateSnapshot:
        """Edit one rate entry and bump its version. Issued quotations are unaffected."""
        changes = {}
        if base_area_rate is not None:
            try:
                changes["base_area_rate"] = to_decimal(base_area_rate)
            except ValueError:
                raise ValidationError("base_area_rate", "must be a number")
            if changes["base_area_rate"] < 0:
                raise ValidationError("base_area_rate", "must not be negative")
            if changes["base_area_rate"] > MAX_AMOUNT:
                raise ValidationError("base_area_rate", f"must be at most {MAX_AMOUNT}")
            if changes["base_area_rate"] != round2(changes["base_area_rate"]):
                raise ValidationError("base_area_rate", "must have at most 2 decimal places")
        if tier_multiplier is not None:
            try:
                changes["tier_multiplier"] = to_decimal(tier_multiplier)
            except ValueError:
                raise ValidationError("tier_multiplier", "must be a number")
            if changes["tier_multiplier"] < 1:
                raise ValidationError("tier_multiplier", "must be at least 1.0")
            if changes["tier_multiplier"] > MAX_MULTIPLIER:
                raise ValidationError("tier_multiplier", f"must be at most {MAX_MULTIPLIER}")
            if changes["tier_multiplier"] != changes["tier_multiplier"].quantize(Decimal("0.001")):
                raise ValidationError("tier_multiplier", "must have at most 3 decimal places")
        if add_on_prices is not None:
            changes["add_on_prices"] = validate_add_on_prices(add_on_prices)

        try:
            row = self._rate_row(sport, size_tier)
        except SQLAlchemyError as e:
            raise StorageError(f"Rate catalog read failed: {e}") from e
        if row is None:
            raise CatalogEntryMissing(_key(sport), _key(size_tier))
        for name, value in changes.items():
            setattr(row, name, value)
        row.version = (row.version or 0) + 1
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError(f"Rate update failed: {e}") from e
        self.db.refresh(row)
        logger.info("Updated rates for %s/%s -> version %d", row.sport, row.size_tier, row.version)
        return RateSnapshot.from_row(row)

    # --- Row lookups ---

    def _rate_row(self, sport, size_tier) -> Optional[models.RateEntry]:
        return self.db.query(models.RateEntry).filter(
            models.RateEntry.sport == _key(sport),
            models.RateEntry.size_tier == _key(size_tier),
        ).first()

    def _court_size_row(self, sport) -> Optional[models.CourtSize]:
        return self.db.query(models.CourtSize).filter(
            models.CourtSize.sport == _key(sport)
        ).first()
