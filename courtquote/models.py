from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, JSON, UniqueConstraint, event, inspect
from sqlalchemy.orm import relationship
from datetime import datetime
from .database import Base
from .errors import ImmutableRecordError
import enum


# --- Enums ---
# DECISION: sport and size_tier are stored as VARCHAR, validated against these
# enums at the API boundary. Adding a sport doesn't require a migration.

class Sport(str, enum.Enum):
    BASKETBALL = "basketball"
    TENNIS = "tennis"
    BADMINTON = "badminton"
    VOLLEYBALL = "volleyball"
    PICKLEBALL = "pickleball"


class SizeTier(str, enum.Enum):
    STANDARD = "standard"
    CUSTOM = "custom"
    PREMIUM = "premium"


class AddOnPricing(str, enum.Enum):
    FLAT = "flat"          # fixed price regardless of court area
    PER_AREA = "per_area"  # price per square metre of resolved area


# Money and area columns: 2 decimal places, returned as Decimal
Money = Numeric(12, 2)


# --- Rate catalog ---

class RateEntry(Base):
    """Current unit rates for one (sport, size_tier) pair. Exactly one row per pair."""
    __tablename__ = "rate_entries"
    __table_args__ = (
        UniqueConstraint("sport", "size_tier", name="uq_rate_entries_sport_tier"),
    )

    id = Column(Integer, primary_key=True, index=True)
    sport = Column(String, nullable=False)
    size_tier = Column(String, nullable=False)
    base_area_rate = Column(Money, nullable=False)       # currency per sq. metre
    tier_multiplier = Column(Numeric(6, 3), nullable=False, default=1)
    # {add_on_id: {"label": str, "price": float, "pricing": "flat" | "per_area"}}
    add_on_prices = Column(JSON, nullable=False, default=dict)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class CourtSize(Base):
    """Canonical standard-tier playing area per sport (sq. metres)."""
    __tablename__ = "court_sizes"

    id = Column(Integer, primary_key=True, index=True)
    sport = Column(String, unique=True, nullable=False)
    standard_area = Column(Money, nullable=True)  # NULL = no standard size offered
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# --- Issued quotations ---
# Price-bearing fields are written once at creation and never recalculated.

class Quotation(Base):
    __tablename__ = "quotations"

    id = Column(String, primary_key=True)  # UUID
    sport = Column(String, nullable=False)
    size_tier = Column(String, nullable=False)
    court_specification = Column(JSON, nullable=False)  # request as submitted
    resolved_area = Column(Money, nullable=False)
    total = Column(Money, nullable=False)
    currency = Column(String, nullable=False, default="USD")
    rates_snapshot_version = Column(Integer, nullable=False)
    rates_snapshot = Column(JSON, nullable=False)  # rate values actually used
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    line_items = relationship(
        "QuotationLineItem",
        back_populates="quotation",
        cascade="all, delete-orphan",
        order_by="QuotationLineItem.position",
    )


class QuotationLineItem(Base):
    __tablename__ = "quotation_line_items"
    __table_args__ = (
        UniqueConstraint("quotation_id", "position", name="uq_line_items_quotation_position"),
    )

    id = Column(Integer, primary_key=True, index=True)
    quotation_id = Column(String, ForeignKey("quotations.id"), nullable=False)
    position = Column(Integer, nullable=False)  # 0 = base cost, then add-ons in selection order
    code = Column(String, nullable=False)       # "base" or the add-on id
    label = Column(String, nullable=False)
    pricing = Column(String, nullable=False)    # "area" | "flat" | "per_area"
    unit_rate = Column(Money, nullable=False)
    quantity = Column(Money, nullable=False)
    subtotal = Column(Money, nullable=False)

    quotation = relationship("Quotation", back_populates="line_items")


# --- Issued quotations are write-once ---

QUOTATION_PRICE_FIELDS = (
    "sport", "size_tier", "court_specification", "resolved_area", "total",
    "currency", "rates_snapshot_version", "rates_snapshot",
)
LINE_ITEM_PRICE_FIELDS = (
    "position", "code", "label", "pricing", "unit_rate", "quantity", "subtotal",
)


def _changed_fields(target, names):
    state = inspect(target)
    return [n for n in names if state.attrs[n].history.has_changes()]


@event.listens_for(Quotation, "before_update")
def _reject_quotation_update(mapper, connection, target):
    changed = _changed_fields(target, QUOTATION_PRICE_FIELDS)
    if changed:
        raise ImmutableRecordError(f"Quotation {target.id} is immutable; attempted to change {', '.join(changed)}")


@event.listens_for(QuotationLineItem, "before_update")
def _reject_line_item_update(mapper, connection, target):
    changed = _changed_fields(target, LINE_ITEM_PRICE_FIELDS)
    if changed:
        raise ImmutableRecordError(f"Line items of quotation {target.quotation_id} are immutable")
