"""
Quotation engine tests: pricing math, snapshot persistence, failure behaviour.

Tests:
1-4.   End-to-end scenarios against the default catalog
5-7.   Rounding: per-line rounding, lines always sum to total
8-10.  Add-ons: selection order, unknown id, duplicates
11-13. No side effects on validation / catalog failures
14-16. Historical immutability after rate changes
17-18. Storage failures never return a record
19.    Engine works against a substituted in-memory catalog and store
20-23. Amount limits: large quotes stored to the cent, oversized ones rejected
24.    Listing failures surface as StorageError
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from courtquote import models
from courtquote.errors import (
    CatalogEntryMissing,
    ImmutableRecordError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from courtquote.quotation_engine import QuotationEngine
from courtquote.quotation_store import QuotationStore
from courtquote.models import AddOnPricing
from courtquote.rate_catalog import AddOnPrice, RateCatalog, RateSnapshot
from courtquote.schemas import ComputeQuotationRequest


def _engine(db):
    return QuotationEngine(RateCatalog(db), QuotationStore(db), currency="USD")


def _request(sport="basketball", size_tier="custom", length=None, width=None, add_ons=None):
    dims = None
    if length is not None or width is not None:
        dims = {"length": length, "width": width}
    return ComputeQuotationRequest(
        sport=sport,
        size_tier=size_tier,
        custom_dimensions=dims,
        add_ons=add_ons or [],
    )


def _subtotals(quotation):
    return [item.subtotal for item in quotation.line_items]


# ============================================================
# 1-4. Scenarios
# ============================================================

def test_custom_basketball_with_lighting(seeded_db):
    """28 x 15 custom court, rate 10, multiplier 1.0, flat lighting 500."""
    quotation = _engine(seeded_db).compute(
        _request("basketball", "custom", 28, 15, add_ons=["lighting"])
    )
    assert quotation.resolved_area == Decimal("420.00")
    assert [i.code for i in quotation.line_items] == ["base", "lighting"]
    assert _subtotals(quotation) == [Decimal("4200.00"), Decimal("500.00")]
    assert quotation.total == Decimal("4700.00")
    assert quotation.rates_snapshot_version == 1
    assert quotation.currency == "USD"


def test_standard_tennis_no_add_ons(seeded_db):
    """Standard area 260.76 x 12 = 3129.12"""
    quotation = _engine(seeded_db).compute(_request("tennis", "standard"))
    assert quotation.resolved_area == Decimal("260.76")
    assert len(quotation.line_items) == 1
    base = quotation.line_items[0]
    assert base.pricing == "area"
    assert base.unit_rate == Decimal("12.00")
    assert base.quantity == Decimal("260.76")
    assert quotation.total == Decimal("3129.12")


def test_premium_tier_applies_multiplier(seeded_db):
    """20 x 10 premium basketball: 200 m2 x 10 x 1.25 = 2500.00"""
    quotation = _engine(seeded_db).compute(_request("basketball", "premium", 20, 10))
    assert quotation.line_items[0].unit_rate == Decimal("12.50")
    assert quotation.total == Decimal("2500.00")
    assert quotation.rates_snapshot["tier_multiplier"] == "1.250"


def test_per_area_add_on_scales_with_area(seeded_db):
    """Acrylic coating at 4.00/m2 on 420 m2 = 1680.00"""
    quotation = _engine(seeded_db).compute(
        _request("basketball", "custom", 28, 15, add_ons=["acrylic_coating"])
    )
    coating = quotation.line_items[1]
    assert coating.pricing == "per_area"
    assert coating.quantity == Decimal("420.00")
    assert coating.subtotal == Decimal("1680.00")
    assert quotation.total == Decimal("5880.00")


# ============================================================
# 5-7. Rounding
# ============================================================

def _awkward_rates(seeded_db):
    RateCatalog(seeded_db).update_rate(
        "badminton", "premium",
        base_area_rate="10.33",
        tier_multiplier="1.125",
        add_on_prices={"line_marking": {"price": "0.37", "pricing": "per_area"}},
    )


def test_each_line_rounded_before_summing(seeded_db):
    """
    5.55 x 6.006 = 33.3333 -> 33.33 m2
    base: 33.33 x 10.33 x 1.125 = 387.3362625 -> 387.34
    line marking: 33.33 x 0.37 = 12.3321 -> 12.33
    total: 399.67
    """
    _awkward_rates(seeded_db)
    quotation = _engine(seeded_db).compute(
        _request("badminton", "premium", 5.55, 6.006, add_ons=["line_marking"])
    )
    assert quotation.resolved_area == Decimal("33.33")
    assert _subtotals(quotation) == [Decimal("387.34"), Decimal("12.33")]
    assert quotation.line_items[0].unit_rate == Decimal("11.62")
    assert quotation.total == Decimal("399.67")


@pytest.mark.parametrize("length, width, add_ons", [
    (28, 15, ["lighting", "fencing", "drainage"]),
    (13.41, 6.13, ["acrylic_coating", "equipment"]),
    (23.77, 10.97, ["fencing", "acrylic_coating", "drainage", "shade_canopy"]),
    (7.333, 3.777, []),
])
def test_line_items_sum_exactly_to_total(seeded_db, length, width, add_ons):
    quotation = _engine(seeded_db).compute(
        _request("pickleball", "premium", length, width, add_ons=add_ons)
    )
    assert sum(_subtotals(quotation)) == quotation.total
    for subtotal in _subtotals(quotation):
        assert subtotal == subtotal.quantize(Decimal("0.01"))


def test_awkward_rates_still_sum_exactly(seeded_db):
    _awkward_rates(seeded_db)
    engine = _engine(seeded_db)
    for length in ("1.01", "2.345", "9.999", "17.5"):
        quote = engine.price(_request("badminton", "premium", length, 3.21, add_ons=["line_marking"]))
        assert sum(line.subtotal for line in quote.line_items) == quote.total


# ============================================================
# 8-10. Add-ons
# ============================================================

def test_add_ons_keep_selection_order(seeded_db):
    order = ["shade_canopy", "lighting", "fencing"]
    quotation = _engine(seeded_db).compute(_request("volleyball", "custom", 18, 9, add_ons=order))
    assert [i.code for i in quotation.line_items] == ["base"] + order
    assert [i.position for i in quotation.line_items] == [0, 1, 2, 3]


def test_unknown_add_on_is_validation_error(seeded_db):
    with pytest.raises(ValidationError) as exc:
        _engine(seeded_db).compute(
            _request("basketball", "custom", 28, 15, add_ons=["lighting", "hot_tub"])
        )
    assert exc.value.field == "add_ons[1]"
    assert "hot_tub" in exc.value.reason


def test_duplicate_add_on_is_rejected(seeded_db):
    with pytest.raises(ValidationError):
        _engine(seeded_db).compute(
            _request("basketball", "custom", 28, 15, add_ons=["lighting", "lighting"])
        )


# ============================================================
# 11-13. No side effects on failure
# ============================================================

def test_unknown_add_on_persists_nothing(seeded_db):
    with pytest.raises(ValidationError):
        _engine(seeded_db).compute(_request("basketball", "custom", 28, 15, add_ons=["hot_tub"]))
    assert seeded_db.query(models.Quotation).count() == 0
    assert seeded_db.query(models.QuotationLineItem).count() == 0


def test_zero_length_persists_nothing(seeded_db):
    with pytest.raises(ValidationError) as exc:
        _engine(seeded_db).compute(_request("basketball", "custom", 0, 15))
    assert exc.value.field == "custom_dimensions.length"
    assert seeded_db.query(models.Quotation).count() == 0


def test_missing_catalog_entry_persists_nothing(seeded_db):
    seeded_db.query(models.RateEntry).filter(models.RateEntry.sport == "volleyball").delete()
    seeded_db.commit()
    with pytest.raises(CatalogEntryMissing):
        _engine(seeded_db).compute(_request("volleyball", "standard"))
    assert seeded_db.query(models.Quotation).count() == 0


# ============================================================
# 14-16. Historical immutability
# ============================================================

def test_rate_change_does_not_alter_issued_quotation(seeded_db, session_factory):
    issued = _engine(seeded_db).compute(
        _request("basketball", "custom", 28, 15, add_ons=["lighting"])
    )
    RateCatalog(seeded_db).update_rate(
        "basketball", "custom",
        base_area_rate=20,
        add_on_prices={"lighting": {"label": "LED floodlighting", "price": 900}},
    )

    # Fresh session: nothing cached from the first compute
    other = session_factory()
    try:
        refetched = QuotationStore(other).get_by_id(issued.id)
        assert refetched.total == Decimal("4700.00")
        assert [i.subtotal for i in refetched.line_items] == [Decimal("4200.00"), Decimal("500.00")]
        assert refetched.rates_snapshot_version == 1
        assert refetched.rates_snapshot["base_area_rate"] == "10.00"
    finally:
        other.close()

    # New quotations use the new rates
    fresh = _engine(seeded_db).compute(
        _request("basketball", "custom", 28, 15, add_ons=["lighting"])
    )
    assert fresh.total == Decimal("9300.00")
    assert fresh.rates_snapshot_version == 2


def test_issued_quotation_total_cannot_be_edited(seeded_db):
    quotation = _engine(seeded_db).compute(_request("tennis", "standard"))
    quotation.total = Decimal("1.00")
    with pytest.raises(ImmutableRecordError):
        seeded_db.commit()
    seeded_db.rollback()
    assert QuotationStore(seeded_db).get_by_id(quotation.id).total == Decimal("3129.12")


def test_issued_line_items_cannot_be_edited(seeded_db):
    quotation = _engine(seeded_db).compute(_request("tennis", "standard", add_ons=["lighting"]))
    quotation.line_items[1].subtotal = Decimal("0.00")
    with pytest.raises(ImmutableRecordError):
        seeded_db.commit()
    seeded_db.rollback()


# ============================================================
# 17-18. Storage failures
# ============================================================

def test_failed_write_raises_storage_error_and_saves_nothing(seeded_db, monkeypatch):
    def failing_commit():
        raise OperationalError("INSERT INTO quotations", {}, Exception("disk I/O error"))

    monkeypatch.setattr(seeded_db, "commit", failing_commit)
    with pytest.raises(StorageError) as exc:
        _engine(seeded_db).compute(_request("basketball", "custom", 28, 15))
    assert exc.value.retryable is True
    monkeypatch.undo()

    assert seeded_db.query(models.Quotation).count() == 0
    assert seeded_db.query(models.QuotationLineItem).count() == 0


def test_get_by_id_unknown(seeded_db):
    with pytest.raises(NotFoundError):
        QuotationStore(seeded_db).get_by_id("does-not-exist")


# ============================================================
# 19. Substituted catalog and store
# ============================================================

class _MemoryCatalog:
    def __init__(self):
        self.rates = {
            ("tennis", "custom"): RateSnapshot(
                sport="tennis",
                size_tier="custom",
                base_area_rate=Decimal("8.00"),
                tier_multiplier=Decimal("1.10"),
                add_ons={
                    "lighting": AddOnPrice("lighting", "Lighting", Decimal("250.00"), AddOnPricing.FLAT),
                },
                version=7,
            ),
        }

    def get_standard_area(self, sport):
        return None

    def get_rate(self, sport, size_tier):
        key = (getattr(sport, "value", sport), getattr(size_tier, "value", size_tier))
        if key not in self.rates:
            raise CatalogEntryMissing(*key)
        return self.rates[key]


class _MemoryStore:
    def __init__(self):
        self.records = []

    def create(self, **record):
        self.records.append(record)
        return record


def test_engine_with_in_memory_catalog_and_store():
    """10 x 10 custom tennis: 100 x 8.00 x 1.10 = 880.00, + 250 lighting"""
    store = _MemoryStore()
    engine = QuotationEngine(_MemoryCatalog(), store, currency="EUR")
    record = engine.compute(_request("tennis", "custom", 10, 10, add_ons=["lighting"]))

    assert len(store.records) == 1
    assert record["total"] == Decimal("1130.00")
    assert record["resolved_area"] == Decimal("100.00")
    assert record["rates"].version == 7
    assert record["currency"] == "EUR"
    assert record["court_specification"]["add_ons"] == ["lighting"]

    # Validation failures never reach the store
    with pytest.raises(ValidationError):
        engine.compute(_request("tennis", "custom", 10, 10, add_ons=["sauna"]))
    assert len(store.records) == 1


# ============================================================
# 20-23. Amount limits
# ============================================================

def test_large_quotation_is_stored_to_the_cent(seeded_db, session_factory):
    """
    9999.99 x 1234.57 = 12345687.6543 -> 12345687.65 m2
    base: 12345687.65 x 10.00 = 123456876.50
    fencing: 12345687.65 x 1.50 = 18518531.475 -> 18518531.48
    lighting: 500.00
    total: 141975907.98
    """
    engine = _engine(seeded_db)
    request = _request("basketball", "custom", 9999.99, 1234.57, add_ons=["fencing", "lighting"])
    priced = engine.price(request)
    quotation = engine.compute(request)

    other = session_factory()
    try:
        stored = QuotationStore(other).get_by_id(quotation.id)
        assert stored.total == priced.total == Decimal("141975907.98")
        assert _subtotals(stored) == [line.subtotal for line in priced.line_items]
        assert sum(_subtotals(stored)) == stored.total
    finally:
        other.close()


def test_oversized_base_line_is_rejected(seeded_db):
    RateCatalog(seeded_db).update_rate("basketball", "custom", base_area_rate="9999999.99")
    with pytest.raises(ValidationError) as exc:
        _engine(seeded_db).compute(_request("basketball", "custom", 10000, 10000))
    assert exc.value.field == "custom_dimensions"
    assert seeded_db.query(models.Quotation).count() == 0


def test_oversized_add_on_line_is_rejected(seeded_db):
    RateCatalog(seeded_db).update_rate("basketball", "custom", add_on_prices={
        "lighting": {"price": "9999999.99", "pricing": "per_area"},
    })
    with pytest.raises(ValidationError) as exc:
        _engine(seeded_db).compute(_request("basketball", "custom", 100, 20, add_ons=["lighting"]))
    assert exc.value.field == "add_ons[0]"
    assert seeded_db.query(models.Quotation).count() == 0


def test_oversized_total_is_rejected(seeded_db):
    """Each line fits (5,000,000,000.00) but the total does not."""
    RateCatalog(seeded_db).update_rate(
        "basketball", "custom",
        base_area_rate="5000000",
        add_on_prices={"lighting": {"price": "5000000", "pricing": "per_area"}},
    )
    with pytest.raises(ValidationError) as exc:
        _engine(seeded_db).price(_request("basketball", "custom", 50, 20, add_ons=["lighting"]))
    assert exc.value.field == "custom_dimensions"


# ============================================================
# 24. Listing failures
# ============================================================

def test_list_recent_read_failure_is_storage_error(seeded_db, monkeypatch):
    def failing_query(*args, **kwargs):
        raise OperationalError("SELECT quotations", {}, Exception("database is locked"))

    monkeypatch.setattr(seeded_db, "query", failing_query)
    with pytest.raises(StorageError):
        QuotationStore(seeded_db).list_recent()
