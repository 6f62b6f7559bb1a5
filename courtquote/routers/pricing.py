from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from .. import schemas
from ..config import settings
from ..database import get_db
from ..dimensions import COMMON_DIMENSIONS, recommended_dimensions
from ..errors import CatalogEntryMissing
from ..models import Sport, SizeTier
from ..rate_catalog import RateCatalog, RateSnapshot

router = APIRouter(prefix="/pricing", tags=["pricing"])


def _rate_to_dict(rate: RateSnapshot) -> dict:
    return {
        "base_area_rate": float(rate.base_area_rate),
        "tier_multiplier": float(rate.tier_multiplier),
        "add_ons": {
            code: {"label": a.label, "price": float(a.price), "pricing": a.pricing.value}
            for code, a in rate.add_ons.items()
        },
        "version": rate.version,
        "updated_at": rate.updated_at.isoformat() if rate.updated_at else None,
    }


@router.get("/seed")
def seed_rate_catalog(db: Session = Depends(get_db)):
    """Create missing default court sizes and rates. Safe to run multiple times, even concurrently."""
    seeded = RateCatalog(db).ensure_defaults()
    return {"ok": True, "seeded": seeded}


@router.get("/")
def get_pricing(db: Session = Depends(get_db)):
    """Catalog overview for the quotation form: court sizes, dimension hints, rates and add-ons."""
    catalog = RateCatalog(db)
    court_sizes = catalog.list_court_sizes()

    sports = {}
    for sport in Sport:
        area = court_sizes.get(sport.value)
        sports[sport.value] = {
            "standard_area": float(area) if area is not None else None,
            # Advisory only; pricing always uses the resolved area
            "recommended_dimensions": recommended_dimensions(area),
            "common_dimensions": COMMON_DIMENSIONS.get(sport, []),
            "tiers": {},
        }
    for rate in catalog.list_rates():
        if rate.sport in sports:
            sports[rate.sport]["tiers"][rate.size_tier] = _rate_to_dict(rate)

    return {
        "currency": settings.CURRENCY,
        "court_sizes": {
            sport: {"standard": data["standard_area"]} for sport, data in sports.items()
        },
        "sports": sports,
    }


@router.patch("/{sport}/{size_tier}")
def update_rate(
    sport: Sport,
    size_tier: SizeTier,
    update: schemas.RateUpdate,
    db: Session = Depends(get_db),
):
    """Edit one rate entry. Bumps its version; already-issued quotations keep their prices."""
    add_on_prices = None
    if update.add_on_prices is not None:
        add_on_prices = {
            code: price.model_dump(mode="json") for code, price in update.add_on_prices.items()
        }
    try:
        rate = RateCatalog(db).update_rate(
            sport,
            size_tier,
            base_area_rate=update.base_area_rate,
            tier_multiplier=update.tier_multiplier,
            add_on_prices=add_on_prices,
        )
    except CatalogEntryMissing:
        raise HTTPException(status_code=404, detail="Rate entry not found, run /pricing/seed first")
    return {"sport": rate.sport, "size_tier": rate.size_tier, **_rate_to_dict(rate)}
