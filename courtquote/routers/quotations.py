from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
from .. import schemas
from ..database import get_db
from ..errors import NotFoundError
from ..quotation_engine import QuotationEngine
from ..quotation_store import QuotationStore
from ..rate_catalog import RateCatalog

router = APIRouter(prefix="/quotations", tags=["quotations"])


def get_engine(db: Session = Depends(get_db)) -> QuotationEngine:
    return QuotationEngine(RateCatalog(db), QuotationStore(db))


@router.post("/", response_model=schemas.Quotation, status_code=201)
def create_quotation(
    request: schemas.ComputeQuotationRequest,
    engine: QuotationEngine = Depends(get_engine),
):
    """Price a court request and issue a quotation. The stored copy never changes."""
    return engine.compute(request)


@router.post("/preview", response_model=schemas.QuotationPreview)
def preview_quotation(
    request: schemas.ComputeQuotationRequest,
    engine: QuotationEngine = Depends(get_engine),
):
    """Same pricing as create, nothing saved. Used by the form to show a running total."""
    quote = engine.price(request)
    return {
        "sport": quote.rates.sport,
        "size_tier": quote.rates.size_tier,
        "resolved_area": quote.dimensions.area,
        "line_items": [
            {
                "position": position,
                "code": line.code,
                "label": line.label,
                "pricing": line.pricing,
                "unit_rate": line.unit_rate,
                "quantity": line.quantity,
                "subtotal": line.subtotal,
            }
            for position, line in enumerate(quote.line_items)
        ],
        "total": quote.total,
        "currency": engine.currency,
        "rates_snapshot_version": quote.rates.version,
    }


@router.get("/", response_model=List[schemas.Quotation])
def list_quotations(skip: int = 0, limit: int = 50, db: Session = Depends(get_db)):
    return QuotationStore(db).list_recent(skip=skip, limit=limit)


@router.get("/{quotation_id}", response_model=schemas.Quotation)
def get_quotation(quotation_id: str, db: Session = Depends(get_db)):
    """Return the quotation exactly as issued. Never re-priced."""
    try:
        return QuotationStore(db).get_by_id(quotation_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Quotation not found")
