"""
Quotation Record store: write-once persistence of computed quotations.

Reads return exactly what was stored at creation. Nothing here looks at the
rate catalog, which is what keeps issued quotations stable when rates change.
"""

import logging
import uuid
from typing import List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .errors import NotFoundError, StorageError

logger = logging.getLogger(__name__)


class QuotationStore:

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        *,
        court_specification: dict,
        resolved_area,
        line_items,
        total,
        rates,
        currency: str,
    ) -> models.Quotation:
        """
        Persist a quotation and its line items in one transaction.

        Args:
            court_specification: the request as submitted (JSON-safe dict)
            resolved_area: Decimal area that was priced
            line_items: ordered priced lines (code, label, pricing, unit_rate, quantity, subtotal)
            total: Decimal sum of line subtotals
            rates: RateSnapshot the lines were priced with
            currency: display currency code

        Raises:
            StorageError: the write did not commit; nothing was saved
        """
        quotation = models.Quotation(
            id=str(uuid.uuid4()),
            sport=rates.sport,
            size_tier=rates.size_tier,
            court_specification=court_specification,
            resolved_area=resolved_area,
            total=total,
            currency=currency,
            rates_snapshot_version=rates.version,
            rates_snapshot=rates.to_dict(),
        )
        for position, line in enumerate(line_items):
            quotation.line_items.append(models.QuotationLineItem(
                position=position,
                code=line.code,
                label=line.label,
                pricing=line.pricing,
                unit_rate=line.unit_rate,
                quantity=line.quantity,
                subtotal=line.subtotal,
            ))

        self.db.add(quotation)
        try:
            self.db.commit()
            self.db.refresh(quotation)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Failed to persist quotation %s", quotation.id)
            raise StorageError("Quotation could not be saved, please retry") from e

        logger.info(
            "Created quotation %s: %s/%s area=%s total=%s (rates v%d)",
            quotation.id, quotation.sport, quotation.size_tier,
            quotation.resolved_area, quotation.total, quotation.rates_snapshot_version,
        )
        return quotation

    def get_by_id(self, quotation_id: str) -> models.Quotation:
        try:
            quotation = self.db.query(models.Quotation).filter(
                models.Quotation.id == quotation_id
            ).first()
        except SQLAlchemyError as e:
            raise StorageError(f"Quotation lookup failed: {e}") from e
        if quotation is None:
            raise NotFoundError(f"Quotation {quotation_id} not found")
        return quotation

    def list_recent(self, skip: int = 0, limit: int = 50) -> List[models.Quotation]:
        try:
            return self.db.query(models.Quotation).order_by(
                models.Quotation.created_at.desc()
            ).offset(skip).limit(limit).all()
        except SQLAlchemyError as e:
            raise StorageError(f"Quotation listing failed: {e}") from e
