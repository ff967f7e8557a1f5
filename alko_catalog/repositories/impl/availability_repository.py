"""Availability repository - durable tier for scraped stock levels"""
from typing import Iterable, List

from sqlalchemy.orm import Session

from alko_catalog.core.logging import logger
from alko_catalog.core.exceptions import DatabaseException
from alko_catalog.repositories.models import StockLevelRow
from alko_catalog.schemas.catalog_schema import AvailabilityRecord

_FIELDS = [c.name for c in StockLevelRow.__table__.columns]


class AvailabilityRepository:
    def __init__(self, db: Session):
        self.db = db

    def list_for_item(self, item_id: str) -> List[AvailabilityRecord]:
        rows = (
            self.db.query(StockLevelRow)
            .filter(StockLevelRow.item_id == item_id)
            .order_by(StockLevelRow.outlet_name)
            .all()
        )
        return [AvailabilityRecord.model_validate({f: getattr(r, f) for f in _FIELDS}) for r in rows]

    def upsert_many(self, records: Iterable[AvailabilityRecord]) -> int:
        """Overwrite records by composite id; nothing is ever deleted"""
        written = 0
        try:
            for record in records:
                values = record.model_dump()
                row = self.db.get(StockLevelRow, record.id)
                if row is None:
                    self.db.add(StockLevelRow(**values))
                else:
                    for key, value in values.items():
                        setattr(row, key, value)
                written += 1
            self.db.commit()
            return written
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to upsert availability: {e}")
            raise DatabaseException(f"Failed to upsert availability: {e}")
