"""Outlet repository"""
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from alko_catalog.core.logging import logger
from alko_catalog.core.exceptions import DatabaseException
from alko_catalog.repositories.models import OutletRow
from alko_catalog.schemas.catalog_schema import Outlet

_FIELDS = [c.name for c in OutletRow.__table__.columns]


def row_to_outlet(row: OutletRow) -> Outlet:
    return Outlet.model_validate({name: getattr(row, name) for name in _FIELDS})


class OutletRepository:
    """Outlet data access layer"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, outlet_id: str) -> Optional[Outlet]:
        row = self.db.get(OutletRow, outlet_id)
        return row_to_outlet(row) if row else None

    def count(self) -> int:
        return self.db.query(func.count(OutletRow.id)).scalar() or 0

    def list(self, city: Optional[str] = None, limit: int = 200) -> List[Outlet]:
        """Outlets, optionally restricted to a city (case-insensitive)"""
        query = self.db.query(OutletRow)
        if city:
            query = query.filter(func.lower(OutletRow.city) == city.strip().lower())
        rows = query.order_by(OutletRow.name).limit(max(1, int(limit))).all()
        return [row_to_outlet(r) for r in rows]

    def list_all(self) -> List[Outlet]:
        return [row_to_outlet(r) for r in self.db.query(OutletRow).order_by(OutletRow.id).all()]

    def upsert_many(self, outlets: Iterable[Outlet], now: Optional[datetime] = None) -> int:
        """Unconditional upsert; updated_at is always refreshed. Returns the number written."""
        now = now or datetime.now()
        written = 0
        try:
            for outlet in outlets:
                values = outlet.model_dump(exclude={"updated_at"})
                row = self.db.get(OutletRow, outlet.id)
                if row is None:
                    row = OutletRow(**values, updated_at=now)
                    self.db.add(row)
                else:
                    for key, value in values.items():
                        setattr(row, key, value)
                    row.updated_at = now
                written += 1
            self.db.commit()
            return written
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to upsert outlets: {e}")
            raise DatabaseException(f"Failed to upsert outlets: {e}")
