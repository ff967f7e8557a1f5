"""External rating repository - durable positive-result cache (no expiry)."""

from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from alko_catalog.core.logging import logger
from alko_catalog.core.exceptions import DatabaseException
from alko_catalog.repositories.models import ExternalRatingRow
from alko_catalog.schemas.catalog_schema import ExternalRating

_FIELDS = [c.name for c in ExternalRatingRow.__table__.columns]


class RatingRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, cache_key: str) -> Optional[ExternalRating]:
        if not cache_key:
            return None
        row = self.db.get(ExternalRatingRow, cache_key)
        if row is None:
            return None
        return ExternalRating.model_validate({f: getattr(row, f) for f in _FIELDS})

    def upsert(self, rating: ExternalRating) -> None:
        try:
            values = rating.model_dump()
            row = self.db.get(ExternalRatingRow, rating.cache_key)
            if row is None:
                self.db.add(ExternalRatingRow(**values))
            else:
                for key, value in values.items():
                    setattr(row, key, value)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Rating cache write error: {type(e).__name__}: {e}")
            raise DatabaseException(f"Failed to write rating cache: {e}")
