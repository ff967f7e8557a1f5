"""Catalog item repository - store access for price list items"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, List

from sqlalchemy import asc, desc, func
from sqlalchemy.orm import Session

from alko_catalog.core.logging import logger
from alko_catalog.core.exceptions import BatchWriteFailure, DatabaseException
from alko_catalog.repositories.models import CatalogItemRow
from alko_catalog.schemas.catalog_schema import (
    SMOKINESS_LABELS,
    CatalogItem,
    EnrichmentData,
    SearchFilters,
)

# store-imposed ceiling on writes per commit
BATCH_SIZE = 500

SORT_COLUMNS = {
    "price": CatalogItemRow.price,
    "name": CatalogItemRow.name,
    "alcohol": CatalogItemRow.alcohol_percentage,
    "price_per_liter": CatalogItemRow.price_per_liter,
}

_TIMESTAMPS = {"created_at", "updated_at"}


def row_to_item(row: CatalogItemRow) -> CatalogItem:
    data = {c.name: getattr(row, c.name) for c in CatalogItemRow.__table__.columns}
    return CatalogItem.model_validate(data)


class ItemRepository:
    """Catalog item data access layer"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, item_id: str) -> Optional[CatalogItem]:
        row = self.db.get(CatalogItemRow, item_id)
        return row_to_item(row) if row else None

    def get_many(self, item_ids: List[str]) -> List[CatalogItem]:
        """Items for the given ids, in the given order, unknown ids skipped"""
        if not item_ids:
            return []
        rows = self.db.query(CatalogItemRow).filter(CatalogItemRow.id.in_(item_ids)).all()
        by_id = {row.id: row for row in rows}
        return [row_to_item(by_id[i]) for i in item_ids if i in by_id]

    def count(self) -> int:
        return self.db.query(func.count(CatalogItemRow.id)).scalar() or 0

    def list_all(self) -> List[CatalogItem]:
        rows = self.db.query(CatalogItemRow).order_by(CatalogItemRow.id).all()
        return [row_to_item(r) for r in rows]

    def find(
        self,
        filters: SearchFilters,
        sort_by: str = "name",
        sort_order: str = "asc",
        limit: int = 21,
    ) -> List[CatalogItem]:
        """Equality/range filtered, ordered scan. Free text is not handled here."""
        query = self.db.query(CatalogItemRow)

        if filters.type:
            query = query.filter(CatalogItemRow.type == filters.type)
        if filters.country:
            query = query.filter(CatalogItemRow.country == filters.country)
        if filters.region:
            query = query.filter(CatalogItemRow.region == filters.region)
        if filters.assortment:
            query = query.filter(CatalogItemRow.assortment == filters.assortment)
        special_group = filters.effective_special_group()
        if special_group:
            query = query.filter(CatalogItemRow.special_group == special_group)
        if filters.beer_type:
            query = query.filter(CatalogItemRow.beer_type == filters.beer_type)
        if filters.is_new is not None:
            query = query.filter(CatalogItemRow.is_new == filters.is_new)
        if filters.min_price is not None:
            query = query.filter(CatalogItemRow.price >= filters.min_price)
        if filters.max_price is not None:
            query = query.filter(CatalogItemRow.price <= filters.max_price)
        if filters.min_alcohol is not None:
            query = query.filter(CatalogItemRow.alcohol_percentage >= filters.min_alcohol)
        if filters.max_alcohol is not None:
            query = query.filter(CatalogItemRow.alcohol_percentage <= filters.max_alcohol)

        column = SORT_COLUMNS.get(sort_by, CatalogItemRow.name)
        direction = desc if sort_order == "desc" else asc
        query = query.order_by(direction(column), CatalogItemRow.id).limit(max(1, int(limit)))

        return [row_to_item(r) for r in query.all()]

    def upsert_many(self, items: Iterable[CatalogItem], now: Optional[datetime] = None) -> tuple[int, int]:
        """Insert or rewrite items in batches of at most BATCH_SIZE.

        Existing rows keep created_at and always count as updated, even when
        nothing differs. Returns (added, updated).
        """
        items = list(items)
        now = now or datetime.now()
        added = 0
        updated = 0

        for batch_index, start in enumerate(range(0, len(items), BATCH_SIZE)):
            chunk = items[start:start + BATCH_SIZE]
            ids = [item.id for item in chunk]
            batch_added = 0
            batch_updated = 0
            try:
                existing = {
                    row.id: row
                    for row in self.db.query(CatalogItemRow).filter(CatalogItemRow.id.in_(ids)).all()
                }
                for item in chunk:
                    values = item.model_dump(exclude=_TIMESTAMPS)
                    row = existing.get(item.id)
                    if row is not None:
                        for key, value in values.items():
                            setattr(row, key, value)
                        row.updated_at = now
                        batch_updated += 1
                    else:
                        row = CatalogItemRow(**values, created_at=now, updated_at=now)
                        self.db.add(row)
                        existing[item.id] = row
                        batch_added += 1
                self.db.commit()
            except Exception as e:
                self.db.rollback()
                logger.error(f"[Store] Item batch {batch_index} failed: {type(e).__name__}: {e}")
                raise BatchWriteFailure(
                    "catalog_items",
                    batch_index,
                    str(e),
                    details={"added": added, "updated": updated, "batch_index": batch_index},
                )
            added += batch_added
            updated += batch_updated
            logger.debug(f"[Store] Item batch {batch_index}: +{batch_added} ~{batch_updated}")

        return added, updated

    def update_enrichment(self, item_id: str, data: EnrichmentData, now: Optional[datetime] = None) -> None:
        try:
            row = self.db.get(CatalogItemRow, item_id)
            if row is None:
                return
            for key, value in data.model_dump().items():
                setattr(row, key, value)
            if row.smokiness is not None and not row.smokiness_label:
                row.smokiness_label = SMOKINESS_LABELS.get(row.smokiness)
            row.updated_at = now or datetime.now()
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to persist enrichment for {item_id}: {e}")
            raise DatabaseException(f"Failed to persist enrichment for {item_id}: {e}")
