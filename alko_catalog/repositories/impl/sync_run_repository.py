"""Sync run repository - append-only audit trail"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from alko_catalog.core.logging import logger
from alko_catalog.core.exceptions import DatabaseException
from alko_catalog.repositories.models import SyncRunRow
from alko_catalog.schemas.catalog_schema import SyncRun

_FIELDS = [c.name for c in SyncRunRow.__table__.columns]


def row_to_run(row: SyncRunRow) -> SyncRun:
    return SyncRun.model_validate({f: getattr(row, f) for f in _FIELDS})


class SyncRunRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, kind: str, source_url: Optional[str] = None) -> int:
        """Open a run in the 'started' state and return its id"""
        try:
            row = SyncRunRow(
                kind=kind,
                status="started",
                errors=[],
                source_url=source_url,
                started_at=datetime.now(),
            )
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
            logger.info(f"[Sync] Run {row.id} started ({kind})")
            return row.id
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create sync run: {e}")
            raise DatabaseException(f"Failed to create sync run: {e}")

    def seal(
        self,
        run_id: int,
        status: str,
        processed: int = 0,
        added: int = 0,
        updated: int = 0,
        errors: Optional[List[str]] = None,
    ) -> None:
        """Close a run as completed or failed"""
        try:
            row = self.db.get(SyncRunRow, run_id)
            if row is None:
                raise DatabaseException(f"Sync run {run_id} not found", "DB_NOT_FOUND")
            row.status = status
            row.processed = processed
            row.added = added
            row.updated = updated
            row.errors = list(errors or [])
            row.completed_at = datetime.now()
            self.db.commit()
        except DatabaseException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to seal sync run {run_id}: {e}")
            raise DatabaseException(f"Failed to seal sync run {run_id}: {e}")

    def get(self, run_id: int) -> Optional[SyncRun]:
        row = self.db.get(SyncRunRow, run_id)
        return row_to_run(row) if row else None

    def latest(self, kind: Optional[str] = None) -> Optional[SyncRun]:
        query = self.db.query(SyncRunRow)
        if kind:
            query = query.filter(SyncRunRow.kind == kind)
        row = query.order_by(desc(SyncRunRow.started_at), desc(SyncRunRow.id)).first()
        return row_to_run(row) if row else None
