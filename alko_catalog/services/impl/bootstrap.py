"""Seed bundle bootstrap for an empty store.

DataBootstrapper is single-flight: concurrent ensure_data() callers share one
in-flight load. A finished attempt, failed or not, is not repeated for the
lifetime of the bootstrapper.
"""
import asyncio
import json
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from pydantic import ValidationError
from sqlalchemy.orm import sessionmaker

from alko_catalog.core.config import Settings, settings as default_settings
from alko_catalog.core.database import session_scope
from alko_catalog.core.exceptions import CatalogException
from alko_catalog.core.logging import logger
from alko_catalog.repositories.impl.item_repository import ItemRepository
from alko_catalog.repositories.impl.outlet_repository import OutletRepository
from alko_catalog.schemas.catalog_schema import SeedBundle

SEED_BUNDLE_VERSION = 1


class BootstrapState(str, Enum):
    NOT_CHECKED = "not_checked"
    LOADING = "loading"
    CHECKED = "checked"


def load_seed_bundle(path: Path) -> Optional[SeedBundle]:
    """Bundle from disk; None when the file is absent"""
    if not path.exists():
        logger.debug(f"[Bootstrap] No seed bundle at {path}")
        return None
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        return SeedBundle.model_validate(raw)
    except (OSError, ValueError, ValidationError) as e:
        raise CatalogException(f"Invalid seed bundle {path}: {e}", "SEED_BUNDLE_INVALID") from e


class DataBootstrapper:
    def __init__(
        self,
        session_factory: sessionmaker,
        settings: Optional[Settings] = None,
        *,
        seed_path: Optional[Path] = None,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.settings = settings or default_settings
        self.session_factory = session_factory
        self.seed_path = Path(seed_path or self.settings.seed_data_path)
        self._now = now
        self._lock = asyncio.Lock()
        self._state = BootstrapState.NOT_CHECKED
        self._task: Optional[asyncio.Task] = None
        self.load_count = 0

    @property
    def state(self) -> BootstrapState:
        return self._state

    async def ensure_data(self) -> None:
        if self._state == BootstrapState.CHECKED:
            return

        async with self._lock:
            if self._state == BootstrapState.CHECKED:
                return
            if self._task is None:
                self._state = BootstrapState.LOADING
                self._task = asyncio.ensure_future(self._load())
            task = self._task

        await asyncio.shield(task)

    async def _load(self) -> None:
        try:
            with session_scope(self.session_factory) as db:
                item_count = ItemRepository(db).count()
            if item_count > 0:
                logger.debug(f"[Bootstrap] Store already has {item_count} items")
                return

            logger.info("[Bootstrap] Store is empty, loading seed bundle")
            bundle = load_seed_bundle(self.seed_path)
            if bundle is None:
                logger.warning("[Bootstrap] No seed bundle available. Run 'alko-catalog sync-items' to populate.")
                return
            if not bundle.items and not bundle.outlets:
                logger.warning("[Bootstrap] Seed bundle is empty. Run 'alko-catalog export-seed' to refresh it.")
                return

            self.load_count += 1
            now = self._now()
            with session_scope(self.session_factory) as db:
                if bundle.items:
                    added, _ = ItemRepository(db).upsert_many(bundle.items, now=now)
                    logger.info(f"[Bootstrap] Loaded {added} seed items")
                if bundle.outlets:
                    written = OutletRepository(db).upsert_many(bundle.outlets, now=now)
                    logger.info(f"[Bootstrap] Loaded {written} seed outlets")
            logger.info(f"[Bootstrap] Seed bundle v{bundle.version} loaded (exported {bundle.exported_at})")
        except Exception as e:
            logger.error(f"[Bootstrap] Failed to ensure data: {type(e).__name__}: {e}")
            raise
        finally:
            self._state = BootstrapState.CHECKED
            self._task = None


def export_seed_bundle(session_factory: sessionmaker, path: Path, now: Optional[datetime] = None) -> SeedBundle:
    """Write every item and outlet to a seed bundle file"""
    with session_scope(session_factory) as db:
        items = ItemRepository(db).list_all()
        outlets = OutletRepository(db).list_all()

    bundle = SeedBundle(
        exported_at=(now or datetime.now()).isoformat(),
        version=SEED_BUNDLE_VERSION,
        items=items,
        outlets=outlets,
    )
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = bundle.model_dump(mode="json", by_alias=True, exclude={
        "items": {"__all__": {"created_at", "updated_at"}},
        "outlets": {"__all__": {"updated_at"}},
    })
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    logger.info(f"[Bootstrap] Exported {len(items)} items and {len(outlets)} outlets to {path}")
    return bundle
