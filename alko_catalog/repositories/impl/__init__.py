"""Repositories implementation package."""

from .item_repository import ItemRepository
from .outlet_repository import OutletRepository
from .availability_repository import AvailabilityRepository
from .sync_run_repository import SyncRunRepository
from .rating_repository import RatingRepository

__all__ = [
    "ItemRepository",
    "OutletRepository",
    "AvailabilityRepository",
    "SyncRunRepository",
    "RatingRepository",
]
