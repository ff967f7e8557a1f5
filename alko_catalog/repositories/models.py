"""Database models"""
from sqlalchemy import Boolean, Column, DateTime, Float, Index, Integer, JSON, String, Text

from alko_catalog.core.database import Base


class CatalogItemRow(Base):
    """Price list item, with optional scraped enrichment"""

    __tablename__ = "catalog_items"

    id = Column(String(32), primary_key=True)
    name = Column(String(255), nullable=False, index=True)
    producer = Column(String(255), nullable=True)
    ean = Column(String(32), nullable=True)

    price = Column(Float, nullable=False, index=True)
    price_per_liter = Column(Float, nullable=True)

    bottle_size = Column(String(32), nullable=True)
    packaging_type = Column(String(64), nullable=True)
    closure_type = Column(String(64), nullable=True)

    type = Column(String(128), nullable=True, index=True)
    subtype = Column(String(128), nullable=True)
    special_group = Column(String(128), nullable=True, index=True)
    beer_type = Column(String(64), nullable=True)
    sort_code = Column(Integer, nullable=True)

    country = Column(String(128), nullable=True, index=True)
    region = Column(String(128), nullable=True)

    vintage = Column(Integer, nullable=True)
    grapes = Column(Text, nullable=True)
    label_notes = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    taste_profile = Column(Text, nullable=True)
    usage_tips = Column(Text, nullable=True)
    serving_suggestion = Column(Text, nullable=True)
    food_pairings = Column(JSON, nullable=True)
    certificates = Column(JSON, nullable=True)
    ingredients = Column(Text, nullable=True)
    smokiness = Column(Integer, nullable=True)
    smokiness_label = Column(String(64), nullable=True)

    alcohol_percentage = Column(Float, nullable=False, default=0.0, index=True)
    acids = Column(Float, nullable=True)
    sugar = Column(Float, nullable=True)
    energy = Column(Float, nullable=True)
    original_gravity = Column(Float, nullable=True)
    color_ebc = Column(Float, nullable=True)
    bitterness_ebu = Column(Float, nullable=True)

    assortment = Column(String(64), nullable=True, index=True)
    is_new = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False, index=True)

    __table_args__ = (
        Index("idx_items_type_price", "type", "price"),
    )

    def __repr__(self) -> str:
        return f"<CatalogItemRow(id={self.id}, name={self.name})>"


class OutletRow(Base):
    """Store; opening hours are scoped to the day of updated_at"""

    __tablename__ = "outlets"

    id = Column(String(32), primary_key=True)
    name = Column(String(255), nullable=False)
    city = Column(String(128), nullable=False, default="", index=True)
    address = Column(String(255), nullable=False, default="")
    postal_code = Column(String(16), nullable=False, default="")
    store_link = Column(String(512), nullable=False, default="")
    phone = Column(String(64), nullable=True)
    email = Column(String(128), nullable=True)
    opening_hours_today = Column(String(32), nullable=True)
    opening_hours_tomorrow = Column(String(32), nullable=True)
    updated_at = Column(DateTime, nullable=False)

    def __repr__(self) -> str:
        return f"<OutletRow(id={self.id}, name={self.name})>"


class StockLevelRow(Base):
    """Last scraped stock of one item in one outlet (id = "{item}_{outlet}")"""

    __tablename__ = "availability"

    id = Column(String(80), primary_key=True)
    item_id = Column(String(32), nullable=False, index=True)
    outlet_id = Column(String(64), nullable=False)
    outlet_name = Column(String(255), nullable=False)
    outlet_link = Column(String(512), nullable=False, default="")
    quantity = Column(Integer, nullable=False, default=0)
    status = Column(String(16), nullable=False)
    last_updated = Column(String(32), nullable=False, default="")
    checked_at = Column(DateTime, nullable=False)

    def __repr__(self) -> str:
        return f"<StockLevelRow(id={self.id}, quantity={self.quantity})>"


class SyncRunRow(Base):
    """Sync audit trail"""

    __tablename__ = "sync_runs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    kind = Column(String(16), nullable=False, index=True)
    status = Column(String(16), nullable=False)
    processed = Column(Integer, nullable=False, default=0)
    added = Column(Integer, nullable=False, default=0)
    updated = Column(Integer, nullable=False, default=0)
    errors = Column(JSON, nullable=False, default=list)
    source_url = Column(String(1024), nullable=True)
    started_at = Column(DateTime, nullable=False, index=True)
    completed_at = Column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<SyncRunRow(id={self.id}, kind={self.kind}, status={self.status})>"


class ExternalRatingRow(Base):
    """Durable positive-result cache for external wine ratings"""

    __tablename__ = "external_ratings"

    cache_key = Column(String(600), primary_key=True)
    wine_name = Column(String(255), nullable=False)
    winery = Column(String(255), nullable=True)
    average_rating = Column(Float, nullable=False)
    ratings_count = Column(Integer, nullable=False, default=0)
    source_url = Column(String(1024), nullable=False)
    fetched_at = Column(DateTime, nullable=False)

    def __repr__(self) -> str:
        return f"<ExternalRatingRow(key={self.cache_key}, rating={self.average_rating})>"
