"""Pydantic schemas for catalog entities, tool inputs and results"""
from datetime import datetime
from typing import Optional, List, Literal, Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


SMOKINESS_LABELS = {
    0: "ei savuinen",
    1: "hennon savuinen",
    2: "savuinen",
    3: "selvästi savuinen",
    4: "voimakkaan savuinen",
}

ORGANIC_GROUP = "Luomu"
VEGAN_GROUP = "Vegaaneille soveltuva tuote"

StockStatus = Literal["in_stock", "low_stock", "out_of_stock"]
SyncKind = Literal["item_sync", "outlet_sync"]
SyncStatus = Literal["started", "completed", "failed"]


class CamelModel(BaseModel):
    """Accepts both snake_case and the camelCase keys used by seed bundles"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EnrichmentData(CamelModel):
    """Fields scraped from an item page"""
    taste_profile: Optional[str] = None
    usage_tips: Optional[str] = None
    serving_suggestion: Optional[str] = None
    food_pairings: List[str] = Field(default_factory=list)
    certificates: List[str] = Field(default_factory=list)
    ingredients: Optional[str] = None
    smokiness: Optional[int] = Field(None, ge=0, le=4)
    smokiness_label: Optional[str] = None

    def is_empty(self) -> bool:
        return not any([
            self.taste_profile,
            self.usage_tips,
            self.serving_suggestion,
            self.food_pairings,
            self.certificates,
            self.ingredients,
            self.smokiness is not None,
        ])


class CatalogItem(CamelModel):
    """One row of the price list, optionally enriched from the item page"""
    id: str = Field(..., min_length=1, description="Alko item number (Numero)")
    name: str = Field(..., min_length=1)
    producer: Optional[str] = None
    ean: Optional[str] = None

    price: float = Field(..., ge=0, description="EUR")
    price_per_liter: Optional[float] = None

    bottle_size: Optional[str] = None
    packaging_type: Optional[str] = None
    closure_type: Optional[str] = None

    type: Optional[str] = None
    subtype: Optional[str] = None
    special_group: Optional[str] = None
    beer_type: Optional[str] = None
    sort_code: Optional[int] = None

    country: Optional[str] = None
    region: Optional[str] = None

    vintage: Optional[int] = None
    grapes: Optional[str] = None
    label_notes: Optional[str] = None

    description: Optional[str] = None
    notes: Optional[str] = None

    # enrichment
    taste_profile: Optional[str] = None
    usage_tips: Optional[str] = None
    serving_suggestion: Optional[str] = None
    food_pairings: Optional[List[str]] = None
    certificates: Optional[List[str]] = None
    ingredients: Optional[str] = None
    smokiness: Optional[int] = Field(None, ge=0, le=4)
    smokiness_label: Optional[str] = None

    alcohol_percentage: float = Field(0.0, ge=0, le=100)
    acids: Optional[float] = None
    sugar: Optional[float] = None
    energy: Optional[float] = None
    original_gravity: Optional[float] = None
    color_ebc: Optional[float] = Field(None, alias="colorEBC")
    bitterness_ebu: Optional[float] = Field(None, alias="bitternessEBU")

    assortment: Optional[str] = None
    is_new: bool = False

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def derive_smokiness_label(self) -> "CatalogItem":
        if self.smokiness is not None and not self.smokiness_label:
            self.smokiness_label = SMOKINESS_LABELS[self.smokiness]
        return self

    def has_enrichment(self) -> bool:
        return any([
            self.taste_profile,
            self.usage_tips,
            self.serving_suggestion,
            self.food_pairings,
            self.certificates,
            self.ingredients,
            self.smokiness is not None,
        ])

    def merge_enrichment(self, data: EnrichmentData) -> "CatalogItem":
        return self.model_copy(update={
            "taste_profile": data.taste_profile,
            "usage_tips": data.usage_tips,
            "serving_suggestion": data.serving_suggestion,
            "food_pairings": list(data.food_pairings),
            "certificates": list(data.certificates),
            "ingredients": data.ingredients,
            "smokiness": data.smokiness,
            "smokiness_label": data.smokiness_label
            or (SMOKINESS_LABELS[data.smokiness] if data.smokiness is not None else None),
        })


class Outlet(CamelModel):
    """An Alko store. Opening hours are only valid on the calendar day of updated_at."""
    id: str = Field(..., min_length=1)
    name: str
    city: str = ""
    address: str = ""
    postal_code: str = ""
    store_link: str = ""
    phone: Optional[str] = None
    email: Optional[str] = None
    opening_hours_today: Optional[str] = None
    opening_hours_tomorrow: Optional[str] = None
    updated_at: Optional[datetime] = None


class AvailabilityRecord(CamelModel):
    id: str
    item_id: str
    outlet_id: str
    outlet_name: str
    outlet_link: str = ""
    quantity: int = Field(0, ge=0)
    status: StockStatus
    last_updated: str = ""
    checked_at: datetime


class AvailabilityResult(CamelModel):
    item_id: str
    item_name: str
    outlets: List[AvailabilityRecord] = Field(default_factory=list)
    checked_at: datetime
    from_cache: bool = False


class SyncRun(CamelModel):
    """Append-only audit record of one sync"""
    id: int
    kind: SyncKind
    status: SyncStatus
    processed: int = 0
    added: int = 0
    updated: int = 0
    errors: List[str] = Field(default_factory=list)
    source_url: Optional[str] = None
    started_at: datetime
    completed_at: Optional[datetime] = None


class SyncResult(CamelModel):
    success: bool
    processed: int = 0
    added: int = 0
    updated: int = 0
    errors: List[str] = Field(default_factory=list)
    sync_run_id: Optional[int] = None


class ExternalRating(CamelModel):
    """A positive rating lookup; never stored for misses"""
    cache_key: str
    wine_name: str
    winery: Optional[str] = None
    average_rating: float = Field(..., ge=0, le=5)
    ratings_count: int = 0
    source_url: str
    fetched_at: datetime


class RatingResult(CamelModel):
    found: bool
    rating: Optional[ExternalRating] = None
    error: Optional[str] = None
    from_cache: bool = False


class SearchFilters(CamelModel):
    """Structured filters plus an optional free text query"""
    query: Optional[str] = Field(None, max_length=200)
    type: Optional[str] = None
    country: Optional[str] = None
    region: Optional[str] = None
    min_price: Optional[float] = Field(None, ge=0)
    max_price: Optional[float] = Field(None, ge=0)
    min_alcohol: Optional[float] = Field(None, ge=0, le=100)
    max_alcohol: Optional[float] = Field(None, ge=0, le=100)
    assortment: Optional[str] = None
    special_group: Optional[str] = None
    beer_type: Optional[str] = None
    is_new: Optional[bool] = None
    is_organic: Optional[bool] = None
    is_vegan: Optional[bool] = None
    min_smokiness: Optional[int] = Field(None, ge=0, le=4)
    max_smokiness: Optional[int] = Field(None, ge=0, le=4)

    @field_validator("query")
    @classmethod
    def strip_query(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    def effective_special_group(self) -> Optional[str]:
        if self.special_group:
            return self.special_group
        if self.is_organic:
            return ORGANIC_GROUP
        if self.is_vegan:
            return VEGAN_GROUP
        return None


class SearchOptions(CamelModel):
    sort_by: Literal["price", "name", "alcohol", "price_per_liter"] = "name"
    sort_order: Literal["asc", "desc"] = "asc"
    limit: int = Field(20, ge=1, le=100)
    offset: int = Field(0, ge=0)

    @field_validator("sort_by", mode="before")
    @classmethod
    def accept_camel_sort_key(cls, v: Any) -> Any:
        return "price_per_liter" if v == "pricePerLiter" else v


class CatalogPage(CamelModel):
    items: List[CatalogItem]
    total: int
    limit: int
    offset: int
    has_more: bool
    from_cache: bool = False


class SeedBundle(CamelModel):
    """Denormalized snapshot of items and outlets used to bootstrap an empty store"""
    exported_at: str
    version: int = 1
    items: List[CatalogItem] = Field(
        default_factory=list, validation_alias=AliasChoices("items", "products")
    )
    outlets: List[Outlet] = Field(
        default_factory=list, validation_alias=AliasChoices("outlets", "stores")
    )


class StoreHours(CamelModel):
    id: str
    name: str
    city: str
    address: str
    opening_hours_today: Optional[str] = None
    opening_hours_tomorrow: Optional[str] = None
    is_open_now: bool = False


class StoreHoursResult(CamelModel):
    outlets: List[StoreHours]
    current_time: str
    data_as_of: Optional[str] = None
    refreshed: bool = False
    refresh_error: Optional[str] = None


class PriceRange(CamelModel):
    min: Optional[float] = Field(None, ge=0)
    max: Optional[float] = Field(None, ge=0)


class RecommendationRequest(CamelModel):
    preferred_types: Optional[List[str]] = None
    price_range: Optional[PriceRange] = None
    occasion: Optional[str] = Field(None, max_length=100)
    food_pairing: Optional[str] = Field(None, max_length=100)
    prefer_organic: bool = False
    prefer_vegan: bool = False
    country: Optional[str] = None
    limit: int = Field(5, ge=1, le=20)


class RecommendationResult(CamelModel):
    recommendations: List[CatalogItem]
    reasoning: str
    food_symbol: Optional[str] = None
    available_food_symbols: Optional[List[str]] = None


class RatingRequest(CamelModel):
    name: Optional[str] = Field(None, max_length=300)
    producer: Optional[str] = Field(None, max_length=300)
    url: Optional[str] = Field(None, max_length=2048)

    @model_validator(mode="after")
    def require_name_or_url(self) -> "RatingRequest":
        if not self.name and not self.url:
            raise ValueError("either name or url is required")
        if self.url and not self.url.startswith(("http://", "https://")):
            raise ValueError("url must start with http:// or https://")
        return self


class SyncStatusResponse(CamelModel):
    last_sync: Optional[datetime] = None
    last_status: Optional[str] = None
    item_count: int = 0


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str


class SearchRequest(CamelModel):
    filters: SearchFilters = Field(default_factory=SearchFilters)
    options: SearchOptions = Field(default_factory=SearchOptions)


class ErrorResponse(CamelModel):
    error_code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)
