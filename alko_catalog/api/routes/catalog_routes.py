"""Catalog routes - thin translators over CatalogService"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from alko_catalog.api.routes.dependencies import get_catalog
from alko_catalog.core.logging import logger, sanitize_for_log
from alko_catalog.schemas.catalog_schema import (
    AvailabilityResult,
    CatalogItem,
    CatalogPage,
    Outlet,
    RatingRequest,
    RatingResult,
    RecommendationRequest,
    RecommendationResult,
    SearchRequest,
    StoreHoursResult,
    SyncResult,
    SyncStatusResponse,
)
from alko_catalog.services.impl.catalog_service import CatalogService

router = APIRouter(prefix="/api/v1", tags=["catalog"])


@router.post("/search", response_model=CatalogPage)
async def search_catalog(request: SearchRequest, catalog: CatalogService = Depends(get_catalog)):
    """Filtered and free-text catalog search"""
    logger.info(f"[API] Search query={sanitize_for_log(request.filters.query)}")
    return await catalog.search_catalog(request.filters, request.options)


@router.get("/items/{item_id}", response_model=CatalogItem)
async def get_item(
    item_id: str,
    include_enrichment: bool = Query(False, alias="includeEnrichment"),
    catalog: CatalogService = Depends(get_catalog),
):
    item = await catalog.get_item(item_id, include_enrichment=include_enrichment)
    if item is None:
        raise HTTPException(status_code=404, detail=f"Item {item_id} not found")
    return item


@router.get("/items/{item_id}/availability", response_model=AvailabilityResult)
async def get_availability(
    item_id: str,
    city: Optional[str] = None,
    force_refresh: bool = Query(False, alias="forceRefresh"),
    catalog: CatalogService = Depends(get_catalog),
):
    result = await catalog.get_or_scrape_availability(item_id, force_refresh=force_refresh, city=city)
    if result is None:
        raise HTTPException(status_code=404, detail=f"No availability data for item {item_id}")
    return result


@router.get("/outlets", response_model=List[Outlet])
async def list_outlets(
    city: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    catalog: CatalogService = Depends(get_catalog),
):
    return await catalog.list_outlets(city=city, limit=limit)


@router.get("/outlets/hours", response_model=StoreHoursResult)
async def get_store_hours(
    outlet_id: Optional[str] = Query(None, alias="outletId"),
    name: Optional[str] = None,
    city: Optional[str] = None,
    open_now: bool = Query(False, alias="openNow"),
    limit: int = Query(20, ge=1, le=100),
    catalog: CatalogService = Depends(get_catalog),
):
    return await catalog.get_store_hours(
        outlet_id=outlet_id, name=name, city=city, open_now=open_now, limit=limit
    )


@router.post("/recommendations", response_model=RecommendationResult)
async def get_recommendations(request: RecommendationRequest, catalog: CatalogService = Depends(get_catalog)):
    return await catalog.get_recommendations(request)


@router.post("/ratings", response_model=RatingResult)
async def get_external_rating(request: RatingRequest, catalog: CatalogService = Depends(get_catalog)):
    """Vivino rating by wine name (+ producer) or by direct wine page URL"""
    return await catalog.get_external_rating(name=request.name, producer=request.producer, url=request.url)


@router.post("/sync/items", response_model=SyncResult)
async def sync_items(catalog: CatalogService = Depends(get_catalog)):
    return await catalog.sync_items()


@router.post("/sync/outlets", response_model=SyncResult)
async def sync_outlets(catalog: CatalogService = Depends(get_catalog)):
    return await catalog.sync_outlets()


@router.get("/sync/status", response_model=SyncStatusResponse)
async def sync_status(catalog: CatalogService = Depends(get_catalog)):
    return catalog.get_sync_status()
