"""Recommendations: food pairing symbols first, occasion-driven store search otherwise."""
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.orm import sessionmaker

from alko_catalog.core.database import session_scope
from alko_catalog.core.exceptions import CatalogException
from alko_catalog.core.logging import logger
from alko_catalog.crawlers.alko.scraper import AlkoScraper
from alko_catalog.repositories.impl.item_repository import ItemRepository
from alko_catalog.schemas.catalog_schema import (
    ORGANIC_GROUP,
    VEGAN_GROUP,
    CatalogItem,
    RecommendationRequest,
    RecommendationResult,
    SearchFilters,
    SearchOptions,
)
from alko_catalog.services.impl.search_service import SearchService
from alko_catalog.utils.resource_loader import load_food_symbols, load_occasions

STANDARD_ASSORTMENT = "vakiovalikoima"


@dataclass
class FoodSymbol:
    name: str
    symbol_id: str
    english_names: List[str] = field(default_factory=list)


def food_symbols() -> List[FoodSymbol]:
    return [FoodSymbol(**entry) for entry in load_food_symbols()]


def find_food_symbol(query: Optional[str]) -> Optional[FoodSymbol]:
    """Exact Finnish name, then partial Finnish, then English synonyms (substring both ways)"""
    q = (query or "").lower().strip()
    if not q:
        return None
    symbols = food_symbols()

    for symbol in symbols:
        if symbol.name.lower() == q:
            return symbol
    for symbol in symbols:
        name = symbol.name.lower()
        if q in name or name in q:
            return symbol
    for symbol in symbols:
        for english in symbol.english_names:
            if english in q or q in english:
                return symbol
    return None


def _price_text(request: RecommendationRequest) -> str:
    price = request.price_range
    low = price.min if price and price.min else 0
    high = price.max if price and price.max else "∞"
    return f"€{low}-{high}"


def _passes(item: CatalogItem, request: RecommendationRequest) -> bool:
    if request.preferred_types and item.type not in request.preferred_types:
        return False
    if request.country and item.country != request.country:
        return False
    if request.price_range:
        if request.price_range.min and item.price < request.price_range.min:
            return False
        if request.price_range.max and item.price > request.price_range.max:
            return False
    if request.prefer_organic and item.special_group != ORGANIC_GROUP:
        return False
    if request.prefer_vegan and "Vegaaneille" not in (item.special_group or ""):
        return False
    return True


def quality_score(item: CatalogItem, request: RecommendationRequest) -> int:
    score = 0
    if item.description:
        score += 2
    if item.is_new:
        score += 1
    if item.assortment == STANDARD_ASSORTMENT:
        score += 1
    if request.prefer_organic and item.special_group == ORGANIC_GROUP:
        score += 3
    if request.prefer_vegan and "Vegaaneille" in (item.special_group or ""):
        score += 3
    return score


class RecommendationService:
    def __init__(self, session_factory: sessionmaker, search_service: SearchService, scraper: Optional[AlkoScraper] = None):
        self.session_factory = session_factory
        self.search_service = search_service
        self.scraper = scraper

    async def recommend(self, request: RecommendationRequest) -> RecommendationResult:
        if request.food_pairing:
            symbol = find_food_symbol(request.food_pairing)
            if symbol is None:
                logger.info(f"[Recommend] No food symbol for '{request.food_pairing}'")
                return RecommendationResult(
                    recommendations=[],
                    reasoning=(
                        f'No matching food pairing found for "{request.food_pairing}". '
                        "Try one of the available food categories."
                    ),
                    available_food_symbols=[s.name for s in food_symbols()],
                )
            result = await self._by_food_symbol(symbol, request)
            if result is not None:
                return result
        return self._by_occasion(request)

    async def _by_food_symbol(self, symbol: FoodSymbol, request: RecommendationRequest) -> Optional[RecommendationResult]:
        if self.scraper is None:
            return None
        logger.info(f"[Recommend] '{request.food_pairing}' -> {symbol.name}")
        try:
            item_ids = await self.scraper.search_by_tag(symbol.symbol_id, request.limit * 3)
        except CatalogException as e:
            logger.error(f"[Recommend] Food symbol search failed, using store search: {e}")
            return None
        if not item_ids:
            return None

        with session_scope(self.session_factory) as db:
            candidates = ItemRepository(db).get_many(item_ids)
        picked = [item for item in candidates if _passes(item, request)][:request.limit]

        parts = [f"pairs with {symbol.name}"]
        if request.preferred_types:
            parts.append(f"type: {', '.join(request.preferred_types)}")
        if request.country:
            parts.append(f"from {request.country}")
        if request.price_range:
            parts.append(_price_text(request))
        if request.prefer_organic:
            parts.append("organic")
        if request.prefer_vegan:
            parts.append("vegan")
        return RecommendationResult(
            recommendations=picked,
            reasoning=f"Products that {', '.join(parts)} (from Alko's official food pairing data).",
            food_symbol=symbol.name,
        )

    def _by_occasion(self, request: RecommendationRequest) -> RecommendationResult:
        types = list(request.preferred_types or [])
        multiplier = 1.0
        if request.occasion:
            occasion = request.occasion.lower()
            for keyword, config in load_occasions().items():
                if keyword in occasion:
                    types.extend(config.get("types", []))
                    multiplier = float(config.get("price_multiplier", 1.0))
                    break
        types = list(dict.fromkeys(types))

        min_price = request.price_range.min if request.price_range else None
        max_price = request.price_range.max if request.price_range else None
        if max_price and multiplier != 1.0:
            max_price = max_price * multiplier

        special_group = None
        if request.prefer_organic:
            special_group = ORGANIC_GROUP
        elif request.prefer_vegan:
            special_group = VEGAN_GROUP

        filters = SearchFilters(
            type=types[0] if len(types) == 1 else None,
            country=request.country,
            min_price=min_price,
            max_price=max_price,
            special_group=special_group,
        )
        page = self.search_service.search(
            filters,
            SearchOptions(sort_by="price", sort_order="desc", limit=min(request.limit * 3, 100)),
        )
        items = page.items
        if len(types) > 1:
            items = [item for item in items if item.type in types]

        # stable sort keeps the price order among equal scores
        ranked = sorted(items, key=lambda item: -quality_score(item, request))[:request.limit]

        parts = []
        if request.occasion:
            parts.append(f"suitable for {request.occasion}")
        if request.prefer_organic:
            parts.append("organic products")
        if request.prefer_vegan:
            parts.append("vegan-suitable")
        if request.price_range:
            parts.append(f"within {_price_text(request)} range")
        reasoning = (
            f"Recommendations based on: {', '.join(parts)}."
            if parts
            else "General recommendations based on quality and value."
        )
        return RecommendationResult(recommendations=ranked, reasoning=reasoning)
