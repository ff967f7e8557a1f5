"""Relevance-scored catalog search.

The store has no full-text index: equality and range filters are pushed down,
while a free-text query widens the fetch to the whole practical catalog and
is matched and ranked in-process.
"""
from typing import List, Optional, Tuple

from sqlalchemy.orm import sessionmaker

from alko_catalog.core.config import Settings, settings as default_settings
from alko_catalog.core.database import session_scope
from alko_catalog.core.logging import logger, sanitize_for_log
from alko_catalog.repositories.impl.item_repository import ItemRepository
from alko_catalog.schemas.catalog_schema import CatalogItem, CatalogPage, SearchFilters, SearchOptions
from alko_catalog.utils.text import finnish_sort_key

SCORE_NAME_PHRASE = 100
SCORE_NAME_WORDS = 80
SCORE_PRODUCER_PHRASE = 60
SCORE_PRODUCER_WORDS = 50
SCORE_FIELD_PHRASE = 40
SCORE_FIELD_WORDS = 30
SCORE_CROSS_FIELD = 20

# searchable fields other than name and producer
OTHER_FIELDS = ("country", "region", "type", "subtype", "description", "grapes")


def searchable_fields(item: CatalogItem) -> List[str]:
    values = [item.name, item.producer] + [getattr(item, f) for f in OTHER_FIELDS]
    return [str(v).lower() for v in values if v]


def tokenize_query(query: str) -> Tuple[str, List[str]]:
    phrase = query.lower().strip()
    return phrase, [w for w in phrase.split() if w]


def matches_all_words(item: CatalogItem, words: List[str]) -> bool:
    haystack = " ".join(searchable_fields(item))
    return all(w in haystack for w in words)


def relevance_score(item: CatalogItem, phrase: str, words: List[str]) -> int:
    """Score by the first rule that matches (name > producer > any single other field > cross-field)"""
    name = (item.name or "").lower()
    producer = (item.producer or "").lower()

    if phrase in name:
        return SCORE_NAME_PHRASE
    if all(w in name for w in words):
        return SCORE_NAME_WORDS
    if producer:
        if phrase in producer:
            return SCORE_PRODUCER_PHRASE
        if all(w in producer for w in words):
            return SCORE_PRODUCER_WORDS

    others = [str(getattr(item, f)).lower() for f in OTHER_FIELDS if getattr(item, f)]
    if any(phrase in value for value in others):
        return SCORE_FIELD_PHRASE
    if any(all(w in value for w in words) for value in others):
        return SCORE_FIELD_WORDS
    return SCORE_CROSS_FIELD


def rank(items: List[CatalogItem], query: str) -> List[CatalogItem]:
    """Keep items containing every query word, ordered by score then Finnish name order"""
    phrase, words = tokenize_query(query)
    if not words:
        return list(items)

    scored = [
        (relevance_score(item, phrase, words), item)
        for item in items
        if matches_all_words(item, words)
    ]
    # exact name first within the top score, then Finnish collation
    scored.sort(key=lambda pair: (
        -pair[0],
        (pair[1].name or "").lower() != phrase,
        finnish_sort_key(pair[1].name),
        pair[1].id,
    ))
    return [item for _, item in scored]


def apply_smokiness(items: List[CatalogItem], filters: SearchFilters) -> List[CatalogItem]:
    """Smokiness is nullable; items without it never pass a smokiness bound"""
    if filters.min_smokiness is not None:
        items = [i for i in items if i.smokiness is not None and i.smokiness >= filters.min_smokiness]
    if filters.max_smokiness is not None:
        items = [i for i in items if i.smokiness is not None and i.smokiness <= filters.max_smokiness]
    return items


def paginate(items: List[CatalogItem], limit: int, offset: int) -> CatalogPage:
    total = len(items)
    return CatalogPage(
        items=items[offset:offset + limit],
        total=total,
        limit=limit,
        offset=offset,
        has_more=total > offset + limit,
    )


class SearchService:
    def __init__(self, session_factory: sessionmaker, settings: Optional[Settings] = None):
        self.session_factory = session_factory
        self.settings = settings or default_settings

    def fetch_bound(self, filters: SearchFilters, options: SearchOptions) -> int:
        needs_scan = filters.query or filters.min_smokiness is not None or filters.max_smokiness is not None
        if needs_scan:
            return self.settings.search_full_scan_limit
        return options.offset + options.limit + 1

    def search(self, filters: SearchFilters, options: Optional[SearchOptions] = None) -> CatalogPage:
        options = options or SearchOptions()
        bound = self.fetch_bound(filters, options)

        with session_scope(self.session_factory) as db:
            candidates = ItemRepository(db).find(
                filters,
                sort_by=options.sort_by,
                sort_order=options.sort_order,
                limit=bound,
            )

        if filters.query:
            items = rank(candidates, filters.query)
            logger.info(
                f"[Search] '{sanitize_for_log(filters.query)}': {len(items)} of {len(candidates)} candidates matched"
            )
        else:
            items = candidates

        items = apply_smokiness(items, filters)
        page = paginate(items, options.limit, options.offset)
        logger.debug(f"[Search] total={page.total} offset={page.offset} has_more={page.has_more}")
        return page
