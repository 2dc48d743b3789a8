"""Full-text search over the catalog."""
from __future__ import annotations

from sqlalchemy.engine import Engine

from ..settings import CatalogSettings
from .documents import ChangeSet, SearchDocument, SearchResult
from .index import SearchIndexManager, build_match_query
from .sync import SearchIndexSync


def create_search_index(engine: Engine, settings: CatalogSettings) -> SearchIndexManager:
    """Build a search index manager configured from settings."""

    return SearchIndexManager(
        engine,
        title_weight=settings.search_title_weight,
        summary_weight=settings.search_summary_weight,
        max_workers=settings.search_workers,
        default_limit=settings.search_default_limit,
    )


__all__ = [
    "ChangeSet",
    "SearchDocument",
    "SearchIndexManager",
    "SearchIndexSync",
    "SearchResult",
    "build_match_query",
    "create_search_index",
]
