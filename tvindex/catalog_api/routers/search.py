"""Search endpoints."""
import asyncio

from fastapi import APIRouter, Depends, Query
from starlette.concurrency import run_in_threadpool

from ..dependencies import get_search_index
from ..schemas import SearchIndexStatus, SearchResultModel
from ..search import SearchIndexManager

router = APIRouter(prefix="/search", tags=["search"])


@router.get("", response_model=list[SearchResultModel])
async def search_catalog(
    q: str = Query(default="", description="Free text; every word is matched as a prefix."),
    limit: int | None = Query(default=None, ge=0, le=500),
    index: SearchIndexManager = Depends(get_search_index),
) -> list[SearchResultModel]:
    """Return ranked catalog entities matching the query."""

    results = await asyncio.wrap_future(index.fuzzy_search(q, limit))
    return [
        SearchResultModel(
            entity_id=result.entity_id,
            entity_type=result.entity_type,
            title=result.title,
            rank=result.rank,
        )
        for result in results
    ]


@router.post("/index", response_model=SearchIndexStatus)
async def setup_index(index: SearchIndexManager = Depends(get_search_index)) -> SearchIndexStatus:
    """Create the search index if needed; repeated calls are no-ops."""

    created = await run_in_threadpool(index.setup_index)
    return SearchIndexStatus(ready=True, created=created)


@router.post("/index/rebuild", response_model=SearchIndexStatus)
async def rebuild_index(index: SearchIndexManager = Depends(get_search_index)) -> SearchIndexStatus:
    """Recreate every search document from the catalog tables."""

    documents = await run_in_threadpool(index.rebuild_index)
    return SearchIndexStatus(ready=True, documents=documents)
