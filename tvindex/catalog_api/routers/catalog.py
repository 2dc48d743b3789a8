"""Catalog browsing endpoints."""
from fastapi import APIRouter, Depends, HTTPException, Response

from ..dependencies import get_catalog_store, get_search_index
from ..models import EntityKind, SeriesRecord
from ..schemas import CatalogEntityModel, CatalogMetricsModel, PlaylistCacheModel
from ..search import SearchIndexManager
from ..stores.catalog_store import CatalogStore

router = APIRouter(prefix="/catalog", tags=["catalog"])


@router.get("/metrics", response_model=CatalogMetricsModel)
def catalog_metrics(
    store: CatalogStore = Depends(get_catalog_store),
    index: SearchIndexManager = Depends(get_search_index),
) -> CatalogMetricsModel:
    """Return entity counts per kind."""

    return CatalogMetricsModel(**store.metrics(), pending_search_changes=index.pending_changes)


@router.get("/playlists", response_model=list[PlaylistCacheModel])
def list_playlists(store: CatalogStore = Depends(get_catalog_store)) -> list[PlaylistCacheModel]:
    return [
        PlaylistCacheModel(
            source_url=record.source_url,
            epg_url=record.epg_url,
            content_hash=record.content_hash,
            entry_count=record.entry_count,
            last_refreshed=record.last_refreshed,
        )
        for record in store.list_playlists()
    ]


@router.get("/{kind}/{entity_id}", response_model=CatalogEntityModel)
def get_entity(
    kind: EntityKind,
    entity_id: int,
    store: CatalogStore = Depends(get_catalog_store),
) -> CatalogEntityModel:
    record = store.get(kind, entity_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"{kind.value.capitalize()} not found")

    episode_count = len(record.episodes) if isinstance(record, SeriesRecord) else None
    return CatalogEntityModel(
        id=record.id,
        kind=kind,
        title=record.title,
        identity_key=record.identity_key,
        stream_url=record.stream_url,
        logo_url=record.logo_url,
        group_title=record.group_title,
        tvg_id=record.tvg_id,
        summary=getattr(record, "summary", None),
        series_id=getattr(record, "series_id", None),
        season_number=getattr(record, "season_number", None),
        episode_number=getattr(record, "episode_number", None),
        episode_count=episode_count,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


@router.delete("/{kind}/{entity_id}", status_code=204)
def delete_entity(
    kind: EntityKind,
    entity_id: int,
    store: CatalogStore = Depends(get_catalog_store),
) -> Response:
    """Delete an entity; deleting a series removes its episodes too."""

    if not store.delete(kind, entity_id):
        raise HTTPException(status_code=404, detail=f"{kind.value.capitalize()} not found")
    store.commit()
    return Response(status_code=204)
