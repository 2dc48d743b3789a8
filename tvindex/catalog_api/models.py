"""Database models for the playlist catalog."""
from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import Field, Relationship, SQLModel


class EntityKind(str, Enum):
    """Closed set of catalog entity variants."""

    CHANNEL = "channel"
    MOVIE = "movie"
    SERIES = "series"
    EPISODE = "episode"


class CatalogEntityBase(SQLModel):
    """Columns shared by every catalog entity table."""

    title: str = Field(min_length=1, index=True)
    identity_key: str = Field(index=True, unique=True)
    logo_url: str | None = Field(default=None)
    group_title: str | None = Field(default=None, index=True)
    tvg_id: str | None = Field(default=None, index=True)
    stream_url: str | None = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)


class ChannelRecord(CatalogEntityBase, table=True):
    """Live channel parsed from a playlist."""

    __tablename__ = "catalog_channels"

    id: int | None = Field(default=None, primary_key=True)


class MovieRecord(CatalogEntityBase, table=True):
    """On-demand movie title."""

    __tablename__ = "catalog_movies"

    id: int | None = Field(default=None, primary_key=True)
    summary: str | None = Field(default=None)


class SeriesRecord(CatalogEntityBase, table=True):
    """On-demand series; owns its episodes."""

    __tablename__ = "catalog_series"

    id: int | None = Field(default=None, primary_key=True)
    summary: str | None = Field(default=None)
    episodes: list["EpisodeRecord"] = Relationship(
        back_populates="series",
        sa_relationship_kwargs={
            "cascade": "all, delete-orphan",
            "order_by": "EpisodeRecord.id",
        },
    )


class EpisodeRecord(CatalogEntityBase, table=True):
    """Single playable episode of a series."""

    __tablename__ = "catalog_episodes"

    id: int | None = Field(default=None, primary_key=True)
    series_id: int = Field(foreign_key="catalog_series.id", index=True, nullable=False)
    season_number: int | None = Field(default=None)
    episode_number: int | None = Field(default=None)
    summary: str | None = Field(default=None)
    series: SeriesRecord | None = Relationship(back_populates="episodes")


class PlaylistCacheRecord(SQLModel, table=True):
    """One row per ingested playlist source."""

    __tablename__ = "catalog_playlists"

    id: int | None = Field(default=None, primary_key=True)
    source_url: str = Field(index=True, unique=True)
    epg_url: str | None = Field(default=None)
    content_hash: str | None = Field(default=None)
    entry_count: int = Field(default=0)
    last_refreshed: datetime | None = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)


class IngestJobRecord(SQLModel, table=True):
    """Background ingestion job metadata."""

    __tablename__ = "ingest_jobs"

    id: str = Field(primary_key=True, index=True)
    source_url: str = Field(index=True)
    force: bool = Field(default=False)
    status: str = Field(default="queued", index=True)
    progress: float = Field(default=0.0)
    worker_id: str | None = Field(default=None, index=True)
    entries: int = Field(default=0)
    created_count: int = Field(default=0)
    skipped_count: int = Field(default=0)
    updated_count: int = Field(default=0)
    malformed_count: int = Field(default=0)
    started_at: datetime | None = Field(default=None, index=True)
    finished_at: datetime | None = Field(default=None, index=True)
    error_message: str | None = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=datetime.utcnow, nullable=False)


class IngestLogRecord(SQLModel, table=True):
    """Structured log event recorded while an ingestion job runs."""

    __tablename__ = "ingest_job_logs"

    id: int | None = Field(default=None, primary_key=True)
    job_id: str = Field(index=True)
    level: str = Field(default="info", index=True)
    message: str
    context: dict[str, Any] | None = Field(
        default=None, sa_column=Column(JSON, nullable=True)
    )
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)


ENTITY_MODELS: dict[EntityKind, type[CatalogEntityBase]] = {
    EntityKind.CHANNEL: ChannelRecord,
    EntityKind.MOVIE: MovieRecord,
    EntityKind.SERIES: SeriesRecord,
    EntityKind.EPISODE: EpisodeRecord,
}


def kind_of(record: Any) -> EntityKind | None:
    """Return the entity kind of a catalog record, or None for other rows."""

    for kind, model in ENTITY_MODELS.items():
        if type(record) is model:
            return kind
    return None
