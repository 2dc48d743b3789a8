"""Pydantic models exposed by the catalog API."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from .models import EntityKind

JobStatus = Literal["queued", "running", "completed", "failed", "cancelled"]


class QueueHealthStatus(BaseModel):
    """Represents Redis queue connectivity status."""

    status: Literal["ok", "error"] = Field(default="ok")
    detail: str | None = Field(
        default=None, description="Optional diagnostic message when the queue is unavailable."
    )


class HealthStatus(BaseModel):
    """Service health payload."""

    status: Literal["ok"] = Field(default="ok")
    version: str = Field(default="0.1.0", description="Semantic version of the API service.")
    queue: QueueHealthStatus = Field(
        default_factory=QueueHealthStatus,
        description="Health information for the background job queue.",
    )
    search_index_ready: bool = Field(
        default=False, description="Whether the full-text search index has been created."
    )


class IngestRequest(BaseModel):
    """Payload used to enqueue a playlist ingestion."""

    source_url: str = Field(
        ..., min_length=1, description="http(s) URL, file:// URL or local path of the playlist."
    )
    force: bool = Field(
        default=False, description="Parse even when the playlist content is unchanged."
    )


class ParseReportModel(BaseModel):
    """Counters describing the outcome of one playlist parse."""

    source_url: str
    epg_url: str | None = None
    entries: int = 0
    malformed: int = 0
    created: dict[str, int] = Field(default_factory=dict)
    skipped: dict[str, int] = Field(default_factory=dict)
    updated: dict[str, int] = Field(default_factory=dict)
    unchanged: bool = Field(
        default=False, description="True when parsing was skipped because the content hash matched."
    )


class IngestJobModel(BaseModel):
    """Represents a background playlist ingestion job."""

    id: str
    source_url: str
    force: bool = False
    status: JobStatus
    progress: float = Field(ge=0, le=1)
    worker_id: str | None = Field(
        default=None, description="Identifier for the worker processing the job."
    )
    entries: int = 0
    created_count: int = 0
    skipped_count: int = 0
    updated_count: int = 0
    malformed_count: int = 0
    created_at: datetime = Field(description="Timestamp when the job record was created.")
    updated_at: datetime = Field(description="Timestamp when the job record was last updated.")
    started_at: datetime | None = None
    finished_at: datetime | None = None
    error_message: str | None = None
    duration_seconds: float | None = Field(
        default=None,
        description="Execution duration calculated from started and finished timestamps.",
    )


class JobMetricsModel(BaseModel):
    """Aggregate statistics for ingestion job processing."""

    total: int = Field(description="Total number of job records persisted in the store.")
    status_counts: dict[str, int] = Field(
        default_factory=dict,
        description="Count of jobs grouped by current status.",
    )
    entries_processed: int = Field(
        default=0, description="Playlist entries read by completed jobs."
    )
    average_duration_seconds: float | None = Field(
        default=None,
        description="Average duration in seconds for jobs with both start and finish timestamps.",
    )
    last_finished_at: datetime | None = Field(
        default=None,
        description="Timestamp of the most recently finished job regardless of outcome.",
    )
    queue_depth: int = Field(
        default=0,
        description="Number of jobs currently waiting in the Redis queue.",
    )


class JobLogCreate(BaseModel):
    """Payload used to append a new job log entry."""

    level: Literal["debug", "info", "warning", "error"] = Field(
        default="info", description="Severity level of the log entry."
    )
    message: str = Field(..., description="Human-readable log message.")
    context: dict[str, Any] | None = Field(
        default=None,
        description="Optional structured context payload for the log entry.",
    )


class JobLogModel(JobLogCreate):
    """Represents a persisted job log entry."""

    id: int
    job_id: str
    created_at: datetime


class JobCancelRequest(BaseModel):
    """Payload used when cancelling a job."""

    reason: str | None = Field(
        default=None, description="Optional reason recorded with the cancellation."
    )


class SearchResultModel(BaseModel):
    """A ranked search hit; lower ranks are more relevant."""

    entity_id: int
    entity_type: EntityKind
    title: str
    rank: float


class SearchIndexStatus(BaseModel):
    """Result of a search index setup or rebuild request."""

    ready: bool
    created: bool = Field(default=False, description="Whether this call created the index.")
    documents: int | None = Field(
        default=None, description="Documents written by a rebuild."
    )


class CatalogEntityModel(BaseModel):
    """Catalog entity detail."""

    id: int
    kind: EntityKind
    title: str
    identity_key: str
    stream_url: str | None = None
    logo_url: str | None = None
    group_title: str | None = None
    tvg_id: str | None = None
    summary: str | None = None
    series_id: int | None = None
    season_number: int | None = None
    episode_number: int | None = None
    episode_count: int | None = Field(
        default=None, description="Number of episodes when the entity is a series."
    )
    created_at: datetime
    updated_at: datetime


class CatalogMetricsModel(BaseModel):
    """Entity counts per kind and the number of known playlists."""

    channel: int = 0
    movie: int = 0
    series: int = 0
    episode: int = 0
    playlists: int = 0
    pending_search_changes: int = Field(
        default=0, description="Index updates waiting to be retried."
    )


class PlaylistCacheModel(BaseModel):
    """Cached metadata of an ingested playlist source."""

    source_url: str
    epg_url: str | None = None
    content_hash: str | None = None
    entry_count: int = 0
    last_refreshed: datetime | None = None
