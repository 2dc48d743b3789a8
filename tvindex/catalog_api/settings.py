"""Runtime configuration for the catalog service."""
from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .utils.paths import default_database_url


class CatalogSettings(BaseSettings):
    """Environment-aware settings for ingestion, storage and search."""

    database_url: str = Field(
        default_factory=default_database_url,
        description="Connection URL for the catalog SQLite database.",
    )
    database_echo: bool = Field(
        default=False, description="Enable SQL echo for debugging queries."
    )
    database_timeout: float = Field(
        default=30.0,
        ge=0,
        description="Seconds a SQLite connection waits on a locked database.",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Connection URL for the Redis-backed ingestion queue.",
    )
    redis_queue_name: str = Field(
        default="tvindex-ingest",
        description="RQ queue name used for ingestion jobs.",
    )
    queue_worker_name: str = Field(
        default="catalog-worker",
        description="Identifier used when reporting job worker executions.",
    )
    movie_group_keywords: list[str] = Field(
        default_factory=lambda: ["movie", "movies", "film", "films", "vod", "cinema"],
        description="Whole words of the group title that route an entry to the movie path.",
    )
    series_group_keywords: list[str] = Field(
        default_factory=lambda: ["series", "shows", "tv shows", "season", "seasons"],
        description="Whole words of the group title that route an entry to the series path.",
    )
    duplicate_policy: Literal["skip", "refresh_metadata"] = Field(
        default="skip",
        description=(
            "How entries matching an entity from a previous run are handled. "
            "'skip' keeps the first-seen record untouched, 'refresh_metadata' "
            "updates logo, group and tvg-id."
        ),
    )
    commit_batch_size: int = Field(
        default=500,
        ge=1,
        description="Number of parsed entries committed per ingestion batch.",
    )
    search_title_weight: float = Field(
        default=4.0, gt=0, description="bm25 weight of the title column."
    )
    search_summary_weight: float = Field(
        default=1.0, gt=0, description="bm25 weight of the summary column."
    )
    search_workers: int = Field(
        default=4, ge=1, description="Thread pool size used for fuzzy searches."
    )
    search_default_limit: int = Field(
        default=50, ge=1, description="Result limit applied when callers omit one."
    )
    setup_index_on_startup: bool = Field(
        default=True,
        description="Create the search index when the application state is built.",
    )
    fetch_timeout: float = Field(
        default=30.0, gt=0, description="HTTP timeout in seconds for playlist downloads."
    )

    model_config = SettingsConfigDict(
        env_prefix="TVINDEX_",
        env_file=".env",
        env_file_encoding="utf-8",
    )
