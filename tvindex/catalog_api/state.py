"""Shared state container for the catalog API."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import Session

from .db import create_engine_from_settings, create_session_factory, init_database
from .search import SearchIndexManager, SearchIndexSync, create_search_index
from .services.ingestion import IngestionService
from .services.queue import JobQueueService
from .settings import CatalogSettings
from .stores.job_log_store import IngestLogStore
from .stores.job_store import IngestJobStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AppState:
    """Encapsulates mutable application state shared across routers."""

    settings: CatalogSettings
    engine: Engine
    session_factory: sessionmaker
    search_index: SearchIndexManager
    ingestion: IngestionService
    job_store: IngestJobStore
    log_store: IngestLogStore
    job_queue: JobQueueService

    def __init__(self, settings: CatalogSettings) -> None:
        self.settings = settings
        self.engine = create_engine_from_settings(settings)
        init_database(self.engine)
        self.session_factory = create_session_factory(self.engine)
        self.search_index = create_search_index(self.engine, settings)
        SearchIndexSync(self.search_index).install(self.session_factory)
        self.ingestion = IngestionService(settings, self.session_factory, self.search_index)
        self.job_store = IngestJobStore(self.engine)
        self.log_store = IngestLogStore(self.engine)
        self.job_queue = JobQueueService(settings)

        if settings.setup_index_on_startup:
            self.search_index.setup_index()

    def session(self) -> Session:
        """Open a session whose commits are mirrored into the search index."""

        return self.session_factory()

    def close(self) -> None:
        self.search_index.close()
        self.engine.dispose()
