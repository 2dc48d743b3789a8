"""FastAPI dependencies for the catalog API."""
from fastapi import Depends, Request
from sqlmodel import Session

from .search import SearchIndexManager
from .services.ingestion import IngestionService
from .services.queue import JobQueueService
from .state import AppState
from .stores.catalog_store import CatalogStore
from .stores.job_log_store import IngestLogStore
from .stores.job_store import IngestJobStore


def get_app_state(request: Request) -> AppState:
    """Resolve the shared application state from the FastAPI request."""
    return request.app.state.app_state


def get_session(app_state: AppState = Depends(get_app_state)):
    """Provide a catalog session for request handlers."""

    session: Session = app_state.session()
    try:
        yield session
    finally:
        session.close()


def get_catalog_store(session: Session = Depends(get_session)) -> CatalogStore:
    return CatalogStore(session)


def get_search_index(app_state: AppState = Depends(get_app_state)) -> SearchIndexManager:
    return app_state.search_index


def get_ingestion_service(app_state: AppState = Depends(get_app_state)) -> IngestionService:
    return app_state.ingestion


def get_job_store(app_state: AppState = Depends(get_app_state)) -> IngestJobStore:
    return app_state.job_store


def get_job_log_store(app_state: AppState = Depends(get_app_state)) -> IngestLogStore:
    return app_state.log_store


def get_job_queue(app_state: AppState = Depends(get_app_state)) -> JobQueueService:
    return app_state.job_queue
