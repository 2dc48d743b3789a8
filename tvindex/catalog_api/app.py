"""Application factory for the catalog API."""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .errors import IndexSetupError, ParseError, PlaylistFetchError, SearchUnavailableError
from .routers import catalog, health, ingest, jobs, search
from .services.queue import JobQueueError
from .settings import CatalogSettings
from .state import AppState


def _error_handler(status_code: int):
    async def handler(request: Request, exc: Exception) -> JSONResponse:  # noqa: ARG001
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    return handler


def create_app(settings: CatalogSettings | None = None) -> FastAPI:
    """Build and configure the FastAPI application."""

    resolved_settings = settings or CatalogSettings()
    app_state = AppState(settings=resolved_settings)

    app = FastAPI(title="tvindex Catalog API", version="0.1.0")
    app.state.app_state = app_state
    app.state.settings = app_state.settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ParseError, _error_handler(400))
    app.add_exception_handler(PlaylistFetchError, _error_handler(502))
    app.add_exception_handler(SearchUnavailableError, _error_handler(503))
    app.add_exception_handler(IndexSetupError, _error_handler(503))
    app.add_exception_handler(JobQueueError, _error_handler(503))

    for router in (
        health.router,
        ingest.router,
        jobs.router,
        search.router,
        catalog.router,
    ):
        app.include_router(router)

    return app
