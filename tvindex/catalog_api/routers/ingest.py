"""Playlist ingestion endpoints."""
from fastapi import APIRouter, Depends, Query, Request
from starlette.concurrency import run_in_threadpool

from ..dependencies import get_ingestion_service, get_job_log_store, get_job_queue, get_job_store
from ..ingest.parser import INLINE_SOURCE
from ..schemas import IngestJobModel, IngestRequest, ParseReportModel
from ..services.ingestion import IngestionService
from ..services.queue import JobQueueService
from ..stores.job_log_store import IngestLogStore
from ..stores.job_store import IngestJobStore

router = APIRouter(prefix="/ingest", tags=["ingest"])


@router.post("", response_model=IngestJobModel, status_code=202)
def enqueue_ingest(
    request: IngestRequest,
    store: IngestJobStore = Depends(get_job_store),
    log_store: IngestLogStore = Depends(get_job_log_store),
    queue: JobQueueService = Depends(get_job_queue),
) -> IngestJobModel:
    """Queue a playlist URL or file path for background ingestion."""

    return queue.enqueue_ingest(store, log_store, request.source_url, force=request.force)


@router.post("/raw", response_model=ParseReportModel)
async def ingest_raw(
    request: Request,
    source_url: str = Query(
        default=INLINE_SOURCE,
        min_length=1,
        description="Identifier stored in the playlist cache for this upload.",
    ),
    force: bool = Query(default=True),
    service: IngestionService = Depends(get_ingestion_service),
) -> ParseReportModel:
    """Parse the request body as a playlist and apply it immediately."""

    raw = await request.body()
    report = await run_in_threadpool(
        service.ingest_bytes, raw, source_url=source_url, force=force
    )
    return ParseReportModel.model_validate(report.as_dict())
