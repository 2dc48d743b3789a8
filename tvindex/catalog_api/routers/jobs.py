"""Ingestion job tracking endpoints."""
from typing import Annotated

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from ..dependencies import get_job_log_store, get_job_queue, get_job_store
from ..schemas import (
    IngestJobModel,
    JobCancelRequest,
    JobLogCreate,
    JobLogModel,
    JobMetricsModel,
)
from ..services.queue import JobQueueService
from ..stores.job_log_store import IngestLogStore
from ..stores.job_store import IngestJobStore

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.get("", response_model=list[IngestJobModel])
def list_jobs(
    limit: int = Query(default=50, ge=1, le=100),
    statuses: Annotated[
        list[str] | None,
        Query(
            alias="status",
            description=(
                "Filter results to one or more job statuses. Repeat the query parameter "
                "to include multiple statuses."
            ),
        ),
    ] = None,
    source_url: str | None = Query(
        default=None,
        description="Filter results to a single playlist source.",
    ),
    store: IngestJobStore = Depends(get_job_store),
) -> list[IngestJobModel]:
    """Return the most recent jobs up to the requested limit."""

    return store.list(limit=limit, statuses=statuses, source_url=source_url)


@router.get("/metrics", response_model=JobMetricsModel)
def job_metrics(
    store: IngestJobStore = Depends(get_job_store),
    queue: JobQueueService = Depends(get_job_queue),
) -> JobMetricsModel:
    """Return aggregate job telemetry combined with queue depth."""

    metrics = store.metrics()
    return metrics.model_copy(update={"queue_depth": queue.depth()})


@router.get("/{job_id}", response_model=IngestJobModel)
def get_job(job_id: str, store: IngestJobStore = Depends(get_job_store)) -> IngestJobModel:
    job = store.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


@router.post("/{job_id}/cancel", response_model=IngestJobModel)
def cancel_job(
    job_id: str,
    request: JobCancelRequest | None = Body(default=None),
    store: IngestJobStore = Depends(get_job_store),
    log_store: IngestLogStore = Depends(get_job_log_store),
) -> IngestJobModel:
    """Cancel a queued or running job, recording an optional reason."""

    existing = store.get(job_id)
    if existing is None:
        raise HTTPException(status_code=404, detail="Job not found")
    if existing.status in ("completed", "failed", "cancelled"):
        return existing

    reason = request.reason if request else None
    job = store.mark_cancelled(job_id, reason=reason)
    if job.status != "cancelled":
        return job
    log_store.append(
        job_id,
        JobLogCreate(
            level="warning",
            message="Job cancelled",
            context={"reason": reason} if reason else None,
        ),
    )
    return job


@router.get("/{job_id}/logs", response_model=list[JobLogModel])
def list_job_logs(
    job_id: str,
    limit: int = Query(default=100, ge=1, le=500),
    store: IngestJobStore = Depends(get_job_store),
    log_store: IngestLogStore = Depends(get_job_log_store),
) -> list[JobLogModel]:
    """Return log events associated with a job."""

    job = store.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return log_store.list_for_job(job_id, limit=limit)
