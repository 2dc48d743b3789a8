"""RQ task entrypoints executed by background workers."""
from __future__ import annotations

import logging
from typing import Any

from rq import get_current_job

from ..db import create_engine_from_settings, create_session_factory, init_database
from ..errors import IngestCancelledError
from ..ingest.parser import ParseReport
from ..schemas import JobLogCreate
from ..search import SearchIndexSync, create_search_index
from ..settings import CatalogSettings
from ..stores.job_log_store import IngestLogStore
from ..stores.job_store import IngestJobStore
from .ingestion import IngestionService

logger = logging.getLogger(__name__)


def execute_ingest_job(
    *,
    job_id: str,
    source_url: str,
    force: bool,
    settings: dict[str, Any],
    worker_name: str,
) -> dict[str, Any] | None:
    """Background worker entrypoint for playlist ingestion."""

    resolved_settings = CatalogSettings.model_validate(settings)
    engine = create_engine_from_settings(resolved_settings)
    init_database(engine)
    job_store = IngestJobStore(engine)
    log_store = IngestLogStore(engine)

    current_job = get_current_job()
    worker_id = worker_name
    if current_job and getattr(current_job, "worker_name", None):  # pragma: no cover - runtime path
        worker_id = current_job.worker_name  # type: ignore[assignment]

    if job_store.mark_running(job_id, worker_id=worker_id).status == "cancelled":
        log_store.info(job_id, "Job was cancelled before it started")
        engine.dispose()
        return None

    session_factory = create_session_factory(engine)
    index = create_search_index(engine, resolved_settings)
    SearchIndexSync(index).install(session_factory)
    service = IngestionService(resolved_settings, session_factory, index)

    def _on_progress(report: ParseReport) -> None:
        job_store.record_progress(
            job_id,
            entries=report.entries,
            created=report.created_total,
            skipped=report.skipped_total,
        )
        if job_store.is_cancelled(job_id):
            raise IngestCancelledError(f"Job {job_id} cancelled after {report.entries} entries")

    log_store.info(job_id, "Ingestion started", source_url=source_url, force=force)

    try:
        report = service.ingest(source_url, force=force, on_progress=_on_progress)
    except IngestCancelledError as exc:
        logger.info("%s", exc)
        log_store.append(
            job_id,
            JobLogCreate(
                level="warning",
                message="Ingestion stopped after cancellation; committed batches were kept",
                context={"error": str(exc)},
            ),
        )
        return None
    except Exception as exc:
        job_store.mark_failed(job_id, error_message=str(exc))
        log_store.error(job_id, "Ingestion failed", error=str(exc))
        raise
    else:
        job = job_store.mark_completed(
            job_id,
            counts={
                "entries": report.entries,
                "created_count": report.created_total,
                "skipped_count": report.skipped_total,
                "updated_count": report.updated_total,
                "malformed_count": report.malformed,
            },
        )
        if job.status == "cancelled":
            log_store.info(
                job_id, "Job was cancelled while finishing; committed batches were kept", **report.as_dict()
            )
            return None
        message = "Playlist unchanged, nothing to parse" if report.unchanged else "Ingestion completed"
        log_store.info(job_id, message, **report.as_dict())
        return report.as_dict()
    finally:
        index.close()
        engine.dispose()
