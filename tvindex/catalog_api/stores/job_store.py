"""Database-backed store for ingestion job metadata."""
from __future__ import annotations

from datetime import datetime
from threading import Lock
from typing import Any, Iterable
from uuid import uuid4

from sqlalchemy import func
from sqlmodel import Session, select

from ..db import SQLITE_BEGIN_MODE
from ..models import IngestJobRecord
from ..schemas import IngestJobModel, JobMetricsModel

TERMINAL_STATUSES = frozenset({"completed", "failed", "cancelled"})


class JobNotFoundError(LookupError):
    """Raised when a job identifier does not exist."""


class IngestJobStore:
    """Thread-safe CRUD interface for ingestion jobs."""

    def __init__(self, engine) -> None:
        self._engine = engine
        self._lock = Lock()

    def enqueue(self, source_url: str, *, force: bool = False) -> IngestJobModel:
        """Create a queued job entry and return its model representation."""

        record = IngestJobRecord(
            id=uuid4().hex,
            source_url=source_url,
            force=force,
            status="queued",
            progress=0.0,
        )
        with self._lock, Session(self._engine) as session:
            session.add(record)
            session.commit()
            session.refresh(record)
            return _to_model(record)

    def list(
        self,
        *,
        limit: int = 50,
        statuses: list[str] | None = None,
        source_url: str | None = None,
    ) -> list[IngestJobModel]:
        """Return the most recent jobs up to the requested limit with optional filters."""

        statement = select(IngestJobRecord)

        if statuses:
            normalized_statuses = sorted({status.lower() for status in statuses if status})
            if normalized_statuses:
                statement = statement.where(IngestJobRecord.status.in_(normalized_statuses))

        if source_url:
            statement = statement.where(IngestJobRecord.source_url == source_url)

        statement = statement.order_by(IngestJobRecord.created_at.desc()).limit(limit)
        with Session(self._engine) as session:
            records: Iterable[IngestJobRecord] = session.exec(statement)
            return [_to_model(record) for record in records]

    def get(self, job_id: str) -> IngestJobModel | None:
        with Session(self._engine) as session:
            record = session.get(IngestJobRecord, job_id)
            return _to_model(record) if record else None

    def mark_running(self, job_id: str, *, worker_id: str | None = None) -> IngestJobModel:
        """Move a queued job to running; a job cancelled meanwhile stays cancelled."""

        return self._update_job(
            job_id,
            status="running",
            keep_terminal=True,
            progress=0.0,
            started_at=datetime.utcnow(),
            worker_id=worker_id,
        )

    def record_progress(self, job_id: str, *, entries: int, created: int, skipped: int) -> None:
        """Persist running counters while a job is still parsing."""

        self._update_job(
            job_id,
            counts={"entries": entries, "created_count": created, "skipped_count": skipped},
        )

    def mark_completed(self, job_id: str, *, counts: dict[str, Any] | None = None) -> IngestJobModel:
        """Transition a job into the completed state with its final counters."""

        return self._update_job(
            job_id,
            status="completed",
            keep_terminal=True,
            progress=1.0,
            finished_at=datetime.utcnow(),
            counts=counts,
        )

    def mark_failed(self, job_id: str, *, error_message: str, progress: float | None = None) -> IngestJobModel:
        return self._update_job(
            job_id,
            status="failed",
            keep_terminal=True,
            progress=progress,
            finished_at=datetime.utcnow(),
            error_message=error_message,
        )

    def mark_cancelled(self, job_id: str, *, reason: str | None = None) -> IngestJobModel:
        """Transition a job into the cancelled state.

        Jobs that already reached a terminal state are returned unchanged.
        """

        return self._update_job(
            job_id,
            status="cancelled",
            keep_terminal=True,
            finished_at=datetime.utcnow(),
            error_message=reason,
        )

    def is_cancelled(self, job_id: str) -> bool:
        job = self.get(job_id)
        return job is not None and job.status == "cancelled"

    def _update_job(
        self,
        job_id: str,
        *,
        status: str | None = None,
        keep_terminal: bool = False,
        progress: float | None = None,
        started_at: datetime | None = None,
        finished_at: datetime | None = None,
        error_message: str | None = None,
        worker_id: str | None = None,
        counts: dict[str, Any] | None = None,
    ) -> IngestJobModel:
        with self._lock, Session(self._engine) as session:
            # Status check and update share one write transaction.
            session.connection(execution_options={SQLITE_BEGIN_MODE: "IMMEDIATE"})
            record = session.get(IngestJobRecord, job_id)
            if record is None:
                raise JobNotFoundError(job_id)
            if keep_terminal and record.status in TERMINAL_STATUSES:
                return _to_model(record)

            if status is not None:
                record.status = status
            if progress is not None:
                record.progress = progress
            if started_at is not None and record.started_at is None:
                record.started_at = started_at
            if finished_at is not None:
                record.finished_at = finished_at
            if error_message is not None:
                record.error_message = error_message
            if worker_id is not None:
                record.worker_id = worker_id
            for name, value in (counts or {}).items():
                setattr(record, name, value)
            record.updated_at = datetime.utcnow()

            session.add(record)
            session.commit()
            session.refresh(record)
            return _to_model(record)

    def metrics(self) -> JobMetricsModel:
        """Compute aggregate statistics for persisted jobs."""

        with Session(self._engine) as session:
            total = session.exec(select(func.count()).select_from(IngestJobRecord)).one()

            status_rows = session.exec(
                select(IngestJobRecord.status, func.count())
                .group_by(IngestJobRecord.status)
                .order_by(IngestJobRecord.status)
            ).all()
            status_counts = {status: count for status, count in status_rows}

            entries_processed = session.exec(
                select(func.coalesce(func.sum(IngestJobRecord.entries), 0)).where(
                    IngestJobRecord.status == "completed"
                )
            ).one()

            duration_rows = session.exec(
                select(IngestJobRecord.started_at, IngestJobRecord.finished_at)
                .where(IngestJobRecord.started_at.is_not(None))
                .where(IngestJobRecord.finished_at.is_not(None))
            ).all()
            durations = [
                (finished - started).total_seconds()
                for started, finished in duration_rows
                if started and finished
            ]
            average_duration = sum(durations) / len(durations) if durations else None

            last_finished = session.exec(
                select(IngestJobRecord.finished_at)
                .where(IngestJobRecord.finished_at.is_not(None))
                .order_by(IngestJobRecord.finished_at.desc())
                .limit(1)
            ).one_or_none()

        return JobMetricsModel(
            total=total,
            status_counts=status_counts,
            entries_processed=int(entries_processed),
            average_duration_seconds=average_duration,
            last_finished_at=last_finished,
        )


def _to_model(record: IngestJobRecord) -> IngestJobModel:
    """Convert an IngestJobRecord into the public response model."""

    duration_seconds: float | None = None
    if record.started_at and record.finished_at:
        duration_seconds = (record.finished_at - record.started_at).total_seconds()

    return IngestJobModel(
        id=record.id,
        source_url=record.source_url,
        force=record.force,
        status=record.status,
        progress=record.progress,
        worker_id=record.worker_id,
        entries=record.entries,
        created_count=record.created_count,
        skipped_count=record.skipped_count,
        updated_count=record.updated_count,
        malformed_count=record.malformed_count,
        created_at=record.created_at,
        updated_at=record.updated_at,
        started_at=record.started_at,
        finished_at=record.finished_at,
        error_message=record.error_message,
        duration_seconds=duration_seconds,
    )
