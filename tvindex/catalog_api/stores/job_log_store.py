"""Persistence helpers for ingestion job log events."""
from __future__ import annotations

from typing import Iterable

from sqlmodel import Session, select

from ..models import IngestLogRecord
from ..schemas import JobLogCreate, JobLogModel


class IngestLogStore:
    """Store and retrieve structured log events for ingestion jobs."""

    def __init__(self, engine) -> None:
        self._engine = engine

    def append(self, job_id: str, payload: JobLogCreate) -> JobLogModel:
        record = IngestLogRecord(
            job_id=job_id,
            level=payload.level,
            message=payload.message,
            context=payload.context,
        )
        with Session(self._engine) as session:
            session.add(record)
            session.commit()
            session.refresh(record)
            return _to_model(record)

    def info(self, job_id: str, message: str, **context) -> JobLogModel:
        return self.append(
            job_id, JobLogCreate(level="info", message=message, context=context or None)
        )

    def error(self, job_id: str, message: str, **context) -> JobLogModel:
        return self.append(
            job_id, JobLogCreate(level="error", message=message, context=context or None)
        )

    def list_for_job(self, job_id: str, *, limit: int = 100) -> list[JobLogModel]:
        """Return log events associated with the given job, oldest first."""

        statement = (
            select(IngestLogRecord)
            .where(IngestLogRecord.job_id == job_id)
            .order_by(IngestLogRecord.created_at.asc(), IngestLogRecord.id.asc())
            .limit(limit)
        )
        with Session(self._engine) as session:
            records: Iterable[IngestLogRecord] = session.exec(statement)
            return [_to_model(record) for record in records]


def _to_model(record: IngestLogRecord) -> JobLogModel:
    return JobLogModel(
        id=record.id,
        job_id=record.job_id,
        level=record.level,
        message=record.message,
        context=record.context,
        created_at=record.created_at,
    )
