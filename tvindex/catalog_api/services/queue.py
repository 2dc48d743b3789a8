"""Redis-backed ingestion queue for the catalog service."""
from __future__ import annotations

from redis import Redis
from redis.exceptions import RedisError
from rq import Queue

from ..schemas import IngestJobModel, JobLogCreate
from ..settings import CatalogSettings
from ..stores.job_log_store import IngestLogStore
from ..stores.job_store import IngestJobStore
from .tasks import execute_ingest_job


class JobQueueError(RuntimeError):
    """Raised when the queue cannot accept a job."""


class JobQueueService:
    """Encapsulates the Redis queue connection and enqueue workflow."""

    def __init__(self, settings: CatalogSettings) -> None:
        self._settings = settings
        self._connection = self._create_connection(settings)
        self._queue = Queue(settings.redis_queue_name, connection=self._connection)

    @staticmethod
    def _create_connection(settings: CatalogSettings) -> Redis:
        """Instantiate a Redis connection; ``fakeredis://`` selects an in-memory server."""

        url = settings.redis_url
        if url.startswith("fakeredis://"):
            import fakeredis

            return fakeredis.FakeRedis()
        return Redis.from_url(url)

    @property
    def queue(self) -> Queue:
        return self._queue

    @property
    def connection(self) -> Redis:
        return self._connection

    def ping(self) -> bool:
        """Check whether the queue backend is reachable."""

        try:
            return bool(self._connection.ping())
        except RedisError:
            return False

    def depth(self) -> int:
        try:
            return len(self._queue)
        except RedisError:
            return 0

    def enqueue_ingest(
        self,
        job_store: IngestJobStore,
        log_store: IngestLogStore,
        source_url: str,
        *,
        force: bool = False,
    ) -> IngestJobModel:
        """Persist an ingestion job and enqueue it for a worker."""

        job = job_store.enqueue(source_url, force=force)
        log_store.append(
            job.id,
            JobLogCreate(
                level="info",
                message="Ingestion enqueued",
                context={"source_url": source_url, "force": force},
            ),
        )

        try:
            self._queue.enqueue(
                execute_ingest_job,
                job_id=job.id,
                kwargs={
                    "job_id": job.id,
                    "source_url": source_url,
                    "force": force,
                    "settings": self._settings.model_dump(),
                    "worker_name": self._settings.queue_worker_name,
                },
            )
        except RedisError as exc:
            log_store.append(
                job.id,
                JobLogCreate(
                    level="error",
                    message="Failed to enqueue job",
                    context={"error": str(exc)},
                ),
            )
            job_store.mark_failed(job.id, error_message="queue_unavailable", progress=0.0)
            raise JobQueueError("Unable to enqueue job") from exc

        return job
