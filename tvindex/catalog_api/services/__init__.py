"""Service layer for ingestion and the background queue."""

from .ingestion import IngestionService, content_hash
from .queue import JobQueueError, JobQueueService

__all__ = ["IngestionService", "JobQueueError", "JobQueueService", "content_hash"]
