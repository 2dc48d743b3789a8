"""Persistence stores for catalog entities and ingestion jobs."""

from .catalog_store import CatalogStore
from .job_log_store import IngestLogStore
from .job_store import IngestJobStore, JobNotFoundError

__all__ = ["CatalogStore", "IngestJobStore", "IngestLogStore", "JobNotFoundError"]
