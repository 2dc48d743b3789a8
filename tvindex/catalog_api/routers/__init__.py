"""Router exports for the catalog API."""
from . import catalog, health, ingest, jobs, search

__all__ = ["catalog", "health", "ingest", "jobs", "search"]
