"""Background worker for playlist ingestion."""
