"""Fetch playlists and apply them to the catalog in committed batches."""
from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Callable
from urllib.parse import urlparse
from urllib.request import url2pathname

import httpx
from sqlalchemy.orm import sessionmaker

from ..db import session_scope
from ..errors import PlaylistFetchError
from ..ingest.classifier import keyword_classifier
from ..ingest.identity import DuplicatePolicy
from ..ingest.parser import INLINE_SOURCE, ParseReport, PlaylistParser
from ..search.index import SearchIndexManager
from ..settings import CatalogSettings
from ..stores.catalog_store import CatalogStore

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ParseReport], None]


def content_hash(raw: bytes) -> str:
    return hashlib.sha256(raw).hexdigest()


class IngestionService:
    """Run one playlist through the parser and commit it batch by batch.

    Every commit goes through ``session_factory``, so the search index
    follows along once the sync hooks are installed on that factory.
    """

    def __init__(
        self,
        settings: CatalogSettings,
        session_factory: sessionmaker,
        index: SearchIndexManager | None = None,
    ) -> None:
        self._settings = settings
        self._session_factory = session_factory
        self._index = index

    def build_parser(self) -> PlaylistParser:
        classifier = keyword_classifier(
            self._settings.movie_group_keywords, self._settings.series_group_keywords
        )
        return PlaylistParser(
            classifier=classifier, policy=DuplicatePolicy(self._settings.duplicate_policy)
        )

    def fetch(self, source_url: str) -> bytes:
        """Download an http(s) playlist or read a local path / file:// URL."""

        parsed = urlparse(source_url)
        if parsed.scheme in ("http", "https"):
            try:
                with httpx.Client(timeout=self._settings.fetch_timeout, follow_redirects=True) as client:
                    response = client.get(source_url)
                    response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise PlaylistFetchError(
                    f"Playlist source responded with HTTP {exc.response.status_code}"
                ) from exc
            except httpx.HTTPError as exc:
                raise PlaylistFetchError(f"Failed to download playlist: {exc}") from exc
            return response.content

        if parsed.scheme == "file":
            path = Path(url2pathname(parsed.path))
        elif not parsed.scheme or len(parsed.scheme) == 1:
            # Bare paths, including Windows drive letters.
            path = Path(source_url)
        else:
            raise PlaylistFetchError(f"Unsupported playlist scheme: {parsed.scheme!r}")

        try:
            return path.read_bytes()
        except OSError as exc:
            raise PlaylistFetchError(f"Failed to read playlist file {path}: {exc}") from exc

    def ingest(
        self,
        source_url: str,
        *,
        force: bool = False,
        on_progress: ProgressCallback | None = None,
    ) -> ParseReport:
        """Fetch ``source_url`` and ingest it."""

        raw = self.fetch(source_url)
        return self.ingest_bytes(raw, source_url=source_url, force=force, on_progress=on_progress)

    def ingest_bytes(
        self,
        raw: bytes,
        *,
        source_url: str = INLINE_SOURCE,
        force: bool = False,
        on_progress: ProgressCallback | None = None,
    ) -> ParseReport:
        """Parse raw playlist bytes into the catalog.

        Playlists whose content hash matches the cached one are skipped
        unless ``force`` is set. ``on_progress`` runs after every committed
        batch and may raise to stop ingestion; committed batches stay.
        """

        digest = content_hash(raw)
        batch_size = self._settings.commit_batch_size

        with session_scope(self._session_factory) as session:
            store = CatalogStore(session)
            cache = store.playlist_cache(source_url)
            if not force and cache is not None and cache.content_hash == digest:
                logger.info("Playlist %s unchanged, skipping parse", source_url)
                return ParseReport(
                    source_url=source_url,
                    epg_url=cache.epg_url,
                    entries=cache.entry_count,
                    unchanged=True,
                )

            def _on_entry(report: ParseReport) -> None:
                if report.entries % batch_size == 0:
                    store.commit()
                    if on_progress is not None:
                        on_progress(report)

            report = self.build_parser().parse(
                raw, store, source_url=source_url, on_entry=_on_entry
            )
            store.upsert_playlist_cache(source_url, content_hash=digest)

        if self._index is not None:
            self._index.flush_pending()
        return report
