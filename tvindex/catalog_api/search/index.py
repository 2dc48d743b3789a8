"""Full-text search index over the catalog.

The index is an SQLite FTS5 table kept next to the catalog tables. It is a
derived cache: :meth:`SearchIndexManager.rebuild_index` can always recreate
it from the entity tables. Documents are tokenized with the porter stemmer
on top of ``unicode61`` with diacritics removed, and ranked with ``bm25``.
"""
from __future__ import annotations

import logging
import re
import unicodedata
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from functools import partial
from threading import Lock
from typing import Callable, Iterator

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ..db import SQLITE_BEGIN_MODE
from ..errors import IndexSetupError, SearchUnavailableError
from ..models import ENTITY_MODELS, EntityKind
from .documents import ChangeSet, SearchResult, document_rowid, project

logger = logging.getLogger(__name__)

INDEX_TABLE = "catalog_search"

_CREATE_SQL = (
    f"CREATE VIRTUAL TABLE {INDEX_TABLE} USING fts5("
    "entity_type UNINDEXED, entity_id UNINDEXED, title, summary, "
    "tokenize = 'porter unicode61 remove_diacritics 2')"
)
_EXISTS_SQL = text("SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = :name")
_INSERT_SQL = text(
    f"INSERT INTO {INDEX_TABLE}(rowid, entity_type, entity_id, title, summary) "
    "VALUES (:rowid, :entity_type, :entity_id, :title, :summary)"
)
_DELETE_SQL = text(f"DELETE FROM {INDEX_TABLE} WHERE rowid = :rowid")
_CLEAR_SQL = text(f"DELETE FROM {INDEX_TABLE}")

_TOKEN_RE = re.compile(r"[^\W_]+")
_INSERT_BATCH = 500

SearchCallback = Callable[[list[SearchResult]], None]


def build_match_query(query: str) -> str | None:
    """Translate free text into an FTS5 prefix query, or None when empty.

    Each word becomes a quoted prefix phrase so user input can never be
    read as FTS5 operators; words are implicitly ANDed.
    """

    tokens = _TOKEN_RE.findall(unicodedata.normalize("NFKC", query))
    if not tokens:
        return None
    return " ".join(f'"{token}"*' for token in tokens)


class SearchIndexManager:
    """Create, maintain and query the catalog search index."""

    def __init__(
        self,
        engine: Engine,
        *,
        title_weight: float = 4.0,
        summary_weight: float = 1.0,
        max_workers: int = 4,
        default_limit: int = 50,
    ) -> None:
        self._engine = engine
        self._default_limit = default_limit
        self._setup_lock = Lock()
        self._apply_lock = Lock()
        self._backlog = ChangeSet()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="catalog-search"
        )
        self._search_sql = text(
            f"SELECT entity_id, entity_type, title, "
            f"bm25({INDEX_TABLE}, 0.0, 0.0, {float(title_weight)!r}, {float(summary_weight)!r}) AS score "
            f"FROM {INDEX_TABLE} WHERE {INDEX_TABLE} MATCH :query "
            "ORDER BY score, rowid LIMIT :limit"
        )

    @contextmanager
    def _write_transaction(self) -> Iterator[Connection]:
        # IMMEDIATE takes the write lock up front so concurrent setups and
        # catalog commits serialize against the whole index transaction.
        with self._engine.connect() as conn:
            conn.execution_options(**{SQLITE_BEGIN_MODE: "IMMEDIATE"})
            with conn.begin():
                yield conn

    @staticmethod
    def _exists(conn: Connection) -> bool:
        return conn.execute(_EXISTS_SQL, {"name": INDEX_TABLE}).first() is not None

    def is_ready(self) -> bool:
        """Return whether the index has been created."""

        with self._engine.connect() as conn:
            return self._exists(conn)

    def setup_index(self) -> bool:
        """Create and populate the index if it does not exist yet.

        Safe to call repeatedly and concurrently. Returns True only for the
        call that actually created the index.
        """

        with self._setup_lock:
            try:
                with self._write_transaction() as conn:
                    if self._exists(conn):
                        return False
                    conn.exec_driver_sql(_CREATE_SQL)
                    count = self._populate(conn)
            except SQLAlchemyError as exc:
                raise IndexSetupError(f"Unable to create search index: {exc}") from exc

        logger.info("Created search index with %d documents", count)
        self.flush_pending()
        return True

    def rebuild_index(self) -> int:
        """Drop every document and project the whole catalog again."""

        with self._setup_lock:
            try:
                with self._write_transaction() as conn:
                    if self._exists(conn):
                        conn.execute(_CLEAR_SQL)
                    else:
                        conn.exec_driver_sql(_CREATE_SQL)
                    count = self._populate(conn)
            except SQLAlchemyError as exc:
                raise IndexSetupError(f"Unable to rebuild search index: {exc}") from exc
            with self._apply_lock:
                self._backlog = ChangeSet()

        logger.info("Rebuilt search index with %d documents", count)
        return count

    def _populate(self, conn: Connection) -> int:
        count = 0
        batch: list[dict] = []
        with Session(bind=conn) as session:
            for kind, model in ENTITY_MODELS.items():
                for record in session.exec(select(model).order_by(model.id)):
                    batch.append(project(kind, record).params())
                    if len(batch) >= _INSERT_BATCH:
                        conn.execute(_INSERT_SQL, batch)
                        count += len(batch)
                        batch = []
        if batch:
            conn.execute(_INSERT_SQL, batch)
            count += len(batch)
        return count

    def apply_changes(self, changes: ChangeSet) -> None:
        """Bring documents for the changed entities up to date.

        Failures are logged and the changes are kept for the next apply,
        flush, setup or rebuild instead of being lost.
        """

        with self._apply_lock:
            pending = self._backlog
            self._backlog = ChangeSet()
            pending.merge(changes)
            if not pending:
                return
            try:
                with self._write_transaction() as conn:
                    if not self._exists(conn):
                        # setup_index projects the full catalog once it runs.
                        logger.debug("Search index missing, dropping %d changes", len(pending))
                        return
                    self._apply(conn, pending)
            except SQLAlchemyError:
                logger.exception("Search index update failed; %d changes kept for retry", len(pending))
                pending.merge(self._backlog)
                self._backlog = pending

    def flush_pending(self) -> None:
        """Retry changes left over from a failed apply."""

        self.apply_changes(ChangeSet())

    @property
    def pending_changes(self) -> int:
        return len(self._backlog)

    def _apply(self, conn: Connection, changes: ChangeSet) -> None:
        for kind, entity_id in changes.deletions:
            conn.execute(_DELETE_SQL, {"rowid": document_rowid(kind, entity_id)})
        with Session(bind=conn) as session:
            for kind, entity_id in sorted(changes.upserts):
                conn.execute(_DELETE_SQL, {"rowid": document_rowid(kind, entity_id)})
                record = session.get(ENTITY_MODELS[kind], entity_id)
                if record is not None:
                    conn.execute(_INSERT_SQL, project(kind, record).params())

    def fuzzy_search(
        self,
        query: str,
        max_results: int | None = None,
        callback: SearchCallback | None = None,
    ) -> Future:
        """Search asynchronously; the future resolves to ranked results.

        ``callback`` receives the results once the search completes
        normally. Cancelled or failed searches never invoke it.
        """

        limit = self._default_limit if max_results is None else max_results
        if limit < 0:
            raise ValueError("max_results must not be negative")

        match = build_match_query(query or "")
        if match is None or limit == 0:
            future: Future = Future()
            future.set_result([])
        else:
            future = self._executor.submit(self._run_search, match, limit)
        if callback is not None:
            future.add_done_callback(partial(_deliver, callback))
        return future

    def search(self, query: str, max_results: int | None = None) -> list[SearchResult]:
        """Blocking variant of :meth:`fuzzy_search`."""

        return self.fuzzy_search(query, max_results).result()

    def _run_search(self, match: str, limit: int) -> list[SearchResult]:
        with self._engine.connect() as conn:
            if not self._exists(conn):
                raise SearchUnavailableError("Search index has not been set up")
            rows = conn.execute(self._search_sql, {"query": match, "limit": limit}).all()
        return [
            SearchResult(
                entity_id=int(row.entity_id),
                entity_type=EntityKind(row.entity_type),
                title=row.title,
                rank=float(row.score),
            )
            for row in rows
        ]

    def close(self) -> None:
        self._executor.shutdown(wait=True)


def _deliver(callback: SearchCallback, future: Future) -> None:
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.warning("Search failed: %s", error)
        return
    callback(future.result())
