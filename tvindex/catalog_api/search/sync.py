"""Keep the search index in step with committed catalog writes."""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import event
from sqlalchemy.orm import Session

from ..models import kind_of
from .documents import ChangeSet
from .index import SearchIndexManager

logger = logging.getLogger(__name__)

_INFO_KEY = "tvindex.search_changes"


class SearchIndexSync:
    """Session hooks that forward entity changes to the index on commit.

    Changes are gathered on every flush and only published once the
    enclosing transaction commits, so rolled back writes never reach the
    index.
    """

    def __init__(self, index: SearchIndexManager) -> None:
        self.index = index

    def install(self, target: Any) -> None:
        """Attach the hooks to a ``sessionmaker`` or ``Session`` class."""

        event.listen(target, "after_flush", self._collect)
        event.listen(target, "after_commit", self._publish)
        event.listen(target, "after_rollback", self._discard)

    def _collect(self, session: Session, flush_context: Any) -> None:  # noqa: ARG002
        changes: ChangeSet = session.info.setdefault(_INFO_KEY, ChangeSet())
        for record in session.new:
            kind = kind_of(record)
            if kind is not None:
                changes.record_upsert(kind, record.id)
        for record in session.dirty:
            kind = kind_of(record)
            if kind is not None and session.is_modified(record):
                changes.record_upsert(kind, record.id)
        for record in session.deleted:
            kind = kind_of(record)
            if kind is not None and record.id is not None:
                changes.record_deletion(kind, record.id)

    def _publish(self, session: Session) -> None:
        changes = session.info.pop(_INFO_KEY, None)
        if changes:
            self.index.apply_changes(changes)

    def _discard(self, session: Session) -> None:
        changes = session.info.pop(_INFO_KEY, None)
        if changes:
            logger.debug("Discarding %d search changes after rollback", len(changes))
