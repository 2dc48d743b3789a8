"""Entity store over a SQLModel session."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import func
from sqlmodel import Session, select

from ..models import (
    ENTITY_MODELS,
    CatalogEntityBase,
    EntityKind,
    PlaylistCacheRecord,
)

_READ_ONLY_FIELDS = frozenset({"id", "identity_key", "created_at"})


class CatalogStore:
    """Transactional access to catalog entities for one unit of work.

    Writes only touch the wrapped session; nothing is persisted until the
    caller invokes :meth:`commit`.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def find(self, kind: EntityKind, identity_key: str) -> CatalogEntityBase | None:
        """Return the entity of ``kind`` owning ``identity_key``, including unflushed ones."""

        model = ENTITY_MODELS[kind]
        statement = select(model).where(model.identity_key == identity_key)
        return self.session.exec(statement).first()

    def create_or_find(
        self,
        kind: EntityKind,
        identity_key: str,
        *,
        title: str,
        **fields: Any,
    ) -> tuple[CatalogEntityBase, bool]:
        """Return the existing entity for the key or add a new one.

        New records receive every required field at construction time, so an
        aborted unit of work never leaves a half-initialized row behind.
        """

        existing = self.find(kind, identity_key)
        if existing is not None:
            return existing, False
        if not title or not title.strip():
            raise ValueError("Catalog entities require a non-empty title")

        model = ENTITY_MODELS[kind]
        record = model(identity_key=identity_key, title=title.strip(), **fields)
        self.session.add(record)
        return record, True

    def set_field(self, record: CatalogEntityBase, name: str, value: Any) -> None:
        """Assign a single attribute on a catalog record."""

        if name in _READ_ONLY_FIELDS:
            raise ValueError(f"Field {name!r} cannot be modified")
        if not hasattr(record, name):
            raise AttributeError(f"{type(record).__name__} has no field {name!r}")
        if name == "title" and (not value or not str(value).strip()):
            raise ValueError("Catalog entities require a non-empty title")
        setattr(record, name, value)
        record.updated_at = datetime.utcnow()
        self.session.add(record)

    def query(
        self,
        kind: EntityKind,
        *criteria: Any,
        limit: int | None = None,
    ) -> Sequence[CatalogEntityBase]:
        """Return entities of ``kind`` matching all SQLAlchemy criteria."""

        model = ENTITY_MODELS[kind]
        statement = select(model)
        for condition in criteria:
            statement = statement.where(condition)
        statement = statement.order_by(model.id)
        if limit is not None:
            statement = statement.limit(limit)
        return self.session.exec(statement).all()

    def get(self, kind: EntityKind, entity_id: int) -> CatalogEntityBase | None:
        return self.session.get(ENTITY_MODELS[kind], entity_id)

    def delete(self, kind: EntityKind, entity_id: int) -> bool:
        """Delete an entity; deleting a series removes its episodes."""

        record = self.get(kind, entity_id)
        if record is None:
            return False
        self.session.delete(record)
        return True

    def commit(self) -> None:
        """Commit the unit of work; store errors propagate unchanged."""

        self.session.commit()

    def playlist_cache(self, source_url: str) -> PlaylistCacheRecord | None:
        statement = select(PlaylistCacheRecord).where(
            PlaylistCacheRecord.source_url == source_url
        )
        return self.session.exec(statement).first()

    def upsert_playlist_cache(self, source_url: str, **fields: Any) -> PlaylistCacheRecord:
        """Create or update the single cache row of a playlist source."""

        record = self.playlist_cache(source_url)
        if record is None:
            record = PlaylistCacheRecord(source_url=source_url)
        for key, value in fields.items():
            setattr(record, key, value)
        record.updated_at = datetime.utcnow()
        self.session.add(record)
        return record

    def list_playlists(self) -> Sequence[PlaylistCacheRecord]:
        statement = select(PlaylistCacheRecord).order_by(PlaylistCacheRecord.source_url)
        return self.session.exec(statement).all()

    def count(self, kind: EntityKind) -> int:
        model = ENTITY_MODELS[kind]
        return self.session.exec(select(func.count()).select_from(model)).one()

    def metrics(self) -> dict[str, int]:
        """Return entity counts keyed by kind plus the playlist count."""

        counts = {kind.value: self.count(kind) for kind in EntityKind}
        counts["playlists"] = self.session.exec(
            select(func.count()).select_from(PlaylistCacheRecord)
        ).one()
        return counts
