"""Search documents projected from catalog entities."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..models import CatalogEntityBase, EntityKind

_KIND_CODES: dict[EntityKind, int] = {
    EntityKind.CHANNEL: 1,
    EntityKind.MOVIE: 2,
    EntityKind.SERIES: 3,
    EntityKind.EPISODE: 4,
}
_ROWID_STRIDE = 8


def document_rowid(kind: EntityKind, entity_id: int) -> int:
    """Index rowid owned by one entity; unique across all kinds."""

    return entity_id * _ROWID_STRIDE + _KIND_CODES[kind]


@dataclass(frozen=True, slots=True)
class SearchDocument:
    entity_type: EntityKind
    entity_id: int
    title: str
    summary: str

    def params(self) -> dict[str, Any]:
        return {
            "rowid": document_rowid(self.entity_type, self.entity_id),
            "entity_type": self.entity_type.value,
            "entity_id": self.entity_id,
            "title": self.title,
            "summary": self.summary,
        }


@dataclass(frozen=True, slots=True)
class SearchResult:
    """A ranked hit; lower ``rank`` means more relevant."""

    entity_id: int
    entity_type: EntityKind
    title: str
    rank: float


def project(kind: EntityKind, record: CatalogEntityBase) -> SearchDocument:
    """Build the searchable text of a catalog record."""

    if kind is EntityKind.CHANNEL:
        summary = record.group_title
    elif kind in (EntityKind.MOVIE, EntityKind.SERIES, EntityKind.EPISODE):
        summary = record.summary or record.group_title
    else:  # pragma: no cover - EntityKind is closed
        raise ValueError(f"Unsupported entity kind: {kind!r}")
    return SearchDocument(
        entity_type=kind,
        entity_id=record.id,
        title=record.title,
        summary=summary or "",
    )


@dataclass(slots=True)
class ChangeSet:
    """Catalog entities whose search documents need refreshing."""

    upserts: set[tuple[EntityKind, int]] = field(default_factory=set)
    deletions: set[tuple[EntityKind, int]] = field(default_factory=set)

    def __bool__(self) -> bool:
        return bool(self.upserts or self.deletions)

    def __len__(self) -> int:
        return len(self.upserts) + len(self.deletions)

    def record_upsert(self, kind: EntityKind, entity_id: int) -> None:
        self.deletions.discard((kind, entity_id))
        self.upserts.add((kind, entity_id))

    def record_deletion(self, kind: EntityKind, entity_id: int) -> None:
        self.upserts.discard((kind, entity_id))
        self.deletions.add((kind, entity_id))

    def merge(self, later: ChangeSet) -> None:
        """Fold in changes that happened after the ones held here."""

        for item in later.deletions:
            self.record_deletion(*item)
        for item in later.upserts:
            self.record_upsert(*item)
