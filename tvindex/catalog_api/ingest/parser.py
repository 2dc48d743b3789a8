"""Apply a playlist document to the catalog store."""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from ..models import CatalogEntityBase, EntityKind
from ..stores.catalog_store import CatalogStore
from .classifier import Classifier, default_classifier, split_episode
from .identity import (
    Candidate,
    DuplicatePolicy,
    IdentitySet,
    Outcome,
    Resolution,
    resolve,
)
from .playlist import PlaylistEntry, PlaylistReader, decode_playlist

logger = logging.getLogger(__name__)

INLINE_SOURCE = "inline"
_REFRESHABLE_FIELDS = ("logo_url", "group_title", "tvg_id")


@dataclass(slots=True)
class ParseReport:
    """Outcome counters for one parse call."""

    source_url: str
    epg_url: str | None = None
    entries: int = 0
    malformed: int = 0
    created: Counter = field(default_factory=Counter)
    skipped: Counter = field(default_factory=Counter)
    updated: Counter = field(default_factory=Counter)
    unchanged: bool = False

    @property
    def created_total(self) -> int:
        return sum(self.created.values())

    @property
    def skipped_total(self) -> int:
        return sum(self.skipped.values())

    @property
    def updated_total(self) -> int:
        return sum(self.updated.values())

    def as_dict(self) -> dict[str, Any]:
        return {
            "source_url": self.source_url,
            "epg_url": self.epg_url,
            "entries": self.entries,
            "malformed": self.malformed,
            "created": dict(self.created),
            "skipped": dict(self.skipped),
            "updated": dict(self.updated),
            "unchanged": self.unchanged,
        }


class PlaylistParser:
    """Turn playlist bytes into deduplicated catalog writes.

    Entries are processed strictly in document order so the first
    occurrence of an identity always wins. The parser never commits; pass
    ``on_entry`` to commit in batches from the caller.
    """

    def __init__(
        self,
        classifier: Classifier | None = None,
        policy: DuplicatePolicy = DuplicatePolicy.SKIP,
    ) -> None:
        self.classifier = classifier or default_classifier
        self.policy = policy

    def parse(
        self,
        raw: bytes,
        store: CatalogStore,
        *,
        source_url: str = INLINE_SOURCE,
        on_entry: Callable[[ParseReport], None] | None = None,
    ) -> ParseReport:
        """Parse ``raw`` into ``store``.

        Raises ``EmptyInputError`` or ``PlaylistEncodingError`` before any
        write happens; problems inside single entries are recovered from.
        """

        reader = PlaylistReader(decode_playlist(raw))
        seen = IdentitySet()
        report = ParseReport(source_url=source_url)

        for entry in reader:
            report.entries += 1
            if entry.malformed:
                report.malformed += 1
            kind = self._classify(entry)
            if kind is EntityKind.SERIES:
                self._apply_episode(entry, store, seen, report)
            else:
                candidate = Candidate(kind=kind, title=entry.title, stream_url=entry.stream_url)
                resolution = resolve(candidate, store.find, seen, self.policy)
                self._write(kind, resolution, entry, store, report)
            if on_entry is not None:
                on_entry(report)

        report.epg_url = reader.epg_url
        cache_fields: dict[str, Any] = {
            "entry_count": report.entries,
            "last_refreshed": datetime.utcnow(),
        }
        if reader.epg_url:
            cache_fields["epg_url"] = reader.epg_url
        store.upsert_playlist_cache(source_url, **cache_fields)

        logger.info(
            "Parsed %d entries from %s: %d created, %d skipped, %d updated, %d malformed",
            report.entries,
            source_url,
            report.created_total,
            report.skipped_total,
            report.updated_total,
            report.malformed,
        )
        return report

    def _classify(self, entry: PlaylistEntry) -> EntityKind:
        try:
            return EntityKind(self.classifier(entry.group_title, entry.title))
        except Exception:
            logger.exception(
                "Classifier failed for line %d, treating entry as a channel", entry.line_number
            )
            return EntityKind.CHANNEL

    def _write(
        self,
        kind: EntityKind,
        resolution: Resolution,
        entry: PlaylistEntry,
        store: CatalogStore,
        report: ParseReport,
    ) -> CatalogEntityBase | None:
        if resolution.outcome is Outcome.INSERT:
            record, created = store.create_or_find(
                kind,
                resolution.identity_key,
                title=entry.title,
                logo_url=entry.logo_url,
                group_title=entry.group_title,
                tvg_id=entry.tvg_id,
                stream_url=entry.stream_url,
            )
            (report.created if created else report.skipped)[kind.value] += 1
            return record
        if resolution.outcome is Outcome.UPDATE:
            if _refresh_metadata(store, resolution.existing, entry):
                report.updated[kind.value] += 1
            else:
                report.skipped[kind.value] += 1
            return resolution.existing
        report.skipped[kind.value] += 1
        return resolution.existing

    def _apply_episode(
        self,
        entry: PlaylistEntry,
        store: CatalogStore,
        seen: IdentitySet,
        report: ParseReport,
    ) -> None:
        marker = split_episode(entry.title)
        series_candidate = Candidate(kind=EntityKind.SERIES, title=marker.series_title)
        series_resolution = resolve(series_candidate, store.find, seen, self.policy)
        series = series_resolution.existing
        if series_resolution.outcome is Outcome.UPDATE:
            if _refresh_metadata(store, series, entry):
                report.updated[EntityKind.SERIES.value] += 1
        elif series is None:
            series, created = store.create_or_find(
                EntityKind.SERIES,
                series_resolution.identity_key,
                title=marker.series_title,
                logo_url=entry.logo_url,
                group_title=entry.group_title,
                tvg_id=entry.tvg_id,
            )
            if created:
                report.created[EntityKind.SERIES.value] += 1

        episode_candidate = Candidate(
            kind=EntityKind.EPISODE,
            title=entry.title,
            stream_url=entry.stream_url,
            series_key=series_resolution.identity_key,
        )
        resolution = resolve(episode_candidate, store.find, seen, self.policy)
        if resolution.outcome is not Outcome.INSERT:
            self._write(EntityKind.EPISODE, resolution, entry, store, report)
            return
        _, created = store.create_or_find(
            EntityKind.EPISODE,
            resolution.identity_key,
            title=entry.title,
            series=series,
            stream_url=entry.stream_url,
            logo_url=entry.logo_url,
            group_title=entry.group_title,
            tvg_id=entry.tvg_id,
            season_number=marker.season,
            episode_number=marker.episode,
        )
        (report.created if created else report.skipped)[EntityKind.EPISODE.value] += 1


def _refresh_metadata(store: CatalogStore, record: CatalogEntityBase, entry: PlaylistEntry) -> bool:
    changed = False
    for name in _REFRESHABLE_FIELDS:
        value = getattr(entry, name)
        if value and getattr(record, name) != value:
            store.set_field(record, name, value)
            changed = True
    return changed
