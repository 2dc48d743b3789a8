"""Identity keys and duplicate suppression for catalog writes."""
from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from ..models import EntityKind

_WHITESPACE_RE = re.compile(r"\s+")

Lookup = Callable[[EntityKind, str], Any]


class Outcome(str, Enum):
    INSERT = "insert"
    SKIP = "skip"
    UPDATE = "update"


class DuplicatePolicy(str, Enum):
    """What happens to an entry matching an entity from an earlier run."""

    SKIP = "skip"
    REFRESH_METADATA = "refresh_metadata"


def normalize_title(title: str) -> str:
    """Case and whitespace insensitive form of a display title."""

    folded = unicodedata.normalize("NFKC", title).casefold()
    return _WHITESPACE_RE.sub(" ", folded).strip()


def episode_key(series_key: str, stream_url: str) -> str:
    return f"{series_key}|{stream_url.strip()}"


@dataclass(slots=True)
class Candidate:
    """An entity about to be written, reduced to what identity needs."""

    kind: EntityKind
    title: str
    stream_url: str | None = None
    series_key: str | None = None

    def identity_key(self) -> str:
        if self.kind is EntityKind.EPISODE:
            if self.series_key is None or not self.stream_url:
                raise ValueError("Episode identity needs a series key and a stream URL")
            return episode_key(self.series_key, self.stream_url)
        return normalize_title(self.title)


@dataclass(slots=True)
class IdentitySet:
    """Identity keys resolved during one parse call."""

    _keys: set[tuple[EntityKind, str]] = field(default_factory=set)

    def __contains__(self, item: tuple[EntityKind, str]) -> bool:
        return item in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def add(self, kind: EntityKind, key: str) -> None:
        self._keys.add((kind, key))


@dataclass(slots=True)
class Resolution:
    outcome: Outcome
    identity_key: str
    existing: Any = None


def resolve(
    candidate: Candidate,
    lookup: Lookup,
    seen: IdentitySet,
    policy: DuplicatePolicy = DuplicatePolicy.SKIP,
) -> Resolution:
    """Decide whether a candidate is inserted, skipped or refreshes an entity.

    The first occurrence of an identity key wins. Entries repeated within
    the current run are always skipped; an entity that predates the run is
    skipped too unless ``policy`` allows refreshing its metadata.
    """

    key = candidate.identity_key()
    already_seen = (candidate.kind, key) in seen
    existing = lookup(candidate.kind, key)
    seen.add(candidate.kind, key)

    if existing is None:
        if already_seen:
            # Written earlier in this run but not visible to the lookup yet.
            return Resolution(Outcome.SKIP, key)
        return Resolution(Outcome.INSERT, key)
    if not already_seen and policy is DuplicatePolicy.REFRESH_METADATA:
        return Resolution(Outcome.UPDATE, key, existing)
    return Resolution(Outcome.SKIP, key, existing)
