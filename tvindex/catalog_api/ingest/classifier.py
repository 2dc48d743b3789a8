"""Routing of playlist entries to catalog entity kinds."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable

from ..models import EntityKind

Classifier = Callable[[str | None, str], EntityKind]

_EPISODE_MARKERS = (
    re.compile(r"^(?P<series>.*?)[\s._-]*\bS(?P<season>\d{1,3})\s*E(?P<episode>\d{1,4})\b", re.IGNORECASE),
    re.compile(r"^(?P<series>.*?)[\s._-]*\b(?P<season>\d{1,2})x(?P<episode>\d{1,3})\b", re.IGNORECASE),
)


@dataclass(slots=True)
class EpisodeMarker:
    """Series title and numbering extracted from an episode title."""

    series_title: str
    season: int | None = None
    episode: int | None = None


def split_episode(title: str) -> EpisodeMarker:
    """Split ``"Show S01E02"`` style titles into series title and numbers.

    Titles without a recognizable marker name the series as a whole.
    """

    for pattern in _EPISODE_MARKERS:
        match = pattern.search(title)
        if match is None:
            continue
        series_title = match.group("series").strip(" -_.|:")
        if not series_title:
            break
        return EpisodeMarker(
            series_title=series_title,
            season=int(match.group("season")),
            episode=int(match.group("episode")),
        )
    return EpisodeMarker(series_title=title.strip())


def has_episode_marker(title: str) -> bool:
    return any(pattern.search(title) for pattern in _EPISODE_MARKERS)


def _keyword_pattern(keywords: Iterable[str]) -> re.Pattern[str] | None:
    """Compile keywords into one case-insensitive whole-word pattern."""

    words = [re.escape(keyword.strip()) for keyword in keywords if keyword and keyword.strip()]
    if not words:
        return None
    return re.compile(r"(?<!\w)(?:" + "|".join(words) + r")(?!\w)", re.IGNORECASE)


def _matches(group: str, pattern: re.Pattern[str] | None) -> bool:
    return pattern is not None and pattern.search(group) is not None


def keyword_classifier(
    movie_keywords: Iterable[str], series_keywords: Iterable[str]
) -> Classifier:
    """Build a classifier from group-title keyword lists.

    Keywords match whole words of the group title, so "VOD" does not match
    "Vodafone". Series keywords win over movie keywords; an entry in a movie
    group whose title carries an episode marker is routed to the series path.
    """

    movie_pattern = _keyword_pattern(movie_keywords)
    series_pattern = _keyword_pattern(series_keywords)

    def classify(group_title: str | None, title: str) -> EntityKind:
        if not group_title:
            return EntityKind.CHANNEL
        group = group_title.casefold()
        if _matches(group, series_pattern):
            return EntityKind.SERIES
        if _matches(group, movie_pattern):
            if has_episode_marker(title):
                return EntityKind.SERIES
            return EntityKind.MOVIE
        return EntityKind.CHANNEL

    return classify


default_classifier: Classifier = keyword_classifier(
    ("movie", "movies", "film", "films", "vod", "cinema"),
    ("series", "shows", "tv shows", "season", "seasons"),
)
