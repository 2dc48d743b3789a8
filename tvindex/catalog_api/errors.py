"""Exception hierarchy shared by ingestion and search."""
from __future__ import annotations


class ParseError(Exception):
    """Raised when a playlist document cannot be parsed at all."""


class EmptyInputError(ParseError):
    """The playlist payload contained no bytes."""

    def __init__(self) -> None:
        super().__init__("Playlist payload is empty")


class PlaylistEncodingError(ParseError):
    """The playlist payload is not valid UTF-8."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Playlist payload is not valid UTF-8: {reason}")
        self.reason = reason


class MalformedEntryError(ValueError):
    """A single playlist entry could not be read cleanly.

    Only raised inside the line grammar; the parser recovers from it and
    still creates the entry from whatever fields were extracted.
    """

    def __init__(self, line: str, position: int) -> None:
        super().__init__(f"Malformed attribute syntax at column {position}: {line!r}")
        self.line = line
        self.position = position


class PlaylistFetchError(RuntimeError):
    """Raised when a playlist source cannot be downloaded or read."""


class SearchIndexError(RuntimeError):
    """Base class for search index failures."""


class IndexSetupError(SearchIndexError):
    """Creating or rebuilding the search index failed; the call may be retried."""


class SearchUnavailableError(SearchIndexError):
    """The search index has not been created yet."""


class IngestCancelledError(RuntimeError):
    """Raised between commit batches when the running job was cancelled."""
