"""Playlist grammar, classification, identity and parsing."""

from .identity import DuplicatePolicy
from .parser import INLINE_SOURCE, ParseReport, PlaylistParser

__all__ = ["DuplicatePolicy", "INLINE_SOURCE", "ParseReport", "PlaylistParser"]
