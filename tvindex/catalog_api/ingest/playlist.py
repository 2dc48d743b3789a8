"""Line grammar for extended M3U playlists.

The reader is deliberately forgiving: a broken ``#EXTINF`` line never stops
iteration. When a token is not a quoted ``key="value"`` pair the entry is
flagged malformed, the remaining quoted pairs before the display-name comma
are still collected and the rest of the line is used as the display name,
so every URL line still produces an entry.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterator

from ..errors import EmptyInputError, MalformedEntryError, PlaylistEncodingError

logger = logging.getLogger(__name__)

EXTM3U = "#EXTM3U"
EXTINF = "#EXTINF:"
EXTGRP = "#EXTGRP:"
UNKNOWN_TITLE = "Unknown"

_ATTRIBUTE_RE = re.compile(r"""([A-Za-z0-9_-]+)=(?:"([^"]*)"|'([^']*)')""")
_HEADER_EPG_RE = re.compile(
    r"""(?:url-tvg|x-tvg-url)=(?:"([^"]*)"|'([^']*)'|([^\s"']+))""",
    re.IGNORECASE,
)
_DURATION_RE = re.compile(r"\s*(-?\d+(?:\.\d+)?)?")
_KEY_PREFIX_RE = re.compile(r"^[A-Za-z0-9_-]+=")


@dataclass(slots=True)
class ExtInf:
    """Metadata carried by one ``#EXTINF`` directive."""

    duration: float | None = None
    attributes: dict[str, str] = field(default_factory=dict)
    display_name: str | None = None
    fallback_name: str | None = None
    malformed: bool = False


@dataclass(slots=True)
class PlaylistEntry:
    """A metadata line paired with its stream URL."""

    title: str
    stream_url: str
    line_number: int
    duration: float | None = None
    tvg_id: str | None = None
    tvg_name: str | None = None
    logo_url: str | None = None
    group_title: str | None = None
    malformed: bool = False


def decode_playlist(raw: bytes) -> str:
    """Decode playlist bytes, raising the document-level parse errors."""

    if not raw:
        raise EmptyInputError()
    try:
        return bytes(raw).decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise PlaylistEncodingError(str(exc)) from exc


def parse_header(line: str) -> str | None:
    """Return the EPG URL declared on an ``#EXTM3U`` line, if any."""

    match = _HEADER_EPG_RE.search(line)
    if match is None:
        return None
    value = next((group for group in match.groups() if group is not None), "")
    return value.strip() or None


def parse_extinf(line: str) -> ExtInf:
    """Parse an ``#EXTINF`` line without ever raising."""

    body = line[len(EXTINF):]
    duration_match = _DURATION_RE.match(body)
    duration: float | None = None
    if duration_match and duration_match.group(1):
        duration = float(duration_match.group(1))
    rest = body[duration_match.end():] if duration_match else body

    info = ExtInf(duration=duration)
    try:
        info.display_name = _scan_attributes(rest, info.attributes)
    except MalformedEntryError as exc:
        logger.warning("Recovering from malformed playlist entry: %s", exc)
        info.malformed = True
        remainder = rest[exc.position:]
        section = _attribute_section(remainder)
        for match in _ATTRIBUTE_RE.finditer(section):
            info.attributes.setdefault(match.group(1).lower(), _attribute_value(match))
        if len(section) < len(remainder):
            info.display_name = _clean_name(remainder[len(section) + 1:])
        else:
            info.fallback_name = _clean_name(_KEY_PREFIX_RE.sub("", remainder.strip(), count=1))
    return info


def _scan_attributes(text: str, attributes: dict[str, str]) -> str | None:
    """Collect quoted attributes and return the text after the first comma."""

    position = 0
    while position < len(text):
        char = text[position]
        if char.isspace():
            position += 1
            continue
        if char == ",":
            return text[position + 1:].strip() or None
        match = _ATTRIBUTE_RE.match(text, position)
        if match is None:
            raise MalformedEntryError(text, position)
        attributes[match.group(1).lower()] = _attribute_value(match)
        position = match.end()
    return None


def _attribute_value(match: re.Match[str]) -> str:
    value = match.group(2) if match.group(2) is not None else match.group(3)
    return value.strip()


def _attribute_section(text: str) -> str:
    """Return ``text`` up to the first comma outside a quoted value."""

    quote: str | None = None
    for index, char in enumerate(text):
        if quote is not None:
            if char == quote:
                quote = None
        elif char in "\"'" and index and text[index - 1] == "=":
            quote = char
        elif char == ",":
            return text[:index]
    if quote is not None:
        # Unterminated quote: the first comma still ends the attributes.
        index = text.find(",")
        if index >= 0:
            return text[:index]
    return text


def _clean_name(name: str) -> str | None:
    name = name.strip().strip("\"'").strip()
    return name or None


class PlaylistReader:
    """Iterate the entries of a decoded playlist document.

    ``epg_url`` is filled in as soon as a header line carrying one has been
    read; the first declaration wins.
    """

    def __init__(self, text: str) -> None:
        self._text = text
        self.epg_url: str | None = None

    def __iter__(self) -> Iterator[PlaylistEntry]:
        pending: ExtInf | None = None
        pending_line = 0
        pending_group: str | None = None

        for number, raw_line in enumerate(self._text.splitlines(), start=1):
            line = raw_line.strip()
            if not line:
                continue
            upper = line.upper()
            if upper.startswith(EXTM3U):
                if self.epg_url is None:
                    self.epg_url = parse_header(line)
                continue
            if upper.startswith(EXTINF):
                if pending is not None:
                    logger.debug("Dropping #EXTINF on line %d without a stream URL", pending_line)
                pending = parse_extinf(line)
                pending_line = number
                pending_group = None
                continue
            if upper.startswith(EXTGRP):
                pending_group = line[len(EXTGRP):].strip() or None
                continue
            if line.startswith("#"):
                continue

            yield _build_entry(line, pending, pending_group, pending_line or number)
            pending = None
            pending_line = 0
            pending_group = None


def _build_entry(
    url: str, info: ExtInf | None, group: str | None, line_number: int
) -> PlaylistEntry:
    if info is None:
        logger.warning("Stream URL on line %d has no #EXTINF metadata", line_number)
        return PlaylistEntry(
            title=UNKNOWN_TITLE,
            stream_url=url,
            line_number=line_number,
            group_title=group,
            malformed=True,
        )

    attributes = info.attributes
    tvg_name = attributes.get("tvg-name") or None
    title = info.display_name or tvg_name or info.fallback_name or UNKNOWN_TITLE
    return PlaylistEntry(
        title=title,
        stream_url=url,
        line_number=line_number,
        duration=info.duration,
        tvg_id=attributes.get("tvg-id") or None,
        tvg_name=tvg_name,
        logo_url=attributes.get("tvg-logo") or None,
        group_title=attributes.get("group-title") or group,
        malformed=info.malformed,
    )
