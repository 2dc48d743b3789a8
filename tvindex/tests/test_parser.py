"""Tests for applying playlists to the catalog store."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest
from sqlalchemy.orm import sessionmaker

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from tvindex.catalog_api.db import (  # noqa: E402
    create_engine_from_settings,
    create_session_factory,
    init_database,
)
from tvindex.catalog_api.errors import EmptyInputError, PlaylistEncodingError  # noqa: E402
from tvindex.catalog_api.ingest.identity import (  # noqa: E402
    Candidate,
    DuplicatePolicy,
    IdentitySet,
    Outcome,
    resolve,
)
from tvindex.catalog_api.ingest.parser import PlaylistParser  # noqa: E402
from tvindex.catalog_api.models import EntityKind, EpisodeRecord  # noqa: E402
from tvindex.catalog_api.settings import CatalogSettings  # noqa: E402
from tvindex.catalog_api.stores.catalog_store import CatalogStore  # noqa: E402

PLAYLIST = b"""#EXTM3U url-tvg="http://epg.example/guide.xml"
#EXTINF:-1 tvg-id="news24" tvg-logo="http://img/news.png" group-title="News",News 24
http://live.example/news24-a
#EXTINF:-1 tvg-id="news24" group-title="News",news  24
http://live.example/news24-b
#EXTINF:0 group-title="Movies",Inception
http://vod.example/inception.mp4
#EXTINF:0 group-title="Series",Dark S01E01
http://vod.example/dark-101.mp4
#EXTINF:0 group-title="Series",Dark S01E02
http://vod.example/dark-102.mp4
#EXTINF:0 group-title="Series",Dark S01E02
http://vod.example/dark-102.mp4
"""


@pytest.fixture()
def session_factory(tmp_path: Path) -> sessionmaker:
    """Session factory over an isolated SQLite catalog."""

    settings = CatalogSettings(database_url=f"sqlite:///{tmp_path / 'catalog.db'}")
    engine = create_engine_from_settings(settings)
    init_database(engine)
    yield create_session_factory(engine)
    engine.dispose()


def _parse(factory: sessionmaker, raw: bytes, **kwargs):
    parser_kwargs = {key: kwargs.pop(key) for key in ("policy", "classifier") if key in kwargs}
    with factory() as session:
        store = CatalogStore(session)
        report = PlaylistParser(**parser_kwargs).parse(raw, store, **kwargs)
        store.commit()
        return report


def test_parse_builds_catalog_and_reports_outcomes(session_factory: sessionmaker) -> None:
    """Entries are routed by kind, deduplicated and counted."""

    report = _parse(session_factory, PLAYLIST, source_url="http://lists.example/all.m3u")

    assert report.entries == 6
    assert report.epg_url == "http://epg.example/guide.xml"
    assert dict(report.created) == {"channel": 1, "movie": 1, "series": 1, "episode": 2}
    assert dict(report.skipped) == {"channel": 1, "episode": 1}

    with session_factory() as session:
        store = CatalogStore(session)
        assert store.metrics() == {
            "channel": 1,
            "movie": 1,
            "series": 1,
            "episode": 2,
            "playlists": 1,
        }
        series = store.query(EntityKind.SERIES)[0]
        assert series.title == "Dark"
        assert [(ep.season_number, ep.episode_number) for ep in series.episodes] == [(1, 1), (1, 2)]
        cache = store.playlist_cache("http://lists.example/all.m3u")
        assert cache.entry_count == 6
        assert cache.epg_url == "http://epg.example/guide.xml"


def test_first_stream_url_is_retained(session_factory: sessionmaker) -> None:
    """Two entries with the same normalized title keep the first URL."""

    _parse(session_factory, PLAYLIST)

    with session_factory() as session:
        channels = CatalogStore(session).query(EntityKind.CHANNEL)
        assert len(channels) == 1
        assert channels[0].title == "News 24"
        assert channels[0].stream_url == "http://live.example/news24-a"
        assert channels[0].logo_url == "http://img/news.png"


def test_parse_is_idempotent(session_factory: sessionmaker) -> None:
    """Parsing the same document twice leaves the counts unchanged."""

    _parse(session_factory, PLAYLIST)
    with session_factory() as session:
        before = CatalogStore(session).metrics()

    second = _parse(session_factory, PLAYLIST)

    with session_factory() as session:
        assert CatalogStore(session).metrics() == before
    assert second.created_total == 0
    assert second.skipped_total == second.entries


def test_malformed_attribute_still_creates_channel(session_factory: sessionmaker) -> None:
    raw = b'#EXTM3U\n#EXTINF:-1 tvg-id="ch1" tvg-name=Channel 1\nhttp://live.example/ch1\n'

    report = _parse(session_factory, raw)

    assert report.malformed == 1
    with session_factory() as session:
        channels = CatalogStore(session).query(EntityKind.CHANNEL)
        assert [(channel.title, channel.tvg_id) for channel in channels] == [("Channel 1", "ch1")]


def test_malformed_entry_keeps_group_for_classification(session_factory: sessionmaker) -> None:
    raw = b'#EXTM3U\n#EXTINF:-1 tvg-id=ch1 group-title="Movies",The Matrix\nhttp://vod.example/matrix.mp4\n'

    report = _parse(session_factory, raw)

    assert report.malformed == 1
    assert dict(report.created) == {"movie": 1}
    with session_factory() as session:
        movies = CatalogStore(session).query(EntityKind.MOVIE)
        assert [(movie.title, movie.group_title) for movie in movies] == [("The Matrix", "Movies")]


def test_live_groups_resembling_keywords_stay_channels(session_factory: sessionmaker) -> None:
    raw = (
        b"#EXTM3U\n"
        b'#EXTINF:-1 group-title="Italy | Serie A",Sky Calcio 1\n'
        b"http://live.example/calcio1\n"
        b'#EXTINF:-1 group-title="Vodafone TV",Vodafone Sport\n'
        b"http://live.example/vodafone-sport\n"
    )

    report = _parse(session_factory, raw)

    assert dict(report.created) == {"channel": 2}
    with session_factory() as session:
        metrics = CatalogStore(session).metrics()
    assert (metrics["movie"], metrics["series"], metrics["episode"]) == (0, 0, 0)


@pytest.mark.parametrize(
    ("raw", "error"),
    [(b"", EmptyInputError), (b"#EXTM3U\n\xc3\x28 broken", PlaylistEncodingError)],
)
def test_document_errors_write_nothing(session_factory: sessionmaker, raw: bytes, error) -> None:
    with pytest.raises(error):
        _parse(session_factory, raw)

    with session_factory() as session:
        assert set(CatalogStore(session).metrics().values()) == {0}


def test_refresh_metadata_policy_updates_existing_entities(session_factory: sessionmaker) -> None:
    """The opt-in policy refreshes logo and group but never the stream URL."""

    _parse(session_factory, PLAYLIST)
    updated = (
        b"#EXTM3U\n"
        b'#EXTINF:-1 tvg-id="news24" tvg-logo="http://img/news-new.png" group-title="Headlines",News 24\n'
        b"http://live.example/news24-c\n"
        b'#EXTINF:-1 tvg-logo="http://img/other.png" group-title="Headlines",News 24\n'
        b"http://live.example/news24-d\n"
    )

    report = _parse(session_factory, updated, policy=DuplicatePolicy.REFRESH_METADATA)

    assert dict(report.updated) == {"channel": 1}
    with session_factory() as session:
        channel = CatalogStore(session).query(EntityKind.CHANNEL)[0]
        assert channel.logo_url == "http://img/news-new.png"
        assert channel.group_title == "Headlines"
        assert channel.stream_url == "http://live.example/news24-a"


def test_skip_policy_leaves_existing_entities_untouched(session_factory: sessionmaker) -> None:
    _parse(session_factory, PLAYLIST)
    updated = (
        b'#EXTM3U\n#EXTINF:-1 tvg-logo="http://img/news-new.png" group-title="Headlines",News 24\n'
        b"http://live.example/news24-c\n"
    )

    report = _parse(session_factory, updated)

    assert report.updated_total == 0
    with session_factory() as session:
        channel = CatalogStore(session).query(EntityKind.CHANNEL)[0]
        assert channel.logo_url == "http://img/news.png"


def test_classifier_errors_fall_back_to_channel(session_factory: sessionmaker) -> None:
    def broken(group_title, title):
        raise RuntimeError("boom")

    report = _parse(session_factory, PLAYLIST, classifier=broken)

    assert set(report.created) == {"channel"}


def test_on_entry_called_for_every_entry(session_factory: sessionmaker) -> None:
    seen: list[int] = []
    with session_factory() as session:
        PlaylistParser().parse(
            PLAYLIST, CatalogStore(session), on_entry=lambda report: seen.append(report.entries)
        )

    assert seen == [1, 2, 3, 4, 5, 6]


def test_series_delete_cascades_to_episodes(session_factory: sessionmaker) -> None:
    _parse(session_factory, PLAYLIST)

    with session_factory() as session:
        store = CatalogStore(session)
        series = store.query(EntityKind.SERIES)[0]
        assert store.delete(EntityKind.SERIES, series.id) is True
        store.commit()

    with session_factory() as session:
        store = CatalogStore(session)
        assert store.count(EntityKind.SERIES) == 0
        assert store.query(EntityKind.EPISODE) == []
        assert store.delete(EntityKind.SERIES, 999) is False


def test_store_rejects_read_only_and_empty_fields(session_factory: sessionmaker) -> None:
    _parse(session_factory, PLAYLIST)

    with session_factory() as session:
        store = CatalogStore(session)
        movie = store.query(EntityKind.MOVIE)[0]
        with pytest.raises(ValueError):
            store.set_field(movie, "identity_key", "other")
        with pytest.raises(ValueError):
            store.set_field(movie, "title", "   ")
        with pytest.raises(ValueError):
            store.create_or_find(EntityKind.MOVIE, "blank", title="")
        store.set_field(movie, "summary", "A heist inside dreams.")
        store.commit()
        assert store.get(EntityKind.MOVIE, movie.id).summary == "A heist inside dreams."


def test_episode_identity_depends_on_series_and_url() -> None:
    """Episodes are deduplicated by series plus stream URL, not by title."""

    seen = IdentitySet()
    lookup = lambda kind, key: None  # noqa: E731

    first = resolve(
        Candidate(EntityKind.EPISODE, "Pilot", "http://vod/1", series_key="dark"), lookup, seen
    )
    same_url = resolve(
        Candidate(EntityKind.EPISODE, "Renamed", "http://vod/1", series_key="dark"), lookup, seen
    )
    other_series = resolve(
        Candidate(EntityKind.EPISODE, "Pilot", "http://vod/1", series_key="lost"), lookup, seen
    )

    assert first.outcome is Outcome.INSERT
    assert same_url.outcome is Outcome.SKIP
    assert other_series.outcome is Outcome.INSERT
    assert first.identity_key == "dark|http://vod/1"


def test_resolve_refresh_applies_only_to_earlier_runs() -> None:
    existing = object()
    seen = IdentitySet()
    lookup = lambda kind, key: existing  # noqa: E731
    candidate = Candidate(EntityKind.MOVIE, "Heat")

    first = resolve(candidate, lookup, seen, DuplicatePolicy.REFRESH_METADATA)
    again = resolve(candidate, lookup, seen, DuplicatePolicy.REFRESH_METADATA)

    assert (first.outcome, first.existing) == (Outcome.UPDATE, existing)
    assert again.outcome is Outcome.SKIP


def test_episode_records_link_to_series(session_factory: sessionmaker) -> None:
    _parse(session_factory, PLAYLIST)

    with session_factory() as session:
        episodes = CatalogStore(session).query(EntityKind.EPISODE, EpisodeRecord.season_number == 1)
        assert {episode.series.title for episode in episodes} == {"Dark"}
        assert [episode.stream_url for episode in episodes] == [
            "http://vod.example/dark-101.mp4",
            "http://vod.example/dark-102.mp4",
        ]
