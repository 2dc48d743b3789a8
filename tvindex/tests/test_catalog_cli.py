"""Tests for the Typer-based catalog CLI."""
from __future__ import annotations

import importlib
import json
import sys
from pathlib import Path
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient
from rq.worker import SimpleWorker
from typer.testing import CliRunner

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from tvindex.catalog_api import create_app  # noqa: E402
from tvindex.catalog_api.settings import CatalogSettings  # noqa: E402
from tvindex.catalog_cli import app as cli_app  # noqa: E402

cli_app_module = importlib.import_module("tvindex.catalog_cli.app")

PLAYLIST = b"""#EXTM3U
#EXTINF:-1 group-title="News",News 24
http://live.example/news24
#EXTINF:0 group-title="Movies",The Matrix
http://vod.example/matrix.mp4
#EXTINF:0 group-title="Series",Dark S01E01
http://vod.example/dark-101.mp4
"""


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def cli_client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> TestClient:
    """Provide a TestClient and patch the CLI HTTP client factory."""

    settings = CatalogSettings(
        database_url=f"sqlite:///{tmp_path / 'catalog.db'}",
        redis_url="fakeredis://",
    )
    app = create_app(settings=settings)
    test_client = TestClient(app)

    def _factory(base_url: str, *, timeout: float = 30.0, transport: Any = None):  # type: ignore[override]
        return test_client

    monkeypatch.setattr(cli_app_module, "create_client", _factory)
    return test_client


@pytest.fixture()
def playlist_file(tmp_path: Path) -> Path:
    path = tmp_path / "playlist.m3u"
    path.write_bytes(PLAYLIST)
    return path


def drain_jobs(client: TestClient) -> None:
    """Process queued jobs for CLI-oriented tests."""

    app_state = client.app.state.app_state
    worker = SimpleWorker([app_state.job_queue.queue], connection=app_state.job_queue.connection)
    worker.work(burst=True)


def test_health_command_outputs_payload(runner: CliRunner, cli_client: TestClient) -> None:
    result = runner.invoke(cli_app, ["health"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["status"] == "ok"
    assert payload["search_index_ready"] is True


def test_ingest_file_then_search(
    runner: CliRunner, cli_client: TestClient, playlist_file: Path
) -> None:
    """ingest-file uploads the playlist and search prints ranked hits."""

    result = runner.invoke(cli_app, ["ingest-file", str(playlist_file)])

    assert result.exit_code == 0
    report = json.loads(result.stdout)
    assert report["source_url"] == playlist_file.resolve().as_uri()
    assert report["created"] == {"channel": 1, "movie": 1, "series": 1, "episode": 1}

    search = runner.invoke(cli_app, ["search", "matri"])
    assert search.exit_code == 0
    assert [hit["title"] for hit in json.loads(search.stdout)] == ["The Matrix"]


def test_ingest_file_rejects_empty_playlist(
    runner: CliRunner, cli_client: TestClient, tmp_path: Path
) -> None:
    empty = tmp_path / "empty.m3u"
    empty.write_bytes(b"")

    result = runner.invoke(cli_app, ["ingest-file", str(empty)])

    assert result.exit_code == 1
    assert "Playlist rejected" in result.output


def test_ingest_command_enqueues_job(
    runner: CliRunner, cli_client: TestClient, playlist_file: Path
) -> None:
    result = runner.invoke(cli_app, ["ingest", str(playlist_file), "--force"])

    assert result.exit_code == 0
    job = json.loads(result.stdout)
    assert job["status"] == "queued"
    assert job["force"] is True

    drain_jobs(cli_client)

    show = runner.invoke(cli_app, ["jobs", "show", job["id"]])
    assert show.exit_code == 0
    assert json.loads(show.stdout)["status"] == "completed"

    logs = runner.invoke(cli_app, ["jobs", "logs", job["id"], "--limit", "10"])
    assert logs.exit_code == 0
    assert json.loads(logs.stdout)[-1]["message"] == "Ingestion completed"

    listing = runner.invoke(cli_app, ["jobs", "list", "--status", "completed"])
    assert [item["id"] for item in json.loads(listing.stdout)] == [job["id"]]

    metrics = runner.invoke(cli_app, ["jobs", "metrics"])
    assert json.loads(metrics.stdout)["status_counts"] == {"completed": 1}


def test_jobs_list_rejects_unknown_status(runner: CliRunner, cli_client: TestClient) -> None:
    result = runner.invoke(cli_app, ["jobs", "list", "--status", "paused"])

    assert result.exit_code == 1
    assert "Invalid status value" in result.output


def test_jobs_cancel_and_missing_job(
    runner: CliRunner, cli_client: TestClient, playlist_file: Path
) -> None:
    job = json.loads(runner.invoke(cli_app, ["ingest", str(playlist_file)]).stdout)

    cancelled = runner.invoke(cli_app, ["jobs", "cancel", job["id"], "--reason", "not needed"])
    assert cancelled.exit_code == 0
    assert json.loads(cancelled.stdout)["status"] == "cancelled"

    missing = runner.invoke(cli_app, ["jobs", "show", "does-not-exist"])
    assert missing.exit_code == 1
    assert "Job not found" in missing.output


def test_index_commands(runner: CliRunner, cli_client: TestClient, playlist_file: Path) -> None:
    runner.invoke(cli_app, ["ingest-file", str(playlist_file)])

    setup = runner.invoke(cli_app, ["index", "setup"])
    assert setup.exit_code == 0
    assert json.loads(setup.stdout)["created"] is False

    rebuild = runner.invoke(cli_app, ["index", "rebuild"])
    assert rebuild.exit_code == 0
    assert json.loads(rebuild.stdout)["documents"] == 4


def test_catalog_commands(runner: CliRunner, cli_client: TestClient, playlist_file: Path) -> None:
    runner.invoke(cli_app, ["ingest-file", str(playlist_file)])

    metrics = json.loads(runner.invoke(cli_app, ["catalog", "metrics"]).stdout)
    assert metrics["movie"] == 1
    assert metrics["playlists"] == 1

    playlists = json.loads(runner.invoke(cli_app, ["catalog", "playlists"]).stdout)
    assert playlists[0]["entry_count"] == 3

    hits = json.loads(runner.invoke(cli_app, ["search", "dark"]).stdout)
    series_id = next(hit["entity_id"] for hit in hits if hit["entity_type"] == "series")

    show = runner.invoke(cli_app, ["catalog", "show", "series", str(series_id)])
    assert show.exit_code == 0
    assert json.loads(show.stdout)["episode_count"] == 1

    deleted = runner.invoke(cli_app, ["catalog", "delete", "series", str(series_id)])
    assert deleted.exit_code == 0
    assert f"Deleted series {series_id}" in deleted.stdout

    gone = runner.invoke(cli_app, ["catalog", "show", "series", str(series_id)])
    assert gone.exit_code == 1
    assert "Series not found" in gone.output

    invalid = runner.invoke(cli_app, ["catalog", "show", "podcast", "1"])
    assert invalid.exit_code == 1
    assert "Invalid kind" in invalid.output


def test_create_client_targets_api_base() -> None:
    seen: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"status": "ok"})

    with cli_app_module.create_client(
        "http://catalog.local:8000/", transport=httpx.MockTransport(_handler)
    ) as client:
        client.get("/health")

    assert str(seen[0].url) == "http://catalog.local:8000/health"
    assert seen[0].headers["User-Agent"] == cli_app_module.USER_AGENT
