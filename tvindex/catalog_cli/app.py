"""Command line interface for the tvindex catalog API."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, List, Optional

import httpx
import typer


DEFAULT_API_BASE = "http://localhost:8000"
USER_AGENT = "tvindex-cli/0.1.0"

app = typer.Typer(help="Interact with the tvindex catalog service.")
jobs_app = typer.Typer(help="Inspect and cancel ingestion jobs.")
app.add_typer(jobs_app, name="jobs")
index_app = typer.Typer(help="Manage the full-text search index.")
app.add_typer(index_app, name="index")
catalog_app = typer.Typer(help="Browse catalog entities.")
app.add_typer(catalog_app, name="catalog")


JOB_STATUS_CHOICES = {"queued", "running", "completed", "failed", "cancelled"}
ENTITY_KINDS = ("channel", "movie", "series", "episode")


def create_client(
    base_url: str, *, timeout: float = 30.0, transport: httpx.BaseTransport | None = None
) -> httpx.Client:
    """Open an HTTP client against the catalog API at ``base_url``."""

    return httpx.Client(
        base_url=base_url.rstrip("/"),
        timeout=timeout,
        transport=transport,
        headers={"User-Agent": USER_AGENT},
    )


def _api_base_option() -> typer.Option:
    return typer.Option(
        DEFAULT_API_BASE,
        "--api-base",
        help="Base URL for the catalog API service.",
        show_default=True,
        envvar="TVINDEX_API_BASE",
    )


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


def _fail(message: str) -> None:
    typer.echo(message, err=True)
    raise typer.Exit(code=1)


def _detail(response: httpx.Response) -> str:
    try:
        return str(response.json().get("detail", response.text))
    except ValueError:
        return response.text


def _check_kind(kind: str) -> str:
    value = kind.lower()
    if value not in ENTITY_KINDS:
        _fail("Invalid kind. Allowed values: " + ", ".join(ENTITY_KINDS))
    return value


@app.command()
def health(api_base: str = _api_base_option()) -> None:
    """Call the /health endpoint and pretty-print the response."""

    with create_client(api_base) as client:
        response = client.get("/health")
        response.raise_for_status()
        _echo_json(response.json())


@app.command()
def ingest(
    source_url: str = typer.Argument(..., help="Playlist URL or path readable by the worker."),
    force: bool = typer.Option(
        False,
        "--force/--no-force",
        help="Parse even if the playlist content did not change.",
        show_default=True,
    ),
    api_base: str = _api_base_option(),
) -> None:
    """Queue a playlist for background ingestion."""

    with create_client(api_base) as client:
        response = client.post("/ingest", json={"source_url": source_url, "force": force})
        if response.status_code == 503:
            _fail(f"Queue unavailable: {_detail(response)}")
        response.raise_for_status()
        _echo_json(response.json())


@app.command("ingest-file")
def ingest_file(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Local playlist file."),
    source_url: Optional[str] = typer.Option(
        None,
        "--source-url",
        help="Identifier recorded for the playlist; defaults to the file URI.",
    ),
    force: bool = typer.Option(
        True,
        "--force/--no-force",
        help="Parse even if the playlist content did not change.",
        show_default=True,
    ),
    api_base: str = _api_base_option(),
) -> None:
    """Upload a local playlist and parse it immediately."""

    params = {
        "source_url": source_url or path.resolve().as_uri(),
        "force": force,
    }
    with create_client(api_base) as client:
        response = client.post(
            "/ingest/raw",
            params=params,
            content=path.read_bytes(),
            headers={"Content-Type": "audio/x-mpegurl"},
        )
        if response.status_code == 400:
            _fail(f"Playlist rejected: {_detail(response)}")
        response.raise_for_status()
        _echo_json(response.json())


@app.command()
def search(
    query: str = typer.Argument(..., help="Free text; words are matched as prefixes."),
    limit: Optional[int] = typer.Option(None, min=0, max=500, help="Maximum number of results."),
    api_base: str = _api_base_option(),
) -> None:
    """Search the catalog and print ranked results."""

    params: dict[str, object] = {"q": query}
    if limit is not None:
        params["limit"] = limit

    with create_client(api_base) as client:
        response = client.get("/search", params=params)
        if response.status_code == 503:
            _fail(f"Search unavailable: {_detail(response)}")
        response.raise_for_status()
        _echo_json(response.json())


@jobs_app.command("list")
def list_jobs(
    limit: int = typer.Option(10, min=1, max=100, help="Number of recent jobs to display."),
    statuses: Optional[List[str]] = typer.Option(
        None,
        "--status",
        help="Filter results to specific job statuses (repeat the flag).",
    ),
    source_url: Optional[str] = typer.Option(
        None,
        "--source-url",
        help="Filter results to a single playlist source.",
    ),
    api_base: str = _api_base_option(),
) -> None:
    """Display recent ingestion jobs."""

    params: dict[str, object] = {"limit": limit}
    if statuses:
        normalized_statuses: list[str] = []
        for status in statuses:
            value = status.lower()
            if value not in JOB_STATUS_CHOICES:
                _fail(
                    "Invalid status value. Allowed values: "
                    + ", ".join(sorted(JOB_STATUS_CHOICES))
                )
            normalized_statuses.append(value)
        params["status"] = normalized_statuses
    if source_url:
        params["source_url"] = source_url

    with create_client(api_base) as client:
        response = client.get("/jobs", params=params)
        response.raise_for_status()
        _echo_json(response.json())


@jobs_app.command("show")
def show_job(
    job_id: str = typer.Argument(..., help="Identifier of the job to display."),
    api_base: str = _api_base_option(),
) -> None:
    """Display details for a single job."""

    with create_client(api_base) as client:
        response = client.get(f"/jobs/{job_id}")
        if response.status_code == 404:
            _fail("Job not found")
        response.raise_for_status()
        _echo_json(response.json())


@jobs_app.command("cancel")
def cancel_job(
    job_id: str = typer.Argument(..., help="Identifier of the job to cancel."),
    reason: Optional[str] = typer.Option(
        None,
        "--reason",
        help="Optional reason recorded with the cancellation.",
    ),
    api_base: str = _api_base_option(),
) -> None:
    """Cancel a queued or running ingestion job."""

    with create_client(api_base) as client:
        if reason is None:
            response = client.post(f"/jobs/{job_id}/cancel")
        else:
            response = client.post(f"/jobs/{job_id}/cancel", json={"reason": reason})
        if response.status_code == 404:
            _fail("Job not found")
        response.raise_for_status()
        _echo_json(response.json())


@jobs_app.command("logs")
def job_logs(
    job_id: str = typer.Argument(..., help="Identifier of the job to inspect."),
    limit: int = typer.Option(50, min=1, max=500, help="Maximum number of log entries."),
    api_base: str = _api_base_option(),
) -> None:
    """Display persisted log events for a job."""

    with create_client(api_base) as client:
        response = client.get(f"/jobs/{job_id}/logs", params={"limit": limit})
        if response.status_code == 404:
            _fail("Job not found")
        response.raise_for_status()
        _echo_json(response.json())


@jobs_app.command("metrics")
def job_metrics(api_base: str = _api_base_option()) -> None:
    """Display aggregate ingestion job statistics."""

    with create_client(api_base) as client:
        response = client.get("/jobs/metrics")
        response.raise_for_status()
        _echo_json(response.json())


@index_app.command("setup")
def index_setup(api_base: str = _api_base_option()) -> None:
    """Create the search index if it does not exist."""

    with create_client(api_base) as client:
        response = client.post("/search/index")
        if response.status_code == 503:
            _fail(f"Index setup failed: {_detail(response)}")
        response.raise_for_status()
        _echo_json(response.json())


@index_app.command("rebuild")
def index_rebuild(api_base: str = _api_base_option()) -> None:
    """Rebuild every search document from the catalog."""

    with create_client(api_base) as client:
        response = client.post("/search/index/rebuild")
        if response.status_code == 503:
            _fail(f"Index rebuild failed: {_detail(response)}")
        response.raise_for_status()
        _echo_json(response.json())


@catalog_app.command("metrics")
def catalog_metrics(api_base: str = _api_base_option()) -> None:
    """Display entity counts per kind."""

    with create_client(api_base) as client:
        response = client.get("/catalog/metrics")
        response.raise_for_status()
        _echo_json(response.json())


@catalog_app.command("playlists")
def catalog_playlists(api_base: str = _api_base_option()) -> None:
    """List ingested playlist sources."""

    with create_client(api_base) as client:
        response = client.get("/catalog/playlists")
        response.raise_for_status()
        _echo_json(response.json())


@catalog_app.command("show")
def show_entity(
    kind: str = typer.Argument(..., help="Entity kind: channel, movie, series or episode."),
    entity_id: int = typer.Argument(..., help="Entity identifier."),
    api_base: str = _api_base_option(),
) -> None:
    """Display a single catalog entity."""

    kind = _check_kind(kind)
    with create_client(api_base) as client:
        response = client.get(f"/catalog/{kind}/{entity_id}")
        if response.status_code == 404:
            _fail(f"{kind.capitalize()} not found")
        response.raise_for_status()
        _echo_json(response.json())


@catalog_app.command("delete")
def delete_entity(
    kind: str = typer.Argument(..., help="Entity kind: channel, movie, series or episode."),
    entity_id: int = typer.Argument(..., help="Entity identifier."),
    api_base: str = _api_base_option(),
) -> None:
    """Delete a catalog entity; series deletions include their episodes."""

    kind = _check_kind(kind)
    with create_client(api_base) as client:
        response = client.delete(f"/catalog/{kind}/{entity_id}")
        if response.status_code == 404:
            _fail(f"{kind.capitalize()} not found")
        response.raise_for_status()
        typer.echo(f"Deleted {kind} {entity_id}")
