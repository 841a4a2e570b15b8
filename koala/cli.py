"""Command line interface for the koala counseling server."""

from __future__ import annotations

import json
import logging
import mimetypes
from contextlib import contextmanager
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterator, Optional

import httpx
import typer
from rich.console import Console
from rich.table import Table

from . import config as config_mod
from .config import ConfigError
from .simulation import SimulationGenerator
from .storage import PAGE_SIZE, Storage, StorageError

app = typer.Typer(add_completion=False, help="Counseling voice intake server and client.")


def _format_timestamp(value: Optional[str]) -> str:
    if not value:
        return "-"
    try:
        return datetime.fromisoformat(value).strftime("%Y-%m-%d %H:%M")
    except ValueError:
        return value


def _report_http_error(exc: httpx.HTTPError) -> None:
    detail = str(exc)
    status_text = ""
    if isinstance(exc, httpx.RequestError):
        status_text = f"{exc.request.method} {exc.request.url}"
    if isinstance(exc, httpx.HTTPStatusError):
        response = exc.response
        status_text = f"{response.status_code} {response.request.method} {response.request.url}"
        try:
            payload = response.json()
            detail = payload.get("error", detail)
        except ValueError:
            detail = response.text or detail
    typer.secho(f"Request to API failed ({status_text}): {detail}", fg=typer.colors.RED, err=True)


def _load_config() -> config_mod.Config:
    try:
        return config_mod.resolve_config()
    except ConfigError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc


@contextmanager
def _api_client(cfg: config_mod.Config) -> Iterator[httpx.Client]:
    base_url = (cfg.server_url or f"http://127.0.0.1:{cfg.port}").rstrip("/")
    with httpx.Client(base_url=base_url, timeout=cfg.api_timeout) as client:
        yield client


def _get_json(path: str, **params: object) -> dict:
    cfg = _load_config()
    try:
        with _api_client(cfg) as client:
            response = client.get(path, params=params or None)
            response.raise_for_status()
    except httpx.HTTPError as exc:
        _report_http_error(exc)
        raise typer.Exit(code=1) from exc
    return response.json()


def _print_usage(usage: dict) -> None:
    speech = usage.get("speech", {})
    translate = usage.get("translate", {})
    typer.echo(f"Date: {usage.get('date', '-')}")
    typer.echo(f"Speech: {speech.get('used', 0)} / {speech.get('limit', '-')} minutes")
    typer.echo(f"Translate: {translate.get('used', 0)} / {translate.get('limit', '-')} characters")


def _print_records(rows: list) -> None:
    table = Table("Date", "Student", "Mood", "Language", "Priority", "Translated")
    for row in rows:
        priority = row["priority"]
        table.add_row(
            _format_timestamp(row["date"]),
            row["student"],
            row["mood"],
            row["language"],
            f"[red]{priority}[/red]" if priority == "high" else priority,
            row["translatedText"],
        )
    Console().print(table)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Interface to bind (defaults to config)."),
    port: Optional[int] = typer.Option(None, help="Port to listen on (defaults to config or $PORT)."),
    log_level: str = typer.Option("info", help="Logging level."),
) -> None:
    """Run the HTTP API."""

    import uvicorn

    cfg = _load_config()
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "koala.api:create_app",
        factory=True,
        host=host or cfg.host,
        port=port or cfg.port,
        log_level=log_level.lower(),
    )


@app.command()
def process(
    audio: Path = typer.Argument(..., exists=True, readable=True, help="Path to the recording."),
    student: str = typer.Option(..., "--student", help="Student name."),
    mood: str = typer.Option("", "--mood", help="Mood emoji picked on the form."),
    language: str = typer.Option("korean", "--language", help="Language spoken in the recording."),
) -> None:
    """Upload a recording to the server for transcription."""

    cfg = _load_config()
    mime_type = mimetypes.guess_type(audio.name)[0] or "audio/wav"
    try:
        with _api_client(cfg) as client, audio.open("rb") as fh:
            response = client.post(
                "/api/process-audio",
                data={"student": student, "mood": mood, "language": language},
                files={"audio": (audio.name, fh, mime_type)},
            )
            response.raise_for_status()
    except httpx.HTTPError as exc:
        _report_http_error(exc)
        raise typer.Exit(code=1) from exc

    data = response.json().get("data", {})
    typer.secho(f"Mode: {data.get('mode')}  Priority: {data.get('priority')}", fg=typer.colors.BLUE)
    typer.echo("\nOriginal:\n" + data.get("originalText", ""))
    typer.secho("\nTranslated:\n" + data.get("translatedText", ""), fg=typer.colors.GREEN)


@app.command()
def records(
    page: int = typer.Option(1, "--page", min=1, help="Page number (20 records per page)."),
    offline: bool = typer.Option(False, "--offline", help="Read the local database instead of the server."),
) -> None:
    """List stored counseling records, newest first."""

    if offline:
        cfg = _load_config()
        try:
            storage = Storage(config_mod.database_path(cfg))
            rows = [
                {
                    "date": record.created_at.isoformat(),
                    "student": record.student,
                    "mood": record.mood,
                    "language": record.language,
                    "priority": record.priority.value,
                    "translatedText": record.translated_text,
                }
                for record in storage.list_records(page, PAGE_SIZE)
            ]
        except StorageError as exc:
            typer.secho(str(exc), fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1) from exc
    else:
        rows = _get_json("/api/records", page=page).get("data", [])

    if not rows:
        typer.echo("No records found.")
        return
    _print_records(rows)


@app.command()
def usage() -> None:
    """Show today's AI quota consumption on the server."""

    _print_usage(_get_json("/api/usage").get("data", {}))


@app.command()
def health() -> None:
    """Check connectivity to the configured server."""

    payload = _get_json("/api/health")
    typer.echo(f"Status: {payload.get('status', 'unknown')}")
    typer.echo(f"Mode: {payload.get('mode', 'unknown')}")
    _print_usage(payload.get("usage", {}))


@app.command()
def simulate(
    student: str = typer.Option(..., "--student", help="Student name."),
    mood: str = typer.Option("", "--mood", help="Mood emoji."),
    language: str = typer.Option("korean", "--language", help="Language of the simulated speaker."),
) -> None:
    """Print the simulated transcript used when AI processing is unavailable."""

    result = SimulationGenerator().generate(student, mood, language)
    typer.echo(result.original)
    typer.secho(result.translated, fg=typer.colors.GREEN)


@app.command()
def config(
    google_credentials: Optional[str] = typer.Option(None, help="Path to a Google service account JSON key."),
    target_language: Optional[str] = typer.Option(None, help="Language code transcripts are translated into."),
    speech_encoding: Optional[str] = typer.Option(None, help="Recognition encoding name, e.g. LINEAR16."),
    ai_timeout: Optional[float] = typer.Option(None, help="Seconds to wait for each AI provider call."),
    db_path: Optional[str] = typer.Option(None, help="Location of the record database."),
    port: Optional[int] = typer.Option(None, help="Port for `koala serve`."),
    server_url: Optional[str] = typer.Option(None, help="Base URL used by client commands."),
    api_timeout: Optional[float] = typer.Option(None, help="HTTP client timeout (seconds) for API calls."),
    show: bool = typer.Option(False, "--show", help="Display the active configuration."),
) -> None:
    """Update or inspect configuration settings."""

    updates: Dict[str, object] = {
        key: value
        for key, value in {
            "google_credentials": google_credentials,
            "target_language": target_language,
            "speech_encoding": speech_encoding,
            "ai_timeout": ai_timeout,
            "db_path": db_path,
            "port": port,
            "server_url": server_url,
            "api_timeout": api_timeout,
        }.items()
        if value is not None
    }

    if show or not updates:
        cfg = _load_config()
        typer.echo(json.dumps(asdict(cfg), indent=2, default=str))
        return

    try:
        config_mod.update_config(**updates)
    except ConfigError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    typer.secho("Configuration updated.", fg=typer.colors.BLUE)


@app.command()
def setup() -> None:
    """Run the interactive setup wizard."""

    from .onboarding import run_onboarding

    try:
        run_onboarding()
    except ConfigError as exc:
        typer.secho(f"Setup failed: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc


if __name__ == "__main__":  # pragma: no cover
    app()
