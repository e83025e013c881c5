"""
Command line interface for the clinical ingestion pipeline.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import typer
from pydantic import ValidationError

from clinical_ingestion.config import Settings, load_settings
from clinical_ingestion.services.logging import configure_logging, stop_logging
from clinical_ingestion.workflow.discovery import RunFilters
from clinical_ingestion.workflow.orchestrator import run_ingestion

app = typer.Typer(
    name="clinical-ingest",
    help="Upload project clinical instrument CSVs to LORIS",
)

_SECRET_FIELDS = {"loris_password", "smtp_password"}


@app.command()
def run(
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        exists=False,
        help="YAML settings file describing collections and LORIS access.",
    ),
    run_all: bool = typer.Option(
        False,
        "--all",
        help="Process every enabled collection and project.",
    ),
    collection: Optional[str] = typer.Option(
        None,
        "--collection",
        help="Only process projects of this collection.",
    ),
    project: Optional[str] = typer.Option(
        None,
        "--project",
        help="Only process this project.",
    ),
    instrument: Optional[str] = typer.Option(
        None,
        "--instrument",
        help="Only process this instrument within each project.",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Validate files without uploading to LORIS.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show debug output on the console.",
    ),
) -> None:
    """Run clinical ingestion for the selected collections and projects."""

    if not (run_all or collection or project):
        raise typer.BadParameter("Select a scope with --all, --collection or --project.")

    overrides: dict[str, object] = {}
    if dry_run:
        overrides["dry_run"] = True
    if verbose:
        overrides["verbose"] = True

    settings = _load_or_exit(config_path, overrides or None)

    configure_logging(
        log_dir=settings.log_dir,
        verbose=settings.verbose,
        log_to_console=settings.log_to_console,
    )
    try:
        state = run_ingestion(
            settings=settings,
            filters=RunFilters(collection=collection, project=project, instrument=instrument),
        )
    finally:
        stop_logging()
    raise typer.Exit(code=state.exit_code)


@app.command("settings")
def show_settings(
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        exists=False,
        help="YAML settings file to resolve.",
    ),
) -> None:
    """Print resolved settings for debugging."""
    settings = _load_or_exit(config_path)
    for key, value in _masked(settings).items():
        typer.echo(f"{key}: {value}")


def _load_or_exit(
    config_path: Optional[Path],
    overrides: Optional[dict[str, object]] = None,
) -> Settings:
    try:
        return load_settings(config_path, overrides=overrides)
    except (FileNotFoundError, ValueError, ValidationError) as exc:
        typer.echo(f"FATAL: could not load settings: {exc}", err=True)
        raise typer.Exit(code=1)


def _masked(settings: Settings) -> dict[str, Any]:
    dumped = settings.model_dump(mode="json")
    for key in _SECRET_FIELDS:
        if dumped.get(key):
            dumped[key] = "********"
    return dumped


def main() -> None:
    """Main entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
