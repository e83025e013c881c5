"""Run controller for the clinical ingestion pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from clinical_ingestion.config import Settings, load_settings
from clinical_ingestion.loris import LorisClient
from clinical_ingestion.models import DiscoveredProject
from clinical_ingestion.services.logging import project_log_handler
from clinical_ingestion.services.mailer import Notifier, build_notifier
from clinical_ingestion.workflow.common import create_progress_bar
from clinical_ingestion.workflow.discovery import RunFilters, discover_projects
from clinical_ingestion.workflow.notification import build_notification, dispatch_notification
from clinical_ingestion.workflow.processor import (
    IngestionService,
    InstrumentProcessor,
    log_error_preview,
)
from clinical_ingestion.workflow.stats import IngestionStats

logger = logging.getLogger(__name__)

SUMMARY_ERROR_PREVIEW = 3
_RULE = "=" * 40
_DIVIDER = "-" * 40


class RunPhase(str, Enum):
    IDLE = "idle"
    AUTHENTICATING = "authenticating"
    DISCOVERING = "discovering"
    PROCESSING_PROJECTS = "processing_projects"
    SUMMARIZING = "summarizing"
    DONE = "done"
    FATAL = "fatal"


@dataclass
class IngestionState:
    phase: RunPhase = RunPhase.IDLE
    projects: List[DiscoveredProject] = field(default_factory=list)
    project_stats: Dict[str, IngestionStats] = field(default_factory=dict)
    stats: IngestionStats = field(default_factory=IngestionStats)
    exit_code: int = 0
    error: Optional[str] = None

    def advance(self, phase: RunPhase) -> None:
        logger.debug("Run phase: %s -> %s", self.phase.value, phase.value)
        self.phase = phase


def run_ingestion(
    *,
    settings: Settings | None = None,
    filters: RunFilters | None = None,
    service: IngestionService | None = None,
    notifier: Notifier | None = None,
) -> IngestionState:
    """Authenticate, discover, ingest every project and summarize the run."""

    state = IngestionState()
    filters = filters or RunFilters()
    client: LorisClient | None = None

    logger.info("=== CLINICAL DATA INGESTION PIPELINE ===")
    logger.info("Started: %s", datetime.now().strftime("%Y-%m-%d %H:%M:%S"))

    try:
        resolved_settings = settings or load_settings()
        if resolved_settings.dry_run:
            logger.info("DRY RUN MODE - No uploads will be performed")

        if service is None:
            client = LorisClient(resolved_settings)
            service = client
        if notifier is None:
            notifier = build_notifier(resolved_settings)

        state.advance(RunPhase.AUTHENTICATING)
        service.authenticate()

        state.advance(RunPhase.DISCOVERING)
        state.projects = discover_projects(resolved_settings.collections, filters)

        if not state.projects:
            logger.warning("No projects found to process")
        else:
            logger.info("Found %d project(s) to process", len(state.projects))
            state.advance(RunPhase.PROCESSING_PROJECTS)
            processor = InstrumentProcessor(
                service,
                dry_run=resolved_settings.dry_run,
                verbose=resolved_settings.verbose,
                archive=resolved_settings.archive_processed and not resolved_settings.dry_run,
            )
            _process_projects(resolved_settings, state, processor, notifier, filters)

        state.advance(RunPhase.SUMMARIZING)
        log_summary(state.stats)
        logger.info("Completed: %s", datetime.now().strftime("%Y-%m-%d %H:%M:%S"))
        logger.info("=== Complete ===")

        state.exit_code = 1 if state.stats.has_failures else 0
        state.advance(RunPhase.DONE)
    except Exception as exc:
        logger.error("FATAL: %s", exc)
        logger.debug("Fatal error traceback:", exc_info=True)
        state.error = str(exc)
        state.exit_code = 1
        state.advance(RunPhase.FATAL)
    finally:
        if client is not None:
            client.close()

    return state


def _process_projects(
    settings: Settings,
    state: IngestionState,
    processor: InstrumentProcessor,
    notifier: Notifier,
    filters: RunFilters,
) -> None:
    progress = create_progress_bar(settings, len(state.projects), "Projects", unit="project")
    try:
        for project in state.projects:
            project_stats = process_project(project, processor, notifier, filters)
            state.project_stats[f"{project.collection}/{project.config_name}"] = project_stats
            state.stats.merge(project_stats)
            if progress is not None:
                progress.update(1)
    finally:
        if progress is not None:
            progress.close()


def process_project(
    project: DiscoveredProject,
    processor: InstrumentProcessor,
    notifier: Notifier,
    filters: RunFilters | None = None,
) -> IngestionStats:
    """Process every instrument of one project and send its notification."""

    stats = IngestionStats()
    logger.info(_RULE)
    logger.info("Project: %s (collection %s)", project.name, project.collection)

    instruments = project.instruments
    if filters is not None and filters.instrument is not None:
        instruments = [name for name in instruments if name == filters.instrument]

    with project_log_handler(project.manifest.logging.log_path):
        if not instruments:
            logger.warning("No clinical instruments to process for %s", project.name)
        else:
            if not project.clinical_dir.is_dir():
                logger.warning("Clinical directory not found: %s", project.clinical_dir)
            logger.info("Instruments: %s", ", ".join(instruments))
            for instrument in instruments:
                processor.process(project, instrument, stats)

        decision = build_notification(project, stats)
        if decision is None:
            logger.debug("No notification recipients configured for %s", project.name)
        else:
            dispatch_notification(decision, notifier, logger)

    return stats


def log_summary(stats: IngestionStats, log: logging.Logger | None = None) -> None:
    """Render the run-scope statistics to the log."""
    log = log or logger
    log.info(_RULE)
    log.info("Pipeline Summary:")
    log.info(_DIVIDER)
    log.info("Files:")
    log.info("  Total processed: %d", stats.total)
    log.info("  Successfully uploaded: %d", stats.success)
    log.info("  Failed: %d", stats.failed)
    log.info("  Skipped: %d", stats.skipped)

    if stats.rows_uploaded > 0 or stats.rows_skipped > 0:
        log.info(_DIVIDER)
        log.info("Data Rows:")
        log.info("  Uploaded: %d", stats.rows_uploaded)
        if stats.rows_skipped > 0:
            log.info("  Skipped (already exist): %d", stats.rows_skipped)
        log.info("  Total processed: %d", stats.rows_uploaded + stats.rows_skipped)

    if stats.candidates_created > 0:
        log.info(_DIVIDER)
        log.info("New Candidates Created: %d", stats.candidates_created)

    if stats.success_rate is not None:
        log.info(_DIVIDER)
        log.info("Success Rate: %s%%", stats.success_rate)

    if stats.errors:
        log.info(_DIVIDER)
        log.error("Errors Encountered:")
        for entry in stats.errors:
            log.error("  Instrument: %s (%s)", entry.instrument, entry.file)
            log_error_preview(
                log,
                entry.errors,
                SUMMARY_ERROR_PREVIEW,
                indent="    ",
                numbered=False,
            )

    log.info(_RULE)


__all__ = [
    "IngestionState",
    "RunPhase",
    "log_summary",
    "process_project",
    "run_ingestion",
]
