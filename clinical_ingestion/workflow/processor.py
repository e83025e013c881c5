"""Per-instrument processing: inspect, upload, interpret and classify."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Mapping, Optional, Protocol, Sequence

from clinical_ingestion.loris import UploadAction
from clinical_ingestion.models import (
    DiscoveredProject,
    ErrorEntry,
    Outcome,
    UploadError,
    UploadResult,
)
from clinical_ingestion.services.archive import archive_file
from clinical_ingestion.services.csv_inspector import (
    CsvValidationError,
    inspect_csv,
    validate_columns,
)
from clinical_ingestion.services.logging import get_logger
from clinical_ingestion.services.results import interpret_upload_result
from clinical_ingestion.workflow.stats import IngestionStats

MODALITY = "clinical"
MAX_ERROR_PREVIEW = 5


class IngestionService(Protocol):
    """Remote operations the processor relies on."""

    def authenticate(self) -> Any:
        ...

    def instrument_exists(self, instrument: str) -> bool:
        ...

    def upload_instrument_csv(
        self,
        instrument: str,
        csv_path: Path,
        action: UploadAction | str = ...,
    ) -> Mapping[str, Any]:
        ...


class InstrumentProcessor:
    """Run one (project, instrument) pair and record its outcome into stats."""

    def __init__(
        self,
        service: IngestionService,
        *,
        dry_run: bool = False,
        verbose: bool = False,
        archive: bool = False,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.service = service
        self.dry_run = dry_run
        self.verbose = verbose
        self.archive = archive
        self.logger = logger or get_logger(__name__)

    def process(
        self,
        project: DiscoveredProject,
        instrument: str,
        stats: IngestionStats,
    ) -> Outcome:
        outcome = self._process(project, instrument, stats)
        stats.record_outcome(outcome)
        return outcome

    def _process(
        self,
        project: DiscoveredProject,
        instrument: str,
        stats: IngestionStats,
    ) -> Outcome:
        csv_path = project.instrument_path(instrument)

        if not csv_path.is_file():
            self.logger.info("  %s.csv not found (skipping)", instrument)
            return Outcome.SKIPPED

        self.logger.info("  Processing: %s", instrument)

        try:
            inspection = inspect_csv(csv_path)
            self.logger.info(
                "    File: %s (%s MB, %d rows)",
                csv_path.name,
                inspection.size_mb,
                inspection.row_count,
            )
            validate_columns(inspection)
        except CsvValidationError as exc:
            self.logger.error("  Invalid CSV file: %s", exc)
            stats.record_error(
                ErrorEntry(instrument=instrument, file=csv_path, errors=[UploadError(str(exc))])
            )
            return Outcome.FAILED

        self._check_instrument_registered(instrument)

        if self.dry_run:
            self.logger.info("  DRY RUN - Would upload %d row(s)", inspection.row_count)
            return Outcome.SUCCESS

        try:
            self.logger.info("  Uploading to LORIS (%s mode)...", UploadAction.CREATE_SESSIONS.value)
            started = time.perf_counter()
            raw = self.service.upload_instrument_csv(
                instrument,
                csv_path,
                UploadAction.CREATE_SESSIONS,
            )
            self.logger.info("  Upload completed in %.2fs", time.perf_counter() - started)
            result = interpret_upload_result(raw)
        except Exception as exc:
            self.logger.error("  Upload exception: %s", exc)
            if self.verbose:
                self.logger.debug("    Upload traceback:", exc_info=True)
            stats.record_error(
                ErrorEntry(instrument=instrument, file=csv_path, errors=[UploadError(str(exc))])
            )
            return Outcome.FAILED

        if result.success:
            self._record_success(result, stats)
            if self.archive:
                self._archive(project, csv_path)
            return Outcome.SUCCESS

        self._record_rejection(instrument, csv_path, result, stats)
        return Outcome.FAILED

    def _check_instrument_registered(self, instrument: str) -> None:
        try:
            exists = self.service.instrument_exists(instrument)
        except Exception as exc:
            self.logger.warning("  Could not verify instrument '%s' in LORIS: %s", instrument, exc)
            return
        if not exists:
            self.logger.warning("  Instrument '%s' may not exist in LORIS", instrument)

    def _record_success(self, result: UploadResult, stats: IngestionStats) -> None:
        self.logger.info("  Upload successful")
        if result.counts_parsed:
            stats.record_rows(result.rows_saved, result.rows_skipped)
            self.logger.info("    Rows saved: %d/%d", result.rows_saved, result.rows_total)
            if result.rows_skipped > 0:
                self.logger.info("    Rows skipped: %d (already exist)", result.rows_skipped)
        else:
            self.logger.warning(
                "    Row counts unavailable; LORIS replied: %s",
                result.message or "<no message>",
            )

        new_candidates = result.new_candidates
        if new_candidates:
            stats.record_candidates(new_candidates)
            self.logger.info("    New candidates created: %d", new_candidates)
            if self.verbose:
                for mapping in result.id_mappings:
                    self.logger.debug(
                        "      StudyID %s -> CandID %s",
                        mapping.ext_study_id,
                        mapping.cand_id,
                    )

    def _record_rejection(
        self,
        instrument: str,
        csv_path: Path,
        result: UploadResult,
        stats: IngestionStats,
    ) -> None:
        self.logger.error("  Upload failed")
        self.logger.error("    Errors: %d", len(result.errors))
        log_error_preview(self.logger, result.errors, MAX_ERROR_PREVIEW, indent="      ")
        stats.record_error(
            ErrorEntry(instrument=instrument, file=csv_path, errors=list(result.errors))
        )

    def _archive(self, project: DiscoveredProject, csv_path: Path) -> None:
        try:
            archive_file(csv_path, project.mount_path, modality=MODALITY)
        except OSError as exc:
            self.logger.warning("  Could not archive %s: %s", csv_path, exc)


def log_error_preview(
    logger: logging.Logger,
    errors: Sequence[UploadError],
    limit: int,
    *,
    indent: str,
    numbered: bool = True,
) -> None:
    for index, error in enumerate(errors[:limit], start=1):
        prefix = f"{index}. " if numbered else "- "
        logger.error("%s%s%s", indent, prefix, error.message)
    remaining = len(errors) - limit
    if remaining > 0:
        logger.error("%s... and %d more error(s)", indent, remaining)


__all__ = [
    "IngestionService",
    "InstrumentProcessor",
    "MAX_ERROR_PREVIEW",
    "MODALITY",
    "log_error_preview",
]
