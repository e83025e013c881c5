"""Counters accumulated per project and across a whole ingestion run."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from clinical_ingestion.models import ErrorEntry, Outcome


@dataclass
class IngestionStats:
    """Additive file, row and candidate counters plus recorded errors."""

    total: int = 0
    success: int = 0
    failed: int = 0
    skipped: int = 0
    rows_uploaded: int = 0
    rows_skipped: int = 0
    candidates_created: int = 0
    errors: List[ErrorEntry] = field(default_factory=list)

    def record_outcome(self, outcome: Outcome) -> None:
        self.total += 1
        if outcome is Outcome.SUCCESS:
            self.success += 1
        elif outcome is Outcome.FAILED:
            self.failed += 1
        else:
            self.skipped += 1

    def record_rows(self, saved: int, skipped: int) -> None:
        self.rows_uploaded += max(0, saved)
        self.rows_skipped += max(0, skipped)

    def record_candidates(self, count: int) -> None:
        self.candidates_created += max(0, count)

    def record_error(self, entry: ErrorEntry) -> None:
        self.errors.append(entry)

    def merge(self, other: "IngestionStats") -> None:
        self.total += other.total
        self.success += other.success
        self.failed += other.failed
        self.skipped += other.skipped
        self.rows_uploaded += other.rows_uploaded
        self.rows_skipped += other.rows_skipped
        self.candidates_created += other.candidates_created
        self.errors.extend(other.errors)

    @property
    def attempted(self) -> int:
        """Files that existed on disk; skipped files never count against success."""
        return self.total - self.skipped

    @property
    def success_rate(self) -> Optional[float]:
        if self.attempted <= 0:
            return None
        return round(self.success / self.attempted * 100, 1)

    @property
    def has_failures(self) -> bool:
        return self.failed > 0


__all__ = ["IngestionStats"]
