"""Upload outcomes and interpreted upload results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional


class Outcome(str, Enum):
    """Terminal classification of one instrument's processing attempt."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class IdMapping:
    """External study id mapped to the candidate id LORIS assigned."""

    ext_study_id: str
    cand_id: str


@dataclass(frozen=True)
class UploadError:
    """A single human-readable error reported for an upload."""

    message: str
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class UploadResult:
    """Structured view of a raw upload response."""

    success: bool
    rows_saved: int = 0
    rows_skipped: int = 0
    counts_parsed: bool = False
    message: Optional[str] = None
    id_mappings: List[IdMapping] = field(default_factory=list)
    errors: List[UploadError] = field(default_factory=list)

    @property
    def rows_total(self) -> int:
        return self.rows_saved + self.rows_skipped

    @property
    def new_candidates(self) -> int:
        """Mappings only count as new candidates when data rows were saved."""
        if self.rows_saved <= 0:
            return 0
        return len(self.id_mappings)


@dataclass
class ErrorEntry:
    """Errors recorded against one instrument file."""

    instrument: str
    file: Path
    errors: List[UploadError] = field(default_factory=list)
