"""Read-only checks on instrument CSV files before they are uploaded."""

from __future__ import annotations

import csv
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple

REQUIRED_COLUMNS: Tuple[str, ...] = ("PSCID", "Visit_label")

# utf-8-sig drops the byte-order mark spreadsheet exports put before the header;
# undecodable bytes (latin-1 exports) are replaced, only the header names matter
_ENCODING = "utf-8-sig"
_DECODE_ERRORS = "replace"


def _open(path: Path):
    return path.open("r", encoding=_ENCODING, errors=_DECODE_ERRORS, newline="")


class CsvValidationError(ValueError):
    """Raised when an instrument file cannot be read or lacks required columns."""

    def __init__(self, message: str, missing_columns: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.missing_columns = tuple(missing_columns)


@dataclass(frozen=True)
class CsvInspection:
    """File facts gathered for diagnostics and validation."""

    path: Path
    size_bytes: int
    row_count: int
    header: List[str] = field(default_factory=list)

    @property
    def size_mb(self) -> float:
        return round(self.size_bytes / 1024 / 1024, 2)

    def missing_columns(self, required: Iterable[str] = REQUIRED_COLUMNS) -> List[str]:
        present = set(self.header)
        return [column for column in required if column not in present]


def count_rows(path: Path) -> int:
    """Count data rows, excluding the header."""
    with _open(path) as fh:
        reader = csv.reader(fh)
        if next(reader, None) is None:
            return 0
        return sum(1 for _ in reader)


def read_header(path: Path) -> List[str]:
    with _open(path) as fh:
        return next(csv.reader(fh), [])


def inspect_csv(path: Path) -> CsvInspection:
    """Gather size, header and row count, failing if the file cannot be read."""
    if not os.access(path, os.R_OK):
        raise CsvValidationError(f"File is not readable: {path}")
    try:
        size = path.stat().st_size
        header = read_header(path)
        rows = count_rows(path)
    except (OSError, csv.Error) as exc:
        raise CsvValidationError(f"File is not readable: {path} ({exc})") from exc
    if not header:
        raise CsvValidationError(f"File has no header row: {path}")
    return CsvInspection(path=path, size_bytes=size, row_count=rows, header=header)


def validate_columns(
    inspection: CsvInspection,
    required: Iterable[str] = REQUIRED_COLUMNS,
) -> None:
    missing = inspection.missing_columns(required)
    if missing:
        noun = "column" if len(missing) == 1 else "columns"
        raise CsvValidationError(
            f"Missing required {noun}: {', '.join(missing)}",
            missing_columns=missing,
        )


__all__ = [
    "CsvInspection",
    "CsvValidationError",
    "REQUIRED_COLUMNS",
    "count_rows",
    "inspect_csv",
    "read_header",
    "validate_columns",
]
