"""Move uploaded instrument files out of the ingestion directory."""

from __future__ import annotations

import shutil
from datetime import date
from pathlib import Path
from typing import Optional

from clinical_ingestion.services.logging import get_logger

logger = get_logger(__name__)


def archive_dir(mount_path: Path, modality: str, day: Optional[date] = None) -> Path:
    day = day or date.today()
    return mount_path / "processed" / modality / day.isoformat()


def archive_file(
    source: Path,
    mount_path: Path,
    *,
    modality: str = "clinical",
    day: Optional[date] = None,
) -> Path:
    """Move ``source`` into ``<mount>/processed/<modality>/<YYYY-MM-DD>/``."""
    destination_dir = archive_dir(mount_path, modality, day)
    destination_dir.mkdir(parents=True, exist_ok=True)
    destination = destination_dir / source.name
    shutil.move(str(source), str(destination))
    logger.info("  Archived to: %s", destination_dir)
    return destination
