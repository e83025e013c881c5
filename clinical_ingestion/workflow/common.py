"""Shared helpers for workflow orchestration."""

from __future__ import annotations

from tqdm.auto import tqdm

from clinical_ingestion.config import Settings


def create_progress_bar(
    settings: Settings,
    total: int,
    desc: str,
    *,
    unit: str = "item",
) -> tqdm | None:
    """Create a tqdm progress bar if console display is enabled."""
    if not settings.show_progress or total <= 0:
        return None
    return tqdm(
        total=total,
        desc=desc,
        leave=False,
        unit=unit,
    )
