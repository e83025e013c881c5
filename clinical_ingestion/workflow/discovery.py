"""Expand configured collections into the ordered list of projects to ingest."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from clinical_ingestion.config import CollectionConfig
from clinical_ingestion.models import (
    MANIFEST_FILENAME,
    DiscoveredProject,
    ManifestError,
    ProjectManifest,
)
from clinical_ingestion.services.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RunFilters:
    """Optional name filters narrowing a run."""

    collection: Optional[str] = None
    project: Optional[str] = None
    instrument: Optional[str] = None


def discover_projects(
    collections: Sequence[CollectionConfig],
    filters: Optional[RunFilters] = None,
) -> List[DiscoveredProject]:
    """Return enabled projects with loadable manifests, in configuration order."""
    filters = filters or RunFilters()
    projects: List[DiscoveredProject] = []

    for collection in collections:
        if not collection.enabled:
            logger.debug("Collection %s disabled; skipping.", collection.name)
            continue
        if filters.collection is not None and collection.name != filters.collection:
            continue

        for entry in collection.projects:
            if not entry.enabled:
                logger.debug("Project %s disabled; skipping.", entry.name)
                continue
            if filters.project is not None and entry.name != filters.project:
                continue

            project_path = collection.base_path / entry.name
            try:
                manifest = ProjectManifest.load(project_path / MANIFEST_FILENAME)
            except ManifestError as exc:
                logger.warning("%s", exc)
                continue

            projects.append(
                DiscoveredProject(
                    manifest=manifest,
                    collection=collection.name,
                    path=project_path,
                    config_name=entry.name,
                )
            )

    return projects


__all__ = ["RunFilters", "discover_projects"]
