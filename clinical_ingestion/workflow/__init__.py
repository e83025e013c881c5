"""Workflow stages: discovery, per-instrument processing, notification and run control."""

from .discovery import RunFilters, discover_projects
from .orchestrator import IngestionState, RunPhase, process_project, run_ingestion
from .processor import InstrumentProcessor
from .stats import IngestionStats

__all__ = [
    "IngestionState",
    "IngestionStats",
    "InstrumentProcessor",
    "RunFilters",
    "RunPhase",
    "discover_projects",
    "process_project",
    "run_ingestion",
]
