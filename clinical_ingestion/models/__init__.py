"""Convenience re-exports for core ingestion data models."""

from .project import (
    CLINICAL_SUBDIR,
    MANIFEST_FILENAME,
    DataAccess,
    DiscoveredProject,
    ManifestError,
    NotificationRecipients,
    ProjectLogging,
    ProjectManifest,
)
from .upload import ErrorEntry, IdMapping, Outcome, UploadError, UploadResult

__all__ = [
    "CLINICAL_SUBDIR",
    "DataAccess",
    "DiscoveredProject",
    "ErrorEntry",
    "IdMapping",
    "MANIFEST_FILENAME",
    "ManifestError",
    "NotificationRecipients",
    "Outcome",
    "ProjectLogging",
    "ProjectManifest",
    "UploadError",
    "UploadResult",
]
