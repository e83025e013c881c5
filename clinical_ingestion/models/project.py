"""Project manifests and the discovered-project records built from them."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

CLINICAL_SUBDIR = Path("deidentified-lorisid") / "clinical"
MANIFEST_FILENAME = "project.json"


class ManifestError(ValueError):
    """Raised when a project.json is missing or cannot be parsed."""


class NotificationRecipients(BaseModel):
    """Recipient lists for one modality, keyed by outcome."""

    on_success: List[str] = Field(default_factory=list)
    on_error: List[str] = Field(default_factory=list)


class DataAccess(BaseModel):
    model_config = ConfigDict(extra="ignore")

    mount_path: Path


class ProjectLogging(BaseModel):
    model_config = ConfigDict(extra="ignore")

    log_path: Optional[Path] = None


class ProjectManifest(BaseModel):
    """Validated contents of a project's ``project.json``."""

    model_config = ConfigDict(extra="ignore")

    project_common_name: Optional[str] = None
    data_access: DataAccess
    clinical_instruments: List[str] = Field(default_factory=list)
    notification_emails: Dict[str, NotificationRecipients] = Field(default_factory=dict)
    logging: ProjectLogging = Field(default_factory=ProjectLogging)

    @classmethod
    def load(cls, path: Path) -> ProjectManifest:
        """Read and validate a manifest, raising ``ManifestError`` on any problem."""
        if not path.is_file():
            raise ManifestError(f"Project config not found: {path}")
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ManifestError(f"Invalid JSON in: {path} ({exc})") from exc
        if not isinstance(payload, dict):
            raise ManifestError(f"Invalid JSON in: {path} (expected an object)")
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            raise ManifestError(
                f"Invalid project config in: {path} ({exc.error_count()} error(s))"
            ) from exc

    def recipients(self, modality: str) -> NotificationRecipients:
        return self.notification_emails.get(modality) or NotificationRecipients()


@dataclass(frozen=True)
class DiscoveredProject:
    """A fully loaded project tagged with where it was found."""

    manifest: ProjectManifest
    collection: str
    path: Path
    config_name: str

    @property
    def name(self) -> str:
        return self.manifest.project_common_name or self.config_name

    @property
    def mount_path(self) -> Path:
        return self.manifest.data_access.mount_path

    @property
    def clinical_dir(self) -> Path:
        return self.mount_path / CLINICAL_SUBDIR

    @property
    def instruments(self) -> List[str]:
        return list(self.manifest.clinical_instruments)

    def instrument_path(self, instrument: str) -> Path:
        return self.clinical_dir / f"{instrument}.csv"
