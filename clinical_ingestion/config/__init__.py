"""
Configuration for the clinical ingestion pipeline.
Values resolve from, highest priority first: command line flags, the YAML
run configuration, environment variables (or `.env`), then defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProjectEntry(BaseModel):
    """A project listed under a collection in the run configuration."""

    name: str
    enabled: bool = True


class CollectionConfig(BaseModel):
    """A named group of projects sharing a storage root."""

    name: str
    base_path: Path
    enabled: bool = True
    projects: List[ProjectEntry] = Field(default_factory=list)


class Settings(BaseSettings):
    """
    Run configuration: LORIS access, the collections to walk, log sinks,
    SMTP relay and behaviour flags.
    """

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ===== LORIS API configuration =====
    loris_base_url: str = Field(
        default="https://localhost",
        description="Base URL of the LORIS instance (without the /api suffix)",
    )
    loris_api_version: str = Field(
        default="v0.0.3",
        description="LORIS REST API version segment used for authentication",
    )
    loris_username: str = Field(
        default="",
        description="LORIS account used for API authentication",
    )
    loris_password: str = Field(
        default="",
        description="Password for the LORIS API account",
    )
    loris_token_expiry_minutes: int = Field(
        default=55,
        description="Minutes before the bearer token is refreshed",
    )
    loris_timeout: float = Field(
        default=300.0,
        description="Timeout (seconds) for individual LORIS requests",
    )

    # ===== Collections =====
    collections: List[CollectionConfig] = Field(
        default_factory=list,
        description="Ordered collections of projects to ingest",
    )

    # ===== Logging =====
    log_dir: Optional[Path] = Field(
        default=None,
        description="Directory for the rotating run log (console only when unset)",
    )
    log_to_console: bool = Field(
        default=True,
        description="Emit the run log to the console",
    )

    # ===== Notification =====
    smtp_host: Optional[str] = Field(
        default=None,
        description="SMTP relay used for notification emails (disabled when unset)",
    )
    smtp_port: int = Field(
        default=25,
        description="SMTP relay port",
    )
    smtp_username: Optional[str] = Field(
        default=None,
        description="Optional SMTP login user",
    )
    smtp_password: Optional[str] = Field(
        default=None,
        description="Optional SMTP login password",
    )
    smtp_use_tls: bool = Field(
        default=False,
        description="Upgrade the SMTP connection with STARTTLS",
    )
    mail_sender: str = Field(
        default="loris-ingestion@localhost",
        description="From address for notification emails",
    )

    # ===== Behavior flags =====
    dry_run: bool = Field(
        default=False,
        description="Validate files without uploading anything to LORIS",
    )
    verbose: bool = Field(
        default=False,
        description="Enable debug output on the console",
    )
    archive_processed: bool = Field(
        default=False,
        description="Move successfully uploaded files to <mount>/processed/clinical/<date>",
    )
    show_progress: bool = Field(
        default=False,
        description="Show a tqdm progress bar over projects",
    )

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> Settings:
        """
        Build settings from a YAML run configuration.

        Keys present in the file win over environment variables and defaults;
        the `collections` list is validated into `CollectionConfig` entries.
        """
        if not yaml_path.exists():
            raise FileNotFoundError(f"Settings file not found: {yaml_path}")

        with yaml_path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}

        if not isinstance(data, dict):
            raise ValueError("Settings YAML must contain a mapping at the root")

        return cls(**data)

    def merge_overrides(self, overrides: Dict[str, Any]) -> Settings:
        """Return a copy with CLI-provided values applied on top."""
        if not overrides:
            return self

        return self.model_copy(update=overrides)


def load_settings(
    yaml_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> Settings:
    """
    Resolve the settings for one run.

    Parameters
    ----------
    yaml_path : Path, optional
        Run configuration file; environment and defaults only when omitted.
    overrides : dict, optional
        Values from command line flags, applied last.
    """
    settings = Settings.from_yaml(yaml_path) if yaml_path is not None else Settings()

    if overrides:
        settings = settings.merge_overrides(overrides)

    return settings


__all__ = [
    "CollectionConfig",
    "ProjectEntry",
    "Settings",
    "load_settings",
]
