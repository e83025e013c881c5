import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pytest

from clinical_ingestion.models import DiscoveredProject, ProjectManifest

DEFAULT_HEADER = ("PSCID", "Visit_label", "score")


class FakeLorisService:
    """In-memory stand-in for the LORIS client."""

    def __init__(
        self,
        responses: Optional[Dict[str, Any]] = None,
        *,
        default: Optional[Dict[str, Any]] = None,
        exists: bool = True,
        auth_error: Optional[Exception] = None,
    ) -> None:
        self.responses = responses or {}
        self.default = default or {"success": True, "message": "Saved 1 out of 1"}
        self.exists = exists
        self.auth_error = auth_error
        self.authenticated = 0
        self.lookups: List[str] = []
        self.uploads: List[tuple] = []

    def authenticate(self) -> str:
        if self.auth_error is not None:
            raise self.auth_error
        self.authenticated += 1
        return "token"

    def instrument_exists(self, instrument: str) -> bool:
        self.lookups.append(instrument)
        return self.exists

    def upload_instrument_csv(self, instrument, csv_path, action="CREATE_SESSIONS"):
        self.uploads.append((instrument, Path(csv_path), getattr(action, "value", action)))
        response = self.responses.get(instrument, self.default)
        if isinstance(response, Exception):
            raise response
        return response


class RecordingNotifier:
    def __init__(self, fail_for: Iterable[str] = ()) -> None:
        self.fail_for = set(fail_for)
        self.sent: List[tuple] = []

    def send(self, recipient: str, subject: str, body: str) -> None:
        if recipient in self.fail_for:
            raise RuntimeError(f"mailbox unavailable: {recipient}")
        self.sent.append((recipient, subject, body))


@pytest.fixture
def collections_root(tmp_path: Path) -> Path:
    root = tmp_path / "collections"
    root.mkdir()
    return root


@pytest.fixture
def make_project(tmp_path: Path, collections_root: Path):
    """Write a project.json (and clinical directory) and return the loaded project."""

    def _make(
        name: str = "P1",
        *,
        collection: str = "demo",
        instruments: Sequence[str] = ("demographics",),
        on_success: Sequence[str] = ("b@x.org",),
        on_error: Sequence[str] = ("a@x.org",),
        log_path: Optional[Path] = None,
        create_clinical_dir: bool = True,
    ) -> DiscoveredProject:
        project_dir = collections_root / collection / name
        project_dir.mkdir(parents=True, exist_ok=True)
        mount = tmp_path / "mounts" / name
        manifest: Dict[str, Any] = {
            "project_common_name": name,
            "data_access": {"mount_path": str(mount)},
            "clinical_instruments": list(instruments),
            "notification_emails": {
                "clinical": {
                    "on_success": list(on_success),
                    "on_error": list(on_error),
                }
            },
        }
        if log_path is not None:
            manifest["logging"] = {"log_path": str(log_path)}
        (project_dir / "project.json").write_text(json.dumps(manifest), encoding="utf-8")
        if create_clinical_dir:
            (mount / "deidentified-lorisid" / "clinical").mkdir(parents=True, exist_ok=True)
        return DiscoveredProject(
            manifest=ProjectManifest.load(project_dir / "project.json"),
            collection=collection,
            path=project_dir,
            config_name=name,
        )

    return _make


@pytest.fixture
def write_instrument():
    """Write ``<instrument>.csv`` into a project's clinical directory."""

    def _write(
        project: DiscoveredProject,
        instrument: str,
        *,
        rows: int = 5,
        header: Sequence[str] = DEFAULT_HEADER,
    ) -> Path:
        path = project.instrument_path(instrument)
        path.parent.mkdir(parents=True, exist_ok=True)
        lines = [",".join(header)]
        for index in range(rows):
            lines.append(",".join(f"{column}-{index}" for column in header))
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture
def fake_service_factory():
    return FakeLorisService


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def notifier_factory():
    return RecordingNotifier
