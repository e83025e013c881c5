"""HTTP client for the LORIS REST API and instrument data upload endpoint."""
from __future__ import annotations

import time
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from clinical_ingestion.config import Settings
from clinical_ingestion.services.logging import get_logger

logger = get_logger(__name__)

INSTRUMENT_DATA_ENDPOINT = "/instrument_manager/instrument_data"


class LorisError(RuntimeError):
    """Raised when the LORIS API returns an error."""


class LorisAuthError(LorisError):
    """Raised when LORIS rejects the configured credentials."""


class UploadAction(str, Enum):
    """Session handling requested from the instrument data endpoint."""

    CREATE_SESSIONS = "CREATE_SESSIONS"


class LorisClient:
    """Thin wrapper around the LORIS endpoints used for clinical ingestion."""

    def __init__(
        self,
        settings: Settings,
        *,
        transport: Optional[httpx.BaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings
        self._clock = clock
        self._token: Optional[str] = None
        self._token_expires_at = 0.0
        self._client = httpx.Client(
            base_url=settings.loris_base_url.rstrip("/"),
            timeout=settings.loris_timeout,
            transport=transport,
        )

    @property
    def api_prefix(self) -> str:
        return f"/api/{self.settings.loris_api_version}"

    @property
    def token_valid(self) -> bool:
        return self._token is not None and self._clock() < self._token_expires_at

    def authenticate(self) -> str:
        """Obtain a fresh bearer token."""
        logger.debug("Authenticating against %s", self.settings.loris_base_url)
        try:
            response = self._client.post(
                f"{self.api_prefix}/login",
                json={
                    "username": self.settings.loris_username,
                    "password": self.settings.loris_password,
                },
            )
        except httpx.HTTPError as exc:
            raise LorisAuthError(f"LORIS login request failed: {exc}") from exc

        if response.status_code >= 400:
            raise LorisAuthError(
                f"LORIS login failed: {response.status_code} {response.text}"
            )
        try:
            token = response.json().get("token")
        except ValueError as exc:
            raise LorisAuthError("LORIS login returned a non-JSON response") from exc
        if not token:
            raise LorisAuthError("LORIS login response did not include a token")

        self._token = str(token)
        self._token_expires_at = self._clock() + self.settings.loris_token_expiry_minutes * 60
        logger.info("Authenticated with LORIS as %s", self.settings.loris_username)
        return self._token

    def _auth_headers(self) -> Dict[str, str]:
        if not self.token_valid:
            self.authenticate()
        return {"Authorization": f"Bearer {self._token}"}

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        reraise=True,
    )
    def instrument_exists(self, instrument: str) -> bool:
        """Return whether LORIS knows the instrument's schema."""
        response = self._client.get(
            INSTRUMENT_DATA_ENDPOINT,
            params={"instrument": instrument},
            headers=self._auth_headers(),
        )
        if response.status_code == 404:
            return False
        if response.status_code >= 400:
            raise LorisError(
                f"Instrument lookup failed: {response.status_code} {response.text}"
            )
        return True

    def upload_instrument_csv(
        self,
        instrument: str,
        csv_path: Path,
        action: UploadAction | str = UploadAction.CREATE_SESSIONS,
    ) -> Dict[str, Any]:
        """
        Upload an instrument CSV and return the decoded response.

        Parameters
        ----------
        instrument:
            Instrument name the rows belong to.
        csv_path:
            CSV file to upload.
        action:
            Session handling mode; ``CREATE_SESSIONS`` registers unknown
            candidates and visits on the fly.
        """
        action_value = action.value if isinstance(action, UploadAction) else str(action)
        response = self._post_instrument_data(instrument, csv_path, action_value)
        if response.status_code == 401:
            logger.debug("Token rejected during upload; re-authenticating")
            self.authenticate()
            response = self._post_instrument_data(instrument, csv_path, action_value)

        try:
            payload = response.json()
        except ValueError as exc:
            raise LorisError(
                f"Upload returned a non-JSON response: {response.status_code} "
                f"{response.text[:200]}"
            ) from exc

        if not isinstance(payload, dict):
            raise LorisError("Unexpected response format from LORIS upload")
        if response.status_code >= 500:
            raise LorisError(f"Upload failed: {response.status_code} {payload}")
        if response.status_code >= 400 and "success" not in payload:
            # API-level errors (permissions, bad route) come back as {"error": ...}
            reason = payload.get("error") or payload
            raise LorisError(f"Upload failed: {response.status_code} {reason}")
        return payload

    def _post_instrument_data(
        self,
        instrument: str,
        csv_path: Path,
        action: str,
    ) -> httpx.Response:
        headers = self._auth_headers()
        with csv_path.open("rb") as fh:
            return self._client.post(
                INSTRUMENT_DATA_ENDPOINT,
                data={"instrument": instrument, "action": action},
                files={"data_file": (csv_path.name, fh, "text/csv")},
                headers=headers,
            )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "LorisClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        self.close()
