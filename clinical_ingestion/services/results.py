"""Interpretation of LORIS instrument upload responses.

LORIS reports row counts only as free text ("Saved N out of M"), so the
counts extracted here are best-effort telemetry. A successful response whose
message does not match is returned with ``counts_parsed=False`` so callers can
flag it instead of trusting the zeros.
"""

from __future__ import annotations

import json
import re
from typing import Any, Iterable, List, Mapping, Optional

from clinical_ingestion.models import IdMapping, UploadError, UploadResult

SAVED_PATTERN = re.compile(r"Saved (\d+) out of (\d+)")
NO_DETAILS_MESSAGE = "Upload rejected without an error message"


def interpret_upload_result(raw: Mapping[str, Any]) -> UploadResult:
    """Turn a raw ``{success, message, idMapping}`` response into an UploadResult.

    Rejections without a ``message`` fall back to the ``error`` key LORIS uses
    for API-level failures.
    """
    success = raw.get("success") is True
    message = raw.get("message")
    mappings = parse_id_mappings(raw.get("idMapping"))

    if not success:
        if message in (None, "", []):
            message = raw.get("error")
        return UploadResult(
            success=False,
            message=_message_text(message),
            id_mappings=mappings,
            errors=normalize_errors(message),
        )

    result = UploadResult(success=True, message=_message_text(message), id_mappings=mappings)
    if isinstance(message, str):
        match = SAVED_PATTERN.search(message)
        if match:
            saved = int(match.group(1))
            total = int(match.group(2))
            result.rows_saved = saved
            result.rows_skipped = max(0, total - saved)
            result.counts_parsed = True
    return result


def normalize_errors(message: Any) -> List[UploadError]:
    """Flatten a string, list of strings or list of error objects into UploadErrors."""
    if message is None or message == "" or message == []:
        return [UploadError(NO_DETAILS_MESSAGE)]
    if isinstance(message, (list, tuple)):
        return [_to_error(item) for item in message]
    return [_to_error(message)]


def parse_id_mappings(payload: Any) -> List[IdMapping]:
    if not isinstance(payload, Iterable) or isinstance(payload, (str, bytes, Mapping)):
        return []
    mappings: List[IdMapping] = []
    for item in payload:
        if not isinstance(item, Mapping):
            continue
        mappings.append(
            IdMapping(
                ext_study_id=str(item.get("ExtStudyID", "")),
                cand_id=str(item.get("CandID", "")),
            )
        )
    return mappings


def _to_error(item: Any) -> UploadError:
    if isinstance(item, Mapping):
        text = item.get("message")
        if not text:
            text = json.dumps(item, sort_keys=True, default=str)
        return UploadError(message=str(text), details=dict(item))
    return UploadError(message=str(item))


def _message_text(message: Any) -> Optional[str]:
    if message is None:
        return None
    if isinstance(message, str):
        return message
    return json.dumps(message, default=str)


__all__ = [
    "NO_DETAILS_MESSAGE",
    "SAVED_PATTERN",
    "interpret_upload_result",
    "normalize_errors",
    "parse_id_mappings",
]
