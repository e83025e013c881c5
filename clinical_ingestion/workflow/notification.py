"""Decide who hears about a project's ingestion and what they are told."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from clinical_ingestion.models import DiscoveredProject
from clinical_ingestion.services.logging import get_logger
from clinical_ingestion.services.mailer import Notifier
from clinical_ingestion.workflow.stats import IngestionStats

logger = get_logger(__name__)


@dataclass(frozen=True)
class NotificationDecision:
    recipients: Tuple[str, ...]
    subject: str
    body: str


def build_notification(
    project: DiscoveredProject,
    stats: IngestionStats,
    modality: str = "clinical",
) -> Optional[NotificationDecision]:
    """Return the message for this project, or None when nobody should be notified."""
    failed = stats.has_failures
    recipients = project.manifest.recipients(modality)
    selected = recipients.on_error if failed else recipients.on_success
    if not selected:
        return None

    status = "FAILED" if failed else "SUCCESS"
    subject = f"{status}: {project.name} {modality.capitalize()} Ingestion"

    lines = [
        f"Project: {project.name}",
        f"Modality: {modality}",
        "",
        f"Files Processed: {stats.total}",
        f"Successfully Uploaded: {stats.success}",
        f"Failed: {stats.failed}",
        f"Skipped: {stats.skipped}",
        "",
    ]
    if failed:
        lines.append("Some files failed to ingest.")
        lines.append("Check logs for details.")
    else:
        lines.append("Ingestion completed successfully.")

    return NotificationDecision(
        recipients=tuple(selected),
        subject=subject,
        body="\n".join(lines) + "\n",
    )


def dispatch_notification(
    decision: NotificationDecision,
    notifier: Notifier,
    log: Optional[logging.Logger] = None,
) -> int:
    """Send one message per recipient; return how many were delivered."""
    log = log or logger
    delivered = 0
    for recipient in decision.recipients:
        try:
            notifier.send(recipient, decision.subject, decision.body)
        except Exception as exc:
            log.error("Failed to notify %s: %s", recipient, exc)
            continue
        delivered += 1
        log.info("Notification sent to %s: %s", recipient, decision.subject)
    return delivered


__all__ = ["NotificationDecision", "build_notification", "dispatch_notification"]
