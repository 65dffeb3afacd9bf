"""Audit event types and the event envelope."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from riskprofile.audit.sink import AuditSink, AuditSinkError

logger = logging.getLogger(__name__)


class AuditEventType(StrEnum):
    QUESTION_CREATED = "question.created"
    QUESTION_DEACTIVATED = "question.deactivated"
    FRAMEWORK_CREATED = "framework.created"
    FRAMEWORK_VERSION_PUBLISHED = "framework.version.published"
    FRAMEWORK_VERSION_ACTIVATED = "framework.version.activated"
    QUESTION_BINDING_CREATED = "question_binding.created"
    QUESTION_BINDING_DELETED = "question_binding.deleted"
    SUBMISSION_CREATED = "submission.created"
    SUBMISSION_RESCORED = "submission.rescored"


def build_event(
    event_type: AuditEventType,
    *,
    resource_type: str,
    resource_id: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build an audit event envelope."""
    return {
        "event_id": str(uuid.uuid4()),
        "event_type": event_type.value,
        "resource_type": resource_type,
        "resource_id": resource_id,
        "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        "details": details or {},
    }


def emit_event(
    sink: AuditSink,
    event_type: AuditEventType,
    *,
    resource_type: str,
    resource_id: str,
    details: dict[str, Any] | None = None,
) -> None:
    """Emit an audit event; sink failures are logged, never raised."""
    event = build_event(
        event_type,
        resource_type=resource_type,
        resource_id=resource_id,
        details=details,
    )
    try:
        sink.emit(event)
    except AuditSinkError as e:
        logger.warning("Audit emission failed for %s %s: %s", event_type.value, resource_id, e)
