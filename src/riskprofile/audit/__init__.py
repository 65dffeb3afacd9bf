"""Append-only audit event logging."""

from riskprofile.audit.events import AuditEventType, build_event, emit_event
from riskprofile.audit.sink import (
    AuditSink,
    AuditSinkError,
    InMemoryAuditSink,
    JsonlFileAuditSink,
    get_audit_sink,
)

__all__ = [
    "AuditEventType",
    "AuditSink",
    "AuditSinkError",
    "InMemoryAuditSink",
    "JsonlFileAuditSink",
    "build_event",
    "emit_event",
    "get_audit_sink",
]
