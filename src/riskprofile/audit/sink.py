"""Audit event sinks.

All sinks implement the AuditSink protocol.

- Append-only: never truncate/overwrite
- Any IO or serialization failure raises AuditSinkError
- Deterministic JSON serialization (sorted keys, no extra whitespace)
"""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

AUDIT_LOG_PATH_ENV = "RISKPROFILE_AUDIT_LOG_PATH"
DEFAULT_AUDIT_LOG_PATH = "./var/audit/audit_events.jsonl"


class AuditSinkError(Exception):
    """Raised when audit event emission fails."""


@runtime_checkable
class AuditSink(Protocol):
    """Protocol for append-only audit event sinks."""

    def emit(self, event: dict[str, Any]) -> None:
        """Emit an audit event to the sink.

        Raises:
            AuditSinkError: If emission fails for any reason
        """
        ...


def _serialize(event: dict[str, Any]) -> str:
    try:
        return json.dumps(event, sort_keys=True, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        raise AuditSinkError(f"Failed to serialize audit event: {e}") from e


class JsonlFileAuditSink:
    """Append-only JSONL file sink.

    The path comes from the constructor, else RISKPROFILE_AUDIT_LOG_PATH,
    else DEFAULT_AUDIT_LOG_PATH. Parent directories are created on demand.
    """

    def __init__(self, file_path: str | Path | None = None) -> None:
        if file_path is not None:
            self._file_path = Path(file_path)
        else:
            self._file_path = Path(os.environ.get(AUDIT_LOG_PATH_ENV) or DEFAULT_AUDIT_LOG_PATH)
        self._lock = threading.Lock()

    @property
    def file_path(self) -> Path:
        return self._file_path

    def _ensure_parent_directory(self) -> None:
        parent = self._file_path.parent
        if not parent.exists():
            try:
                parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise AuditSinkError(f"Failed to create audit log directory {parent}: {e}") from e

    def emit(self, event: dict[str, Any]) -> None:
        """Append the event as one JSON line.

        Raises:
            AuditSinkError: If serialization or the file write fails
        """
        line = _serialize(event) + "\n"
        self._ensure_parent_directory()
        try:
            with self._lock, open(self._file_path, mode="a", encoding="utf-8") as f:
                f.write(line)
        except OSError as e:
            raise AuditSinkError(f"Failed to write audit event to {self._file_path}: {e}") from e


class InMemoryAuditSink:
    """In-memory audit sink for development and tests (no disk writes)."""

    def __init__(self) -> None:
        self._events: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    def emit(self, event: dict[str, Any]) -> None:
        # Round-trip through JSON so stored events are exactly what a file sink would hold.
        stored = json.loads(_serialize(event))
        with self._lock:
            self._events.append(stored)

    @property
    def events(self) -> list[dict[str, Any]]:
        """Return all emitted events."""
        with self._lock:
            return list(self._events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


def get_audit_sink() -> AuditSink:
    """Return the configured audit sink.

    A JsonlFileAuditSink when RISKPROFILE_AUDIT_LOG_PATH is set, otherwise an
    InMemoryAuditSink.
    """
    if os.environ.get(AUDIT_LOG_PATH_ENV):
        return JsonlFileAuditSink()
    return InMemoryAuditSink()
