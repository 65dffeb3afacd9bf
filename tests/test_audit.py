"""Tests for audit sinks and event emission."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import pytest

from riskprofile.audit.events import AuditEventType, build_event, emit_event
from riskprofile.audit.sink import (
    AUDIT_LOG_PATH_ENV,
    AuditSinkError,
    InMemoryAuditSink,
    JsonlFileAuditSink,
    get_audit_sink,
)


class _FailingSink:
    def emit(self, event: dict[str, Any]) -> None:
        raise AuditSinkError("disk full")


class TestBuildEvent:
    def test_envelope(self) -> None:
        event = build_event(
            AuditEventType.SUBMISSION_CREATED,
            resource_type="submission",
            resource_id="s-1",
            details={"bucket": "Growth"},
        )

        assert event["event_type"] == "submission.created"
        assert event["resource_type"] == "submission"
        assert event["resource_id"] == "s-1"
        assert event["details"] == {"bucket": "Growth"}
        assert event["timestamp"].endswith("Z")
        assert event["event_id"]


class TestJsonlFileAuditSink:
    def test_appends_one_line_per_event(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "audit.jsonl"
        sink = JsonlFileAuditSink(file_path=path)

        emit_event(sink, AuditEventType.QUESTION_CREATED, resource_type="question", resource_id="a")
        emit_event(sink, AuditEventType.QUESTION_CREATED, resource_type="question", resource_id="b")

        lines = path.read_text(encoding="utf-8").splitlines()
        assert [json.loads(line)["resource_id"] for line in lines] == ["a", "b"]

    def test_unserializable_event(self, tmp_path: Path) -> None:
        sink = JsonlFileAuditSink(file_path=tmp_path / "audit.jsonl")

        with pytest.raises(AuditSinkError):
            sink.emit({"details": object()})

    def test_path_from_environment(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(AUDIT_LOG_PATH_ENV, str(tmp_path / "env.jsonl"))

        sink = get_audit_sink()

        assert isinstance(sink, JsonlFileAuditSink)
        assert sink.file_path == tmp_path / "env.jsonl"


class TestEmitEvent:
    def test_default_sink_is_in_memory(self) -> None:
        assert isinstance(get_audit_sink(), InMemoryAuditSink)

    def test_sink_failure_is_logged_not_raised(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="riskprofile.audit.events"):
            emit_event(
                _FailingSink(),
                AuditEventType.FRAMEWORK_CREATED,
                resource_type="framework",
                resource_id="cfa",
            )

        assert "Audit emission failed" in caplog.text
        assert "disk full" in caplog.text

    def test_in_memory_sink_clear(self) -> None:
        sink = InMemoryAuditSink()
        emit_event(sink, AuditEventType.FRAMEWORK_CREATED, resource_type="framework", resource_id="x")

        sink.clear()

        assert sink.events == []
