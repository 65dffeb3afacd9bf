"""Tests for SubmissionService.

Tests cover:
1. Reference scenarios scored end to end
2. Atomic validation: nothing is stored when answers are rejected
3. Snapshot immutability against later catalog and registry changes
4. Read filters and rescoring
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from riskprofile.audit.sink import InMemoryAuditSink
from riskprofile.models.framework import FrameworkVersion
from riskprofile.persistence.repositories.frameworks import FrameworkVersionNotFoundError
from riskprofile.persistence.repositories.submissions import SubmissionNotFoundError
from riskprofile.scoring.reference import (
    NEED_EXCEEDS_CAPACITY_MESSAGE,
    REFERENCE_FRAMEWORK_CODE,
)
from riskprofile.services.answers.normalizer import AnswerValidationError
from riskprofile.services.frameworks.registry import BindQuestionInput, FrameworkRegistry
from riskprofile.services.questions.catalog import QuestionCatalog
from riskprofile.services.submissions.service import (
    EmptyQuestionSetError,
    SubmissionService,
    UnboundScoredQuestionError,
)


@pytest.fixture
def version(seed_reference: Callable[..., FrameworkVersion]) -> FrameworkVersion:
    return seed_reference()


@pytest.fixture
def service(audit_sink: InMemoryAuditSink) -> SubmissionService:
    return SubmissionService(audit_sink=audit_sink)


class TestSubmit:
    def test_aggressive_scenario(
        self,
        service: SubmissionService,
        version: FrameworkVersion,
        aggressive_answers: dict[str, Any],
    ) -> None:
        result = service.submit(version.version_id, aggressive_answers, subject_ref="lead-1")

        assert result.pillar_scores == pytest.approx(
            {"capacity": 83.25, "tolerance": 80.5, "need": 85.0}
        )
        assert result.decision == pytest.approx(80.5)
        assert result.bucket == "Aggressive"
        assert result.warnings == []

    def test_need_exceeds_capacity_scenario(
        self,
        service: SubmissionService,
        version: FrameworkVersion,
        need_exceeds_capacity_answers: dict[str, Any],
    ) -> None:
        result = service.submit(version.version_id, need_exceeds_capacity_answers)

        assert result.pillar_scores == pytest.approx(
            {"capacity": 45.25, "tolerance": 20.0, "need": 95.0}
        )
        assert result.bucket == "Conservative"
        assert result.warnings == [NEED_EXCEEDS_CAPACITY_MESSAGE]

    def test_snapshot_contents(
        self,
        service: SubmissionService,
        version: FrameworkVersion,
        aggressive_answers: dict[str, Any],
    ) -> None:
        result = service.submit(version.version_id, aggressive_answers, subject_ref="lead-1")

        stored = service.get_submission(result.submission_id)
        assert stored.framework_version_id == version.version_id
        assert stored.framework_code == REFERENCE_FRAMEWORK_CODE
        assert stored.version_number == 1
        assert stored.config_hash == version.config_hash
        assert stored.config == version.config
        assert len(stored.questions) == 8
        assert stored.raw_answers == aggressive_answers
        assert stored.answers["emi_ratio"] == 15.0
        assert stored.result.bucket == result.bucket
        assert stored.subject_ref == "lead-1"
        assert stored.submitted_at.tzinfo is not None

    def test_missing_answer_stores_nothing(
        self,
        service: SubmissionService,
        version: FrameworkVersion,
        aggressive_answers: dict[str, Any],
        audit_sink: InMemoryAuditSink,
    ) -> None:
        del aggressive_answers["age"]
        aggressive_answers["emi_ratio"] = "a lot"

        with pytest.raises(AnswerValidationError) as exc_info:
            service.submit(version.version_id, aggressive_answers)

        codes = {(e.path, e.code) for e in exc_info.value.errors}
        assert codes == {("age", "MISSING_REQUIRED_ANSWER"), ("emi_ratio", "INVALID_NUMBER")}
        assert service.list_submissions() == []
        assert not [e for e in audit_sink.events if e["event_type"] == "submission.created"]

    def test_unknown_version(
        self, service: SubmissionService, aggressive_answers: dict[str, Any]
    ) -> None:
        with pytest.raises(FrameworkVersionNotFoundError):
            service.submit("missing", aggressive_answers)

    def test_empty_question_set(
        self,
        service: SubmissionService,
        version: FrameworkVersion,
        aggressive_answers: dict[str, Any],
    ) -> None:
        bare = FrameworkRegistry().publish_version(
            REFERENCE_FRAMEWORK_CODE, version.config.to_document()
        )

        with pytest.raises(EmptyQuestionSetError):
            service.submit(bare.version_id, aggressive_answers)

    def test_scored_question_left_unbound(
        self,
        service: SubmissionService,
        version: FrameworkVersion,
        aggressive_answers: dict[str, Any],
    ) -> None:
        FrameworkRegistry().unbind_question(version.version_id, "drawdown_reaction")

        with pytest.raises(UnboundScoredQuestionError) as exc_info:
            service.submit(version.version_id, aggressive_answers)

        assert exc_info.value.keys == ["drawdown_reaction"]
        assert service.list_submissions() == []

    def test_audit_event(
        self,
        service: SubmissionService,
        version: FrameworkVersion,
        aggressive_answers: dict[str, Any],
        audit_sink: InMemoryAuditSink,
    ) -> None:
        result = service.submit(version.version_id, aggressive_answers, subject_ref="lead-1")

        event = audit_sink.events[-1]
        assert event["event_type"] == "submission.created"
        assert event["resource_id"] == result.submission_id
        assert event["details"]["config_hash"] == version.config_hash
        assert event["details"]["bucket"] == "Aggressive"


class TestSnapshotImmutability:
    def test_reads_ignore_later_configuration(
        self,
        service: SubmissionService,
        version: FrameworkVersion,
        aggressive_answers: dict[str, Any],
    ) -> None:
        result = service.submit(version.version_id, aggressive_answers)
        before = service.get_submission(result.submission_id)

        document = version.config.to_document()
        document["bands"] = [
            {"min": 0, "max": 50, "label": "Low"},
            {"min": 50, "max": 100, "label": "High"},
        ]
        registry = FrameworkRegistry()
        newer = registry.publish_version(REFERENCE_FRAMEWORK_CODE, document, activate=True)
        registry.bind_question(
            newer.version_id, BindQuestionInput(question_key="age", order_index=0)
        )
        QuestionCatalog().deactivate_question("market_knowledge")

        after = service.get_submission(result.submission_id)
        assert after == before
        assert after.result.bucket == "Aggressive"
        assert [b.label for b in after.config.bands][-1] == "Aggressive"
        assert any(q.key == "market_knowledge" for q in after.questions)

    def test_raw_answers_are_copied(
        self,
        service: SubmissionService,
        version: FrameworkVersion,
        aggressive_answers: dict[str, Any],
    ) -> None:
        result = service.submit(version.version_id, aggressive_answers)
        aggressive_answers["age"] = "51+"

        assert service.get_submission(result.submission_id).raw_answers["age"] == "25-35"


class TestReads:
    def test_unknown_submission(self, service: SubmissionService) -> None:
        with pytest.raises(SubmissionNotFoundError):
            service.get_submission("missing")

    def test_list_filters(
        self,
        service: SubmissionService,
        version: FrameworkVersion,
        aggressive_answers: dict[str, Any],
        need_exceeds_capacity_answers: dict[str, Any],
    ) -> None:
        first = service.submit(version.version_id, aggressive_answers, subject_ref="lead-1")
        second = service.submit(
            version.version_id, need_exceeds_capacity_answers, subject_ref="lead-2"
        )

        everything = {s.submission_id for s in service.list_submissions()}
        assert everything == {first.submission_id, second.submission_id}
        assert [s.submission_id for s in service.list_submissions(subject_ref="lead-2")] == [
            second.submission_id
        ]
        assert service.list_submissions(framework_version_id="other") == []
        assert len(service.list_submissions(framework_version_id=version.version_id)) == 2


class TestRescore:
    def test_rescore_matches(
        self,
        service: SubmissionService,
        version: FrameworkVersion,
        need_exceeds_capacity_answers: dict[str, Any],
        audit_sink: InMemoryAuditSink,
    ) -> None:
        result = service.submit(version.version_id, need_exceeds_capacity_answers)

        report = service.rescore(result.submission_id)

        assert report.matches
        assert report.original == report.recomputed
        assert report.original["warnings"] == [NEED_EXCEEDS_CAPACITY_MESSAGE]
        assert audit_sink.events[-1]["event_type"] == "submission.rescored"
        assert len(service.list_submissions()) == 1

    def test_rescore_unknown(self, service: SubmissionService) -> None:
        with pytest.raises(SubmissionNotFoundError):
            service.rescore("missing")
