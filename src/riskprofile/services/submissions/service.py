"""SubmissionService - submit, read and re-score frozen submission snapshots.

submit() resolves the question set, normalizes the answers and evaluates
the score before anything is written; any failure aborts with no partial
submission. The snapshot (resolved questions, configuration, answers and
result) is then stored in one write, and every later read returns exactly
that snapshot, never a re-join against live configuration.

Uses SQL repositories when db_conn exists, in-memory fallback otherwise.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from riskprofile import __version__
from riskprofile.audit.events import AuditEventType, emit_event
from riskprofile.audit.sink import AuditSink, InMemoryAuditSink
from riskprofile.models.submission import RescoreReport, Submission, SubmissionResult
from riskprofile.persistence.repositories.frameworks import (
    FrameworkVersionNotFoundError,
    get_frameworks_repository,
)
from riskprofile.persistence.repositories.submissions import (
    SubmissionNotFoundError,
    get_submissions_repository,
)
from riskprofile.scoring.evaluator import ScoringEvaluator
from riskprofile.services.answers.normalizer import normalize_answers
from riskprofile.services.questions.resolver import QuestionBindingResolver

if TYPE_CHECKING:
    from sqlalchemy import Connection

logger = logging.getLogger(__name__)


class EmptyQuestionSetError(Exception):
    """Raised when submitting against a version that binds no questions."""

    def __init__(self, version_id: str) -> None:
        self.version_id = version_id
        super().__init__(f"Framework version {version_id} has no questions to answer")


class UnboundScoredQuestionError(Exception):
    """Raised when a version's configuration scores question keys it does not bind."""

    def __init__(self, version_id: str, keys: list[str]) -> None:
        self.version_id = version_id
        self.keys = keys
        super().__init__(
            f"Framework version {version_id} scores unbound questions: {', '.join(keys)}"
        )


class SubmissionService:
    """Service layer for submission snapshots.

    Usage:
        service = SubmissionService(db_conn=conn)
        result = service.submit(version_id, {"age": "25-35", ...}, subject_ref="lead-42")
    """

    def __init__(
        self,
        db_conn: Connection | None = None,
        audit_sink: AuditSink | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            db_conn: SQLAlchemy connection. If None, uses in-memory storage.
            audit_sink: Optional audit sink for event emission.
        """
        self._frameworks = get_frameworks_repository(db_conn)
        self._submissions = get_submissions_repository(db_conn)
        self._resolver = QuestionBindingResolver(db_conn)
        self._audit_sink = audit_sink or InMemoryAuditSink()

    def submit(
        self,
        version_id: str,
        raw_answers: Mapping[str, Any],
        subject_ref: str | None = None,
    ) -> SubmissionResult:
        """Score answers against a framework version and persist the snapshot.

        Args:
            version_id: Framework version to score against.
            raw_answers: Answers as submitted, keyed by question key or alias.
            subject_ref: Optional reference to the lead/person.

        Returns:
            SubmissionResult with the new submission id and the outcome.

        Raises:
            FrameworkVersionNotFoundError: If the version id is unknown.
            EmptyQuestionSetError: If the version binds no questions.
            UnboundScoredQuestionError: If the configuration reads a key the
                version does not bind.
            AnswerValidationError: If answers are missing or invalid.
            EngineIntegrityError: If evaluation hits an integrity error.
        """
        version = self._frameworks.get_version(version_id)
        if version is None:
            raise FrameworkVersionNotFoundError(version_id)

        questions = self._resolver.resolve(version_id)
        if not questions:
            raise EmptyQuestionSetError(version_id)
        unbound = sorted(version.config.question_keys - {q.key for q in questions})
        if unbound:
            raise UnboundScoredQuestionError(version_id, unbound)

        answers = normalize_answers(questions, raw_answers)
        result = ScoringEvaluator(version.config).evaluate(answers)

        submission = Submission(
            submission_id=str(uuid.uuid4()),
            framework_version_id=version.version_id,
            framework_code=version.framework_code,
            version_number=version.version_number,
            config_hash=version.config_hash,
            config=version.config,
            questions=questions,
            raw_answers=dict(raw_answers),
            answers=answers,
            result=result,
            subject_ref=subject_ref,
            submitted_at=datetime.now(UTC),
            engine_version=__version__,
        )
        self._submissions.create(submission)

        logger.info(
            "Stored submission %s for %s v%d: bucket=%s decision=%s",
            submission.submission_id,
            version.framework_code,
            version.version_number,
            result.bucket,
            result.decision,
        )
        emit_event(
            self._audit_sink,
            AuditEventType.SUBMISSION_CREATED,
            resource_type="submission",
            resource_id=submission.submission_id,
            details={
                "framework_version_id": version.version_id,
                "config_hash": version.config_hash,
                "bucket": result.bucket,
                "subject_ref": subject_ref,
            },
        )
        return SubmissionResult.from_submission(submission)

    def get_submission(self, submission_id: str) -> Submission:
        """Return the frozen snapshot.

        Raises:
            SubmissionNotFoundError: If the id is unknown.
        """
        submission = self._submissions.get(submission_id)
        if submission is None:
            raise SubmissionNotFoundError(submission_id)
        return submission

    def list_submissions(
        self,
        subject_ref: str | None = None,
        framework_version_id: str | None = None,
    ) -> list[Submission]:
        return self._submissions.list(
            subject_ref=subject_ref,
            framework_version_id=framework_version_id,
        )

    def rescore(self, submission_id: str) -> RescoreReport:
        """Re-evaluate a stored snapshot and compare with its stored result.

        Reads only the snapshot's own configuration and normalized answers,
        and writes nothing. A mismatch means the engine changed behavior.

        Raises:
            SubmissionNotFoundError: If the id is unknown.
            EngineIntegrityError: If re-evaluation hits an integrity error.
        """
        submission = self.get_submission(submission_id)
        recomputed = ScoringEvaluator(submission.config).evaluate(submission.answers)

        original = submission.result.outcome()
        fresh = recomputed.outcome()
        matches = original == fresh
        if not matches:
            logger.error(
                "Rescore mismatch for submission %s (engine %s stored, %s now): %s != %s",
                submission_id,
                submission.engine_version,
                __version__,
                original,
                fresh,
            )
        emit_event(
            self._audit_sink,
            AuditEventType.SUBMISSION_RESCORED,
            resource_type="submission",
            resource_id=submission_id,
            details={"matches": matches, "engine_version": __version__},
        )
        return RescoreReport(
            submission_id=submission_id,
            matches=matches,
            original=original,
            recomputed=fresh,
        )
