"""Submission snapshot repository.

A submission is one row written by a single INSERT and never updated or
deleted; reads return the stored snapshot as-is.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import exists, insert, select

from riskprofile.models.submission import Submission
from riskprofile.persistence.db import as_utc
from riskprofile.persistence.schema import submissions

if TYPE_CHECKING:
    from sqlalchemy import Connection

logger = logging.getLogger(__name__)


class SubmissionNotFoundError(Exception):
    """Raised when a submission id is unknown."""

    def __init__(self, submission_id: str) -> None:
        self.submission_id = submission_id
        super().__init__(f"Submission {submission_id} not found")


class SubmissionsRepository:
    """SQL repository for submission snapshots."""

    def __init__(self, conn: Connection) -> None:
        """Initialize repository with a connection.

        Args:
            conn: SQLAlchemy connection (must be in a transaction).
        """
        self._conn = conn

    def create(self, submission: Submission) -> Submission:
        """Persist the full snapshot in one INSERT."""
        document = submission.model_dump(mode="json")
        self._conn.execute(
            insert(submissions).values(
                submission_id=submission.submission_id,
                framework_version_id=submission.framework_version_id,
                framework_code=submission.framework_code,
                version_number=submission.version_number,
                config_hash=submission.config_hash,
                config=document["config"],
                questions=document["questions"],
                raw_answers=document["raw_answers"],
                answers=document["answers"],
                result=document["result"],
                subject_ref=submission.subject_ref,
                submitted_at=submission.submitted_at,
                engine_version=submission.engine_version,
            )
        )
        return submission

    def get(self, submission_id: str) -> Submission | None:
        row = self._conn.execute(
            select(submissions).where(submissions.c.submission_id == submission_id)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_submission(row)

    def list(
        self,
        subject_ref: str | None = None,
        framework_version_id: str | None = None,
    ) -> list[Submission]:
        """List submissions, newest first."""
        stmt = select(submissions)
        if subject_ref is not None:
            stmt = stmt.where(submissions.c.subject_ref == subject_ref)
        if framework_version_id is not None:
            stmt = stmt.where(submissions.c.framework_version_id == framework_version_id)
        stmt = stmt.order_by(submissions.c.submitted_at.desc(), submissions.c.submission_id)
        return [self._row_to_submission(row) for row in self._conn.execute(stmt).fetchall()]

    def exists_for_version(self, framework_version_id: str) -> bool:
        """Return True if any submission references the version."""
        return bool(
            self._conn.execute(
                select(
                    exists().where(submissions.c.framework_version_id == framework_version_id)
                )
            ).scalar()
        )

    def _row_to_submission(self, row: Any) -> Submission:
        return Submission(
            submission_id=row.submission_id,
            framework_version_id=row.framework_version_id,
            framework_code=row.framework_code,
            version_number=row.version_number,
            config_hash=row.config_hash,
            config=row.config,
            questions=row.questions,
            raw_answers=row.raw_answers,
            answers=row.answers,
            result=row.result,
            subject_ref=row.subject_ref,
            submitted_at=as_utc(row.submitted_at),
            engine_version=row.engine_version,
        )


_in_memory_store: dict[str, dict[str, Any]] = {}


class InMemorySubmissionsRepository:
    """In-memory fallback repository for when no database is configured.

    Snapshots are kept as JSON documents, so a read never shares mutable
    state with the objects that were written.
    """

    def create(self, submission: Submission) -> Submission:
        _in_memory_store[submission.submission_id] = submission.model_dump(mode="json")
        return submission

    def get(self, submission_id: str) -> Submission | None:
        document = _in_memory_store.get(submission_id)
        if document is None:
            return None
        return Submission.model_validate(document)

    def list(
        self,
        subject_ref: str | None = None,
        framework_version_id: str | None = None,
    ) -> list[Submission]:
        items = [
            Submission.model_validate(doc)
            for doc in _in_memory_store.values()
            if (subject_ref is None or doc["subject_ref"] == subject_ref)
            and (
                framework_version_id is None
                or doc["framework_version_id"] == framework_version_id
            )
        ]
        items.sort(key=lambda s: s.submission_id)
        items.sort(key=lambda s: s.submitted_at, reverse=True)
        return items

    def exists_for_version(self, framework_version_id: str) -> bool:
        return any(
            doc["framework_version_id"] == framework_version_id
            for doc in _in_memory_store.values()
        )


def clear_submissions_in_memory_store() -> None:
    """Clear the in-memory store. For testing only."""
    _in_memory_store.clear()


def get_submissions_repository(
    conn: Connection | None,
) -> SubmissionsRepository | InMemorySubmissionsRepository:
    """Factory to get the appropriate submissions repository.

    Returns the SQL repository when a connection is given, otherwise the
    in-memory fallback.
    """
    if conn is not None:
        return SubmissionsRepository(conn)
    return InMemorySubmissionsRepository()
