"""Submission snapshot store."""

from riskprofile.services.submissions.service import (
    EmptyQuestionSetError,
    SubmissionService,
    UnboundScoredQuestionError,
)

__all__ = ["EmptyQuestionSetError", "SubmissionService", "UnboundScoredQuestionError"]
