"""Submission snapshot models.

A Submission is written once at submit time and never updated. Everything a
historical view or an audit needs lives in the snapshot itself: the resolved
question list, the scoring configuration, the answers and the result.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from riskprofile.models.framework import ResolvedQuestion
from riskprofile.scoring.config import ScoringConfiguration
from riskprofile.scoring.models import ScoringResult


class Submission(BaseModel):
    """Frozen snapshot of one scored questionnaire."""

    model_config = ConfigDict(frozen=True)

    submission_id: str = Field(..., description="UUID of this submission")
    framework_version_id: str = Field(..., description="Framework version used")
    framework_code: str = Field(..., description="Framework of that version")
    version_number: int = Field(..., ge=1)
    config_hash: str = Field(..., description="Hash of the configuration in the snapshot")
    config: ScoringConfiguration = Field(..., description="Configuration as used at submit time")
    questions: list[ResolvedQuestion] = Field(..., description="Resolved questions at submit time")
    raw_answers: dict[str, Any] = Field(..., description="Answers exactly as submitted")
    answers: dict[str, Any] = Field(..., description="Normalized answers that were scored")
    result: ScoringResult
    subject_ref: str | None = Field(default=None, description="Lead/person reference")
    submitted_at: datetime
    engine_version: str = Field(..., description="Package version that computed the result")


class SubmissionResult(BaseModel):
    """Caller-facing outcome of submitAnswers."""

    model_config = ConfigDict(frozen=True)

    submission_id: str
    pillar_scores: dict[str, float]
    decision: float
    bucket: str
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def from_submission(cls, submission: Submission) -> SubmissionResult:
        return cls(submission_id=submission.submission_id, **submission.result.outcome())


class RescoreReport(BaseModel):
    """Comparison of a stored result with a fresh evaluation of the same snapshot."""

    model_config = ConfigDict(frozen=True)

    submission_id: str
    matches: bool
    original: dict[str, Any]
    recomputed: dict[str, Any]
