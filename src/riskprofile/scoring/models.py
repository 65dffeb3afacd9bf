"""Scoring result models.

- DiagnosticReason: why an input contributed a zero score
- ScoringDiagnostic: one tolerated, recorded scoring anomaly
- ScoringResult: pillar scores, decision scalar, bucket label, warnings
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class DiagnosticReason(StrEnum):
    """Reason an input scored 0 without failing the evaluation."""

    UNMATCHED_OPTION = "unmatched_option"
    NOT_NUMERIC = "not_numeric"
    ABOVE_SCALE = "above_scale"
    MISSING_ANSWER = "missing_answer"


class ScoringDiagnostic(BaseModel):
    """A recorded, tolerated anomaly met while scoring an input."""

    model_config = ConfigDict(frozen=True)

    pillar: str = Field(..., description="Pillar the input belongs to")
    question_key: str = Field(..., description="Question key of the input")
    reason: DiagnosticReason = Field(..., description="Why the input scored 0")
    value: Any = Field(default=None, description="The answer value that was scored")


class ScoringResult(BaseModel):
    """Output of the scoring evaluator.

    Identical configuration and answers always produce an identical result.
    """

    model_config = ConfigDict(frozen=True)

    pillar_scores: dict[str, float] = Field(..., description="Score per pillar")
    decision: float = Field(..., description="Decision scalar from the decision formula")
    bucket: str = Field(..., description="Risk category label of the matching band")
    warnings: list[str] = Field(default_factory=list, description="Triggered warning messages")
    diagnostics: list[ScoringDiagnostic] = Field(
        default_factory=list, description="Inputs that scored 0 without failing"
    )

    def outcome(self) -> dict[str, Any]:
        """Return the caller-facing part of the result."""
        return {
            "pillar_scores": dict(self.pillar_scores),
            "decision": self.decision,
            "bucket": self.bucket,
            "warnings": list(self.warnings),
        }
