"""Domain models: questions, frameworks, bindings, answers and submissions."""

from riskprofile.models.answer import AnswerValue, as_number, canonical_option_value
from riskprofile.models.question import Question, QuestionType
from riskprofile.models.framework import (
    BindingTransform,
    Framework,
    FrameworkVersion,
    QuestionBinding,
    ResolvedQuestion,
)
from riskprofile.models.submission import RescoreReport, Submission, SubmissionResult

__all__ = [
    "AnswerValue",
    "BindingTransform",
    "Framework",
    "FrameworkVersion",
    "Question",
    "QuestionBinding",
    "QuestionType",
    "RescoreReport",
    "ResolvedQuestion",
    "Submission",
    "SubmissionResult",
    "as_number",
    "canonical_option_value",
]
