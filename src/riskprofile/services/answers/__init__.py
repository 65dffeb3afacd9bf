"""Answer normalization and validation."""

from riskprofile.services.answers.normalizer import (
    INVALID_NUMBER,
    INVALID_OPTION,
    INVALID_TEXT,
    MISSING_REQUIRED_ANSWER,
    AnswerValidationError,
    normalize_answers,
)

__all__ = [
    "INVALID_NUMBER",
    "INVALID_OPTION",
    "INVALID_TEXT",
    "MISSING_REQUIRED_ANSWER",
    "AnswerValidationError",
    "normalize_answers",
]
