"""Answer normalizer.

Pure conversion of a raw answer map (strings, numbers, arrays as submitted
by a form) into the typed answers the evaluator reads:

- single_select -> the matching option string
- multi_select  -> list of matching option strings, first occurrence order
- number        -> float, within the question's declared bounds
- text          -> string

Every problem is collected before raising, so a form can highlight all of
them at once. Keys that match no resolved question (or alias) are dropped.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from riskprofile.models.answer import as_number, canonical_option_value
from riskprofile.models.framework import BindingTransform, ResolvedQuestion
from riskprofile.models.question import QuestionType
from riskprofile.validators.result import ValidationError

logger = logging.getLogger(__name__)

MISSING_REQUIRED_ANSWER = "MISSING_REQUIRED_ANSWER"
INVALID_OPTION = "INVALID_OPTION"
INVALID_NUMBER = "INVALID_NUMBER"
INVALID_TEXT = "INVALID_TEXT"


class AnswerValidationError(Exception):
    """Raised when submitted answers fail validation.

    Attributes:
        errors: One ValidationError per problem; ``path`` is the question key.
    """

    def __init__(self, errors: list[ValidationError]) -> None:
        self.errors = errors
        keys = ", ".join(sorted({e.path for e in errors}))
        super().__init__(f"{len(errors)} invalid answer(s): {keys}")


class _Invalid(Exception):
    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, list | tuple):
        return len(value) == 0
    return False


def _match_option(question: ResolvedQuestion, value: Any) -> str:
    option = canonical_option_value(value)
    if option is not None:
        if option in question.options:
            return option
        if question.transform is BindingTransform.CASEFOLD:
            folded = option.casefold()
            for candidate in question.options:
                if candidate.casefold() == folded:
                    return candidate
    raise _Invalid(INVALID_OPTION, f"{value!r} is not an option of '{question.key}'")


def _normalize_value(question: ResolvedQuestion, value: Any) -> Any:
    if question.type is QuestionType.SINGLE_SELECT:
        if isinstance(value, list | tuple | dict):
            raise _Invalid(INVALID_OPTION, f"'{question.key}' accepts a single option")
        return _match_option(question, value)

    if question.type is QuestionType.MULTI_SELECT:
        items = [value] if not isinstance(value, list | tuple) else list(value)
        selected: list[str] = []
        for item in items:
            option = _match_option(question, item)
            if option not in selected:
                selected.append(option)
        return selected

    if question.type is QuestionType.NUMBER:
        number = as_number(value)
        if number is None:
            raise _Invalid(INVALID_NUMBER, f"{value!r} is not a number")
        if question.min_value is not None and number < question.min_value:
            raise _Invalid(INVALID_NUMBER, f"{number} is below the minimum {question.min_value}")
        if question.max_value is not None and number > question.max_value:
            raise _Invalid(INVALID_NUMBER, f"{number} is above the maximum {question.max_value}")
        return number

    if not isinstance(value, str):
        raise _Invalid(INVALID_TEXT, f"'{question.key}' expects text")
    if question.transform is BindingTransform.TRIM:
        return value.strip()
    return value


def normalize_answers(
    questions: Sequence[ResolvedQuestion],
    raw_answers: Mapping[str, Any],
) -> dict[str, Any]:
    """Validate and type raw answers against a resolved question list.

    Args:
        questions: Resolved questions of the framework version.
        raw_answers: Answers keyed by question key or binding alias.

    Returns:
        Typed answers keyed by question key, in question order. Optional
        questions left blank are omitted.

    Raises:
        AnswerValidationError: With every missing or invalid answer.
    """
    errors: list[ValidationError] = []
    answers: dict[str, Any] = {}
    recognized: set[str] = set()

    for question in questions:
        recognized.add(question.key)
        if question.alias:
            recognized.add(question.alias)

        value = raw_answers.get(question.key)
        if _is_blank(value) and question.alias:
            value = raw_answers.get(question.alias)

        if _is_blank(value):
            if question.required:
                errors.append(
                    ValidationError(
                        code=MISSING_REQUIRED_ANSWER,
                        message=f"An answer to '{question.key}' is required",
                        path=question.key,
                    )
                )
            continue

        if isinstance(value, str) and question.transform is BindingTransform.TRIM:
            value = value.strip()

        try:
            answers[question.key] = _normalize_value(question, value)
        except _Invalid as e:
            errors.append(
                ValidationError(code=e.code, message=e.message, path=question.key, value=value)
            )

    if errors:
        raise AnswerValidationError(errors)

    dropped = sorted(k for k in raw_answers if k not in recognized)
    if dropped:
        logger.debug("Dropped unrecognized answer keys: %s", dropped)
    return answers
