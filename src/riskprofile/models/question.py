"""Question catalog model.

A Question is a reusable, globally keyed definition. It is created once and
never mutated in place; the only lifecycle change is a soft deactivation.
"""

from __future__ import annotations

import re
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator

QUESTION_KEY_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_.-]{0,127}$")


class QuestionType(StrEnum):
    """Input type of a question."""

    SINGLE_SELECT = "single_select"
    MULTI_SELECT = "multi_select"
    NUMBER = "number"
    TEXT = "text"

    @property
    def has_options(self) -> bool:
        return self in (QuestionType.SINGLE_SELECT, QuestionType.MULTI_SELECT)


class Question(BaseModel):
    """A catalog question definition."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    key: str = Field(..., description="Globally unique question key")
    label: str = Field(..., min_length=1, description="Display label")
    type: QuestionType = Field(..., description="Input type")
    options: list[str] = Field(default_factory=list, description="Option set for select types")
    module: str | None = Field(default=None, description="Grouping tag")
    min_value: float | None = Field(default=None, description="Lower bound for numeric answers")
    max_value: float | None = Field(default=None, description="Upper bound for numeric answers")
    is_active: bool = Field(default=True, description="False once deactivated")
    created_at: datetime | None = Field(default=None, description="Creation timestamp")

    @model_validator(mode="after")
    def _check_shape(self) -> Question:
        if not QUESTION_KEY_PATTERN.match(self.key):
            raise ValueError(f"Question key '{self.key}' is not a valid key")
        if self.type.has_options:
            if not self.options:
                raise ValueError(f"{self.type.value} question '{self.key}' needs options")
            check_option_set(self.options)
        elif self.options:
            raise ValueError(f"{self.type.value} question '{self.key}' cannot have options")
        if self.type is not QuestionType.NUMBER and (
            self.min_value is not None or self.max_value is not None
        ):
            raise ValueError("Numeric bounds are only allowed on number questions")
        if (
            self.min_value is not None
            and self.max_value is not None
            and self.min_value > self.max_value
        ):
            raise ValueError("min_value must not exceed max_value")
        return self


def check_option_set(options: list[str]) -> None:
    """Reject blank or duplicated option strings.

    Raises:
        ValueError: If an option is blank or appears twice.
    """
    seen: set[str] = set()
    for option in options:
        if not option.strip():
            raise ValueError("Options must not be blank")
        if option in seen:
            raise ValueError(f"Option '{option}' is listed twice")
        seen.add(option)
