"""Validation result types shared by configuration and answer validation.

Validation collects every problem it can find and reports them together,
so an author or a form can fix all of them in one pass.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ValidationError:
    """A single validation problem.

    Attributes:
        code: Machine-readable error code (e.g. "MISSING_REQUIRED_ANSWER").
        message: Human-readable explanation.
        path: Location of the problem. A JSON path ("$.pillars[0].weight")
            for configuration documents, the question key for answers.
        value: The offending value, when there is one.
    """

    code: str
    message: str
    path: str
    value: Any = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "code": self.code,
            "message": self.message,
            "path": self.path,
            "value": self.value,
        }


@dataclass
class ValidationResult:
    """Result of validation - fail-closed by default."""

    passed: bool
    errors: list[ValidationError] = field(default_factory=list)
    warnings: list[ValidationError] = field(default_factory=list)

    @classmethod
    def fail(cls, errors: list[ValidationError]) -> ValidationResult:
        """Create a failed result."""
        return cls(passed=False, errors=errors)

    @classmethod
    def success(cls, warnings: list[ValidationError] | None = None) -> ValidationResult:
        """Create a successful result."""
        return cls(passed=True, warnings=warnings or [])

    @classmethod
    def fail_closed(cls, reason: str) -> ValidationResult:
        """Fail closed with a single error - used when validation cannot proceed."""
        return cls(
            passed=False,
            errors=[ValidationError(code="FAIL_CLOSED", message=reason, path="$")],
        )
