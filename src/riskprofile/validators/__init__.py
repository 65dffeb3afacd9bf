"""Fail-closed validators for configuration documents and answers."""

from riskprofile.validators.result import ValidationError, ValidationResult

__all__ = [
    "ValidationError",
    "ValidationResult",
]
