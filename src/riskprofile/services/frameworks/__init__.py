"""Framework registry: frameworks, versions and question bindings."""

from riskprofile.services.frameworks.registry import (
    ActiveFrameworkVersionNotFoundError,
    BindingNotFoundError,
    BindQuestionInput,
    CreateFrameworkInput,
    FrameworkRegistry,
    FrameworkVersionLockedError,
    InvalidBindingOverrideError,
)

__all__ = [
    "ActiveFrameworkVersionNotFoundError",
    "BindQuestionInput",
    "BindingNotFoundError",
    "CreateFrameworkInput",
    "FrameworkRegistry",
    "FrameworkVersionLockedError",
    "InvalidBindingOverrideError",
]
