"""Question catalog and question-binding resolution."""

from riskprofile.services.questions.catalog import (
    CreateQuestionInput,
    InvalidQuestionError,
    QuestionCatalog,
    QuestionInactiveError,
)
from riskprofile.services.questions.resolver import (
    CatalogIntegrityError,
    QuestionBindingResolver,
    merge_binding,
)

__all__ = [
    "CatalogIntegrityError",
    "CreateQuestionInput",
    "InvalidQuestionError",
    "QuestionBindingResolver",
    "QuestionCatalog",
    "QuestionInactiveError",
    "merge_binding",
]
