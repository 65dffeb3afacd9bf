"""Question-binding resolver.

Maps a framework version to its ordered question list: every binding is
merged with its catalog question, binding label/options winning when set.
Ordering and uniqueness are guaranteed at binding-write time, so reading
never has to break ties.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from riskprofile.models.framework import QuestionBinding, ResolvedQuestion
from riskprofile.models.question import Question
from riskprofile.persistence.repositories.frameworks import (
    FrameworkVersionNotFoundError,
    get_frameworks_repository,
)
from riskprofile.persistence.repositories.questions import get_questions_repository

if TYPE_CHECKING:
    from sqlalchemy import Connection

logger = logging.getLogger(__name__)


class CatalogIntegrityError(Exception):
    """Raised when a binding references a question missing from the catalog."""

    def __init__(self, version_id: str, key: str) -> None:
        self.version_id = version_id
        self.key = key
        super().__init__(f"Version {version_id} binds '{key}', which is not in the catalog")


def merge_binding(question: Question, binding: QuestionBinding) -> ResolvedQuestion:
    """Merge a catalog question with its binding overrides."""
    return ResolvedQuestion(
        key=question.key,
        label=binding.label_override or question.label,
        type=question.type,
        options=list(
            binding.options_override if binding.options_override is not None else question.options
        ),
        required=binding.required,
        order=binding.order_index,
        module=question.module,
        min_value=question.min_value,
        max_value=question.max_value,
        alias=binding.alias,
        transform=binding.transform,
    )


class QuestionBindingResolver:
    """Resolves the question set of a framework version."""

    def __init__(self, db_conn: Connection | None = None) -> None:
        """Initialize the resolver.

        Args:
            db_conn: SQLAlchemy connection. If None, uses in-memory storage.
        """
        self._frameworks = get_frameworks_repository(db_conn)
        self._questions = get_questions_repository(db_conn)

    def resolve(self, version_id: str) -> list[ResolvedQuestion]:
        """Return the version's questions ordered by ``order`` ascending.

        A version without bindings resolves to an empty list.

        Raises:
            FrameworkVersionNotFoundError: If the version id is unknown.
            CatalogIntegrityError: If a bound question is missing from the
                catalog.
        """
        if self._frameworks.get_version(version_id) is None:
            raise FrameworkVersionNotFoundError(version_id)

        resolved: list[ResolvedQuestion] = []
        for binding in self._frameworks.list_bindings(version_id):
            question = self._questions.get(binding.question_key)
            if question is None:
                logger.error(
                    "Catalog integrity error: version %s binds unknown question '%s'",
                    version_id,
                    binding.question_key,
                )
                raise CatalogIntegrityError(version_id, binding.question_key)
            resolved.append(merge_binding(question, binding))

        resolved.sort(key=lambda q: q.order)
        return resolved
