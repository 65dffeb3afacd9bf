"""QuestionCatalog - business logic for the global question catalog.

Questions are created once and never updated in place; a question that is
referenced by published framework versions can only be deactivated, which
blocks new bindings but leaves existing ones resolvable.

Uses SQL repositories when db_conn exists, in-memory fallback otherwise.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from riskprofile.audit.events import AuditEventType, emit_event
from riskprofile.audit.sink import AuditSink, InMemoryAuditSink
from riskprofile.models.question import Question, QuestionType
from riskprofile.persistence.repositories.questions import (
    QuestionNotFoundError,
    get_questions_repository,
)

if TYPE_CHECKING:
    from sqlalchemy import Connection

logger = logging.getLogger(__name__)


class InvalidQuestionError(Exception):
    """Raised when a question definition is malformed."""

    def __init__(self, errors: list[dict[str, Any]]) -> None:
        self.errors = errors
        messages = "; ".join(str(e.get("msg", e)) for e in errors)
        super().__init__(f"Invalid question definition: {messages}")


class QuestionInactiveError(Exception):
    """Raised when binding a question that has been deactivated."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Question '{key}' is inactive")


class CreateQuestionInput(BaseModel):
    """Input model for creating a catalog question."""

    key: str = Field(..., description="Globally unique question key")
    label: str = Field(..., description="Display label")
    type: QuestionType = Field(..., description="Input type")
    options: list[str] = Field(default_factory=list, description="Option set for select types")
    module: str | None = Field(default=None, description="Grouping tag")
    min_value: float | None = Field(default=None, description="Numeric lower bound")
    max_value: float | None = Field(default=None, description="Numeric upper bound")


class QuestionCatalog:
    """Service layer for the question catalog.

    Usage:
        catalog = QuestionCatalog(db_conn=conn)
        question = catalog.create_question(CreateQuestionInput(...))
    """

    def __init__(
        self,
        db_conn: Connection | None = None,
        audit_sink: AuditSink | None = None,
    ) -> None:
        """Initialize the catalog.

        Args:
            db_conn: SQLAlchemy connection. If None, uses in-memory storage.
            audit_sink: Optional audit sink for event emission.
        """
        self._repo = get_questions_repository(db_conn)
        self._audit_sink = audit_sink or InMemoryAuditSink()

    def create_question(self, data: CreateQuestionInput) -> Question:
        """Add a question to the catalog.

        Raises:
            InvalidQuestionError: If the definition is malformed (bad key,
                missing or duplicated options, bounds on a non-number, ...).
            QuestionAlreadyExistsError: If the key is taken.
        """
        try:
            question = Question(**data.model_dump())
        except PydanticValidationError as e:
            raise InvalidQuestionError(
                [{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()]
            ) from e

        created = self._repo.create(question)
        emit_event(
            self._audit_sink,
            AuditEventType.QUESTION_CREATED,
            resource_type="question",
            resource_id=created.key,
            details={"type": created.type.value, "module": created.module},
        )
        return created

    def get_question(self, key: str) -> Question:
        """Get a question by key.

        Raises:
            QuestionNotFoundError: If the key is unknown.
        """
        question = self._repo.get(key)
        if question is None:
            raise QuestionNotFoundError(key)
        return question

    def find_question(self, key: str) -> Question | None:
        return self._repo.get(key)

    def list_questions(self, module: str | None = None, active_only: bool = False) -> list[Question]:
        return self._repo.list(module=module, active_only=active_only)

    def deactivate_question(self, key: str) -> Question:
        """Soft-deactivate a question. Idempotent.

        Raises:
            QuestionNotFoundError: If the key is unknown.
        """
        question = self._repo.deactivate(key)
        if question is None:
            raise QuestionNotFoundError(key)
        emit_event(
            self._audit_sink,
            AuditEventType.QUESTION_DEACTIVATED,
            resource_type="question",
            resource_id=key,
        )
        return question
