"""Question catalog repository.

Questions are inserted once and never updated, except for the soft
deactivation flag.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import insert, select, update

from riskprofile.models.question import Question
from riskprofile.persistence.db import as_utc
from riskprofile.persistence.schema import questions

if TYPE_CHECKING:
    from sqlalchemy import Connection

logger = logging.getLogger(__name__)


class QuestionNotFoundError(Exception):
    """Raised when a question key is not in the catalog."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Question '{key}' not found")


class QuestionAlreadyExistsError(Exception):
    """Raised when creating a question whose key is already taken."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Question '{key}' already exists")


class QuestionsRepository:
    """SQL repository for catalog questions."""

    def __init__(self, conn: Connection) -> None:
        """Initialize repository with a connection.

        Args:
            conn: SQLAlchemy connection (must be in a transaction).
        """
        self._conn = conn

    def create(self, question: Question) -> Question:
        """Insert a question.

        Raises:
            QuestionAlreadyExistsError: If the key is taken.
        """
        if self.get(question.key) is not None:
            raise QuestionAlreadyExistsError(question.key)

        stored = question.model_copy(update={"created_at": datetime.now(UTC)})
        self._conn.execute(
            insert(questions).values(
                key=stored.key,
                label=stored.label,
                type=stored.type.value,
                options=list(stored.options),
                module=stored.module,
                min_value=stored.min_value,
                max_value=stored.max_value,
                is_active=stored.is_active,
                created_at=stored.created_at,
            )
        )
        return stored

    def get(self, key: str) -> Question | None:
        row = self._conn.execute(select(questions).where(questions.c.key == key)).fetchone()
        if row is None:
            return None
        return self._row_to_question(row)

    def list(self, module: str | None = None, active_only: bool = False) -> list[Question]:
        """List questions ordered by key, optionally filtered."""
        stmt = select(questions)
        if module is not None:
            stmt = stmt.where(questions.c.module == module)
        if active_only:
            stmt = stmt.where(questions.c.is_active.is_(True))
        rows = self._conn.execute(stmt.order_by(questions.c.key)).fetchall()
        return [self._row_to_question(row) for row in rows]

    def deactivate(self, key: str) -> Question | None:
        """Set is_active=False. Returns the updated question, or None if unknown."""
        result = self._conn.execute(
            update(questions).where(questions.c.key == key).values(is_active=False)
        )
        if result.rowcount == 0:
            return None
        return self.get(key)

    def _row_to_question(self, row: Any) -> Question:
        return Question(
            key=row.key,
            label=row.label,
            type=row.type,
            options=list(row.options or []),
            module=row.module,
            min_value=row.min_value,
            max_value=row.max_value,
            is_active=bool(row.is_active),
            created_at=as_utc(row.created_at),
        )


_in_memory_store: dict[str, Question] = {}


class InMemoryQuestionsRepository:
    """In-memory fallback repository for when no database is configured.

    Used for development/testing without database dependency.
    """

    def create(self, question: Question) -> Question:
        if question.key in _in_memory_store:
            raise QuestionAlreadyExistsError(question.key)
        stored = question.model_copy(update={"created_at": datetime.now(UTC)})
        _in_memory_store[stored.key] = stored
        return stored

    def get(self, key: str) -> Question | None:
        return _in_memory_store.get(key)

    def list(self, module: str | None = None, active_only: bool = False) -> list[Question]:
        items = [
            q
            for q in _in_memory_store.values()
            if (module is None or q.module == module) and (not active_only or q.is_active)
        ]
        return sorted(items, key=lambda q: q.key)

    def deactivate(self, key: str) -> Question | None:
        question = _in_memory_store.get(key)
        if question is None:
            return None
        updated = question.model_copy(update={"is_active": False})
        _in_memory_store[key] = updated
        return updated


def clear_questions_in_memory_store() -> None:
    """Clear the in-memory store. For testing only."""
    _in_memory_store.clear()


def get_questions_repository(
    conn: Connection | None,
) -> QuestionsRepository | InMemoryQuestionsRepository:
    """Factory to get the appropriate questions repository.

    Returns the SQL repository when a connection is given, otherwise the
    in-memory fallback.
    """
    if conn is not None:
        return QuestionsRepository(conn)
    return InMemoryQuestionsRepository()
