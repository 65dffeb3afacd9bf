"""Persistence repositories.

Each repository has a SQL implementation over a transactional connection and
an in-memory fallback for development/testing.
"""

from riskprofile.persistence.repositories.frameworks import (
    BindingConflictError,
    FrameworkAlreadyExistsError,
    FrameworkNotFoundError,
    FrameworksRepository,
    FrameworkVersionNotFoundError,
    InMemoryFrameworksRepository,
    clear_frameworks_in_memory_store,
    get_frameworks_repository,
)
from riskprofile.persistence.repositories.questions import (
    InMemoryQuestionsRepository,
    QuestionAlreadyExistsError,
    QuestionNotFoundError,
    QuestionsRepository,
    clear_questions_in_memory_store,
    get_questions_repository,
)
from riskprofile.persistence.repositories.submissions import (
    InMemorySubmissionsRepository,
    SubmissionNotFoundError,
    SubmissionsRepository,
    clear_submissions_in_memory_store,
    get_submissions_repository,
)


def clear_all_in_memory_stores() -> None:
    """Clear every in-memory store. For testing only."""
    clear_questions_in_memory_store()
    clear_frameworks_in_memory_store()
    clear_submissions_in_memory_store()


__all__ = [
    "BindingConflictError",
    "FrameworkAlreadyExistsError",
    "FrameworkNotFoundError",
    "FrameworkVersionNotFoundError",
    "FrameworksRepository",
    "InMemoryFrameworksRepository",
    "InMemoryQuestionsRepository",
    "InMemorySubmissionsRepository",
    "QuestionAlreadyExistsError",
    "QuestionNotFoundError",
    "QuestionsRepository",
    "SubmissionNotFoundError",
    "SubmissionsRepository",
    "clear_all_in_memory_stores",
    "clear_frameworks_in_memory_store",
    "clear_questions_in_memory_store",
    "clear_submissions_in_memory_store",
    "get_frameworks_repository",
    "get_questions_repository",
    "get_submissions_repository",
]
