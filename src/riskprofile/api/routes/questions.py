"""Question catalog routes.

Questions are created and soft-deactivated; there is no update endpoint.
"""

from fastapi import APIRouter, Request
from pydantic import BaseModel

from riskprofile.api.deps import get_catalog
from riskprofile.models.question import Question
from riskprofile.services.questions.catalog import CreateQuestionInput

router = APIRouter(prefix="/v1", tags=["Questions"])


class QuestionList(BaseModel):
    """List of catalog questions ordered by key."""

    items: list[Question]


@router.post("/questions", response_model=Question, status_code=201)
def create_question(request: Request, body: CreateQuestionInput) -> Question:
    """Add a question to the catalog."""
    return get_catalog(request).create_question(body)


@router.get("/questions", response_model=QuestionList)
def list_questions(
    request: Request,
    module: str | None = None,
    active_only: bool = False,
) -> QuestionList:
    """List catalog questions, optionally by module and active flag."""
    items = get_catalog(request).list_questions(module=module, active_only=active_only)
    return QuestionList(items=items)


@router.get("/questions/{key}", response_model=Question)
def get_question(request: Request, key: str) -> Question:
    return get_catalog(request).get_question(key)


@router.post("/questions/{key}/deactivate", response_model=Question)
def deactivate_question(request: Request, key: str) -> Question:
    """Soft-deactivate a question. Existing bindings keep resolving to it."""
    return get_catalog(request).deactivate_question(key)
