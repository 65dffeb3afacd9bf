"""Submission routes.

POST answers against a framework version, read back frozen snapshots, and
re-score a snapshot to check engine determinism.
"""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from riskprofile.api.deps import get_submission_service
from riskprofile.models.submission import RescoreReport, Submission, SubmissionResult

router = APIRouter(prefix="/v1", tags=["Submissions"])


class SubmitAnswersRequest(BaseModel):
    """Request body for POST /v1/framework-versions/{version_id}/submissions."""

    answers: dict[str, Any] = Field(..., description="Answers keyed by question key or alias")
    subject_ref: str | None = Field(default=None, max_length=256)


class SubmissionSummary(BaseModel):
    """Submission list item; the full snapshot is at GET /v1/submissions/{id}."""

    submission_id: str
    framework_version_id: str
    framework_code: str
    version_number: int
    config_hash: str
    bucket: str
    decision: float
    subject_ref: str | None = None
    submitted_at: datetime


class SubmissionList(BaseModel):
    items: list[SubmissionSummary]


def _summarize(submission: Submission) -> SubmissionSummary:
    return SubmissionSummary(
        submission_id=submission.submission_id,
        framework_version_id=submission.framework_version_id,
        framework_code=submission.framework_code,
        version_number=submission.version_number,
        config_hash=submission.config_hash,
        bucket=submission.result.bucket,
        decision=submission.result.decision,
        subject_ref=submission.subject_ref,
        submitted_at=submission.submitted_at,
    )


@router.post(
    "/framework-versions/{version_id}/submissions",
    response_model=SubmissionResult,
    status_code=201,
)
def submit_answers(
    request: Request, version_id: str, body: SubmitAnswersRequest
) -> SubmissionResult:
    """Score answers and store the snapshot.

    Invalid or missing answers are rejected with 422 and nothing is stored.
    """
    return get_submission_service(request).submit(
        version_id, body.answers, subject_ref=body.subject_ref
    )


@router.get("/submissions", response_model=SubmissionList)
def list_submissions(
    request: Request,
    subject_ref: str | None = None,
    framework_version_id: str | None = None,
) -> SubmissionList:
    items = get_submission_service(request).list_submissions(
        subject_ref=subject_ref, framework_version_id=framework_version_id
    )
    return SubmissionList(items=[_summarize(s) for s in items])


@router.get("/submissions/{submission_id}", response_model=Submission)
def get_submission(request: Request, submission_id: str) -> Submission:
    """Return the frozen snapshot exactly as stored."""
    return get_submission_service(request).get_submission(submission_id)


@router.post("/submissions/{submission_id}/rescore", response_model=RescoreReport)
def rescore_submission(request: Request, submission_id: str) -> RescoreReport:
    return get_submission_service(request).rescore(submission_id)
