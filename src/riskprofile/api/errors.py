"""API error handling.

Provides RiskProfileHttpError and FastAPI exception handlers producing the
error envelope with request_id tracing.

Global exception handlers:
- RiskProfileHttpError: Application-specific errors with structured envelope
- Domain exceptions: service-layer errors mapped to 404/409/422/500
- HTTPException: FastAPI/Starlette HTTP exceptions
- RequestValidationError: Pydantic validation errors
- Exception: Catch-all for unhandled exceptions (fail closed, no stack traces)
"""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException

from riskprofile.api.error_model import get_error_code_for_status, make_error_response
from riskprofile.persistence.repositories.frameworks import (
    BindingConflictError,
    FrameworkAlreadyExistsError,
    FrameworkNotFoundError,
    FrameworkVersionNotFoundError,
)
from riskprofile.persistence.repositories.questions import (
    QuestionAlreadyExistsError,
    QuestionNotFoundError,
)
from riskprofile.persistence.repositories.submissions import SubmissionNotFoundError
from riskprofile.scoring.config import ScoringConfigError
from riskprofile.scoring.evaluator import EngineIntegrityError
from riskprofile.services.answers.normalizer import AnswerValidationError
from riskprofile.services.frameworks.registry import (
    ActiveFrameworkVersionNotFoundError,
    BindingNotFoundError,
    FrameworkVersionLockedError,
    InvalidBindingOverrideError,
)
from riskprofile.services.questions.catalog import InvalidQuestionError, QuestionInactiveError
from riskprofile.services.questions.resolver import CatalogIntegrityError
from riskprofile.services.submissions.service import (
    EmptyQuestionSetError,
    UnboundScoredQuestionError,
)

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Error envelope schema."""

    code: str
    message: str
    details: dict[str, Any] | None = None
    request_id: str | None = None


class RiskProfileHttpError(Exception):
    """Application-level HTTP error with structured error envelope.

    Attributes:
        status_code: HTTP status code (e.g., 404, 409, 500).
        code: Machine-readable error code (e.g., "QUESTION_NOT_FOUND").
        message: Human-readable error message.
        details: Optional dict with additional error context.
    """

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details


def _answer_errors(exc: AnswerValidationError) -> dict[str, Any]:
    return {
        "errors": [
            {
                "code": error.code,
                "key": error.path,
                "value": error.value,
                "message": error.message,
            }
            for error in exc.errors
        ]
    }


def _config_errors(exc: ScoringConfigError) -> dict[str, Any]:
    return {"errors": [error.to_dict() for error in exc.errors]}


def _domain_error(exc: Exception) -> RiskProfileHttpError:
    """Translate a service-layer exception into an HTTP error."""
    message = str(exc)

    if isinstance(exc, QuestionNotFoundError):
        return RiskProfileHttpError(404, "QUESTION_NOT_FOUND", message, {"key": exc.key})
    if isinstance(exc, FrameworkNotFoundError):
        return RiskProfileHttpError(404, "FRAMEWORK_NOT_FOUND", message, {"code": exc.code})
    if isinstance(exc, FrameworkVersionNotFoundError):
        return RiskProfileHttpError(
            404, "FRAMEWORK_VERSION_NOT_FOUND", message, {"version_id": exc.version_id}
        )
    if isinstance(exc, ActiveFrameworkVersionNotFoundError):
        return RiskProfileHttpError(
            404, "ACTIVE_FRAMEWORK_VERSION_NOT_FOUND", message, {"code": exc.code}
        )
    if isinstance(exc, SubmissionNotFoundError):
        return RiskProfileHttpError(
            404, "SUBMISSION_NOT_FOUND", message, {"submission_id": exc.submission_id}
        )
    if isinstance(exc, BindingNotFoundError):
        return RiskProfileHttpError(
            404, "BINDING_NOT_FOUND", message, {"version_id": exc.version_id, "key": exc.key}
        )

    if isinstance(exc, AnswerValidationError):
        return RiskProfileHttpError(
            422, "INVALID_ANSWERS", "Submitted answers are invalid", _answer_errors(exc)
        )
    if isinstance(exc, ScoringConfigError):
        return RiskProfileHttpError(
            422, "INVALID_SCORING_CONFIG", "Scoring configuration is invalid", _config_errors(exc)
        )
    if isinstance(exc, InvalidQuestionError):
        return RiskProfileHttpError(
            422, "INVALID_QUESTION", "Question is invalid", {"errors": exc.errors}
        )
    if isinstance(exc, InvalidBindingOverrideError):
        return RiskProfileHttpError(422, "INVALID_BINDING", message, {"key": exc.key})
    if isinstance(exc, QuestionInactiveError):
        return RiskProfileHttpError(422, "QUESTION_INACTIVE", message, {"key": exc.key})
    if isinstance(exc, EmptyQuestionSetError):
        return RiskProfileHttpError(
            422, "EMPTY_QUESTION_SET", message, {"version_id": exc.version_id}
        )
    if isinstance(exc, UnboundScoredQuestionError):
        return RiskProfileHttpError(
            422,
            "UNBOUND_SCORED_QUESTIONS",
            message,
            {"version_id": exc.version_id, "keys": exc.keys},
        )

    if isinstance(exc, QuestionAlreadyExistsError):
        return RiskProfileHttpError(409, "QUESTION_ALREADY_EXISTS", message, {"key": exc.key})
    if isinstance(exc, FrameworkAlreadyExistsError):
        return RiskProfileHttpError(409, "FRAMEWORK_ALREADY_EXISTS", message, {"code": exc.code})
    if isinstance(exc, BindingConflictError):
        return RiskProfileHttpError(
            409,
            "BINDING_CONFLICT",
            message,
            {"version_id": exc.version_id, "field": exc.field, "value": exc.value},
        )
    if isinstance(exc, FrameworkVersionLockedError):
        return RiskProfileHttpError(
            409, "FRAMEWORK_VERSION_LOCKED", message, {"version_id": exc.version_id}
        )

    if isinstance(exc, CatalogIntegrityError):
        return RiskProfileHttpError(
            500,
            "CATALOG_INTEGRITY_ERROR",
            "Framework version references a missing catalog question",
            {"version_id": exc.version_id, "key": exc.key},
        )
    if isinstance(exc, EngineIntegrityError):
        return RiskProfileHttpError(
            500, "ENGINE_INTEGRITY_ERROR", "Scoring engine integrity check failed"
        )

    return RiskProfileHttpError(500, "INTERNAL_ERROR", "An internal error occurred")


DOMAIN_EXCEPTIONS: tuple[type[Exception], ...] = (
    QuestionNotFoundError,
    FrameworkNotFoundError,
    FrameworkVersionNotFoundError,
    ActiveFrameworkVersionNotFoundError,
    SubmissionNotFoundError,
    BindingNotFoundError,
    AnswerValidationError,
    ScoringConfigError,
    InvalidQuestionError,
    InvalidBindingOverrideError,
    QuestionInactiveError,
    EmptyQuestionSetError,
    UnboundScoredQuestionError,
    QuestionAlreadyExistsError,
    FrameworkAlreadyExistsError,
    BindingConflictError,
    FrameworkVersionLockedError,
    CatalogIntegrityError,
    EngineIntegrityError,
)


async def riskprofile_http_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """FastAPI exception handler for RiskProfileHttpError."""
    assert isinstance(exc, RiskProfileHttpError)

    return make_error_response(
        request,
        code=exc.code,
        message=exc.message,
        http_status=exc.status_code,
        details=exc.details,
    )


async def domain_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """FastAPI exception handler for service-layer exceptions.

    Integrity failures are server errors: they are logged here with the
    request_id, and the response carries no internals.
    """
    error = _domain_error(exc)
    if error.status_code >= 500:
        logger.error(
            "%s: %s",
            type(exc).__name__,
            exc,
            extra={"request_id": getattr(request.state, "request_id", None)},
        )
    return await riskprofile_http_error_handler(request, error)


async def http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """FastAPI exception handler for HTTPException.

    Maps standard HTTP exceptions to the error envelope.
    """
    assert isinstance(exc, HTTPException)

    code = get_error_code_for_status(exc.status_code)
    message = str(exc.detail) if exc.detail else f"HTTP {exc.status_code}"

    return make_error_response(
        request,
        code=code,
        message=message,
        http_status=exc.status_code,
        details=None,
    )


async def request_validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """FastAPI exception handler for RequestValidationError.

    Does not expose raw validation internals.
    """
    assert isinstance(exc, RequestValidationError)

    safe_details: list[dict[str, Any]] = []
    for error in exc.errors():
        loc = error.get("loc", ())
        safe_loc = [str(part) for part in loc if part not in ("body", "query", "path")]
        safe_details.append(
            {
                "field": ".".join(safe_loc) if safe_loc else "request",
                "message": error.get("msg", "Validation error"),
            }
        )

    return make_error_response(
        request,
        code="REQUEST_VALIDATION_FAILED",
        message="Request validation failed",
        http_status=422,
        details={"errors": safe_details} if safe_details else None,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler for unhandled exceptions.

    Fails closed: returns 500 with a generic message and logs the exception.
    """
    request_id = getattr(request.state, "request_id", None)

    logger.exception(
        "Unhandled exception: %s",
        type(exc).__name__,
        extra={"request_id": request_id},
    )

    return make_error_response(
        request,
        code="INTERNAL_ERROR",
        message="An internal error occurred",
        http_status=500,
        details=None,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register every handler on the application."""
    app.add_exception_handler(RiskProfileHttpError, riskprofile_http_error_handler)
    for exc_class in DOMAIN_EXCEPTIONS:
        app.add_exception_handler(exc_class, domain_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
