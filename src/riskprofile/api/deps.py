"""Request-scoped service construction for route handlers.

Services get the connection opened by DBTransactionMiddleware (None when
no database is configured, which selects the in-memory repositories) and
the application's audit sink.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import Request

from riskprofile.services.frameworks.registry import FrameworkRegistry
from riskprofile.services.questions.catalog import QuestionCatalog
from riskprofile.services.questions.resolver import QuestionBindingResolver
from riskprofile.services.submissions.service import SubmissionService

if TYPE_CHECKING:
    from riskprofile.audit.sink import AuditSink


def _db_conn(request: Request) -> Any:
    return getattr(request.state, "db_conn", None)


def _audit_sink(request: Request) -> AuditSink | None:
    return getattr(request.app.state, "audit_sink", None)


def get_catalog(request: Request) -> QuestionCatalog:
    return QuestionCatalog(db_conn=_db_conn(request), audit_sink=_audit_sink(request))


def get_registry(request: Request) -> FrameworkRegistry:
    return FrameworkRegistry(db_conn=_db_conn(request), audit_sink=_audit_sink(request))


def get_resolver(request: Request) -> QuestionBindingResolver:
    return QuestionBindingResolver(db_conn=_db_conn(request))


def get_submission_service(request: Request) -> SubmissionService:
    return SubmissionService(db_conn=_db_conn(request), audit_sink=_audit_sink(request))
