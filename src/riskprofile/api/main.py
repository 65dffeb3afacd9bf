"""FastAPI application factory.

This module provides the create_app() factory for bootstrapping the API.
"""

from fastapi import FastAPI

from riskprofile import __version__
from riskprofile.api.errors import register_exception_handlers
from riskprofile.api.middleware.db_tx import DBTransactionMiddleware
from riskprofile.api.middleware.request_id import RequestIdMiddleware
from riskprofile.api.routes.frameworks import router as frameworks_router
from riskprofile.api.routes.health import router as health_router
from riskprofile.api.routes.questions import router as questions_router
from riskprofile.api.routes.submissions import router as submissions_router
from riskprofile.audit.sink import AuditSink, get_audit_sink


def create_app(audit_sink: AuditSink | None = None) -> FastAPI:
    """Create and configure the risk profiling FastAPI application.

    Middleware ordering (outermost to innermost):
    1. RequestIdMiddleware - ensures request_id is available everywhere
    2. DBTransactionMiddleware - request-scoped transaction when a DB is configured

    Starlette middleware is added in reverse order (last added = outermost).

    Args:
        audit_sink: Optional AuditSink instance for testing. If None, uses
            the sink selected by RISKPROFILE_AUDIT_LOG_PATH.

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(
        title="Risk Profile Engine API",
        description="Questionnaire catalog, versioned scoring frameworks and risk profiling",
        version=__version__,
    )

    app.state.audit_sink = audit_sink if audit_sink is not None else get_audit_sink()

    app.add_middleware(DBTransactionMiddleware)
    app.add_middleware(RequestIdMiddleware)

    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(questions_router)
    app.include_router(frameworks_router)
    app.include_router(submissions_router)

    return app
