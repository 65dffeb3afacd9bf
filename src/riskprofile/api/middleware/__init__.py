"""HTTP middleware: request IDs and request-scoped DB transactions."""

from riskprofile.api.middleware.db_tx import DBTransactionMiddleware
from riskprofile.api.middleware.request_id import RequestIdMiddleware

__all__ = ["DBTransactionMiddleware", "RequestIdMiddleware"]
