"""
Middleware modules for Subwatch.
"""
from subwatch.middleware.correlation import (
    CorrelationIdMiddleware,
    correlation_id_filter,
    correlation_scope,
    get_correlation_id,
)

__all__ = ["CorrelationIdMiddleware", "correlation_id_filter", "correlation_scope", "get_correlation_id"]
