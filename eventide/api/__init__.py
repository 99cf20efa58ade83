"""HTTP front door for the scheduling registry."""

from .app import create_app, router, status_for
from .schemas import ErrorResponse, HealthResponse, SearchResponse

__all__ = [
    "create_app",
    "router",
    "status_for",
    "SearchResponse",
    "ErrorResponse",
    "HealthResponse",
]
