"""
Middleware Package

Provides FastAPI middleware for error handling and the service error types
it understands.
"""

from tables_app.middleware.error_handling import (
    DataIntegrityError,
    ErrorHandlingMiddleware,
    NotFoundError,
    ServiceError,
    setup_error_handling,
)

__all__ = [
    "DataIntegrityError",
    "ErrorHandlingMiddleware",
    "NotFoundError",
    "ServiceError",
    "setup_error_handling",
]
