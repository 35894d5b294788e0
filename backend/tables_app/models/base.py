"""
Strict Base Model for API Request/Response Validation

Request bodies reject unknown fields so that client typos fail fast with a
422 instead of being silently ignored.

Architecture:
    API Request → StrictRequest (extra="forbid") → Route Handler
    Service result → StrictResponse (extra="ignore") → API Response
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class StrictRequest(BaseModel):
    """
    Base model for API request bodies with strict validation.

    Features:
        - extra="forbid": Unknown fields raise 422 Unprocessable Entity
        - validate_default=True: Validates default values
        - str_strip_whitespace=True: Trims whitespace from strings
    """

    model_config = ConfigDict(
        extra="forbid",
        validate_default=True,
        str_strip_whitespace=True,
        from_attributes=True,
    )


class StrictResponse(BaseModel):
    """
    Base model for API response bodies.

    More lenient than StrictRequest: extra attributes on the source object
    are ignored.
    """

    model_config = ConfigDict(
        extra="ignore",
        validate_default=True,
        from_attributes=True,
    )


class ErrorDetail(StrictResponse):
    """
    Standardized error response detail.

    Matches the error format from the error_handling middleware.
    """

    error: str  # Error code (e.g., "not_found")
    message: str  # Human-readable message
    error_id: str  # Correlation ID for log lookup
    details: Optional[dict] = None
    timestamp: datetime
