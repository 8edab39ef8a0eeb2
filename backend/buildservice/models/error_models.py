"""
Error Models
Client-facing error bodies: a human-readable message plus a machine-readable code
"""

from typing import Optional

from pydantic import BaseModel


class ErrorCode:
    """Codes used by the generic error handlers"""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    INVALID_PAYLOAD = "INVALID_PAYLOAD"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    RATE_LIMITED = "RATE_LIMITED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorResponse(BaseModel):
    """Standard error body"""

    error: str
    code: str
    error_id: Optional[str] = None


class RateLimitResponse(BaseModel):
    """Rate limit exceeded response"""

    error: str = "Too many requests. Please try again later."
    code: str = ErrorCode.RATE_LIMITED
    retry_after: int = 60
