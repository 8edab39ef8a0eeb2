"""
Security Headers Middleware
"""

from fastapi import Request, Response

from ..config import SECURITY_HEADERS


async def security_headers_middleware(request: Request, call_next) -> Response:
    """Add security headers to all responses"""
    response = await call_next(request)
    for header, value in SECURITY_HEADERS.items():
        response.headers[header] = value
    return response
