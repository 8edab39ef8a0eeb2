"""
CORS Middleware
Allow-list negotiation for browser and desktop-client origins.

Preflights from unknown origins are refused with an empty 403. Other requests
from unknown origins are served without CORS headers, leaving the browser to
block the read.
"""

import logging
from typing import Dict, Iterable, Optional

from fastapi import Request, Response

from ..config import CORS_ALLOW_HEADERS, CORS_ALLOW_METHODS, CORS_MAX_AGE

logger = logging.getLogger(__name__)


class CORSPolicy:
    """Decides which origins may read responses"""

    def __init__(
        self,
        allowed_origins: Iterable[str],
        desktop_origins: Iterable[str],
        development: bool = False,
    ):
        self.allowed_origins = {o.rstrip("/") for o in allowed_origins if o}
        self.desktop_origins = {o.rstrip("/") for o in desktop_origins if o}
        self.development = development

    def is_allowed(self, origin: Optional[str]) -> bool:
        # Same-origin requests have no origin header
        if not origin:
            return True

        # Desktop webviews: custom scheme, tauri.localhost hosts, or literal "null"
        if origin.startswith("tauri://") or origin in self.desktop_origins or origin == "null":
            return True

        if self.development and origin.startswith("http://localhost"):
            return True

        return origin.rstrip("/") in self.allowed_origins

    def headers_for(self, origin: str) -> Dict[str, str]:
        return {
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Methods": CORS_ALLOW_METHODS,
            "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
            "Access-Control-Allow-Credentials": "true",
            "Access-Control-Max-Age": CORS_MAX_AGE,
        }


class CORSMiddleware:
    """
    HTTP middleware answering preflights and decorating allowed responses.

    Not Starlette's CORSMiddleware: that one refuses a disallowed preflight
    with 400 and a text body, and desktop clients here expect an empty 403.
    """

    def __init__(self, policy: CORSPolicy):
        self.policy = policy

    async def __call__(self, request: Request, call_next) -> Response:
        origin = request.headers.get("origin")
        allowed = self.policy.is_allowed(origin)

        if request.method == "OPTIONS":
            if not allowed:
                logger.info(f"Rejected CORS preflight from origin {origin}")
                return Response(status_code=403)
            # Desktop clients may preflight without an origin
            return Response(status_code=204, headers=self.policy.headers_for(origin or "*"))

        response = await call_next(request)
        if allowed and origin:
            for header_name, header_value in self.policy.headers_for(origin).items():
                response.headers[header_name] = header_value
        return response
