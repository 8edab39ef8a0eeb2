"""
API Error Handling
Standardized error bodies ({error, code}) for every failure path.
Internal exception details are logged with an error id and never returned.
"""

import logging
import uuid

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from ..exceptions import BuildNotFoundError, InvalidBuildTransitionError, PluginMismatchError
from ..models.error_models import ErrorCode, ErrorResponse

logger = logging.getLogger(__name__)

STATUS_CODES = {
    400: ErrorCode.VALIDATION_ERROR,
    401: ErrorCode.INVALID_SIGNATURE,
    404: ErrorCode.NOT_FOUND,
    409: ErrorCode.CONFLICT,
    429: ErrorCode.RATE_LIMITED,
}


def error_response(status_code: int, message: str, code: str, **extra) -> JSONResponse:
    body = ErrorResponse(error=message, code=code).model_dump(exclude_none=True)
    body.update(extra)
    return JSONResponse(status_code=status_code, content=body)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTPException raised by routes"""
    if isinstance(exc.detail, dict):
        message = exc.detail.get("error") or exc.detail.get("message") or "Request failed"
        code = exc.detail.get("code") or STATUS_CODES.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    else:
        message = str(exc.detail)
        code = STATUS_CODES.get(exc.status_code, ErrorCode.INTERNAL_ERROR)

    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code} on {request.method} {request.url.path}: {message}")
    else:
        logger.warning(f"HTTP {exc.status_code} on {request.method} {request.url.path}: {message}")

    return error_response(exc.status_code, message, code)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request body/query validation failures become 400"""
    fields = sorted({".".join(str(p) for p in err.get("loc", ()) if p != "body") for err in exc.errors()})
    logger.warning(f"Validation error on {request.url.path}: {fields}")
    return error_response(
        status.HTTP_400_BAD_REQUEST,
        "Invalid request data provided",
        ErrorCode.VALIDATION_ERROR,
        fields=[f for f in fields if f],
    )


async def build_not_found_handler(request: Request, exc: BuildNotFoundError) -> JSONResponse:
    return error_response(status.HTTP_404_NOT_FOUND, "Build not found", ErrorCode.NOT_FOUND)


async def plugin_mismatch_handler(request: Request, exc: PluginMismatchError) -> JSONResponse:
    logger.error(f"Plugin mismatch in build status update: {exc.message}")
    return error_response(status.HTTP_400_BAD_REQUEST, "Plugin ID mismatch", "PLUGIN_MISMATCH")


async def invalid_transition_handler(request: Request, exc: InvalidBuildTransitionError) -> JSONResponse:
    logger.warning(f"Rejected build transition: {exc.message}")
    return error_response(
        status.HTTP_409_CONFLICT,
        f"Build cannot move from {exc.current} to {exc.requested}",
        "INVALID_TRANSITION",
        currentStatus=exc.current,
    )


async def unexpected_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions"""
    error_id = str(uuid.uuid4())[:8]
    logger.error(
        f"Unexpected error ({error_id}) on {request.method} {request.url.path}: {exc}",
        exc_info=exc,
    )
    body = ErrorResponse(error="Internal server error", code=ErrorCode.INTERNAL_ERROR, error_id=error_id)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body.model_dump())


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(BuildNotFoundError, build_not_found_handler)
    app.add_exception_handler(PluginMismatchError, plugin_mismatch_handler)
    app.add_exception_handler(InvalidBuildTransitionError, invalid_transition_handler)
    app.add_exception_handler(Exception, unexpected_exception_handler)
