"""
Plugin Download Routes
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ..dependencies import Services, get_services
from ..exceptions import DownloadError
from ..middleware.rate_limiting import get_client_ip
from ..models.enums import DownloadErrorCode

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Downloads"])


@router.get("/plugins/{plugin_id}/download")
async def download_plugin(
    plugin_id: str,
    request: Request,
    version: Optional[str] = None,
    services: Services = Depends(get_services),
):
    """Get the download URL for a plugin version and record the download"""
    try:
        result = services.resolver.resolve(plugin_id, version or None)
    except DownloadError as e:
        logger.info(f"Download of {plugin_id} ({version or 'latest'}) not served: {e.code}")
        return JSONResponse(status_code=e.status_code, content=e.to_response())
    except Exception as e:
        logger.error(f"Error getting download URL for {plugin_id}: {e}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Failed to get download URL",
                "code": DownloadErrorCode.DOWNLOAD_UNAVAILABLE.value,
            },
        )

    # Fire-and-forget: tracking never delays or alters the response
    services.tracker.dispatch(
        services.dispatcher,
        plugin_id,
        result.version,
        request.headers.get("x-user-id"),
        get_client_ip(request),
        request.headers.get("user-agent"),
    )

    return result.model_dump()
