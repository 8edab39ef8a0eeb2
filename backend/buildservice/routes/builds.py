"""
Build Routes
Build status polling and the Builder's status callback
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from pydantic import ValidationError

from ..dependencies import Services, get_services
from ..middleware.rate_limiting import get_client_ip
from ..models.build_models import BuildStatusUpdate
from ..models.enums import BuildStatus
from ..models.error_models import ErrorCode

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Builds"])


@router.get("/builds/{build_id}")
async def get_build(build_id: str, services: Services = Depends(get_services)):
    """Get build status"""
    build = services.builds.get(build_id)
    if build is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "Build not found", "code": ErrorCode.NOT_FOUND},
        )
    return {"build": build.to_response()}


@router.get("/plugins/{plugin_id}/builds")
async def list_plugin_builds(
    plugin_id: str,
    limit: int = Query(10, ge=1),
    services: Services = Depends(get_services),
):
    """Recent builds for a plugin, newest first"""
    builds = services.builds.list_for_plugin(plugin_id, limit)
    return {"builds": [b.to_response() for b in builds]}


@router.post("/builds/{build_id}/status", name="report_build_status")
async def report_build_status(
    build_id: str,
    request: Request,
    x_builder_signature: Optional[str] = Header(None),
    services: Services = Depends(get_services),
):
    """
    Builder callback moving a build through its lifecycle.

    A success must carry its artifact; the status change and the published
    plugin version commit together, so a successful build always points at
    its artifact and a refused transition publishes nothing.
    """
    raw_body = await request.body()

    if not services.builder_verifier.verify(raw_body, x_builder_signature):
        services.audit_logger.log_signature_failure(
            delivery_id=build_id,
            source_ip=get_client_ip(request),
            event_type="build_status",
            endpoint=request.url.path,
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "Invalid signature", "code": ErrorCode.INVALID_SIGNATURE},
        )

    try:
        update = BuildStatusUpdate.model_validate_json(raw_body)
    except ValidationError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid build status payload", "code": ErrorCode.INVALID_PAYLOAD},
        )

    if update.status == BuildStatus.SUCCESS:
        build = services.builds.complete_with_artifact(
            update.plugin_id,
            build_id,
            services.registry,
            update.artifact,
            logs=update.logs,
        )
    else:
        build = services.builds.update_status(
            update.plugin_id,
            build_id,
            update.status,
            error_message=update.error_message,
            logs=update.logs,
        )
    return {"message": "Build status updated", "build": build.to_response()}
