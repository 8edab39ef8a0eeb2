"""
Release Webhook Routes
Receives release events from the source-control host and triggers plugin builds
"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from ..dependencies import Services, get_services
from ..middleware.rate_limiting import get_client_ip
from ..models.error_models import ErrorCode
from ..models.webhook_models import BuildJobSpec, ReleaseMetadata
from ..services.release_events import MalformedEventError, classify_event, parse_version

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.get("/release")
async def release_webhook_health(services: Services = Depends(get_services)):
    """Health check for the release webhook"""
    return {
        "status": "ok",
        "message": "Release webhook endpoint is active",
        "configured": services.webhook_verifier.configured,
    }


@router.post("/release")
async def receive_release_event(
    request: Request,
    x_hub_signature_256: Optional[str] = Header(None),
    x_github_event: Optional[str] = Header(None),
    x_github_delivery: Optional[str] = Header(None),
    services: Services = Depends(get_services),
):
    """
    Receive a release event.

    The signature is checked against the exact raw body before anything else.
    Events that intentionally produce no work are acknowledged with 200 so
    the sender does not retry them. An accepted release creates a pending
    build and answers immediately; the Builder dispatch runs in the background.
    """
    raw_body = await request.body()

    if not services.webhook_verifier.verify(raw_body, x_hub_signature_256):
        services.audit_logger.log_signature_failure(
            delivery_id=x_github_delivery,
            source_ip=get_client_ip(request),
            event_type=x_github_event,
            endpoint=request.url.path,
        )
        logger.error(f"Invalid webhook signature for delivery: {x_github_delivery}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "Invalid signature", "code": ErrorCode.INVALID_SIGNATURE},
        )

    try:
        payload = json.loads(raw_body)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid JSON payload", "code": ErrorCode.INVALID_PAYLOAD},
        )

    logger.info(f"Received release webhook: {x_github_event} ({x_github_delivery})")

    try:
        classification = classify_event(x_github_event, payload)
    except MalformedEventError as e:
        logger.warning(f"Rejected delivery {x_github_delivery}: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": str(e), "code": ErrorCode.INVALID_PAYLOAD},
        )

    if not classification.should_build:
        logger.info(f"Delivery {x_github_delivery} not built: {classification.message}")
        return classification.to_response(x_github_event)

    release = classification.payload.release
    repository = classification.payload.repository
    logger.info(f"Processing release: {release.tag_name} for {repository.full_name}")

    try:
        plugin = services.registry.find_by_repository(repository.id)
        if plugin is None:
            logger.info(f"No plugin found for repository: {repository.full_name} (ID: {repository.id})")
            return {
                "message": "No plugin associated with this repository",
                "repositoryId": repository.id,
            }

        version = parse_version(release.tag_name)
        build = services.builds.create_pending(
            plugin.id,
            ReleaseMetadata.from_release(release, version, plugin.plugin_subpath),
        )
    except Exception as e:
        logger.error(f"Error processing release webhook {x_github_delivery}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Internal server error", "code": ErrorCode.INTERNAL_ERROR},
        )

    job = BuildJobSpec(
        build_id=build.id,
        plugin_id=plugin.id,
        version=version,
        tarball_url=release.tarball_url,
        release_tag=release.tag_name,
        changelog=release.body,
        is_prerelease=release.prerelease,
        plugin_path=plugin.plugin_subpath,
        callback_url=str(request.url_for("report_build_status", build_id=build.id)),
    )
    # Not awaited: the sender gets its answer as soon as the record exists
    services.build_trigger.dispatch(services.dispatcher, build.id, job)

    return {
        "message": "Build triggered",
        "buildId": build.id,
        "pluginId": plugin.id,
        "version": version,
    }
