"""
Service container and FastAPI dependencies

All pipeline components are built once per application and handed to the
routes through app.state, so tests can construct an app with their own
settings, database and clock.
"""

from dataclasses import dataclass

from fastapi import Request

from .config import Settings
from .middleware.rate_limiting import FixedWindowRateLimiter
from .services.audit import SecurityAuditLogger
from .services.background import BackgroundDispatcher
from .services.build_records import BuildRecordManager
from .services.build_trigger import BuildTrigger
from .services.download_resolver import DownloadResolver
from .services.download_tracker import DownloadTracker
from .services.plugin_registry import PluginRegistry
from .services.webhook_security import WebhookSignatureVerifier


@dataclass
class Services:
    settings: Settings
    rate_limiter: FixedWindowRateLimiter
    audit_logger: SecurityAuditLogger
    dispatcher: BackgroundDispatcher
    webhook_verifier: WebhookSignatureVerifier
    builder_verifier: WebhookSignatureVerifier
    registry: PluginRegistry
    builds: BuildRecordManager
    build_trigger: BuildTrigger
    resolver: DownloadResolver
    tracker: DownloadTracker


def get_services(request: Request) -> Services:
    return request.app.state.services
