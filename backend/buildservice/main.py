"""
Plugin Build Service FastAPI Application
Release webhook ingestion, build tracking and artifact downloads
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Callable, Optional

import uvicorn
from fastapi import FastAPI, Request
from sqlalchemy.orm import sessionmaker

from .config import Settings, get_settings
from .database import create_session_factory, init_db
from .dependencies import Services
from .middleware.cors import CORSMiddleware, CORSPolicy
from .middleware.error_handling import register_error_handlers
from .middleware.rate_limiting import FixedWindowRateLimiter, RateLimitingMiddleware
from .middleware.security_headers import security_headers_middleware
from .routes import builds, downloads, webhooks
from .services.audit import SecurityAuditLogger
from .services.background import BackgroundDispatcher
from .services.build_records import BuildRecordManager
from .services.build_trigger import BuildTrigger
from .services.download_resolver import DownloadResolver
from .services.download_tracker import DownloadTracker
from .services.plugin_registry import PluginRegistry
from .services.webhook_security import WebhookSignatureVerifier

# Configure logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


def build_services(
    settings: Settings,
    session_factory: sessionmaker,
    clock: Callable[[], float] = time.monotonic,
) -> Services:
    """Construct every pipeline component once"""
    builder_verifier = WebhookSignatureVerifier(settings.builder_secret)
    registry = PluginRegistry(session_factory)
    build_records = BuildRecordManager(session_factory)

    return Services(
        settings=settings,
        rate_limiter=FixedWindowRateLimiter(
            max_requests=settings.rate_limit_max_requests,
            window_seconds=settings.rate_limit_window_seconds,
            clock=clock,
        ),
        audit_logger=SecurityAuditLogger(settings.audit_log_file),
        dispatcher=BackgroundDispatcher(
            max_workers=settings.background_max_workers,
            history_size=settings.background_history_size,
        ),
        webhook_verifier=WebhookSignatureVerifier(settings.webhook_secret),
        builder_verifier=builder_verifier,
        registry=registry,
        builds=build_records,
        build_trigger=BuildTrigger(settings.builder_url, builder_verifier, timeout=settings.builder_timeout),
        resolver=DownloadResolver(registry, build_records),
        tracker=DownloadTracker(session_factory),
    )


def create_app(
    settings: Optional[Settings] = None,
    session_factory: Optional[sessionmaker] = None,
    services: Optional[Services] = None,
    clock: Callable[[], float] = time.monotonic,
) -> FastAPI:
    """Application factory"""
    settings = settings or get_settings()
    session_factory = session_factory or create_session_factory(settings.database_url)
    services = services or build_services(settings, session_factory, clock)

    logging.getLogger("buildservice").setLevel(settings.log_level.upper())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan management."""
        logger.info("Starting Plugin Build Service...")
        init_db(session_factory)

        if not services.webhook_verifier.configured:
            logger.warning("Webhook secret not configured - all release deliveries will be rejected")
        if not services.build_trigger.builder_url:
            logger.warning("Builder URL not configured - builds will stay pending until they time out")

        services.rate_limiter.start_sweeper(settings.rate_limit_sweep_interval)
        logger.info(
            f"Rate limiting initialized - tier: {settings.rate_limit_tier}, "
            f"limit: {settings.rate_limit_max_requests}/{settings.rate_limit_window_seconds}s"
        )

        yield

        logger.info("Shutting down Plugin Build Service...")
        services.rate_limiter.stop_sweeper()
        services.dispatcher.shutdown(wait=True)

    app = FastAPI(
        title=settings.app_name,
        description="Release-triggered plugin build pipeline",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.services = services

    # Last registered runs first: security headers -> rate limit -> CORS -> routes
    cors_policy = CORSPolicy(settings.allowed_origins, settings.desktop_origins, settings.is_development)
    app.middleware("http")(CORSMiddleware(cors_policy))
    app.middleware("http")(
        RateLimitingMiddleware(services.rate_limiter, services.audit_logger, enabled=settings.rate_limit_enabled)
    )
    app.middleware("http")(security_headers_middleware)

    register_error_handlers(app)

    app.include_router(webhooks.router)
    app.include_router(builds.router)
    app.include_router(downloads.router)

    @app.get("/health")
    async def health_check(request: Request):
        """Service health with background task counts"""
        snapshot = request.app.state.services.dispatcher.snapshot(recent=0)
        return {
            "status": "healthy",
            "version": settings.app_version,
            "background_tasks": snapshot["counts"],
        }

    return app


app = create_app()


if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "buildservice.main:app",
        host="0.0.0.0",  # nosec B104 - container deployment
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
