"""
Plugin Build Service Configuration
Environment-driven settings for the release webhook, builder and ingress gate
"""

import os
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DESKTOP_ORIGINS = [
    "tauri://localhost",
    "https://tauri.localhost",
    "http://tauri.localhost",  # Windows WebView2 uses http
]


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="BUILDSERVICE_", extra="ignore")

    # Application
    app_name: str = "Plugin Build Service"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "production"

    # Database
    database_url: str = "sqlite:///./buildservice.db"

    # Release webhook (shared with the source-control host)
    webhook_secret: Optional[str] = None

    # Builder service
    builder_url: Optional[str] = None
    builder_secret: Optional[str] = None
    builder_timeout: float = 10.0

    # Celery beat for stale build detection
    redis_url: str = "redis://localhost:6379"

    # Rate limiting (fixed window per client IP)
    rate_limit_enabled: bool = True
    rate_limit_window_seconds: int = 60
    rate_limit_public_max: int = 100
    rate_limit_api_max: int = 200
    rate_limit_tier: str = "api"
    rate_limit_sweep_interval: int = 60

    # CORS
    allowed_origins: List[str] = Field(
        default_factory=lambda: [o for o in os.getenv("BUILDSERVICE_CORS_ORIGINS", "").split(",") if o]
    )
    desktop_origins: List[str] = Field(default_factory=lambda: list(DEFAULT_DESKTOP_ORIGINS))

    # Background work
    background_max_workers: int = 4
    background_history_size: int = 200

    # Stale builds
    pending_build_timeout_minutes: int = 30
    building_build_timeout_minutes: int = 120

    # Logging
    log_level: str = "INFO"
    audit_log_file: Optional[str] = None

    @field_validator("rate_limit_tier")
    @classmethod
    def validate_rate_limit_tier(cls, v):
        if v not in ("api", "public"):
            raise ValueError("rate_limit_tier must be 'api' or 'public'")
        return v

    @field_validator("allowed_origins")
    @classmethod
    def validate_origins(cls, v):
        for origin in v:
            if not origin.startswith(("https://", "http://localhost")):
                raise ValueError("All origins must use HTTPS (except localhost)")
        return v

    @property
    def is_development(self) -> bool:
        return self.debug or self.environment.lower() == "development"

    @property
    def rate_limit_max_requests(self) -> int:
        """Ceiling for the configured tier"""
        if self.rate_limit_tier == "public":
            return self.rate_limit_public_max
        return self.rate_limit_api_max


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings"""
    return Settings()


# Attached to every response
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}

CORS_ALLOW_METHODS = "GET, POST, PUT, PATCH, DELETE, OPTIONS"
CORS_ALLOW_HEADERS = "Content-Type, Authorization, X-User-Id, X-Requested-With, X-Service-Key"
CORS_MAX_AGE = "86400"
