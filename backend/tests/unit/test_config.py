"""
Unit tests for environment-driven settings.
"""

import pytest
from pydantic import ValidationError

from buildservice.config import DEFAULT_DESKTOP_ORIGINS, Settings


@pytest.mark.unit
class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.rate_limit_max_requests == 200
        assert settings.rate_limit_window_seconds == 60
        assert settings.desktop_origins == DEFAULT_DESKTOP_ORIGINS
        assert settings.pending_build_timeout_minutes == 30
        assert settings.building_build_timeout_minutes == 120

    def test_public_tier(self):
        assert Settings(_env_file=None, rate_limit_tier="public").rate_limit_max_requests == 100

    def test_unknown_tier_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, rate_limit_tier="unlimited")

    def test_insecure_origin_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, allowed_origins=["http://marketplace.example.com"])

    def test_read_from_environment(self, monkeypatch):
        monkeypatch.setenv("BUILDSERVICE_WEBHOOK_SECRET", "from-env")  # pragma: allowlist secret
        monkeypatch.setenv("BUILDSERVICE_ENVIRONMENT", "development")
        settings = Settings(_env_file=None)
        assert settings.webhook_secret == "from-env"  # pragma: allowlist secret
        assert settings.is_development is True

    def test_cors_origins_from_comma_list(self, monkeypatch):
        monkeypatch.setenv("BUILDSERVICE_CORS_ORIGINS", "https://a.example.com,https://b.example.com")
        assert Settings(_env_file=None).allowed_origins == ["https://a.example.com", "https://b.example.com"]
