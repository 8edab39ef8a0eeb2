"""
Pytest configuration and fixtures for plugin build service tests.

Every test gets its own in-memory SQLite database, a controllable clock for
the rate limiter and, for integration tests, an application whose Builder
calls are captured by an httpx mock transport.
"""
import httpx
import pytest
from fastapi.testclient import TestClient

from buildservice.config import Settings
from buildservice.database import Plugin, create_session_factory, init_db
from buildservice.main import create_app
from support import (
    BUILDER_SECRET,
    BUILDER_URL,
    MARKETPLACE_ORIGIN,
    PLUGIN_ID,
    REPOSITORY_ID,
    WEBHOOK_SECRET,
    FakeClock,
)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment's database and secrets"""
    return Settings(
        database_url="sqlite://",
        webhook_secret=WEBHOOK_SECRET,
        builder_secret=BUILDER_SECRET,
        builder_url=BUILDER_URL,
        environment="test",
        allowed_origins=[MARKETPLACE_ORIGIN],
        rate_limit_sweep_interval=3600,
    )


@pytest.fixture
def session_factory():
    """Fresh in-memory database with the full schema"""
    factory = create_session_factory("sqlite://")
    init_db(factory)
    yield factory
    factory.kw["bind"].dispose()


@pytest.fixture
def seeded_plugin(session_factory) -> str:
    """A plugin linked to repository 555"""
    db = session_factory()
    try:
        db.add(
            Plugin(
                id=PLUGIN_ID,
                name="Demo Plugin",
                author_id="author-1",
                repository_id=REPOSITORY_ID,
                repository_full_name="acme/demo-plugin",
            )
        )
        db.commit()
    finally:
        db.close()
    return PLUGIN_ID


@pytest.fixture
def builder_requests():
    """Requests the application sent to the Builder"""
    return []


@pytest.fixture
def app(settings, session_factory, seeded_plugin, clock, builder_requests):
    """Application wired to the test database, clock and mock Builder"""

    def handler(request: httpx.Request) -> httpx.Response:
        builder_requests.append(request)
        return httpx.Response(202, json={"accepted": True})

    application = create_app(settings, session_factory=session_factory, clock=clock)
    application.state.services.build_trigger.transport = httpx.MockTransport(handler)
    return application


@pytest.fixture
def services(app):
    return app.state.services


@pytest.fixture
def client(app):
    """Provide FastAPI test client"""
    with TestClient(app) as test_client:
        yield test_client
