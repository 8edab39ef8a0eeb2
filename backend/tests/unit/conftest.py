"""
Unit test fixtures.

Services are built directly on the in-memory database, without the HTTP
stack or the background dispatcher's application lifecycle.
"""

import pytest

from buildservice.services.background import BackgroundDispatcher
from buildservice.services.build_records import BuildRecordManager
from buildservice.services.download_resolver import DownloadResolver
from buildservice.services.download_tracker import DownloadTracker
from buildservice.services.plugin_registry import PluginRegistry


@pytest.fixture
def registry(session_factory) -> PluginRegistry:
    return PluginRegistry(session_factory)


@pytest.fixture
def build_records(session_factory) -> BuildRecordManager:
    return BuildRecordManager(session_factory)


@pytest.fixture
def resolver(registry, build_records) -> DownloadResolver:
    return DownloadResolver(registry, build_records)


@pytest.fixture
def tracker(session_factory) -> DownloadTracker:
    return DownloadTracker(session_factory)


@pytest.fixture
def dispatcher():
    pool = BackgroundDispatcher(max_workers=2, history_size=10)
    yield pool
    pool.shutdown(wait=True)
