"""
Unit tests for the stale build detection celery task.

The task runs synchronously here; no broker is needed.
"""

from datetime import datetime, timedelta

import pytest

from buildservice.database import PluginBuild
from buildservice.models.enums import BuildStatus
from buildservice.models.webhook_models import ReleaseMetadata
from buildservice.tasks import stale_builds
from support import PLUGIN_ID


@pytest.fixture
def task_db(session_factory, monkeypatch):
    monkeypatch.setattr(stale_builds, "get_session_factory", lambda: session_factory)
    return session_factory


def _age_build(session_factory, build_id: str, minutes: int) -> None:
    db = session_factory()
    try:
        build = db.query(PluginBuild).filter(PluginBuild.id == build_id).one()
        build.created_at = datetime.utcnow() - timedelta(minutes=minutes)
        db.commit()
    finally:
        db.close()


@pytest.mark.unit
class TestDetectStaleBuilds:
    def test_registered_under_stable_name(self):
        assert stale_builds.detect_stale_builds.name == "buildservice.tasks.detect_stale_builds"

    def test_recovers_old_pending_build(self, task_db, build_records, seeded_plugin):
        stale = build_records.create_pending(
            PLUGIN_ID,
            ReleaseMetadata(
                version="1.2.0",
                source_event_id=1,
                source_tag="v1.2.0",
                source_archive_url="https://api.github.com/repos/acme/demo-plugin/tarball",
            ),
        )
        fresh = build_records.create_pending(
            PLUGIN_ID,
            ReleaseMetadata(
                version="1.3.0",
                source_event_id=2,
                source_tag="v1.3.0",
                source_archive_url="https://api.github.com/repos/acme/demo-plugin/tarball",
            ),
        )
        _age_build(task_db, stale.id, minutes=45)

        assert stale_builds.detect_stale_builds() == {"pending": 1, "building": 0}
        assert build_records.get(stale.id).status == BuildStatus.FAILED
        assert build_records.get(fresh.id).status == BuildStatus.PENDING

    def test_nothing_to_recover(self, task_db, seeded_plugin):
        assert stale_builds.detect_stale_builds() == {"pending": 0, "building": 0}

    def test_database_error_reported(self, monkeypatch):
        def broken():
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(stale_builds, "get_session_factory", lambda: broken)

        assert stale_builds.detect_stale_builds() == {"error": "database unavailable"}
