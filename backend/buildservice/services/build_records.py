"""
Build Record Manager
Owns the build lifecycle state machine and the plugin_builds table.

Records are created pending by the release webhook and moved forward only by
the Builder's status callback or the stale build reaper. Status changes are a
single guarded UPDATE, so readers observe either the old or the new status.
"""

import logging
import time
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session, sessionmaker

from ..database import PluginBuild
from ..exceptions import BuildNotFoundError, InvalidBuildTransitionError, PluginMismatchError
from ..models.build_models import ArtifactInfo, BuildRecord
from ..models.enums import BUILD_TRANSITIONS, BuildStatus
from ..models.webhook_models import ReleaseMetadata
from .plugin_registry import PluginRegistry

logger = logging.getLogger(__name__)

MAX_BUILD_LIST = 50


class BuildRecordManager:
    """Creates, reads and transitions build records"""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory
        self._slow_query_threshold = 1.0  # seconds

    def create_pending(self, plugin_id: str, release: ReleaseMetadata) -> BuildRecord:
        """
        Insert a new pending build record for a release.

        Repeated deliveries of the same release are not deduplicated: each one
        creates an independent record. A warning names the earlier build.
        """
        db = self.session_factory()
        try:
            previous = (
                db.query(PluginBuild.id)
                .filter(
                    PluginBuild.plugin_id == plugin_id,
                    PluginBuild.source_event_id == release.source_event_id,
                )
                .first()
            )
            if previous is not None:
                logger.warning(
                    f"Release {release.source_event_id} for {plugin_id} already produced build "
                    f"{previous.id}; creating another record"
                )

            now = datetime.utcnow()
            build = PluginBuild(
                plugin_id=plugin_id,
                version=release.version,
                status=BuildStatus.PENDING.value,
                source_event_id=release.source_event_id,
                source_tag=release.source_tag,
                source_release_name=release.source_release_name,
                source_archive_url=release.source_archive_url,
                plugin_subpath=release.plugin_subpath,
                is_prerelease=release.is_prerelease,
                changelog=release.changelog,
                created_at=now,
                updated_at=now,
            )
            db.add(build)
            db.commit()
            db.refresh(build)

            logger.info(f"Created build record {build.id} for {plugin_id}@{release.version}")
            return BuildRecord.model_validate(build)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def get(self, build_id: str) -> Optional[BuildRecord]:
        """Point lookup used for status polling"""
        db = self.session_factory()
        try:
            build = db.query(PluginBuild).filter(PluginBuild.id == build_id).first()
            return BuildRecord.model_validate(build) if build else None
        finally:
            db.close()

    def get_latest(self, plugin_id: str) -> Optional[BuildRecord]:
        """Most recently created build for a plugin"""
        start_time = time.time()
        db = self.session_factory()
        try:
            build = (
                db.query(PluginBuild)
                .filter(PluginBuild.plugin_id == plugin_id)
                .order_by(PluginBuild.created_at.desc(), PluginBuild.id.desc())
                .first()
            )
            self._log_query_performance("get_latest", time.time() - start_time)
            return BuildRecord.model_validate(build) if build else None
        finally:
            db.close()

    def list_for_plugin(self, plugin_id: str, limit: int = 10) -> List[BuildRecord]:
        """Recent builds for a plugin, newest first"""
        limit = max(1, min(limit, MAX_BUILD_LIST))
        db = self.session_factory()
        try:
            builds = (
                db.query(PluginBuild)
                .filter(PluginBuild.plugin_id == plugin_id)
                .order_by(PluginBuild.created_at.desc(), PluginBuild.id.desc())
                .limit(limit)
                .all()
            )
            return [BuildRecord.model_validate(b) for b in builds]
        finally:
            db.close()

    def update_status(
        self,
        plugin_id: str,
        build_id: str,
        status: BuildStatus,
        error_message: Optional[str] = None,
        logs: Optional[str] = None,
        version_id: Optional[str] = None,
    ) -> BuildRecord:
        """
        Move a build forward in its lifecycle.

        Raises:
            BuildNotFoundError: Unknown build id
            PluginMismatchError: Build belongs to another plugin
            InvalidBuildTransitionError: Current status does not allow the change
                (including any change to a terminal record)
        """
        status = BuildStatus(status)
        db = self.session_factory()
        try:
            self._apply_transition(
                db, plugin_id, build_id, status, error_message=error_message, logs=logs, version_id=version_id
            )
            db.commit()
            logger.info(f"Build {build_id} for {plugin_id} moved to {status.value}")
            return self._reload(db, build_id)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def complete_with_artifact(
        self,
        plugin_id: str,
        build_id: str,
        registry: PluginRegistry,
        artifact: ArtifactInfo,
        logs: Optional[str] = None,
    ) -> BuildRecord:
        """
        Mark a build successful and publish its artifact in one transaction.

        The status change, the plugin version and the build's version link
        commit together. If the build is no longer building (a concurrent
        callback or the stale build reaper got there first) nothing is
        published.

        Raises:
            BuildNotFoundError, PluginMismatchError, InvalidBuildTransitionError
        """
        db = self.session_factory()
        try:
            build = self._apply_transition(db, plugin_id, build_id, BuildStatus.SUCCESS, logs=logs)
            version = registry.stage_version(
                db,
                plugin_id,
                build.version,
                artifact.url,
                checksum=artifact.checksum,
                file_size=artifact.file_size,
                changelog=build.changelog,
                is_prerelease=build.is_prerelease,
            )
            db.execute(update(PluginBuild).where(PluginBuild.id == build_id).values(version_id=version.id))
            db.commit()
            logger.info(f"Build {build_id} for {plugin_id} succeeded; published {build.version}")
            return self._reload(db, build_id)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _apply_transition(
        self,
        db: Session,
        plugin_id: str,
        build_id: str,
        status: BuildStatus,
        error_message: Optional[str] = None,
        logs: Optional[str] = None,
        version_id: Optional[str] = None,
    ) -> PluginBuild:
        """Guarded status UPDATE inside an open session; the caller commits"""
        current = db.query(PluginBuild).filter(PluginBuild.id == build_id).first()
        if current is None:
            raise BuildNotFoundError(build_id)
        if current.plugin_id != plugin_id:
            raise PluginMismatchError(build_id, current.plugin_id, plugin_id)

        allowed_from = BUILD_TRANSITIONS.get(status, ())
        now = datetime.utcnow()
        values: Dict[str, object] = {"status": status.value, "updated_at": now}
        if status == BuildStatus.BUILDING:
            values["started_at"] = now
        if status.is_terminal:
            values["completed_at"] = now
        if error_message is not None:
            values["error_message"] = error_message
        if logs is not None:
            values["logs"] = logs
        if version_id is not None:
            values["version_id"] = version_id

        # Status guard in the WHERE clause makes the check-and-set atomic
        result = db.execute(
            update(PluginBuild)
            .where(
                PluginBuild.id == build_id,
                PluginBuild.status.in_([s.value for s in allowed_from]),
            )
            .values(**values)
        )
        if result.rowcount != 1:
            db.rollback()
            latest = db.query(PluginBuild.status).filter(PluginBuild.id == build_id).scalar()
            raise InvalidBuildTransitionError(build_id, latest or current.status, status.value)
        return current

    def _reload(self, db: Session, build_id: str) -> BuildRecord:
        db.expire_all()
        return BuildRecord.model_validate(db.query(PluginBuild).filter(PluginBuild.id == build_id).one())

    def fail_stale_builds(
        self,
        pending_timeout: timedelta,
        building_timeout: timedelta,
        now: Optional[datetime] = None,
    ) -> Dict[str, int]:
        """
        Fail builds stuck in pending or building beyond their timeouts.

        Pending builds are measured from creation, building builds from when
        the Builder reported start.

        Returns:
            dict with counts of recovered builds by previous status.
        """
        now = now or datetime.utcnow()
        recovered = {BuildStatus.PENDING.value: 0, BuildStatus.BUILDING.value: 0}
        checks = (
            (BuildStatus.PENDING, PluginBuild.created_at, pending_timeout),
            (BuildStatus.BUILDING, PluginBuild.started_at, building_timeout),
        )

        db = self.session_factory()
        try:
            for status, since_column, timeout in checks:
                cutoff = now - timeout
                stale_ids = [
                    row.id
                    for row in db.query(PluginBuild.id)
                    .filter(PluginBuild.status == status.value, since_column < cutoff)
                    .all()
                ]
                minutes = int(timeout.total_seconds() // 60)
                for build_id in stale_ids:
                    result = db.execute(
                        update(PluginBuild)
                        .where(PluginBuild.id == build_id, PluginBuild.status == status.value)
                        .values(
                            status=BuildStatus.FAILED.value,
                            error_message=(
                                f"Build timed out after {minutes} minutes in {status.value} "
                                f"(detected by stale build recovery)"
                            ),
                            completed_at=now,
                            updated_at=now,
                        )
                    )
                    if result.rowcount == 1:
                        recovered[status.value] += 1
                        logger.warning(f"Recovered stale {status.value} build {build_id}")
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        if any(recovered.values()):
            logger.info(f"Stale build recovery: {recovered}")
        return recovered

    def _log_query_performance(self, operation: str, duration: float) -> None:
        if duration > self._slow_query_threshold:
            logger.warning(f"Slow build record query: {operation} took {duration:.2f}s")
