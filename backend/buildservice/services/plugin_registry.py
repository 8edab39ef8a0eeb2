"""
Plugin Registry
Plugin metadata, repository links and published artifacts (plugin_versions).
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session, sessionmaker

from ..database import Plugin, PluginVersion

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PluginVersionInfo:
    id: str
    version: str
    download_url: str
    checksum: Optional[str]
    is_latest: bool
    is_prerelease: bool


@dataclass(frozen=True)
class PluginInfo:
    id: str
    name: str
    author_id: str
    repository_id: Optional[int]
    plugin_subpath: Optional[str]
    current_version: Optional[str]
    versions: List[PluginVersionInfo] = field(default_factory=list)

    def find_version(self, version: str) -> Optional[PluginVersionInfo]:
        for v in self.versions:
            if v.version == version:
                return v
        return None


def _version_info(row: PluginVersion) -> PluginVersionInfo:
    return PluginVersionInfo(
        id=row.id,
        version=row.version,
        download_url=row.download_url,
        checksum=row.checksum,
        is_latest=row.is_latest,
        is_prerelease=row.is_prerelease,
    )


def _plugin_info(plugin: Plugin, versions: List[PluginVersion]) -> PluginInfo:
    return PluginInfo(
        id=plugin.id,
        name=plugin.name,
        author_id=plugin.author_id,
        repository_id=plugin.repository_id,
        plugin_subpath=plugin.plugin_subpath,
        current_version=plugin.current_version,
        versions=[_version_info(v) for v in versions],
    )


class PluginRegistry:
    """Read/write access to plugins and their published versions"""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def get_plugin(self, plugin_id: str) -> Optional[PluginInfo]:
        """Plugin with all versions, newest first"""
        db = self.session_factory()
        try:
            plugin = db.query(Plugin).filter(Plugin.id == plugin_id).first()
            if plugin is None:
                return None
            versions = (
                db.query(PluginVersion)
                .filter(PluginVersion.plugin_id == plugin_id)
                .order_by(PluginVersion.published_at.desc())
                .all()
            )
            return _plugin_info(plugin, versions)
        finally:
            db.close()

    def find_by_repository(self, repository_id: int) -> Optional[PluginInfo]:
        """Plugin linked to a source repository, without versions"""
        db = self.session_factory()
        try:
            plugin = db.query(Plugin).filter(Plugin.repository_id == repository_id).first()
            return _plugin_info(plugin, []) if plugin else None
        finally:
            db.close()

    def get_artifact(self, plugin_id: str, version: Optional[str] = None) -> Optional[PluginVersionInfo]:
        """
        Published artifact for a version, or the latest one when no version
        is given
        """
        db = self.session_factory()
        try:
            query = db.query(PluginVersion).filter(PluginVersion.plugin_id == plugin_id)
            if version:
                query = query.filter(PluginVersion.version == version)
            else:
                query = query.filter(PluginVersion.is_latest.is_(True))
            row = query.order_by(PluginVersion.published_at.desc()).first()
            return _version_info(row) if row else None
        finally:
            db.close()

    def publish_version(
        self,
        plugin_id: str,
        version: str,
        download_url: str,
        checksum: Optional[str] = None,
        file_size: Optional[int] = None,
        changelog: Optional[str] = None,
        is_prerelease: bool = False,
    ) -> PluginVersionInfo:
        """Publish an artifact in its own transaction"""
        db = self.session_factory()
        try:
            row = self.stage_version(
                db,
                plugin_id,
                version,
                download_url,
                checksum=checksum,
                file_size=file_size,
                changelog=changelog,
                is_prerelease=is_prerelease,
            )
            db.commit()
            db.refresh(row)
            logger.info(f"Published {plugin_id}@{version} (prerelease={is_prerelease})")
            return _version_info(row)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def stage_version(
        self,
        db: Session,
        plugin_id: str,
        version: str,
        download_url: str,
        checksum: Optional[str] = None,
        file_size: Optional[int] = None,
        changelog: Optional[str] = None,
        is_prerelease: bool = False,
    ) -> PluginVersion:
        """
        Write the artifact of a successful build into an open session.

        A stable release becomes the latest version and the plugin's current
        version; a prerelease is published without taking over latest. A
        version that was already published is updated in place, so each
        (plugin, version) pair has exactly one row. The caller commits.
        """
        now = datetime.utcnow()

        if not is_prerelease:
            db.query(PluginVersion).filter(
                PluginVersion.plugin_id == plugin_id,
                PluginVersion.is_latest.is_(True),
            ).update({"is_latest": False}, synchronize_session=False)

        row = (
            db.query(PluginVersion)
            .filter(PluginVersion.plugin_id == plugin_id, PluginVersion.version == version)
            .first()
        )
        if row is None:
            row = PluginVersion(plugin_id=plugin_id, version=version, created_at=now)
            db.add(row)
        else:
            logger.warning(f"Republishing {plugin_id}@{version}; replacing artifact {row.download_url}")

        row.download_url = download_url
        row.checksum = checksum
        row.file_size = file_size
        row.changelog = changelog
        row.is_latest = not is_prerelease
        row.is_prerelease = is_prerelease
        row.published_at = now

        plugin_values = {"status": "published", "published_at": now, "updated_at": now}
        if not is_prerelease:
            plugin_values["current_version"] = version
        db.query(Plugin).filter(Plugin.id == plugin_id).update(plugin_values, synchronize_session=False)

        db.flush()
        return row
