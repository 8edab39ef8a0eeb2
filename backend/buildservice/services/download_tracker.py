"""
Download Tracker
Best-effort download telemetry, run on the background dispatcher.
"""

import hashlib
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import sessionmaker

from ..database import Plugin, PluginDownload, PluginVersion
from .background import BackgroundDispatcher, BackgroundTask

logger = logging.getLogger(__name__)

DUPLICATE_WINDOW = timedelta(hours=24)


def hash_ip(ip_address: Optional[str]) -> Optional[str]:
    """Truncated SHA-256 of the client IP; raw addresses are never stored"""
    if not ip_address:
        return None
    return hashlib.sha256(ip_address.encode("utf-8")).hexdigest()[:16]


class DownloadTracker:
    """Records download events and download counters"""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def track(
        self,
        plugin_id: str,
        served_version: Optional[str],
        requester_id: Optional[str],
        ip_address: Optional[str],
        user_agent: Optional[str],
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Record one download.

        The served version string is matched against the plugin's versions;
        no match is recorded as an absent version. Repeat downloads of the
        same version from the same IP within 24 hours are not counted.

        Returns:
            True if a new download event was recorded.
        """
        now = now or datetime.utcnow()
        ip_hash = hash_ip(ip_address)

        db = self.session_factory()
        try:
            version_id = None
            if served_version:
                version_id = (
                    db.query(PluginVersion.id)
                    .filter(PluginVersion.plugin_id == plugin_id, PluginVersion.version == served_version)
                    .order_by(PluginVersion.published_at.desc())
                    .limit(1)
                    .scalar()
                )

            if ip_hash and version_id:
                duplicate = (
                    db.query(PluginDownload.id)
                    .filter(
                        PluginDownload.version_id == version_id,
                        PluginDownload.ip_hash == ip_hash,
                        PluginDownload.created_at > now - DUPLICATE_WINDOW,
                    )
                    .first()
                )
                if duplicate:
                    logger.debug(f"Skipping duplicate download of {plugin_id}@{served_version}")
                    return False

            db.add(
                PluginDownload(
                    plugin_id=plugin_id,
                    version_id=version_id,
                    user_id=requester_id,
                    ip_hash=ip_hash,
                    user_agent=user_agent,
                    created_at=now,
                )
            )
            db.query(Plugin).filter(Plugin.id == plugin_id).update(
                {
                    "downloads": Plugin.downloads + 1,
                    "weekly_downloads": Plugin.weekly_downloads + 1,
                },
                synchronize_session=False,
            )
            if version_id:
                db.query(PluginVersion).filter(PluginVersion.id == version_id).update(
                    {"downloads": PluginVersion.downloads + 1},
                    synchronize_session=False,
                )
            db.commit()
            return True
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def dispatch(
        self,
        dispatcher: BackgroundDispatcher,
        plugin_id: str,
        served_version: Optional[str],
        requester_id: Optional[str],
        ip_address: Optional[str],
        user_agent: Optional[str],
    ) -> BackgroundTask:
        """Schedule track() without waiting for it"""
        return dispatcher.submit(
            f"download-track:{plugin_id}",
            self.track,
            plugin_id,
            served_version,
            requester_id,
            ip_address,
            user_agent,
        )
