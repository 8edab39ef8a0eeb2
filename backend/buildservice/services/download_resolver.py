"""
Download Resolver
Answers "give me the artifact for plugin X version Y". When no artifact
exists, the latest build record explains why, so clients can poll, report a
failed build, or give up.
"""

import logging
from typing import Optional
from urllib.parse import urlparse

from ..exceptions import DownloadError
from ..models.build_models import DownloadResult
from ..models.enums import BuildStatus, DownloadErrorCode
from .build_records import BuildRecordManager
from .plugin_registry import PluginRegistry

logger = logging.getLogger(__name__)


def _is_usable_url(url: Optional[str]) -> bool:
    if not url or not url.strip():
        return False
    parsed = urlparse(url.strip())
    return bool(parsed.scheme) and bool(parsed.netloc)


class DownloadResolver:
    """Resolves download requests against the registry and build records"""

    def __init__(self, registry: PluginRegistry, builds: BuildRecordManager):
        self.registry = registry
        self.builds = builds

    def resolve(self, plugin_id: str, version: Optional[str] = None) -> DownloadResult:
        """
        Resolve a download.

        Raises:
            DownloadError: carrying the code and HTTP status for the outcome
        """
        plugin = self.registry.get_plugin(plugin_id)
        if plugin is None:
            raise DownloadError(DownloadErrorCode.PLUGIN_NOT_FOUND.value, 404, "Plugin not found")

        artifact = self.registry.get_artifact(plugin_id, version)
        if artifact is None:
            self._raise_for_missing_artifact(plugin_id)

        if not _is_usable_url(artifact.download_url):
            logger.error(f"Artifact for {plugin_id}@{artifact.version} has an unusable download URL")
            raise DownloadError(DownloadErrorCode.DOWNLOAD_UNAVAILABLE.value, 500, "Download URL unavailable")

        return DownloadResult(url=artifact.download_url, version=artifact.version, checksum=artifact.checksum)

    def _raise_for_missing_artifact(self, plugin_id: str) -> None:
        latest = self.builds.get_latest(plugin_id)

        if latest is not None:
            if latest.status in (BuildStatus.PENDING, BuildStatus.BUILDING):
                raise DownloadError(
                    DownloadErrorCode.BUILDING.value,
                    202,
                    "Plugin is currently building. Try again in a few minutes.",
                    {"buildId": latest.id, "buildStatus": latest.status.value},
                )
            if latest.status == BuildStatus.FAILED:
                raise DownloadError(
                    DownloadErrorCode.BUILD_FAILED.value,
                    404,
                    "Latest build failed. Developer needs to fix and release again.",
                    {"buildId": latest.id, "errorMessage": latest.error_message},
                )

        raise DownloadError(
            DownloadErrorCode.NO_VERSION.value,
            404,
            "No published version available. Developer needs to create a release.",
        )
