"""
Release Webhook Models
Typed view of the source-control release event; payloads missing required
fields are rejected before any classification or persistence happens.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ReleaseInfo(BaseModel):
    """The release object of a release event"""

    model_config = ConfigDict(extra="ignore")

    id: int
    tag_name: str = Field(..., min_length=1)
    name: Optional[str] = None
    body: Optional[str] = None
    draft: bool
    prerelease: bool = False
    tarball_url: str = Field(..., min_length=1)


class RepositoryInfo(BaseModel):
    """The repository object of a release event"""

    model_config = ConfigDict(extra="ignore")

    id: int
    full_name: str
    default_branch: str = "main"


class ReleaseEventPayload(BaseModel):
    """Release event body (action, release, repository)"""

    model_config = ConfigDict(extra="ignore")

    action: str
    release: ReleaseInfo
    repository: RepositoryInfo


class ReleaseMetadata(BaseModel):
    """Release facts copied onto a new build record"""

    version: str
    source_event_id: int
    source_tag: str
    source_release_name: Optional[str] = None
    source_archive_url: str
    plugin_subpath: Optional[str] = None
    changelog: Optional[str] = None
    is_prerelease: bool = False

    @classmethod
    def from_release(
        cls, release: ReleaseInfo, version: str, plugin_subpath: Optional[str] = None
    ) -> "ReleaseMetadata":
        return cls(
            version=version,
            source_event_id=release.id,
            source_tag=release.tag_name,
            source_release_name=release.name,
            source_archive_url=release.tarball_url,
            plugin_subpath=plugin_subpath,
            changelog=release.body,
            is_prerelease=release.prerelease,
        )


class BuildJobSpec(BaseModel):
    """Job sent to the Builder service"""

    build_id: str
    plugin_id: str
    version: str
    tarball_url: str
    release_tag: str
    changelog: Optional[str] = None
    is_prerelease: bool = False
    plugin_path: Optional[str] = None
    callback_url: Optional[str] = None
