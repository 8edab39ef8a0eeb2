"""
Build and Download Models
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .enums import BuildStatus


class BuildRecord(BaseModel):
    """Serializable view of a build record"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    plugin_id: str
    version: str
    status: BuildStatus
    source_event_id: Optional[int] = None
    source_tag: str
    source_release_name: Optional[str] = None
    source_archive_url: str
    plugin_subpath: Optional[str] = None
    is_prerelease: bool = False
    changelog: Optional[str] = None
    version_id: Optional[str] = None
    error_message: Optional[str] = None
    logs: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class ArtifactInfo(BaseModel):
    """Artifact reported by the Builder for a successful build"""

    url: str = Field(..., min_length=1)
    checksum: Optional[str] = None
    file_size: Optional[int] = None


class BuildStatusUpdate(BaseModel):
    """Builder callback reporting progress on a build"""

    plugin_id: str
    status: BuildStatus
    error_message: Optional[str] = None
    logs: Optional[str] = None
    artifact: Optional[ArtifactInfo] = None

    @model_validator(mode="after")
    def require_artifact_on_success(self) -> "BuildStatusUpdate":
        if self.status == BuildStatus.SUCCESS and self.artifact is None:
            raise ValueError("a successful build must report its artifact")
        return self


class DownloadResult(BaseModel):
    """Resolved artifact for a download request"""

    url: str
    version: str
    checksum: Optional[str] = None
