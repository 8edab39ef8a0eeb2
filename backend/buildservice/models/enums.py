"""
Shared Enums

Common enumeration types used across routes, services and models.
"""

from enum import Enum


class BuildStatus(str, Enum):
    """
    Lifecycle of a build record.

    pending -> building -> success | failed, with pending -> failed allowed
    when the build never starts. success and failed are terminal.
    """

    PENDING = "pending"
    BUILDING = "building"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (BuildStatus.SUCCESS, BuildStatus.FAILED)


# Allowed source states for each target state
BUILD_TRANSITIONS = {
    BuildStatus.BUILDING: (BuildStatus.PENDING,),
    BuildStatus.SUCCESS: (BuildStatus.BUILDING,),
    BuildStatus.FAILED: (BuildStatus.PENDING, BuildStatus.BUILDING),
}


class DownloadErrorCode(str, Enum):
    """Machine-readable download outcomes clients act on"""

    PLUGIN_NOT_FOUND = "PLUGIN_NOT_FOUND"
    NO_VERSION = "NO_VERSION"
    BUILDING = "BUILDING"
    BUILD_FAILED = "BUILD_FAILED"
    DOWNLOAD_UNAVAILABLE = "DOWNLOAD_UNAVAILABLE"


class EventDecision(str, Enum):
    """What the release webhook does with an inbound event"""

    PING = "ping"
    IGNORED_EVENT = "ignored_event"
    IGNORED_ACTION = "ignored_action"
    DRAFT = "draft"
    BUILD = "build"


class BackgroundTaskState(str, Enum):
    """State of a task submitted to the background dispatcher"""

    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
