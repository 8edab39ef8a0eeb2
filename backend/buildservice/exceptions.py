"""
Domain exceptions for the build pipeline

Routes translate these into structured error responses; none of the messages
carry internal details.
"""

from typing import Any, Dict, Optional


class BuildServiceError(Exception):
    """Base class for all build service errors"""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class BuildNotFoundError(BuildServiceError):
    """Build record does not exist"""

    def __init__(self, build_id: str):
        self.build_id = build_id
        super().__init__(f"Build {build_id} not found")


class PluginMismatchError(BuildServiceError):
    """Status update names a different plugin than the build record"""

    def __init__(self, build_id: str, expected: str, received: str):
        self.build_id = build_id
        self.expected = expected
        self.received = received
        super().__init__(f"Build {build_id} belongs to plugin {expected}, not {received}")


class InvalidBuildTransitionError(BuildServiceError):
    """Requested status change violates the build lifecycle"""

    def __init__(self, build_id: str, current: str, requested: str):
        self.build_id = build_id
        self.current = current
        self.requested = requested
        super().__init__(f"Build {build_id} cannot move from {current} to {requested}")


class BuilderUnavailableError(BuildServiceError):
    """Builder service is not configured or did not accept the job"""


class DownloadError(BuildServiceError):
    """Download could not be resolved to an artifact"""

    def __init__(
        self,
        code: str,
        status_code: int,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message, "code": self.code}
        body.update(self.details)
        return body
