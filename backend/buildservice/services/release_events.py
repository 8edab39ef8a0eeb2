"""
Release Event Classification
Decides which inbound source-control events produce build work and turns
release tags into canonical version strings.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from pydantic import ValidationError

from ..models.enums import EventDecision
from ..models.webhook_models import ReleaseEventPayload

_LEADING_V = re.compile(r"^v", re.IGNORECASE)
_RELEASE_PREFIX = re.compile(r"^release[-/]", re.IGNORECASE)
_SEMVER_PREFIX = re.compile(r"^(\d+\.\d+\.\d+)")


def parse_version(tag: str) -> str:
    """
    Parse a version from a git tag.

    Handles tags like "v1.0.0", "1.0.0", "release-1.0.0" and
    "release/2.0.0-beta.1". Non-semver tags are returned cleaned but
    otherwise unchanged.
    """
    cleaned = _LEADING_V.sub("", tag, count=1)
    cleaned = _RELEASE_PREFIX.sub("", cleaned, count=1)

    match = _SEMVER_PREFIX.match(cleaned)
    if match:
        return match.group(1)
    return cleaned


class MalformedEventError(ValueError):
    """Release payload is missing required fields"""


@dataclass(frozen=True)
class EventClassification:
    """Outcome of classifying one delivery"""

    decision: EventDecision
    message: str
    payload: Optional[ReleaseEventPayload] = None

    @property
    def should_build(self) -> bool:
        return self.decision == EventDecision.BUILD

    def to_response(self, event_type: Optional[str]) -> Dict[str, Any]:
        body: Dict[str, Any] = {"message": self.message}
        if self.decision == EventDecision.IGNORED_EVENT:
            body["event"] = event_type
        elif self.decision == EventDecision.IGNORED_ACTION and self.payload is not None:
            body["action"] = self.payload.action
        return body


def classify_event(event_type: Optional[str], payload: Any) -> EventClassification:
    """
    Classify an authenticated, JSON-decoded delivery.

    Raises:
        MalformedEventError: A release event without the fields a build needs.
    """
    if event_type == "ping":
        return EventClassification(EventDecision.PING, "pong")

    if event_type != "release":
        return EventClassification(EventDecision.IGNORED_EVENT, "Event type not handled")

    try:
        release_event = ReleaseEventPayload.model_validate(payload)
    except ValidationError as e:
        missing = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        raise MalformedEventError(f"Invalid release payload: {', '.join(missing)}") from e

    if release_event.action != "published":
        return EventClassification(EventDecision.IGNORED_ACTION, "Release action not handled", release_event)

    if release_event.release.draft:
        return EventClassification(EventDecision.DRAFT, "Draft releases are ignored", release_event)

    return EventClassification(EventDecision.BUILD, "Build triggered", release_event)
