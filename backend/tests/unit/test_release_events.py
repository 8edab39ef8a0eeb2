"""
Unit tests for release event classification and tag parsing.
"""

import pytest

from buildservice.models.enums import EventDecision
from buildservice.services.release_events import MalformedEventError, classify_event, parse_version
from support import release_payload


@pytest.mark.unit
class TestParseVersion:
    @pytest.mark.parametrize(
        "tag,expected",
        [
            ("v1.0.0", "1.0.0"),
            ("1.0.0", "1.0.0"),
            ("V3.1.4", "3.1.4"),
            ("release-1.0.0", "1.0.0"),
            ("release/2.0.0-beta.1", "2.0.0"),
            ("v1.2.3-rc.1", "1.2.3"),
            ("10.20.30+build.5", "10.20.30"),
        ],
    )
    def test_semver_tags(self, tag, expected):
        assert parse_version(tag) == expected

    @pytest.mark.parametrize(
        "tag,expected",
        [
            ("nightly", "nightly"),
            ("v1.2", "1.2"),
            ("release-candidate", "candidate"),
        ],
    )
    def test_non_semver_tags_returned_cleaned(self, tag, expected):
        assert parse_version(tag) == expected


@pytest.mark.unit
class TestClassifyEvent:
    def test_ping(self):
        result = classify_event("ping", {"zen": "Keep it logically awesome."})
        assert result.decision == EventDecision.PING
        assert result.to_response("ping") == {"message": "pong"}

    def test_other_event_types_ignored(self):
        result = classify_event("push", {"ref": "refs/heads/main"})
        assert result.decision == EventDecision.IGNORED_EVENT
        assert result.should_build is False
        assert result.to_response("push") == {"message": "Event type not handled", "event": "push"}

    def test_missing_event_type_ignored(self):
        assert classify_event(None, {}).decision == EventDecision.IGNORED_EVENT

    @pytest.mark.parametrize("action", ["created", "edited", "deleted", "prereleased", "released"])
    def test_non_published_actions_ignored(self, action):
        result = classify_event("release", release_payload(action=action))
        assert result.decision == EventDecision.IGNORED_ACTION
        assert result.to_response("release") == {"message": "Release action not handled", "action": action}

    def test_draft_ignored(self):
        result = classify_event("release", release_payload(draft=True))
        assert result.decision == EventDecision.DRAFT
        assert result.to_response("release") == {"message": "Draft releases are ignored"}

    def test_published_release_builds(self):
        result = classify_event("release", release_payload(prerelease=True))
        assert result.should_build is True
        assert result.payload.release.tag_name == "v1.2.0"
        assert result.payload.release.prerelease is True
        assert result.payload.repository.id == 555

    def test_prerelease_flag_defaults_to_false(self):
        payload = release_payload()
        del payload["release"]["prerelease"]
        assert classify_event("release", payload).payload.release.prerelease is False

    @pytest.mark.parametrize("missing", ["tag_name", "tarball_url", "id", "draft"])
    def test_release_missing_required_field_rejected(self, missing):
        payload = release_payload()
        del payload["release"][missing]
        with pytest.raises(MalformedEventError) as exc_info:
            classify_event("release", payload)
        assert missing in str(exc_info.value)

    def test_release_without_repository_rejected(self):
        payload = release_payload()
        del payload["repository"]
        with pytest.raises(MalformedEventError):
            classify_event("release", payload)

    def test_non_object_payload_rejected(self):
        with pytest.raises(MalformedEventError):
            classify_event("release", ["not", "an", "object"])
