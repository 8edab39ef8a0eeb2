"""
Shared constants and payload helpers for the test suite
"""
import json

from buildservice.services.webhook_security import WebhookSignatureVerifier

WEBHOOK_SECRET = "test-webhook-secret"  # pragma: allowlist secret
BUILDER_SECRET = "test-builder-secret"  # pragma: allowlist secret
BUILDER_URL = "http://builder.test"
MARKETPLACE_ORIGIN = "https://marketplace.example.com"

PLUGIN_ID = "demo-plugin"
REPOSITORY_ID = 555


class FakeClock:
    """Monotonic clock driven by the test"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def release_payload(
    action: str = "published",
    tag: str = "v1.2.0",
    draft: bool = False,
    prerelease: bool = False,
    repository_id: int = REPOSITORY_ID,
    release_id: int = 9001,
    body: str = "Fixes and improvements",
) -> dict:
    """Release event body as sent by the source-control host"""
    return {
        "action": action,
        "release": {
            "id": release_id,
            "tag_name": tag,
            "name": f"Release {tag}",
            "body": body,
            "draft": draft,
            "prerelease": prerelease,
            "tarball_url": f"https://api.github.com/repos/acme/demo-plugin/tarball/{tag}",
        },
        "repository": {
            "id": repository_id,
            "full_name": "acme/demo-plugin",
            "default_branch": "main",
        },
    }


def sign(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return WebhookSignatureVerifier(secret).generate_signature(body)


def encode(payload) -> bytes:
    return json.dumps(payload).encode("utf-8")
