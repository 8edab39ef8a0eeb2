"""
Unit tests for dispatching build jobs to the Builder.
"""

import json

import httpx
import pytest

from buildservice.exceptions import BuilderUnavailableError
from buildservice.models.enums import BackgroundTaskState
from buildservice.models.webhook_models import BuildJobSpec
from buildservice.services.build_trigger import BuildTrigger
from buildservice.services.webhook_security import WebhookSignatureVerifier
from support import BUILDER_SECRET, BUILDER_URL


@pytest.fixture
def signer() -> WebhookSignatureVerifier:
    return WebhookSignatureVerifier(BUILDER_SECRET)


@pytest.fixture
def job() -> BuildJobSpec:
    return BuildJobSpec(
        build_id="build-1",
        plugin_id="demo-plugin",
        version="1.2.0",
        tarball_url="https://api.github.com/repos/acme/demo-plugin/tarball/v1.2.0",
        release_tag="v1.2.0",
        changelog="Fixes",
        plugin_path="plugins/demo",
        callback_url="http://testserver/builds/build-1/status",
    )


def _trigger(signer, handler, url=BUILDER_URL + "/") -> BuildTrigger:
    return BuildTrigger(url, signer, timeout=1.0, transport=httpx.MockTransport(handler))


@pytest.mark.unit
class TestBuildTrigger:
    def test_posts_signed_job(self, signer, job):
        sent = []

        def handler(request):
            sent.append(request)
            return httpx.Response(202)

        _trigger(signer, handler).trigger("build-1", job)

        request = sent[0]
        assert request.method == "POST"
        assert str(request.url) == "http://builder.test/builds"
        assert request.headers["X-Build-Id"] == "build-1"
        assert signer.verify(request.content, request.headers["X-Builder-Signature"])

        body = json.loads(request.content)
        assert body["plugin_id"] == "demo-plugin"
        assert body["version"] == "1.2.0"
        assert body["plugin_path"] == "plugins/demo"
        assert body["callback_url"].endswith("/builds/build-1/status")

    def test_unsigned_when_no_secret(self, job):
        sent = []

        def handler(request):
            sent.append(request)
            return httpx.Response(200)

        _trigger(WebhookSignatureVerifier(None), handler).trigger("build-1", job)
        assert "X-Builder-Signature" not in sent[0].headers

    def test_builder_error_status(self, signer, job):
        trigger = _trigger(signer, lambda request: httpx.Response(503))
        with pytest.raises(BuilderUnavailableError, match="HTTP 503"):
            trigger.trigger("build-1", job)

    def test_builder_unreachable(self, signer, job):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(BuilderUnavailableError, match="unreachable"):
            _trigger(signer, handler).trigger("build-1", job)

    def test_not_configured(self, signer, job):
        with pytest.raises(BuilderUnavailableError, match="not configured"):
            BuildTrigger(None, signer).trigger("build-1", job)

    def test_dispatch_failure_stays_in_background(self, signer, job, dispatcher):
        trigger = _trigger(signer, lambda request: httpx.Response(500))

        task = trigger.dispatch(dispatcher, "build-1", job)
        assert dispatcher.wait_idle(timeout=5)

        assert task.name == "build-trigger:build-1"
        assert task.state == BackgroundTaskState.FAILED
        assert "BuilderUnavailableError" in task.error
