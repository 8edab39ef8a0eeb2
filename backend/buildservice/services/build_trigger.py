"""
Build Trigger
Dispatches build jobs to the external Builder service.

trigger() is always run on the background dispatcher; the release webhook
has already answered the sender by the time it executes. A failed dispatch
leaves the build pending for the stale build reaper.
"""

import json
import logging
from typing import Optional

import httpx

from ..exceptions import BuilderUnavailableError
from ..models.webhook_models import BuildJobSpec
from .background import BackgroundDispatcher, BackgroundTask
from .webhook_security import WebhookSignatureVerifier

logger = logging.getLogger(__name__)


class BuildTrigger:
    """Sends signed build jobs to the Builder"""

    def __init__(
        self,
        builder_url: Optional[str],
        signer: WebhookSignatureVerifier,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
        user_agent: str = "PluginBuildService/1.0",
    ):
        self.builder_url = builder_url.rstrip("/") if builder_url else None
        self.signer = signer
        self.timeout = httpx.Timeout(timeout)
        self.transport = transport
        self.user_agent = user_agent

    def trigger(self, build_id: str, job: BuildJobSpec) -> None:
        """
        Submit a job to the Builder and return once it is accepted.

        Raises:
            BuilderUnavailableError: Builder not configured, unreachable, or it
                refused the job.
        """
        if not self.builder_url:
            raise BuilderUnavailableError("Builder URL not configured")

        body = json.dumps(job.model_dump(mode="json"), separators=(",", ":")).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self.user_agent,
            "X-Build-Id": build_id,
        }
        if self.signer.configured:
            headers["X-Builder-Signature"] = self.signer.generate_signature(body)

        url = f"{self.builder_url}/builds"
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(url, content=body, headers=headers)
        except httpx.HTTPError as e:
            raise BuilderUnavailableError(f"Builder unreachable: {e}") from e

        if response.status_code >= 400:
            raise BuilderUnavailableError(f"Builder rejected build {build_id}: HTTP {response.status_code}")

        logger.info(f"Build {build_id} dispatched for {job.plugin_id}@{job.version}")

    def dispatch(self, dispatcher: BackgroundDispatcher, build_id: str, job: BuildJobSpec) -> BackgroundTask:
        """Schedule trigger() without waiting for it"""
        return dispatcher.submit(f"build-trigger:{build_id}", self.trigger, build_id, job)
