"""
Webhook Signature Security
HMAC-SHA256 signature generation and verification for release events and
Builder callbacks
"""

import hashlib
import hmac
import logging
from typing import Optional, Union

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha256="


class WebhookSignatureVerifier:
    """HMAC-SHA256 signature generation and verification over raw request bodies"""

    def __init__(self, secret: Optional[str]):
        """
        Initialize with the shared secret

        Args:
            secret: Shared secret. When empty, every verification fails.
        """
        self.secret = secret or None

    @property
    def configured(self) -> bool:
        return self.secret is not None

    def generate_signature(self, payload: Union[str, bytes]) -> str:
        """
        Generate the signature header value for a payload

        Args:
            payload: Exact bytes (or text, UTF-8 encoded) that will be sent

        Returns:
            Signature string in format "sha256=<hex_digest>"

        Raises:
            ValueError: If secret is not configured
        """
        if not self.secret:
            raise ValueError("Webhook secret not configured")

        message = payload.encode("utf-8") if isinstance(payload, str) else payload
        digest = hmac.new(self.secret.encode("utf-8"), message, hashlib.sha256).hexdigest()
        return f"{SIGNATURE_PREFIX}{digest}"

    def verify(self, raw_body: bytes, signature_header: Optional[str]) -> bool:
        """
        Verify a signature header against the raw body

        Never raises: an unconfigured secret, a missing header or any
        comparison problem all yield False.
        """
        if not self.secret or not signature_header:
            return False

        try:
            expected = self.generate_signature(raw_body).encode("utf-8")
            received = signature_header.encode("utf-8")
            # Constant-time comparison to prevent timing attacks
            return hmac.compare_digest(expected, received)
        except (TypeError, ValueError, UnicodeError) as e:
            logger.warning(f"Webhook signature comparison failed: {type(e).__name__}")
            return False
