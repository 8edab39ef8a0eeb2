"""
Security Audit Logger
JSON audit trail for rejected webhook deliveries and rate limit violations
"""

import hashlib
import json
import logging
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

_STANDARD_RECORD_FIELDS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "message",
}


class SecurityJSONFormatter(logging.Formatter):
    """JSON formatter for security audit logs"""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Extra fields passed through logger.*(extra=...)
        for key, value in record.__dict__.items():
            if key not in _STANDARD_RECORD_FIELDS:
                log_entry[key] = value

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class SecurityAuditLogger:
    """Secure audit logger for authentication and abuse events"""

    def __init__(self, log_file: Optional[str] = None):
        self.logger = logging.getLogger("buildservice.security.audit")
        self.logger.setLevel(logging.INFO)

        # Prevent duplicate handlers
        if log_file and not self.logger.handlers:
            self._setup_file_handler(Path(log_file))

    def _setup_file_handler(self, log_file: Path):
        """Rotating JSON file handler, 50MB max, keep 5 files"""
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            log_file,
            maxBytes=50 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        handler.setFormatter(SecurityJSONFormatter())
        self.logger.addHandler(handler)

    def log_signature_failure(
        self,
        delivery_id: Optional[str],
        source_ip: Optional[str],
        event_type: Optional[str],
        endpoint: str,
    ):
        """Log a delivery rejected for a missing or invalid signature"""
        self.logger.warning(
            f"Invalid webhook signature for delivery: {delivery_id}",
            extra={
                "event_type": "webhook_signature_failure",
                "delivery_id": delivery_id,
                "webhook_event": event_type,
                "endpoint": endpoint,
                "source_ip_hash": self._hash_ip(source_ip),
            },
        )

    def log_rate_limit_event(self, source_ip: str, request_count: int, path: str):
        """Log rate limiting security event"""
        self.logger.warning(
            "Rate Limit Security Event",
            extra={
                "event_type": "rate_limit_violation",
                "source_ip_hash": self._hash_ip(source_ip),
                "request_count": request_count,
                "path": path,
            },
        )

    def _hash_ip(self, ip_address: Optional[str]) -> Optional[str]:
        """Hash IP address for privacy while maintaining uniqueness"""
        if not ip_address:
            return None

        salt = "buildservice_security_salt"
        return hashlib.sha256(f"{salt}{ip_address}".encode()).hexdigest()[:16]
