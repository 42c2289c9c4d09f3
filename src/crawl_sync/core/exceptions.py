"""Exception types raised inside the sync engine."""
from typing import Any, Dict


class CrawlSyncException(Exception):
    """Base exception for sync engine errors."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class DecodeError(CrawlSyncException):
    """Raised when a stream message or bulk-fetch body cannot be decoded."""

    def __init__(self, reason: str, payload: Any = None):
        preview = payload
        if isinstance(payload, (str, bytes)) and len(payload) > 200:
            preview = payload[:200]
        super().__init__(
            f"Could not decode payload: {reason}",
            details={"reason": reason, "payload": preview}
        )


class ConnectError(CrawlSyncException):
    """Raised when the event stream handshake or transport fails."""

    def __init__(self, url: str, reason: str):
        super().__init__(
            f"Stream connection to {url} failed: {reason}",
            details={"url": url, "reason": reason}
        )


class RecordValidationError(CrawlSyncException):
    """Raised for a job payload that cannot become a minimally valid record."""

    def __init__(self, reason: str, payload: Any = None):
        super().__init__(
            f"Invalid job record: {reason}",
            details={"reason": reason, "payload": payload}
        )
