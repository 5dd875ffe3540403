"""
Error taxonomy for streamed completions.

- ConfigError: missing key / malformed endpoint, raised before any I/O
- NetworkError: connection, DNS and timeout failures
- ProtocolError: non-2xx HTTP status, with status code and body

Malformed or irrelevant SSE lines are not errors; the parser skips them.
"""

from __future__ import annotations

from enum import Enum

MAX_BODY_IN_MESSAGE = 500


class ErrorKind(Enum):
    """Error categories surfaced to a sink's error channel."""
    CONFIG = "config"
    NETWORK = "network"
    PROTOCOL = "protocol"


class StreamError(Exception):
    """Base streaming error with request context."""

    kind: ErrorKind = ErrorKind.NETWORK

    def __init__(
        self,
        message: str,
        model: str = "unknown",
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.model = model
        self.status_code = status_code
        self.response_body = response_body


class ConfigError(StreamError):
    """Unusable request configuration. Never retried."""
    kind = ErrorKind.CONFIG


class NetworkError(StreamError):
    """Transport failure before or during streaming."""
    kind = ErrorKind.NETWORK


class ProtocolError(StreamError):
    """The endpoint answered with a non-2xx status."""
    kind = ErrorKind.PROTOCOL

    @classmethod
    def from_status(
        cls, status_code: int, body: str | None, model: str = "unknown"
    ) -> ProtocolError:
        message = f"API request failed: HTTP {status_code}"
        body = (body or "").strip()
        if body:
            message += f": {body[:MAX_BODY_IN_MESSAGE]}"
        return cls(
            message, model=model, status_code=status_code, response_body=body or None
        )
