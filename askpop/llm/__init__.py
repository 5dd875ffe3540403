"""
Streaming chat-completion client.

This package provides:
- Message and request-config models plus the request builder
- An httpx transport for SSE chat-completion streams
- SSE decoding and single-writer delta aggregation
- The config / network / protocol error taxonomy
"""

from __future__ import annotations

from .client import StreamingLLMClient
from .exceptions import (
    ConfigError,
    ErrorKind,
    NetworkError,
    ProtocolError,
    StreamError,
)
from .models import (
    ChatRequestConfig,
    Message,
    MessageRole,
    build_chat_request,
    validate_request_config,
)

__all__ = [
    "ChatRequestConfig",
    "ConfigError",
    "ErrorKind",
    "Message",
    "MessageRole",
    "NetworkError",
    "ProtocolError",
    "StreamError",
    "StreamingLLMClient",
    "build_chat_request",
    "validate_request_config",
]
