"""
Core chat dataclasses and the request builder.

This module provides the wire-level building blocks for a completion call:
- Message roles and message structure
- Immutable per-request configuration
- Conversion of history + config into an OpenAI-compatible request body
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx

from .exceptions import ConfigError


class MessageRole(Enum):
    """OpenAI-compatible message roles."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    """OpenAI-compatible message structure."""
    role: MessageRole
    content: str

    def to_wire(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


@dataclass(frozen=True)
class ChatRequestConfig:
    """Per-request configuration, read-only to the streaming core."""
    endpoint: str
    api_key: str
    model: str
    temperature: float = 0.7
    temperature_enabled: bool = True

    def __repr__(self) -> str:
        # keep the key out of logs and tracebacks
        return (
            f"ChatRequestConfig(endpoint={self.endpoint!r}, model={self.model!r}, "
            f"temperature={self.temperature!r}, "
            f"temperature_enabled={self.temperature_enabled!r})"
        )


def validate_request_config(config: ChatRequestConfig) -> None:
    """Fail with ConfigError on a missing key or a non-absolute endpoint."""
    if not config.api_key or not config.api_key.strip():
        raise ConfigError("API key is not configured", model=config.model)

    try:
        url = httpx.URL(config.endpoint)
    except (httpx.InvalidURL, TypeError) as e:
        raise ConfigError(
            f"Invalid endpoint URL: {config.endpoint!r}", model=config.model
        ) from e

    if url.scheme not in ("http", "https") or not url.host:
        raise ConfigError(
            f"Endpoint must be an absolute http(s) URL: {config.endpoint!r}",
            model=config.model,
        )


def build_chat_request(
    messages: list[Message], config: ChatRequestConfig
) -> dict[str, Any]:
    """
    Build the streamed chat-completion body.

    `temperature` is only sent when enabled; some backends reject it for
    models that do not support it, so it is omitted rather than defaulted.

    Raises:
        ConfigError: before any network I/O, if the config is unusable.
    """
    validate_request_config(config)

    payload: dict[str, Any] = {
        "model": config.model,
        "messages": [message.to_wire() for message in messages],
        "stream": True,
    }
    if config.temperature_enabled:
        payload["temperature"] = config.temperature
    return payload
