#!/usr/bin/env python3
"""
Tests for chat request building and config validation.
"""

import pytest

from askpop.llm.exceptions import ConfigError, ErrorKind
from askpop.llm.models import (
    ChatRequestConfig,
    Message,
    MessageRole,
    build_chat_request,
)


def make_config(**overrides) -> ChatRequestConfig:
    values = {
        "endpoint": "https://api.example.com/v1/chat/completions",
        "api_key": "sk-test",
        "model": "test-model",
        "temperature": 0.3,
        "temperature_enabled": True,
    }
    values.update(overrides)
    return ChatRequestConfig(**values)


HISTORY = [
    Message(MessageRole.SYSTEM, "be brief"),
    Message(MessageRole.USER, "hello"),
    Message(MessageRole.ASSISTANT, "hi"),
    Message(MessageRole.USER, "again"),
]


class TestBuildChatRequest:
    """Request body construction."""

    def test_body_contains_model_messages_and_stream(self):
        body = build_chat_request(HISTORY, make_config())
        assert body["model"] == "test-model"
        assert body["stream"] is True
        assert body["messages"] == [
            {"role": "system", "content": "be brief"},
            {"role": "user", "content": "hello"},
            {"role": "assistant", "content": "hi"},
            {"role": "user", "content": "again"},
        ]

    def test_temperature_included_when_enabled(self):
        body = build_chat_request(HISTORY, make_config(temperature=0.3))
        assert body["temperature"] == 0.3

    def test_temperature_omitted_when_disabled(self):
        body = build_chat_request(HISTORY, make_config(temperature_enabled=False))
        assert "temperature" not in body


class TestConfigValidation:
    """ConfigError is raised before any I/O."""

    @pytest.mark.parametrize("api_key", ["", "   "])
    def test_missing_api_key(self, api_key):
        with pytest.raises(ConfigError) as exc_info:
            build_chat_request(HISTORY, make_config(api_key=api_key))
        assert exc_info.value.kind is ErrorKind.CONFIG

    @pytest.mark.parametrize(
        "endpoint",
        ["", "not a url", "/v1/chat/completions", "ftp://example.com/x"],
    )
    def test_bad_endpoint(self, endpoint):
        with pytest.raises(ConfigError, match="(?i)url"):
            build_chat_request(HISTORY, make_config(endpoint=endpoint))

    def test_repr_hides_api_key(self):
        assert "sk-test" not in repr(make_config())
