#!/usr/bin/env python3
"""
Test script for logging utilities.

This validates error classification and the logging helpers.
"""

import asyncio

import httpx
import pytest

from askpop.llm.exceptions import ConfigError, ErrorKind, NetworkError, ProtocolError
from askpop.logging_utils import (
    ContextualLogger,
    StreamErrorHandler,
    configure_logging,
    stream_request_context,
)


class TestStreamErrorHandler:
    """Test the StreamErrorHandler class."""

    @pytest.mark.parametrize("error,kind", [
        (ConfigError("no key"), ErrorKind.CONFIG),
        (NetworkError("down"), ErrorKind.NETWORK),
        (ProtocolError("HTTP 500", status_code=500), ErrorKind.PROTOCOL),
        (httpx.ConnectTimeout("timed out"), ErrorKind.NETWORK),
        (TimeoutError("timed out"), ErrorKind.NETWORK),
        (ConnectionError("refused"), ErrorKind.NETWORK),
        (ValueError("bad value"), ErrorKind.CONFIG),
        (RuntimeError("other"), ErrorKind.NETWORK),
    ])
    def test_classify_error(self, error, kind):
        assert StreamErrorHandler.classify_error(error) is kind

    def test_user_message_for_stream_error(self):
        error = ProtocolError.from_status(429, "slow down")
        assert StreamErrorHandler.user_message(error) == "API request failed: HTTP 429: slow down"

    def test_protocol_body_truncated(self):
        error = ProtocolError.from_status(500, "x" * 2000)
        assert len(error.message) < 600
        assert error.response_body == "x" * 2000

    def test_user_message_for_plain_error(self):
        assert StreamErrorHandler.user_message(RuntimeError("boom")) == "RuntimeError: boom"
        assert StreamErrorHandler.user_message(RuntimeError()) == "RuntimeError"

    def test_log_failure_returns_kind(self):
        kind = StreamErrorHandler.log_failure(
            ProtocolError("HTTP 401", status_code=401), "unit_test", {"k": "v"}
        )
        assert kind is ErrorKind.PROTOCOL


class TestStreamRequestContext:
    """Test the request lifetime context manager."""

    @pytest.mark.asyncio
    async def test_yields_bound_logger(self):
        async with stream_request_context("m", "https://api.example.com") as request_logger:
            request_logger.info("inside")

    @pytest.mark.asyncio
    async def test_reraises_failures(self):
        with pytest.raises(NetworkError):
            async with stream_request_context("m", "https://api.example.com"):
                raise NetworkError("down")

    @pytest.mark.asyncio
    async def test_reraises_cancellation(self):
        with pytest.raises(asyncio.CancelledError):
            async with stream_request_context("m", "https://api.example.com", log_timing=False):
                raise asyncio.CancelledError()


class TestContextualLogger:
    def test_keeps_base_context(self):
        contextual = ContextualLogger({"session_id": "abc"})
        assert contextual.base_context == {"session_id": "abc"}
        contextual.info("message", extra=1)
        contextual.debug("detail")
        contextual.error("failure", error_type="RuntimeError")


def test_configure_logging_rejects_unknown_level():
    with pytest.raises(ValueError):
        configure_logging("LOUD")
