"""
Centralized logging and error handling utilities for AskPop.

This module provides helpers to standardize logging and error reporting
across the streaming client.

Features:
- Structured logging with contextual information
- Error classification into the config / network / protocol taxonomy
- Human-readable error strings for sink error channels
- Timing of streamed requests, including cancelled ones
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog

from askpop.llm.exceptions import ErrorKind, StreamError

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(colors=True),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)


def configure_logging(level: str | int = "INFO") -> None:
    """Route stdlib logging (which structlog renders through) at `level`."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {level}")
    logging.basicConfig(level=level, format="%(message)s")
    logging.getLogger().setLevel(level)


class StreamErrorHandler:
    """Maps exceptions onto the streaming error taxonomy."""

    @staticmethod
    def classify_error(error: Exception) -> ErrorKind:
        """
        Classify an error into an ErrorKind.

        Args:
            error: The exception to classify

        Returns:
            The ErrorKind reported to the sink
        """
        if isinstance(error, StreamError):
            return error.kind
        if isinstance(error, httpx.HTTPError | TimeoutError | OSError):
            return ErrorKind.NETWORK
        if isinstance(error, ValueError):
            return ErrorKind.CONFIG
        return ErrorKind.NETWORK

    @staticmethod
    def user_message(error: Exception) -> str:
        """Render the single human-readable string shown for a failed session."""
        if isinstance(error, StreamError):
            return error.message
        text = str(error)
        return f"{type(error).__name__}: {text}" if text else type(error).__name__

    @staticmethod
    def log_failure(
        error: Exception,
        operation: str,
        context: dict[str, Any] | None = None,
    ) -> ErrorKind:
        """Log a failure with its classification and return the kind."""
        kind = StreamErrorHandler.classify_error(error)
        log_data: dict[str, Any] = {
            "operation": operation,
            "error_type": type(error).__name__,
            "error_kind": kind.value,
            "error_message": str(error),
            **(context or {}),
        }
        if isinstance(error, StreamError) and error.status_code is not None:
            log_data["status_code"] = error.status_code
        logger.error("Operation failed", **log_data)
        return kind


@asynccontextmanager
async def stream_request_context(
    model: str,
    endpoint: str,
    *,
    log_timing: bool = True,
):
    """
    Async context manager logging the lifetime of one streamed request.

    Cancellation is logged as its own outcome and re-raised untouched;
    failures are logged with their error kind and re-raised.

    Yields:
        Bound logger for the request
    """
    request_logger = logger.bind(
        operation="chat_completion_stream",
        model=model,
        endpoint=endpoint,
    )

    request_logger.debug("Stream request started")
    start_time = time.perf_counter() if log_timing else None

    def _timing() -> dict[str, Any]:
        if log_timing and start_time is not None:
            return {"duration_ms": round((time.perf_counter() - start_time) * 1000, 2)}
        return {}

    try:
        yield request_logger
    except asyncio.CancelledError:
        request_logger.info("Stream request cancelled", **_timing())
        raise
    except Exception as e:
        request_logger.error(
            "Stream request failed",
            error_type=type(e).__name__,
            error_kind=StreamErrorHandler.classify_error(e).value,
            **_timing(),
        )
        raise
    else:
        request_logger.info("Stream request finished", **_timing())


class ContextualLogger:
    """Logger that keeps session context on every entry."""

    def __init__(self, base_context: dict[str, Any] | None = None):
        self.base_context = base_context or {}
        self._logger = logger.bind(**self.base_context)

    def info(self, message: str, **context: Any) -> None:
        self._logger.info(message, **context)

    def error(self, message: str, **context: Any) -> None:
        self._logger.error(message, **context)

    def debug(self, message: str, **context: Any) -> None:
        self._logger.debug(message, **context)
