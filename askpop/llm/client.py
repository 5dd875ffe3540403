"""
HTTP transport for streamed chat completions.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx

from ..logging_utils import stream_request_context
from .exceptions import NetworkError, ProtocolError
from .models import ChatRequestConfig

DEFAULT_HTTP_CONFIG: dict[str, float] = {
    "connect_timeout": 10.0,
    "read_timeout": 60.0,
    "write_timeout": 10.0,
    "pool_timeout": 10.0,
}


class StreamingLLMClient:
    """
    Opens streamed POSTs against an OpenAI-compatible endpoint.

    The endpoint and key come from each request's ChatRequestConfig, so one
    client can be shared by every session of a process. Timeouts are the
    only time limit on a stream; a timeout surfaces as NetworkError.
    """

    def __init__(
        self,
        http_config: dict[str, Any] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        conf = {**DEFAULT_HTTP_CONFIG, **(http_config or {})}
        self.client: httpx.AsyncClient = httpx.AsyncClient(
            timeout=httpx.Timeout(
                connect=conf["connect_timeout"],
                read=conf["read_timeout"],
                write=conf["write_timeout"],
                pool=conf["pool_timeout"],
            ),
            transport=transport,
        )

    @asynccontextmanager
    async def open_stream(
        self, payload: dict[str, Any], config: ChatRequestConfig
    ) -> AsyncIterator[AsyncIterator[str]]:
        """
        POST the payload and yield the response body as an async line iterator.

        Raises:
            ProtocolError: non-2xx status (body included when present).
            NetworkError: connect/DNS/timeout failures, before or mid-stream.
        """
        headers = {
            "Authorization": f"Bearer {config.api_key}",
            "Content-Type": "application/json",
        }
        async with stream_request_context(config.model, config.endpoint) as request_logger:
            try:
                async with self.client.stream(
                    "POST", config.endpoint, json=payload, headers=headers
                ) as response:
                    if not response.is_success:
                        body = await response.aread()
                        raise ProtocolError.from_status(
                            response.status_code,
                            body.decode("utf-8", errors="replace"),
                            model=config.model,
                        )

                    request_logger.debug(
                        "Stream opened",
                        status=response.status_code,
                        content_type=response.headers.get("content-type", ""),
                    )
                    yield self._iter_lines(response, config)
            except httpx.HTTPError as e:
                raise NetworkError(
                    f"Network error: {e!s}" if str(e) else f"Network error: {type(e).__name__}",
                    model=config.model,
                ) from e

    async def _iter_lines(
        self, response: httpx.Response, config: ChatRequestConfig
    ) -> AsyncGenerator[str]:
        try:
            async for line in response.aiter_lines():
                yield line
        except httpx.HTTPError as e:
            raise NetworkError(
                f"Connection lost while streaming: {e!s}", model=config.model
            ) from e

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> StreamingLLMClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
