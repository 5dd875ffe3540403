"""
SSE line decoder for OpenAI-compatible chat-completion streams.

Lines not starting with ``data: `` are dropped, ``data: [DONE]`` ends the
stream, and any payload that is not JSON or lacks
``choices[0].delta.content`` is skipped. None of these abort a session.
"""

from __future__ import annotations

import json
from collections.abc import AsyncGenerator, AsyncIterable, Callable

import structlog

from .models import DeltaEvent, DeltaEventType, StreamingStats

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"

logger = structlog.get_logger(__name__)


def decode_sse_line(line: str) -> DeltaEvent:
    """Decode a single raw line into a DeltaEvent."""
    if not line.startswith(DATA_PREFIX):
        return DeltaEvent.skip(line)

    data = line[len(DATA_PREFIX):]
    if data.strip() == DONE_SENTINEL:
        return DeltaEvent.done()

    try:
        parsed = json.loads(data)
        content = parsed["choices"][0]["delta"]["content"]
    except (ValueError, KeyError, IndexError, TypeError, RecursionError):
        return DeltaEvent.skip(data)

    if not isinstance(content, str):
        return DeltaEvent.skip(data)

    return DeltaEvent(
        event_type=DeltaEventType.CONTENT, content=content, raw_data=data
    )


class StreamingParser:
    """Turns a line stream into DeltaEvents, one parser per session."""

    def __init__(self) -> None:
        self.stats = {
            "total_lines": 0,
            "content_events": 0,
            "skipped_lines": 0,
        }
        self.done_received = False
        self._consumed = False

    async def parse_lines(
        self,
        lines: AsyncIterable[str],
        should_stop: Callable[[], bool] | None = None,
    ) -> AsyncGenerator[DeltaEvent]:
        """
        Yield CONTENT events, then a single DONE event if the sentinel arrives.

        A connection closing without the sentinel simply ends the sequence.
        `should_stop` is checked at every line boundary so cancellation takes
        effect between lines, never mid-parse.
        """
        if self._consumed:
            raise RuntimeError("StreamingParser instances are single-use")
        self._consumed = True

        async for line in lines:
            if should_stop is not None and should_stop():
                return

            self.stats["total_lines"] += 1
            event = decode_sse_line(line)

            if event.event_type is DeltaEventType.SKIP:
                self.stats["skipped_lines"] += 1
                if event.raw_data:
                    logger.debug("Skipping SSE line", raw=event.raw_data[:80])
                continue

            if event.event_type is DeltaEventType.DONE:
                self.done_received = True
                yield event
                return

            self.stats["content_events"] += 1
            yield event

    def get_stats(self) -> StreamingStats:
        """Get decoding statistics for monitoring."""
        return StreamingStats(
            total_lines=self.stats["total_lines"],
            content_events=self.stats["content_events"],
            skipped_lines=self.stats["skipped_lines"],
            done_received=self.done_received,
        )
