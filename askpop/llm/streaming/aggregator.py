"""
Single-writer accumulation of streamed text deltas.
"""

from __future__ import annotations

import asyncio

from .models import AggregationState, PublishResult

# Minimum pending characters before another publish; the very first
# non-empty delta always publishes.
DEFAULT_PUBLISH_THRESHOLD = 2


class DeltaAggregator:
    """
    Merge deltas into one monotonically growing string.

    All access to the state goes through an asyncio.Lock, so concurrent
    append() calls are strictly serialized and readers only ever see whole
    snapshots. Published text is always the full answer so far, never a diff.
    """

    def __init__(self, publish_threshold: int = DEFAULT_PUBLISH_THRESHOLD):
        if publish_threshold < 1:
            raise ValueError("publish_threshold must be at least 1")
        self.publish_threshold = publish_threshold
        self._state = AggregationState()
        self._lock = asyncio.Lock()

    async def append(self, content: str) -> PublishResult:
        """Append a delta and report whether the caller should publish now."""
        async with self._lock:
            state = self._state
            state.accumulated_text += content
            state.pending_buffer += content

            if state.is_first_emission and content:
                state.is_first_emission = False
                return PublishResult(
                    text=state.accumulated_text,
                    should_publish=True,
                    is_first_emission=True,
                )

            if (
                not state.is_first_emission
                and len(state.pending_buffer) >= self.publish_threshold
            ):
                state.pending_buffer = ""
                return PublishResult(
                    text=state.accumulated_text,
                    should_publish=True,
                    is_first_emission=False,
                )

            return PublishResult(
                text=state.accumulated_text,
                should_publish=False,
                is_first_emission=False,
            )

    async def final_text(self) -> str:
        """Full accumulated text, regardless of what is still pending."""
        async with self._lock:
            return self._state.accumulated_text
