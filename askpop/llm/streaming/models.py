"""
Streaming-specific dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class DeltaEventType(Enum):
    """Outcome of decoding one SSE line."""
    CONTENT = "content"
    DONE = "done"
    SKIP = "skip"


@dataclass(frozen=True)
class DeltaEvent:
    """One decoded SSE payload."""
    event_type: DeltaEventType
    content: str | None = None
    raw_data: str = ""

    @classmethod
    def skip(cls, raw_data: str = "") -> DeltaEvent:
        return cls(event_type=DeltaEventType.SKIP, raw_data=raw_data)

    @classmethod
    def done(cls) -> DeltaEvent:
        return cls(event_type=DeltaEventType.DONE, raw_data="[DONE]")


@dataclass
class AggregationState:
    """Mutable aggregation state, owned by a single DeltaAggregator."""
    accumulated_text: str = ""
    pending_buffer: str = ""
    is_first_emission: bool = True


@dataclass(frozen=True)
class PublishResult:
    """Snapshot returned from DeltaAggregator.append()."""
    text: str
    should_publish: bool
    is_first_emission: bool


@dataclass(frozen=True)
class StreamingStats:
    """Line counters collected while decoding one stream."""
    total_lines: int
    content_events: int
    skipped_lines: int
    done_received: bool
