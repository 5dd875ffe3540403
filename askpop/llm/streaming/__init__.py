"""
Streaming pipeline pieces: SSE decoding and delta aggregation.
"""

from .aggregator import DEFAULT_PUBLISH_THRESHOLD, DeltaAggregator
from .models import (
    AggregationState,
    DeltaEvent,
    DeltaEventType,
    PublishResult,
    StreamingStats,
)
from .parser import StreamingParser, decode_sse_line

__all__ = [
    "DEFAULT_PUBLISH_THRESHOLD",
    "AggregationState",
    "DeltaAggregator",
    "DeltaEvent",
    "DeltaEventType",
    "PublishResult",
    "StreamingParser",
    "StreamingStats",
    "decode_sse_line",
]
