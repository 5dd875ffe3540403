#!/usr/bin/env python3
"""
Tests for the SSE line decoder.
"""

import json

import pytest

from askpop.llm.streaming.models import DeltaEventType
from askpop.llm.streaming.parser import StreamingParser, decode_sse_line


def data_line(content: str) -> str:
    return "data: " + json.dumps({"choices": [{"delta": {"content": content}}]})


async def aiter(lines):
    for line in lines:
        yield line


async def collect(parser: StreamingParser, lines, should_stop=None):
    return [event async for event in parser.parse_lines(aiter(lines), should_stop)]


class TestDecodeSseLine:
    """Single-line decoding."""

    def test_content_line(self):
        event = decode_sse_line(data_line("Hello"))
        assert event.event_type is DeltaEventType.CONTENT
        assert event.content == "Hello"

    @pytest.mark.parametrize("line", ["data: [DONE]", "data:  [DONE]  ", "data: [DONE]\r"])
    def test_done_sentinel(self, line):
        assert decode_sse_line(line).event_type is DeltaEventType.DONE

    @pytest.mark.parametrize(
        "line",
        [
            "",
            ": keep-alive",
            "event: message",
            "data:{\"no\": \"space\"}",
            "data: not-json",
            "data: {\"choices\": []}",
            "data: {\"choices\": [{\"delta\": {}}]}",
            "data: {\"choices\": [{\"delta\": {\"role\": \"assistant\"}}]}",
            "data: {\"choices\": [{\"delta\": {\"content\": null}}]}",
            "data: [1, 2, 3]",
            "data: " + "1" * 5000,
            "data: " + "[" * 100000 + "]" * 100000,
        ],
    )
    def test_irrelevant_lines_are_skipped(self, line):
        assert decode_sse_line(line).event_type is DeltaEventType.SKIP

    def test_empty_content_is_still_content(self):
        event = decode_sse_line(data_line(""))
        assert event.event_type is DeltaEventType.CONTENT
        assert event.content == ""


class TestStreamingParser:
    """Line stream decoding."""

    @pytest.mark.asyncio
    async def test_done_ends_sequence(self):
        parser = StreamingParser()
        events = await collect(
            parser,
            [data_line("a"), data_line("b"), "data: [DONE]", data_line("after")],
        )
        assert [e.event_type for e in events] == [
            DeltaEventType.CONTENT,
            DeltaEventType.CONTENT,
            DeltaEventType.DONE,
        ]
        assert parser.get_stats().done_received is True

    @pytest.mark.asyncio
    async def test_close_without_done_is_normal_end(self):
        parser = StreamingParser()
        events = await collect(parser, [data_line("a"), data_line("b")])
        assert [e.content for e in events] == ["a", "b"]
        assert parser.get_stats().done_received is False

    @pytest.mark.asyncio
    async def test_malformed_lines_do_not_change_content(self):
        clean = [data_line("Hel"), data_line("lo"), data_line("!"), "data: [DONE]"]
        noisy = [
            "",
            data_line("Hel"),
            "data: not-json",
            "",
            ": ping",
            data_line("lo"),
            "data: {\"choices\": [{\"delta\": {}}]}",
            data_line("!"),
            "",
            "data: [DONE]",
        ]

        clean_events = await collect(StreamingParser(), clean)
        noisy_parser = StreamingParser()
        noisy_events = await collect(noisy_parser, noisy)

        assert "".join(e.content or "" for e in clean_events) == "Hello!"
        assert "".join(e.content or "" for e in noisy_events) == "Hello!"

        stats = noisy_parser.get_stats()
        assert stats.content_events == 3
        assert stats.skipped_lines == 6
        assert stats.total_lines == 10

    @pytest.mark.asyncio
    async def test_should_stop_checked_at_line_boundary(self):
        seen = []

        def should_stop():
            return len(seen) >= 2

        parser = StreamingParser()
        async for event in parser.parse_lines(
            aiter([data_line("a"), data_line("b"), data_line("c")]), should_stop
        ):
            seen.append(event)

        assert [e.content for e in seen] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_parser_is_single_use(self):
        parser = StreamingParser()
        await collect(parser, [data_line("a")])
        with pytest.raises(RuntimeError):
            await collect(parser, [data_line("b")])
