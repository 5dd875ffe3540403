"""
Stream sessions: one streamed request from send to a terminal state.

A session owns its DeltaAggregator and parser, drives exactly one sink, and
ends in exactly one of COMPLETED, CANCELLED or FAILED. Cancellation is
cooperative: the token is checked at every line boundary and the running
task is cancelled at its current suspension point (connect or line read).
"""

from __future__ import annotations

import asyncio
import uuid
from collections import defaultdict
from collections.abc import Sequence
from contextlib import aclosing
from enum import Enum

from askpop.history.repository import HistoryRepository
from askpop.llm.client import StreamingLLMClient
from askpop.llm.exceptions import StreamError
from askpop.llm.models import ChatRequestConfig, Message, MessageRole, build_chat_request
from askpop.llm.streaming.aggregator import DEFAULT_PUBLISH_THRESHOLD, DeltaAggregator
from askpop.llm.streaming.models import DeltaEventType, StreamingStats
from askpop.llm.streaming.parser import StreamingParser
from askpop.logging_utils import ContextualLogger, StreamErrorHandler
from askpop.sinks import DispatchSink


class SessionState(Enum):
    """Lifecycle of a StreamSession. Every state but RUNNING is terminal."""
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class StreamSession:
    """Builds the request, streams it, aggregates deltas and dispatches to a sink."""

    def __init__(
        self,
        messages: Sequence[Message],
        config: ChatRequestConfig,
        sink: DispatchSink,
        client: StreamingLLMClient,
        *,
        publish_threshold: int = DEFAULT_PUBLISH_THRESHOLD,
        history: HistoryRepository | None = None,
        conversation_id: str = "default",
        session_id: str | None = None,
    ) -> None:
        self.messages = list(messages)
        self.config = config
        self.sink = sink
        self.client = client
        self.history = history
        self.conversation_id = conversation_id
        self.session_id = session_id or uuid.uuid4().hex[:12]

        self.state = SessionState.RUNNING
        self.error: Exception | None = None
        self.final_text: str | None = None

        self._aggregator = DeltaAggregator(publish_threshold)
        self._parser = StreamingParser()
        self._cancelled = False
        self._last_published: str | None = None
        self._persisted = False

        mode = getattr(sink, "mode", None)
        self._log = ContextualLogger({
            "session_id": self.session_id,
            "conversation_id": conversation_id,
            "mode": mode.value if mode is not None else type(sink).__name__,
            "model": config.model,
        })

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def stats(self) -> StreamingStats:
        return self._parser.get_stats()

    def cancel(self) -> bool:
        """Set the cancellation token. Returns False if already terminal."""
        if self.state is not SessionState.RUNNING:
            return False
        self._cancelled = True
        self._transition(SessionState.CANCELLED)
        return True

    async def run(self) -> SessionState:
        """Run the pipeline to a terminal state and return it."""
        if self.state is not SessionState.RUNNING:
            return self.state

        self._log.info("Session started", message_count=len(self.messages))
        try:
            payload = build_chat_request(self.messages, self.config)
            async with self.client.open_stream(payload, self.config) as lines:
                await self._consume(lines)
        except StreamError as e:
            if not self._cancelled:
                await self._fail(e)
            return self.state
        except asyncio.CancelledError:
            self.cancel()
            raise
        except Exception as e:
            # anything outside the taxonomy still ends the session through on_error
            if not self._cancelled:
                self._log.error("Unexpected error in stream session", error_type=type(e).__name__)
                await self._fail(e)
            return self.state

        if not self._cancelled:
            await self._complete()
        return self.state

    async def _consume(self, lines) -> None:
        events = self._parser.parse_lines(lines, should_stop=lambda: self._cancelled)
        async with aclosing(events):
            async for event in events:
                if event.event_type is DeltaEventType.DONE:
                    break

                result = await self._aggregator.append(event.content or "")
                if self._cancelled:
                    break
                if result.should_publish:
                    self._publish(result.text, result.is_first_emission)

    def _publish(self, text: str, is_first_emission: bool) -> None:
        self._last_published = text
        self.sink.on_publish(text, is_first_emission)

    async def _complete(self) -> None:
        final = await self._aggregator.final_text()
        if self._cancelled:
            return
        self.final_text = final
        self._transition(SessionState.COMPLETED, final_length=len(final))
        self.sink.on_complete(final)
        await self._persist(final)

    async def _fail(self, error: Exception) -> None:
        self.error = error
        StreamErrorHandler.log_failure(
            error,
            "stream_session",
            {"session_id": self.session_id, "model": self.config.model},
        )

        if self._last_published is not None:
            partial = await self._aggregator.final_text()
            if self._cancelled:
                return
            self.final_text = partial
            if partial != self._last_published:
                self._publish(partial, False)

        self._transition(SessionState.FAILED)
        self.sink.on_error(
            StreamErrorHandler.classify_error(error),
            StreamErrorHandler.user_message(error),
        )
        if self.final_text:
            await self._persist(self.final_text)

    async def _persist(self, text: str) -> None:
        if self.history is None or self._persisted or not text:
            return
        self._persisted = True
        await self.history.save_message(
            self.conversation_id, Message(MessageRole.ASSISTANT, text)
        )
        self._log.debug("Final answer persisted", length=len(text))

    def _transition(self, state: SessionState, **context) -> None:
        previous = self.state
        self.state = state
        self._log.info(
            "Session state changed",
            previous=previous.value,
            state=state.value,
            **context,
        )


class SessionHandle:
    """Caller-side handle on a running StreamSession task."""

    def __init__(self, session: StreamSession, task: asyncio.Task) -> None:
        self.session = session
        self.task = task

    @property
    def state(self) -> SessionState:
        return self.session.state

    def done(self) -> bool:
        return self.task.done()

    def cancel(self) -> None:
        """Cancel the session; a no-op once it has reached a terminal state."""
        if self.session.cancel() and not self.task.done():
            self.task.cancel()

    async def wait(self) -> SessionState:
        """Wait for the task to finish and return the terminal state."""
        await asyncio.wait({self.task})
        if not self.task.cancelled() and self.task.exception() is not None:
            raise self.task.exception()
        return self.session.state


def start_session(
    messages: Sequence[Message],
    config: ChatRequestConfig,
    sink: DispatchSink,
    *,
    client: StreamingLLMClient,
    publish_threshold: int = DEFAULT_PUBLISH_THRESHOLD,
    history: HistoryRepository | None = None,
    conversation_id: str = "default",
) -> SessionHandle:
    """Start a session as a task on the running loop and return its handle."""
    session = StreamSession(
        messages,
        config,
        sink,
        client,
        publish_threshold=publish_threshold,
        history=history,
        conversation_id=conversation_id,
    )
    task = asyncio.create_task(session.run(), name=f"stream-session-{session.session_id}")
    return SessionHandle(session, task)


class SessionManager:
    """
    Enforces at most one running session per conversation.

    Starting a session while another is running on the same conversation
    cancels the old one and waits for it to wind down first.
    """

    def __init__(
        self,
        client: StreamingLLMClient,
        *,
        publish_threshold: int = DEFAULT_PUBLISH_THRESHOLD,
        history: HistoryRepository | None = None,
    ) -> None:
        self.client = client
        self.publish_threshold = publish_threshold
        self.history = history
        self._active: dict[str, SessionHandle] = {}
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def active(self, conversation_id: str) -> SessionHandle | None:
        handle = self._active.get(conversation_id)
        if handle is None or handle.state is not SessionState.RUNNING:
            return None
        return handle

    async def start(
        self,
        conversation_id: str,
        messages: Sequence[Message],
        config: ChatRequestConfig,
        sink: DispatchSink,
    ) -> SessionHandle:
        async with self._locks[conversation_id]:
            await self._stop(conversation_id)
            handle = start_session(
                messages,
                config,
                sink,
                client=self.client,
                publish_threshold=self.publish_threshold,
                history=self.history,
                conversation_id=conversation_id,
            )
            self._active[conversation_id] = handle
            return handle

    async def cancel(self, conversation_id: str) -> None:
        async with self._locks[conversation_id]:
            await self._stop(conversation_id)

    async def cancel_all(self) -> None:
        for conversation_id in list(self._active):
            await self.cancel(conversation_id)

    async def _stop(self, conversation_id: str) -> None:
        previous = self._active.pop(conversation_id, None)
        if previous is None:
            return
        previous.cancel()
        # only wait for the task to settle; its outcome belongs to its own caller
        await asyncio.wait({previous.task})
