"""
Chat Service for AskPop.

Orchestrates one chat window: it owns the Conversation, turns a send into a
user message plus a StreamSession, and picks the sink for the configured
dispatch mode. The session only ever sees a snapshot of the history; the
conversation itself is mutated by the sink, on the caller's side.
"""

from __future__ import annotations

import base64
import binascii
import uuid
from collections.abc import Callable

import structlog
from pydantic import BaseModel, ConfigDict, Field

from askpop.history.conversation import Conversation
from askpop.llm.models import ChatRequestConfig, Message, MessageRole
from askpop.session import SessionHandle, SessionManager
from askpop.sinks import ConversationSink, DispatchMode, NoteSink, create_sink

logger = structlog.get_logger(__name__)

BASE64_PREFIX = "base64:"


def decode_selection_text(text: str) -> str:
    """Decode text passed as ``base64:<payload>``; anything else is returned as-is."""
    if not text.startswith(BASE64_PREFIX):
        return text
    try:
        return base64.b64decode(text[len(BASE64_PREFIX):], validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise ValueError(f"Invalid base64 selection text: {e}") from e


def compose_user_content(prompt: str, text: str) -> str:
    """The first user turn is the action prompt followed by the selected text."""
    return prompt + text


class ChatService:
    """
    Conversation orchestrator for a single window
    1. Records the user's message
    2. Cancels whatever answer is still streaming for this window
    3. Streams the new answer into the conversation or the note buffer
    """

    class ChatServiceConfig(BaseModel):
        model_config = ConfigDict(arbitrary_types_allowed=True)

        manager: SessionManager
        request_config: ChatRequestConfig
        mode: DispatchMode = DispatchMode.CONVERSATION
        system_prompt: str = ""
        conversation_id: str = Field(default_factory=lambda: uuid.uuid4().hex)

    def __init__(
        self,
        service_config: ChatService.ChatServiceConfig,
        on_update: Callable | None = None,
    ):
        self.manager = service_config.manager
        self.request_config = service_config.request_config
        self.mode = service_config.mode
        self.conversation_id = service_config.conversation_id
        self.conversation = Conversation(service_config.system_prompt)
        self.on_update = on_update
        self.last_sink: ConversationSink | NoteSink | None = None

    async def ask(self, prompt: str, text: str) -> SessionHandle:
        """Send the initial prompt + selection."""
        content = compose_user_content(prompt, decode_selection_text(text))
        return await self.send(content)

    async def send(self, text: str) -> SessionHandle:
        """Send a user turn, replacing any session still running on this window."""
        if not text.strip():
            raise ValueError("Cannot send an empty message")

        # the previous answer must settle before the new user turn lands after it
        await self.manager.cancel(self.conversation_id)

        if self.mode is DispatchMode.NOTE:
            # note capture is single-shot and leaves the history untouched
            messages = [*self.conversation.snapshot(), Message(MessageRole.USER, text)]
        else:
            self.conversation.add_user(text)
            messages = self.conversation.snapshot()

        sink = create_sink(self.mode, self.conversation, self.on_update)
        self.last_sink = sink
        logger.debug(
            "Sending message",
            conversation_id=self.conversation_id,
            mode=self.mode.value,
            message_count=len(messages),
        )
        return await self.manager.start(
            self.conversation_id, messages, self.request_config, sink
        )

    async def close(self) -> None:
        """Cancel the running session, if any (window closed)."""
        await self.manager.cancel(self.conversation_id)
