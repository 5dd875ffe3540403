"""
Dispatch sinks: the consumers of a session's published text.

Exactly one sink is active per session, chosen from a DispatchMode resolved
before the stream opens:
- ConversationSink appends one assistant message on the first publish and
  edits that same message in place afterwards
- NoteSink replaces a single text buffer on every publish and never touches
  message history
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Protocol

from askpop.history.conversation import Conversation
from askpop.llm.exceptions import ErrorKind


class DispatchMode(Enum):
    """Which consumer a session dispatches to."""
    CONVERSATION = "conversation"
    NOTE = "note"


class DispatchSink(Protocol):
    """Callbacks a StreamSession drives."""

    def on_publish(self, full_text: str, is_first_emission: bool) -> None:
        ...

    def on_error(self, kind: ErrorKind, message: str) -> None:
        ...

    def on_complete(self, final_text: str) -> None:
        ...


class ConversationSink:
    """Streams the answer into the last assistant message of a Conversation."""

    mode = DispatchMode.CONVERSATION

    def __init__(
        self,
        conversation: Conversation,
        on_update: Callable[[Conversation], None] | None = None,
    ) -> None:
        self.conversation = conversation
        self.on_update = on_update
        self._appended = False

    def on_publish(self, full_text: str, is_first_emission: bool) -> None:
        if is_first_emission and not self._appended:
            self.conversation.append_assistant(full_text)
            self._appended = True
        elif self._appended:
            self.conversation.replace_last_assistant(full_text)
        else:
            # a later publish can only follow the first one
            raise RuntimeError("Publish received before the first emission")
        self._notify()

    def on_error(self, kind: ErrorKind, message: str) -> None:
        self.conversation.add_error(kind, message)
        self._notify()

    def on_complete(self, final_text: str) -> None:
        if self._appended:
            self.conversation.replace_last_assistant(final_text)
        elif final_text:
            self.conversation.append_assistant(final_text)
            self._appended = True
        self._notify()

    def _notify(self) -> None:
        if self.on_update is not None:
            self.on_update(self.conversation)


class NoteSink:
    """Keeps a single note buffer holding the latest full answer."""

    mode = DispatchMode.NOTE

    def __init__(self, on_update: Callable[[str], None] | None = None) -> None:
        self.text = ""
        self.error: tuple[ErrorKind, str] | None = None
        self.completed = False
        self.on_update = on_update

    def on_publish(self, full_text: str, is_first_emission: bool) -> None:
        self.text = full_text
        if self.on_update is not None:
            self.on_update(self.text)

    def on_error(self, kind: ErrorKind, message: str) -> None:
        self.error = (kind, message)

    def on_complete(self, final_text: str) -> None:
        self.text = final_text
        self.completed = True
        if self.on_update is not None:
            self.on_update(self.text)


def create_sink(
    mode: DispatchMode,
    conversation: Conversation | None = None,
    on_update: Callable | None = None,
) -> ConversationSink | NoteSink:
    """Build the sink for `mode`; conversation mode requires a Conversation."""
    if mode is DispatchMode.NOTE:
        return NoteSink(on_update=on_update)
    if conversation is None:
        raise ValueError("Conversation mode requires a conversation")
    return ConversationSink(conversation, on_update=on_update)
