"""
In-memory conversation history.

Invariants:
- exactly one leading system message
- append-only, except that the content of the most recent message may be
  replaced while it is an assistant message being streamed
"""

from __future__ import annotations

from dataclasses import dataclass

from askpop.llm.exceptions import ErrorKind
from askpop.llm.models import Message, MessageRole


@dataclass(frozen=True)
class ErrorEntry:
    """A failed-session notice, displayed after `after_index` but never sent to the model."""
    kind: ErrorKind
    message: str
    after_index: int


class Conversation:
    """Ordered message history for one conversation window."""

    def __init__(self, system_prompt: str = "") -> None:
        self._messages: list[Message] = [Message(MessageRole.SYSTEM, system_prompt)]
        self._errors: list[ErrorEntry] = []

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def errors(self) -> tuple[ErrorEntry, ...]:
        return tuple(self._errors)

    def snapshot(self) -> list[Message]:
        """Copy of the history, safe to hand to a background session."""
        return list(self._messages)

    def add_user(self, content: str) -> Message:
        message = Message(MessageRole.USER, content)
        self._messages.append(message)
        return message

    def append_assistant(self, content: str) -> Message:
        message = Message(MessageRole.ASSISTANT, content)
        self._messages.append(message)
        return message

    def replace_last_assistant(self, content: str) -> Message:
        """Replace the content of the last message, which must be an assistant one."""
        if len(self._messages) < 2 or self._messages[-1].role is not MessageRole.ASSISTANT:
            raise ValueError("Last message is not an assistant message")
        message = Message(MessageRole.ASSISTANT, content)
        self._messages[-1] = message
        return message

    def add_error(self, kind: ErrorKind, message: str) -> ErrorEntry:
        entry = ErrorEntry(kind=kind, message=message, after_index=len(self._messages) - 1)
        self._errors.append(entry)
        return entry

    def __len__(self) -> int:
        return len(self._messages)
