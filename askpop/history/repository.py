from __future__ import annotations

from typing import Protocol

from askpop.llm.models import Message


class HistoryRepository(Protocol):
    """
    Interface for persisting finished assistant answers.
    """

    async def save_message(self, conversation_id: str, message: Message) -> None:
        """
        Store the final assistant message of a session.  Called at most once
        per session, and never for a cancelled one.
        """
        ...
