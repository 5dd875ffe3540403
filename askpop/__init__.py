"""
AskPop: streaming chat-completion client for a selection-driven assistant.
"""

from askpop.chat_service import ChatService
from askpop.llm import ChatRequestConfig, Message, MessageRole, StreamingLLMClient
from askpop.session import SessionHandle, SessionManager, SessionState, StreamSession, start_session
from askpop.sinks import ConversationSink, DispatchMode, DispatchSink, NoteSink, create_sink

__all__ = [
    "ChatRequestConfig",
    "ChatService",
    "ConversationSink",
    "DispatchMode",
    "DispatchSink",
    "Message",
    "MessageRole",
    "NoteSink",
    "SessionHandle",
    "SessionManager",
    "SessionState",
    "StreamSession",
    "StreamingLLMClient",
    "create_sink",
    "start_session",
]
