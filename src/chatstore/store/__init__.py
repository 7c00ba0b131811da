"""Session store: the chat reducer and the command API built on it."""

from .reducer import chat_reducer
from .session_store import SessionStore

__all__ = ["chat_reducer", "SessionStore"]
