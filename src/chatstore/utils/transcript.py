"""Pure helpers over session transcripts used by the reducer and the hosting UI."""
from __future__ import annotations

from typing import Literal, Optional, Sequence

from src.chatstore.config import DEFAULT_SESSION_TITLE, TITLE_ELLIPSIS, TITLE_MAX_CHARS
from src.chatstore.models.chat import ChatMessage

Direction = Literal["prev", "next"]


def derive_session_title(messages: Sequence[ChatMessage], max_chars: int = TITLE_MAX_CHARS) -> str:
    """
    Build a session title from the first user message of a transcript.

    The title is the trimmed content cut to ``max_chars`` characters with an
    ellipsis appended when something was cut. Transcripts without a user
    message, or whose first user message is blank, keep the default title.
    """
    first_user = next((message for message in messages if message.type == "user"), None)
    if first_user is None:
        return DEFAULT_SESSION_TITLE

    stripped = first_user.content.strip()
    if not stripped:
        return DEFAULT_SESSION_TITLE

    title = stripped[:max_chars]
    if len(title) < len(stripped):
        return f"{title}{TITLE_ELLIPSIS}"
    return title


def get_displayed_message(message: ChatMessage) -> ChatMessage:
    """Return the variant currently shown for ``message``."""
    if not message.responses:
        return message
    index = message.active_response_index if message.active_response_index is not None else 0
    if 0 <= index < len(message.responses):
        return message.responses[index]
    return message


def cycle_response_index(message: ChatMessage, direction: Direction) -> Optional[int]:
    """
    Compute the neighbouring variant index for previous/next navigation.

    Navigation wraps around at both ends. Returns None when the message has
    fewer than two variants, i.e. there is nothing to switch to.
    """
    if not message.responses or len(message.responses) <= 1:
        return None

    total = len(message.responses)
    current = message.active_response_index if message.active_response_index is not None else 0
    if direction == "prev":
        return current - 1 if current > 0 else total - 1
    if direction == "next":
        return current + 1 if current < total - 1 else 0
    raise ValueError(f"Unknown navigation direction: {direction!r}")


def find_retry_source(messages: Sequence[ChatMessage], message_id: str) -> Optional[ChatMessage]:
    """
    Find the user turn an assistant message answered.

    Retrying only makes sense when the message directly before the target is
    a user message; anything else returns None.
    """
    for index, message in enumerate(messages):
        if message.id != message_id:
            continue
        if index == 0:
            return None
        previous = messages[index - 1]
        return previous if previous.type == "user" else None
    return None


def new_user_message(content: str) -> ChatMessage:
    return ChatMessage(type="user", content=content.strip())


def new_assistant_message(
    content: str,
    *,
    intent: Optional[str] = None,
    confidence: Optional[float] = None,
    error: Optional[str] = None,
    parent_message_id: Optional[str] = None,
) -> ChatMessage:
    """Build an assistant turn, or a retry variant when ``parent_message_id`` is given."""
    return ChatMessage(
        type="assistant",
        content=content,
        intent=intent,
        confidence=confidence,
        error=error,
        parent_message_id=parent_message_id,
    )
