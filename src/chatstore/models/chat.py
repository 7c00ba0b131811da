from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel

from src.chatstore.config import DEFAULT_SESSION_TITLE
from src.chatstore.utils.time_utils import ensure_aware, utc_now

MessageType = Literal["user", "assistant"]
AiStatus = Literal["unknown", "available", "unavailable"]

AI_STATUSES = ("unknown", "available", "unavailable")


def generate_session_id() -> str:
    return f"chat_{uuid.uuid4().hex}"


def generate_message_id() -> str:
    return uuid.uuid4().hex


class _ChatModel(BaseModel):
    """Immutable base: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ChatMessage(_ChatModel):
    """
    One turn of a session transcript.

    When ``responses`` is non-empty the displayed content of this message is
    ``responses[active_response_index]`` rather than its own fields.

    Attributes:
        id: Identifier unique within the owning session.
        type: Author of the turn, 'user' or 'assistant'.
        content: Text payload. For failed assistant turns it holds the
            user-facing error text.
        timestamp: Creation time.
        intent: Classification label supplied by the AI collaborator.
        confidence: Classification confidence supplied by the AI collaborator.
        error: Set when an assistant turn represents a failure.
        responses: Retried generations of this turn, oldest first.
        active_response_index: Index of the displayed variant in ``responses``.
        parent_message_id: On a variant, the id of the message it retries.
    """

    id: str = Field(default_factory=generate_message_id)
    type: MessageType
    content: str = ""
    timestamp: datetime = Field(default_factory=utc_now)
    intent: Optional[str] = None
    confidence: Optional[float] = None
    error: Optional[str] = None
    responses: Optional[List[ChatMessage]] = None
    active_response_index: Optional[int] = None
    parent_message_id: Optional[str] = None

    @field_validator("timestamp")
    @classmethod
    def _timestamp_is_aware(cls, value: datetime) -> datetime:
        return ensure_aware(value)

    @property
    def has_responses(self) -> bool:
        return bool(self.responses)


class ChatSession(_ChatModel):
    """
    A named conversation thread.

    ``message_count`` is derived from ``messages`` and is written to the
    persisted record for display code that reads it without the transcript.
    """

    id: str = Field(default_factory=generate_session_id)
    title: str = DEFAULT_SESSION_TITLE
    messages: List[ChatMessage] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    summary: Optional[str] = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def _timestamps_are_aware(cls, value: datetime) -> datetime:
        return ensure_aware(value)

    @computed_field(alias="messageCount")  # type: ignore[prop-decorator]
    @property
    def message_count(self) -> int:
        return len(self.messages)

    def find_message(self, message_id: str) -> Optional[ChatMessage]:
        for message in self.messages:
            if message.id == message_id:
                return message
        return None


class ChatState(_ChatModel):
    """
    Snapshot of the whole store.

    ``is_loading`` and ``retrying_message_id`` are transient UI flags and are
    never persisted.
    """

    sessions: List[ChatSession] = Field(default_factory=list)
    active_session_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("activeSessionId", "activeChatId", "active_session_id"),
        serialization_alias="activeSessionId",
    )
    is_loading: bool = False
    retrying_message_id: Optional[str] = None
    ai_status: AiStatus = "unknown"
    current_provider: str = "local"
    current_model: str = ""
    sidebar_collapsed: bool = False

    def find_session(self, session_id: Optional[str]) -> Optional[ChatSession]:
        if session_id is None:
            return None
        for session in self.sessions:
            if session.id == session_id:
                return session
        return None


TRANSIENT_STATE_FIELDS = frozenset({"is_loading", "retrying_message_id"})
