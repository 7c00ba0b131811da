"""
Serialization of the chat store to a single key of a key/value medium.

The persisted record is the JSON form of ``ChatState`` without its transient
flags. Timestamps travel as ISO 8601 text and are turned back into aware
datetimes on load; that conversion walks every session, message and nested
response variant.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from src.chatstore.config import STORAGE_KEY
from src.chatstore.models.chat import TRANSIENT_STATE_FIELDS, ChatState
from src.chatstore.services.key_value_storage import KeyValueStorage
from src.chatstore.utils.time_utils import parse_timestamp

logger = logging.getLogger(__name__)

_SESSION_TIMESTAMP_KEYS = ("createdAt", "updatedAt", "created_at", "updated_at")
_MESSAGE_TIMESTAMP_KEYS = ("timestamp",)
_ACTIVE_SESSION_KEYS = ("activeSessionId", "activeChatId", "active_session_id")
_TRANSIENT_KEYS = frozenset(TRANSIENT_STATE_FIELDS) | {to_camel(name) for name in TRANSIENT_STATE_FIELDS}


class PersistedStateError(ValueError):
    """Raised when a persisted record cannot be turned back into a ChatState."""


class ChatStatePersistenceAdapter:
    """
    Saves and restores the chat store state under one well-known key.

    Neither ``save`` nor ``load`` raises: failures are logged and reported as
    ``False`` / ``None`` so the application always reaches a usable state.
    """

    def __init__(self, storage: KeyValueStorage, key: str = STORAGE_KEY) -> None:
        self.storage = storage
        self.key = key

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def save(self, state: ChatState) -> bool:
        """
        Persist ``state`` without its transient flags.

        Returns:
            True when the value was handed to the storage medium.
        """
        try:
            payload = self.serialize(state)
            self.storage.set(self.key, payload)
        except Exception as exc:  # Broad except keeps persistence best-effort
            logger.error("Failed to persist chat state under '%s': %s", self.key, exc, exc_info=True)
            return False
        logger.debug("Persisted chat state (%d sessions, %d bytes)", len(state.sessions), len(payload))
        return True

    def load(self) -> Optional[ChatState]:
        """
        Read and rehydrate the persisted state.

        Returns:
            The restored state, or None when nothing was stored or the stored
            record is unreadable.
        """
        try:
            raw = self.storage.get(self.key)
        except Exception as exc:
            logger.error("Failed to read persisted chat state '%s': %s", self.key, exc, exc_info=True)
            return None

        if raw is None:
            logger.info("No persisted chat state found under '%s'", self.key)
            return None

        try:
            state = self.deserialize(raw)
        except (PersistedStateError, ValidationError, RecursionError) as exc:
            logger.error("Discarding corrupted chat state under '%s': %s", self.key, exc)
            return None
        except Exception as exc:  # Broad except keeps startup on the bootstrap path
            logger.error("Discarding unreadable chat state under '%s': %s", self.key, exc, exc_info=True)
            return None

        logger.info("Loaded persisted chat state with %d session(s)", len(state.sessions))
        return state

    def clear(self) -> None:
        try:
            self.storage.delete(self.key)
        except Exception as exc:
            logger.error("Failed to clear persisted chat state '%s': %s", self.key, exc, exc_info=True)

    # ------------------------------------------------------------------ #
    # Encoding
    # ------------------------------------------------------------------ #

    @staticmethod
    def serialize(state: ChatState) -> str:
        return state.model_dump_json(by_alias=True, exclude=set(TRANSIENT_STATE_FIELDS))

    def deserialize(self, raw: str) -> ChatState:
        """
        Parse a persisted record into a ChatState.

        Raises:
            PersistedStateError: If the text is not a JSON object or holds
                timestamps that cannot be parsed.
            ValidationError: If the record does not match the data model.
        """
        try:
            data = json.loads(raw)
        except (TypeError, json.JSONDecodeError, RecursionError) as exc:
            raise PersistedStateError(f"Invalid JSON in persisted chat state: {exc}") from exc

        if not isinstance(data, dict):
            raise PersistedStateError("Persisted chat state is not a JSON object")

        rehydrated = self._rehydrate_state(data)
        return self._repair_active_session(ChatState.model_validate(rehydrated))

    # ------------------------------------------------------------------ #
    # Rehydration
    # ------------------------------------------------------------------ #

    def _rehydrate_state(self, data: Dict[str, Any]) -> Dict[str, Any]:
        state = {key: value for key, value in data.items() if key not in _TRANSIENT_KEYS}

        raw_sessions = state.get("sessions") or []
        if not isinstance(raw_sessions, list):
            raise PersistedStateError("'sessions' must be a list")

        sessions: List[Dict[str, Any]] = []
        seen_ids = set()
        for raw_session in raw_sessions:
            session = self._rehydrate_session(raw_session)
            session_id = session.get("id")
            if session_id is None:
                sessions.append(session)
                continue
            if session_id in seen_ids:
                logger.warning("Dropping duplicate persisted session %s", session_id)
                continue
            seen_ids.add(session_id)
            sessions.append(session)
        state["sessions"] = sessions

        for key in _ACTIVE_SESSION_KEYS:
            active_id = state.get(key)
            if active_id is not None and not isinstance(active_id, str):
                logger.warning("Ignoring non-string persisted active session id %r", active_id)
                state[key] = None
        return state

    @staticmethod
    def _repair_active_session(state: ChatState) -> ChatState:
        if state.find_session(state.active_session_id) is not None:
            return state
        replacement = state.sessions[0].id if state.sessions else None
        if state.active_session_id is not None or replacement is not None:
            logger.warning(
                "Active session %s no longer exists; using %s", state.active_session_id, replacement
            )
        return state.model_copy(update={"active_session_id": replacement})

    def _rehydrate_session(self, raw: Any) -> Dict[str, Any]:
        if not isinstance(raw, dict):
            raise PersistedStateError("Persisted session is not an object")
        session = dict(raw)
        if session.get("id") is None:
            session.pop("id", None)
        elif not isinstance(session["id"], str):
            raise PersistedStateError(f"Persisted session id must be a string, got {session['id']!r}")
        session.pop("messageCount", None)
        session.pop("message_count", None)
        session.pop("isActive", None)
        for key in _SESSION_TIMESTAMP_KEYS:
            if key in session:
                session[key] = self._parse(session[key], key)

        messages = session.get("messages") or []
        if not isinstance(messages, list):
            raise PersistedStateError("'messages' must be a list")
        session["messages"] = [self._rehydrate_message(message) for message in messages]
        return session

    def _rehydrate_message(self, raw: Any) -> Dict[str, Any]:
        if not isinstance(raw, dict):
            raise PersistedStateError("Persisted message is not an object")
        message = dict(raw)
        for key in _MESSAGE_TIMESTAMP_KEYS:
            if key in message:
                message[key] = self._parse(message[key], key)

        responses = message.get("responses")
        if responses is None:
            return message
        if not isinstance(responses, list):
            raise PersistedStateError("'responses' must be a list")
        message["responses"] = [self._rehydrate_message(response) for response in responses]

        index_key = "activeResponseIndex" if "activeResponseIndex" in message else "active_response_index"
        index = message.get(index_key)
        if responses and (not isinstance(index, int) or not 0 <= index < len(responses)):
            logger.warning(
                "Clamping invalid active response index %r for message %s", index, message.get("id")
            )
            message[index_key] = len(responses) - 1
        return message

    @staticmethod
    def _parse(value: Any, field_name: str) -> Any:
        try:
            return parse_timestamp(value)
        except ValueError as exc:
            raise PersistedStateError(f"Invalid '{field_name}' value: {exc}") from exc
