"""
The chat reducer: ``(state, action) -> state``.

Every handler is pure. Unknown session or message ids leave the state
untouched and the very same object is returned, so callers can detect a no-op
with an identity check.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from src.chatstore.config import DEFAULT_SESSION_TITLE
from src.chatstore.models.action import Action, ActionType
from src.chatstore.models.chat import AI_STATUSES, ChatMessage, ChatSession, ChatState
from src.chatstore.utils.transcript import derive_session_title

logger = logging.getLogger(__name__)

Handler = Callable[[ChatState, Action], ChatState]


def chat_reducer(state: ChatState, action: Action) -> ChatState:
    """Apply ``action`` to ``state`` and return the resulting state."""
    handler = _HANDLERS.get(action.type)
    if handler is None:
        logger.warning("No reducer handler registered for action '%s'", action.type)
        return state
    return handler(state, action)


# --------------------------------------------------------------------- #
# Helpers
# --------------------------------------------------------------------- #

def _coerce_message(value: Any) -> ChatMessage:
    if isinstance(value, ChatMessage):
        return value
    return ChatMessage.model_validate(value)


def _replace_session(
    state: ChatState,
    session_id: Optional[str],
    update: Callable[[ChatSession], Optional[ChatSession]],
) -> ChatState:
    """
    Rebuild ``state.sessions`` with the matching session passed through ``update``.

    ``update`` returns None to signal a no-op, in which case ``state`` itself
    is returned.
    """
    for index, session in enumerate(state.sessions):
        if session.id != session_id:
            continue
        updated = update(session)
        if updated is None:
            return state
        sessions = list(state.sessions)
        sessions[index] = updated
        return state.model_copy(update={"sessions": sessions})

    logger.debug("Session '%s' not found; ignoring action", session_id)
    return state


def _replace_message(
    session: ChatSession,
    message_id: Optional[str],
    update: Callable[[ChatMessage], Optional[ChatMessage]],
) -> Optional[List[ChatMessage]]:
    for index, message in enumerate(session.messages):
        if message.id != message_id:
            continue
        updated = update(message)
        if updated is None:
            return None
        messages = list(session.messages)
        messages[index] = updated
        return messages

    logger.debug("Message '%s' not found in session '%s'; ignoring action", message_id, session.id)
    return None


# --------------------------------------------------------------------- #
# Session management
# --------------------------------------------------------------------- #

def _create_session(state: ChatState, action: Action) -> ChatState:
    session_id = action.get_param("session_id")
    if session_id and state.find_session(session_id) is not None:
        logger.warning("Session id '%s' already exists; refusing to create a duplicate", session_id)
        return state

    title = action.get_param("title") or DEFAULT_SESSION_TITLE
    fields: Dict[str, Any] = {
        "title": title,
        "created_at": action.timestamp,
        "updated_at": action.timestamp,
    }
    if session_id:
        fields["id"] = session_id
    session = ChatSession(**fields)
    return state.model_copy(
        update={
            "sessions": [session, *state.sessions],
            "active_session_id": session.id,
        }
    )


def _set_active_session(state: ChatState, action: Action) -> ChatState:
    return state.model_copy(update={"active_session_id": action.get_param("session_id")})


def _delete_session(state: ChatState, action: Action) -> ChatState:
    session_id = action.get_param("session_id")
    sessions = [session for session in state.sessions if session.id != session_id]
    if len(sessions) == len(state.sessions):
        logger.debug("Session '%s' not found; nothing to delete", session_id)
        return state

    active_session_id = state.active_session_id
    if active_session_id == session_id:
        active_session_id = sessions[0].id if sessions else None

    return state.model_copy(update={"sessions": sessions, "active_session_id": active_session_id})


def _update_session_title(state: ChatState, action: Action) -> ChatState:
    title = action.get_param("title", "")

    def _update(session: ChatSession) -> ChatSession:
        return session.model_copy(update={"title": title, "updated_at": action.timestamp})

    return _replace_session(state, action.get_param("session_id"), _update)


def _clear_all_sessions(state: ChatState, action: Action) -> ChatState:
    return state.model_copy(update={"sessions": [], "active_session_id": None})


# --------------------------------------------------------------------- #
# Message management
# --------------------------------------------------------------------- #

def _add_message(state: ChatState, action: Action) -> ChatState:
    message = _coerce_message(action.get_param("message"))

    def _update(session: ChatSession) -> ChatSession:
        messages = [*session.messages, message]
        title = session.title
        if title == DEFAULT_SESSION_TITLE:
            title = derive_session_title(messages)
        return session.model_copy(
            update={"messages": messages, "title": title, "updated_at": action.timestamp}
        )

    return _replace_session(state, action.get_param("session_id"), _update)


def _delete_message(state: ChatState, action: Action) -> ChatState:
    message_id = action.get_param("message_id")

    def _update(session: ChatSession) -> Optional[ChatSession]:
        messages = [message for message in session.messages if message.id != message_id]
        if len(messages) == len(session.messages):
            logger.debug("Message '%s' not found in session '%s'", message_id, session.id)
            return None
        return session.model_copy(update={"messages": messages, "updated_at": action.timestamp})

    return _replace_session(state, action.get_param("session_id"), _update)


def _clear_session_messages(state: ChatState, action: Action) -> ChatState:
    def _update(session: ChatSession) -> ChatSession:
        return session.model_copy(
            update={
                "messages": [],
                "title": DEFAULT_SESSION_TITLE,
                "updated_at": action.timestamp,
            }
        )

    return _replace_session(state, action.get_param("session_id"), _update)


def _add_response(state: ChatState, action: Action) -> ChatState:
    response = _coerce_message(action.get_param("response"))

    def _update_message(message: ChatMessage) -> ChatMessage:
        responses = [*(message.responses or []), response]
        return message.model_copy(
            update={"responses": responses, "active_response_index": len(responses) - 1}
        )

    def _update(session: ChatSession) -> Optional[ChatSession]:
        messages = _replace_message(session, action.get_param("message_id"), _update_message)
        if messages is None:
            return None
        return session.model_copy(update={"messages": messages, "updated_at": action.timestamp})

    return _replace_session(state, action.get_param("session_id"), _update)


def _set_active_response(state: ChatState, action: Action) -> ChatState:
    index = action.get_param("index")

    def _update_message(message: ChatMessage) -> Optional[ChatMessage]:
        responses = message.responses or []
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(responses):
            logger.debug(
                "Response index %r out of range for message '%s' (%d variants)",
                index,
                message.id,
                len(responses),
            )
            return None
        return message.model_copy(update={"active_response_index": index})

    def _update(session: ChatSession) -> Optional[ChatSession]:
        messages = _replace_message(session, action.get_param("message_id"), _update_message)
        if messages is None:
            return None
        return session.model_copy(update={"messages": messages, "updated_at": action.timestamp})

    return _replace_session(state, action.get_param("session_id"), _update)


# --------------------------------------------------------------------- #
# UI state passthrough
# --------------------------------------------------------------------- #

def _set_loading(state: ChatState, action: Action) -> ChatState:
    return state.model_copy(update={"is_loading": bool(action.get_param("value"))})


def _set_retrying_message(state: ChatState, action: Action) -> ChatState:
    return state.model_copy(update={"retrying_message_id": action.get_param("message_id")})


def _set_ai_status(state: ChatState, action: Action) -> ChatState:
    status = action.get_param("value")
    if status not in AI_STATUSES:
        logger.warning("Ignoring unknown AI status %r", status)
        return state
    return state.model_copy(update={"ai_status": status})


def _set_provider(state: ChatState, action: Action) -> ChatState:
    return state.model_copy(update={"current_provider": str(action.get_param("value", ""))})


def _set_model(state: ChatState, action: Action) -> ChatState:
    return state.model_copy(update={"current_model": str(action.get_param("value", ""))})


def _toggle_sidebar(state: ChatState, action: Action) -> ChatState:
    return state.model_copy(update={"sidebar_collapsed": not state.sidebar_collapsed})


def _set_sidebar_collapsed(state: ChatState, action: Action) -> ChatState:
    return state.model_copy(update={"sidebar_collapsed": bool(action.get_param("value"))})


# --------------------------------------------------------------------- #
# Persistence
# --------------------------------------------------------------------- #

def _load_persisted_state(state: ChatState, action: Action) -> ChatState:
    persisted = action.get_param("state")
    if persisted is None:
        return state
    if not isinstance(persisted, ChatState):
        persisted = ChatState.model_validate(persisted)
    return persisted.model_copy(
        update={
            "is_loading": state.is_loading,
            "retrying_message_id": state.retrying_message_id,
        }
    )


_HANDLERS: Dict[ActionType, Handler] = {
    ActionType.CREATE_SESSION: _create_session,
    ActionType.SET_ACTIVE_SESSION: _set_active_session,
    ActionType.DELETE_SESSION: _delete_session,
    ActionType.UPDATE_SESSION_TITLE: _update_session_title,
    ActionType.CLEAR_ALL_SESSIONS: _clear_all_sessions,
    ActionType.ADD_MESSAGE: _add_message,
    ActionType.DELETE_MESSAGE: _delete_message,
    ActionType.CLEAR_SESSION_MESSAGES: _clear_session_messages,
    ActionType.ADD_RESPONSE: _add_response,
    ActionType.SET_ACTIVE_RESPONSE: _set_active_response,
    ActionType.SET_LOADING: _set_loading,
    ActionType.SET_RETRYING_MESSAGE: _set_retrying_message,
    ActionType.SET_AI_STATUS: _set_ai_status,
    ActionType.SET_PROVIDER: _set_provider,
    ActionType.SET_MODEL: _set_model,
    ActionType.TOGGLE_SIDEBAR: _toggle_sidebar,
    ActionType.SET_SIDEBAR_COLLAPSED: _set_sidebar_collapsed,
    ActionType.LOAD_PERSISTED_STATE: _load_persisted_state,
}
