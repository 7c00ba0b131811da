from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from src.chatstore.utils.time_utils import utc_now


class ActionType(str, Enum):
    # Session management
    CREATE_SESSION = "create_session"
    SET_ACTIVE_SESSION = "set_active_session"
    DELETE_SESSION = "delete_session"
    UPDATE_SESSION_TITLE = "update_session_title"
    CLEAR_ALL_SESSIONS = "clear_all_sessions"
    # Message management
    ADD_MESSAGE = "add_message"
    DELETE_MESSAGE = "delete_message"
    CLEAR_SESSION_MESSAGES = "clear_session_messages"
    ADD_RESPONSE = "add_response"
    SET_ACTIVE_RESPONSE = "set_active_response"
    # UI state
    SET_LOADING = "set_loading"
    SET_RETRYING_MESSAGE = "set_retrying_message"
    SET_AI_STATUS = "set_ai_status"
    SET_PROVIDER = "set_provider"
    SET_MODEL = "set_model"
    TOGGLE_SIDEBAR = "toggle_sidebar"
    SET_SIDEBAR_COLLAPSED = "set_sidebar_collapsed"
    # Persistence
    LOAD_PERSISTED_STATE = "load_persisted_state"


class Action(BaseModel):
    """Single state transition request handled by the chat reducer.

    Attributes:
        type: Which transition to apply.
        params: Payload for the transition (ids, messages, flags).
        timestamp: Moment the action was issued. The reducer stamps
            ``created_at``/``updated_at`` with it, so replaying an action
            yields the same state.
    """

    type: ActionType
    params: Dict[str, Any] = {}
    timestamp: datetime = Field(default_factory=utc_now)

    def get_param(self, key: str, default: Optional[Any] = None) -> Any:
        return self.params.get(key, default)
