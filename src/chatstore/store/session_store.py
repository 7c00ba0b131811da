import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from src.chatstore.app.event_bus import EventBus
from src.chatstore.models.action import Action, ActionType
from src.chatstore.models.chat import ChatMessage, ChatSession, ChatState, generate_session_id
from src.chatstore.models.event_types import STORE_STATE_CHANGED
from src.chatstore.models.events import Event
from src.chatstore.store.reducer import chat_reducer

logger = logging.getLogger(__name__)

StateListener = Callable[[ChatState, ChatState, Action], None]


class SessionStore:
    """
    Owns the chat state and funnels every mutation through ``chat_reducer``.

    The store is an explicit object handed to its consumers. Commands return
    immediately; listeners registered with ``subscribe`` are told about each
    state change after it has been applied.
    """

    def __init__(self, initial_state: Optional[ChatState] = None, event_bus: Optional[EventBus] = None):
        """Initializes the SessionStore."""
        self.event_bus = event_bus
        self._state = initial_state or ChatState()
        self._lock = threading.RLock()
        self._listeners: List[StateListener] = []

    @property
    def state(self) -> ChatState:
        """Current read-only snapshot."""
        return self._state

    # ------------------------------------------------------------------ #
    # Dispatch & subscription
    # ------------------------------------------------------------------ #

    def dispatch(self, action: Action) -> ChatState:
        """
        Apply one action and notify listeners if the state changed.

        Args:
            action: The transition to apply.

        Returns:
            The state after the action. It is the previous object unchanged
            when the action was a no-op.
        """
        with self._lock:
            previous = self._state
            new_state = chat_reducer(previous, action)
            self._state = new_state
            # Listeners see changes in the order they were applied.
            if new_state is not previous:
                self._notify(new_state, previous, action)
        return new_state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """
        Register ``listener(state, previous, action)`` for state changes.

        Returns:
            A callable that removes the listener again.
        """
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, state: ChatState, previous: ChatState, action: Action) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(state, previous, action)
            except Exception:
                logger.error("State listener %r failed for action '%s'", listener, action.type.value, exc_info=True)
        self._emit_state_changed(state, action)

    def _emit_state_changed(self, state: ChatState, action: Action) -> None:
        if not self.event_bus:
            return
        payload: Dict[str, Any] = {
            "action": action.type.value,
            "active_session_id": state.active_session_id,
            "session_count": len(state.sessions),
            "total_messages": sum(session.message_count for session in state.sessions),
        }
        try:
            self.event_bus.dispatch(Event(event_type=STORE_STATE_CHANGED, payload=payload))
        except Exception:
            logger.debug("Failed to dispatch STORE_STATE_CHANGED event", exc_info=True)

    def _apply(self, action_type: ActionType, **params: Any) -> ChatState:
        return self.dispatch(Action(type=action_type, params=params))

    # ------------------------------------------------------------------ #
    # Bootstrap
    # ------------------------------------------------------------------ #

    def initialize(self, persisted: Optional[ChatState]) -> bool:
        """
        Seed the store at application start.

        Loads ``persisted`` when given, then creates a single empty session
        if the store holds none.

        Returns:
            True when prior state was restored.
        """
        restored = persisted is not None
        if persisted is not None:
            self.load_persisted_state(persisted)
            logger.info("Restored %d chat session(s)", len(persisted.sessions))

        if not self._state.sessions:
            session_id = self.create_session()
            logger.info("No prior chat sessions; started with empty session %s", session_id)
        return restored

    # ------------------------------------------------------------------ #
    # Session commands
    # ------------------------------------------------------------------ #

    def create_session(self, title: Optional[str] = None) -> str:
        """
        Create a session, put it first in the list and make it active.

        Args:
            title: Optional explicit title; defaults to the placeholder title.

        Returns:
            The id of the new session.
        """
        session_id = generate_session_id()
        self._apply(ActionType.CREATE_SESSION, session_id=session_id, title=title)
        return session_id

    def set_active_session(self, session_id: str) -> None:
        self._apply(ActionType.SET_ACTIVE_SESSION, session_id=session_id)

    def delete_session(self, session_id: str) -> None:
        self._apply(ActionType.DELETE_SESSION, session_id=session_id)

    def update_session_title(self, session_id: str, title: str) -> None:
        self._apply(ActionType.UPDATE_SESSION_TITLE, session_id=session_id, title=title)

    def clear_all_sessions(self) -> None:
        self._apply(ActionType.CLEAR_ALL_SESSIONS)

    # ------------------------------------------------------------------ #
    # Message commands
    # ------------------------------------------------------------------ #

    def add_message(self, session_id: str, message: ChatMessage) -> None:
        self._apply(ActionType.ADD_MESSAGE, session_id=session_id, message=message)

    def delete_message(self, session_id: str, message_id: str) -> None:
        self._apply(ActionType.DELETE_MESSAGE, session_id=session_id, message_id=message_id)

    def clear_session_messages(self, session_id: str) -> None:
        self._apply(ActionType.CLEAR_SESSION_MESSAGES, session_id=session_id)

    def add_response(self, session_id: str, message_id: str, response: ChatMessage) -> None:
        """
        Attach a retried generation to an assistant message and display it.

        Args:
            session_id: Session holding the message.
            message_id: Message being retried.
            response: The new variant.
        """
        self._apply(ActionType.ADD_RESPONSE, session_id=session_id, message_id=message_id, response=response)

    def set_active_response(self, session_id: str, message_id: str, index: int) -> None:
        self._apply(ActionType.SET_ACTIVE_RESPONSE, session_id=session_id, message_id=message_id, index=index)

    # ------------------------------------------------------------------ #
    # UI state commands
    # ------------------------------------------------------------------ #

    def set_loading(self, value: bool) -> None:
        self._apply(ActionType.SET_LOADING, value=value)

    def set_retrying_message(self, message_id: Optional[str]) -> None:
        self._apply(ActionType.SET_RETRYING_MESSAGE, message_id=message_id)

    def set_ai_status(self, status: str) -> None:
        self._apply(ActionType.SET_AI_STATUS, value=status)

    def set_provider(self, provider: str) -> None:
        self._apply(ActionType.SET_PROVIDER, value=provider)

    def set_model(self, model: str) -> None:
        self._apply(ActionType.SET_MODEL, value=model)

    def toggle_sidebar(self) -> None:
        self._apply(ActionType.TOGGLE_SIDEBAR)

    def set_sidebar_collapsed(self, collapsed: bool) -> None:
        self._apply(ActionType.SET_SIDEBAR_COLLAPSED, value=collapsed)

    def load_persisted_state(self, state: ChatState) -> None:
        self._apply(ActionType.LOAD_PERSISTED_STATE, state=state)

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def get_active_session(self) -> Optional[ChatSession]:
        """
        Retrieves the currently active session object.

        Returns:
            The active ChatSession, or None if no session matches the active id.
        """
        return self._state.find_session(self._state.active_session_id)

    def get_session(self, session_id: str) -> Optional[ChatSession]:
        return self._state.find_session(session_id)

    def get_total_message_count(self) -> int:
        return sum(session.message_count for session in self._state.sessions)
