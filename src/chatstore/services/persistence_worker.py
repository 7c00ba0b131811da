from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

from src.chatstore.app.event_bus import EventBus
from src.chatstore.models.action import Action
from src.chatstore.models.chat import ChatState
from src.chatstore.models.event_types import CHAT_STATE_PERSIST_FAILED, CHAT_STATE_PERSISTED
from src.chatstore.models.events import Event
from src.chatstore.services.persistence_adapter import ChatStatePersistenceAdapter
from src.chatstore.store.session_store import SessionStore

logger = logging.getLogger(__name__)


class PersistenceWorker:
    """
    Saves store snapshots on a background thread after every state change.

    Responsibilities:
    - Subscribe to a SessionStore and queue each new state for saving.
    - Write snapshots in order on a single worker thread so callers never block.
    - Optionally coalesce bursts so only the newest pending snapshot is written.
    - Report each outcome over the event bus.
    """

    def __init__(
        self,
        adapter: ChatStatePersistenceAdapter,
        event_bus: Optional[EventBus] = None,
        coalesce: bool = True,
    ) -> None:
        self.adapter = adapter
        self.event_bus = event_bus
        self.coalesce = coalesce
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="chat-state-persist")
        self._lock = threading.Lock()
        self._pending: Optional[ChatState] = None
        self._drain_scheduled = False
        self._closed = False

    # ------------------------------------------------------------------ #
    # Wiring
    # ------------------------------------------------------------------ #

    def attach(self, store: SessionStore) -> Callable[[], None]:
        """Start persisting ``store`` changes; returns the unsubscribe callable."""
        return store.subscribe(self._on_state_changed)

    def _on_state_changed(self, state: ChatState, previous: ChatState, action: Action) -> None:
        self.submit(state)

    # ------------------------------------------------------------------ #
    # Scheduling
    # ------------------------------------------------------------------ #

    def submit(self, state: ChatState) -> None:
        """Queue ``state`` for saving without waiting for the write."""
        with self._lock:
            if self._closed:
                logger.warning("Persistence worker is closed; dropping snapshot")
                return
            if not self.coalesce:
                self._executor.submit(self._save, state)
                return
            self._pending = state
            if self._drain_scheduled:
                return
            self._drain_scheduled = True
            self._executor.submit(self._drain)

    def _drain(self) -> None:
        while True:
            with self._lock:
                state = self._pending
                self._pending = None
                if state is None:
                    self._drain_scheduled = False
                    return
            self._save(state)

    def _save(self, state: ChatState) -> None:
        saved = self.adapter.save(state)
        self._emit_outcome(state, saved)

    def _emit_outcome(self, state: ChatState, saved: bool) -> None:
        if not self.event_bus:
            return
        if saved:
            event = Event(
                event_type=CHAT_STATE_PERSISTED,
                payload={
                    "session_count": len(state.sessions),
                    "active_session_id": state.active_session_id,
                },
            )
        else:
            event = Event(
                event_type=CHAT_STATE_PERSIST_FAILED,
                payload={"session_count": len(state.sessions)},
            )
        try:
            self.event_bus.dispatch(event)
        except Exception:
            logger.debug("Failed to dispatch %s event", event.event_type, exc_info=True)

    # ------------------------------------------------------------------ #
    # Shutdown
    # ------------------------------------------------------------------ #

    def flush(self, timeout: Optional[float] = None) -> None:
        """Block until every snapshot queued so far has been written."""
        with self._lock:
            if self._closed:
                return
            marker = self._executor.submit(lambda: None)
        marker.result(timeout=timeout)

    def close(self) -> None:
        """Write outstanding snapshots and stop the worker thread."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._executor.shutdown(wait=True)
        logger.info("Chat state persistence worker stopped")
