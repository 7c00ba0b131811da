from __future__ import annotations

from datetime import datetime, timedelta, timezone
from itertools import count
from typing import Callable, Dict, List

import pytest

from src.chatstore.models.chat import ChatMessage, ChatState
from src.chatstore.models.events import Event
from src.chatstore.services.key_value_storage import InMemoryKeyValueStorage
from src.chatstore.services.persistence_adapter import ChatStatePersistenceAdapter
from src.chatstore.store.session_store import SessionStore

BASE_TIME = datetime(2026, 10, 18, 9, 30, tzinfo=timezone.utc)


class RecordingEventBus:
    """Synchronous in-memory event bus used by tests."""

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[Callable[[Event], None]]] = {}
        self.dispatched: List[Event] = []

    def subscribe(self, event_type: str, callback: Callable[[Event], None]) -> None:
        self._subscribers.setdefault(event_type, []).append(callback)

    def dispatch(self, event: Event) -> None:
        self.dispatched.append(event)
        for callback in self._subscribers.get(event.event_type, []):
            callback(event)

    def of_type(self, event_type: str) -> List[Event]:
        return [event for event in self.dispatched if event.event_type == event_type]


_message_counter = count(1)


@pytest.fixture
def message_factory() -> Callable[..., ChatMessage]:
    """Factory fixture that produces ChatMessage instances with distinct ids and timestamps."""

    def _factory(**overrides: object) -> ChatMessage:
        suffix = next(_message_counter)
        defaults: Dict[str, object] = {
            "id": f"msg-{suffix}",
            "type": "user",
            "content": f"Message {suffix}",
            "timestamp": BASE_TIME + timedelta(seconds=suffix),
        }
        defaults.update(overrides)
        return ChatMessage(**defaults)

    return _factory


@pytest.fixture
def event_bus() -> RecordingEventBus:
    return RecordingEventBus()


@pytest.fixture
def store(event_bus: RecordingEventBus) -> SessionStore:
    return SessionStore(event_bus=event_bus)


@pytest.fixture
def storage() -> InMemoryKeyValueStorage:
    return InMemoryKeyValueStorage()


@pytest.fixture
def adapter(storage: InMemoryKeyValueStorage) -> ChatStatePersistenceAdapter:
    return ChatStatePersistenceAdapter(storage)


def assert_invariants(state: ChatState) -> None:
    """Check the structural invariants every reachable state must satisfy."""
    ids = [session.id for session in state.sessions]
    assert len(ids) == len(set(ids))
    if state.active_session_id is None:
        assert not state.sessions
    else:
        assert state.active_session_id in ids
    for session in state.sessions:
        assert session.message_count == len(session.messages)
        for message in session.messages:
            if message.responses:
                assert message.active_response_index is not None
                assert 0 <= message.active_response_index < len(message.responses)


@pytest.fixture
def check_invariants() -> Callable[[ChatState], None]:
    return assert_invariants
