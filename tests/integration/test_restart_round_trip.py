"""End-to-end persistence through the SQLite backend across simulated restarts."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import pytest

from src.chatstore.app.chat_store_app import ChatStoreApp
from src.chatstore.models.event_types import CHAT_STATE_PERSISTED
from src.chatstore.utils.transcript import (
    cycle_response_index,
    find_retry_source,
    get_displayed_message,
    new_assistant_message,
    new_user_message,
)
from tests.conftest import RecordingEventBus, assert_invariants


@pytest.fixture
def sqlite_settings(tmp_path: Path) -> Dict[str, Any]:
    return {
        "storage_backend": "sqlite",
        "database_path": str(tmp_path / "chat_state.db"),
        "storage_key": "chat_state",
        "coalesce_saves": True,
        "log_level": "INFO",
    }


def test_conversation_survives_restart(sqlite_settings: Dict[str, Any]) -> None:
    event_bus = RecordingEventBus()
    app = ChatStoreApp(settings=sqlite_settings, event_bus=event_bus)
    store = app.store
    session_id = store.state.active_session_id
    assert session_id is not None

    question = new_user_message("How do I rotate the API keys without downtime for the billing service?")
    answer = new_assistant_message("Rotate one replica at a time.", intent="ops", confidence=0.7)
    store.add_message(session_id, question)
    store.add_message(session_id, answer)

    source = find_retry_source(store.get_session(session_id).messages, answer.id)  # type: ignore[union-attr]
    assert source is not None and source.id == question.id
    for content in ("Use dual keys during the cutover.", "Issue a new key, deploy, then revoke."):
        store.add_response(session_id, answer.id, new_assistant_message(content, parent_message_id=answer.id))

    stored_answer = store.get_session(session_id).find_message(answer.id)  # type: ignore[union-attr]
    previous_index = cycle_response_index(stored_answer, "prev")  # type: ignore[arg-type]
    store.set_active_response(session_id, answer.id, previous_index)  # type: ignore[arg-type]
    second_id = store.create_session(title="Scratchpad")
    store.set_active_session(session_id)
    store.set_model("llama3")
    app.shutdown()

    assert event_bus.of_type(CHAT_STATE_PERSISTED)

    restarted = ChatStoreApp(settings=sqlite_settings)
    try:
        state = restarted.store.state
        assert restarted.restored is True
        assert_invariants(state)
        assert [session.id for session in state.sessions] == [second_id, session_id]
        assert state.active_session_id == session_id
        assert state.current_model == "llama3"

        session = restarted.store.get_active_session()
        assert session is not None
        assert session.title == "How do I rotate the API keys without downtime for ..."
        restored_answer = session.find_message(answer.id)
        assert restored_answer is not None
        assert restored_answer.active_response_index == 0
        assert get_displayed_message(restored_answer).content == "Use dual keys during the cutover."
        assert restored_answer.timestamp == answer.timestamp
    finally:
        restarted.shutdown()
