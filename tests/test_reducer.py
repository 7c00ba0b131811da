from __future__ import annotations

from datetime import timedelta
from typing import Any, Callable

import pytest

from src.chatstore.config import DEFAULT_SESSION_TITLE
from src.chatstore.models.action import Action, ActionType
from src.chatstore.models.chat import ChatMessage, ChatSession, ChatState
from src.chatstore.store.reducer import chat_reducer
from tests.conftest import BASE_TIME


def _act(action_type: ActionType, at: int = 0, **params: Any) -> Action:
    return Action(type=action_type, params=params, timestamp=BASE_TIME + timedelta(minutes=at))


def _state_with_sessions(*session_ids: str) -> ChatState:
    state = ChatState()
    for session_id in reversed(session_ids):
        state = chat_reducer(state, _act(ActionType.CREATE_SESSION, session_id=session_id))
    return state


def test_create_session_prepends_and_activates() -> None:
    state = _state_with_sessions("s1")
    state = chat_reducer(state, _act(ActionType.CREATE_SESSION, at=1, session_id="s2"))

    assert [session.id for session in state.sessions] == ["s2", "s1"]
    assert state.active_session_id == "s2"
    created = state.sessions[0]
    assert created.title == DEFAULT_SESSION_TITLE
    assert created.messages == []
    assert created.created_at == created.updated_at == BASE_TIME + timedelta(minutes=1)


def test_create_session_uses_explicit_title() -> None:
    state = chat_reducer(ChatState(), _act(ActionType.CREATE_SESSION, session_id="s1", title="Planning"))
    assert state.sessions[0].title == "Planning"


def test_create_session_refuses_duplicate_id() -> None:
    state = _state_with_sessions("s1")
    assert chat_reducer(state, _act(ActionType.CREATE_SESSION, session_id="s1")) is state


def test_reducer_does_not_mutate_input(message_factory: Callable[..., ChatMessage]) -> None:
    state = _state_with_sessions("s1")
    snapshot = state.model_dump()

    chat_reducer(state, _act(ActionType.ADD_MESSAGE, session_id="s1", message=message_factory()))

    assert state.model_dump() == snapshot
    assert state.sessions[0].messages == []


def test_title_derived_from_first_user_message() -> None:
    content = "Please compare document A with document B in detail"
    state = _state_with_sessions("s1")
    state = chat_reducer(
        state,
        _act(ActionType.ADD_MESSAGE, at=1, session_id="s1", message={"type": "user", "content": content}),
    )

    session = state.sessions[0]
    assert session.title == "Please compare document A with document B in detai..."
    assert session.message_count == 1
    assert session.updated_at == BASE_TIME + timedelta(minutes=1)


def test_short_first_message_is_used_verbatim(message_factory: Callable[..., ChatMessage]) -> None:
    state = _state_with_sessions("s1")
    state = chat_reducer(
        state, _act(ActionType.ADD_MESSAGE, session_id="s1", message=message_factory(content="  Hello there  "))
    )
    assert state.sessions[0].title == "Hello there"


def test_assistant_first_message_keeps_placeholder(message_factory: Callable[..., ChatMessage]) -> None:
    state = _state_with_sessions("s1")
    state = chat_reducer(
        state,
        _act(ActionType.ADD_MESSAGE, session_id="s1", message=message_factory(type="assistant", content="Welcome")),
    )
    assert state.sessions[0].title == DEFAULT_SESSION_TITLE

    state = chat_reducer(
        state, _act(ActionType.ADD_MESSAGE, session_id="s1", message=message_factory(content="What is new?"))
    )
    assert state.sessions[0].title == "What is new?"


def test_title_is_not_rederived_after_it_was_set(message_factory: Callable[..., ChatMessage]) -> None:
    state = _state_with_sessions("s1")
    state = chat_reducer(state, _act(ActionType.UPDATE_SESSION_TITLE, session_id="s1", title="Pinned"))
    state = chat_reducer(state, _act(ActionType.ADD_MESSAGE, session_id="s1", message=message_factory()))

    assert state.sessions[0].title == "Pinned"


def test_add_message_to_unknown_session_is_noop(message_factory: Callable[..., ChatMessage]) -> None:
    state = _state_with_sessions("s1")
    result = chat_reducer(state, _act(ActionType.ADD_MESSAGE, session_id="missing", message=message_factory()))

    assert result is state
    assert result.model_dump() == state.model_dump()


@pytest.mark.parametrize(
    "action",
    [
        _act(ActionType.DELETE_SESSION, session_id="missing"),
        _act(ActionType.UPDATE_SESSION_TITLE, session_id="missing", title="x"),
        _act(ActionType.DELETE_MESSAGE, session_id="s1", message_id="missing"),
        _act(ActionType.CLEAR_SESSION_MESSAGES, session_id="missing"),
        _act(ActionType.SET_ACTIVE_RESPONSE, session_id="s1", message_id="missing", index=0),
        _act(ActionType.SET_AI_STATUS, value="confused"),
    ],
)
def test_unknown_targets_are_noops(action: Action) -> None:
    state = _state_with_sessions("s1")
    assert chat_reducer(state, action) is state


def test_delete_active_session_reassigns_to_first_remaining() -> None:
    state = _state_with_sessions("A", "B", "C")
    state = chat_reducer(state, _act(ActionType.SET_ACTIVE_SESSION, session_id="B"))

    state = chat_reducer(state, _act(ActionType.DELETE_SESSION, session_id="B"))

    assert [session.id for session in state.sessions] == ["A", "C"]
    assert state.active_session_id == "A"


def test_delete_inactive_session_keeps_active() -> None:
    state = _state_with_sessions("A", "B", "C")
    state = chat_reducer(state, _act(ActionType.DELETE_SESSION, session_id="C"))

    assert state.active_session_id == "A"


def test_delete_last_session_clears_active() -> None:
    state = _state_with_sessions("A")
    state = chat_reducer(state, _act(ActionType.DELETE_SESSION, session_id="A"))

    assert state.sessions == []
    assert state.active_session_id is None


def test_clear_all_sessions() -> None:
    state = _state_with_sessions("A", "B")
    state = chat_reducer(state, _act(ActionType.CLEAR_ALL_SESSIONS))

    assert state.sessions == []
    assert state.active_session_id is None


def test_delete_message_and_clear_messages(message_factory: Callable[..., ChatMessage]) -> None:
    first = message_factory(content="First question")
    second = message_factory(type="assistant", content="Answer")
    state = _state_with_sessions("s1")
    for message in (first, second):
        state = chat_reducer(state, _act(ActionType.ADD_MESSAGE, session_id="s1", message=message))

    state = chat_reducer(state, _act(ActionType.DELETE_MESSAGE, at=2, session_id="s1", message_id=first.id))
    session = state.sessions[0]
    assert [message.id for message in session.messages] == [second.id]
    assert session.title == "First question"
    assert session.updated_at == BASE_TIME + timedelta(minutes=2)

    state = chat_reducer(state, _act(ActionType.CLEAR_SESSION_MESSAGES, at=3, session_id="s1"))
    session = state.sessions[0]
    assert session.messages == []
    assert session.message_count == 0
    assert session.title == DEFAULT_SESSION_TITLE


def test_response_branching(message_factory: Callable[..., ChatMessage]) -> None:
    original = message_factory(type="assistant", content="original")
    state = _state_with_sessions("s1")
    state = chat_reducer(state, _act(ActionType.ADD_MESSAGE, session_id="s1", message=original))

    for number in (1, 2, 3):
        variant = message_factory(type="assistant", content=f"r{number}", parent_message_id=original.id)
        state = chat_reducer(
            state,
            _act(ActionType.ADD_RESPONSE, at=number, session_id="s1", message_id=original.id, response=variant),
        )

    message = state.sessions[0].messages[0]
    assert [response.content for response in message.responses or []] == ["r1", "r2", "r3"]
    assert message.active_response_index == 2
    assert message.content == "original"

    state = chat_reducer(
        state, _act(ActionType.SET_ACTIVE_RESPONSE, at=4, session_id="s1", message_id=original.id, index=0)
    )
    message = state.sessions[0].messages[0]
    assert message.active_response_index == 0
    assert len(message.responses or []) == 3
    assert state.sessions[0].updated_at == BASE_TIME + timedelta(minutes=4)


@pytest.mark.parametrize("index", [-1, 3, "1", None, True])
def test_set_active_response_rejects_invalid_index(message_factory: Callable[..., ChatMessage], index: Any) -> None:
    original = message_factory(type="assistant")
    state = _state_with_sessions("s1")
    state = chat_reducer(state, _act(ActionType.ADD_MESSAGE, session_id="s1", message=original))
    for _ in range(3):
        state = chat_reducer(
            state,
            _act(ActionType.ADD_RESPONSE, session_id="s1", message_id=original.id, response=message_factory(type="assistant")),
        )

    action = _act(ActionType.SET_ACTIVE_RESPONSE, session_id="s1", message_id=original.id, index=index)
    assert chat_reducer(state, action) is state


def test_ui_state_passthrough() -> None:
    state = ChatState()
    state = chat_reducer(state, _act(ActionType.SET_LOADING, value=True))
    state = chat_reducer(state, _act(ActionType.SET_RETRYING_MESSAGE, message_id="m1"))
    state = chat_reducer(state, _act(ActionType.SET_AI_STATUS, value="available"))
    state = chat_reducer(state, _act(ActionType.SET_PROVIDER, value="openai"))
    state = chat_reducer(state, _act(ActionType.SET_MODEL, value="gpt-4o"))
    state = chat_reducer(state, _act(ActionType.TOGGLE_SIDEBAR))

    assert state.is_loading is True
    assert state.retrying_message_id == "m1"
    assert state.ai_status == "available"
    assert state.current_provider == "openai"
    assert state.current_model == "gpt-4o"
    assert state.sidebar_collapsed is True

    state = chat_reducer(state, _act(ActionType.SET_SIDEBAR_COLLAPSED, value=False))
    assert state.sidebar_collapsed is False


def test_load_persisted_state_replaces_durable_fields_and_keeps_flags() -> None:
    current = chat_reducer(ChatState(), _act(ActionType.SET_LOADING, value=True))
    session = ChatSession(id="restored", title="From disk")
    persisted = ChatState(sessions=[session], active_session_id="restored", current_model="llama3")

    state = chat_reducer(current, _act(ActionType.LOAD_PERSISTED_STATE, state=persisted))

    assert [s.id for s in state.sessions] == ["restored"]
    assert state.active_session_id == "restored"
    assert state.current_model == "llama3"
    assert state.is_loading is True


def test_same_inputs_give_equal_outputs(message_factory: Callable[..., ChatMessage]) -> None:
    message = message_factory()
    actions = [
        _act(ActionType.CREATE_SESSION, session_id="s1"),
        _act(ActionType.ADD_MESSAGE, at=1, session_id="s1", message=message),
        _act(ActionType.UPDATE_SESSION_TITLE, at=2, session_id="s1", title="Renamed"),
    ]

    def _run() -> ChatState:
        state = ChatState()
        for action in actions:
            state = chat_reducer(state, action)
        return state

    assert _run() == _run()


def test_invariants_hold_across_action_sequence(
    message_factory: Callable[..., ChatMessage],
    check_invariants: Callable[[ChatState], None],
) -> None:
    assistant = message_factory(type="assistant", content="answer")
    actions = [
        _act(ActionType.CREATE_SESSION, session_id="s1"),
        _act(ActionType.ADD_MESSAGE, session_id="s1", message=message_factory(content="question")),
        _act(ActionType.ADD_MESSAGE, session_id="s1", message=assistant),
        _act(ActionType.ADD_RESPONSE, session_id="s1", message_id=assistant.id, response=message_factory(type="assistant")),
        _act(ActionType.ADD_RESPONSE, session_id="s1", message_id=assistant.id, response=message_factory(type="assistant")),
        _act(ActionType.SET_ACTIVE_RESPONSE, session_id="s1", message_id=assistant.id, index=0),
        _act(ActionType.CREATE_SESSION, session_id="s2"),
        _act(ActionType.ADD_MESSAGE, session_id="s2", message=message_factory()),
        _act(ActionType.SET_ACTIVE_SESSION, session_id="s1"),
        _act(ActionType.DELETE_SESSION, session_id="s1"),
        _act(ActionType.DELETE_MESSAGE, session_id="s2", message_id="missing"),
        _act(ActionType.CREATE_SESSION, session_id="s3"),
        _act(ActionType.DELETE_SESSION, session_id="s2"),
        _act(ActionType.DELETE_SESSION, session_id="s3"),
        _act(ActionType.CREATE_SESSION, session_id="s4"),
    ]

    state = ChatState()
    check_invariants(state)
    for action in actions:
        state = chat_reducer(state, action)
        check_invariants(state)

    assert [session.id for session in state.sessions] == ["s4"]
