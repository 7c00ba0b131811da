"""
Event Type Constants

Centralized definitions for all event types used on the chat store's event bus.
"""

STORE_STATE_CHANGED = "STORE_STATE_CHANGED"
"""
Dispatched after an action changed the store state.

Payload:
    action (str): ActionType value that produced the change
    active_session_id (str|None): Active session after the change
    session_count (int): Number of sessions after the change
    total_messages (int): Sum of message counts over all sessions
"""

CHAT_STATE_RESTORED = "CHAT_STATE_RESTORED"
"""
Dispatched once at startup after the store has been initialized.

Payload:
    restored (bool): True when prior state was loaded, False on bootstrap
    session_count (int): Number of sessions in the initial state
"""

CHAT_STATE_PERSISTED = "CHAT_STATE_PERSISTED"
"""
Dispatched after a snapshot was written to storage.

Payload:
    session_count (int): Number of sessions in the written snapshot
    active_session_id (str|None): Active session in the written snapshot
"""

CHAT_STATE_PERSIST_FAILED = "CHAT_STATE_PERSIST_FAILED"
"""
Dispatched when writing a snapshot failed. The failure has already been logged.

Payload:
    session_count (int): Number of sessions in the snapshot that was not written
"""
