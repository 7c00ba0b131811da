import logging
from typing import Any, Dict, Optional

from src.chatstore.app.event_bus import EventBus
from src.chatstore.config import STORAGE_KEY
from src.chatstore.models.event_types import CHAT_STATE_RESTORED
from src.chatstore.models.events import Event
from src.chatstore.services.key_value_storage import (
    InMemoryKeyValueStorage,
    KeyValueStorage,
    SqliteKeyValueStorage,
)
from src.chatstore.services.persistence_adapter import ChatStatePersistenceAdapter
from src.chatstore.services.persistence_worker import PersistenceWorker
from src.chatstore.services.store_settings_manager import get_database_path, load_store_settings
from src.chatstore.store.session_store import SessionStore

logger = logging.getLogger(__name__)


def build_storage(settings: Dict[str, Any]) -> KeyValueStorage:
    """
    Create the storage medium selected in ``settings``.

    Args:
        settings: Normalized store settings.

    Returns:
        A ready KeyValueStorage instance.
    """
    if settings.get("storage_backend") == "memory":
        logger.info("Using in-memory chat state storage; nothing will survive a restart.")
        return InMemoryKeyValueStorage()
    return SqliteKeyValueStorage(get_database_path(settings))


class ChatStoreApp:
    """
    Wires the session store to its persistence at startup and tears it down on exit.
    """

    def __init__(
        self,
        settings: Optional[Dict[str, Any]] = None,
        storage: Optional[KeyValueStorage] = None,
        event_bus: Optional[EventBus] = None,
    ):
        """Initializes the ChatStoreApp."""
        logger.info("Initializing ChatStoreApp...")
        self.settings = settings or load_store_settings()
        self.event_bus = event_bus or EventBus()
        self.storage = storage or build_storage(self.settings)
        self.persistence = ChatStatePersistenceAdapter(self.storage, key=self.settings.get("storage_key") or STORAGE_KEY)
        self.store = SessionStore(event_bus=self.event_bus)
        self.persistence_worker = PersistenceWorker(
            self.persistence,
            event_bus=self.event_bus,
            coalesce=bool(self.settings.get("coalesce_saves", True)),
        )
        self._detach_worker = self.persistence_worker.attach(self.store)
        self._shut_down = False

        persisted = self.persistence.load()
        self.restored = self.store.initialize(persisted)
        self.event_bus.dispatch(
            Event(
                event_type=CHAT_STATE_RESTORED,
                payload={
                    "restored": self.restored,
                    "session_count": len(self.store.state.sessions),
                },
            )
        )

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """
        Stop persisting, write the latest state and release the storage.

        Args:
            timeout: Upper bound in seconds to wait for pending writes.
        """
        if self._shut_down:
            return
        self._shut_down = True
        self._detach_worker()
        try:
            self.persistence_worker.flush(timeout=timeout)
        except Exception as exc:
            logger.error("Pending chat state writes did not finish: %s", exc, exc_info=True)
        self.persistence_worker.close()
        self.storage.close()
        logger.info("ChatStoreApp shut down.")
