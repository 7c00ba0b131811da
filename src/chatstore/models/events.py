from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from src.chatstore.utils.time_utils import utc_now


class Event(BaseModel):
    """
    Notification published on the EventBus by the store, the persistence
    worker and the application wiring.

    Attributes:
        event_type (str): One of the constants in ``event_types`` (e.g., "STORE_STATE_CHANGED").
        payload (Dict[str, Any]): Event-specific data, documented next to each constant.
        occurred_at (datetime): When the event was created.
    """
    event_type: str
    payload: Dict[str, Any] = {}
    occurred_at: datetime = Field(default_factory=utc_now)

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        return self.payload.get(key, default)
