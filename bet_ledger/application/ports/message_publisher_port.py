"""Message publisher port (interface)"""
from abc import ABC, abstractmethod
from typing import Dict, Any


class MessagePublisherPort(ABC):
    """Port for publishing bet lifecycle events (fire-and-forget)"""

    @abstractmethod
    def publish_event(self, event_type: str, payload: Dict[str, Any]) -> None:
        """Publish an event such as bet.created; must not raise"""
        pass
