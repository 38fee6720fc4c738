# tumble_engine/domain/events/event_types.py
from enum import Enum, auto
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict


class EventType(Enum):
    """Event type for events not raised by the engine."""
    GENERIC = auto()


@dataclass
class DomainEvent:
    """
    Base class for events passed through an EventDispatcher.

    ``type`` selects the handlers; ``data`` carries the payload.
    """
    type: Enum
    timestamp: datetime = field(default_factory=datetime.now)
    data: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # handlers may receive an explicit None payload from callers
        if self.data is None:
            self.data = {}

    @property
    def name(self) -> str:
        return self.type.name

    def to_dict(self) -> Dict[str, Any]:
        """Header fields for logs and JSON output; payload values are not serialized."""
        return {
            "type": self.name,
            "timestamp": self.timestamp.isoformat(),
            "data_keys": sorted(self.data),
        }

    def __str__(self) -> str:
        return f"{self.__class__.__name__}({self.name} at {self.timestamp:%H:%M:%S.%f})"
