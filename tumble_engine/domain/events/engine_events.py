# tumble_engine/domain/events/engine_events.py
from enum import Enum, auto
from dataclasses import dataclass

from .event_types import DomainEvent


class EngineEventType(Enum):
    """Notifications published by the game engine."""
    STATE_CHANGED = auto()
    SPIN_STARTED = auto()
    SPIN_COMPLETED = auto()
    WIN_DETECTED = auto()
    FREE_SPINS_TRIGGERED = auto()
    BALANCE_UPDATED = auto()


@dataclass
class EngineEvent(DomainEvent):
    """Event raised by one engine instance; payload lives in ``data``."""
    engine_id: str = ""

    def __post_init__(self):
        """Initialize base class and tag the payload with the engine id."""
        super().__post_init__()
        self.data.setdefault("engine_id", self.engine_id)
