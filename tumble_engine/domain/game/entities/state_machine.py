# tumble_engine/domain/game/entities/state_machine.py
import logging
import time
from collections import deque
from dataclasses import asdict, dataclass, fields, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

DEFAULT_HISTORY_SIZE = 500


class GameState(str, Enum):
    IDLE = "idle"
    SPINNING = "spinning"
    EVALUATING = "evaluating"
    TUMBLING = "tumbling"
    SHOWING_WIN = "showing_win"
    FREE_SPINS_TRIGGER = "free_spins_trigger"
    FREE_SPINS = "free_spins"
    GAME_OVER = "game_over"


class GameEvent(str, Enum):
    SPIN = "spin"
    SPIN_COMPLETE = "spin_complete"
    EVALUATION_COMPLETE = "evaluation_complete"  # reserved for host integration
    WIN_DETECTED = "win_detected"
    NO_WIN = "no_win"
    TUMBLE_COMPLETE = "tumble_complete"
    WIN_ANIMATION_COMPLETE = "win_animation_complete"
    FREE_SPINS_TRIGGERED = "free_spins_triggered"
    FREE_SPINS_COMPLETE = "free_spins_complete"
    BALANCE_INSUFFICIENT = "balance_insufficient"  # reserved for host integration
    RESET = "reset"


@dataclass
class GameStateData:
    """
    Balance, bet and counters mutated by state transitions.

    The state machine owns the only live instance; everyone else gets copies.
    """
    balance: float = 1000.0
    bet: float = 1.0
    total_win: float = 0.0
    cascade_count: int = 0
    free_spins_remaining: int = 0
    is_in_free_spins: bool = False
    multiplier: int = 1
    last_win_amount: float = 0.0
    auto_spin_count: int = 0
    max_auto_spins: int = 0
    stop_on_win: bool = False
    stop_on_loss: bool = False
    win_threshold: float = 0.0
    loss_threshold: float = 0.0

    def copy(self) -> "GameStateData":
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


FIELD_NAMES = frozenset(f.name for f in fields(GameStateData))

Condition = Callable[[GameStateData], bool]
Action = Callable[[GameStateData], None]
StateChangeListener = Callable[[GameState, GameState, GameEvent, GameStateData], None]


@dataclass(frozen=True)
class StateTransition:
    from_state: GameState
    event: GameEvent
    to_state: GameState
    condition: Optional[Condition] = None
    action: Optional[Action] = None


# --- transition actions -----------------------------------------------------

def _start_paid_spin(data: GameStateData) -> None:
    data.balance -= data.bet
    data.cascade_count = 0
    data.total_win = 0.0
    data.multiplier = 1


def _count_cascade(data: GameStateData) -> None:
    data.cascade_count += 1


def _end_cascades(data: GameStateData) -> None:
    data.cascade_count = 0
    data.multiplier = 1


def _enter_free_spins(data: GameStateData) -> None:
    # The triggering base spin is credited to balance directly
    if not data.is_in_free_spins:
        data.total_win = 0.0
    data.is_in_free_spins = True


def _start_free_spin(data: GameStateData) -> None:
    data.free_spins_remaining -= 1
    data.cascade_count = 0


def _complete_free_spins(data: GameStateData) -> None:
    data.is_in_free_spins = False
    data.free_spins_remaining = 0
    data.balance += data.total_win
    data.total_win = 0.0


def _clear_free_spins(data: GameStateData) -> None:
    data.is_in_free_spins = False
    data.free_spins_remaining = 0


class GameStateMachine:
    """
    Finite-state sequencer for spin, cascade and free-spin flow.

    Transitions are looked up in table order: the first row matching the
    current state and event whose guard passes (or has none) fires. An event
    without a matching row is rejected and logged, leaving state and data
    untouched.
    """

    def __init__(self, initial_data: Optional[Dict[str, Any]] = None,
                 history_size: int = DEFAULT_HISTORY_SIZE):
        """
        Initialize the state machine in IDLE.

        Args:
            initial_data: Optional overrides for GameStateData fields
            history_size: Number of transitions kept in the state history
        """
        self.logger = logging.getLogger("domain.game.state_machine")
        self._state = GameState.IDLE
        self._data = GameStateData()
        self._listeners: List[StateChangeListener] = []
        self._history = deque(maxlen=history_size)
        self._transitions = self._initialize_transitions()

        if initial_data:
            self.update_state_data(initial_data)

    @staticmethod
    def _initialize_transitions() -> List[StateTransition]:
        S, E = GameState, GameEvent
        transitions = [
            StateTransition(S.IDLE, E.SPIN, S.SPINNING,
                            condition=lambda d: d.balance >= d.bet, action=_start_paid_spin),
            StateTransition(S.IDLE, E.SPIN, S.GAME_OVER,
                            condition=lambda d: d.balance < d.bet),

            StateTransition(S.SPINNING, E.SPIN_COMPLETE, S.EVALUATING),

            StateTransition(S.EVALUATING, E.WIN_DETECTED, S.SHOWING_WIN, action=_count_cascade),
            StateTransition(S.EVALUATING, E.FREE_SPINS_TRIGGERED, S.FREE_SPINS_TRIGGER),
            # a finished free spin returns to the free-spin round, not to IDLE
            StateTransition(S.EVALUATING, E.NO_WIN, S.FREE_SPINS,
                            condition=lambda d: d.is_in_free_spins, action=_end_cascades),
            StateTransition(S.EVALUATING, E.NO_WIN, S.IDLE, action=_end_cascades),

            StateTransition(S.SHOWING_WIN, E.WIN_ANIMATION_COMPLETE, S.TUMBLING),
            StateTransition(S.TUMBLING, E.TUMBLE_COMPLETE, S.EVALUATING),

            StateTransition(S.FREE_SPINS_TRIGGER, E.WIN_ANIMATION_COMPLETE, S.FREE_SPINS,
                            action=_enter_free_spins),

            StateTransition(S.FREE_SPINS, E.SPIN, S.SPINNING,
                            condition=lambda d: d.free_spins_remaining > 0, action=_start_free_spin),
            StateTransition(S.FREE_SPINS, E.FREE_SPINS_COMPLETE, S.IDLE, action=_complete_free_spins),
        ]

        for state in (S.IDLE, S.SPINNING, S.EVALUATING, S.TUMBLING, S.SHOWING_WIN,
                      S.FREE_SPINS_TRIGGER, S.GAME_OVER):
            transitions.append(StateTransition(state, E.RESET, S.IDLE))
        transitions.append(StateTransition(S.FREE_SPINS, E.RESET, S.IDLE, action=_clear_free_spins))

        return transitions

    @property
    def transitions(self) -> Tuple[StateTransition, ...]:
        return tuple(self._transitions)

    def process_event(self, event: GameEvent) -> bool:
        """
        Fire an event against the current state.

        Returns:
            True if a transition fired, False if the event was rejected
        """
        for transition in self._transitions:
            if transition.from_state != self._state or transition.event != event:
                continue
            if transition.condition is not None and not transition.condition(self._data):
                continue

            previous_state = self._state
            if transition.action is not None:
                transition.action(self._data)
            self._state = transition.to_state
            self._history.append((self._state, time.time(), event))

            self.logger.debug(f"State: {previous_state.value} -> {self._state.value} ({event.value})")
            self._notify_listeners(previous_state, self._state, event)
            return True

        self.logger.warning(f"Invalid transition: {self._state.value} -> {event.value}")
        return False

    def get_current_state(self) -> GameState:
        return self._state

    def is_in_state(self, state: GameState) -> bool:
        return self._state == state

    def get_state_data(self) -> GameStateData:
        """Snapshot of the state data."""
        return self._data.copy()

    def update_state_data(self, updates: Optional[Dict[str, Any]] = None, **kwargs) -> None:
        """
        Overwrite state data fields.

        Unknown field names are ignored with a warning.
        """
        changes = dict(updates or {}, **kwargs)
        for name, value in changes.items():
            if name not in FIELD_NAMES:
                self.logger.warning(f"Ignoring unknown state data field: {name}")
                continue
            setattr(self._data, name, value)

    def can_spin(self) -> bool:
        return (self._state == GameState.IDLE or
                (self._state == GameState.FREE_SPINS and self._data.free_spins_remaining > 0))

    def should_continue_auto_spin(self) -> bool:
        data = self._data
        if data.auto_spin_count <= 0:
            return False
        if data.balance < data.bet:
            return False
        if data.stop_on_win and data.last_win_amount >= data.win_threshold:
            return False
        if data.stop_on_loss and data.balance <= data.loss_threshold:
            return False
        return True

    # --- listeners ----------------------------------------------------------

    def add_state_listener(self, listener: StateChangeListener) -> None:
        self._listeners.append(listener)

    def remove_state_listener(self, listener: StateChangeListener) -> bool:
        if listener in self._listeners:
            self._listeners.remove(listener)
            return True
        return False

    def _notify_listeners(self, previous_state: GameState, current_state: GameState,
                          event: GameEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(previous_state, current_state, event, self._data.copy())
            except Exception as e:
                self.logger.error(f"Error in state listener: {str(e)}", exc_info=True)

    # --- history and persistence -----------------------------------------------

    def get_state_history(self) -> List[Tuple[GameState, float, GameEvent]]:
        return list(self._history)

    def clear_history(self) -> None:
        self._history.clear()

    def reset(self, new_data: Optional[Dict[str, Any]] = None) -> None:
        """
        Force the machine back to IDLE, optionally overwriting data fields.

        Listeners are notified with a RESET event even if already IDLE.
        """
        previous_state = self._state
        self._state = GameState.IDLE
        if new_data:
            self.update_state_data(new_data)
        self._notify_listeners(previous_state, self._state, GameEvent.RESET)

    def export_state(self) -> Dict[str, Any]:
        return {"state": self._state.value, "data": self._data.to_dict()}

    def import_state(self, save_data: Dict[str, Any]) -> None:
        """Restore a snapshot produced by export_state."""
        previous_state = self._state
        self._state = GameState(save_data["state"])
        self._data = GameStateData()
        self.update_state_data(save_data.get("data", {}))
        self._notify_listeners(previous_state, self._state, GameEvent.RESET)
