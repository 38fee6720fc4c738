# tumble_engine/domain/game/entities/game_engine.py
import logging
import threading
from collections import deque
from typing import Any, Callable, Dict, List, Optional, Union

from ...events.engine_events import EngineEvent, EngineEventType
from ...events.event_dispatcher import EventDispatcher
from ...grid.entities.grid import Grid, WinResult, grid_symbol_ids
from ...grid.entities.paytable import GameConfig, VolatilityPreset
from ...grid.services.grid_evaluator import GridEvaluator
from ...grid.services.rtp_simulation import RTPReport
from ....infrastructure.concurrency.pacer import AnimationPacer, BETWEEN_SPINS, TUMBLE, WIN_ANIMATION
from ....infrastructure.rng.rng_provider import RNGProvider
from .spin_result import AutoSpinSettings, SpinResult
from .state_machine import (
    DEFAULT_HISTORY_SIZE, GameEvent, GameState, GameStateData, GameStateMachine,
)

# seed for statistics runs of an unseeded engine
SIMULATION_FALLBACK_SEED = 0


class GameEngine:
    """
    Coordinates one state machine and one grid evaluator.

    Drives the spin and cascade loop, settles wins into the state data,
    keeps a capped spin history and publishes engine events to any number
    of subscribers.
    """

    def __init__(self, config: GameConfig, volatility: Optional[VolatilityPreset] = None,
                 initial_balance: float = 1000.0, initial_bet: float = 1.0,
                 seed=None, rng=None, rng_strategy: str = RNGProvider.DEFAULT_STRATEGY,
                 history_size: int = DEFAULT_HISTORY_SIZE, pacer: Optional[AnimationPacer] = None,
                 engine_id: str = "engine"):
        """
        Initialize the engine.

        Args:
            config: Paytable configuration
            volatility: Optional volatility preset applied to pool and multipliers
            initial_balance: Starting balance, restored by reset()
            initial_bet: Starting bet, restored by reset()
            seed: Seed for a new generator when ``rng`` is not supplied
            rng: Generator to use; the engine becomes its only user
            rng_strategy: Strategy name for a new generator, and for the
                generators of statistics runs
            history_size: Maximum number of spins kept in the history
            pacer: Suspension between steps; zero-duration when omitted
            engine_id: Identifier attached to published events
        """
        self.logger = logging.getLogger("domain.game.engine")
        self.engine_id = engine_id
        self.config = config
        self.volatility = volatility
        self.initial_balance = initial_balance
        self.initial_bet = initial_bet

        self.rng_strategy = rng_strategy
        self.rng = rng if rng is not None else RNGProvider().get_rng(rng_strategy, seed)
        self.seed = self.rng.seed_value

        self.evaluator = GridEvaluator(config, self.rng, volatility)
        pool_multipliers = volatility.pool_multipliers() if volatility is not None else None
        self._symbol_pool = self.evaluator.generate_symbol_pool(pool_multipliers)

        self.state_machine = GameStateMachine(
            {"balance": initial_balance, "bet": initial_bet}, history_size=history_size
        )
        self.state_machine.add_state_listener(self._handle_state_change)

        self.dispatcher = EventDispatcher()
        self.pacer = pacer or AnimationPacer()

        self._history = deque(maxlen=history_size)
        self._spin_counter = 0
        self._spin_lock = threading.Lock()
        self._auto_lock = threading.Lock()
        self._auto_spinning = False

        self.logger.info(
            f"Game engine initialized: balance={initial_balance}, bet={initial_bet}, "
            f"seed={self.seed}, volatility={volatility.name if volatility else 'none'}"
        )

    # --- events ---------------------------------------------------------------

    def subscribe(self, event_type: EngineEventType, handler: Callable[[EngineEvent], None]) -> None:
        self.dispatcher.register(event_type, handler)

    def unsubscribe(self, event_type: EngineEventType, handler: Callable[[EngineEvent], None]) -> bool:
        return self.dispatcher.unregister(event_type, handler)

    def _publish(self, event_type: EngineEventType, **data) -> None:
        self.dispatcher.dispatch(EngineEvent(type=event_type, data=data, engine_id=self.engine_id))

    def _handle_state_change(self, previous_state: GameState, current_state: GameState,
                             event: GameEvent, data: GameStateData) -> None:
        self._publish(
            EngineEventType.STATE_CHANGED,
            previous_state=previous_state,
            current_state=current_state,
            event=event,
            state_data=data,
        )

    # --- spinning ---------------------------------------------------------------

    def spin(self) -> Optional[SpinResult]:
        """
        Play one spin through its whole cascade chain.

        Returns:
            SpinResult, or None if the spin was rejected (not spinnable,
            insufficient balance, or another spin in flight)
        """
        if not self._spin_lock.acquire(blocking=False):
            self.logger.warning("Spin rejected: another spin is in progress")
            return None
        try:
            return self._spin()
        finally:
            self._spin_lock.release()

    def _spin(self) -> Optional[SpinResult]:
        if not self.state_machine.can_spin():
            self.logger.warning(f"Cannot spin in current state: {self.state_machine.get_current_state().value}")
            return None

        before = self.state_machine.get_state_data()
        was_free_spin = before.is_in_free_spins

        self.state_machine.process_event(GameEvent.SPIN)
        if not self.state_machine.is_in_state(GameState.SPINNING):
            self.logger.warning(f"Spin rejected: balance {before.balance} below bet {before.bet}")
            return None

        # a stop only cancels the pacing of the auto-spin it ended
        self.pacer.resume()

        self._publish(EngineEventType.SPIN_STARTED, bet=before.bet, balance=before.balance,
                      free_spin=was_free_spin)

        self._generate_new_grid()
        self.state_machine.process_event(GameEvent.SPIN_COMPLETE)

        return self._evaluate_and_cascade(before.bet, was_free_spin)

    def _generate_new_grid(self) -> None:
        self.evaluator.initialize_grid()
        self.evaluator.fill_empty_positions(self._symbol_pool)

    def _evaluate_and_cascade(self, bet: float, was_free_spin: bool) -> SpinResult:
        cascades: List[WinResult] = []
        spin_win = 0.0
        free_spins_awarded = 0

        while len(cascades) < self.config.settings.max_cascades:
            win_result = self.evaluator.evaluate_win(bet, was_free_spin)
            if not win_result.has_win:
                self.state_machine.process_event(GameEvent.NO_WIN)
                break

            cascades.append(win_result)
            spin_win += win_result.total_payout
            self._publish(EngineEventType.WIN_DETECTED, win_result=win_result, cascade_number=len(cascades))

            if win_result.free_spins_awarded > 0:
                # cluster wins of this cascade still pay; the trigger ends the chain
                free_spins_awarded += win_result.free_spins_awarded
                remaining = self.state_machine.get_state_data().free_spins_remaining + win_result.free_spins_awarded
                self.state_machine.update_state_data(free_spins_remaining=remaining)
                self.state_machine.process_event(GameEvent.FREE_SPINS_TRIGGERED)
                self._publish(EngineEventType.FREE_SPINS_TRIGGERED,
                              spins_awarded=win_result.free_spins_awarded, free_spins_remaining=remaining)
                self.logger.info(f"Free spins triggered: +{win_result.free_spins_awarded}, {remaining} remaining")

                self.pacer.wait(WIN_ANIMATION)
                self.state_machine.process_event(GameEvent.WIN_ANIMATION_COMPLETE)
                break

            self.state_machine.update_state_data(multiplier=win_result.multiplier)
            self.state_machine.process_event(GameEvent.WIN_DETECTED)
            self.pacer.wait(WIN_ANIMATION)
            self.state_machine.process_event(GameEvent.WIN_ANIMATION_COMPLETE)

            self.evaluator.remove_winning_symbols(win_result.winning_clusters)
            self.evaluator.apply_gravity()
            self.evaluator.fill_empty_positions(self._symbol_pool)
            self.pacer.wait(TUMBLE)
            self.state_machine.process_event(GameEvent.TUMBLE_COMPLETE)
        else:
            self.logger.debug(f"Cascade cap of {self.config.settings.max_cascades} reached")
            self.state_machine.process_event(GameEvent.NO_WIN)

        self._settle(spin_win, was_free_spin)

        final = self.state_machine.get_state_data()
        self._spin_counter += 1
        result = SpinResult(
            spin_id=self._spin_counter,
            grid=self.evaluator.get_grid(),
            win_result=cascades[0] if cascades else WinResult(),
            cascades=cascades,
            total_win=spin_win,
            new_balance=final.balance,
            free_spins_awarded=free_spins_awarded,
            is_free_spin=was_free_spin,
            game_state=self.state_machine.get_current_state(),
        )
        self._history.append(result)

        self.logger.debug(
            f"Spin {result.spin_id}: win={spin_win}, cascades={len(cascades)}, "
            f"balance={final.balance}, state={result.game_state.value}"
        )
        self._publish(EngineEventType.SPIN_COMPLETED, result=result)
        return result

    def _settle(self, spin_win: float, was_free_spin: bool) -> None:
        data = self.state_machine.get_state_data()

        if was_free_spin:
            # free-spin wins wait in total_win until the round completes
            self.state_machine.update_state_data(total_win=data.total_win + spin_win,
                                                 last_win_amount=spin_win)
            if (self.state_machine.is_in_state(GameState.FREE_SPINS)
                    and self.state_machine.get_state_data().free_spins_remaining == 0):
                credited = data.total_win + spin_win
                self.state_machine.process_event(GameEvent.FREE_SPINS_COMPLETE)
                self.logger.info(f"Free spins complete, credited {credited}")
                self._publish(EngineEventType.BALANCE_UPDATED,
                              balance=self.state_machine.get_state_data().balance, change=credited)
            return

        updates: Dict[str, Any] = {"balance": data.balance + spin_win, "last_win_amount": spin_win}
        if not data.is_in_free_spins:
            updates["total_win"] = data.total_win + spin_win
        self.state_machine.update_state_data(updates)
        self._publish(EngineEventType.BALANCE_UPDATED, balance=data.balance + spin_win, change=spin_win)

    # --- auto-spin --------------------------------------------------------------

    def start_auto_spin(self, settings: Union[AutoSpinSettings, Dict[str, Any]]) -> List[SpinResult]:
        """
        Spin repeatedly on the calling thread while the stop conditions allow.

        Args:
            settings: Repeat count and stop conditions

        Returns:
            Results of the spins played; empty if another auto-spin is running
        """
        if isinstance(settings, dict):
            settings = AutoSpinSettings.from_dict(settings)

        with self._auto_lock:
            if self._auto_spinning:
                self.logger.warning("Auto-spin rejected: already running")
                return []
            self._auto_spinning = True

        try:
            self.state_machine.update_state_data(
                auto_spin_count=settings.count,
                max_auto_spins=settings.count,
                stop_on_win=settings.stop_on_win,
                stop_on_loss=settings.stop_on_loss,
                win_threshold=settings.win_threshold,
                loss_threshold=settings.loss_threshold,
            )
            self.pacer.resume()
            self.logger.info(f"Auto-spin started: {settings.count} spins")

            results = []
            while self.state_machine.should_continue_auto_spin():
                result = self.spin()
                if result is None:
                    break
                results.append(result)

                count = self.state_machine.get_state_data().auto_spin_count
                self.state_machine.update_state_data(auto_spin_count=max(0, count - 1))

                if self.state_machine.should_continue_auto_spin() and not self.pacer.wait(BETWEEN_SPINS):
                    break

            self.logger.info(f"Auto-spin finished after {len(results)} spins")
            return results
        finally:
            with self._auto_lock:
                self._auto_spinning = False

    def stop_auto_spin(self) -> None:
        """Stop auto-spin before its next spin; an in-flight spin completes."""
        self.state_machine.update_state_data(auto_spin_count=0)
        self.pacer.cancel()

    def is_auto_spinning(self) -> bool:
        return self._auto_spinning

    # --- accessors and host operations -----------------------------------------------

    def get_game_state(self) -> GameState:
        return self.state_machine.get_current_state()

    def can_spin(self) -> bool:
        return self.state_machine.can_spin()

    def get_state_data(self) -> GameStateData:
        return self.state_machine.get_state_data()

    def get_grid(self) -> Grid:
        return self.evaluator.get_grid()

    def get_spin_history(self) -> List[SpinResult]:
        return list(self._history)

    def set_bet(self, amount: float) -> bool:
        balance = self.state_machine.get_state_data().balance
        if 0 < amount <= balance:
            self.state_machine.update_state_data(bet=amount)
            return True
        self.logger.warning(f"Bet rejected: {amount} (balance {balance})")
        return False

    def add_balance(self, amount: float) -> bool:
        if amount <= 0:
            self.logger.warning(f"Balance credit rejected: {amount}")
            return False
        new_balance = self.state_machine.get_state_data().balance + amount
        self.state_machine.update_state_data(balance=new_balance)
        self._publish(EngineEventType.BALANCE_UPDATED, balance=new_balance, change=amount)
        return True

    def reset(self) -> None:
        """Restore initial balance and bet, empty the grid and clear the history."""
        self.state_machine.reset({
            "balance": self.initial_balance,
            "bet": self.initial_bet,
            "total_win": 0.0,
            "cascade_count": 0,
            "free_spins_remaining": 0,
            "is_in_free_spins": False,
            "multiplier": 1,
            "last_win_amount": 0.0,
            "auto_spin_count": 0,
        })
        self.evaluator.initialize_grid()
        self._history.clear()
        self._spin_counter = 0

    # --- statistics -------------------------------------------------------------

    def _simulation_evaluator(self) -> GridEvaluator:
        # own generator, so the live spin stream is untouched
        seed = self.seed if self.seed is not None else SIMULATION_FALLBACK_SEED
        rng = RNGProvider().get_rng(self.rng_strategy, seed)
        return GridEvaluator(self.config, rng, self.volatility)

    def simulate_rtp(self, spins: int = 100_000) -> float:
        return self._simulation_evaluator().simulate_rtp(spins, self.initial_bet)

    def simulate_rtp_report(self, spins: int = 100_000) -> RTPReport:
        return self._simulation_evaluator().simulate_rtp_report(spins, self.initial_bet)

    # --- persistence ------------------------------------------------------------

    def export_session(self) -> Dict[str, Any]:
        """
        Serializable snapshot of state, data, grid and generator state.

        Importing it into an engine with the same configuration continues the
        identical spin stream.
        """
        session = self.state_machine.export_state()
        session.update({
            "seed": self.seed,
            "rng_state": self.rng.get_state(),
            "grid": grid_symbol_ids(self.evaluator.grid),
            "spin_counter": self._spin_counter,
        })
        return session

    def import_session(self, session: Dict[str, Any]) -> None:
        self.state_machine.import_state(session)
        if "rng_state" in session:
            self.rng.set_state(session["rng_state"])
        if "grid" in session:
            self.evaluator.set_grid_from_ids(session["grid"])
        self._spin_counter = session.get("spin_counter", 0)
        self.logger.info(f"Session imported in state {self.state_machine.get_current_state().value}")
