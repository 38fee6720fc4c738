# tumble_engine/infrastructure/concurrency/pacer.py
import logging
import threading
from typing import Dict, Optional

WIN_ANIMATION = "win_animation"
TUMBLE = "tumble"
BETWEEN_SPINS = "between_spins"


class AnimationPacer:
    """
    Cancellable timed suspension between engine steps.

    Each named phase has a duration in seconds; unknown phases and the
    default durations are zero, so a headless engine never sleeps.
    ``cancel()`` wakes any pending wait at once and makes later waits
    return immediately until ``resume()`` is called.
    """
    def __init__(self, durations: Optional[Dict[str, float]] = None):
        self.logger = logging.getLogger("infrastructure.concurrency.pacer")
        self.durations: Dict[str, float] = {WIN_ANIMATION: 0.0, TUMBLE: 0.0, BETWEEN_SPINS: 0.0}
        self.durations.update(durations or {})
        self._cancelled = threading.Event()

    def duration(self, phase: str) -> float:
        return max(0.0, float(self.durations.get(phase, 0.0)))

    def wait(self, phase: str) -> bool:
        """
        Suspend the calling thread for the phase duration.

        Returns:
            True if the full duration elapsed, False if cancelled
        """
        seconds = self.duration(phase)
        if self._cancelled.is_set():
            return False
        if seconds <= 0:
            return True

        self.logger.debug(f"Pacing {phase} for {seconds:.3f}s")
        return not self._cancelled.wait(seconds)

    def cancel(self) -> None:
        self._cancelled.set()

    def resume(self) -> None:
        self._cancelled.clear()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()
