# tumble_engine/infrastructure/rng/strategies/mersenne_rng.py
import random
from typing import Optional, Sequence, Tuple

from .base_rng import BaseSeededRNG
from .rng_strategy import Seed


class MersenneTwisterRNG(BaseSeededRNG):
    """
    Random number generator using the Mersenne Twister algorithm (Python's default).

    Useful for cross-checking an RTP estimate against an unrelated generator;
    its stream is not compatible with SeededRNG.
    """
    def __init__(self, seed_value: Optional[Seed] = None):
        """
        Initialize the RNG with an optional seed.

        Args:
            seed_value: Optional seed value for reproducible random numbers
        """
        # Dedicated instance, never the module-level random state
        self._random = random.Random()
        self.seed_value = seed_value

        if seed_value is not None:
            self.seed(seed_value)

    def seed(self, seed_value: Seed) -> None:
        self.seed_value = seed_value
        self._random.seed(str(seed_value))

    def next(self) -> float:
        return self._random.random()

    def get_state(self) -> Tuple:
        return self._random.getstate()

    def set_state(self, state: Sequence) -> None:
        version, internal, gauss_next = state
        self._random.setstate((version, tuple(internal), gauss_next))

    def __repr__(self) -> str:
        return f"MersenneTwisterRNG(seed={self.seed_value!r})"
