# tumble_engine/infrastructure/rng/strategies/sfc32_rng.py
import time
from typing import Optional, Sequence, Tuple

from .base_rng import BaseSeededRNG
from .rng_strategy import Seed

MASK32 = 0xFFFFFFFF
TWO_POW_32 = 4294967296

# Initial accumulator words for seed mixing
_SEED_WORDS = (1779033703, 3144134277, 1013904242, 2773480762)


def _avalanche(x: int) -> int:
    """Multiply-xor-shift hash of one 32-bit word."""
    x = (x + 0x9E3779B9) & MASK32
    t = x ^ (x >> 16)
    t = (t * 0x21F0AAAD) & MASK32
    t = t ^ (t >> 15)
    t = (t * 0x735A2D97) & MASK32
    return (t ^ (t >> 15)) & MASK32


def mix_seed(seed_value: Seed) -> Tuple[int, int, int, int]:
    """
    Fold every character of the seed's string form into four state words.

    Args:
        seed_value: String or integer seed

    Returns:
        Tuple of four unsigned 32-bit words
    """
    h1, h2, h3, h4 = _SEED_WORDS
    for ch in str(seed_value):
        code = ord(ch)
        h1 = _avalanche(h1 ^ code)
        h2 = _avalanche(h2 ^ code)
        h3 = _avalanche(h3 ^ code)
        h4 = _avalanche(h4 ^ code)
    return h1, h2, h3, h4


class SeededRNG(BaseSeededRNG):
    """
    Small fast counting generator (sfc32) over four 32-bit words.

    The whole state is the tuple (a, b, c, d). Seeding derives it from the seed
    alone, so ``SeededRNG(s)`` and ``rng.seed(s)`` yield identical streams.
    """
    def __init__(self, seed_value: Optional[Seed] = None):
        """
        Initialize the RNG.

        Args:
            seed_value: String or integer seed. Defaults to the current time in
                milliseconds, read once.
        """
        if seed_value is None:
            seed_value = int(time.time() * 1000)
        self.seed_value = seed_value
        self._a = self._b = self._c = self._d = 0
        self.seed(seed_value)

    def seed(self, seed_value: Seed) -> None:
        self.seed_value = seed_value
        self._a, self._b, self._c, self._d = mix_seed(seed_value)

    def next_uint32(self) -> int:
        """Advance the generator and return the raw 32-bit output."""
        t = (self._a + self._b) & MASK32
        self._a = self._b ^ (self._b >> 9)
        self._b = (self._c + (self._c << 3)) & MASK32
        self._c = ((self._c << 21) | (self._c >> 11)) & MASK32
        self._d = (self._d + 1) & MASK32
        result = (t + self._d) & MASK32
        self._c = (self._c + result) & MASK32
        return result

    def next(self) -> float:
        return self.next_uint32() / TWO_POW_32

    def get_state(self) -> Tuple[int, int, int, int]:
        return self._a, self._b, self._c, self._d

    def set_state(self, state: Sequence[int]) -> None:
        if len(state) != 4:
            raise ValueError(f"sfc32 state needs 4 words, got {len(state)}")
        self._a, self._b, self._c, self._d = (int(word) & MASK32 for word in state)

    def __repr__(self) -> str:
        return f"SeededRNG(seed={self.seed_value!r})"
