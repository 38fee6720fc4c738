# tumble_engine/infrastructure/rng/strategies/base_rng.py
import math
from typing import List, Sequence, TypeVar

T = TypeVar("T")


class BaseSeededRNG:
    """
    Derived draws shared by every strategy.

    Subclasses supply ``next()``; everything else is computed from that single
    uniform stream so two strategies fed the same stream agree on every draw.
    """

    def next(self) -> float:
        raise NotImplementedError

    def next_int(self, min_val: int, max_val: int) -> int:
        return math.floor(self.next() * (max_val - min_val)) + min_val

    def next_float(self, min_val: float = 0.0, max_val: float = 1.0) -> float:
        return self.next() * (max_val - min_val) + min_val

    def choice(self, items: Sequence[T]) -> T:
        if not items:
            raise IndexError("Cannot choose from an empty list")
        return items[self.next_int(0, len(items))]

    def weighted_choice(self, items: Sequence[T], weights: Sequence[float]) -> T:
        """
        Select the first item whose cumulative weight uses up a draw of
        ``next() * sum(weights)``.

        Ties go to the earlier item. If rounding leaves the draw positive after
        the last weight, the last item is returned.
        """
        if not items:
            raise ValueError("Cannot make a weighted choice from an empty list")
        if len(items) != len(weights):
            raise ValueError(
                f"Items and weights differ in length: {len(items)} != {len(weights)}"
            )

        remaining = self.next() * sum(weights)
        for item, weight in zip(items, weights):
            remaining -= weight
            if remaining <= 0:
                return item

        return items[-1]

    def shuffle(self, items: List[T]) -> List[T]:
        # Fisher-Yates, in place
        for i in range(len(items) - 1, 0, -1):
            j = self.next_int(0, i + 1)
            items[i], items[j] = items[j], items[i]
        return items

    def chance(self, probability: float) -> bool:
        return self.next() < probability
