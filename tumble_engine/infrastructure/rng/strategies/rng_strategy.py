# tumble_engine/infrastructure/rng/strategies/rng_strategy.py
from typing import List, Protocol, Sequence, Tuple, TypeVar, Union

T = TypeVar("T")

Seed = Union[str, int]


class RNGStrategy(Protocol):
    """Protocol defining the interface for seeded random number generators."""

    def next(self) -> float:
        """
        Get the next uniform value.

        Returns:
            Float in the range [0, 1)
        """
        ...

    def next_int(self, min_val: int, max_val: int) -> int:
        """
        Get a random integer in the range [min_val, max_val).

        Args:
            min_val: Minimum value (inclusive)
            max_val: Maximum value (exclusive)

        Returns:
            Random integer in the specified range
        """
        ...

    def next_float(self, min_val: float = 0.0, max_val: float = 1.0) -> float:
        """
        Get a random float in the range [min_val, max_val).

        Args:
            min_val: Minimum value (inclusive)
            max_val: Maximum value (exclusive)

        Returns:
            Random float in the specified range
        """
        ...

    def choice(self, items: Sequence[T]) -> T:
        """
        Randomly select an item from a sequence, every position equally likely.

        Args:
            items: Items to choose from

        Returns:
            Randomly selected item

        Raises:
            IndexError: If items is empty
        """
        ...

    def weighted_choice(self, items: Sequence[T], weights: Sequence[float]) -> T:
        """
        Randomly select an item with probability proportional to its weight.

        Args:
            items: Items to choose from
            weights: One non-negative weight per item

        Returns:
            Selected item

        Raises:
            ValueError: If items is empty or the lengths differ
        """
        ...

    def shuffle(self, items: List[T]) -> List[T]:
        """
        Shuffle a list in place.

        Args:
            items: List to shuffle

        Returns:
            The same list, shuffled
        """
        ...

    def chance(self, probability: float) -> bool:
        """
        Get a boolean that is True with the given probability.

        Args:
            probability: Probability in [0, 1]

        Returns:
            True if the draw falls below probability
        """
        ...

    def seed(self, seed_value: Seed) -> None:
        """
        Reset the generator from a seed.

        Args:
            seed_value: Seed value to use
        """
        ...

    def get_state(self) -> Tuple:
        """Export the internal state for replay."""
        ...

    def set_state(self, state: Sequence) -> None:
        """Restore a state previously returned by get_state."""
        ...
