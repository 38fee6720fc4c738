# tumble_engine/infrastructure/rng/rng_provider.py
import logging
from typing import Any, Dict, Optional

from .strategies.mersenne_rng import MersenneTwisterRNG
from .strategies.rng_strategy import RNGStrategy, Seed
from .strategies.sfc32_rng import SeededRNG


class RNGProvider:
    """
    Factory for Random Number Generator strategies.

    Every call returns a fresh, independently owned instance. Nothing is cached
    or shared, so parallel simulations never draw from the same stream.
    """
    DEFAULT_STRATEGY = "sfc32"

    def __init__(self):
        """Initialize the RNG provider."""
        self.logger = logging.getLogger("infrastructure.rng.provider")

    def get_rng(self, strategy_name: str = DEFAULT_STRATEGY, seed: Optional[Seed] = None) -> RNGStrategy:
        """
        Create an RNG strategy instance by name.

        Args:
            strategy_name: Name of the RNG strategy ("sfc32", "mersenne")
            seed: Optional seed value for the RNG

        Returns:
            A new instance of the requested RNG strategy

        Raises:
            ValueError: If the strategy name is unknown
        """
        strategy_name = strategy_name.lower()

        if strategy_name == "sfc32":
            self.logger.debug(f"Creating sfc32 RNG with seed: {seed}")
            return SeededRNG(seed)
        elif strategy_name == "mersenne":
            self.logger.debug(f"Creating MersenneTwister RNG with seed: {seed}")
            return MersenneTwisterRNG(seed)
        else:
            self.logger.error(f"Unknown RNG strategy: {strategy_name}")
            raise ValueError(f"Unknown RNG strategy: {strategy_name}")

    def create_from_config(self, config: Dict[str, Any]) -> RNGStrategy:
        """
        Create an RNG strategy from a configuration dictionary.

        Args:
            config: Dictionary with optional 'strategy' and 'seed' keys

        Returns:
            An RNG strategy instance

        Example config:
            {"strategy": "sfc32", "seed": "candy-tempest"}
        """
        strategy_name = config.get("strategy", self.DEFAULT_STRATEGY)
        seed = config.get("seed", None)

        return self.get_rng(strategy_name, seed)

    @staticmethod
    def get_available_strategies() -> Dict[str, str]:
        """
        Get a dictionary of available RNG strategies with descriptions.

        Returns:
            Dictionary mapping strategy names to descriptions
        """
        return {
            "sfc32": "Small fast counting generator, reproducible from a string or numeric seed",
            "mersenne": "Mersenne Twister (Python's default random generator), for cross-checks",
        }
