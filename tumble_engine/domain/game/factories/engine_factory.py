# tumble_engine/domain/game/factories/engine_factory.py
import logging
import os
from typing import Any, Dict, Optional

from ...grid.entities.paytable import GameConfig, VolatilityPreset, select_volatility_preset
from ...grid.services.grid_evaluator import GridEvaluator
from ..entities.game_engine import GameEngine
from ..entities.state_machine import DEFAULT_HISTORY_SIZE
from ....infrastructure.concurrency.pacer import AnimationPacer
from ....infrastructure.config.loaders.yaml_loader import YamlConfigLoader
from ....infrastructure.config.validators.schema_validator import SchemaValidator
from ....infrastructure.rng.rng_provider import RNGProvider

CONFIG_DIR = os.path.normpath(os.path.join(os.path.dirname(__file__), "..", "..", "..", "application", "config"))
SCHEMA_DIR = os.path.join(CONFIG_DIR, "schemas")

PAYTABLE_PATH = os.path.join(CONFIG_DIR, "paytable.yaml")
VOLATILITY_PATH = os.path.join(CONFIG_DIR, "volatility.yaml")
SIMULATION_PATH = os.path.join(CONFIG_DIR, "simulation.yaml")
PAYTABLE_SCHEMA_PATH = os.path.join(SCHEMA_DIR, "paytable.schema.json")
VOLATILITY_SCHEMA_PATH = os.path.join(SCHEMA_DIR, "volatility.schema.json")


class EngineFactory:
    """
    Builds engines and evaluators from the paytable and volatility documents.

    Documents are validated against their schemas on load; nothing past this
    factory parses or validates configuration.
    """
    def __init__(self, config_loader: Optional[YamlConfigLoader] = None,
                 rng_provider: Optional[RNGProvider] = None):
        """
        Initialize the engine factory.

        Args:
            config_loader: Loader used for the YAML documents
            rng_provider: Provider creating one generator per engine
        """
        self.logger = logging.getLogger("domain.game.factory")
        self.config_loader = config_loader or YamlConfigLoader(SchemaValidator())
        self.rng_provider = rng_provider or RNGProvider()

    def load_game_config(self, paytable_path: str = PAYTABLE_PATH,
                         schema_path: Optional[str] = PAYTABLE_SCHEMA_PATH) -> GameConfig:
        document = self.config_loader.load_file(paytable_path, schema_path)
        config = GameConfig.from_dict(document)
        self.logger.info(
            f"Loaded paytable '{config.game_id}' from {paytable_path}: "
            f"{len(config.symbols)} symbols, {len(config.special_symbols)} special symbols"
        )
        return config

    def load_volatility_preset(self, volatility_path: str = VOLATILITY_PATH,
                               preset_name: Optional[str] = None,
                               schema_path: Optional[str] = VOLATILITY_SCHEMA_PATH) -> VolatilityPreset:
        document = self.config_loader.load_file(volatility_path, schema_path)
        preset = select_volatility_preset(document, preset_name)
        self.logger.info(f"Using volatility preset: {preset.name}")
        return preset

    def create_evaluator(self, game_config: GameConfig, seed=None,
                         rng_strategy_name: str = RNGProvider.DEFAULT_STRATEGY,
                         volatility: Optional[VolatilityPreset] = None) -> GridEvaluator:
        rng = self.rng_provider.get_rng(rng_strategy_name, seed)
        return GridEvaluator(game_config, rng, volatility)

    def create_engine(self, game_config: GameConfig, volatility: Optional[VolatilityPreset] = None,
                      engine_settings: Optional[Dict[str, Any]] = None) -> GameEngine:
        """
        Create a game engine.

        Args:
            game_config: Paytable configuration
            volatility: Optional volatility preset
            engine_settings: The ``engine`` section of the simulation config

        Returns:
            Initialized GameEngine
        """
        settings = engine_settings or {}
        rng_strategy_name = settings.get("rng_strategy", RNGProvider.DEFAULT_STRATEGY)
        seed = settings.get("seed")

        rng = self.rng_provider.get_rng(rng_strategy_name, seed)
        self.logger.debug(f"Using RNG strategy: {rng_strategy_name}, seed: {rng.seed_value}")

        return GameEngine(
            game_config,
            volatility=volatility,
            initial_balance=settings.get("initial_balance", 1000.0),
            initial_bet=settings.get("initial_bet", 1.0),
            rng=rng,
            rng_strategy=rng_strategy_name,
            history_size=settings.get("history_size", DEFAULT_HISTORY_SIZE),
            pacer=AnimationPacer(settings.get("animation")),
            engine_id=settings.get("engine_id", "engine"),
        )

    def create_engine_from_files(self, paytable_path: str = PAYTABLE_PATH,
                                 volatility_path: Optional[str] = VOLATILITY_PATH,
                                 engine_settings: Optional[Dict[str, Any]] = None) -> GameEngine:
        """
        Load both documents and create an engine.

        The preset is taken from ``engine_settings['volatility_preset']``,
        falling back to the document's default preset.
        """
        settings = engine_settings or {}
        game_config = self.load_game_config(paytable_path)

        volatility = None
        if volatility_path:
            volatility = self.load_volatility_preset(volatility_path, settings.get("volatility_preset"))

        return self.create_engine(game_config, volatility, settings)
