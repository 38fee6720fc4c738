# tumble_engine/domain/grid/entities/paytable.py
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

SCATTER_ID = "scatter"
MULTIPLIER_ID = "multiplier"

MAX_TOTAL_MULTIPLIER = 1000
DEFAULT_SCATTER_MIN_COUNT = 4

logger = logging.getLogger("domain.grid.paytable")


def lookup_table(table: Mapping[int, float], key: int) -> float:
    """
    Exact-key lookup that clamps keys above the largest entry.

    A missing key at or below the largest entry resolves to 0.
    """
    if key in table:
        return table[key]
    if table:
        largest = max(table)
        if key > largest:
            return table[largest]
    return 0


def _int_keyed(raw: Optional[Mapping[Any, Any]], label: str) -> Dict[int, Any]:
    table = {}
    for key, value in (raw or {}).items():
        try:
            table[int(key)] = value
        except (TypeError, ValueError):
            logger.warning(f"Ignoring non-integer key {key!r} in {label}")
    return table


@dataclass(frozen=True)
class SymbolConfig:
    """A regular paying symbol."""
    id: str
    name: str
    rarity: float
    min_cluster: int
    payout_table: Dict[int, float] = field(default_factory=dict)

    def payout_for(self, cluster_size: int) -> float:
        """Bet multiplier for a cluster of this size, 0 below the minimum."""
        if cluster_size < self.min_cluster:
            return 0
        return lookup_table(self.payout_table, cluster_size)

    @classmethod
    def from_dict(cls, entry: Dict[str, Any]) -> "SymbolConfig":
        symbol_id = entry["id"]
        return cls(
            id=symbol_id,
            name=entry.get("name", symbol_id),
            rarity=entry.get("rarity", 0),
            min_cluster=entry.get("min_cluster", 1),
            payout_table=_int_keyed(entry.get("payout_table"), f"payout_table of {symbol_id}"),
        )


@dataclass(frozen=True)
class SpecialSymbolConfig:
    """Scatter or multiplier symbol."""
    id: str
    name: str
    rarity: float
    min_count: int = DEFAULT_SCATTER_MIN_COUNT
    free_spins_table: Dict[int, int] = field(default_factory=dict)
    values: Tuple[int, ...] = ()
    weights: Tuple[float, ...] = ()

    @classmethod
    def from_dict(cls, entry: Dict[str, Any]) -> "SpecialSymbolConfig":
        symbol_id = entry["id"]
        values = tuple(entry.get("values", ()))
        weights = tuple(entry.get("weights", ()))
        if len(values) != len(weights):
            logger.warning(
                f"Special symbol {symbol_id}: {len(values)} values but {len(weights)} weights, "
                f"multiplier draws disabled"
            )
            values, weights = (), ()
        return cls(
            id=symbol_id,
            name=entry.get("name", symbol_id),
            rarity=entry.get("rarity", 0),
            min_count=entry.get("min_count", DEFAULT_SCATTER_MIN_COUNT),
            free_spins_table=_int_keyed(entry.get("free_spins_table"), f"free_spins_table of {symbol_id}"),
            values=values,
            weights=weights,
        )


@dataclass(frozen=True)
class GameSettings:
    columns: int = 6
    rows: int = 5
    target_rtp: float = 96.0
    rtp_tolerance: float = 2.5
    max_cascades: int = 20

    @classmethod
    def from_dict(cls, settings: Dict[str, Any]) -> "GameSettings":
        grid_size = settings.get("grid_size", {})
        return cls(
            columns=grid_size.get("columns", cls.columns),
            rows=grid_size.get("rows", cls.rows),
            target_rtp=settings.get("target_rtp", cls.target_rtp),
            rtp_tolerance=settings.get("rtp_tolerance", cls.rtp_tolerance),
            max_cascades=settings.get("max_cascades", cls.max_cascades),
        )


@dataclass(frozen=True)
class GameConfig:
    """
    Immutable paytable document: regular symbols, special symbols and grid settings.

    Built once from the validated YAML document and shared read-only by the
    evaluator and engine for the lifetime of a session.
    """
    symbols: Tuple[SymbolConfig, ...]
    special_symbols: Tuple[SpecialSymbolConfig, ...] = ()
    settings: GameSettings = GameSettings()
    game_id: str = "tumble"

    def get_symbol(self, symbol_id: str) -> Optional[SymbolConfig]:
        for symbol in self.symbols:
            if symbol.id == symbol_id:
                return symbol
        return None

    def get_special(self, symbol_id: str) -> Optional[SpecialSymbolConfig]:
        for symbol in self.special_symbols:
            if symbol.id == symbol_id:
                return symbol
        return None

    @property
    def symbol_ids(self) -> List[str]:
        return [s.id for s in self.symbols] + [s.id for s in self.special_symbols]

    @classmethod
    def from_dict(cls, document: Dict[str, Any]) -> "GameConfig":
        """
        Build a GameConfig from a paytable document.

        Entries without an id are skipped with a warning.

        Args:
            document: Parsed paytable document

        Returns:
            GameConfig instance
        """
        symbols = []
        for entry in document.get("symbols", []):
            if not isinstance(entry, dict) or "id" not in entry:
                logger.warning(f"Invalid symbol entry: {entry}")
                continue
            symbols.append(SymbolConfig.from_dict(entry))

        specials = []
        for entry in document.get("special_symbols", []):
            if not isinstance(entry, dict) or "id" not in entry:
                logger.warning(f"Invalid special symbol entry: {entry}")
                continue
            specials.append(SpecialSymbolConfig.from_dict(entry))

        if not symbols:
            logger.warning("Paytable defines no regular symbols, every spin will pay 0")

        return cls(
            symbols=tuple(symbols),
            special_symbols=tuple(specials),
            settings=GameSettings.from_dict(document.get("game_settings", {})),
            game_id=document.get("game_id", "tumble"),
        )


@dataclass(frozen=True)
class VolatilityPreset:
    """Profile that biases win frequency against win size."""
    name: str
    symbol_rarity_multiplier: Dict[str, float] = field(default_factory=dict)
    multiplier_value_weights: Dict[int, float] = field(default_factory=dict)
    max_multiplier_per_spin: int = MAX_TOTAL_MULTIPLIER
    scatter_frequency_boost: float = 1.0

    def pool_multipliers(self) -> Dict[str, float]:
        """Rarity multipliers for pool generation, scatter boost folded in."""
        multipliers = dict(self.symbol_rarity_multiplier)
        multipliers[SCATTER_ID] = multipliers.get(SCATTER_ID, 1.0) * self.scatter_frequency_boost
        return multipliers

    @classmethod
    def from_dict(cls, name: str, entry: Dict[str, Any]) -> "VolatilityPreset":
        return cls(
            name=name,
            symbol_rarity_multiplier=dict(entry.get("symbol_rarity_multiplier", {})),
            multiplier_value_weights=_int_keyed(
                entry.get("multiplier_value_weights"), f"multiplier_value_weights of {name}"
            ),
            max_multiplier_per_spin=entry.get("max_multiplier_per_spin", MAX_TOTAL_MULTIPLIER),
            scatter_frequency_boost=entry.get("scatter_frequency_boost", 1.0),
        )


def load_volatility_presets(document: Dict[str, Any]) -> Dict[str, VolatilityPreset]:
    presets = {}
    for name, entry in document.get("presets", {}).items():
        if not isinstance(entry, dict):
            logger.warning(f"Invalid volatility preset {name}: expected mapping")
            continue
        presets[name] = VolatilityPreset.from_dict(name, entry)
    return presets


def select_volatility_preset(document: Dict[str, Any], name: Optional[str] = None) -> VolatilityPreset:
    """
    Pick a preset by name, falling back to the document's default preset.

    An unknown name resolves to a neutral preset (every multiplier 1) so the
    game plays the paytable as written.
    """
    presets = load_volatility_presets(document)
    name = name or document.get("default_preset", "medium")
    if name not in presets:
        logger.warning(f"Volatility preset '{name}' not found, using neutral preset")
        return VolatilityPreset(name="neutral")
    return presets[name]
