# tumble_engine/domain/grid/services/grid_evaluator.py
import logging
import math
from typing import Dict, List, Optional, Sequence, Set, Tuple

from ..entities.grid import (
    Cluster, Grid, GridPosition, MultiplierHit, Symbol, WinResult, copy_grid,
)
from ..entities.paytable import (
    MAX_TOTAL_MULTIPLIER, MULTIPLIER_ID, SCATTER_ID, GameConfig, VolatilityPreset, lookup_table,
)
from .rtp_simulation import DEFAULT_PROGRESS_INTERVAL, RTPReport, run_rtp_simulation

_NEIGHBOURS = ((-1, 0), (1, 0), (0, -1), (0, 1))


class GridEvaluator:
    """
    Owns the symbol grid and evaluates it for cluster wins.

    Cluster detection is a 4-directional flood fill; payouts, scatter counts
    and free-spin multipliers are resolved from the paytable. The evaluator
    also performs the tumble mechanics (removal, gravity, refill).
    """

    def __init__(self, config: GameConfig, rng, volatility: Optional[VolatilityPreset] = None):
        """
        Initialize the evaluator.

        Args:
            config: Paytable configuration
            rng: RNG strategy used for refills and multiplier values
            volatility: Optional preset overriding multiplier weights and cap
        """
        self.logger = logging.getLogger("domain.grid.evaluator")
        self.config = config
        self.rng = rng
        self.columns = config.settings.columns
        self.rows = config.settings.rows

        self._symbols = {s.id: s for s in config.symbols}
        self._scatter = config.get_special(SCATTER_ID)
        self._multiplier_values, self._multiplier_weights = self._resolve_multiplier_weights(volatility)
        self._max_multiplier = MAX_TOTAL_MULTIPLIER
        if volatility is not None:
            self._max_multiplier = min(MAX_TOTAL_MULTIPLIER, volatility.max_multiplier_per_spin)

        self._cluster_id = 0
        self.grid: Grid = []
        self.initialize_grid()

    def _resolve_multiplier_weights(self, volatility: Optional[VolatilityPreset]) -> Tuple[List[int], List[float]]:
        special = self.config.get_special(MULTIPLIER_ID)
        if special is None or not special.values:
            return [], []

        values = list(special.values)
        weights = list(special.weights)
        if volatility is not None and volatility.multiplier_value_weights:
            overrides = volatility.multiplier_value_weights
            weights = [overrides.get(value, weight) for value, weight in zip(values, weights)]
        return values, weights

    # --- grid state -------------------------------------------------------

    def initialize_grid(self) -> None:
        """Reset to an all-empty grid at the configured dimensions."""
        self.grid = [[None] * self.columns for _ in range(self.rows)]

    def set_grid(self, grid: Grid) -> bool:
        """
        Replace the grid with a copy of ``grid``.

        Returns:
            False (grid unchanged) if the dimensions do not match the configuration
        """
        if len(grid) != self.rows or any(len(row) != self.columns for row in grid):
            self.logger.error(f"Rejected grid with wrong dimensions, expected {self.columns}x{self.rows}")
            return False
        self.grid = copy_grid(grid)
        return True

    def set_grid_from_ids(self, symbol_ids: Sequence[Sequence[Optional[str]]]) -> bool:
        """Build and set a grid from rows of symbol ids (None for empty)."""
        grid = [
            [Symbol(symbol_id, GridPosition(col, row)) if symbol_id is not None else None
             for col, symbol_id in enumerate(row_ids)]
            for row, row_ids in enumerate(symbol_ids)
        ]
        return self.set_grid(grid)

    def get_grid(self) -> Grid:
        """Snapshot of the current grid."""
        return copy_grid(self.grid)

    def in_bounds(self, col: int, row: int) -> bool:
        return 0 <= col < self.columns and 0 <= row < self.rows

    def get_symbol_at(self, position: GridPosition) -> Optional[Symbol]:
        if not self.in_bounds(position.col, position.row):
            return None
        return self.grid[position.row][position.col]

    # --- evaluation -------------------------------------------------------

    def evaluate_win(self, bet: float, is_free_spin: bool = False) -> WinResult:
        """
        Evaluate the current grid.

        Symbol placement is left untouched; only ``cluster_id`` is annotated
        on each symbol. Multiplier symbols are resolved only in free spins,
        drawing one value each from the RNG.

        Args:
            bet: Stake the payout table multiplies
            is_free_spin: Whether multiplier symbols apply

        Returns:
            WinResult for this cascade step
        """
        self._cluster_id = 0
        clusters = self._find_clusters()
        scatter_count = self._count_scatters()
        multiplier_symbols = self._find_multiplier_symbols() if is_free_spin else []

        base_payout = 0.0
        for cluster in clusters:
            symbol = self._symbols.get(cluster.symbol_id)
            if symbol is not None and cluster.size >= symbol.min_cluster:
                cluster.payout = symbol.payout_for(cluster.size) * bet
                base_payout += cluster.payout

        free_spins_awarded = 0
        if self._scatter is not None and scatter_count >= self._scatter.min_count:
            free_spins_awarded = int(lookup_table(self._scatter.free_spins_table, scatter_count))

        multiplier = 1
        if is_free_spin and multiplier_symbols:
            for hit in multiplier_symbols:
                multiplier *= hit.value
            multiplier = min(multiplier, self._max_multiplier)

        result = WinResult(
            clusters=clusters,
            total_payout=base_payout * multiplier,
            multiplier=multiplier,
            scatter_count=scatter_count,
            free_spins_awarded=free_spins_awarded,
            multiplier_symbols=multiplier_symbols,
        )
        self.logger.debug(
            f"Evaluated grid: {len(clusters)} clusters, {len(result.winning_clusters)} winning, "
            f"payout={result.total_payout}, scatters={scatter_count}, multiplier={multiplier}"
        )
        return result

    def _find_clusters(self) -> List[Cluster]:
        clusters = []
        visited: Set[Tuple[int, int]] = set()

        for row in range(self.rows):
            for col in range(self.columns):
                if (col, row) not in visited and self.grid[row][col] is not None:
                    clusters.append(self._flood_fill(col, row, visited))

        return clusters

    def _flood_fill(self, start_col: int, start_row: int, visited: Set[Tuple[int, int]]) -> Cluster:
        symbol_id = self.grid[start_row][start_col].id
        cluster = Cluster(id=self._cluster_id, symbol_id=symbol_id)
        self._cluster_id += 1

        stack = [(start_col, start_row)]
        while stack:
            col, row = stack.pop()
            if (col, row) in visited or not self.in_bounds(col, row):
                continue
            symbol = self.grid[row][col]
            if symbol is None or symbol.id != symbol_id:
                continue

            visited.add((col, row))
            cluster.positions.append(GridPosition(col, row))
            symbol.cluster_id = cluster.id

            for d_col, d_row in _NEIGHBOURS:
                stack.append((col + d_col, row + d_row))

        cluster.size = len(cluster.positions)
        return cluster

    def _count_scatters(self) -> int:
        return sum(
            1 for row in self.grid for symbol in row
            if symbol is not None and symbol.id == SCATTER_ID
        )

    def _find_multiplier_symbols(self) -> List[MultiplierHit]:
        if not self._multiplier_values:
            return []

        hits = []
        for row in range(self.rows):
            for col in range(self.columns):
                symbol = self.grid[row][col]
                if symbol is not None and symbol.id == MULTIPLIER_ID:
                    value = self.rng.weighted_choice(self._multiplier_values, self._multiplier_weights)
                    hits.append(MultiplierHit(GridPosition(col, row), value))
        return hits

    # --- tumble mechanics -------------------------------------------------

    def remove_winning_symbols(self, clusters: Sequence[Cluster]) -> None:
        """Empty every in-bounds position referenced by the given clusters."""
        for cluster in clusters:
            for position in cluster.positions:
                if self.in_bounds(position.col, position.row):
                    self.grid[position.row][position.col] = None

    def apply_gravity(self) -> None:
        """
        Drop symbols to the bottom of each column.

        Relative vertical order is preserved and empty cells collect at the top.
        """
        for col in range(self.columns):
            column = [self.grid[row][col] for row in range(self.rows - 1, -1, -1)
                      if self.grid[row][col] is not None]

            for row in range(self.rows):
                self.grid[row][col] = None

            for i, symbol in enumerate(column):
                target_row = self.rows - 1 - i
                symbol.position = GridPosition(col, target_row)
                self.grid[target_row][col] = symbol

    def fill_empty_positions(self, symbol_pool: Sequence[str]) -> None:
        """
        Fill every empty cell with a symbol drawn uniformly from ``symbol_pool``.

        Cells are visited column by column, top to bottom.

        Raises:
            IndexError: If the pool is empty and a cell needs filling
        """
        for col in range(self.columns):
            for row in range(self.rows):
                if self.grid[row][col] is None:
                    self.grid[row][col] = Symbol(self.rng.choice(symbol_pool), GridPosition(col, row))

    def generate_symbol_pool(self, volatility_multipliers: Optional[Dict[str, float]] = None) -> List[str]:
        """
        Build the sampling population for refills.

        Each symbol appears ``round(rarity * multiplier)`` times, so repetition
        count is the weight.

        Args:
            volatility_multipliers: Optional per-symbol rarity multipliers

        Returns:
            Flat list of symbol ids
        """
        multipliers = volatility_multipliers or {}
        pool = []
        for symbol in list(self.config.symbols) + list(self.config.special_symbols):
            # half-up rounding
            count = math.floor(symbol.rarity * multipliers.get(symbol.id, 1.0) + 0.5)
            pool.extend([symbol.id] * max(0, count))
        return pool

    # --- statistics -------------------------------------------------------

    def simulate_rtp(self, spins: int = 100_000, bet: float = 1.0,
                     progress_interval: int = DEFAULT_PROGRESS_INTERVAL) -> float:
        """
        Estimate the base-game return to player.

        Returns:
            RTP as a percentage of total wagered
        """
        return self.simulate_rtp_report(spins, bet, progress_interval).rtp

    def simulate_rtp_report(self, spins: int = 100_000, bet: float = 1.0,
                            progress_interval: int = DEFAULT_PROGRESS_INTERVAL) -> RTPReport:
        return run_rtp_simulation(self, spins, bet, progress_interval)
