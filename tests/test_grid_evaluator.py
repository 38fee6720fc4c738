# tests/test_grid_evaluator.py
import unittest
import sys
import os
import logging

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from tumble_engine.domain.grid.entities.grid import GridPosition, Symbol, grid_symbol_ids
from tumble_engine.domain.grid.entities.paytable import GameConfig, VolatilityPreset, lookup_table
from tumble_engine.domain.grid.services.grid_evaluator import GridEvaluator
from tumble_engine.infrastructure.rng.strategies.sfc32_rng import SeededRNG

logging.basicConfig(level=logging.WARNING)

COLUMNS, ROWS = 6, 5


def make_config(symbols=None, special_symbols=None, max_cascades=20):
    return GameConfig.from_dict({
        "game_settings": {
            "grid_size": {"columns": COLUMNS, "rows": ROWS},
            "target_rtp": 96.0,
            "rtp_tolerance": 2.5,
            "max_cascades": max_cascades,
        },
        "symbols": symbols if symbols is not None else [
            {"id": "candy_red", "rarity": 10, "min_cluster": 5, "payout_table": {"8": 2.0}},
        ],
        "special_symbols": special_symbols or [],
    })


def filler_ids():
    """A 6x5 grid of ids that are all distinct and absent from any paytable."""
    return [[f"filler_{row}_{col}" for col in range(COLUMNS)] for row in range(ROWS)]


class TestClusterDetection(unittest.TestCase):

    def setUp(self):
        self.evaluator = GridEvaluator(make_config(), SeededRNG("clusters"))

    def test_vertical_cluster_of_three(self):
        ids = filler_ids()
        for row in range(3):
            ids[row][0] = "candy_red"
        self.assertTrue(self.evaluator.set_grid_from_ids(ids))

        result = self.evaluator.evaluate_win(1)
        red = [c for c in result.clusters if c.symbol_id == "candy_red"]

        self.assertEqual(len(red), 1)
        self.assertEqual(red[0].size, 3)
        self.assertEqual(set(red[0].positions), {GridPosition(0, 0), GridPosition(0, 1), GridPosition(0, 2)})
        # every other cell is a singleton cluster
        self.assertEqual(len(result.clusters), 1 + (COLUMNS * ROWS - 3))

    def test_diagonal_cells_are_not_connected(self):
        ids = filler_ids()
        ids[0][0] = ids[1][1] = ids[2][2] = "candy_red"
        self.evaluator.set_grid_from_ids(ids)

        red = [c for c in self.evaluator.evaluate_win(1).clusters if c.symbol_id == "candy_red"]
        self.assertEqual(sorted(c.size for c in red), [1, 1, 1])

    def test_cluster_ids_restart_each_evaluation(self):
        self.evaluator.set_grid_from_ids(filler_ids())
        first = self.evaluator.evaluate_win(1)
        second = self.evaluator.evaluate_win(1)
        self.assertEqual([c.id for c in first.clusters], list(range(COLUMNS * ROWS)))
        self.assertEqual([c.id for c in second.clusters], [c.id for c in first.clusters])

    def test_evaluation_annotates_but_does_not_move_symbols(self):
        rng = SeededRNG("placement")
        evaluator = GridEvaluator(make_config(), rng)
        evaluator.fill_empty_positions(["candy_red", "a", "b"])
        before = grid_symbol_ids(evaluator.grid)

        result = evaluator.evaluate_win(1)

        self.assertEqual(grid_symbol_ids(evaluator.grid), before)
        for cluster in result.clusters:
            for position in cluster.positions:
                self.assertEqual(evaluator.grid[position.row][position.col].cluster_id, cluster.id)

    def test_clusters_partition_occupied_cells(self):
        pool = ["candy_red", "candy_blue", "candy_green", "scatter"]
        for seed in range(40):
            evaluator = GridEvaluator(make_config(), SeededRNG(seed))
            evaluator.fill_empty_positions(pool)
            # punch a few holes so empty cells are exercised too
            for col in range(0, COLUMNS, 2):
                evaluator.grid[seed % ROWS][col] = None

            result = evaluator.evaluate_win(1)
            occupied = sum(1 for row in evaluator.grid for cell in row if cell is not None)
            positions = [p for c in result.clusters for p in c.positions]

            self.assertEqual(sum(c.size for c in result.clusters), occupied)
            self.assertEqual(len(positions), len(set(positions)))
            for cluster in result.clusters:
                for position in cluster.positions:
                    self.assertEqual(evaluator.grid[position.row][position.col].id, cluster.symbol_id)


class TestPayouts(unittest.TestCase):

    def setUp(self):
        self.evaluator = GridEvaluator(make_config(), SeededRNG("payouts"))

    def _grid_with_red(self, cells):
        ids = filler_ids()
        for col, row in cells:
            ids[row][col] = "candy_red"
        self.evaluator.set_grid_from_ids(ids)

    def test_cluster_of_eight_pays_table_value(self):
        # full top row plus two cells below it
        self._grid_with_red([(c, 0) for c in range(6)] + [(0, 1), (1, 1)])

        result = self.evaluator.evaluate_win(1)

        self.assertEqual(result.total_payout, 2.0)
        self.assertEqual(len(result.winning_clusters), 1)
        self.assertEqual(result.winning_clusters[0].payout, 2.0)
        self.assertEqual(result.winning_clusters[0].size, 8)

    def test_payout_scales_with_bet(self):
        self._grid_with_red([(c, 0) for c in range(6)] + [(0, 1), (1, 1)])
        self.assertEqual(self.evaluator.evaluate_win(2.5).total_payout, 5.0)

    def test_sub_minimum_cluster_reported_but_pays_zero(self):
        self._grid_with_red([(0, 0), (0, 1), (0, 2)])

        result = self.evaluator.evaluate_win(1)
        red = [c for c in result.clusters if c.symbol_id == "candy_red"]

        self.assertEqual(len(red), 1)
        self.assertEqual(red[0].payout, 0)
        self.assertEqual(result.total_payout, 0)
        self.assertFalse(result.has_win)

    def test_untabulated_size_at_or_below_max_pays_zero(self):
        # size 6 has no entry and 8 is the largest key
        self._grid_with_red([(c, 0) for c in range(6)])
        self.assertEqual(self.evaluator.evaluate_win(1).total_payout, 0)

    def test_size_above_largest_key_clamps(self):
        self._grid_with_red([(c, r) for r in range(2) for c in range(6)])
        self.assertEqual(self.evaluator.evaluate_win(1).total_payout, 2.0)

    def test_unknown_symbol_pays_zero(self):
        self.evaluator.set_grid_from_ids([["mystery"] * COLUMNS for _ in range(ROWS)])
        result = self.evaluator.evaluate_win(1)
        self.assertEqual(len(result.clusters), 1)
        self.assertEqual(result.clusters[0].size, 30)
        self.assertEqual(result.total_payout, 0)

    def test_lookup_table(self):
        table = {4: 10, 6: 15}
        self.assertEqual(lookup_table(table, 4), 10)
        self.assertEqual(lookup_table(table, 5), 0)
        self.assertEqual(lookup_table(table, 9), 15)
        self.assertEqual(lookup_table(table, 2), 0)
        self.assertEqual(lookup_table({}, 3), 0)


class TestScatterAndMultipliers(unittest.TestCase):

    SCATTER = {"id": "scatter", "rarity": 3, "min_count": 4, "free_spins_table": {"4": 10, "5": 12, "6": 15}}
    MULTIPLIER = {"id": "multiplier", "rarity": 2, "values": [100], "weights": [1]}

    def _evaluator(self, volatility=None):
        config = make_config(special_symbols=[self.SCATTER, self.MULTIPLIER])
        return GridEvaluator(config, SeededRNG("specials"), volatility)

    @staticmethod
    def _ids_with(symbol_id, count):
        ids = filler_ids()
        # spread out so adjacency does not matter
        cells = [(c, r) for r in range(ROWS) for c in range(COLUMNS) if (c + r) % 2 == 0]
        for col, row in cells[:count]:
            ids[row][col] = symbol_id
        return ids

    def test_four_scatters_award_free_spins(self):
        evaluator = self._evaluator()
        evaluator.set_grid_from_ids(self._ids_with("scatter", 4))
        result = evaluator.evaluate_win(1)
        self.assertEqual(result.scatter_count, 4)
        self.assertEqual(result.free_spins_awarded, 10)
        self.assertTrue(result.has_win)

    def test_three_scatters_award_nothing(self):
        evaluator = self._evaluator()
        evaluator.set_grid_from_ids(self._ids_with("scatter", 3))
        result = evaluator.evaluate_win(1)
        self.assertEqual(result.scatter_count, 3)
        self.assertEqual(result.free_spins_awarded, 0)

    def test_scatter_count_above_table_clamps(self):
        evaluator = self._evaluator()
        evaluator.set_grid_from_ids(self._ids_with("scatter", 9))
        self.assertEqual(evaluator.evaluate_win(1).free_spins_awarded, 15)

    def test_multiplier_product_capped_at_1000(self):
        evaluator = self._evaluator()
        evaluator.set_grid_from_ids(self._ids_with("multiplier", 3))

        result = evaluator.evaluate_win(1, is_free_spin=True)

        self.assertEqual(len(result.multiplier_symbols), 3)
        self.assertTrue(all(hit.value == 100 for hit in result.multiplier_symbols))
        self.assertEqual(result.multiplier, 1000)

    def test_multiplier_scales_cluster_payout(self):
        config = make_config(special_symbols=[self.SCATTER,
                                              {"id": "multiplier", "rarity": 2, "values": [3], "weights": [1]}])
        evaluator = GridEvaluator(config, SeededRNG("scale"))
        ids = filler_ids()
        for col in range(6):
            ids[0][col] = "candy_red"
        ids[1][0] = ids[1][1] = "candy_red"
        ids[4][5] = "multiplier"
        evaluator.set_grid_from_ids(ids)

        result = evaluator.evaluate_win(1, is_free_spin=True)
        self.assertEqual(result.multiplier, 3)
        self.assertEqual(result.total_payout, 6.0)

    def test_multipliers_ignored_outside_free_spins(self):
        evaluator = self._evaluator()
        evaluator.set_grid_from_ids(self._ids_with("multiplier", 3))
        state = evaluator.rng.get_state()

        result = evaluator.evaluate_win(1, is_free_spin=False)

        self.assertEqual(result.multiplier, 1)
        self.assertEqual(result.multiplier_symbols, [])
        # no draws were made
        self.assertEqual(evaluator.rng.get_state(), state)

    def test_volatility_cap_and_weights(self):
        preset = VolatilityPreset(name="capped", max_multiplier_per_spin=50)
        evaluator = self._evaluator(preset)
        evaluator.set_grid_from_ids(self._ids_with("multiplier", 2))
        self.assertEqual(evaluator.evaluate_win(1, is_free_spin=True).multiplier, 50)

        config = make_config(special_symbols=[
            {"id": "multiplier", "rarity": 2, "values": [2, 100], "weights": [1, 1]}
        ])
        only_twos = VolatilityPreset(name="twos", multiplier_value_weights={100: 0})
        evaluator = GridEvaluator(config, SeededRNG("weights"), only_twos)
        evaluator.set_grid_from_ids(self._ids_with("multiplier", 5))
        result = evaluator.evaluate_win(1, is_free_spin=True)
        self.assertEqual({hit.value for hit in result.multiplier_symbols}, {2})
        self.assertEqual(result.multiplier, 32)


class TestTumbleMechanics(unittest.TestCase):

    def setUp(self):
        self.evaluator = GridEvaluator(make_config(), SeededRNG("tumble"))

    def test_remove_winning_symbols(self):
        ids = filler_ids()
        for col in range(6):
            ids[0][col] = "candy_red"
        ids[1][0] = ids[1][1] = "candy_red"
        self.evaluator.set_grid_from_ids(ids)

        result = self.evaluator.evaluate_win(1)
        self.evaluator.remove_winning_symbols(result.winning_clusters)

        empty = {(c, r) for r in range(ROWS) for c in range(COLUMNS) if self.evaluator.grid[r][c] is None}
        self.assertEqual(empty, {(c, 0) for c in range(6)} | {(0, 1), (1, 1)})

    def test_gravity_drops_symbols_and_keeps_order(self):
        ids = [
            ["a", None, "x", None, None, None],
            [None, "b", None, None, "p", None],
            ["c", None, "y", None, None, None],
            [None, None, None, None, "q", None],
            ["d", "e", None, None, None, None],
        ]
        self.evaluator.set_grid_from_ids(ids)
        self.evaluator.apply_gravity()
        grid = self.evaluator.grid

        self.assertEqual([grid[r][0].id if grid[r][0] else None for r in range(ROWS)], [None, None, "a", "c", "d"])
        self.assertEqual([grid[r][1].id if grid[r][1] else None for r in range(ROWS)], [None, None, None, "b", "e"])
        self.assertEqual([grid[r][2].id if grid[r][2] else None for r in range(ROWS)], [None, None, None, "x", "y"])
        self.assertEqual([grid[r][4].id if grid[r][4] else None for r in range(ROWS)], [None, None, None, "p", "q"])
        self.assertTrue(all(grid[r][3] is None and grid[r][5] is None for r in range(ROWS)))

        for row in range(ROWS):
            for col in range(COLUMNS):
                if grid[row][col] is not None:
                    self.assertEqual(grid[row][col].position, GridPosition(col, row))

    def test_gravity_invariant_on_random_grids(self):
        for seed in range(25):
            evaluator = GridEvaluator(make_config(), SeededRNG(seed))
            evaluator.fill_empty_positions(["a", "b", "c"])
            for row in range(ROWS):
                for col in range(COLUMNS):
                    if evaluator.rng.chance(0.4):
                        evaluator.grid[row][col] = None
            columns_before = [
                [evaluator.grid[r][c].id for r in range(ROWS) if evaluator.grid[r][c] is not None]
                for c in range(COLUMNS)
            ]

            evaluator.apply_gravity()

            for col in range(COLUMNS):
                cells = [evaluator.grid[r][col] for r in range(ROWS)]
                first_occupied = next((i for i, cell in enumerate(cells) if cell is not None), ROWS)
                self.assertTrue(all(cell is not None for cell in cells[first_occupied:]))
                self.assertEqual([cell.id for cell in cells[first_occupied:]], columns_before[col])

    def test_fill_empty_positions_only_fills_gaps(self):
        ids = filler_ids()
        ids[0][0] = None
        ids[2][3] = None
        self.evaluator.set_grid_from_ids(ids)

        self.evaluator.fill_empty_positions(["candy_red"])

        self.assertEqual(self.evaluator.grid[0][0].id, "candy_red")
        self.assertEqual(self.evaluator.grid[2][3].id, "candy_red")
        self.assertEqual(self.evaluator.grid[2][3].position, GridPosition(3, 2))
        self.assertEqual(self.evaluator.grid[1][1].id, "filler_1_1")

    def test_fill_from_empty_pool_raises(self):
        with self.assertRaises(IndexError):
            self.evaluator.fill_empty_positions([])

    def test_fill_is_reproducible(self):
        a = GridEvaluator(make_config(), SeededRNG("fill"))
        b = GridEvaluator(make_config(), SeededRNG("fill"))
        pool = ["a", "b", "c", "d"]
        a.fill_empty_positions(pool)
        b.fill_empty_positions(pool)
        self.assertEqual(grid_symbol_ids(a.grid), grid_symbol_ids(b.grid))


class TestGridState(unittest.TestCase):

    def setUp(self):
        self.evaluator = GridEvaluator(make_config(), SeededRNG("state"))

    def test_initialize_grid_is_empty(self):
        self.evaluator.fill_empty_positions(["a"])
        self.evaluator.initialize_grid()
        self.assertEqual(len(self.evaluator.grid), ROWS)
        self.assertTrue(all(len(row) == COLUMNS for row in self.evaluator.grid))
        self.assertTrue(all(cell is None for row in self.evaluator.grid for cell in row))

    def test_set_grid_rejects_wrong_dimensions(self):
        self.evaluator.set_grid_from_ids(filler_ids())
        self.assertFalse(self.evaluator.set_grid_from_ids([["a"] * 5 for _ in range(5)]))
        self.assertEqual(grid_symbol_ids(self.evaluator.grid), filler_ids())

    def test_get_grid_is_a_snapshot(self):
        self.evaluator.set_grid_from_ids(filler_ids())
        snapshot = self.evaluator.get_grid()
        snapshot[0][0] = None
        snapshot[1][1].id = "changed"
        self.assertEqual(self.evaluator.grid[0][0].id, "filler_0_0")
        self.assertEqual(self.evaluator.grid[1][1].id, "filler_1_1")

    def test_set_grid_copies_input(self):
        grid = [[Symbol("a", GridPosition(c, r)) for c in range(COLUMNS)] for r in range(ROWS)]
        self.evaluator.set_grid(grid)
        grid[0][0].id = "changed"
        self.assertEqual(self.evaluator.grid[0][0].id, "a")

    def test_get_symbol_at_bounds_checked(self):
        self.evaluator.set_grid_from_ids(filler_ids())
        self.assertEqual(self.evaluator.get_symbol_at(GridPosition(5, 4)).id, "filler_4_5")
        self.assertIsNone(self.evaluator.get_symbol_at(GridPosition(6, 0)))
        self.assertIsNone(self.evaluator.get_symbol_at(GridPosition(0, -1)))


class TestSymbolPool(unittest.TestCase):

    def test_pool_counts_follow_rarity(self):
        config = make_config(
            symbols=[
                {"id": "a", "rarity": 3, "min_cluster": 5, "payout_table": {}},
                {"id": "b", "rarity": 2.5, "min_cluster": 5, "payout_table": {}},
                {"id": "c", "rarity": 0.4, "min_cluster": 5, "payout_table": {}},
            ],
            special_symbols=[{"id": "scatter", "rarity": 1}],
        )
        evaluator = GridEvaluator(config, SeededRNG("pool"))

        # half-up rounding: 2.5 -> 3, 0.4 -> absent
        self.assertEqual(evaluator.generate_symbol_pool(),
                         ["a", "a", "a", "b", "b", "b", "scatter"])

    def test_pool_with_volatility_multipliers(self):
        config = make_config(
            symbols=[{"id": "a", "rarity": 10, "min_cluster": 5, "payout_table": {}}],
            special_symbols=[{"id": "scatter", "rarity": 2}],
        )
        evaluator = GridEvaluator(config, SeededRNG("pool"))
        preset = VolatilityPreset(name="p", symbol_rarity_multiplier={"a": 0.5}, scatter_frequency_boost=2.0)

        pool = evaluator.generate_symbol_pool(preset.pool_multipliers())
        self.assertEqual(pool.count("a"), 5)
        self.assertEqual(pool.count("scatter"), 4)


if __name__ == "__main__":
    unittest.main()
