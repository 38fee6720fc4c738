# tumble_engine/application/simulation/rtp_study.py
import logging
import time
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Dict, List, Optional, Sequence

from ...domain.grid.entities.paytable import GameConfig
from ...domain.grid.services.grid_evaluator import GridEvaluator
from ...domain.grid.services.rtp_simulation import RTPReport, pool_reports
from ...infrastructure.concurrency.task_executor import ExecutionMode, TaskExecutor
from ...infrastructure.rng.rng_provider import RNGProvider


def simulate_seed(game_config: GameConfig, seed, spins: int, bet: float,
                  rng_strategy_name: str = RNGProvider.DEFAULT_STRATEGY) -> RTPReport:
    """Run one independent simulation; module level so worker processes can unpickle it."""
    rng = RNGProvider().get_rng(rng_strategy_name, seed)
    # progress logging is left to the study in worker processes
    return GridEvaluator(game_config, rng).simulate_rtp_report(spins, bet, progress_interval=0)


@dataclass
class RTPStudyResult:
    pooled: RTPReport
    per_seed: List[RTPReport] = field(default_factory=list)
    target_rtp: float = 0.0
    rtp_tolerance: float = 0.0
    wall_time: float = 0.0

    @property
    def within_target(self) -> bool:
        return self.pooled.within_target(self.target_rtp, self.rtp_tolerance)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pooled": self.pooled.to_dict(),
            "per_seed": [r.to_dict() for r in self.per_seed],
            "target_rtp": self.target_rtp,
            "rtp_tolerance": self.rtp_tolerance,
            "within_target": self.within_target,
            "wall_time": round(self.wall_time, 3),
        }


class RTPStudy:
    """
    Runs independent RTP simulations, one generator per seed, and pools them.

    Every run owns its evaluator and generator, so runs can execute on
    threads or processes without sharing state.
    """
    def __init__(self, game_config: GameConfig, task_executor: Optional[TaskExecutor] = None,
                 rng_strategy_name: str = RNGProvider.DEFAULT_STRATEGY):
        self.logger = logging.getLogger("application.simulation.rtp_study")
        self.game_config = game_config
        self.task_executor = task_executor or TaskExecutor(ExecutionMode.SEQUENTIAL)
        self.rng_strategy_name = rng_strategy_name

    def run(self, seeds: Sequence, spins_per_seed: int, bet: float = 1.0) -> RTPStudyResult:
        """
        Simulate ``spins_per_seed`` spins for every seed.

        Args:
            seeds: One seed per independent run
            spins_per_seed: Spins simulated in each run
            bet: Stake per spin

        Returns:
            RTPStudyResult with the pooled report and the per-seed reports
        """
        start_time = time.time()
        self.logger.info(f"Starting RTP study: {len(seeds)} seeds x {spins_per_seed} spins")

        tasks = [
            partial(simulate_seed, self.game_config, seed, spins_per_seed, bet, self.rng_strategy_name)
            for seed in seeds
        ]
        reports = self.task_executor.execute_with_progress(tasks, self._log_progress)
        for seed, report in zip(seeds, reports):
            report.seed = seed

        settings = self.game_config.settings
        result = RTPStudyResult(
            pooled=pool_reports(reports),
            per_seed=reports,
            target_rtp=settings.target_rtp,
            rtp_tolerance=settings.rtp_tolerance,
            wall_time=time.time() - start_time,
        )

        self.logger.info(
            f"RTP study complete: {result.pooled.rtp:.3f}% over {result.pooled.spins} spins "
            f"(target {settings.target_rtp} +/- {settings.rtp_tolerance}, "
            f"{'within' if result.within_target else 'outside'} tolerance)"
        )
        return result

    def _log_progress(self, completed: int, total: int) -> None:
        self.logger.info(f"RTP study progress: {completed}/{total} runs")
