# tumble_engine/domain/grid/services/rtp_simulation.py
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

DEFAULT_PROGRESS_INTERVAL = 10_000

logger = logging.getLogger("domain.grid.rtp_simulation")


@dataclass
class RTPReport:
    """Result of a headless RTP simulation."""
    spins: int
    bet: float
    total_wagered: float
    total_won: float
    rtp: float  # percentage
    hit_frequency: float = 0.0
    max_win: float = 0.0
    std_dev: float = 0.0  # per-spin return, in bet units
    confidence_95: Tuple[float, float] = (0.0, 0.0)  # percentage bounds
    cascades: int = 0
    seed: Optional[Any] = None
    duration: float = 0.0

    def within_target(self, target_rtp: float, tolerance: float) -> bool:
        return target_rtp - tolerance < self.rtp < target_rtp + tolerance

    def to_dict(self) -> Dict[str, Any]:
        return {
            "spins": self.spins,
            "bet": self.bet,
            "total_wagered": round(self.total_wagered, 2),
            "total_won": round(self.total_won, 2),
            "rtp": round(self.rtp, 4),
            "hit_frequency": round(self.hit_frequency, 4),
            "max_win": round(self.max_win, 2),
            "std_dev": round(self.std_dev, 4),
            "confidence_95": [round(x, 4) for x in self.confidence_95],
            "cascades": self.cascades,
            "seed": self.seed,
            "duration": round(self.duration, 3),
        }


def summarize_spin_wins(spin_wins: np.ndarray, bet: float) -> Dict[str, Any]:
    """
    Distribution statistics of per-spin wins.

    Args:
        spin_wins: Array with the total win of every simulated spin
        bet: Stake per spin

    Returns:
        Dictionary with hit_frequency, max_win, std_dev and confidence_95
    """
    if spin_wins.size == 0 or bet <= 0:
        return {"hit_frequency": 0.0, "max_win": 0.0, "std_dev": 0.0, "confidence_95": (0.0, 0.0)}

    returns = spin_wins / bet
    mean = float(np.mean(returns))
    std_dev = float(np.std(returns))
    std_err = std_dev / np.sqrt(returns.size)
    return {
        "hit_frequency": float(np.count_nonzero(spin_wins) / spin_wins.size),
        "max_win": float(np.max(spin_wins)),
        "std_dev": std_dev,
        "confidence_95": (
            (mean - 1.96 * std_err) * 100,
            (mean + 1.96 * std_err) * 100,
        ),
    }


def run_rtp_simulation(evaluator, spins: int, bet: float = 1.0,
                       progress_interval: int = DEFAULT_PROGRESS_INTERVAL) -> RTPReport:
    """
    Play ``spins`` base-game spins through the evaluator alone.

    Each spin fills a fresh grid from the unmodified symbol pool, then
    evaluates and tumbles until no cluster pays or the cascade cap is hit.
    No state machine, balance or delays are involved.

    Args:
        evaluator: GridEvaluator owning the grid and RNG to simulate with
        spins: Number of spins to play
        bet: Stake per spin
        progress_interval: Log progress every this many spins (0 disables)

    Returns:
        RTPReport for the run
    """
    start_time = time.time()
    max_cascades = evaluator.config.settings.max_cascades
    total_won = 0.0
    total_wagered = spins * bet
    total_cascades = 0
    spin_wins = np.zeros(spins, dtype=np.float64)

    logger.info(f"Starting RTP simulation: {spins} spins at {bet} bet")

    symbol_pool = evaluator.generate_symbol_pool()

    for i in range(spins):
        if progress_interval and i % progress_interval == 0 and i > 0:
            logger.info(f"Simulation progress: {i}/{spins} ({total_won / (i * bet) * 100:.2f}% RTP)")

        evaluator.initialize_grid()
        evaluator.fill_empty_positions(symbol_pool)

        spin_win = 0.0
        cascade_count = 0
        while cascade_count < max_cascades:
            result = evaluator.evaluate_win(bet)
            winning = result.winning_clusters
            if not winning:
                break

            total_won += result.total_payout
            spin_win += result.total_payout
            evaluator.remove_winning_symbols(winning)
            evaluator.apply_gravity()
            evaluator.fill_empty_positions(symbol_pool)
            cascade_count += 1

        spin_wins[i] = spin_win
        total_cascades += cascade_count

    rtp = total_won / total_wagered * 100 if total_wagered > 0 else 0.0
    stats = summarize_spin_wins(spin_wins, bet)
    duration = time.time() - start_time

    logger.info(f"RTP Simulation Complete: {rtp:.3f}% over {spins} spins in {duration:.1f}s")

    return RTPReport(
        spins=spins,
        bet=bet,
        total_wagered=total_wagered,
        total_won=total_won,
        rtp=rtp,
        cascades=total_cascades,
        seed=getattr(evaluator.rng, "seed_value", None),
        duration=duration,
        **stats,
    )


def pool_reports(reports: List[RTPReport]) -> RTPReport:
    """Combine independent runs into one report weighted by wager."""
    if not reports:
        return RTPReport(spins=0, bet=0.0, total_wagered=0.0, total_won=0.0, rtp=0.0)

    total_wagered = sum(r.total_wagered for r in reports)
    total_won = sum(r.total_won for r in reports)
    spins = sum(r.spins for r in reports)
    rtps = np.array([r.rtp for r in reports])
    spread = float(np.std(rtps, ddof=1)) if rtps.size > 1 else 0.0
    std_err = spread / np.sqrt(rtps.size) if rtps.size > 1 else 0.0
    rtp = total_won / total_wagered * 100 if total_wagered > 0 else 0.0

    return RTPReport(
        spins=spins,
        bet=reports[0].bet,
        total_wagered=total_wagered,
        total_won=total_won,
        rtp=rtp,
        hit_frequency=sum(r.hit_frequency * r.spins for r in reports) / spins if spins else 0.0,
        max_win=max(r.max_win for r in reports),
        std_dev=sum(r.std_dev for r in reports) / len(reports),
        confidence_95=(rtp - 1.96 * std_err, rtp + 1.96 * std_err),
        cascades=sum(r.cascades for r in reports),
        duration=sum(r.duration for r in reports),
    )
