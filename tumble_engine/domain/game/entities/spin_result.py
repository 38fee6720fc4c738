# tumble_engine/domain/game/entities/spin_result.py
from typing import Dict, List, Any, Optional
from dataclasses import dataclass, field

from ...grid.entities.grid import Grid, WinResult
from .state_machine import GameState


@dataclass
class SpinResult:
    """
    Aggregate outcome of one spin and its whole cascade chain.

    ``win_result`` is the first cascade (a zero result when nothing won);
    ``cascades`` lists every evaluation that won something.
    """
    spin_id: int
    grid: Grid
    win_result: WinResult
    cascades: List[WinResult] = field(default_factory=list)
    total_win: float = 0.0
    new_balance: float = 0.0
    free_spins_awarded: int = 0
    is_free_spin: bool = False
    game_state: GameState = GameState.IDLE

    @property
    def cascade_count(self) -> int:
        return len(self.cascades)

    def to_dict(self) -> Dict[str, Any]:
        """Plain dictionary form, suitable for JSON output."""
        return {
            "spin_id": self.spin_id,
            "grid": [[cell.id if cell is not None else None for cell in row] for row in self.grid],
            "win_result": self.win_result.to_dict(),
            "cascades": [c.to_dict() for c in self.cascades],
            "total_win": self.total_win,
            "new_balance": self.new_balance,
            "free_spins_awarded": self.free_spins_awarded,
            "is_free_spin": self.is_free_spin,
            "game_state": self.game_state.value,
        }


@dataclass
class AutoSpinSettings:
    count: int
    stop_on_win: bool = False
    stop_on_loss: bool = False
    win_threshold: float = 0.0
    loss_threshold: float = 0.0

    @classmethod
    def from_dict(cls, settings: Optional[Dict[str, Any]]) -> "AutoSpinSettings":
        settings = settings or {}
        return cls(
            count=settings.get("count", 0),
            stop_on_win=settings.get("stop_on_win", False),
            stop_on_loss=settings.get("stop_on_loss", False),
            win_threshold=settings.get("win_threshold", 0.0),
            loss_threshold=settings.get("loss_threshold", 0.0),
        )
