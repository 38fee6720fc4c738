# tumble_engine/domain/grid/entities/grid.py
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class GridPosition:
    """Zero-indexed cell coordinate; row 0 is the top of the grid."""
    col: int
    row: int

    def to_dict(self) -> Dict[str, int]:
        return {"col": self.col, "row": self.row}


@dataclass
class Symbol:
    """
    A symbol occupying one grid cell.

    Created by grid fill, moved by gravity (position rewritten in place),
    removed when its cluster wins.
    """
    id: str
    position: GridPosition
    cluster_id: Optional[int] = None

    def copy(self) -> "Symbol":
        return Symbol(self.id, self.position, self.cluster_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "position": self.position.to_dict(),
            "cluster_id": self.cluster_id,
        }


# grid[row][col]; None marks an empty cell during cascade processing
Grid = List[List[Optional[Symbol]]]


def copy_grid(grid: Grid) -> Grid:
    """Snapshot a grid so callers never alias the evaluator's cells."""
    return [[cell.copy() if cell is not None else None for cell in row] for row in grid]


def grid_symbol_ids(grid: Grid) -> List[List[Optional[str]]]:
    return [[cell.id if cell is not None else None for cell in row] for row in grid]


@dataclass
class Cluster:
    """Maximal 4-connected group of same-id symbols found in one evaluation pass."""
    id: int
    symbol_id: str
    positions: List[GridPosition] = field(default_factory=list)
    size: int = 0
    payout: float = 0.0

    @property
    def is_winning(self) -> bool:
        return self.payout > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "symbol_id": self.symbol_id,
            "positions": [p.to_dict() for p in self.positions],
            "size": self.size,
            "payout": self.payout,
        }


@dataclass(frozen=True)
class MultiplierHit:
    """A multiplier symbol on the grid and the value drawn for it."""
    position: GridPosition
    value: int

    def to_dict(self) -> Dict[str, Any]:
        return {"position": self.position.to_dict(), "value": self.value}


@dataclass
class WinResult:
    """
    Outcome of evaluating the grid once (one cascade step).

    ``total_payout`` is ``multiplier`` times the summed payout of clusters that
    meet their symbol's minimum size.
    """
    clusters: List[Cluster] = field(default_factory=list)
    total_payout: float = 0.0
    multiplier: int = 1
    scatter_count: int = 0
    free_spins_awarded: int = 0
    multiplier_symbols: List[MultiplierHit] = field(default_factory=list)

    @property
    def winning_clusters(self) -> List[Cluster]:
        return [cluster for cluster in self.clusters if cluster.is_winning]

    @property
    def has_win(self) -> bool:
        """True when this step pays a cluster or awards free spins."""
        return bool(self.winning_clusters) or self.free_spins_awarded > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "clusters": [c.to_dict() for c in self.clusters],
            "total_payout": self.total_payout,
            "multiplier": self.multiplier,
            "scatter_count": self.scatter_count,
            "free_spins_awarded": self.free_spins_awarded,
            "multiplier_symbols": [m.to_dict() for m in self.multiplier_symbols],
        }
