"""State snapshot dataclasses for the pathfinding simulator."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple

from .grid import GridPosition


class EventType(Enum):
    SPAWNED = "spawned"
    MOVED = "moved"
    WAITED = "waited"
    REPLANNED = "replanned"
    STALLED = "stalled"
    FINISHED = "finished"


@dataclass(frozen=True)
class CarEvent:
    """Something that happened to one car during a tick."""
    tick: int
    car_id: int
    event: EventType
    position: GridPosition


@dataclass(frozen=True)
class CarSnapshot:
    """Immutable snapshot of a car, enough for a renderer to interpolate."""
    car_id: int
    row: int
    col: int
    previous: GridPosition
    direction: Tuple[int, int]
    progress: float
    path: Tuple[GridPosition, ...]
    state: str  # "moving", "waiting", "stalled", "finished"

    @property
    def position(self) -> GridPosition:
        return GridPosition(self.row, self.col)


@dataclass(frozen=True)
class SimulationMetrics:
    """Summary of a run: elapsed ticks, mean travel time, shortest path."""
    total_time: int
    avg_time: float
    shortest_path: int
    total_cars: int = 0
    spawned_count: int = 0
    finished_count: int = 0


@dataclass
class SimulationState:
    """Complete snapshot of simulation state at a given tick."""
    tick: int
    is_running: bool
    algorithm: str
    cars: List[CarSnapshot]
    obstacles: FrozenSet[GridPosition]
    metrics: Dict[str, float]
    events: List[CarEvent] = field(default_factory=list)

    def car_at(self, position: Tuple[int, int]) -> Optional[CarSnapshot]:
        for car in self.cars:
            if (car.row, car.col) == tuple(position):
                return car
        return None

    def to_csv_rows(self) -> List[Dict]:
        """Convert to CSV-compatible format."""
        return [
            {
                "tick": self.tick,
                "car_id": c.car_id,
                "row": c.row,
                "col": c.col,
                "state": c.state
            }
            for c in self.cars
        ]
