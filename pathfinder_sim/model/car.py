"""Cars and the registry that tracks their lifecycle and run metrics."""

import logging
import math
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from .grid import GridPosition
from .pathfinding import Path

logger = logging.getLogger(__name__)


class CarAccountingError(RuntimeError):
    """Raised when a car would be counted twice in the run metrics."""


class CarState(Enum):
    """Possible states for a car."""
    MOVING = "moving"
    WAITING = "waiting"
    STALLED = "stalled"
    FINISHED = "finished"


class Car:
    """
    A single car travelling from a spawn point to the destination.

    ``position`` is authoritative; ``path[path_index]`` equals it whenever
    the car holds a path. Replanning replaces ``path`` wholesale and resets
    ``path_index`` to 0.
    """

    def __init__(self, car_id: int, position: Tuple[int, int],
                 path: Sequence[Tuple[int, int]], spawn_tick: int,
                 planned_revision: int = 0):
        self.id = car_id
        self.position = GridPosition(*position)
        self.previous_position = self.position
        self.path: Path = [GridPosition(*p) for p in path] or [self.position]
        self.path_index = 0
        self.spawn_tick = spawn_tick
        self.moves = 0
        self.finished = False
        self.state = CarState.MOVING if self.has_next_step() else CarState.STALLED
        self.planned_revision = planned_revision

    def has_next_step(self) -> bool:
        return self.path_index < len(self.path) - 1

    def next_position(self) -> Optional[GridPosition]:
        if not self.has_next_step():
            return None
        return self.path[self.path_index + 1]

    def replace_path(self, path: Optional[Path], revision: int) -> None:
        """Install a freshly planned path; None leaves the car stalled."""
        self.path = list(path) if path else [self.position]
        self.path_index = 0
        self.planned_revision = revision
        if not self.has_next_step():
            self.state = CarState.STALLED

    @property
    def direction(self) -> Tuple[int, int]:
        """Unit (drow, dcol) of the last move, (0, 0) if none."""
        return (self.position.row - self.previous_position.row,
                self.position.col - self.previous_position.col)

    @property
    def progress(self) -> float:
        """Fraction of the current path already travelled (0..1)."""
        if len(self.path) <= 1:
            return 1.0 if self.finished else 0.0
        return self.path_index / (len(self.path) - 1)

    def __repr__(self) -> str:
        return (f"Car(id={self.id}, pos={tuple(self.position)}, "
                f"state={self.state.value})")


class CarManager:
    """
    Owns the live cars, the spawn and finish counters and the raw metric
    samples of a run.

    ``spawned_count`` is compared against ``total_cars`` by the engine;
    ``create_car`` itself never refuses.
    """

    def __init__(self, total_cars: int = 100):
        self.total_cars = total_cars
        self._cars: Dict[int, Car] = {}
        self.spawned_count = 0
        self.finished_count = 0
        self.finish_times: List[int] = []
        self.path_lengths: List[int] = []

    def create_car(self, spawn_position: Tuple[int, int],
                   path: Optional[Sequence[Tuple[int, int]]],
                   current_tick: int, planned_revision: int = 0) -> Car:
        """Create a car at the spawn point with the given path."""
        car = Car(
            car_id=self.spawned_count,
            position=spawn_position,
            path=path or [spawn_position],
            spawn_tick=current_tick,
            planned_revision=planned_revision,
        )
        self.spawned_count += 1
        self._cars[car.id] = car
        return car

    def get_cars(self) -> List[Car]:
        """Live cars in spawn order."""
        return list(self._cars.values())

    def get_car(self, car_id: int) -> Optional[Car]:
        return self._cars.get(car_id)

    @property
    def live_count(self) -> int:
        return len(self._cars)

    @property
    def remaining_to_spawn(self) -> int:
        return max(0, self.total_cars - self.spawned_count)

    def move_car(self, car: Car) -> None:
        """Advance the car one cell along its path."""
        if car.finished or not car.has_next_step():
            return

        car.previous_position = car.position
        car.path_index += 1
        car.position = car.path[car.path_index]
        car.moves += 1
        car.state = CarState.MOVING

    def finish_car(self, car: Car, current_tick: int) -> None:
        """Retire a car and record its travel time and path length."""
        if car.finished or self._cars.get(car.id) is not car:
            raise CarAccountingError(
                f"Car {car.id} has already finished or is not live"
            )

        car.finished = True
        car.state = CarState.FINISHED
        del self._cars[car.id]

        self.finished_count += 1
        self.finish_times.append(current_tick - car.spawn_tick)
        self.path_lengths.append(car.moves)
        logger.debug("Car %d finished after %d ticks, %d moves",
                     car.id, current_tick - car.spawn_tick, car.moves)

    def is_complete(self) -> bool:
        """Check if all cars have been spawned and finished."""
        return self.spawned_count == self.total_cars and not self._cars

    def reset(self) -> None:
        """Clear all state for a fresh run with the same total."""
        self._cars = {}
        self.spawned_count = 0
        self.finished_count = 0
        self.finish_times = []
        self.path_lengths = []

    def get_metrics(self) -> Dict:
        avg_time = (sum(self.finish_times) / len(self.finish_times)
                    if self.finish_times else 0.0)
        shortest_path = min(self.path_lengths) if self.path_lengths else 0

        return {
            'total_cars': self.total_cars,
            'spawned_count': self.spawned_count,
            'finished_count': self.finished_count,
            'live_count': self.live_count,
            # Half-up rounding to one decimal
            'avg_time': math.floor(avg_time * 10 + 0.5) / 10,
            'shortest_path': shortest_path,
        }
