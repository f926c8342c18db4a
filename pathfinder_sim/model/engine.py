"""Simulation engine for the grid pathfinding simulator."""

import logging
import time
from enum import Enum
from typing import Callable, List, Optional, Set, Tuple, TYPE_CHECKING

import numpy as np

from ..config import ConfigError
from .grid import Grid, GridPosition
from .car import Car, CarManager, CarState
from .pathfinding import ALGORITHMS, FrontierSearch, Path, get_algorithm
from .state import (CarEvent, CarSnapshot, EventType, SimulationMetrics,
                    SimulationState)

if TYPE_CHECKING:
    from ..config import SimulationConfig

logger = logging.getLogger(__name__)


class EngineStatus(Enum):
    IDLE = "idle"
    RUNNING = "running"


class SimulationEngine:
    """
    Orchestrates the discrete-time simulation loop.

    Each tick:
    1. Finish cars already standing on the destination
    2. Re-plan cars whose next cell became an obstacle, or whose stalled
       route may have been reopened by an obstacle edit
    3. Move cars into free cells, in spawn order (first come, first served)
    4. Spawn new cars every ``spawn_interval`` ticks at free spawn points
    5. Notify observers and detect completion

    The caller serialises ``tick`` and obstacle edits; edits are seen by
    the very next tick.
    """

    def __init__(self, config: "SimulationConfig"):
        config.validate()
        self.config = config
        try:
            self.algorithm: FrontierSearch = get_algorithm(config.algorithm)
        except KeyError as e:
            raise ConfigError(e.args[0]) from None

        self.rng = np.random.default_rng(config.seed)

        # Initialize grid
        self.grid = Grid(config.grid.rows, config.grid.cols,
                         config.layout.destination, config.layout.spawn_points)
        self._setup_walls()

        self.car_manager = CarManager(config.total_cars)

        self.tick_count = 0
        self.status = EngineStatus.IDLE
        self._last_events: List[CarEvent] = []
        self._final_metrics: Optional[SimulationMetrics] = None

        # Callbacks
        self._on_tick: Callable[[SimulationState], None] = lambda state: None
        self._on_complete: Callable[[SimulationMetrics], None] = lambda metrics: None

    def _setup_walls(self) -> None:
        """Configure walls and random obstacles from config."""
        for wall_spec in self.config.layout.walls:
            if wall_spec.wall_type == "rectangle":
                self.grid.add_wall_rectangle(
                    wall_spec.data['row'], wall_spec.data['col'],
                    wall_spec.data['height'], wall_spec.data['width']
                )
            elif wall_spec.wall_type == "points":
                self.grid.add_wall_points(wall_spec.data['cells'])

        random_spec = self.config.layout.random_obstacles
        if random_spec is not None and random_spec.density > 0:
            free = [cell for cell in np.argwhere(~self.grid.walls)
                    if not self.grid.is_protected((int(cell[0]), int(cell[1])))]
            count = int(random_spec.density * len(free))
            for idx in self.rng.choice(len(free), size=count, replace=False):
                row, col = free[idx]
                self.grid.add_obstacle((int(row), int(col)))

        unreachable = self.grid.unreachable_spawn_points()
        if unreachable:
            logger.warning("Spawn points with no route to %s: %s",
                           tuple(self.grid.destination),
                           [tuple(p) for p in unreachable])

    # Callbacks

    def set_on_tick(self, callback: Optional[Callable[[SimulationState], None]]) -> None:
        self._on_tick = callback or (lambda state: None)

    def set_on_complete(self, callback: Optional[Callable[[SimulationMetrics], None]]) -> None:
        self._on_complete = callback or (lambda metrics: None)

    # Algorithm selection

    def set_algorithm(self, name: str) -> None:
        """Switch the algorithm used for all subsequent planning calls."""
        self.algorithm = get_algorithm(name)
        logger.info("Algorithm set to %s", self.algorithm.name)

    def get_algorithm(self) -> FrontierSearch:
        return self.algorithm

    def get_available_algorithms(self) -> List[str]:
        return list(ALGORITHMS)

    # Obstacle edits

    def add_obstacle(self, position: Tuple[int, int]) -> None:
        self.grid.add_obstacle(position)

    def remove_obstacle(self, position: Tuple[int, int]) -> None:
        self.grid.remove_obstacle(position)

    def clear_obstacles(self) -> None:
        self.grid.clear_obstacles()

    # Lifecycle

    @property
    def is_running(self) -> bool:
        return self.status == EngineStatus.RUNNING

    def start(self) -> None:
        """Reset the run and spawn the first car at the first spawn point."""
        if self.is_running:
            self.stop()

        self.tick_count = 0
        self.car_manager.reset()
        self._final_metrics = None
        self.status = EngineStatus.RUNNING

        events: List[CarEvent] = []
        self._spawn_car(self.grid.spawn_points[0], events)
        self._last_events = events
        logger.info("Simulation started: %dx%d grid, %d cars, algorithm %s",
                    self.grid.rows, self.grid.cols,
                    self.car_manager.total_cars, self.algorithm.name)

    def stop(self) -> None:
        """Halt the run. Safe to call repeatedly."""
        if self.is_running:
            logger.info("Simulation stopped at tick %d", self.tick_count)
        self.status = EngineStatus.IDLE

    def is_finished(self, max_ticks: Optional[int] = None) -> bool:
        """Check if the tick loop should terminate."""
        limit = max_ticks if max_ticks is not None else self.config.max_ticks
        return (not self.is_running or
                (limit is not None and self.tick_count >= limit))

    def run(self, max_ticks: Optional[int] = None,
            realtime: bool = False) -> SimulationMetrics:
        """
        Drive ``tick`` until the run completes, ``stop`` is called or the
        tick limit is reached. With ``realtime`` the loop sleeps
        ``tick_interval`` seconds between ticks.
        """
        while not self.is_finished(max_ticks):
            self.tick()
            if realtime and self.is_running:
                time.sleep(self.config.tick_interval)
        self.stop()
        return self.get_metrics()

    # Tick

    def tick(self) -> SimulationState:
        """
        Execute one discrete time step and return the resulting snapshot.
        Does nothing while the engine is idle.
        """
        if not self.is_running:
            return self.get_state()

        self.tick_count += 1
        events: List[CarEvent] = []

        occupied: Set[GridPosition] = {
            car.position for car in self.car_manager.get_cars()
        }

        for car in self.car_manager.get_cars():
            self._process_car(car, occupied, events)

        if (self.tick_count % self.config.spawn_interval == 0
                and self.car_manager.remaining_to_spawn > 0):
            self._spawn_new_cars(occupied, events)

        self._last_events = events
        state = self._create_state_snapshot(events)
        self._on_tick(state)

        if self.car_manager.is_complete():
            self.stop()
            self._final_metrics = self.get_metrics()
            logger.info("Simulation complete after %d ticks: avg time %.1f, "
                        "shortest path %d", self._final_metrics.total_time,
                        self._final_metrics.avg_time,
                        self._final_metrics.shortest_path)
            state.is_running = False
            self._on_complete(self._final_metrics)

        return state

    def _process_car(self, car: Car, occupied: Set[GridPosition],
                     events: List[CarEvent]) -> None:
        """Finish, re-plan, move or hold a single car."""
        car.previous_position = car.position
        if self.grid.is_destination(car.position):
            self._finish_car(car, occupied, events)
            return

        next_position = car.next_position()
        if next_position is not None:
            if self.grid.is_obstacle(next_position):
                self._replan(car, events)
        elif car.planned_revision != self.grid.revision:
            # Stalled: retry only once the layout has changed
            self._replan(car, events)

        next_position = car.next_position()
        if next_position is None:
            car.state = CarState.STALLED
            return

        if next_position in occupied:
            car.state = CarState.WAITING
            events.append(CarEvent(self.tick_count, car.id,
                                   EventType.WAITED, car.position))
            return

        occupied.discard(car.position)
        occupied.add(next_position)
        self.car_manager.move_car(car)
        events.append(CarEvent(self.tick_count, car.id,
                               EventType.MOVED, car.position))

        if self.grid.is_destination(car.position):
            self._finish_car(car, occupied, events)

    def _finish_car(self, car: Car, occupied: Set[GridPosition],
                    events: List[CarEvent]) -> None:
        self.car_manager.finish_car(car, self.tick_count)
        occupied.discard(car.position)
        events.append(CarEvent(self.tick_count, car.id,
                               EventType.FINISHED, car.position))

    def _replan(self, car: Car, events: List[CarEvent]) -> None:
        path = self._find_path(car.position)
        car.replace_path(path, self.grid.revision)
        if path is None:
            logger.debug("Car %d stalled at %s: no route to destination",
                         car.id, tuple(car.position))
            events.append(CarEvent(self.tick_count, car.id,
                                   EventType.STALLED, car.position))
        else:
            logger.debug("Car %d re-planned from %s (%d cells)",
                         car.id, tuple(car.position), len(path))
            events.append(CarEvent(self.tick_count, car.id,
                                   EventType.REPLANNED, car.position))

    def _find_path(self, start: Tuple[int, int]) -> Optional[Path]:
        return self.algorithm.find_path(
            start,
            self.grid.destination,
            self.grid.obstacle_snapshot(),
            self.grid.rows,
            self.grid.cols
        )

    def _spawn_car(self, spawn_point: GridPosition,
                   events: List[CarEvent]) -> Car:
        path = self._find_path(spawn_point)
        car = self.car_manager.create_car(spawn_point, path, self.tick_count,
                                          planned_revision=self.grid.revision)
        events.append(CarEvent(self.tick_count, car.id,
                               EventType.SPAWNED, car.position))
        if path is None:
            logger.debug("Car %d spawned at %s without a route",
                         car.id, tuple(spawn_point))
            events.append(CarEvent(self.tick_count, car.id,
                                   EventType.STALLED, car.position))
        return car

    def _spawn_new_cars(self, occupied: Set[GridPosition],
                        events: List[CarEvent]) -> None:
        """Spawn one car at every free spawn point, up to the total."""
        for spawn_point in self.grid.spawn_points:
            if self.car_manager.remaining_to_spawn <= 0:
                break
            if spawn_point in occupied:
                continue
            self._spawn_car(spawn_point, events)
            occupied.add(spawn_point)

    # Snapshots and metrics

    def get_state(self) -> SimulationState:
        """Read-only snapshot of the current state for renderers."""
        return self._create_state_snapshot(self._last_events)

    def get_metrics(self) -> SimulationMetrics:
        metrics = self.car_manager.get_metrics()
        return SimulationMetrics(
            total_time=self.tick_count,
            avg_time=metrics['avg_time'],
            shortest_path=metrics['shortest_path'],
            total_cars=metrics['total_cars'],
            spawned_count=metrics['spawned_count'],
            finished_count=metrics['finished_count'],
        )

    @property
    def final_metrics(self) -> Optional[SimulationMetrics]:
        """Metrics reported on completion, None until the run completes."""
        return self._final_metrics

    def _create_state_snapshot(self, events: List[CarEvent]) -> SimulationState:
        """Create immutable snapshot of current simulation state."""
        cars = self.car_manager.get_cars()
        car_snapshots = [
            CarSnapshot(
                car_id=c.id,
                row=c.position.row,
                col=c.position.col,
                previous=c.previous_position,
                direction=c.direction,
                progress=c.progress,
                path=tuple(c.path),
                state=c.state.value
            )
            for c in cars
        ]

        metrics = self.car_manager.get_metrics()
        metrics['tick'] = self.tick_count
        metrics['stalled'] = sum(1 for c in cars if c.state == CarState.STALLED)
        metrics['waiting'] = sum(1 for c in cars if c.state == CarState.WAITING)

        return SimulationState(
            tick=self.tick_count,
            is_running=self.is_running,
            algorithm=self.algorithm.name,
            cars=car_snapshots,
            obstacles=self.grid.obstacle_snapshot(),
            metrics=metrics,
            events=list(events)
        )
