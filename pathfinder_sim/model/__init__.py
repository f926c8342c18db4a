"""Model package for the grid pathfinding simulator."""

from .state import (CarEvent, CarSnapshot, EventType, SimulationMetrics,
                    SimulationState)
from .grid import Grid, GridPosition
from .pathfinding import (ALGORITHMS, AStarSearch, BreadthFirstSearch,
                          DepthFirstSearch, DijkstraSearch, FrontierSearch,
                          Path, get_algorithm)
from .car import Car, CarAccountingError, CarManager, CarState
from .engine import EngineStatus, SimulationEngine

__all__ = [
    'CarEvent',
    'CarSnapshot',
    'EventType',
    'SimulationMetrics',
    'SimulationState',
    'Grid',
    'GridPosition',
    'ALGORITHMS',
    'AStarSearch',
    'BreadthFirstSearch',
    'DepthFirstSearch',
    'DijkstraSearch',
    'FrontierSearch',
    'Path',
    'get_algorithm',
    'Car',
    'CarAccountingError',
    'CarManager',
    'CarState',
    'EngineStatus',
    'SimulationEngine',
]
