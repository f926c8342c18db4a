"""Grid pathfinding traffic simulator."""

from .config import ConfigError, SimulationConfig, load_config, parse_config
from .model import SimulationEngine, SimulationMetrics, SimulationState

__version__ = "0.1.0"

__all__ = [
    'ConfigError',
    'SimulationConfig',
    'load_config',
    'parse_config',
    'SimulationEngine',
    'SimulationMetrics',
    'SimulationState',
]
