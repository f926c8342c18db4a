"""Configuration dataclasses and YAML loader for the pathfinding simulator."""

from dataclasses import dataclass, field
from typing import List, Tuple, Dict, Any, Optional, Set
from pathlib import Path
import yaml


class ConfigError(ValueError):
    """Invalid simulation configuration; the engine refuses to start."""


@dataclass
class GridConfig:
    rows: int
    cols: int


@dataclass
class WallSpec:
    wall_type: str  # "rectangle" or "points"
    data: Dict[str, Any]

    def cells(self) -> List[Tuple[int, int]]:
        """Cells covered by this wall, before clamping to the grid."""
        if self.wall_type == "rectangle":
            row, col = self.data['row'], self.data['col']
            return [
                (r, c)
                for r in range(row, row + self.data['height'])
                for c in range(col, col + self.data['width'])
            ]
        return list(self.data['cells'])


@dataclass
class RandomObstacleSpec:
    density: float  # fraction of free cells turned into obstacles


@dataclass
class LayoutConfig:
    destination: Tuple[int, int]
    spawn_points: List[Tuple[int, int]]
    walls: List[WallSpec] = field(default_factory=list)
    random_obstacles: Optional[RandomObstacleSpec] = None


@dataclass
class SimulationConfig:
    grid: GridConfig
    layout: LayoutConfig
    total_cars: int = 100
    spawn_interval: int = 10     # ticks between spawn attempts
    tick_interval: float = 0.1   # seconds between ticks in realtime runs
    algorithm: str = "BFS"
    max_ticks: Optional[int] = None

    # Export flags (can be overridden by CLI)
    csv_enabled: bool = True
    snapshot_enabled: bool = True
    gif_enabled: bool = False
    quiet: bool = False
    seed: Optional[int] = None
    out_dir: Path = field(default_factory=lambda: Path("./output"))

    @classmethod
    def default(cls, rows: int = 40, cols: int = 60) -> "SimulationConfig":
        """
        Open grid with the destination in the middle of the last column
        and spawn points every ten rows down the first column.
        """
        spawn_points = [(row, 0) for row in range(5, 50, 10) if row < rows]
        return cls(
            grid=GridConfig(rows=rows, cols=cols),
            layout=LayoutConfig(
                destination=(rows // 2, cols - 1),
                spawn_points=spawn_points or [(0, 0)],
            ),
        )

    def wall_cells(self) -> Set[Tuple[int, int]]:
        """In-bounds cells covered by the configured walls."""
        cells = set()
        for wall in self.layout.walls:
            for row, col in wall.cells():
                if 0 <= row < self.grid.rows and 0 <= col < self.grid.cols:
                    cells.add((row, col))
        return cells

    def validate(self) -> None:
        """Raise ConfigError if the configuration cannot be simulated."""
        rows, cols = self.grid.rows, self.grid.cols
        if rows <= 0 or cols <= 0:
            raise ConfigError(f"Grid dimensions must be positive, got {rows}x{cols}")

        def in_bounds(pos: Tuple[int, int]) -> bool:
            return 0 <= pos[0] < rows and 0 <= pos[1] < cols

        destination = tuple(self.layout.destination)
        if not in_bounds(destination):
            raise ConfigError(f"Destination {destination} is outside the grid")
        if not self.layout.spawn_points:
            raise ConfigError("At least one spawn point is required")
        for spawn in self.layout.spawn_points:
            if not in_bounds(tuple(spawn)):
                raise ConfigError(f"Spawn point {tuple(spawn)} is outside the grid")

        walls = self.wall_cells()
        if destination in walls:
            raise ConfigError(f"Destination {destination} lies inside a wall")
        for spawn in self.layout.spawn_points:
            if tuple(spawn) in walls:
                raise ConfigError(f"Spawn point {tuple(spawn)} lies inside a wall")

        if self.total_cars < 1:
            raise ConfigError(f"total_cars must be at least 1, got {self.total_cars}")
        if self.spawn_interval < 1:
            raise ConfigError(
                f"spawn_interval must be at least 1, got {self.spawn_interval}")
        if self.tick_interval < 0:
            raise ConfigError(
                f"tick_interval must not be negative, got {self.tick_interval}")

        random_spec = self.layout.random_obstacles
        if random_spec is not None and not 0.0 <= random_spec.density < 1.0:
            raise ConfigError(
                f"Obstacle density must be in [0, 1), got {random_spec.density}")


def _parse_position(raw: Any, what: str) -> Tuple[int, int]:
    try:
        row, col = raw
        return (int(row), int(col))
    except (TypeError, ValueError):
        raise ConfigError(f"{what} must be a [row, col] pair, got {raw!r}") from None


def _parse_walls(walls_raw: List[Dict]) -> List[WallSpec]:
    """Parse wall specifications from raw YAML data."""
    walls = []
    for w in walls_raw:
        if not isinstance(w, dict):
            raise ConfigError(f"Wall entry must be a mapping, got {w!r}")
        wall_type = w.get('type', 'rectangle')
        if wall_type == 'rectangle':
            data = {
                'row': int(w['row']),
                'col': int(w['col']),
                'height': int(w.get('height', 1)),
                'width': int(w.get('width', 1))
            }
        elif wall_type == 'points':
            data = {'cells': [_parse_position(c, "Wall cell") for c in w['cells'] or []]}
        else:
            raise ConfigError(f"Unknown wall type: {wall_type}")
        walls.append(WallSpec(wall_type=wall_type, data=data))
    return walls


def _optional_int(value: Any) -> Optional[int]:
    return int(value) if value is not None else None


def parse_config(raw: Dict[str, Any]) -> SimulationConfig:
    """Build and validate a SimulationConfig from already-loaded YAML data."""
    try:
        grid = GridConfig(
            rows=int(raw['grid']['rows']),
            cols=int(raw['grid']['cols'])
        )

        layout_raw = raw.get('layout') or {}
        default_layout = SimulationConfig.default(grid.rows, grid.cols).layout
        destination = (_parse_position(layout_raw['destination'], "Destination")
                       if 'destination' in layout_raw
                       else default_layout.destination)
        spawn_points = ([_parse_position(p, "Spawn point")
                         for p in layout_raw['spawn_points'] or []]
                        if 'spawn_points' in layout_raw
                        else default_layout.spawn_points)

        random_raw = layout_raw.get('random_obstacles')
        layout = LayoutConfig(
            destination=destination,
            spawn_points=spawn_points,
            walls=_parse_walls(layout_raw.get('walls') or []),
            random_obstacles=(RandomObstacleSpec(density=float(random_raw.get('density', 0.0)))
                              if random_raw else None)
        )

        sim_raw = raw.get('simulation') or {}

        # Parse export config (optional)
        export_raw = raw.get('export') or {}

        config = SimulationConfig(
            grid=grid,
            layout=layout,
            total_cars=int(sim_raw.get('total_cars', 100)),
            spawn_interval=int(sim_raw.get('spawn_interval', 10)),
            tick_interval=float(sim_raw.get('tick_interval', 0.1)),
            algorithm=str(sim_raw.get('algorithm', 'BFS')),
            max_ticks=_optional_int(sim_raw.get('max_ticks')),
            csv_enabled=bool(export_raw.get('csv', True)),
            snapshot_enabled=bool(export_raw.get('snapshot', True)),
            gif_enabled=bool(export_raw.get('gif', False)),
            seed=_optional_int(sim_raw.get('seed'))
        )
    except ConfigError:
        raise
    except KeyError as e:
        raise ConfigError(f"Missing configuration key: {e.args[0]}") from None
    except (TypeError, ValueError, AttributeError) as e:
        raise ConfigError(f"Malformed configuration value: {e}") from None

    config.validate()
    return config


def load_config(config_path: Path) -> SimulationConfig:
    """Load and validate YAML configuration file."""
    with open(config_path) as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Configuration file {config_path} is not valid YAML: {e}") from None
    if not isinstance(raw, dict):
        raise ConfigError(f"Configuration file {config_path} is empty or malformed")
    return parse_config(raw)
