"""Grid layout management for the pathfinding simulator."""

import numpy as np
from scipy import ndimage
from typing import FrozenSet, Iterable, List, NamedTuple, Sequence, Tuple


class GridPosition(NamedTuple):
    """A single (row, col) cell coordinate."""
    row: int
    col: int


# Von Neumann neighbourhood in fixed expansion order: down, up, right, left
NEIGHBOR_OFFSETS: Tuple[Tuple[int, int], ...] = ((1, 0), (-1, 0), (0, 1), (0, -1))


class Grid:
    """
    Static layout of the simulation: dimensions, obstacles, spawn points
    and the shared destination.

    Coordinate convention: (row, col) for the API, [row, col] for array
    indexing. Destination and spawn points are protected: they can never
    become obstacles.
    """

    def __init__(self, rows: int, cols: int,
                 destination: Tuple[int, int],
                 spawn_points: Sequence[Tuple[int, int]]):
        self.rows = rows
        self.cols = cols
        self.destination = GridPosition(*destination)
        self.spawn_points: Tuple[GridPosition, ...] = tuple(
            GridPosition(*p) for p in spawn_points
        )
        self._protected = frozenset(self.spawn_points) | {self.destination}

        # Boolean mask: True = obstacle (impassable)
        self.walls = np.zeros((rows, cols), dtype=bool)

        # Bumped on every effective obstacle change
        self.revision = 0

    def is_in_bounds(self, position: Tuple[int, int]) -> bool:
        row, col = position
        return 0 <= row < self.rows and 0 <= col < self.cols

    def is_obstacle(self, position: Tuple[int, int]) -> bool:
        """Check if cell is an obstacle. Out-of-bounds cells are not."""
        if not self.is_in_bounds(position):
            return False
        return bool(self.walls[position[0], position[1]])

    def is_spawn_point(self, position: Tuple[int, int]) -> bool:
        return GridPosition(*position) in self.spawn_points

    def is_destination(self, position: Tuple[int, int]) -> bool:
        return GridPosition(*position) == self.destination

    def is_protected(self, position: Tuple[int, int]) -> bool:
        return GridPosition(*position) in self._protected

    def add_obstacle(self, position: Tuple[int, int]) -> None:
        """Mark cell as obstacle; protected or out-of-bounds cells are ignored."""
        if not self.is_in_bounds(position) or self.is_protected(position):
            return
        row, col = position
        if not self.walls[row, col]:
            self.walls[row, col] = True
            self.revision += 1

    def remove_obstacle(self, position: Tuple[int, int]) -> None:
        """Clear obstacle at cell; no-op if there is none."""
        if not self.is_in_bounds(position):
            return
        row, col = position
        if self.walls[row, col]:
            self.walls[row, col] = False
            self.revision += 1

    def add_wall_rectangle(self, row: int, col: int,
                           height: int, width: int) -> None:
        """Mark rectangular region as obstacles, clamped to the grid."""
        for r in range(max(0, row), min(row + height, self.rows)):
            for c in range(max(0, col), min(col + width, self.cols)):
                self.add_obstacle((r, c))

    def add_wall_points(self, cells: Iterable[Tuple[int, int]]) -> None:
        """Mark specific cells as obstacles."""
        for cell in cells:
            self.add_obstacle(cell)

    def clear_obstacles(self) -> None:
        if self.walls.any():
            self.walls[:, :] = False
            self.revision += 1

    def get_obstacles(self) -> List[GridPosition]:
        """Return all obstacle cells in row-major order."""
        return [GridPosition(int(r), int(c)) for r, c in np.argwhere(self.walls)]

    def obstacle_snapshot(self) -> FrozenSet[GridPosition]:
        """Current obstacle set for a single planning call."""
        return frozenset(self.get_obstacles())

    def unreachable_spawn_points(self) -> List[GridPosition]:
        """
        Spawn points with no 4-connected route to the destination
        through free cells.
        """
        labels, _ = ndimage.label(~self.walls)
        target = labels[self.destination.row, self.destination.col]
        return [p for p in self.spawn_points
                if labels[p.row, p.col] != target]

    def __repr__(self) -> str:
        return (f"Grid(rows={self.rows}, cols={self.cols}, "
                f"destination={tuple(self.destination)}, "
                f"spawn_points={len(self.spawn_points)}, "
                f"obstacles={int(self.walls.sum())})")
