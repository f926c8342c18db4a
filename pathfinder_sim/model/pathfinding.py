"""Grid search algorithms for the pathfinding simulator.

All four algorithms share one frontier search loop and differ only in the
order in which the frontier releases cells:

- BFS: first in, first out
- DFS: last in, first out (explicit stack, no recursion)
- Dijkstra: lowest path cost ``g``
- A*: lowest ``g + h`` with a Manhattan heuristic ``h``
"""

import heapq
import itertools
from collections import deque
from typing import (AbstractSet, Deque, Dict, Iterator, List, Optional,
                    Tuple)

from .grid import GridPosition, NEIGHBOR_OFFSETS

Path = List[GridPosition]

# Frontier entry: (cell, parent, cost to reach cell)
Entry = Tuple[GridPosition, Optional[GridPosition], int]


class Frontier:
    """Ordering policy for cells waiting to be expanded."""

    def push(self, entry: Entry, priority: int) -> None:
        raise NotImplementedError

    def pop(self) -> Entry:
        raise NotImplementedError

    def __len__(self) -> int:
        raise NotImplementedError


class QueueFrontier(Frontier):
    def __init__(self):
        self._items: Deque[Entry] = deque()

    def push(self, entry: Entry, priority: int) -> None:
        self._items.append(entry)

    def pop(self) -> Entry:
        return self._items.popleft()

    def __len__(self) -> int:
        return len(self._items)


class StackFrontier(Frontier):
    def __init__(self):
        self._items: List[Entry] = []

    def push(self, entry: Entry, priority: int) -> None:
        self._items.append(entry)

    def pop(self) -> Entry:
        return self._items.pop()

    def __len__(self) -> int:
        return len(self._items)


class PriorityFrontier(Frontier):
    """Min-heap on priority; equal priorities leave in insertion order."""

    def __init__(self):
        self._heap: List[Tuple[int, int, Entry]] = []
        self._counter = itertools.count()

    def push(self, entry: Entry, priority: int) -> None:
        heapq.heappush(self._heap, (priority, next(self._counter), entry))

    def pop(self) -> Entry:
        return heapq.heappop(self._heap)[2]

    def __len__(self) -> int:
        return len(self._heap)


class FrontierSearch:
    """
    Generic best-first search over a 4-connected grid with unit step cost.

    Subclasses choose the frontier and the priority of each entry. A cell
    is closed the first time it is popped; its parent is the one recorded
    on that entry, so the path is fixed at expansion time.
    """

    name = "search"
    description = ""

    # Only push a neighbour when it improves the best known cost
    relax_costs = True

    def make_frontier(self) -> Frontier:
        raise NotImplementedError

    def priority(self, cost: int, cell: GridPosition,
                 goal: GridPosition) -> int:
        return cost

    def expansion_order(self, cell: GridPosition) -> Iterator[GridPosition]:
        for dr, dc in NEIGHBOR_OFFSETS:
            yield GridPosition(cell.row + dr, cell.col + dc)

    def find_path(self, start: Tuple[int, int], goal: Tuple[int, int],
                  obstacles: AbstractSet[Tuple[int, int]],
                  rows: int, cols: int) -> Optional[Path]:
        """
        Return the path from start to goal (both inclusive), or None if
        the goal cannot be reached without crossing an obstacle or
        leaving the grid.
        """
        start = GridPosition(*start)
        goal = GridPosition(*goal)
        if start == goal:
            return [start]

        def passable(cell: GridPosition) -> bool:
            return (0 <= cell.row < rows and 0 <= cell.col < cols
                    and cell not in obstacles)

        if not (0 <= start.row < rows and 0 <= start.col < cols):
            return None
        if not passable(goal):
            return None

        frontier = self.make_frontier()
        best_cost: Dict[GridPosition, int] = {start: 0}
        parents: Dict[GridPosition, Optional[GridPosition]] = {}
        frontier.push((start, None, 0), self.priority(0, start, goal))

        while len(frontier):
            cell, parent, cost = frontier.pop()
            if cell in parents:
                continue
            parents[cell] = parent

            if cell == goal:
                return self._reconstruct(parents, goal)

            next_cost = cost + 1
            for neighbor in self.expansion_order(cell):
                if neighbor in parents or not passable(neighbor):
                    continue
                if self.relax_costs:
                    if next_cost >= best_cost.get(neighbor, next_cost + 1):
                        continue
                    best_cost[neighbor] = next_cost
                frontier.push((neighbor, cell, next_cost),
                              self.priority(next_cost, neighbor, goal))

        return None

    @staticmethod
    def _reconstruct(parents: Dict[GridPosition, Optional[GridPosition]],
                     goal: GridPosition) -> Path:
        path = []
        cell: Optional[GridPosition] = goal
        while cell is not None:
            path.append(cell)
            cell = parents[cell]
        path.reverse()
        return path

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class BreadthFirstSearch(FrontierSearch):
    name = "BFS"
    description = ("Breadth-First Search explores all cells at the current "
                   "distance before moving further out, which guarantees the "
                   "shortest path on an unweighted grid.")

    def make_frontier(self) -> Frontier:
        return QueueFrontier()


class DepthFirstSearch(FrontierSearch):
    name = "DFS"
    description = ("Depth-First Search explores as far as possible along each "
                   "branch before backtracking. Paths are valid but not "
                   "necessarily shortest.")

    relax_costs = False

    def make_frontier(self) -> Frontier:
        return StackFrontier()

    def expansion_order(self, cell: GridPosition) -> Iterator[GridPosition]:
        # Pushed in reverse so the first neighbour is popped first, which
        # reproduces the visiting order of recursive descent.
        for dr, dc in reversed(NEIGHBOR_OFFSETS):
            yield GridPosition(cell.row + dr, cell.col + dc)


class DijkstraSearch(FrontierSearch):
    name = "Dijkstra"
    description = ("Dijkstra's algorithm expands cells in order of increasing "
                   "path cost and finds the shortest path between two cells.")

    def make_frontier(self) -> Frontier:
        return PriorityFrontier()


class AStarSearch(FrontierSearch):
    name = "A*"
    description = ("A* uses a Manhattan-distance heuristic to prioritise cells "
                   "that seem to lead closer to the goal while still finding "
                   "the shortest path.")

    def make_frontier(self) -> Frontier:
        return PriorityFrontier()

    def priority(self, cost: int, cell: GridPosition,
                 goal: GridPosition) -> int:
        return cost + abs(cell.row - goal.row) + abs(cell.col - goal.col)


ALGORITHMS: Dict[str, FrontierSearch] = {
    algorithm.name: algorithm
    for algorithm in (BreadthFirstSearch(), DepthFirstSearch(),
                      DijkstraSearch(), AStarSearch())
}


def get_algorithm(name: str) -> FrontierSearch:
    """Look up a registered algorithm by name."""
    try:
        return ALGORITHMS[name]
    except KeyError:
        raise KeyError(
            f"Unknown algorithm {name!r}; expected one of {sorted(ALGORITHMS)}"
        ) from None
