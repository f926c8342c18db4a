"""Summary report generation for the pathfinding simulator."""

from typing import List, Dict, Optional, Sequence, Tuple, TYPE_CHECKING
from pathlib import Path

from ..model.state import EventType

if TYPE_CHECKING:
    from ..model.state import SimulationMetrics, SimulationState


class Reporter:
    """Accumulates per-tick metrics and formats the text summary."""

    # Consecutive ticks with waiting cars and no finishes that count as one
    # congestion event
    CONGESTION_WINDOW = 10

    def __init__(self, config_path: str, seed: Optional[int],
                 unreachable_spawns: Sequence[Tuple[int, int]] = ()):
        self.config_path = config_path
        self.seed = seed
        self.unreachable_spawns = [tuple(p) for p in unreachable_spawns]
        self.tick_metrics: List[Dict] = []
        self.peak_live_cars = 0
        self.peak_stalled_cars = 0
        self.replans = 0
        self.congestion_events = 0
        self._prev_finished = 0
        self._stagnation_ticks = 0

    def update(self, state: "SimulationState") -> None:
        """Accumulate metrics per tick."""
        self.tick_metrics.append(state.metrics.copy())

        self.peak_live_cars = max(self.peak_live_cars, len(state.cars))
        self.peak_stalled_cars = max(self.peak_stalled_cars,
                                     int(state.metrics.get('stalled', 0)))
        self.replans += sum(1 for e in state.events
                            if e.event == EventType.REPLANNED)

        # Congestion: cars keep waiting while nobody reaches the destination
        finished = int(state.metrics.get('finished_count', 0))
        if state.metrics.get('waiting', 0) > 0 and finished == self._prev_finished:
            self._stagnation_ticks += 1
            if self._stagnation_ticks >= self.CONGESTION_WINDOW:
                self.congestion_events += 1
                self._stagnation_ticks = 0
        else:
            self._stagnation_ticks = 0
        self._prev_finished = finished

    def generate_summary(self, final_state: "SimulationState",
                         metrics: "SimulationMetrics",
                         output_dir: Path,
                         csv_enabled: bool,
                         snapshot_enabled: bool,
                         gif_enabled: bool) -> str:
        """Returns formatted text report."""
        total = metrics.total_cars
        completion_pct = (metrics.finished_count / total * 100) if total > 0 else 0

        lines = [
            "",
            "=" * 80,
            "                    GRID PATHFINDING SIMULATION REPORT",
            "=" * 80,
            f"Configuration: {self.config_path}",
            f"Random Seed: {self.seed if self.seed is not None else 'None (random)'}",
            f"Algorithm: {final_state.algorithm}",
            "",
            "SIMULATION METRICS",
            "-" * 40,
            f"Total Ticks:           {metrics.total_time}",
            f"Cars Spawned:          {metrics.spawned_count} / {total}",
            f"Cars Finished:         {metrics.finished_count} / {total} ({completion_pct:.1f}%)",
            f"Average Travel Time:   {metrics.avg_time:.1f} ticks",
            f"Shortest Path:         {metrics.shortest_path} moves",
            f"Peak Live Cars:        {self.peak_live_cars}",
            f"Re-plans:              {self.replans}",
            "",
            "CONDITIONS DETECTED",
            "-" * 40,
            f"[{'X' if self.congestion_events > 0 else ' '}] Congestion Events: {self.congestion_events} detected",
            f"[{'X' if self.peak_stalled_cars > 0 else ' '}] Stalled Cars (peak): {self.peak_stalled_cars}",
        ]
        if self.unreachable_spawns:
            lines.append(f"[X] Unreachable Spawn Points: {self.unreachable_spawns}")
        else:
            lines.append("[ ] Unreachable Spawn Points: none")

        lines += [
            "",
            "OUTPUT FILES",
            "-" * 40,
        ]

        if csv_enabled:
            lines.append(f"CSV Log:    {output_dir / 'simulation_log.csv'}")
        else:
            lines.append("CSV Log:    (disabled)")

        if snapshot_enabled:
            lines.append(f"Snapshot:   {output_dir / 'final_state.png'}")
        else:
            lines.append("Snapshot:   (disabled)")

        if gif_enabled:
            lines.append(f"Animation:  {output_dir / 'simulation.gif'}")
        else:
            lines.append("Animation:  (disabled)")

        lines.append("=" * 80)

        return "\n".join(lines)
