"""Snapshot and GIF export for the pathfinding simulator."""

import io
from pathlib import Path
from typing import List, TYPE_CHECKING

import matplotlib
matplotlib.use('Agg')  # Use non-interactive backend
import matplotlib.pyplot as plt
import numpy as np
from matplotlib.colors import to_rgb
from PIL import Image

if TYPE_CHECKING:
    from ..model.grid import Grid
    from ..model.state import SimulationState


class Visualizer:
    """
    Draws simulation states with matplotlib.

    Supports:
    - Single PNG snapshots
    - Animated GIF compilation (one static frame per buffered tick)
    """

    COLORS = {
        'wall': '#2C3E50',
        'floor': '#ECF0F1',
        'spawn': '#27AE60',
        'destination': '#F39C12',
        'path': '#7FB3D5',
        'moving': '#3498DB',
        'waiting': '#E74C3C',
        'stalled': '#8E44AD',
        'finished': '#95A5A6',
    }

    def __init__(self, grid: "Grid", show_paths: bool = True):
        self.rows = grid.rows
        self.cols = grid.cols
        self.spawn_points = list(grid.spawn_points)
        self.destination = grid.destination
        self.show_paths = show_paths
        self.frames: List[Image.Image] = []

    def _create_figure(self, state: "SimulationState") -> plt.Figure:
        """Create matplotlib figure for state visualization."""
        aspect = self.cols / self.rows
        fig_height = 6
        fig_width = max(6, fig_height * aspect)
        fig, ax = plt.subplots(figsize=(fig_width, fig_height))

        # Base layer: floor and obstacles taken from the snapshot
        base = np.empty((self.rows, self.cols, 3))
        base[:, :] = to_rgb(self.COLORS['floor'])
        for row, col in state.obstacles:
            base[row, col] = to_rgb(self.COLORS['wall'])

        ax.imshow(base, origin='upper', aspect='equal',
                  extent=[-0.5, self.cols - 0.5, self.rows - 0.5, -0.5])

        for spawn in self.spawn_points:
            ax.plot(spawn.col, spawn.row, 's', color=self.COLORS['spawn'],
                    markersize=8, markeredgecolor='black', markeredgewidth=0.5,
                    alpha=0.7)
        ax.plot(self.destination.col, self.destination.row, '*',
                color=self.COLORS['destination'], markersize=14,
                markeredgecolor='black', markeredgewidth=0.5)

        if self.show_paths:
            for car in state.cars:
                if len(car.path) > 1:
                    rows = [p.row for p in car.path]
                    cols = [p.col for p in car.path]
                    ax.plot(cols, rows, '-', color=self.COLORS['path'],
                            linewidth=0.8, alpha=0.5)

        for car in state.cars:
            color = self.COLORS.get(car.state, self.COLORS['finished'])
            ax.plot(car.col, car.row, 'o', color=color,
                    markersize=5, markeredgecolor='white', markeredgewidth=0.3)

        ax.set_title(f'Tick {state.tick} | {state.algorithm} | '
                     f'Live: {len(state.cars)} | '
                     f'Finished: {int(state.metrics.get("finished_count", 0))}')
        ax.set_xlabel('Column')
        ax.set_ylabel('Row')
        ax.set_xlim(-0.5, self.cols - 0.5)
        ax.set_ylim(self.rows - 0.5, -0.5)

        legend_elements = [
            plt.Line2D([0], [0], marker='o', color='w', label='Moving',
                       markerfacecolor=self.COLORS['moving'], markersize=8),
            plt.Line2D([0], [0], marker='o', color='w', label='Waiting',
                       markerfacecolor=self.COLORS['waiting'], markersize=8),
            plt.Line2D([0], [0], marker='o', color='w', label='Stalled',
                       markerfacecolor=self.COLORS['stalled'], markersize=8),
            plt.Line2D([0], [0], marker='s', color='w', label='Spawn',
                       markerfacecolor=self.COLORS['spawn'], markersize=8),
            plt.Line2D([0], [0], marker='*', color='w', label='Destination',
                       markerfacecolor=self.COLORS['destination'], markersize=10),
        ]
        ax.legend(handles=legend_elements, loc='upper right', fontsize=8)

        plt.tight_layout()
        return fig

    def buffer_frame(self, state: "SimulationState") -> None:
        """Store frame for GIF generation."""
        fig = self._create_figure(state)

        buf = io.BytesIO()
        fig.savefig(buf, format='png', dpi=80)
        buf.seek(0)
        img = Image.open(buf).copy()
        self.frames.append(img)
        buf.close()
        plt.close(fig)

    def save_snapshot(self, state: "SimulationState", output_path: Path) -> None:
        """Save single PNG image of current state."""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig = self._create_figure(state)
        fig.savefig(output_path, dpi=150, bbox_inches='tight')
        plt.close(fig)

    def generate_gif(self, output_path: Path, fps: int = 10) -> None:
        """Compile buffered frames into animated GIF."""
        if not self.frames:
            return

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        duration = int(1000 / fps)  # milliseconds per frame

        self.frames[0].save(
            output_path,
            save_all=True,
            append_images=self.frames[1:],
            duration=duration,
            loop=0
        )

    def clear_frames(self) -> None:
        self.frames.clear()
