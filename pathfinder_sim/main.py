#!/usr/bin/env python3
"""
Grid Pathfinding Traffic Simulation

Cars spawn on a grid, plan a route to a shared destination with BFS, DFS,
Dijkstra or A*, and advance one cell per tick while waiting for occupied
cells to clear.

Usage:
    pathfinder-sim --config configs/city.yaml [options]

Examples:
    pathfinder-sim
    pathfinder-sim --config configs/city.yaml --algorithm "A*"
    pathfinder-sim --config configs/city.yaml --gif --out-dir results/
    pathfinder-sim --config configs/maze.yaml --no-csv --no-snapshot --quiet
    pathfinder-sim --config configs/city.yaml --seed 42
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import ConfigError, SimulationConfig, load_config
from .model.engine import SimulationEngine
from .model.pathfinding import ALGORITHMS
from .export.csv_writer import CSVWriter
from .export.visualizer import Visualizer
from .export.reporter import Reporter

# Tick limit for configs that set none
DEFAULT_MAX_TICKS = 10000


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Grid Pathfinding Traffic Simulation',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    pathfinder-sim --config configs/city.yaml
    pathfinder-sim --config configs/city.yaml --algorithm "A*" --gif
    pathfinder-sim --config configs/maze.yaml --no-csv --no-snapshot --quiet
        """
    )

    parser.add_argument('--config', type=Path, default=None,
                        help='Path to YAML configuration file '
                             '(default: built-in 40x60 open grid)')

    # Optional overrides
    parser.add_argument('--algorithm', choices=sorted(ALGORITHMS), default=None,
                        help='Override the pathfinding algorithm')
    parser.add_argument('--ticks', type=int, default=None,
                        help='Override max simulation ticks')
    parser.add_argument('--cars', type=int, default=None,
                        help='Override total number of cars')
    parser.add_argument('--out-dir', type=Path, default=Path('./output'),
                        help='Output directory for exports (default: ./output)')

    # Export toggles
    parser.add_argument('--csv', dest='csv', action='store_true', default=None,
                        help='Enable CSV export (default)')
    parser.add_argument('--no-csv', dest='csv', action='store_false',
                        help='Disable CSV export')

    parser.add_argument('--snapshot', dest='snapshot', action='store_true', default=None,
                        help='Enable final snapshot (default)')
    parser.add_argument('--no-snapshot', dest='snapshot', action='store_false',
                        help='Disable final snapshot')

    parser.add_argument('--gif', action='store_true', default=False,
                        help='Enable GIF animation export')

    parser.add_argument('--realtime', action='store_true', default=False,
                        help='Sleep tick_interval seconds between ticks')
    parser.add_argument('--quiet', action='store_true', default=False,
                        help='Suppress stdout output')
    parser.add_argument('--seed', type=int, default=None,
                        help='Random seed for random obstacle placement')
    parser.add_argument('--log-level', default='WARNING',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level for engine diagnostics')

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level,
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    # Load configuration
    try:
        if args.config is not None:
            config = load_config(args.config)
        else:
            config = SimulationConfig.default()
    except FileNotFoundError:
        print(f"Error: Configuration file not found: {args.config}", file=sys.stderr)
        return 1
    except ConfigError as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    # Apply CLI overrides
    if args.algorithm is not None:
        config.algorithm = args.algorithm
    if args.ticks is not None:
        config.max_ticks = args.ticks
    if args.cars is not None:
        config.total_cars = args.cars
    if args.csv is not None:
        config.csv_enabled = args.csv
    if args.snapshot is not None:
        config.snapshot_enabled = args.snapshot
    if args.gif:
        config.gif_enabled = True
    config.quiet = args.quiet
    if args.seed is not None:
        config.seed = args.seed
    config.out_dir = args.out_dir

    try:
        engine = SimulationEngine(config)
    except ConfigError as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        return 1

    if not config.quiet:
        print(f"Initializing simulation...")
        print(f"  Grid: {config.grid.rows}x{config.grid.cols}")
        print(f"  Spawn points: {len(engine.grid.spawn_points)}")
        print(f"  Cars: {config.total_cars} (every {config.spawn_interval} ticks)")
        print(f"  Algorithm: {engine.algorithm.name}")
        if config.max_ticks is not None:
            print(f"  Max ticks: {config.max_ticks}")

    # Initialize exporters
    csv_writer = None
    if config.csv_enabled:
        csv_writer = CSVWriter(config.out_dir / 'simulation_log.csv')
        csv_writer.open()

    visualizer = Visualizer(engine.grid)
    reporter = Reporter(str(args.config or '(default)'), config.seed,
                        engine.grid.unreachable_spawn_points())

    if not config.quiet:
        print(f"\nRunning simulation...")

    def on_tick(state):
        if csv_writer:
            csv_writer.append(state)

        # Buffer GIF frame (every N ticks to reduce memory)
        if config.gif_enabled and state.tick % 5 == 0:
            visualizer.buffer_frame(state)

        reporter.update(state)

        if not config.quiet and state.tick % 100 == 0:
            live = len(state.cars)
            finished = int(state.metrics.get('finished_count', 0))
            print(f"  Tick {state.tick}: {live} live, {finished} finished")

    def on_complete(metrics):
        if not config.quiet:
            print(f"  Completed at tick {metrics.total_time}")

    engine.set_on_tick(on_tick)
    engine.set_on_complete(on_complete)

    engine.start()
    try:
        engine.run(max_ticks=config.max_ticks or DEFAULT_MAX_TICKS,
                   realtime=args.realtime)
    except KeyboardInterrupt:
        engine.stop()
        if not config.quiet:
            print("\nSimulation interrupted by user.")

    final_state = engine.get_state()
    metrics = engine.get_metrics()

    # Cleanup and final exports
    if csv_writer:
        csv_writer.close()
        if not config.quiet:
            print(f"\nCSV saved: {config.out_dir / 'simulation_log.csv'}")

    if config.snapshot_enabled:
        snapshot_path = config.out_dir / 'final_state.png'
        visualizer.save_snapshot(final_state, snapshot_path)
        if not config.quiet:
            print(f"Snapshot saved: {snapshot_path}")

    if config.gif_enabled:
        visualizer.buffer_frame(final_state)
        gif_path = config.out_dir / 'simulation.gif'
        if not config.quiet:
            print(f"Generating GIF ({len(visualizer.frames)} frames)...")
        visualizer.generate_gif(gif_path, fps=10)
        if not config.quiet:
            print(f"Animation saved: {gif_path}")

    if not config.quiet:
        report = reporter.generate_summary(
            final_state,
            metrics,
            config.out_dir,
            config.csv_enabled,
            config.snapshot_enabled,
            config.gif_enabled
        )
        print(report)

    return 0


if __name__ == '__main__':
    sys.exit(main())
