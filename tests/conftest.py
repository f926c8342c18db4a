"""Test fixtures: small grids and engines built from in-memory configs."""

from __future__ import annotations

import pytest

from pathfinder_sim.config import GridConfig, LayoutConfig, SimulationConfig


def make_config(rows=5, cols=5, destination=(4, 4), spawn_points=((0, 0),),
                total_cars=1, spawn_interval=10, algorithm="BFS",
                walls=(), **kwargs) -> SimulationConfig:
    return SimulationConfig(
        grid=GridConfig(rows=rows, cols=cols),
        layout=LayoutConfig(
            destination=destination,
            spawn_points=list(spawn_points),
            walls=list(walls),
        ),
        total_cars=total_cars,
        spawn_interval=spawn_interval,
        algorithm=algorithm,
        **kwargs,
    )


@pytest.fixture
def config_factory():
    return make_config


@pytest.fixture
def open_config():
    """5x5 open grid, spawn (0,0), destination (4,4), a single car."""
    return make_config()
