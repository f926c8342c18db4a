"""Tick loop behaviour of SimulationEngine: movement, waiting, re-planning,
spawning cadence, completion and configuration errors."""

import pytest

from pathfinder_sim.config import ConfigError, RandomObstacleSpec, WallSpec
from pathfinder_sim.model.engine import EngineStatus, SimulationEngine
from pathfinder_sim.model.state import EventType


def points(*cells):
    return WallSpec(wall_type="points", data={"cells": list(cells)})


def rectangle(row, col, height, width):
    return WallSpec(wall_type="rectangle",
                    data={"row": row, "col": col, "height": height, "width": width})


def tick_until_idle(engine, limit=1000):
    states = []
    while engine.is_running and engine.tick_count < limit:
        states.append(engine.tick())
    return states


def test_single_car_on_open_grid(open_config):
    engine = SimulationEngine(open_config)
    completed = []
    engine.set_on_complete(completed.append)
    engine.start()

    car = engine.car_manager.get_cars()[0]
    assert len(car.path) == 9
    assert car.position == (0, 0)

    states = tick_until_idle(engine)

    assert len(states) == 8
    assert engine.tick_count == 8
    assert engine.status == EngineStatus.IDLE
    assert len(completed) == 1
    metrics = completed[0]
    assert metrics.total_time == 8
    assert metrics.avg_time == 8.0
    assert metrics.shortest_path == 8
    assert metrics.finished_count == 1
    assert engine.final_metrics == metrics
    assert states[-1].is_running is False
    assert [e.event for e in states[-1].events] == [EventType.MOVED, EventType.FINISHED]


def test_tick_while_idle_changes_nothing(open_config):
    engine = SimulationEngine(open_config)
    state = engine.tick()
    assert state.tick == 0
    assert state.cars == []
    assert engine.tick_count == 0


def test_stop_is_idempotent_and_start_resets(open_config):
    engine = SimulationEngine(open_config)
    engine.start()
    engine.tick()
    engine.tick()
    engine.stop()
    engine.stop()
    assert engine.status == EngineStatus.IDLE
    assert engine.tick().tick == 2

    engine.start()
    assert engine.is_running
    assert engine.tick_count == 0
    assert engine.car_manager.spawned_count == 1
    assert engine.car_manager.get_cars()[0].position == (0, 0)
    assert engine.car_manager.get_cars()[0].id == 0


def test_start_spawns_only_at_first_spawn_point(config_factory):
    config = config_factory(spawn_points=[(0, 0), (0, 4)], total_cars=5)
    engine = SimulationEngine(config)
    engine.start()
    cars = engine.car_manager.get_cars()
    assert [c.position for c in cars] == [(0, 0)]


def test_spawn_cadence_and_total(config_factory):
    config = config_factory(rows=1, cols=6, destination=(0, 5),
                            total_cars=3, spawn_interval=2)
    engine = SimulationEngine(config)
    spawned = []
    engine.set_on_tick(lambda state: spawned.extend(
        (state.tick, e.car_id) for e in state.events if e.event == EventType.SPAWNED))
    engine.start()
    tick_until_idle(engine)

    assert spawned == [(2, 1), (4, 2)]
    assert engine.tick_count == 9
    metrics = engine.get_metrics()
    assert metrics.spawned_count == 3
    assert metrics.finished_count == 3
    assert metrics.avg_time == 5.0
    assert metrics.shortest_path == 5
    assert engine.car_manager.finish_times == [5, 5, 5]


def test_all_free_spawn_points_spawn_on_cadence_tick(config_factory):
    config = config_factory(rows=5, cols=5, destination=(2, 4),
                            spawn_points=[(0, 0), (2, 0), (4, 0)],
                            total_cars=3, spawn_interval=1)
    engine = SimulationEngine(config)
    engine.start()
    state = engine.tick()
    spawned_at = [e.position for e in state.events if e.event == EventType.SPAWNED]
    # Car 0 has just left (0, 0), so every spawn point is free again but
    # only two cars remain to be spawned
    assert spawned_at == [(0, 0), (2, 0)]
    assert engine.car_manager.spawned_count == 3


def test_occupied_spawn_point_is_skipped(config_factory):
    config = config_factory(rows=1, cols=4, destination=(0, 3),
                            total_cars=2, spawn_interval=1,
                            walls=[points((0, 1))])
    engine = SimulationEngine(config)
    engine.start()
    for _ in range(5):
        engine.tick()
    # The first car is stuck on the only spawn point
    assert engine.car_manager.spawned_count == 1


def test_car_waits_behind_stalled_car_then_follows(config_factory):
    config = config_factory(rows=1, cols=5, destination=(0, 4),
                            total_cars=2, spawn_interval=1)
    engine = SimulationEngine(config)
    engine.start()

    engine.tick()
    leader, follower = engine.car_manager.get_cars()
    assert leader.position == (0, 1)
    assert follower.position == (0, 0)

    engine.add_obstacle((0, 3))
    engine.tick()
    assert leader.position == (0, 2)
    assert follower.position == (0, 1)

    state = engine.tick()
    assert leader.position == (0, 2)
    assert leader.path == [(0, 2)]
    assert follower.position == (0, 1)
    assert state.car_at((0, 2)).state == "stalled"
    assert state.car_at((0, 1)).state == "waiting"
    events = {(e.car_id, e.event) for e in state.events}
    assert (leader.id, EventType.STALLED) in events
    assert (follower.id, EventType.WAITED) in events

    engine.remove_obstacle((0, 3))
    engine.tick()
    assert leader.position == (0, 3)
    assert follower.position == (0, 2)

    tick_until_idle(engine)
    assert engine.tick_count == 6
    metrics = engine.get_metrics()
    assert metrics.finished_count == 2
    assert metrics.avg_time == 5.0
    assert metrics.shortest_path == 4


def test_replans_when_next_cell_becomes_obstacle(config_factory):
    # Middle row is the straight route; the top row is a longer detour
    config = config_factory(rows=3, cols=5, destination=(1, 4),
                            spawn_points=[(1, 0)], walls=[rectangle(2, 0, 1, 5)])
    engine = SimulationEngine(config)
    engine.start()
    car = engine.car_manager.get_cars()[0]
    assert car.path == [(1, c) for c in range(5)]

    engine.add_obstacle((1, 1))
    state = engine.tick()

    assert any(e.event == EventType.REPLANNED for e in state.events)
    assert (1, 1) not in car.path
    assert len(car.path) == 7
    assert car.position == (0, 0)

    tick_until_idle(engine)
    assert engine.get_metrics().total_time == 6
    assert engine.get_metrics().shortest_path == 6


def test_blocked_corridor_stalls_until_route_reopens(config_factory):
    # One-wide corridor along row 1, walled above and below
    config = config_factory(rows=3, cols=5, destination=(1, 4),
                            spawn_points=[(1, 0)],
                            walls=[rectangle(0, 0, 1, 5), rectangle(2, 0, 1, 5)])
    engine = SimulationEngine(config)
    engine.start()
    car = engine.car_manager.get_cars()[0]

    engine.add_obstacle((1, 1))
    for _ in range(3):
        engine.tick()
    assert car.position == (1, 0)
    assert car.path == [(1, 0)]
    assert engine.is_running
    assert engine.get_metrics().finished_count == 0

    visited = set()
    engine.set_on_tick(lambda state: visited.update(c.position for c in state.cars))
    for cell in [(0, 0), (0, 1), (0, 2)]:
        engine.remove_obstacle(cell)
    tick_until_idle(engine)

    assert (1, 1) not in visited
    assert engine.get_metrics().finished_count == 1


def test_walled_off_spawn_keeps_cars_stationary(config_factory):
    config = config_factory(total_cars=3, spawn_interval=10,
                            walls=[points((3, 4), (4, 3))])
    engine = SimulationEngine(config)
    assert engine.grid.unreachable_spawn_points() == [(0, 0)]
    engine.start()
    for _ in range(30):
        engine.tick()

    cars = engine.car_manager.get_cars()
    assert [c.position for c in cars] == [(0, 0)]
    assert engine.get_state().metrics['stalled'] == 1
    metrics = engine.get_metrics()
    assert metrics.spawned_count == 1
    assert metrics.finished_count == 0

    engine.remove_obstacle((3, 4))
    engine.run(max_ticks=500)
    metrics = engine.get_metrics()
    assert metrics.finished_count == 3
    assert metrics.spawned_count == 3
    assert not engine.is_running


@pytest.mark.parametrize("algorithm", ["BFS", "Dijkstra", "A*"])
def test_occupancy_and_conservation_under_contention(config_factory, algorithm):
    config = config_factory(rows=10, cols=10, destination=(5, 9),
                            spawn_points=[(0, 0), (5, 0), (9, 0)],
                            total_cars=15, spawn_interval=2, algorithm=algorithm,
                            walls=[rectangle(2, 3, 6, 2), rectangle(0, 7, 4, 1),
                                   rectangle(7, 7, 3, 1)])
    engine = SimulationEngine(config)
    manager = engine.car_manager
    checked_ticks = []

    def check(state):
        positions = [c.position for c in state.cars]
        assert len(positions) == len(set(positions))
        assert not set(positions) & state.obstacles

        assert manager.finished_count + manager.live_count <= manager.spawned_count
        assert manager.spawned_count <= manager.total_cars
        assert manager.is_complete() == (
            manager.spawned_count == manager.total_cars and manager.live_count == 0)
        checked_ticks.append(state.tick)

    engine.set_on_tick(check)
    engine.start()
    tick_until_idle(engine)

    assert checked_ticks == list(range(1, engine.tick_count + 1))
    assert engine.get_metrics().finished_count == 15


def test_dfs_run_moves_only_through_free_cells(config_factory):
    config = config_factory(rows=6, cols=6, destination=(5, 5), total_cars=1,
                            algorithm="DFS", walls=[rectangle(0, 2, 5, 1)])
    engine = SimulationEngine(config)
    engine.start()
    for state in tick_until_idle(engine):
        assert all(c.position not in state.obstacles for c in state.cars)
    assert engine.get_metrics().finished_count == 1


def test_snapshot_exposes_render_state(config_factory):
    engine = SimulationEngine(config_factory(rows=1, cols=4, destination=(0, 3)))
    engine.start()
    state = engine.tick()
    car = state.cars[0]
    assert car.position == (0, 1)
    assert car.previous == (0, 0)
    assert car.direction == (0, 1)
    assert car.progress == pytest.approx(1 / 3)
    assert car.path == ((0, 0), (0, 1), (0, 2), (0, 3))
    assert state.algorithm == "BFS"
    assert state.metrics['tick'] == 1


def test_spawn_on_destination_finishes_next_tick(config_factory):
    config = config_factory(destination=(0, 0), spawn_points=[(0, 0)])
    engine = SimulationEngine(config)
    engine.start()
    assert engine.car_manager.get_cars()[0].path == [(0, 0)]
    engine.tick()
    metrics = engine.get_metrics()
    assert metrics.finished_count == 1
    assert metrics.avg_time == 1.0
    assert metrics.shortest_path == 0
    assert not engine.is_running


def test_set_algorithm(open_config):
    engine = SimulationEngine(open_config)
    assert engine.get_available_algorithms() == ["BFS", "DFS", "Dijkstra", "A*"]
    engine.set_algorithm("A*")
    assert engine.get_algorithm().name == "A*"
    with pytest.raises(KeyError):
        engine.set_algorithm("Greedy")
    assert engine.get_algorithm().name == "A*"


def test_run_stops_at_tick_limit(config_factory):
    config = config_factory(walls=[points((3, 4), (4, 3))])
    engine = SimulationEngine(config)
    engine.start()
    metrics = engine.run(max_ticks=25)
    assert metrics.total_time == 25
    assert not engine.is_running


def test_stop_from_tick_callback_ends_run(open_config):
    engine = SimulationEngine(open_config)

    def stop_at_three(state):
        if state.tick == 3:
            engine.stop()

    engine.set_on_tick(stop_at_three)
    engine.start()
    metrics = engine.run(max_ticks=100)

    assert engine.tick_count == 3
    assert metrics.total_time == 3
    assert metrics.finished_count == 0
    assert engine.status == EngineStatus.IDLE
    assert engine.final_metrics is None


def test_realtime_run_sleeps_between_ticks(config_factory, monkeypatch):
    sleeps = []
    monkeypatch.setattr("pathfinder_sim.model.engine.time.sleep", sleeps.append)
    engine = SimulationEngine(config_factory(tick_interval=0))
    engine.start()
    metrics = engine.run(realtime=True)

    assert metrics.finished_count == 1
    assert engine.tick_count == 8
    # No sleep after the completing tick
    assert sleeps == [0] * 7


def test_clear_obstacles_reopens_route(config_factory):
    engine = SimulationEngine(config_factory(walls=[points((3, 4), (4, 3))]))
    engine.start()
    engine.tick()
    engine.clear_obstacles()
    engine.run(max_ticks=100)
    assert engine.get_metrics().finished_count == 1


def test_random_obstacles_are_seeded_and_spare_protected_cells(config_factory):
    def build(seed):
        config = config_factory(rows=12, cols=12, destination=(6, 11),
                                spawn_points=[(0, 0), (11, 0)], seed=seed)
        config.layout.random_obstacles = RandomObstacleSpec(density=0.3)
        return SimulationEngine(config)

    first, second = build(5), build(5)
    obstacles = first.grid.obstacle_snapshot()
    assert obstacles == second.grid.obstacle_snapshot()
    assert len(obstacles) == int(0.3 * (144 - 3))
    assert not obstacles & {(6, 11), (0, 0), (11, 0)}


@pytest.mark.parametrize("overrides", [
    {"rows": 0},
    {"cols": -1},
    {"spawn_points": []},
    {"destination": (5, 5)},
    {"spawn_points": [(0, 9)]},
    {"walls": [points((4, 4))]},
    {"walls": [rectangle(0, 0, 2, 2)]},
    {"total_cars": 0},
    {"spawn_interval": 0},
    {"algorithm": "Greedy"},
])
def test_invalid_configuration_is_rejected(config_factory, overrides):
    with pytest.raises(ConfigError):
        SimulationEngine(config_factory(**overrides))
