"""Driver lifecycle, spawning and headless runs."""
from __future__ import annotations

import asyncio

import pytest

from helpers import DOOR, STALL_1, fixed_params, make_layout, quiet_settings
from restsim.config import EngineSettings, apply_overrides, load_cfg
from restsim.entities import EXIT, Exiting, Going
from restsim.simulation import Simulation, run_headless, run_replication


def test_reset_is_reproducible_with_seed(one_stall_layout):
    sim = Simulation(fixed_params(), one_stall_layout, EngineSettings(), seed=3)
    first = [(a.id, a.gender, a.x, a.y) for a in sim.agents.values()]
    assert len(first) == 6
    sim.start()
    sim.tick(100.0)
    sim.reset()
    again = [(a.id, a.gender, a.x, a.y) for a in sim.agents.values()]
    assert again == first
    assert sim.t == 0.0


def test_initial_batch_is_staggered_left_of_door(one_stall_layout):
    sim = Simulation(fixed_params(), one_stall_layout, EngineSettings(), seed=1)
    xs = [a.x for a in sim.agents.values()]
    ys = [a.y for a in sim.agents.values()]
    assert xs == [DOOR.x - 50.0 - 20.0 * i for i in range(6)]
    assert ys[:3] == [82.0, 100.0, 118.0]
    assert all(a.state == "arriving" for a in sim.agents.values())


def test_tick_while_stopped_changes_nothing(one_stall_layout):
    sim = Simulation(fixed_params(), one_stall_layout, EngineSettings(), seed=2)
    before = sim.snapshot()
    snap = sim.tick(100.0)
    assert snap.time == 0.0
    assert snap.agents == before.agents


def test_start_and_stop_are_idempotent(one_stall_layout, make_sim):
    sim = make_sim(one_stall_layout)
    sim.start()
    sim.start()
    assert sim.running
    sim.tick(50.0)
    sim.stop()
    sim.stop()
    assert not sim.running
    assert sim.tick(50.0).time == 50.0


def test_snapshot_is_a_copy(one_stall_layout):
    sim = Simulation(fixed_params(), one_stall_layout, EngineSettings(), seed=2)
    snap = sim.snapshot()
    snap.agents[0]["pos"]["x"] = -999.0
    assert sim.agents[0].x != -999.0


def test_arrivals_spawn_at_high_rate(one_stall_layout, make_sim):
    sim = make_sim(one_stall_layout, params=fixed_params(rate=600.0))
    sim.start()
    for _ in range(20):
        sim.tick(100.0)
    assert len(sim.agents) > 0
    ids = list(sim.agents)
    assert ids == sorted(ids)
    assert sim.metrics.spawned == sim.next_id


def test_no_door_means_no_agents(make_sim):
    sim = make_sim(make_layout(STALL_1), params=fixed_params(rate=600.0),
                   settings=EngineSettings())
    assert sim.agents == {}
    sim.start()
    for _ in range(20):
        sim.tick(100.0)
    assert sim.agents == {}


def test_exiting_agent_near_door_is_removed(one_stall_layout, make_sim):
    sim = make_sim(one_stall_layout)
    agent = sim.spawn_agent(DOOR.center[0] + 5.0, DOOR.center[1], phase=Exiting())
    sim.start()
    sim.tick(16.0)
    assert agent.id not in sim.agents


def test_request_path_requires_going(one_stall_layout, make_sim):
    sim = make_sim(one_stall_layout)
    agent = sim.spawn_agent(100.0, 100.0)

    async def scenario():
        with pytest.raises(TypeError):
            sim.request_path(agent)

    asyncio.run(scenario())


def test_line_mode_serves_agents(one_stall_layout):
    params = fixed_params(value=400.0)
    sim = Simulation(params, one_stall_layout, quiet_settings(initial_agents=3, path_mode="line"), seed=5)

    async def scenario():
        sim.start()
        for _ in range(1500):
            sim.tick(100.0)
            await asyncio.sleep(0)
            if not sim.agents:
                break
        await sim.settle()

    asyncio.run(scenario())
    assert sim.agents == {}
    assert sim.metrics.served == 3
    assert sim.metrics.exited == 3


def test_baseline_run_keeps_invariants():
    cfg = apply_overrides(load_cfg(), {"sim": {"duration_minutes": 5, "warmup_minutes": 0}})
    summary = run_replication(cfg)
    assert summary["spawned"] > 0
    assert summary["served"] > 0
    assert summary["exited"] > 0
    assert set(summary["fixture_utilization"]) == {
        "stall-1", "stall-2", "stall-3", "urinal-1", "urinal-2",
    }
    assert all(0.0 <= u <= 1.0 for u in summary["fixture_utilization"].values())


def test_headless_runs_are_reproducible():
    cfg = apply_overrides(load_cfg(), {"sim": {"duration_minutes": 2, "warmup_minutes": 0}})
    a = asyncio.run(run_headless(cfg, seed=21))
    b = asyncio.run(run_headless(cfg, seed=21))
    assert a == b


def test_reset_twice_gives_identical_state(one_stall_layout):
    sim = Simulation(fixed_params(rate=600.0), one_stall_layout, EngineSettings(), seed=8)
    sim.start()
    for _ in range(30):
        sim.tick(100.0)
    sim.reset()
    first_agents = sim.snapshot().agents
    first_states = dict(sim.occupancy.states)
    sim.reset()
    assert sim.snapshot().agents == first_agents
    assert sim.occupancy.states == first_states
    assert sim.t == 0.0 and sim.pending_paths == 0


def test_path_requested_without_event_loop_lands_next_tick(one_stall_layout, make_sim):
    sim = make_sim(one_stall_layout)
    agent = sim.spawn_agent(100.0, 100.0, phase=Going(EXIT, None, (0, 5)))
    sim.request_path(agent)
    assert sim.pending_paths == 1
    assert agent.phase.pending
    sim.start()
    sim.tick(100.0)
    assert sim.pending_paths == 0
    assert agent.phase.route is not None
    assert agent.phase.route.cells[-1] == (0, 5)


def test_deferred_path_dropped_by_reset(one_stall_layout, make_sim):
    sim = make_sim(one_stall_layout)
    old = sim.spawn_agent(100.0, 100.0, phase=Going(EXIT, None, (0, 5)))
    sim.request_path(old)
    sim.reset()
    new = sim.spawn_agent(300.0, 160.0, phase=Going(EXIT, None, (0, 5)))
    sim.start()
    sim.tick(100.0)
    assert new.phase.route is None
    assert sim.pending_paths == 0


def test_synchronous_ticks_serve_agents(one_stall_layout):
    sim = Simulation(fixed_params(value=400.0), one_stall_layout, quiet_settings(initial_agents=3), seed=5)
    sim.start()
    for _ in range(1500):
        sim.tick(100.0)
        if not sim.agents:
            break
    assert sim.agents == {}
    assert sim.metrics.served == 3
