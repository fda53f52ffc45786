# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# agents.py
# -----------------------------------------------------------------------------
# Purpose:
#   Per-tick agent behaviour: arriving -> queueing -> going -> occupying ->
#   washing -> exiting -> removed.
#
# Design notes:
#   - update_agent() mutates the agent and the occupancy manager in place and
#     returns None once the agent has left through the door.
#   - Straight-line phases step a fixed pixel distance per tick; the going
#     phase follows a grid route at `speed` tiles per second.
#   - A going agent with no route yet (path request in flight) is left alone.
#   - `sim` is the owning Simulation; only its layout, grid, occupancy,
#     sampler, settings, params, metrics, clock and request_path are used.
#
# Usage:
#   survivor = update_agent(sim, agent, dt)
# -----------------------------------------------------------------------------

from __future__ import annotations
import logging
import math
from typing import Optional, Tuple

from .entities import (
    EXIT, STALL, Agent, Arriving, Exiting, Fixture, Going, Occupying, Queueing, Washing,
)

log = logging.getLogger(__name__)


def step_toward(agent: Agent, tx: float, ty: float, step: float, radius: float) -> bool:
    """Move `agent` up to `step` px toward (tx, ty); True if already within `radius`."""
    dx = tx - agent.x
    dy = ty - agent.y
    dist = math.hypot(dx, dy)
    if dist < radius:
        return True
    move = min(step, dist)
    agent.x += dx / dist * move
    agent.y += dy / dist * move
    return False


def nearest_sink(sim, agent: Agent) -> Optional[Fixture]:
    sinks = sim.layout.of_kind("sink")
    if not sinks:
        return None
    return min(sinks, key=lambda f: math.hypot(f.center[0] - agent.x, f.center[1] - agent.y))


def queue_slot(sim, fixture: Fixture, index: int) -> Tuple[float, float]:
    """Waiting spot for the agent `index` places back, in a line left of the fixture."""
    cx, cy = fixture.center
    s = sim.settings
    return (cx - s.queue_base_offset - index * s.queue_spacing, cy)


def _arriving(sim, agent: Agent) -> Agent:
    door = sim.layout.door
    if door is None:
        return agent
    if step_toward(agent, *door.center, sim.settings.arrive_step, sim.settings.door_radius):
        agent.phase = Queueing()
    return agent


def _queueing(sim, agent: Agent, phase: Queueing) -> Agent:
    occ = sim.occupancy
    if phase.fixture is None:
        fixture = occ.shortest_queue(agent.gender)
        if fixture is None:
            return agent
        occ.enqueue(fixture.id, agent.id)
        phase.fixture = fixture
        sim.metrics.note_queue_join(agent, fixture, sim.t)
        log.debug("agent %s (%s) queued for %s (%s)", agent.id, agent.gender, fixture.id, fixture.kind)
        return agent

    fixture = phase.fixture
    index = occ.queue_index(fixture.id, agent.id)
    if index < 0:
        occ.enqueue(fixture.id, agent.id)
        index = occ.queue_index(fixture.id, agent.id)
    if index == 0 and occ.claim(fixture.id, agent.id):
        cx, cy = fixture.center
        agent.phase = Going(STALL, fixture, sim.grid.to_cell(cx, cy))
        sim.request_path(agent)
        return agent

    sx, sy = queue_slot(sim, fixture, index)
    if step_toward(agent, sx, sy, sim.settings.queue_step, sim.settings.slot_radius):
        agent.x, agent.y = sx, sy
    return agent


def _going(sim, agent: Agent, phase: Going, dt: float) -> Agent:
    route = phase.route
    if route is None:
        return agent
    if route.step < len(route.cells):
        gx, gy = route.cells[route.step]
        dx = gx - route.rx
        dy = gy - route.ry
        dist = math.hypot(dx, dy)
        step = agent.speed * (dt / 1000.0)
        if dist <= step:
            route.rx, route.ry = float(gx), float(gy)
            route.step += 1
        else:
            route.rx += dx / dist * step
            route.ry += dy / dist * step
        agent.x, agent.y = sim.grid.cell_center_px(route.rx, route.ry)
    if route.step >= len(route.cells):
        return _reach_target(sim, agent, phase)
    return agent


def _reach_target(sim, agent: Agent, phase: Going) -> Agent:
    if phase.kind == STALL and phase.fixture is not None:
        fixture = phase.fixture
        dwell = sim.sampler.sample(agent.gender)
        sim.occupancy.occupy(fixture.id, agent.id, dwell)
        sim.metrics.note_fixture_start(agent, fixture, sim.t)
        agent.phase = Occupying(fixture, dwell)
    elif phase.kind == EXIT:
        agent.phase = Exiting()
    else:
        # SINK, or a stall route that lost its fixture
        agent.phase = Washing()
    return agent


def _occupying(sim, agent: Agent, phase: Occupying, dt: float) -> Agent:
    occ = sim.occupancy
    fid = phase.fixture.id
    if occ.consume(fid, agent.id, dt):
        occ.release(fid, agent.id)
        sim.metrics.note_fixture_end(agent, phase.fixture, sim.t)
        agent.phase = Washing()
    return agent


def _washing(sim, agent: Agent, phase: Washing, dt: float) -> Agent:
    sink = nearest_sink(sim, agent) if sim.params.sink_required else None
    if sink is None:
        agent.phase = Exiting()
        return agent
    if phase.remaining is None:
        if not step_toward(agent, *sink.center, sim.settings.wash_step, sim.settings.sink_radius):
            return agent
        phase.remaining = sim.settings.wash_ms
    phase.remaining -= dt
    if phase.remaining <= 0:
        agent.phase = Exiting()
    return agent


def _exiting(sim, agent: Agent) -> Optional[Agent]:
    door = sim.layout.door
    if door is None:
        return agent
    if step_toward(agent, *door.center, sim.settings.exit_step, sim.settings.door_radius):
        sim.metrics.note_exit(agent, sim.t)
        return None
    return agent


def update_agent(sim, agent: Agent, dt: float) -> Optional[Agent]:
    """Advance one agent by `dt` ms. Returns None when the agent has left."""
    before = agent.state
    phase = agent.phase
    if isinstance(phase, Arriving):
        out = _arriving(sim, agent)
    elif isinstance(phase, Queueing):
        out = _queueing(sim, agent, phase)
    elif isinstance(phase, Going):
        out = _going(sim, agent, phase, dt)
    elif isinstance(phase, Occupying):
        out = _occupying(sim, agent, phase, dt)
    elif isinstance(phase, Washing):
        out = _washing(sim, agent, phase, dt)
    elif isinstance(phase, Exiting):
        out = _exiting(sim, agent)
    else:
        raise TypeError(f"agent {agent.id} has unknown phase {phase!r}")
    if out is None:
        log.debug("agent %s left through the door", agent.id)
    elif out.state != before:
        log.debug("agent %s: %s -> %s", agent.id, before, out.state)
    return out
