# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# simulation.py
# -----------------------------------------------------------------------------
# Purpose:
#   The simulation driver. Owns every piece of mutable state (clock, agents,
#   running flag, fixture occupancy, random source) and advances it one tick
#   at a time. Also runs a headless replication for the experiment harness.
#
# Design notes:
#   - Agents live in a dict keyed by id. Ids are handed out in increasing
#     order, so insertion order is ascending id and is the update order. It
#     decides which agent claims a just-vacated fixture first.
#   - Path requests run as asyncio tasks on the running loop. Without a
#     running loop (a plain synchronous caller) they are deferred and routed
#     inline at the start of the next tick. Results are written back by agent
#     id; results for agents that are gone, no longer
#     going, or were requested before the last reset are dropped.
#   - One random.Random drives spawning, gender draws and dwell samples;
#     reset() reseeds it so equal seeds reproduce equal runs.
#
# Usage:
#   sim = Simulation(params, layout, seed=7); sim.start(); snap = sim.tick(50)
#   summary = run_replication(cfg)
# -----------------------------------------------------------------------------

from __future__ import annotations
import asyncio
import logging
import math
import random
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from .agents import update_agent
from .config import EngineSettings, layout_from_cfg, params_from_cfg, settings_from_cfg
from .dwell import DwellSampler
from .entities import FEMALE, MALE, Agent, Cell, Exiting, Going, Layout, Phase, Route, SimParams
from .fixtures import FixtureOccupancyManager
from .grid import build_grid
from .metrics import Metrics
from .paths import PathProducer, make_path_producer

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    time: float
    agents: List[Dict[str, Any]]


class Simulation:
    """Simulation state plus the init/reset/start/stop/tick lifecycle.

    Parameters
    ----------
    params : SimParams
        Arrival rate, gender mix, dwell distributions and routing flags.
    layout : Layout
        Immutable fixture layout; the grid is rasterized from it once here.
    settings : EngineSettings, optional
        Engine constants; defaults reproduce the interactive behaviour.
    seed : int, optional
        Seed for the shared random source (None -> nondeterministic).
    path_producer : PathProducer, optional
        Replaces the producer chosen by settings.path_mode.
    warmup_ms : float
        Metrics ignore observations before this clock value.
    """

    def __init__(self, params: SimParams, layout: Layout, settings: Optional[EngineSettings] = None,
                 seed: Optional[int] = None, path_producer: Optional[PathProducer] = None,
                 warmup_ms: float = 0.0):
        self.params = params
        self.layout = layout
        self.settings = settings or EngineSettings()
        self.seed = seed
        self.rng = random.Random(seed)
        self.grid = build_grid(layout)
        self.paths = path_producer or make_path_producer(self.settings.path_mode, self.grid)
        self.sampler = DwellSampler(params.dwell, self.rng, scale=self.settings.dwell_scale,
                                    default=self.settings.dwell_default_ms)
        self.occupancy = FixtureOccupancyManager()
        self.warmup_ms = warmup_ms
        self.metrics = Metrics(warmup_ms)
        self.agents: Dict[int, Agent] = {}
        self.t = 0.0
        self.running = False
        self.next_id = 0
        self.generation = 0
        self._pending: Set[asyncio.Task] = set()
        self._deferred: List[Tuple[int, int, Cell, Cell]] = []
        log.info("init: %d fixtures, grid %dx%d", len(layout.fixtures), self.grid.width, self.grid.height)
        self.reset()

    # -- lifecycle ---------------------------------------------------------

    def start(self):
        if not self.running:
            log.info("simulation started at t=%.0f ms", self.t)
        self.running = True

    def stop(self):
        if self.running:
            log.info("simulation stopped at t=%.0f ms", self.t)
        self.running = False

    def reset(self):
        self.generation += 1
        self._deferred = []
        self.rng.seed(self.seed)
        self.t = 0.0
        self.agents = {}
        self.next_id = 0
        self.occupancy.reset(self.layout.fixtures)
        self.metrics = Metrics(self.warmup_ms)
        self.metrics.attach_fixtures(st.fixture for st in self.occupancy.states.values())
        door = self.layout.door
        if door is not None:
            for i in range(self.settings.initial_agents):
                # Staggered so the initial batch does not overlap
                x = door.x - self.settings.spawn_offset - i * 20.0
                y = door.y + door.h / 2.0 + ((i % 3) - 1) * 18.0
                self.spawn_agent(x, y)
        log.info("reset: spawned %d agents", len(self.agents))

    # -- agents ------------------------------------------------------------

    def draw_gender(self) -> str:
        return FEMALE if self.rng.random() < self.params.female_share else MALE

    def spawn_agent(self, x: float, y: float, gender: Optional[str] = None,
                    phase: Optional[Phase] = None) -> Agent:
        agent = Agent(
            id=self.next_id,
            gender=gender or self.draw_gender(),
            x=x,
            y=y,
            speed=self.settings.agent_speed,
            spawned_at=self.t,
        )
        if phase is not None:
            agent.phase = phase
        self.next_id += 1
        self.agents[agent.id] = agent
        self.metrics.note_spawn(agent, self.t)
        log.debug("spawned agent %s (%s)", agent.id, agent.gender)
        return agent

    def _near_door(self, agent: Agent) -> bool:
        door = self.layout.door
        if door is None:
            return False
        cx, cy = door.center
        return math.hypot(cx - agent.x, cy - agent.y) < self.settings.door_radius

    def _maybe_spawn(self, dt: float):
        door = self.layout.door
        if door is None:
            return
        rate = self.params.rate_per_min * self.params.arrival_multiplier(self.t)
        chance = rate / 60.0 * self.settings.arrival_boost * dt / 1000.0
        if self.rng.random() < chance:
            self.spawn_agent(door.x - self.settings.spawn_offset, door.y + door.h / 2.0)

    # -- tick --------------------------------------------------------------

    def tick(self, dt: float) -> Snapshot:
        """Advance by `dt` ms when running; always returns a snapshot."""
        if self.running:
            self.t += dt
            self._route_deferred()
            survivors: Dict[int, Agent] = {}
            for agent in list(self.agents.values()):
                out = update_agent(self, agent, dt)
                if out is not None:
                    survivors[out.id] = out
            self.agents = survivors
            for aid, agent in list(self.agents.items()):
                if isinstance(agent.phase, Exiting) and self._near_door(agent):
                    self.metrics.note_exit(agent, self.t)
                    del self.agents[aid]
            self._maybe_spawn(dt)
            self.metrics.note_sample(self.t, self.occupancy.queue_lengths())
            if self.settings.check_invariants:
                self.occupancy.verify(self.agents.keys())
        return self.snapshot()

    def snapshot(self) -> Snapshot:
        return Snapshot(self.t, [a.to_dict() for a in self.agents.values()])

    # -- paths -------------------------------------------------------------

    def request_path(self, agent: Agent):
        """Ask the path producer for a route to the agent's Going goal.

        Does not wait: the agent stays in Going with no route until the task
        completes, possibly several ticks later.
        """
        phase = agent.phase
        if not isinstance(phase, Going):
            raise TypeError(f"agent {agent.id} requested a path while {agent.state}")
        start = self.grid.to_cell(agent.x, agent.y)
        request = (agent.id, self.generation, start, phase.goal)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._deferred.append(request)
            log.debug("agent %s deferred path %s -> %s (no event loop)", agent.id, start, phase.goal)
            return
        task = loop.create_task(self._resolve_path(*request))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        log.debug("agent %s requested path %s -> %s (%s)", agent.id, start, phase.goal, phase.kind)

    async def _resolve_path(self, agent_id: int, generation: int, start: Cell, goal: Cell):
        cells = await self.paths.produce_path(start, goal)
        self.apply_path(agent_id, generation, start, cells)

    def _route_deferred(self):
        requests, self._deferred = self._deferred, []
        for agent_id, generation, start, goal in requests:
            self.apply_path(agent_id, generation, start, self.paths.route(start, goal))

    def apply_path(self, agent_id: int, generation: int, start: Cell, cells: Sequence[Cell]) -> bool:
        """Write a finished path into the agent's Going phase; False if it was stale."""
        if generation != self.generation:
            log.debug("dropping path for agent %s from before reset", agent_id)
            return False
        agent = self.agents.get(agent_id)
        if agent is None or not isinstance(agent.phase, Going) or agent.phase.route is not None:
            log.debug("dropping path for agent %s (gone or no longer waiting)", agent_id)
            return False
        agent.phase.route = Route(list(cells), 0, float(start[0]), float(start[1]))
        agent.x, agent.y = self.grid.cell_center_px(*start)
        return True

    @property
    def pending_paths(self) -> int:
        return len(self._pending) + len(self._deferred)

    async def settle(self):
        """Wait until every outstanding path request has completed."""
        self._route_deferred()
        while self._pending:
            await asyncio.gather(*list(self._pending))


async def run_headless(cfg: Dict, seed: Optional[int] = None) -> Dict:
    """Simulate one replication from a config mapping and return the KPI summary."""
    sim_cfg = cfg.get("sim", {})
    if seed is None:
        seed = sim_cfg.get("seed", 0)
    tick_ms = float(sim_cfg.get("tick_ms", 100.0))
    duration_ms = float(sim_cfg.get("duration_minutes", 20.0)) * 60000.0
    warmup_ms = float(sim_cfg.get("warmup_minutes", 0.0)) * 60000.0

    sim = Simulation(
        params_from_cfg(cfg),
        layout_from_cfg(cfg),
        settings_from_cfg(cfg),
        seed=seed,
        warmup_ms=warmup_ms,
    )
    sim.start()
    while sim.t < duration_ms:
        sim.tick(tick_ms)
        # let finished path requests land before the next tick
        await asyncio.sleep(0)
    await sim.settle()
    return sim.metrics.summary(sim.t)


def run_replication(cfg: Dict, seed: Optional[int] = None) -> Dict:
    return asyncio.run(run_headless(cfg, seed))
