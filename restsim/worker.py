# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# worker.py
# -----------------------------------------------------------------------------
# Purpose:
#   Command surface exchanged with the host (controller + renderer): typed
#   init/start/stop/reset/tick messages in, `state` snapshots out.
#
# Design notes:
#   - Commands are handled strictly one at a time, in arrival order.
#   - Every tick yields exactly one StateMessage, even while stopped or before
#     init. Commands that arrive before init are no-ops.
#   - Malformed host messages are logged and skipped. Invariant violations
#     still propagate out of run().
#
# Usage:
#   worker = SimulationWorker(); await worker.run(inbox, outbox)
# -----------------------------------------------------------------------------

from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Union

from .config import EngineSettings
from .entities import Layout, SimParams
from .errors import CommandError, ConfigError, LayoutError
from .simulation import Simulation

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class InitCommand:
    params: SimParams
    layout: Layout
    seed: Optional[int] = None


@dataclass(frozen=True)
class StartCommand:
    pass


@dataclass(frozen=True)
class StopCommand:
    pass


@dataclass(frozen=True)
class ResetCommand:
    pass


@dataclass(frozen=True)
class TickCommand:
    dt: float


@dataclass(frozen=True)
class StateMessage:
    time: float
    agents: List[Dict[str, Any]]
    type: str = "state"


Command = Union[InitCommand, StartCommand, StopCommand, ResetCommand, TickCommand]


def parse_command(msg: Mapping[str, Any]) -> Command:
    """Turn a host mapping such as {"type": "tick", "dt": 16} into a command."""
    kind = msg.get("type") if isinstance(msg, Mapping) else None
    if kind == "init":
        try:
            seed = msg.get("seed")
            return InitCommand(
                SimParams.from_dict(msg["params"]),
                Layout.from_dict(msg["layout"]),
                int(seed) if seed is not None else None,
            )
        except KeyError as exc:
            raise CommandError(f"init message lacks {exc}") from exc
    if kind == "start":
        return StartCommand()
    if kind == "stop":
        return StopCommand()
    if kind == "reset":
        return ResetCommand()
    if kind == "tick":
        try:
            return TickCommand(float(msg["dt"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise CommandError(f"tick message needs a numeric dt: {exc}") from exc
    raise CommandError(f"unknown message type {kind!r}")


class SimulationWorker:
    """Single consumer of host commands; owns at most one Simulation."""

    def __init__(self, settings: Optional[EngineSettings] = None):
        self.settings = settings
        self.sim: Optional[Simulation] = None

    def handle(self, command: Command) -> Optional[StateMessage]:
        if isinstance(command, InitCommand):
            self.sim = Simulation(command.params, command.layout, self.settings, seed=command.seed)
            return None
        if isinstance(command, TickCommand):
            if self.sim is None:
                return StateMessage(0.0, [])
            snap = self.sim.tick(command.dt)
            return StateMessage(snap.time, snap.agents)
        if self.sim is None:
            log.debug("ignoring %s before init", type(command).__name__)
            return None
        if isinstance(command, StartCommand):
            self.sim.start()
        elif isinstance(command, StopCommand):
            self.sim.stop()
        elif isinstance(command, ResetCommand):
            self.sim.reset()
        return None

    async def run(self, inbox: "asyncio.Queue", outbox: "asyncio.Queue"):
        """Consume commands (or host dicts) until a None item arrives."""
        while True:
            item = await inbox.get()
            try:
                if item is None:
                    return
                try:
                    command = parse_command(item) if isinstance(item, Mapping) else item
                    reply = self.handle(command)
                except (CommandError, ConfigError, LayoutError) as exc:
                    log.warning("skipping malformed message: %s", exc)
                    continue
                if reply is not None:
                    await outbox.put(reply)
            finally:
                inbox.task_done()
