# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# entities.py
# -----------------------------------------------------------------------------
# Purpose:
#   Entity definitions for the restroom model: Fixture, Layout, SimParams and
#   the Agent with its per-state phase records.
#
# Design notes:
#   - Layout, Fixture and SimParams are frozen; the engine never mutates them.
#   - An Agent carries exactly one phase object. Each phase holds only the
#     fields its state needs (a queueing agent has no path, an occupying agent
#     has no route), so invalid field combinations cannot be built.
#   - Going.route is None while the path request is still in flight.
#
# Usage:
#   from restsim.entities import Layout, SimParams, Agent, Arriving
# -----------------------------------------------------------------------------

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Tuple, Union

from .errors import ConfigError, LayoutError

Cell = Tuple[int, int]

FEMALE = "female"
MALE = "male"
GENDERS = (FEMALE, MALE)

FIXTURE_KINDS = ("wall", "door", "stall", "urinal", "sink")
OCCUPIABLE_KINDS = ("stall", "urinal")

# Target kinds for path-directed movement
STALL = "STALL"
SINK = "SINK"
EXIT = "EXIT"


@dataclass(frozen=True)
class Fixture:
    id: str
    kind: str                        # 'wall' | 'door' | 'stall' | 'urinal' | 'sink'
    x: float
    y: float
    w: float
    h: float

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.w / 2.0, self.y + self.h / 2.0)

    def contains(self, px: float, py: float) -> bool:
        return self.x <= px < self.x + self.w and self.y <= py < self.y + self.h

    def usable_by(self, gender: str) -> bool:
        if self.kind == "stall":
            return True
        if self.kind == "urinal":
            return gender == MALE
        return False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Fixture":
        try:
            kind = str(data["kind"])
            fixture = cls(
                id=str(data["id"]),
                kind=kind,
                x=float(data["x"]),
                y=float(data["y"]),
                w=float(data["w"]),
                h=float(data["h"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise LayoutError(f"malformed fixture {dict(data)!r}: {exc}") from exc
        if kind not in FIXTURE_KINDS:
            raise LayoutError(f"fixture {fixture.id!r} has unknown kind {kind!r}")
        return fixture


@dataclass(frozen=True)
class Layout:
    width: float
    height: float
    grid_size: float
    fixtures: Tuple[Fixture, ...] = ()

    def of_kind(self, kind: str) -> List[Fixture]:
        return [f for f in self.fixtures if f.kind == kind]

    @property
    def door(self) -> Optional[Fixture]:
        """First door in layout order; agents enter and leave through it."""
        for f in self.fixtures:
            if f.kind == "door":
                return f
        return None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Layout":
        """Build a Layout from the host mapping (camelCase or snake_case keys)."""
        try:
            grid_size = data.get("grid_size", data.get("gridSize", 20))
            layout = cls(
                width=float(data["width"]),
                height=float(data["height"]),
                grid_size=float(grid_size or 20),
                fixtures=tuple(Fixture.from_dict(f) for f in data.get("fixtures", ())),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise LayoutError(f"malformed layout: {exc}") from exc
        if layout.grid_size <= 0:
            raise LayoutError("grid_size must be positive")
        ids = [f.id for f in layout.fixtures]
        if len(set(ids)) != len(ids):
            raise LayoutError("fixture ids must be unique")
        return layout


@dataclass(frozen=True)
class Distribution:
    name: str                        # 'lognormal' | 'exponential' | 'normal' | 'fixed'
    params: Mapping[str, float] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Distribution":
        return cls(str(data.get("name", "")), {k: float(v) for k, v in dict(data.get("params", {})).items()})


@dataclass(frozen=True)
class Surge:
    """Multiplicative arrival boost inside [t_start, t_end) minutes of sim time."""
    t_start: float
    t_end: float
    multiplier: float


@dataclass(frozen=True)
class SimParams:
    dwell: Mapping[str, Distribution]
    rate_per_min: float = 0.0
    female_share: float = 0.5
    surge: Optional[Surge] = None
    sink_required: bool = True

    def arrival_multiplier(self, t_ms: float) -> float:
        if self.surge is None:
            return 1.0
        minute = t_ms / 60000.0
        if self.surge.t_start <= minute < self.surge.t_end:
            return self.surge.multiplier
        return 1.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SimParams":
        """Build SimParams from the host mapping (camelCase or snake_case keys)."""
        try:
            dwell = {g: Distribution.from_dict(spec) for g, spec in dict(data.get("dwell", {})).items()}
            arrival = dict(data.get("arrival", {}))
            rate = float(arrival.get("rate_per_min", arrival.get("ratePerMin", 0.0)))
            surge_cfg = arrival.get("surge")
            surge = None
            if surge_cfg:
                surge = Surge(
                    float(surge_cfg.get("t_start", surge_cfg.get("tStart", 0.0))),
                    float(surge_cfg.get("t_end", surge_cfg.get("tEnd", 0.0))),
                    float(surge_cfg.get("multiplier", 1.0)),
                )
            mix = dict(data.get("gender_mix", data.get("genderMix", {})))
            female = float(mix.get(FEMALE, 0.5))
            routing = dict(data.get("routing", {}))
            sink_required = bool(routing.get("sink_required", routing.get("sinkRequired", True)))
        except (TypeError, ValueError, AttributeError) as exc:
            raise ConfigError(f"malformed simulation params: {exc}") from exc
        if not 0.0 <= female <= 1.0:
            raise ConfigError(f"gender_mix.female must lie in [0, 1], got {female}")
        if rate < 0:
            raise ConfigError(f"arrival rate must be non-negative, got {rate}")
        return cls(dwell=dwell, rate_per_min=rate, female_share=female, surge=surge, sink_required=sink_required)


# ---------------------------------------------------------------------------
# Agent phases
# ---------------------------------------------------------------------------

@dataclass
class Route:
    """Resolved path plus the float tile-space position used while following it."""
    cells: List[Cell]
    step: int
    rx: float
    ry: float


@dataclass
class Arriving:
    name: ClassVar[str] = "arriving"


@dataclass
class Queueing:
    fixture: Optional[Fixture] = None    # None until shortest-queue selection ran
    name: ClassVar[str] = "queueing"


@dataclass
class Going:
    kind: str                        # STALL | SINK | EXIT
    fixture: Optional[Fixture]
    goal: Cell
    route: Optional[Route] = None
    name: ClassVar[str] = "going"

    @property
    def pending(self) -> bool:
        return self.route is None


@dataclass
class Occupying:
    fixture: Fixture
    dwell: float
    name: ClassVar[str] = "occupying"


@dataclass
class Washing:
    remaining: Optional[float] = None    # None until the agent reaches the sink
    name: ClassVar[str] = "washing"


@dataclass
class Exiting:
    name: ClassVar[str] = "exiting"


Phase = Union[Arriving, Queueing, Going, Occupying, Washing, Exiting]


@dataclass
class Agent:
    id: int
    gender: str
    x: float
    y: float
    phase: Phase = field(default_factory=Arriving)
    speed: float = 4.0               # tiles per second while following a route
    spawned_at: float = 0.0

    @property
    def state(self) -> str:
        return self.phase.name

    @property
    def target_fixture(self) -> Optional[Fixture]:
        return getattr(self.phase, "fixture", None)

    def to_dict(self) -> Dict[str, Any]:
        """Snapshot view handed to renderers; a fresh copy on every call."""
        out: Dict[str, Any] = {
            "id": self.id,
            "gender": self.gender,
            "state": self.state,
            "pos": {"x": self.x, "y": self.y},
            "speed": self.speed,
            "target_fixture": self.target_fixture.id if self.target_fixture else None,
        }
        phase = self.phase
        if isinstance(phase, Going):
            out["target_kind"] = phase.kind
            out["path_pending"] = phase.pending
            if phase.route is not None:
                out["path"] = [list(c) for c in phase.route.cells]
                out["path_step"] = phase.route.step
                out["rx"], out["ry"] = phase.route.rx, phase.route.ry
        elif isinstance(phase, Occupying):
            out["dwell"] = phase.dwell
        elif isinstance(phase, Washing):
            out["dwell_remaining"] = phase.remaining
        return out
