"""Layouts and factories shared by the restsim tests."""
from __future__ import annotations

from restsim.config import EngineSettings
from restsim.entities import Distribution, Fixture, Layout, SimParams


def make_layout(*fixtures, width=400, height=200, grid_size=20):
    return Layout(width=width, height=height, grid_size=grid_size, fixtures=tuple(fixtures))


DOOR = Fixture("door", "door", 0, 80, 20, 40)            # centre (10, 100)
STALL_1 = Fixture("stall-1", "stall", 300, 80, 40, 40)   # centre (320, 100)
URINAL_1 = Fixture("urinal-1", "urinal", 300, 20, 40, 20)
SINK_1 = Fixture("sink-1", "sink", 200, 160, 40, 20)     # centre (220, 170)


def fixed_params(value=2000.0, rate=0.0, female=0.5, sink_required=True):
    dist = Distribution("fixed", {"value": value})
    return SimParams(dwell={"female": dist, "male": dist}, rate_per_min=rate,
                     female_share=female, sink_required=sink_required)


def quiet_settings(**kw):
    kw.setdefault("initial_agents", 0)
    return EngineSettings(**kw)
