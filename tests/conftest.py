"""Fixtures for the restsim tests."""
from __future__ import annotations

import pytest

from helpers import DOOR, SINK_1, STALL_1, URINAL_1, fixed_params, make_layout, quiet_settings
from restsim.simulation import Simulation


@pytest.fixture
def one_stall_layout():
    return make_layout(DOOR, STALL_1, SINK_1)


@pytest.fixture
def stall_and_urinal_layout():
    return make_layout(DOOR, STALL_1, URINAL_1, SINK_1)


@pytest.fixture
def make_sim():
    def _make(layout, params=None, settings=None, seed=11, **kw):
        return Simulation(params or fixed_params(), layout, settings or quiet_settings(), seed=seed, **kw)
    return _make
