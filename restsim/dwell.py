# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# dwell.py
# -----------------------------------------------------------------------------
# Purpose:
#   Draw how long an agent occupies a stall or urinal (milliseconds), from
#   the distribution configured for the agent's gender.
#
# Design notes:
#   - Normal variates come from the Box-Muller transform on two uniforms drawn
#     from the injected random source, so a seeded Random reproduces runs.
#   - Samples are multiplied by `scale` (0.5 by default) so interactive runs
#     stay short. Unknown distributions fall back to `default`, unscaled.
#
# Usage:
#   sampler = DwellSampler(params.dwell, random.Random(7)); sampler.sample("male")
# -----------------------------------------------------------------------------

from __future__ import annotations
import logging
import math
import random
from typing import Mapping, Optional, Set

from .entities import Distribution

log = logging.getLogger(__name__)

DEFAULT_SCALE = 0.5
DEFAULT_DWELL_MS = 100.0


def _uniform_open(rng: random.Random) -> float:
    """Uniform draw on (0, 1]; keeps log() finite."""
    return 1.0 - rng.random()


def box_muller(rng: random.Random) -> float:
    u1 = _uniform_open(rng)
    u2 = rng.random()
    return math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)


class DwellSampler:
    """Per-gender dwell-time sampler.

    Parameters
    ----------
    specs : mapping
        gender -> Distribution.
    rng : random.Random
        Source of uniform draws; share the simulation's so seeds cover dwell.
    scale : float
        Multiplier applied to every named distribution.
    default : float
        Returned for unknown distribution names or missing genders.
    """

    def __init__(self, specs: Mapping[str, Distribution], rng: Optional[random.Random] = None,
                 scale: float = DEFAULT_SCALE, default: float = DEFAULT_DWELL_MS):
        self.specs = dict(specs)
        self.rng = rng or random.Random()
        self.scale = scale
        self.default = default
        self._warned: Set[str] = set()

    def draw(self, dist: Distribution) -> Optional[float]:
        """Unscaled sample, or None if the distribution name is unknown."""
        p = dist.params
        if dist.name == "lognormal":
            return math.exp(p.get("mu", 0.0) + p.get("sigma", 0.0) * box_muller(self.rng))
        if dist.name == "exponential":
            rate = p.get("rate", 0.0)
            if rate <= 0:
                return None
            return -math.log(_uniform_open(self.rng)) / rate
        if dist.name == "normal":
            return max(0.0, p.get("mean", 0.0) + p.get("std", 0.0) * box_muller(self.rng))
        if dist.name == "fixed":
            return p.get("value", 0.0)
        return None

    def sample(self, gender: str) -> float:
        dist = self.specs.get(gender)
        value = self.draw(dist) if dist is not None else None
        if value is None:
            key = f"{gender}:{dist.name if dist else '<missing>'}"
            if key not in self._warned:
                self._warned.add(key)
                log.warning("no usable dwell distribution for %s, using %.0f ms", key, self.default)
            return self.default
        return value * self.scale
