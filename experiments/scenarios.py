"""
experiments/scenarios.py

Holds scenario definitions (layouts, arrival load, gender mix) to sweep during
experiments. Each scenario is a set of overrides merged onto the baseline
config; lists such as layout.fixtures are replaced wholesale.
"""

from __future__ import annotations

_WALLS = [
    {"id": "wall-top", "kind": "wall", "x": 100, "y": 0, "w": 500, "h": 20},
    {"id": "wall-bottom", "kind": "wall", "x": 100, "y": 380, "w": 500, "h": 20},
    {"id": "wall-left-a", "kind": "wall", "x": 100, "y": 20, "w": 20, "h": 160},
    {"id": "wall-left-b", "kind": "wall", "x": 100, "y": 220, "w": 20, "h": 160},
    {"id": "wall-right", "kind": "wall", "x": 580, "y": 20, "w": 20, "h": 360},
    {"id": "door-1", "kind": "door", "x": 100, "y": 180, "w": 20, "h": 40},
    {"id": "sink-1", "kind": "sink", "x": 200, "y": 340, "w": 40, "h": 20},
    {"id": "sink-2", "kind": "sink", "x": 260, "y": 340, "w": 40, "h": 20},
]


def _stalls(n: int, top: int = 40, pitch: int = 50):
    return [
        {"id": f"stall-{i + 1}", "kind": "stall", "x": 520, "y": top + i * pitch, "w": 40, "h": 40}
        for i in range(n)
    ]


BASELINE = {
    "name": "baseline",
    "overrides": {},  # equal layout from config/baseline.yaml
}

MORE_STALLS_WOMEN = {
    "name": "more_stalls_women",
    "overrides": {
        # urinal floor space converted into two extra stalls
        "layout": {"fixtures": _WALLS + _stalls(6)},
    },
}

HIGH_LOAD = {
    "name": "high_load",
    "overrides": {
        "params": {
            "arrival": {"rate_per_min": 8.0},
        },
    },
}

SURGE = {
    "name": "intermission_surge",
    "overrides": {
        "params": {
            "arrival": {"surge": {"t_start": 10, "t_end": 15, "multiplier": 3.0}},
        },
    },
}

MALE_HEAVY = {
    "name": "male_heavy",
    "overrides": {
        "params": {
            "gender_mix": {"female": 0.3, "male": 0.7},
        },
    },
}

SCENARIOS = [BASELINE, MORE_STALLS_WOMEN, HIGH_LOAD, SURGE, MALE_HEAVY]
