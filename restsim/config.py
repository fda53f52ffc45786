# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# config.py
# -----------------------------------------------------------------------------
# Purpose:
#   Load the YAML run configuration, merge scenario overrides into it, and
#   turn its sections into SimParams, Layout and EngineSettings.
#
# Design notes:
#   - config/baseline.yaml sections: params, layout, engine, sim, experiments.
#   - Engine constants (speeds, thresholds, wash time, dwell scale) live in
#     EngineSettings so scenarios can tune them without touching code.
#
# Usage:
#   cfg = load_cfg(); cfg = apply_overrides(cfg, {"params": {...}})
# -----------------------------------------------------------------------------

from __future__ import annotations
import copy
import dataclasses
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import yaml

from .entities import Layout, SimParams
from .errors import ConfigError

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
DEFAULT_CONFIG = os.path.join(ROOT, "config", "baseline.yaml")


@dataclass(frozen=True)
class EngineSettings:
    """Tunable engine constants. Distances in pixels, durations in ms."""
    arrive_step: float = 8.0         # px per tick toward the door
    queue_step: float = 8.0          # px per tick toward a queue slot
    wash_step: float = 6.0           # px per tick toward a sink
    exit_step: float = 8.0           # px per tick toward the door on the way out
    door_radius: float = 15.0
    slot_radius: float = 10.0
    sink_radius: float = 15.0
    queue_base_offset: float = 60.0
    queue_spacing: float = 28.0
    wash_ms: float = 300.0
    dwell_scale: float = 0.5
    dwell_default_ms: float = 100.0
    agent_speed: float = 4.0         # tiles per second on a route
    initial_agents: int = 6
    spawn_offset: float = 50.0       # px left of the door for new arrivals
    arrival_boost: float = 2.0       # multiplier on the per-tick spawn chance
    path_mode: str = "grid"          # 'grid' | 'line'
    check_invariants: bool = True


def load_cfg(path: Optional[str] = None) -> Dict[str, Any]:
    target = path or DEFAULT_CONFIG
    try:
        with open(target, "r") as f:
            cfg = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"cannot read config {target}: {exc}") from exc
    if not isinstance(cfg, dict):
        raise ConfigError(f"config {target} must be a mapping at top level")
    return cfg


def apply_overrides(cfg: Dict, overrides: Dict) -> Dict:
    """Apply scenario overrides (recursive merge) on top of the base config."""
    new = copy.deepcopy(cfg)

    def _merge(dst: Dict, src: Dict):
        for key, val in src.items():
            if isinstance(val, dict) and isinstance(dst.get(key), dict):
                _merge(dst[key], val)
            else:
                dst[key] = copy.deepcopy(val)

    _merge(new, overrides)
    return new


def settings_from_cfg(cfg: Dict) -> EngineSettings:
    engine = dict(cfg.get("engine") or {})
    mode = cfg.get("sim", {}).get("path_mode")
    if mode is not None:
        engine.setdefault("path_mode", mode)
    known = {f.name for f in dataclasses.fields(EngineSettings)}
    unknown = sorted(set(engine) - known)
    if unknown:
        raise ConfigError(f"unknown engine settings: {', '.join(unknown)}")
    if engine.get("path_mode", "grid") not in ("grid", "line"):
        raise ConfigError(f"path_mode must be 'grid' or 'line', got {engine['path_mode']!r}")
    return EngineSettings(**engine)


def params_from_cfg(cfg: Dict) -> SimParams:
    if "params" not in cfg:
        raise ConfigError("config has no 'params' section")
    return SimParams.from_dict(cfg["params"])


def layout_from_cfg(cfg: Dict) -> Layout:
    if "layout" not in cfg:
        raise ConfigError("config has no 'layout' section")
    return Layout.from_dict(cfg["layout"])
