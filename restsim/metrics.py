# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# metrics.py
# -----------------------------------------------------------------------------
# Purpose:
#   Collect and summarize KPIs: fixture waits, time in system, throughput,
#   fixture utilization and queue lengths over time.
#
# Design notes:
#   - Keep side-effect methods (note_*) for instrumentation from the agent
#     state machine and the driver.
#   - Clock values are milliseconds; summaries report seconds and minutes.
#   - Summaries return JSON-serializable dicts for easy tabulation.
#
# Usage:
#   M = Metrics(warmup_ms=60000); ...; M.summary(sim.t)
# -----------------------------------------------------------------------------

from __future__ import annotations
import math
from collections import defaultdict
from typing import Dict, List, Mapping


def percentile(values: List[float], q: float) -> float:
    if not values:
        return 0.0
    ordered = sorted(values)
    idx = int(math.ceil(q * len(ordered))) - 1
    idx = max(0, min(idx, len(ordered) - 1))
    return ordered[idx]


class Metrics:
    def __init__(self, warmup_ms: float = 0.0, sample_every_ms: float = 1000.0):
        self.warmup_ms = warmup_ms
        self.sample_every_ms = sample_every_ms
        self.spawned = 0
        self.served = 0
        self.exited = 0
        self.wait_samples = defaultdict(list)       # gender -> fixture waits (ms)
        self.time_in_system: List[float] = []
        self.busy_ms = defaultdict(float)           # fixture id -> busy time after warm-up
        self.fixture_kinds: Dict[str, str] = {}
        self._busy_since: Dict[str, float] = {}
        self._joined: Dict[int, float] = {}         # agent id -> queue join time
        self.max_queue = 0
        self.time_series: List[Dict[str, float]] = []
        self._last_sample = -math.inf

    def _active(self, t: float) -> bool:
        """Return True if t is beyond the warm-up period."""
        return t >= self.warmup_ms

    def attach_fixtures(self, fixtures):
        """Register occupiable fixtures so idle ones still report utilization."""
        for f in fixtures:
            self.fixture_kinds[f.id] = f.kind

    def note_spawn(self, agent, t: float):
        if self._active(t):
            self.spawned += 1

    def note_queue_join(self, agent, fixture, t: float):
        self.fixture_kinds[fixture.id] = fixture.kind
        self._joined[agent.id] = t

    def note_fixture_start(self, agent, fixture, t: float):
        self.fixture_kinds[fixture.id] = fixture.kind
        self._busy_since[fixture.id] = t
        joined_at = self._joined.pop(agent.id, None)
        if not self._active(t):
            return
        self.served += 1
        if joined_at is not None:
            self.wait_samples[agent.gender].append(max(t - joined_at, 0.0))

    def note_fixture_end(self, agent, fixture, t: float):
        start = self._busy_since.pop(fixture.id, None)
        if start is None:
            return
        self.busy_ms[fixture.id] += max(t - max(start, self.warmup_ms), 0.0)

    def note_exit(self, agent, t: float):
        if not self._active(t):
            return
        self.exited += 1
        self.time_in_system.append(max(t - agent.spawned_at, 0.0))

    def note_sample(self, t: float, queue_lengths: Mapping[str, int]):
        total = sum(queue_lengths.values())
        self.max_queue = max(self.max_queue, max(queue_lengths.values(), default=0))
        if t - self._last_sample < self.sample_every_ms:
            return
        self._last_sample = t
        self.time_series.append({"time_minutes": t / 60000.0, "queued_total": float(total)})

    def summary(self, elapsed_ms: float) -> Dict:
        observed_ms = max(elapsed_ms - self.warmup_ms, 0.0)
        busy = dict(self.busy_ms)
        for fid, start in self._busy_since.items():
            busy[fid] = busy.get(fid, 0.0) + max(elapsed_ms - max(start, self.warmup_ms), 0.0)
        utilization = {
            fid: (busy.get(fid, 0.0) / observed_ms if observed_ms > 0 else 0.0)
            for fid in self.fixture_kinds
        }
        by_kind: Dict[str, List[float]] = defaultdict(list)
        for fid, u in utilization.items():
            by_kind[self.fixture_kinds[fid]].append(u)
        all_waits = [w for waits in self.wait_samples.values() for w in waits]
        avg_wait = {g: (sum(w) / len(w) / 1000.0) if w else 0.0 for g, w in self.wait_samples.items()}
        avg_wait["all"] = (sum(all_waits) / len(all_waits) / 1000.0) if all_waits else 0.0
        hours = observed_ms / 3600000.0
        return {
            "spawned": self.spawned,
            "served": self.served,
            "exited": self.exited,
            "avg_wait_seconds": avg_wait,
            "p95_wait_seconds": percentile(all_waits, 0.95) / 1000.0,
            "avg_time_in_system_seconds": (
                sum(self.time_in_system) / len(self.time_in_system) / 1000.0 if self.time_in_system else 0.0
            ),
            "throughput_per_hour": self.exited / hours if hours > 0 else 0.0,
            "fixture_utilization": utilization,
            "utilization_by_kind": {k: sum(v) / len(v) for k, v in by_kind.items()},
            "max_queue_length": self.max_queue,
            # Raw time-series (includes warm-up) for plotting.
            "time_series": list(self.time_series),
        }
