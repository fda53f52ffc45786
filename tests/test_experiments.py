"""Experiment harness helpers."""
from __future__ import annotations

import math
import os

import pytest
import yaml

from experiments import run_experiments
from experiments.run_experiments import (
    aggregate_time_series, avg_nested, main, mean_ci, plot_queue_series, run_crn, run_replications,
)
from experiments.scenarios import SCENARIOS
from restsim.config import apply_overrides, load_cfg, layout_from_cfg, params_from_cfg


def test_mean_ci():
    assert mean_ci([], 0.95) == (0.0, 0.0)
    assert mean_ci([4.0], 0.95) == (4.0, 0.0)
    mu, half = mean_ci([1.0, 2.0, 3.0], 0.95)
    assert mu == 2.0
    # t(0.975, 2) = 4.3027
    assert half == pytest.approx(4.3027 / 3 ** 0.5, rel=1e-3)


def test_aggregate_time_series_carries_last_value():
    results = [
        {"time_series": [{"time_minutes": 0.0, "queued_total": 1.0}, {"time_minutes": 1.5, "queued_total": 3.0}]},
        {"time_series": [{"time_minutes": 0.0, "queued_total": 0.0}, {"time_minutes": 2.0, "queued_total": 5.0}]},
    ]
    agg = aggregate_time_series(results, 1.0)
    assert [p["time_minutes"] for p in agg] == [0.0, 1.0, 2.0]
    assert [p["queued_total"] for p in agg] == [0.5, 0.5, 4.0]


def test_avg_nested():
    results = [{"u": {"stall": 0.2}}, {"u": {"stall": 0.4, "urinal": 0.2}}]
    assert avg_nested(results, "u") == {"stall": pytest.approx(0.3), "urinal": pytest.approx(0.1)}


def test_scenarios_build_valid_configs():
    base = load_cfg()
    for sc in SCENARIOS:
        cfg = apply_overrides(base, sc["overrides"])
        assert layout_from_cfg(cfg).door is not None
        params_from_cfg(cfg)


def test_replications_use_distinct_seeds():
    cfg = apply_overrides(load_cfg(), {"sim": {"duration_minutes": 1, "warmup_minutes": 0}})
    results = run_replications(cfg, 2, 100)
    assert len(results) == 2
    assert all(r["spawned"] >= 6 for r in results)


def test_main_rejects_missing_config(tmp_path, capsys):
    assert main(["--config", str(tmp_path / "missing.yaml")]) == 2
    assert "[error]" in capsys.readouterr().out


def _short_cfg(**experiments):
    cfg = apply_overrides(load_cfg(), {"sim": {"duration_minutes": 1, "warmup_minutes": 0}})
    if experiments:
        cfg = apply_overrides(cfg, {"experiments": experiments})
    return cfg


def test_crn_identical_scenarios_have_zero_difference(capsys):
    sc = {"name": "baseline", "overrides": {}}
    mean_diff, half = run_crn(_short_cfg(), sc, sc, 2, 40, 0.95)
    assert (mean_diff, half) == (0.0, 0.0)
    assert "CRN paired wait comparison" in capsys.readouterr().out


def test_crn_paired_difference_has_finite_interval():
    by_name = {s["name"]: s for s in SCENARIOS}
    mean_diff, half = run_crn(_short_cfg(), by_name["baseline"], by_name["high_load"], 3, 40, 0.95, C=2)
    assert math.isfinite(mean_diff)
    assert math.isfinite(half) and half >= 0.0


def test_main_applies_bonferroni_per_listed_pair(tmp_path, monkeypatch, capsys):
    cfg = _short_cfg(replications=1, crn_compare=[
        ["baseline", "high_load"], ["baseline", "male_heavy"],
    ])
    path = tmp_path / "cfg.yaml"
    path.write_text(yaml.safe_dump(cfg))
    seen = []
    monkeypatch.setattr(run_experiments, "run_crn", lambda *args: seen.append(args[-1]) or (0.0, 0.0))
    assert main(["--config", str(path), "--scenario", "baseline"]) == 0
    assert seen == [2, 2]


def test_plot_queue_series_writes_png(tmp_path, monkeypatch):
    monkeypatch.setattr(run_experiments, "ROOT", str(tmp_path))
    assert plot_queue_series([], 0.0) is None
    series = [
        {"name": "baseline", "series": [{"time_minutes": 0.0, "queued_total": 0.0},
                                        {"time_minutes": 1.0, "queued_total": 2.0}]},
        {"name": "high_load", "series": []},
    ]
    out = plot_queue_series(series, warmup_minutes=0.5, out_name="queues.png")
    assert out == str(tmp_path / "experiments" / "output" / "queues.png")
    assert os.path.getsize(out) > 0
