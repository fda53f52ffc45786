"""
experiments/run_experiments.py

Experiment harness that loads the baseline config, applies scenario overrides,
runs multiple headless replications, and reports restroom KPIs (fixture wait,
time in system, throughput, utilization) with confidence intervals. Optional
plots show the mean number of queued agents over time per scenario.
"""

from __future__ import annotations
import argparse, copy, logging, math, os, sys
from statistics import mean, stdev
from typing import Callable, Dict, List, Optional

from scipy.stats import t as student_t

try:
    # When executed as a module: python -m experiments.run_experiments
    from .scenarios import SCENARIOS  # type: ignore
except ImportError:  # pragma: no cover
    # When run as a script in VSCode/terminal
    ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    if ROOT not in sys.path:
        sys.path.insert(0, ROOT)
    from experiments.scenarios import SCENARIOS  # type: ignore

from restsim.config import ROOT, apply_overrides, load_cfg
from restsim.errors import RestsimError
from restsim.simulation import run_replication


def mean_ci(values: List[float], confidence_level: float) -> tuple[float, float]:
    """Return (mean, half-width) using a t-distribution critical value."""
    if not values:
        return 0.0, 0.0
    mu = mean(values)
    n = len(values)
    if n < 2:
        return mu, 0.0
    level = min(max(confidence_level, 0.0), 0.999999)
    alpha = 1.0 - level
    tcrit = student_t.ppf(1 - alpha / 2.0, n - 1)
    half = tcrit * (stdev(values) / math.sqrt(n))
    return mu, half


def sample_stddev(values: List[float]) -> float:
    """Return sample standard deviation or 0 if insufficient data."""
    if len(values) < 2:
        return 0.0
    return stdev(values)


def series(results: List[Dict], extractor: Callable[[Dict], float]) -> List[float]:
    """Collect a numeric series from each replication result."""
    return [float(extractor(res)) for res in results]


def avg_nested(results: List[Dict], key: str) -> Dict[str, float]:
    """Average nested dictionaries (e.g., utilization_by_kind) across replications."""
    if not results:
        return {}
    totals: Dict[str, float] = {}
    for res in results:
        nested = res.get(key, {})
        for subk, val in nested.items():
            totals[subk] = totals.get(subk, 0.0) + float(val)
    return {subk: totals[subk] / len(results) for subk in totals}


def run_replications(cfg: Dict, replications: int, base_seed: int) -> List[Dict]:
    results = []
    for rep in range(replications):
        rep_cfg = copy.deepcopy(cfg)
        # Advance the seed per replication so replications remain iid.
        rep_cfg.setdefault("sim", {})["seed"] = base_seed + rep
        results.append(run_replication(rep_cfg))
    return results


def run_crn(cfg: Dict, sc_a: Dict, sc_b: Dict, replications: int, base_seed: int, confidence: float, C: float = 1.0):
    """
    Common-random-number comparison of two scenarios: same seed per replication,
    paired differences of the average fixture wait, Bonferroni-adjusted CI.
    """
    cfg_a = apply_overrides(cfg, sc_a["overrides"])
    cfg_b = apply_overrides(cfg, sc_b["overrides"])
    results = []
    for rep in range(replications):
        seed = base_seed + rep
        wait_a = run_replication(cfg_a, seed)["avg_wait_seconds"].get("all", 0.0)
        wait_b = run_replication(cfg_b, seed)["avg_wait_seconds"].get("all", 0.0)
        results.append((seed, wait_a, wait_b))
    diffs = [b - a for (_, a, b) in results]
    mean_diff = mean(diffs)
    sd_diff = stdev(diffs) if len(diffs) > 1 else 0.0
    level = min(max(confidence, 0.0), 0.999999)
    alpha = (1.0 - level) / max(C, 1.0)
    df = max(1, len(diffs) - 1)
    tcrit = student_t.ppf(1 - alpha / 2.0, df)
    half = tcrit * (sd_diff / math.sqrt(len(diffs))) if len(diffs) > 1 else 0.0
    print(f"CRN paired wait comparison ({sc_b['name']} - {sc_a['name']}):")
    print("  Replication | Seed | Wait1 (s) | Wait2 (s) | Difference")
    for idx, (seed, w1, w2) in enumerate(results, start=1):
        print(f"    {idx:2d}        | {seed:4d} | {w1:8.2f} | {w2:8.2f} | {w2 - w1:8.2f}")
    print(f"  Mean difference: {mean_diff:.2f} s")
    print(f"  Std dev of differences: {sd_diff:.2f}")
    print(f"  {level*100:.1f}% CI of mean diff: {mean_diff - half:.2f} to {mean_diff + half:.2f} s")
    return mean_diff, half


def aggregate_time_series(results: List[Dict], interval_minutes: float) -> List[Dict[str, float]]:
    """
    Average the queued-agent count of every replication on a fixed minute grid
    (last observation carried forward) so scenarios can be plotted together.
    """
    if not results:
        return []
    if interval_minutes <= 0:
        interval_minutes = 1.0
    horizon = max((pt["time_minutes"] for res in results for pt in res.get("time_series", [])), default=0.0)
    grid = [i * interval_minutes for i in range(int(math.floor(horizon / interval_minutes)) + 1)]
    aggregated: List[Dict[str, float]] = []
    for minute in grid:
        vals: List[float] = []
        for res in results:
            pts = res.get("time_series", [])
            last = 0.0
            for pt in pts:
                if pt["time_minutes"] > minute:
                    break
                last = pt["queued_total"]
            vals.append(last)
        aggregated.append({"time_minutes": minute, "queued_total": sum(vals) / len(vals)})
    return aggregated


def plot_queue_series(all_series: List[Dict], warmup_minutes: float, out_name: str = "queue_length_by_time.png") -> Optional[str]:
    """Persist a PNG with the mean queued-agent count over time for each scenario."""
    if not all_series:
        return None
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt  # type: ignore

    plt.figure(figsize=(9, 5))
    for entry in all_series:
        pts = entry.get("series", [])
        if not pts:
            continue
        plt.plot([p["time_minutes"] for p in pts], [p["queued_total"] for p in pts],
                 linewidth=1.5, label=entry.get("name", "scenario"))
    if warmup_minutes > 0:
        plt.axvline(warmup_minutes, color="#f59e0b", linestyle="--", label="Warm-up cutoff")
    plt.xlim(left=0)
    plt.xlabel("Time (minutes)")
    plt.ylabel("Agents waiting in queues")
    plt.title("Queued agents over time across scenarios")
    plt.grid(True, linestyle="--", alpha=0.4)
    plt.legend()
    out_dir = os.path.join(ROOT, "experiments", "output")
    os.makedirs(out_dir, exist_ok=True)
    out_path = os.path.join(out_dir, out_name)
    plt.tight_layout()
    plt.savefig(out_path, dpi=160)
    plt.close()
    return out_path


def report(name: str, results: List[Dict], confidence: float, seeds: tuple):
    level_pct = confidence * 100.0
    wait = mean_ci(series(results, lambda r: r["avg_wait_seconds"].get("all", 0.0)), confidence)
    wait_f = mean_ci(series(results, lambda r: r["avg_wait_seconds"].get("female", 0.0)), confidence)
    wait_m = mean_ci(series(results, lambda r: r["avg_wait_seconds"].get("male", 0.0)), confidence)
    p95 = mean_ci(series(results, lambda r: r.get("p95_wait_seconds", 0.0)), confidence)
    tis = mean_ci(series(results, lambda r: r.get("avg_time_in_system_seconds", 0.0)), confidence)
    thr = mean_ci(series(results, lambda r: r.get("throughput_per_hour", 0.0)), confidence)
    maxq = mean_ci(series(results, lambda r: r.get("max_queue_length", 0)), confidence)
    wait_sd = sample_stddev(series(results, lambda r: r["avg_wait_seconds"].get("all", 0.0)))
    util = {k: round(v * 100.0, 1) for k, v in avg_nested(results, "utilization_by_kind").items()}
    print(f"Scenario: {name} (replications={len(results)}, {level_pct:.1f}% CI, seeds {seeds[0]}-{seeds[1]})")
    print(f"  Avg fixture wait: {wait[0]:.2f} ± {wait[1]:.2f} s (sd {wait_sd:.2f})")
    print(f"  Avg wait female: {wait_f[0]:.2f} ± {wait_f[1]:.2f} s")
    print(f"  Avg wait male: {wait_m[0]:.2f} ± {wait_m[1]:.2f} s")
    print(f"  p95 wait: {p95[0]:.2f} ± {p95[1]:.2f} s")
    print(f"  Avg time in system: {tis[0]:.2f} ± {tis[1]:.2f} s")
    print(f"  Throughput: {thr[0]:.1f} ± {thr[1]:.1f} agents/hour")
    print(f"  Longest queue: {maxq[0]:.1f} ± {maxq[1]:.1f}")
    print(f"  Fixture utilization by kind (mean % busy): {util}")
    print("-")


def main(argv: Optional[List[str]] = None):
    """Entry point: drive all scenarios, replications, and report KPIs."""
    ap = argparse.ArgumentParser(description="Run restroom occupancy scenarios.")
    ap.add_argument("--config", default=None, help="YAML config (default config/baseline.yaml)")
    ap.add_argument("--replications", type=int, default=None)
    ap.add_argument("--scenario", action="append", help="only run the named scenario(s)")
    ap.add_argument("--plot", action="store_true", help="save a queue-length plot")
    ap.add_argument("--log", default="warning", help="log level for the restsim package")
    args = ap.parse_args(argv)
    logging.basicConfig(level=args.log.upper(), format="%(levelname)s %(name)s: %(message)s")

    try:
        cfg = load_cfg(args.config)
    except RestsimError as exc:
        print(f"[error] {exc}")
        return 2
    exp_cfg = cfg.get("experiments", {})
    replications = max(1, int(args.replications or exp_cfg.get("replications", 1)))
    confidence = float(exp_cfg.get("confidence_level", 0.95))
    interval_minutes = float(exp_cfg.get("series_interval_minutes", 1.0))
    default_seed = int(cfg.get("sim", {}).get("seed", 0))
    wanted = set(args.scenario or [])

    all_series: List[Dict] = []
    max_warmup = 0.0
    for sc in SCENARIOS:
        if wanted and sc["name"] not in wanted:
            continue
        sc_cfg = apply_overrides(cfg, sc["overrides"])
        seed = int(sc_cfg.get("sim", {}).get("seed", default_seed))
        max_warmup = max(max_warmup, float(sc_cfg.get("sim", {}).get("warmup_minutes", 0.0)))
        results = run_replications(sc_cfg, replications, seed)
        report(sc["name"], results, confidence, (seed, seed + replications - 1))
        all_series.append({"name": sc["name"], "series": aggregate_time_series(results, interval_minutes)})

    # Optional CRN comparison between named scenario pairs
    crn_pairs = exp_cfg.get("crn_compare")
    if crn_pairs:
        sc_index = {s["name"]: s for s in SCENARIOS}
        # Bonferroni over the listed comparisons
        C = max(1, len(crn_pairs))
        for pair in crn_pairs:
            if len(pair) != 2:
                print(f"[warn] skipping CRN entry (needs 2 names): {pair}")
                continue
            sc_a, sc_b = sc_index.get(pair[0]), sc_index.get(pair[1])
            if sc_a and sc_b:
                print(f"\nCRN & Bonferroni Comparison: {sc_a['name']} vs {sc_b['name']} (replications={replications}, seeds shared)")
                run_crn(cfg, sc_a, sc_b, replications, default_seed, confidence, C)
            else:
                print(f"[warn] CRN pair not found: {pair}")

    if args.plot:
        path = plot_queue_series(all_series, max_warmup)
        if path:
            print(f"\nQueue-length plot saved to: {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
