"""
Parameter sweep over (s, w, alpha, beta_w, beta_s).

Every setting of the cartesian grid gets one independent simulation run
with its own seed, drawn from a master rng in grid order. Runs are spread
over a process pool; the main process collects trajectories in grid order
and flattens them into one table of (parameters, t, num_engaged) rows.
Results can be saved to / loaded from CSV for caching.
"""

from __future__ import annotations

import itertools
import json
import os
import time
from dataclasses import dataclass, field
from multiprocessing import Pool
from typing import Sequence

import numpy as np
import pandas as pd
from tqdm import tqdm

import wom_diffusion.config as config
from wom_diffusion.errors import InsufficientPopulation, InvalidParameter
from wom_diffusion.model import (
    ParameterSetting,
    SimulationTrajectory,
    run_simulation,
    validate_setting,
)
from wom_diffusion.network import build_network

PARAMETER_NAMES = ("s", "w", "alpha", "beta_w", "beta_s")
INTEGER_PARAMETERS = ("s", "w")
RESULT_COLUMNS = ["s", "w", "alpha", "beta_w", "beta_s", "t", "num_engaged"]
SUMMARY_COLUMNS = [
    "s", "w", "alpha", "beta_w", "beta_s", "seed", "status",
    "t95", "num_engaged_final", "assigned_nodes", "elapsed_s",
]


@dataclass
class SweepResult:
    """Flat result table plus one summary row per setting."""
    table: pd.DataFrame
    summary: pd.DataFrame
    failures: list[tuple[ParameterSetting, str]] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Grid construction
# ---------------------------------------------------------------------------

def parameter_levels(spec, integer: bool = False) -> list:
    """
    Expand a level spec into concrete levels.

    spec is either config.LinearLevels(min, max, num), linearly spaced, or
    explicit values (list or tuple). Integer parameters are rounded and
    deduplicated with order preserved.
    """
    if isinstance(spec, config.LinearLevels):
        if int(spec.num) < 1:
            raise InvalidParameter(f"num_levels must be >= 1, got {spec.num}")
        values = np.linspace(spec.min, spec.max, int(spec.num)).tolist()
    else:
        values = list(spec)
    if not values:
        raise InvalidParameter("parameter has no levels")

    if integer:
        rounded = [int(round(v)) for v in values]
        return list(dict.fromkeys(rounded))
    return [float(v) for v in values]


def build_parameter_grid(levels: dict) -> list[ParameterSetting]:
    """Cartesian product of the levels, s varying slowest and beta_s fastest."""
    missing = [name for name in PARAMETER_NAMES if name not in levels]
    if missing:
        raise InvalidParameter(f"missing levels for: {', '.join(missing)}")

    expanded = [
        parameter_levels(levels[name], integer=name in INTEGER_PARAMETERS)
        for name in PARAMETER_NAMES
    ]
    return [ParameterSetting(*combo) for combo in itertools.product(*expanded)]


def validate_grid(grid: Sequence[ParameterSetting], n_nodes: int):
    """Reject the whole grid before any run if one setting is invalid."""
    for setting in grid:
        validate_setting(setting)
        build_network(n_nodes, setting.s)


# ---------------------------------------------------------------------------
# Single setting
# ---------------------------------------------------------------------------

def run_single_setting(
    setting: ParameterSetting,
    n_nodes: int,
    seed: int,
    convergence_fraction: float = config.CONVERGENCE_FRACTION,
    max_steps: int = config.MAX_STEPS,
    max_seconds: float | None = config.MAX_SECONDS,
) -> SimulationTrajectory:
    """Run one setting on its own freshly seeded generator."""
    rng = np.random.default_rng(seed)
    return run_simulation(
        n_nodes,
        setting,
        convergence_fraction=convergence_fraction,
        max_steps=max_steps,
        rng=rng,
        max_seconds=max_seconds,
    )


def compute_single_setting(args):
    """
    Pool worker. args = (setting, n_nodes, seed, convergence_fraction,
    max_steps, max_seconds).

    Returns (setting, seed, trajectory_or_None, error_message_or_None);
    InsufficientPopulation is reported back instead of raised so the
    collector decides whether to skip or abort.
    """
    setting, n_nodes, seed, convergence_fraction, max_steps, max_seconds = args
    try:
        traj = run_single_setting(
            setting, n_nodes, seed, convergence_fraction, max_steps, max_seconds
        )
    except InsufficientPopulation as exc:
        return setting, seed, None, str(exc)
    return setting, seed, traj, None


# ---------------------------------------------------------------------------
# Flattening
# ---------------------------------------------------------------------------

def trajectory_rows(traj: SimulationTrajectory) -> list[dict]:
    """One row per timestep, tagged with the setting's parameters."""
    params = traj.setting.as_dict()
    return [
        {**params, "t": t, "num_engaged": count}
        for t, count in zip(traj.t, traj.active_count)
    ]


def _summary_row(setting: ParameterSetting, seed: int,
                 traj: SimulationTrajectory | None) -> dict:
    row = {**setting.as_dict(), "seed": seed}
    if traj is None:
        row.update(status="skipped", t95=np.nan, num_engaged_final=np.nan,
                   assigned_nodes=np.nan, elapsed_s=np.nan)
        return row
    row.update(
        status="converged" if traj.converged else "non_convergent",
        t95=traj.t95 if traj.converged else np.nan,
        num_engaged_final=traj.final_count,
        assigned_nodes=traj.assigned_nodes,
        elapsed_s=traj.elapsed,
    )
    return row


def summarize_sweep(table: pd.DataFrame, status: pd.DataFrame | None = None) -> pd.DataFrame:
    """
    Per-setting reduction of a flat result table: T95 = max(t) and the
    final engaged count. Works on tables loaded back from CSV.

    The flat table carries no convergence flag, so without `status` every
    setting gets t95 = max(t), including runs that hit max_steps. Pass the
    sweep summary (columns s, w, alpha, beta_w, beta_s, status) to set t95
    to NaN for settings that did not converge, matching SweepResult.summary.
    """
    params = list(PARAMETER_NAMES)
    if table.empty:
        return pd.DataFrame(columns=params + ["t95", "num_engaged_final"])
    grouped = table.groupby(params, sort=False)
    summary = grouped.agg(t95=("t", "max"), num_engaged_final=("num_engaged", "max"))
    summary = summary.reset_index()

    if status is not None:
        merged = summary.merge(status[params + ["status"]], on=params, how="left")
        summary["t95"] = summary["t95"].astype(float).where(
            (merged["status"] == "converged").to_numpy(), np.nan
        )
    return summary


# ---------------------------------------------------------------------------
# Sweep
# ---------------------------------------------------------------------------

def sweep_config(grid: Sequence[ParameterSetting], n_nodes: int,
                 convergence_fraction: float, max_steps: int, seed: int,
                 max_seconds: float | None) -> dict:
    """Everything that determines a sweep's output, in JSON-ready form."""
    return {
        "n_nodes": int(n_nodes),
        "convergence_fraction": float(convergence_fraction),
        "max_steps": int(max_steps),
        "seed": int(seed),
        "max_seconds": None if max_seconds is None else float(max_seconds),
        "settings": [setting.as_dict() for setting in grid],
    }


def load_sweep(output_dir: str, run_config: dict | None = None) -> SweepResult | None:
    """
    Load a saved sweep, or None if a file is missing. When run_config is
    given, the saved configuration must match it exactly.
    """
    results_path = os.path.join(output_dir, config.RESULTS_FILE)
    summary_path = os.path.join(output_dir, config.SUMMARY_FILE)
    config_path = os.path.join(output_dir, config.CONFIG_FILE)
    if not (os.path.exists(results_path) and os.path.exists(summary_path)):
        return None
    if run_config is not None:
        if not os.path.exists(config_path):
            return None
        with open(config_path, "r", encoding="utf-8") as f:
            saved = json.load(f)
        # round-trip so tuples and numpy scalars compare like the saved JSON
        if saved != json.loads(json.dumps(run_config)):
            return None
    return SweepResult(table=pd.read_csv(results_path), summary=pd.read_csv(summary_path))


def save_sweep(result: SweepResult, output_dir: str,
               run_config: dict | None = None) -> tuple[str, str]:
    os.makedirs(output_dir, exist_ok=True)
    results_path = os.path.join(output_dir, config.RESULTS_FILE)
    summary_path = os.path.join(output_dir, config.SUMMARY_FILE)
    config_path = os.path.join(output_dir, config.CONFIG_FILE)
    result.table.to_csv(results_path, index=False)
    result.summary.to_csv(summary_path, index=False)
    if run_config is not None:
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(run_config, f, indent=2)
    elif os.path.exists(config_path):
        os.remove(config_path)
    return results_path, summary_path


def run_sweep(
    parameter_grid: dict | Sequence[ParameterSetting],
    n_nodes: int = config.N_NODES,
    convergence_fraction: float = config.CONVERGENCE_FRACTION,
    max_steps: int = config.MAX_STEPS,
    seed: int = config.SEED,
    n_workers: int = 1,
    on_error: str = config.ON_ERROR,
    max_seconds: float | None = config.MAX_SECONDS,
    output_dir: str | None = None,
    use_cache: bool = False,
    progress: bool = True,
) -> SweepResult:
    """
    Run one simulation per parameter setting and collect the results.

    Parameters
    ----------
    parameter_grid : dict or sequence of ParameterSetting
        Either level specs keyed by parameter name (see parameter_levels)
        or an explicit list of settings.
    n_nodes : int
        Universe size for every run.
    seed : int
        Master seed. Per-setting seeds are drawn from it in grid order, so
        results do not depend on n_workers.
    n_workers : int
        Process pool size; 1 runs in-process.
    on_error : "skip" or "abort"
        Handling of settings that raise InsufficientPopulation.
    output_dir : str, optional
        If given, results are saved there as CSV.
    use_cache : bool
        Load existing CSVs from output_dir instead of recomputing, provided
        they were saved for the same grid, n_nodes, seed, convergence_fraction,
        max_steps and max_seconds.

    Returns
    -------
    SweepResult with `table` (columns s, w, alpha, beta_w, beta_s, t,
    num_engaged) and `summary` (one row per setting).
    """
    if on_error not in {"skip", "abort"}:
        raise InvalidParameter(f"on_error must be 'skip' or 'abort', got '{on_error}'")

    if isinstance(parameter_grid, dict):
        grid = build_parameter_grid(parameter_grid)
    else:
        grid = list(parameter_grid)
    validate_grid(grid, n_nodes)
    if not (0.0 < convergence_fraction <= 1.0):
        raise InvalidParameter(
            f"convergence_fraction must be in (0, 1], got {convergence_fraction}"
        )
    if max_steps < 1:
        raise InvalidParameter(f"max_steps must be >= 1, got {max_steps}")

    run_config = sweep_config(grid, n_nodes, convergence_fraction, max_steps, seed, max_seconds)
    if output_dir is not None and use_cache:
        cached = load_sweep(output_dir, run_config)
        if cached is not None:
            print(f"Loading cached sweep results from {output_dir}")
            return cached
        if os.path.exists(os.path.join(output_dir, config.RESULTS_FILE)):
            print(f"  WARN: cached results in {output_dir} belong to a different "
                  f"configuration, recomputing")

    rng = np.random.default_rng(seed)
    args_list = [
        (setting, n_nodes, int(rng.integers(0, 2**31)),
         convergence_fraction, max_steps, max_seconds)
        for setting in grid
    ]

    if progress:
        print(f"Sweep: {len(grid)} settings, n_nodes={n_nodes}, "
              f"convergence={convergence_fraction}, max_steps={max_steps}, workers={n_workers}")

    start_time = time.time()
    rows: list[dict] = []
    summary_rows: list[dict] = []
    failures: list[tuple[ParameterSetting, str]] = []

    def collect(results):
        for setting, run_seed, traj, error in tqdm(
                results, total=len(args_list), desc="Settings", disable=not progress):
            if traj is None:
                if on_error == "abort":
                    raise InsufficientPopulation(error)
                tqdm.write(f"  WARN: skipping {setting}: {error}")
                failures.append((setting, error))
            else:
                if not traj.converged:
                    tqdm.write(f"  WARN: {setting} did not converge "
                               f"({traj.final_count}/{traj.threshold} after {len(traj.t)} steps)")
                rows.extend(trajectory_rows(traj))
            summary_rows.append(_summary_row(setting, run_seed, traj))

    if n_workers > 1 and len(args_list) > 1:
        with Pool(processes=n_workers) as pool:
            collect(pool.imap(compute_single_setting, args_list))
    else:
        collect(map(compute_single_setting, args_list))

    elapsed = time.time() - start_time
    if progress:
        print(f"Sweep completed in {elapsed/60:.1f} minutes "
              f"({len(summary_rows) - len(failures)} run, {len(failures)} skipped)")

    result = SweepResult(
        table=pd.DataFrame(rows, columns=RESULT_COLUMNS),
        summary=pd.DataFrame(summary_rows, columns=SUMMARY_COLUMNS),
        failures=failures,
    )

    if output_dir is not None:
        results_path, summary_path = save_sweep(result, output_dir, run_config)
        if progress:
            print(f"Saved to {results_path} and {summary_path}")

    return result
