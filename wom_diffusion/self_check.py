"""
Delivery self-check for sweep outputs.
Run: python -m wom_diffusion.self_check --results output/sweep_results.csv --n_nodes 3000
"""

from __future__ import annotations

import argparse
import os

import numpy as np
import pandas as pd

import wom_diffusion.config as config
from wom_diffusion.sweep import PARAMETER_NAMES, RESULT_COLUMNS


def check_results(table: pd.DataFrame, n_nodes: int) -> list[tuple[str, bool]]:
    """
    Check a flat result table. Returns (description, ok) pairs.

    Per setting: t runs 1, 2, 3, ... without gaps, num_engaged never
    decreases and never exceeds s * floor(n_nodes / s).
    """
    checks = []
    has_columns = set(RESULT_COLUMNS).issubset(table.columns)
    checks.append(("columns complete", has_columns))
    if not has_columns:
        return checks

    checks.append(("no NaN", not table[RESULT_COLUMNS].isna().any().any()))
    if table.empty:
        return checks

    t_ok = True
    monotone_ok = True
    bound_ok = True
    for key, group in table.groupby(list(PARAMETER_NAMES), sort=False):
        s = int(key[0])
        t = group["t"].to_numpy()
        engaged = group["num_engaged"].to_numpy()
        if not np.array_equal(t, np.arange(1, len(t) + 1)):
            t_ok = False
        if np.any(np.diff(engaged) < 0):
            monotone_ok = False
        if engaged.max() > s * (n_nodes // s):
            bound_ok = False

    checks.append(("t strictly increasing from 1", t_ok))
    checks.append(("num_engaged non-decreasing", monotone_ok))
    checks.append(("num_engaged <= assigned nodes", bound_ok))
    return checks


def print_checks(checks: list[tuple[str, bool]]) -> bool:
    print("\n===== delivery self-check =====")
    all_ok = True
    for name, ok in checks:
        status = "PASS" if ok else "FAIL"
        print(f"  {status} {name}")
        if not ok:
            all_ok = False

    print("\nALL PASS" if all_ok else "HAS FAILURES")
    return all_ok


def parse_args():
    parser = argparse.ArgumentParser(description="Self-check for sweep outputs")
    parser.add_argument("--results", type=str,
                        default=os.path.join(config.OUTPUT_DIR, config.RESULTS_FILE))
    parser.add_argument("--n_nodes", type=int, default=config.N_NODES)
    return parser.parse_args()


def main():
    args = parse_args()
    if not os.path.exists(args.results):
        print(f"  FAIL file exists: {args.results}")
        raise SystemExit(1)

    table = pd.read_csv(args.results)
    all_ok = print_checks(check_results(table, args.n_nodes))
    raise SystemExit(0 if all_ok else 1)


if __name__ == "__main__":
    main()
