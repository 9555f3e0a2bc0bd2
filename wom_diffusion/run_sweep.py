"""
Runner script for the strong-tie / weak-tie parameter sweep.

Usage:
    python -m wom_diffusion.run_sweep                  # Fast iteration mode (default)
    python -m wom_diffusion.run_sweep --production     # Full 3^5 grid on 3000 nodes
    python -m wom_diffusion.run_sweep --s 5,10 --w 5:29:4 --log sweep.log

Level arguments take either an explicit comma-separated list ("5,17,29")
or a linear range "min:max:num_levels".
"""

import argparse
import sys
import time
import traceback
from multiprocessing import set_start_method

import wom_diffusion.config as config
from wom_diffusion.self_check import check_results, print_checks
from wom_diffusion.sweep import run_sweep


class Tee:
    """Write to both file and stdout."""
    def __init__(self, path):
        self.file = open(path, "w", encoding="utf-8")
        self.stdout = sys.stdout
    def write(self, data):
        self.file.write(data)
        self.file.flush()
        self.stdout.write(data)
    def flush(self):
        self.file.flush()
        self.stdout.flush()


def parse_levels(text: str):
    """'a,b,c' -> [a, b, c];  'lo:hi:num' -> LinearLevels(lo, hi, num)."""
    if ":" in text:
        parts = text.split(":")
        if len(parts) != 3:
            raise argparse.ArgumentTypeError(f"range must be min:max:num, got '{text}'")
        try:
            return config.LinearLevels(float(parts[0]), float(parts[1]), int(parts[2]))
        except ValueError:
            raise argparse.ArgumentTypeError(f"bad range '{text}'")
    try:
        return [float(v) for v in text.split(",") if v.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"bad level list '{text}'")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Strong vs weak tie diffusion sweep')
    parser.add_argument('--production', action='store_true',
                        help='Use final production mode (N=3000, 3 levels per parameter)')
    parser.add_argument('--n_nodes', type=int, default=None)
    for name in ('s', 'w', 'alpha', 'beta_w', 'beta_s'):
        parser.add_argument(f'--{name}', type=parse_levels, default=None,
                            help=f'levels for {name}: "v1,v2,..." or "min:max:num"')
    parser.add_argument('--convergence', type=float, default=config.CONVERGENCE_FRACTION,
                        help='fraction of assigned nodes that ends a run')
    parser.add_argument('--max_steps', type=int, default=None)
    parser.add_argument('--max_seconds', type=float, default=config.MAX_SECONDS,
                        help='wall-clock budget per run')
    parser.add_argument('--seed', type=int, default=config.SEED)
    parser.add_argument('--n_workers', type=int, default=config.N_WORKERS)
    parser.add_argument('--on_error', choices=['skip', 'abort'], default=config.ON_ERROR)
    parser.add_argument('--output_dir', type=str, default=config.OUTPUT_DIR)
    parser.add_argument('--force', action='store_true',
                        help='recompute even if cached results exist')
    parser.add_argument('--log', type=str, default=None,
                        help='also write all output to this file')
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    if args.log:
        sys.stdout = Tee(args.log)
        sys.stderr = sys.stdout

    sim_config = config.PROD_CONFIG if args.production else config.FAST_CONFIG
    mode_name = "PRODUCTION" if args.production else "FAST ITERATION"

    n_nodes = args.n_nodes if args.n_nodes is not None else sim_config["n_nodes"]
    max_steps = args.max_steps if args.max_steps is not None else sim_config["max_steps"]
    levels = dict(sim_config["levels"])
    for name in ('s', 'w', 'alpha', 'beta_w', 'beta_s'):
        override = getattr(args, name)
        if override is not None:
            levels[name] = override

    print("=" * 60)
    print("  WORD-OF-MOUTH DIFFUSION SWEEP")
    print(f"  Started: {time.strftime('%Y-%m-%d %H:%M:%S')}")
    print("=" * 60)
    print(f"Python: {sys.version}")
    print(f"Mode: {mode_name}")
    print(f"Config: N={n_nodes}, max_steps={max_steps}, seed={args.seed}")
    for name, spec in levels.items():
        print(f"  {name}: {spec}")
    print()

    t0 = time.time()
    try:
        result = run_sweep(
            levels,
            n_nodes=n_nodes,
            convergence_fraction=args.convergence,
            max_steps=max_steps,
            seed=args.seed,
            n_workers=args.n_workers,
            on_error=args.on_error,
            max_seconds=args.max_seconds,
            output_dir=args.output_dir,
            use_cache=not args.force,
        )
    except Exception:
        traceback.print_exc()
        print(f"\nFAILED after {time.time()-t0:.0f}s")
        return 1

    counts = result.summary["status"].value_counts()
    print("\nStatus counts:")
    for status, count in counts.items():
        print(f"  {status}: {count}")

    ok = print_checks(check_results(result.table, n_nodes))

    print("\n" + "=" * 60)
    print(f"ALL DONE in {time.time()-t0:.0f}s")
    print("=" * 60)
    return 0 if ok else 1


if __name__ == '__main__':
    try:
        set_start_method('spawn')
    except RuntimeError:
        pass  # Already set
    raise SystemExit(main())
