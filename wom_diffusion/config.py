# config.py: defaults for the strong-tie / weak-tie diffusion sweep
import os
from collections import namedtuple

# === Population ===
N_NODES = 3000                # universe size; floor(N_NODES / s) * s nodes are assigned
CONVERGENCE_FRACTION = 0.95   # run stops once this share of assigned nodes is active
MAX_STEPS = 1000              # safety bound on timesteps per run
MAX_SECONDS = None            # optional wall-clock budget per run (seconds)
SEED = 20240601               # master seed; per-setting seeds are drawn from it

# === Parameter grid ===
# LinearLevels(min, max, num) for linear spacing; any plain list or tuple is
# taken as explicit levels.
LinearLevels = namedtuple("LinearLevels", ["min", "max", "num"])

S_LEVELS = LinearLevels(5, 29, 3)                 # cluster size
W_LEVELS = LinearLevels(5, 29, 3)                 # weak ties sampled per node per timestep
ALPHA_LEVELS = LinearLevels(0.0005, 0.01, 3)      # advertising effect
BETA_W_LEVELS = LinearLevels(0.005, 0.015, 3)     # weak-tie effect
BETA_S_LEVELS = LinearLevels(0.01, 0.07, 3)       # strong-tie effect

# === Hardware-aware computation ===
N_WORKERS = max(1, os.cpu_count() - 2) if os.cpu_count() else 4

# What to do when a setting cannot draw w distinct weak ties: "skip" or "abort"
ON_ERROR = "skip"

# === Output ===
OUTPUT_DIR = 'output'
RESULTS_FILE = 'sweep_results.csv'
SUMMARY_FILE = 'sweep_summary.csv'
CONFIG_FILE = 'sweep_config.json'   # run configuration the cached CSVs belong to

# Fast iteration mode: small universe, two levels per parameter
FAST_CONFIG = {
    "n_nodes": 600,
    "levels": {
        "s": LinearLevels(5, 29, 2),
        "w": LinearLevels(5, 29, 2),
        "alpha": LinearLevels(0.0005, 0.01, 2),
        "beta_w": LinearLevels(0.005, 0.015, 2),
        "beta_s": LinearLevels(0.01, 0.07, 2),
    },
    "max_steps": 500,
}

# Final production mode: the full 3^5 grid on 3000 nodes
PROD_CONFIG = {
    "n_nodes": N_NODES,
    "levels": {
        "s": S_LEVELS,
        "w": W_LEVELS,
        "alpha": ALPHA_LEVELS,
        "beta_w": BETA_W_LEVELS,
        "beta_s": BETA_S_LEVELS,
    },
    "max_steps": MAX_STEPS,
}
