"""
Core diffusion model: activation update pass and single simulation run.

Each timestep visits every assigned node once, in a fresh random order.
A node's activation probability combines a constant advertising effect
with exposure to its active strong ties (other members of its own
clique) and to its active weak ties (w random contacts outside the
clique, resampled per node per timestep):

    p = 1 - (1 - alpha) * (1 - beta_w)^active_weak * (1 - beta_s)^active_strong

Updates are applied in place as the pass proceeds, so nodes visited
later in the same timestep already see activations made earlier in it.
"""

from __future__ import annotations

import math
import numbers
import time
from dataclasses import dataclass, field

import numpy as np
from numpy.random import Generator

import wom_diffusion.config as config
from wom_diffusion.errors import InvalidParameter
from wom_diffusion.network import GlobalNetwork, build_network
from wom_diffusion.sampler import sample_weak_ties
from wom_diffusion.state import ActivationState


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ParameterSetting:
    """
    One point of the parameter grid.

    The model is motivated by alpha < beta_w < beta_s (advertising weaker
    than a weak tie, weak tie weaker than a strong tie); this ordering is
    not enforced.
    """
    s: int            # subnetwork size
    w: int            # weak ties sampled per node per timestep
    alpha: float      # advertising effect
    beta_w: float     # weak-tie effect
    beta_s: float     # strong-tie effect

    def __post_init__(self):
        # integral floats (5.0) and numpy integers become plain ints
        for name in ("s", "w"):
            value = getattr(self, name)
            if isinstance(value, bool):
                continue
            if isinstance(value, numbers.Integral) or (
                    isinstance(value, numbers.Real) and float(value).is_integer()):
                object.__setattr__(self, name, int(value))

    def as_dict(self) -> dict:
        return {
            "s": self.s,
            "w": self.w,
            "alpha": self.alpha,
            "beta_w": self.beta_w,
            "beta_s": self.beta_s,
        }


@dataclass
class SimulationTrajectory:
    """Active-node counts per timestep for one parameter setting."""
    setting: ParameterSetting
    assigned_nodes: int
    threshold: int                       # active count that counts as converged
    t: list[int] = field(default_factory=list)
    active_count: list[int] = field(default_factory=list)
    converged: bool = False
    elapsed: float = 0.0                 # wall-clock seconds

    @property
    def t95(self) -> int | None:
        """Timesteps needed to reach the threshold, None if never reached."""
        return self.t[-1] if self.converged and self.t else None

    @property
    def final_count(self) -> int:
        return self.active_count[-1] if self.active_count else 0


def validate_setting(setting: ParameterSetting):
    """Raise InvalidParameter unless s >= 1, w >= 0 and all effects are in [0, 1)."""
    if not isinstance(setting.s, int) or isinstance(setting.s, bool) or setting.s < 1:
        raise InvalidParameter(f"s must be an integer >= 1, got {setting.s}")
    if not isinstance(setting.w, int) or isinstance(setting.w, bool) or setting.w < 0:
        raise InvalidParameter(f"w must be an integer >= 0, got {setting.w}")
    for name in ("alpha", "beta_w", "beta_s"):
        value = getattr(setting, name)
        if not (0.0 <= value < 1.0):
            raise InvalidParameter(f"{name} must be in [0, 1), got {value}")


# ---------------------------------------------------------------------------
# Activation update
# ---------------------------------------------------------------------------

def activation_probability(
    alpha: float,
    beta_w: float,
    beta_s: float,
    active_weak: int,
    active_strong: int,
) -> float:
    """Probability a node becomes informed this timestep."""
    return 1.0 - (1.0 - alpha) * (1.0 - beta_w) ** active_weak * (1.0 - beta_s) ** active_strong


def activation_update(
    network: GlobalNetwork,
    state: ActivationState,
    setting: ParameterSetting,
    rng: Generator,
):
    """
    One sequential pass over all assigned nodes. Mutates state in place.

    The visiting order is a fresh permutation of all addresses. Every node,
    including ones already active, samples its weak ties and consumes one
    uniform draw, so the random stream does not depend on the state.
    """
    s = network.s
    order = rng.permutation(network.assigned_nodes)

    for flat in order.tolist():
        addr = (flat // s, flat % s)
        own = addr[0]
        was_active = state.is_active(addr)

        active_strong = state.count_active_in(own) - (1 if was_active else 0)
        ties = sample_weak_ties(network, own, setting.w, rng)
        active_weak = sum(1 for tie in ties if state.is_active(tie))

        p = activation_probability(
            setting.alpha, setting.beta_w, setting.beta_s, active_weak, active_strong
        )
        if rng.random() < p:
            state.activate(addr)


# ---------------------------------------------------------------------------
# Simulation run
# ---------------------------------------------------------------------------

def convergence_threshold(assigned_nodes: int, convergence_fraction: float) -> int:
    """ceil(convergence_fraction * assigned_nodes), tolerant of float error."""
    return max(1, math.ceil(convergence_fraction * assigned_nodes - 1e-9))


def run_simulation(
    n_nodes: int,
    setting: ParameterSetting,
    convergence_fraction: float = config.CONVERGENCE_FRACTION,
    max_steps: int = config.MAX_STEPS,
    rng: Generator | None = None,
    seed: int | None = None,
    max_seconds: float | None = config.MAX_SECONDS,
) -> SimulationTrajectory:
    """
    Run the diffusion for one parameter setting until convergence.

    Parameters
    ----------
    n_nodes : int
        Universe size; floor(n_nodes / s) cliques are built from it.
    setting : ParameterSetting
    convergence_fraction : float
        Share of assigned nodes that must be active to stop, in (0, 1].
    max_steps : int
        Safety bound on timesteps. Hitting it returns the trajectory so
        far with converged=False.
    rng : numpy Generator, optional
        Random stream owned by this run. Built from `seed` if omitted.
    seed : int, optional
        Seed for a fresh generator when `rng` is not given.
    max_seconds : float, optional
        Wall-clock budget; exceeding it also ends the run non-convergent.

    Returns
    -------
    SimulationTrajectory with t = 1, 2, ... and the total active count
    after each pass.

    Raises
    ------
    InvalidParameter, EmptyNetwork
        Bad setting or n_nodes < s.
    InsufficientPopulation
        w exceeds the nodes available outside one subnetwork.
    """
    validate_setting(setting)
    if not (0.0 < convergence_fraction <= 1.0):
        raise InvalidParameter(
            f"convergence_fraction must be in (0, 1], got {convergence_fraction}"
        )
    if max_steps < 1:
        raise InvalidParameter(f"max_steps must be >= 1, got {max_steps}")
    if rng is None:
        rng = np.random.default_rng(seed)

    network = build_network(n_nodes, setting.s)
    state = ActivationState.reset(network)
    threshold = convergence_threshold(network.assigned_nodes, convergence_fraction)

    traj = SimulationTrajectory(
        setting=setting,
        assigned_nodes=network.assigned_nodes,
        threshold=threshold,
    )

    t0 = time.time()
    t = 1
    while True:
        activation_update(network, state, setting, rng)
        total = state.total_active()
        traj.t.append(t)
        traj.active_count.append(total)
        t += 1

        if total >= threshold:
            traj.converged = True
            break
        if t > max_steps:
            break
        if max_seconds is not None and time.time() - t0 > max_seconds:
            break

    traj.elapsed = time.time() - t0
    return traj
