"""
Weak-tie sampling: w distinct contacts outside a node's own subnetwork.

Draws are uniform over the union of all other subnetworks. Because every
subnetwork has the same size, picking a random other subnetwork and then
a random local index inside it is uniform over that union.
"""

from __future__ import annotations

import numpy as np
from numpy.random import Generator

from wom_diffusion.errors import InsufficientPopulation, InvalidParameter
from wom_diffusion.network import GlobalNetwork


def external_population(network: GlobalNetwork) -> int:
    """Number of nodes outside any single subnetwork."""
    return (network.n_subnetworks - 1) * network.s


def sample_weak_ties(
    network: GlobalNetwork,
    own_subnetwork: int,
    w: int,
    rng: Generator,
) -> list[tuple[int, int]]:
    """
    Rejection-sample w distinct (subnetwork, local_index) pairs with
    subnetwork != own_subnetwork.

    Candidates are drawn in batches sized to the current shortfall;
    duplicates are discarded and the loop repeats until w unique pairs
    are collected.

    Raises
    ------
    InvalidParameter
        If w < 0.
    InsufficientPopulation
        If w exceeds the number of nodes outside own_subnetwork.
    """
    if w < 0:
        raise InvalidParameter(f"w must be >= 0, got {w}")
    if w == 0:
        return []

    available = external_population(network)
    if w > available:
        raise InsufficientPopulation(
            f"w={w} weak ties requested but only {available} nodes lie outside "
            f"subnetwork {own_subnetwork} (n_subnetworks={network.n_subnetworks}, s={network.s})"
        )

    chosen: list[tuple[int, int]] = []
    seen: set[tuple[int, int]] = set()
    while len(chosen) < w:
        need = w - len(chosen)
        # index into the other n_subnetworks - 1 subnetworks, then skip own
        subs = rng.integers(0, network.n_subnetworks - 1, size=need)
        subs = np.where(subs >= own_subnetwork, subs + 1, subs)
        locs = rng.integers(0, network.s, size=need)
        for i, j in zip(subs.tolist(), locs.tolist()):
            pair = (i, j)
            if pair in seen:
                continue
            seen.add(pair)
            chosen.append(pair)
            if len(chosen) == w:
                break
    return chosen
