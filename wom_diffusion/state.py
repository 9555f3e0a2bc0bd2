"""
Per-node informed flags, grouped by subnetwork.

Flags only ever go False -> True within a run. A running per-subnetwork
count is kept alongside the flags so strong-tie exposure is O(1).
"""

from __future__ import annotations

import numpy as np

from wom_diffusion.network import GlobalNetwork


class ActivationState:

    def __init__(self, network: GlobalNetwork):
        self.network = network
        self.active = np.zeros((network.n_subnetworks, network.s), dtype=bool)
        self._count = np.zeros(network.n_subnetworks, dtype=np.int64)

    @classmethod
    def reset(cls, network: GlobalNetwork) -> ActivationState:
        """Fresh state with every node uninformed."""
        return cls(network)

    def is_active(self, addr: tuple[int, int]) -> bool:
        i, j = addr
        return bool(self.active[i, j])

    def activate(self, addr: tuple[int, int]):
        """Mark a node informed. Repeated calls are no-ops."""
        i, j = addr
        if not self.active[i, j]:
            self.active[i, j] = True
            self._count[i] += 1

    def count_active_in(self, subnetwork: int) -> int:
        return int(self._count[subnetwork])

    def total_active(self) -> int:
        # full scan over the flags, called once per timestep
        return int(np.count_nonzero(self.active))
