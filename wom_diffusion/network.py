"""
Network construction for the clustered word-of-mouth model.

The universe of n_nodes is cut into floor(n_nodes / s) disjoint cliques
("subnetworks") of exactly s nodes. Any remainder is left unassigned for
the run. Nodes are addressed as (subnetwork_index, local_index).
"""

from __future__ import annotations

import numbers
from dataclasses import dataclass

import networkx as nx

from wom_diffusion.errors import EmptyNetwork, InvalidParameter


@dataclass(frozen=True)
class GlobalNetwork:
    """Ordered sequence of equally sized complete subnetworks."""
    n_nodes: int          # universe size the network was cut from
    s: int                # nodes per subnetwork
    n_subnetworks: int

    @property
    def assigned_nodes(self) -> int:
        return self.n_subnetworks * self.s

    @property
    def unused_nodes(self) -> int:
        return self.n_nodes - self.assigned_nodes

    def addresses(self) -> list[tuple[int, int]]:
        """All (subnetwork, local) addresses in subnetwork-major order."""
        return [(i, j) for i in range(self.n_subnetworks) for j in range(self.s)]

    def to_graph(self) -> nx.Graph:
        """
        Strong-tie topology as a networkx graph.

        Node labels are (subnetwork_index, local_index) tuples; every
        subnetwork is a complete graph and there are no edges between
        subnetworks (weak ties are resampled per timestep, not stored).
        """
        G = nx.Graph()
        for i in range(self.n_subnetworks):
            clique = nx.complete_graph(self.s)
            G.add_nodes_from((i, j) for j in clique.nodes)
            G.add_edges_from(((i, u), (i, v)) for u, v in clique.edges)
        return G


def build_network(n_nodes: int, s: int) -> GlobalNetwork:
    """
    Partition n_nodes into floor(n_nodes / s) cliques of size s.

    Parameters
    ----------
    n_nodes : int
        Size of the node universe.
    s : int
        Subnetwork (clique) size.

    Raises
    ------
    InvalidParameter
        If s is not an integer >= 1, or n_nodes < 0.
    EmptyNetwork
        If n_nodes < s, i.e. no subnetwork fits.
    """
    if not isinstance(s, numbers.Integral) or s < 1:
        raise InvalidParameter(f"subnetwork size s must be an integer >= 1, got {s}")
    if n_nodes < 0:
        raise InvalidParameter(f"n_nodes must be >= 0, got {n_nodes}")

    n_subnetworks = n_nodes // s
    if n_subnetworks == 0:
        raise EmptyNetwork(
            f"n_nodes={n_nodes} is smaller than s={s}; no subnetwork can be built"
        )
    return GlobalNetwork(n_nodes=n_nodes, s=s, n_subnetworks=n_subnetworks)
