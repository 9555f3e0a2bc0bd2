"""Exceptions raised by the diffusion model."""

from __future__ import annotations


class DiffusionError(Exception):
    """Base class for model errors."""


class InvalidParameter(DiffusionError, ValueError):
    """A parameter setting is outside its allowed range."""


class EmptyNetwork(InvalidParameter):
    """n_nodes < s, so not a single subnetwork can be built."""


class InsufficientPopulation(DiffusionError, ValueError):
    """Not enough nodes outside a subnetwork to draw w distinct weak ties."""
