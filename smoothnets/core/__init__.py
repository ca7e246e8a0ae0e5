"""Core numerical primitives for SmoothNets."""

from . import (
    activations,
    curvature,
    dropout,
    fd_chains,
    gradcheck,
    labels,
    layer,
    losses,
    network,
    objective,
    types,
)

__all__ = [
    "activations",
    "curvature",
    "dropout",
    "fd_chains",
    "gradcheck",
    "labels",
    "layer",
    "losses",
    "network",
    "objective",
    "types",
]
