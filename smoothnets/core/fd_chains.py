"""Sampling of finite-difference chains for directional derivative estimates."""

from __future__ import annotations

from typing import List

import numpy as np

from .types import Array

NORM_FLOOR = 1e-8


def _unit_rows(X: Array) -> Array:
    norms = np.sqrt(np.sum(X**2, axis=1, keepdims=True))
    return X / np.maximum(norms, NORM_FLOOR)


def sample_fd_chains(
    X: Array,
    chain_count: int,
    max_order: int,
    fuzz_len: float,
    step_len: float,
    *,
    bias: Array | None = None,
    strict_len: bool = True,
    rng: np.random.Generator | None = None,
) -> tuple[List[Array], Array]:
    """Sample chains of points for forward FD estimates of directional derivatives.

    Anchors are drawn with replacement from the rows of ``X`` and jittered by
    an isotropic displacement whose length is ``fuzz_len * |N(0, 1)|``. Each
    chain then steps along its own random unit direction (optionally passed
    through the ``bias`` matrix before normalisation).

    Returns ``(chains, step_lengths)``: ``chains[k]`` holds link ``k`` of every
    chain, i.e. ``anchor + k * step * direction``, and ``step_lengths`` is a
    ``(chain_count, 1)`` column.
    """

    if max_order < 0:
        raise ValueError(f"max_order must be non-negative, got {max_order}")
    if step_len <= 0:
        raise ValueError(f"step_len must be positive, got {step_len}")
    rng = rng or np.random.default_rng()
    X = np.asarray(X, dtype=np.float64)
    obs_count, dim = X.shape
    if bias is None:
        bias = np.eye(dim)
    elif bias.shape != (dim, dim):
        raise ValueError(f"bias must have shape {(dim, dim)}, got {bias.shape}")

    anchors = X[rng.integers(0, obs_count, size=chain_count)]
    jitter = _unit_rows(rng.standard_normal((chain_count, dim)))
    jitter = jitter * (fuzz_len * np.abs(rng.standard_normal((chain_count, 1))))
    anchors = anchors + jitter

    directions = _unit_rows(rng.standard_normal((chain_count, dim)) @ bias)
    if strict_len:
        step_lengths = np.full((chain_count, 1), float(step_len))
    else:
        step_lengths = step_len + (step_len / 2.0) * np.abs(rng.standard_normal((chain_count, 1)))
    displacement = directions * step_lengths

    chains = [anchors + k * displacement for k in range(max_order + 1)]
    return chains, step_lengths


def compute_nn_len(
    X: Array, sample_count: int, rng: np.random.Generator | None = None
) -> float:
    """Half the median nearest-neighbour distance of ``sample_count`` random rows."""

    rng = rng or np.random.default_rng()
    X = np.asarray(X, dtype=np.float64)
    if X.shape[0] < 2:
        raise ValueError("compute_nn_len needs at least two observations")
    dists = np.zeros(sample_count)
    for i, idx in enumerate(rng.integers(0, X.shape[0], size=sample_count)):
        dx = np.sqrt(np.sum((X - X[idx]) ** 2, axis=1))
        dx[idx] = np.inf
        dists[i] = dx.min()
    return float(np.median(dists) / 2.0)


__all__ = ["compute_nn_len", "sample_fd_chains"]
