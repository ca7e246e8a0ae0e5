"""Curvature penalties computed from finite differences along FD chains.

``outputs[j]`` holds the network outputs at link ``j`` of every chain. For an
order ``k`` the forward difference is ``D = sum_j c_j * outputs[j]`` with
``c_j = (-1)^j * C(k, j)``; dividing by ``step^k`` estimates the ``k``-th
directional derivative. Both losses below return the per-order losses and,
for every link, the gradient with respect to that link's outputs. A link
takes part in every order at least as high as its index, so its gradient is
the sum over those orders.
"""

from __future__ import annotations

from math import comb
from typing import Callable, List, Sequence

import numpy as np

from .types import Array

CurvatureLoss = Callable[[Sequence[Array], Array, Sequence[float]], tuple[Array, List[Array]]]


def fd_coefficients(order: int) -> Array:
    """Binomial forward-difference weights ``(-1)^j * C(order, j)``."""

    return np.array([(-1) ** j * comb(order, j) for j in range(order + 1)], dtype=np.float64)


def _prepare(
    outputs: Sequence[Array], step_lengths: Array, order_weights: Sequence[float]
) -> tuple[List[Array], Array, int]:
    outputs = [np.asarray(out, dtype=np.float64) for out in outputs]
    if len(outputs) < len(order_weights) + 1:
        raise ValueError(
            f"{len(order_weights)} curvature orders need {len(order_weights) + 1} chain links, "
            f"got {len(outputs)}"
        )
    obs_count = outputs[0].shape[0]
    for idx, out in enumerate(outputs):
        if out.shape != outputs[0].shape:
            raise ValueError(f"Link {idx} outputs have shape {out.shape}, expected {outputs[0].shape}")
    step_lengths = np.asarray(step_lengths, dtype=np.float64).reshape(-1, 1)
    if step_lengths.shape[0] != obs_count:
        raise ValueError(f"Got {step_lengths.shape[0]} step lengths for {obs_count} chains")
    if np.any(step_lengths <= 0):
        raise ValueError("FD step lengths must be positive")
    return outputs, step_lengths, obs_count


def _differences(outputs: Sequence[Array], coeffs: Array) -> Array:
    fd_diffs = np.zeros_like(outputs[0])
    for c, out in zip(coeffs, outputs):
        fd_diffs = fd_diffs + c * out
    return fd_diffs


def loss_fd(
    outputs: Sequence[Array],
    step_lengths: Array,
    order_weights: Sequence[float],
) -> tuple[Array, List[Array]]:
    """Squared FD penalty, summed over chains and averaged over observations."""

    outputs, step_lengths, obs_count = _prepare(outputs, step_lengths, order_weights)
    losses = np.zeros(len(order_weights))
    grads = [np.zeros_like(out) for out in outputs]
    for order, olam in enumerate(order_weights, start=1):
        coeffs = fd_coefficients(order)
        fd_diffs = _differences(outputs, coeffs)
        denom = step_lengths ** (2 * order)
        scale = float(olam) / obs_count
        losses[order - 1] = scale * np.sum(fd_diffs**2 / denom)
        for j, c in enumerate(coeffs):
            grads[j] = grads[j] + (2.0 * scale) * (c * fd_diffs / denom)
    return losses, grads


def loss_fd_huber(
    outputs: Sequence[Array],
    step_lengths: Array,
    order_weights: Sequence[float],
    threshold: float = 2.0,
) -> tuple[Array, List[Array]]:
    """Huberized FD penalty.

    Normalised differences ``v = D / step^k`` are penalised by ``v^2`` while
    ``|v| < threshold`` and by ``2 * threshold * |v| - threshold^2`` beyond it,
    which caps the gradient of outlying chains at ``2 * threshold``.
    """

    outputs, step_lengths, obs_count = _prepare(outputs, step_lengths, order_weights)
    losses = np.zeros(len(order_weights))
    grads = [np.zeros_like(out) for out in outputs]
    for order, olam in enumerate(order_weights, start=1):
        coeffs = fd_coefficients(order)
        step_pow = step_lengths**order
        fd_vals = _differences(outputs, coeffs) / step_pow
        quad = np.abs(fd_vals) < threshold
        per_obs = np.where(quad, fd_vals**2, 2.0 * threshold * np.abs(fd_vals) - threshold**2)
        d_vals = np.where(quad, 2.0 * fd_vals, 2.0 * threshold * np.sign(fd_vals))
        scale = float(olam) / obs_count
        losses[order - 1] = scale * np.sum(per_obs)
        for j, c in enumerate(coeffs):
            grads[j] = grads[j] + scale * (c * d_vals / step_pow)
    return losses, grads


def curvature_loss(name: str, threshold: float = 2.0) -> CurvatureLoss:
    """Resolve a curvature penalty by name (``"squared"`` or ``"huber"``)."""

    if name == "squared":
        return loss_fd
    if name == "huber":
        return lambda outputs, lens, weights: loss_fd_huber(outputs, lens, weights, threshold)
    raise ValueError(f"Unknown curvature loss {name!r}; expected 'squared' or 'huber'")


__all__ = ["curvature_loss", "fd_coefficients", "loss_fd", "loss_fd_huber"]
