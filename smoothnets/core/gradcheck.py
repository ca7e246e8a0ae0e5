"""Finite-difference checks of analytic gradients."""

from __future__ import annotations

from typing import Callable

import numpy as np

from .types import Array

LossAndGrad = Callable[[Array], tuple[float, Array]]


def numerical_gradient(fn: LossAndGrad, w: Array, eps: float = 1e-6) -> Array:
    """Central-difference gradient of ``fn`` at ``w``, one coordinate at a time."""

    w = np.asarray(w, dtype=np.float64)
    grad = np.zeros_like(w)
    for i in range(w.size):
        step = np.zeros_like(w)
        step[i] = eps
        f_plus, _ = fn(w + step)
        f_minus, _ = fn(w - step)
        grad[i] = (f_plus - f_minus) / (2.0 * eps)
    return grad


def relative_error(a: Array, b: Array) -> float:
    """``|a - b| / max(|a| + |b|, tiny)``."""

    denom = max(float(np.linalg.norm(a) + np.linalg.norm(b)), 1e-12)
    return float(np.linalg.norm(a - b) / denom)


def fast_derivative_check(
    fn: LossAndGrad,
    w: Array,
    eps: float = 1e-6,
    rng: np.random.Generator | None = None,
) -> float:
    """Compare the analytic and central-difference derivative along a random direction.

    Returns the relative discrepancy between the two directional derivatives.
    """

    rng = rng or np.random.default_rng()
    w = np.asarray(w, dtype=np.float64)
    direction = rng.standard_normal(w.shape)
    direction /= max(float(np.linalg.norm(direction)), 1e-8)
    _, grad = fn(w)
    analytic = float(np.dot(grad, direction))
    f_plus, _ = fn(w + eps * direction)
    f_minus, _ = fn(w - eps * direction)
    numeric = (f_plus - f_minus) / (2.0 * eps)
    return abs(analytic - numeric) / max(abs(analytic) + abs(numeric), 1e-12)


__all__ = ["fast_derivative_check", "numerical_gradient", "relative_error"]
