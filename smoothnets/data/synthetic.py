"""Pure in-memory synthetic datasets."""

from __future__ import annotations

import numpy as np

from .registry import DatasetSpec, register_dataset, split_validation


@register_dataset("blobs")
def make_blobs(
    n_points: int = 600,
    n_classes: int = 3,
    dim: int = 2,
    spread: float = 0.6,
    val_split: float = 0.2,
    seed: int = 0,
) -> DatasetSpec:
    """Gaussian clusters around random centres, one cluster per class."""

    rng = np.random.default_rng(seed)
    centres = rng.normal(0.0, 2.0, size=(n_classes, dim))
    labels = rng.integers(0, n_classes, size=n_points)
    X = centres[labels] + spread * rng.standard_normal((n_points, dim))
    Y = -np.ones((n_points, n_classes))
    Y[np.arange(n_points), labels] = 1.0
    X, Y, Xv, Yv = split_validation(X, Y, val_split, rng)
    provenance = {
        "type": "blobs",
        "n_points": n_points,
        "n_classes": n_classes,
        "dim": dim,
        "spread": spread,
        "val_split": val_split,
        "seed": seed,
    }
    return DatasetSpec("blobs", X, Y, Xv, Yv, "multiclass", provenance)


@register_dataset("sine")
def make_sine(
    n_points: int = 256,
    freq: float = 1.0,
    noise: float = 0.05,
    val_split: float = 0.2,
    seed: int = 0,
) -> DatasetSpec:
    """Noisy samples of ``sin(freq * pi * x)`` on ``[-1, 1]``."""

    rng = np.random.default_rng(seed)
    X = rng.uniform(-1.0, 1.0, size=(n_points, 1))
    Y = np.sin(freq * np.pi * X) + noise * rng.standard_normal(X.shape)
    X, Y, Xv, Yv = split_validation(X, Y, val_split, rng)
    provenance = {
        "type": "sine",
        "n_points": n_points,
        "freq": freq,
        "noise": noise,
        "val_split": val_split,
        "seed": seed,
    }
    return DatasetSpec("sine", X, Y, Xv, Yv, "regression", provenance)


__all__ = ["make_blobs", "make_sine"]
