"""Conversions between class labels and +1/-1 class indicator matrices."""

from __future__ import annotations

import numpy as np

from .types import Array


def class_cats(Yi: Array) -> Array:
    """Return the column index of the largest entry in each row."""

    return np.argmax(Yi, axis=1)


def class_inds(Y: Array, class_count: int | None = None) -> Array:
    """Map categorical labels onto a +1/-1 indicator matrix.

    Column ``k`` corresponds to the ``k``-th smallest distinct label in ``Y``.
    """

    Y = np.asarray(Y).reshape(-1)
    labels = np.unique(Y)
    class_count = labels.size if class_count is None else class_count
    if class_count < labels.size:
        raise ValueError(f"class_count={class_count} but Y holds {labels.size} labels")
    Yi = -np.ones((Y.shape[0], class_count), dtype=np.float64)
    for col, label in enumerate(labels):
        Yi[Y == label, col] = 1.0
    return Yi


def to_cats(Y: Array) -> Array:
    """Relabel arbitrary categorical values as ``0..K-1``."""

    return class_cats(class_inds(Y))


def to_inds(Y: Array) -> Array:
    """Indicator matrix for arbitrary categorical labels."""

    return class_inds(to_cats(Y))


__all__ = ["class_cats", "class_inds", "to_cats", "to_inds"]
