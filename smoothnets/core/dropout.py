"""Dropout mask generation."""

from __future__ import annotations

from typing import List, Sequence

import numpy as np

from .types import Array

MEAN_FLOOR = 1e-8


def get_masks(
    input_dims: Sequence[int],
    batch_size: int,
    *,
    drop_input: float,
    drop_hidden: float,
    drop_undrop: float,
    rng: np.random.Generator,
    force_no_drop: bool = False,
) -> List[Array]:
    """Return one multiplicative mask per layer, shaped ``(batch_size, input_dims[i])``.

    A row is kept whole with probability ``drop_undrop``; that draw is made
    once per row and shared by every layer. Otherwise each unit survives with
    probability ``1 - drop_rate``, where the rate is ``drop_input`` for the
    first layer and ``drop_hidden`` after it. Rows are divided by their mean
    so the expected input magnitude is unchanged.
    """

    if force_no_drop:
        return [np.ones((batch_size, dim), dtype=np.float64) for dim in input_dims]
    undrop = rng.random((batch_size, 1)) < drop_undrop
    masks: List[Array] = []
    for idx, dim in enumerate(input_dims):
        drop_rate = drop_input if idx == 0 else drop_hidden
        keep = rng.random((batch_size, dim)) > drop_rate
        mask = np.logical_or(keep, undrop).astype(np.float64)
        row_means = np.maximum(mask.mean(axis=1, keepdims=True), MEAN_FLOOR)
        masks.append(mask / row_means)
    return masks


def stack_masks(mask_sets: Sequence[Sequence[Array]]) -> List[Array]:
    """Concatenate several mask sets row-wise, layer by layer."""

    return [np.vstack(layer_masks) for layer_masks in zip(*mask_sets)]


__all__ = ["get_masks", "stack_masks"]
