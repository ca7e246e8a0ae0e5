"""Dataset registry and metadata contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, MutableMapping

import numpy as np

from ..core.types import Array

TaskType = "regression", "multiclass"


@dataclass(frozen=True)
class DatasetSpec:
    """An in-memory dataset with an optional validation split.

    Attributes
    ----------
    X, Y:
        Training inputs and targets. Classification targets are +1/-1 class
        indicator matrices.
    Xv, Yv:
        Validation inputs and targets, or ``None``.
    task_type:
        One of ``{"regression", "multiclass"}``.
    provenance:
        Parameters the dataset was generated from, recorded in run manifests.
    """

    name: str
    X: Array
    Y: Array
    Xv: Array | None
    Yv: Array | None
    task_type: str
    provenance: Dict[str, Any] = field(default_factory=dict)

    @property
    def d_in(self) -> int:
        return int(self.X.shape[1])

    @property
    def d_out(self) -> int:
        return int(self.Y.shape[1])


DatasetFactory = Callable[..., DatasetSpec]


_REGISTRY: MutableMapping[str, DatasetFactory] = {}


def register_dataset(
    name: str | None = None,
    factory: DatasetFactory | None = None,
) -> Callable[[DatasetFactory], DatasetFactory] | None:
    """Register a dataset factory.

    ``register_dataset`` can be used both as a decorator::

        @register_dataset("blobs")
        def make_blobs(**kwargs):
            ...

    or called directly with ``register_dataset("blobs", make_blobs)``.
    """

    if factory is not None:
        if name is None:
            raise ValueError("name is required when registering a factory directly")
        _REGISTRY[name] = factory
        return None

    def decorator(fn: DatasetFactory) -> DatasetFactory:
        _REGISTRY[name or fn.__name__] = fn
        return fn

    return decorator


def available_datasets() -> Iterable[str]:
    return sorted(_REGISTRY)


def get(name: str, **options: Any) -> DatasetSpec:
    try:
        factory = _REGISTRY[name]
    except KeyError as exc:
        available = ", ".join(available_datasets())
        raise KeyError(f"Unknown dataset {name!r}. Available datasets: {available}") from exc
    return factory(**options)


def split_validation(
    X: Array, Y: Array, val_split: float, rng: np.random.Generator
) -> tuple[Array, Array, Array | None, Array | None]:
    """Hold out a random ``val_split`` fraction of the rows."""

    if not 0.0 <= val_split < 1.0:
        raise ValueError(f"val_split must lie in [0, 1), got {val_split}")
    n_val = int(round(X.shape[0] * val_split))
    if n_val == 0:
        return X, Y, None, None
    order = rng.permutation(X.shape[0])
    val_idx, train_idx = order[:n_val], order[n_val:]
    return X[train_idx], Y[train_idx], X[val_idx], Y[val_idx]


__all__ = [
    "DatasetSpec",
    "available_datasets",
    "get",
    "register_dataset",
    "split_validation",
]
