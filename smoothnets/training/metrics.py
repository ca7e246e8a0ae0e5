"""Metric helpers for the trainer and pipelines."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping

import numpy as np

from ..core.labels import class_cats, class_inds, to_cats, to_inds
from ..core.types import Array


@dataclass(frozen=True)
class MetricResult:
    name: str
    value: float


def default_metrics(task_type: str) -> List[str]:
    if task_type == "regression":
        return ["mae", "rmse"]
    if task_type == "multiclass":
        return ["accuracy"]
    raise ValueError(f"Unknown task type: {task_type}")


def _targets_as_cats(targets: Array) -> Array:
    if targets.ndim == 2 and targets.shape[1] > 1:
        return class_cats(targets)
    return to_cats(targets.reshape(-1))


def compute_metric(name: str, predictions: Array, targets: Array) -> MetricResult:
    key = name.lower()
    if key == "mae":
        value = float(np.mean(np.abs(predictions - targets)))
    elif key == "rmse":
        value = float(np.sqrt(np.mean((predictions - targets) ** 2)))
    elif key == "accuracy":
        value = float(np.mean(class_cats(predictions) == _targets_as_cats(targets)))
    else:
        raise KeyError(f"Unknown metric: {name}")
    return MetricResult(name=key, value=value)


def compute_metrics(
    names: Iterable[str], predictions: Array, targets: Array
) -> Mapping[str, float]:
    results: Dict[str, float] = {}
    for name in names:
        metric = compute_metric(name, predictions, targets)
        results[metric.name] = metric.value
    return results


__all__ = [
    "MetricResult",
    "class_cats",
    "class_inds",
    "compute_metrics",
    "default_metrics",
    "to_cats",
    "to_inds",
]
