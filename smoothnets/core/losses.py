"""Output-layer loss registry.

Every loss returns the scalar loss averaged over observations together with
``dL/dy``, a matrix shaped like the predictions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable

import numpy as np

from .types import Array

LossFn = Callable[[Array, Array], tuple[float, Array]]


@dataclass(frozen=True)
class Loss:
    """Loss wrapper returning both the scalar loss and dL/dy."""

    name: str
    fn: LossFn

    def __call__(self, predictions: Array, targets: Array) -> tuple[float, Array]:
        if predictions.shape != targets.shape:
            raise ValueError(
                f"{self.name}: prediction shape {predictions.shape} does not match "
                f"target shape {targets.shape}"
            )
        return self.fn(predictions, targets)

    evaluate = __call__


class LossRegistry:
    """Central registry for loss functions."""

    def __init__(self) -> None:
        self._registry: Dict[str, Loss] = {}

    def register(self, name: str, fn: LossFn) -> None:
        self._registry[name] = Loss(name, fn)

    def names(self) -> Iterable[str]:
        return sorted(self._registry)

    def resolve(self, name: "str | Loss") -> Loss:
        if isinstance(name, Loss):
            return name
        if name not in self._registry:
            available = ", ".join(sorted(self._registry))
            raise KeyError(f"Unknown loss {name!r}. Available losses: {available}")
        return self._registry[name]

    get = resolve


REGISTRY = LossRegistry()


def _lsq(pred: Array, target: Array) -> tuple[float, Array]:
    obs_count = pred.shape[0]
    diff = pred - target
    loss = float(np.sum(diff**2) / obs_count)
    return loss, (2.0 * diff) / obs_count


def _hsq(pred: Array, target: Array, delta: float = 0.5) -> tuple[float, Array]:
    # quadratic inside |r| < delta, linear outside
    obs_count = pred.shape[0]
    diff = pred - target
    mask = np.abs(diff) < delta
    loss = np.where(mask, diff**2, 2.0 * delta * np.abs(diff) - delta**2)
    grad = np.where(mask, 2.0 * diff, 2.0 * delta * np.sign(diff))
    return float(np.sum(loss) / obs_count), grad / obs_count


def _softmax(logits: Array) -> Array:
    shifted = logits - np.max(logits, axis=1, keepdims=True)
    exp = np.exp(shifted)
    return exp / np.sum(exp, axis=1, keepdims=True)


def _class_indicator(target: Array) -> Array:
    idx = np.argmax(target, axis=1)
    return np.arange(target.shape[1])[None, :] == idx[:, None]


def _mclr(logits: Array, target: Array) -> tuple[float, Array]:
    """Multiclass logistic loss; the true class is the argmax of each target row."""

    obs_count = logits.shape[0]
    indicator = _class_indicator(target)
    shifted = logits - np.max(logits, axis=1, keepdims=True)
    log_norm = np.log(np.sum(np.exp(shifted), axis=1))
    loss = float(np.sum(log_norm - shifted[indicator]) / obs_count)
    probs = _softmax(logits)
    grad = (probs - indicator) / obs_count
    return loss, grad


def _mcl2h(scores: Array, target: Array) -> tuple[float, Array]:
    """Multiclass squared hinge loss against +1/-1 class indicators."""

    obs_count = scores.shape[0]
    signs = np.where(_class_indicator(target), 1.0, -1.0)
    margin_lapse = np.maximum(0.0, 1.0 - signs * scores)
    loss = float(np.sum(0.5 * margin_lapse**2) / obs_count)
    grad = -(signs * margin_lapse) / obs_count
    return loss, grad


REGISTRY.register("lsq", _lsq)
REGISTRY.register("hsq", _hsq)
REGISTRY.register("mclr", _mclr)
REGISTRY.register("mcl2h", _mcl2h)

__all__ = ["Loss", "LossRegistry", "REGISTRY"]
