"""Backproppable activation transforms for SmoothNets layers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable

import numpy as np

from .types import Array

NORM_EPS = 1e-6


@dataclass(frozen=True)
class Transform:
    """Forward output paired with the exact local backward map."""

    output: Array
    backward: Callable[[Array], Array]


def line_transform(x: Array) -> Transform:
    """Leave ``x`` unchanged."""

    return Transform(output=x, backward=lambda d: d * np.ones_like(d))


def tanh_transform(x: Array) -> Transform:
    """Elementwise hyperbolic tangent."""

    f = np.tanh(x)
    return Transform(output=f, backward=lambda d: d * (1.0 - f**2))


def norm_transform(x: Array) -> Transform:
    """L2-normalise ``x`` by rows.

    The backward map is the Jacobian-vector product of ``x / sqrt(|x|^2 + eps)``.
    """

    n = np.sqrt(np.sum(x**2, axis=1, keepdims=True) + NORM_EPS)
    f = x / n

    def backward(d: Array) -> Array:
        return d / n - f * (np.sum(d * x, axis=1, keepdims=True) / n**2)

    return Transform(output=f, backward=backward)


class Activation(str, Enum):
    """Closed set of supported layer activations."""

    LINEAR = "linear"
    TANH = "tanh"
    NORM = "norm"

    @classmethod
    def parse(cls, value: "Activation | str") -> "Activation":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError as exc:
            names = ", ".join(member.value for member in cls)
            raise ValueError(f"Unknown activation {value!r}. Available: {names}") from exc

    def transform(self, x: Array) -> Transform:
        if self is Activation.LINEAR:
            return line_transform(x)
        if self is Activation.TANH:
            return tanh_transform(x)
        if self is Activation.NORM:
            return norm_transform(x)
        raise AssertionError(f"Unhandled activation: {self}")  # pragma: no cover

    def forward(self, x: Array) -> Array:
        return self.transform(x).output


__all__ = [
    "Activation",
    "Transform",
    "line_transform",
    "norm_transform",
    "tanh_transform",
]
