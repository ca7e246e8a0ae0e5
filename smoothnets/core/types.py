"""Core typing contracts for SmoothNets."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Sequence, Tuple

import numpy as np

Array = np.ndarray
Shape = Tuple[int, int]


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :func:`smoothnets.training.pipelines.run_pipeline`."""

    steps: int
    metrics_path: str
    manifest_path: str
    summary_path: str = ""


@dataclass(frozen=True)
class NetConfig:
    """Regularisation and dropout hyperparameters for a network.

    Instances are immutable; use :func:`dataclasses.replace` to derive a new
    configuration rather than mutating one in place.
    """

    lam_l1: float = 0.0
    lam_l2: float = 0.0
    ord_lams: Tuple[float, ...] = (0.1, 0.1)
    drop_input: float = 0.0
    drop_hidden: float = 0.5
    drop_undrop: float = 0.0
    fd_loss: str = "squared"
    huber_threshold: float = 2.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "ord_lams", tuple(float(v) for v in self.ord_lams))
        for name in ("drop_input", "drop_hidden", "drop_undrop"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must lie in [0, 1], got {value}")

    @property
    def max_order(self) -> int:
        return len(self.ord_lams)


@dataclass
class WeightSet:
    """Ordered per-layer weight matrices, viewable as one flat vector."""

    matrices: List[Array]

    def __post_init__(self) -> None:
        self.matrices = [np.asarray(W, dtype=np.float64) for W in self.matrices]

    def __len__(self) -> int:
        return len(self.matrices)

    def __getitem__(self, idx: int) -> Array:
        return self.matrices[idx]

    def __setitem__(self, idx: int, value: Array) -> None:
        if np.shape(value) != self.matrices[idx].shape:
            raise ValueError(
                f"Layer {idx} expects shape {self.matrices[idx].shape}, got {np.shape(value)}"
            )
        self.matrices[idx] = np.asarray(value, dtype=np.float64)

    def __iter__(self) -> Iterator[Array]:
        return iter(self.matrices)

    def __add__(self, other: "WeightSet") -> "WeightSet":
        if self.shapes != other.shapes:
            raise ValueError(f"Cannot add weight sets with shapes {self.shapes} and {other.shapes}")
        return WeightSet([a + b for a, b in zip(self.matrices, other.matrices)])

    @property
    def shapes(self) -> List[Shape]:
        return [tuple(W.shape) for W in self.matrices]  # type: ignore[misc]

    @property
    def size(self) -> int:
        return int(sum(W.size for W in self.matrices))

    def copy(self) -> "WeightSet":
        return WeightSet([W.copy() for W in self.matrices])

    def zeros_like(self) -> "WeightSet":
        return WeightSet([np.zeros_like(W) for W in self.matrices])

    def scaled(self, factor: float) -> "WeightSet":
        return WeightSet([factor * W for W in self.matrices])

    def flatten(self) -> Array:
        """Concatenate the row-major ravel of every layer, in layer order."""

        if not self.matrices:
            return np.zeros(0, dtype=np.float64)
        return np.concatenate([W.ravel() for W in self.matrices])

    @classmethod
    def from_vector(cls, vector: Array, shapes: Sequence[Shape]) -> "WeightSet":
        """Split ``vector`` into matrices with the given per-layer ``shapes``."""

        vector = np.asarray(vector, dtype=np.float64).ravel()
        expected = int(sum(rows * cols for rows, cols in shapes))
        if vector.size != expected:
            raise ValueError(
                f"Weight vector has {vector.size} entries but the layout needs {expected}"
            )
        matrices: List[Array] = []
        end = 0
        for rows, cols in shapes:
            start, end = end, end + rows * cols
            matrices.append(vector[start:end].reshape(rows, cols).copy())
        return cls(matrices)


class ActivationGrads:
    """Additive gradient accumulator for per-layer activations.

    Several loss terms may write into the gradient of the same activation;
    every write is merged by summation and nothing is ever overwritten.
    """

    def __init__(self, initial: Iterable[Array | None] | None = None) -> None:
        self._grads: Dict[int, Array] = {}
        if initial is not None:
            for idx, grad in enumerate(initial):
                if grad is not None:
                    self.add(idx, grad)

    def add(self, idx: int, grad: Array) -> None:
        grad = np.asarray(grad, dtype=np.float64)
        if idx in self._grads:
            if self._grads[idx].shape != grad.shape:
                raise ValueError(
                    f"Gradient for layer {idx} has shape {grad.shape}, "
                    f"expected {self._grads[idx].shape}"
                )
            self._grads[idx] = self._grads[idx] + grad
        else:
            self._grads[idx] = grad.copy()

    def get(self, idx: int, shape: Shape) -> Array:
        grad = self._grads.get(idx)
        if grad is None:
            return np.zeros(shape, dtype=np.float64)
        if grad.shape != tuple(shape):
            raise ValueError(f"Gradient for layer {idx} has shape {grad.shape}, expected {shape}")
        return grad

    def __contains__(self, idx: int) -> bool:
        return idx in self._grads

    def copy(self) -> "ActivationGrads":
        clone = ActivationGrads()
        clone._grads = {idx: grad.copy() for idx, grad in self._grads.items()}
        return clone


@dataclass(frozen=True)
class LossBreakdown:
    """Per-term losses reported by the joint objective."""

    output: float
    curvature: float
    regularization: float
    curvature_orders: Tuple[float, ...] = field(default_factory=tuple)

    @property
    def total(self) -> float:
        return self.output + self.curvature + self.regularization

    def as_tuple(self) -> Tuple[float, float, float]:
        return (self.output, self.curvature, self.regularization)


@dataclass(frozen=True)
class ModelDescription:
    """Description of the feed-forward network architecture."""

    layer_sizes: List[int]
    activation: str
    loss: str
