"""A single affine-plus-activation layer with a bias-augmented input."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from .activations import Activation
from .types import Array


@dataclass
class Layer:
    """Affine transform followed by an activation.

    ``dim_in`` counts the real inputs only; the weight matrix carries one extra
    row for the bias, so its shape is ``(dim_in + 1, dim_out)``.
    """

    dim_in: int
    dim_out: int
    activation: Activation = Activation.TANH
    weights: Array = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.dim_in < 1 or self.dim_out < 1:
            raise ValueError(f"Layer dimensions must be positive, got {self.dim_in}x{self.dim_out}")
        self.activation = Activation.parse(self.activation)
        self.weights = np.zeros(self.shape, dtype=np.float64)

    @property
    def dim_input(self) -> int:
        """Width of the bias-augmented input."""

        return self.dim_in + 1

    @property
    def shape(self) -> tuple[int, int]:
        return (self.dim_in + 1, self.dim_out)

    def weight_count(self) -> int:
        return (self.dim_in + 1) * self.dim_out

    def init_weights(
        self,
        rng: np.random.Generator,
        wt_scale: float,
        b_scale: float | None = None,
        zero_bias: bool = False,
    ) -> Array:
        b_scale = wt_scale if b_scale is None else b_scale
        W = wt_scale * rng.standard_normal(self.shape)
        if zero_bias:
            W[-1, :] = 0.0
        else:
            W[-1, :] = b_scale * rng.standard_normal(self.dim_out)
        self.weights = W
        return W.copy()

    def set_weights(self, W: Array) -> None:
        W = np.asarray(W, dtype=np.float64)
        if W.shape != self.shape:
            raise ValueError(f"Layer expects weights of shape {self.shape}, got {W.shape}")
        self.weights = W.copy()

    def vector_weights(self, W: Array | None = None) -> Array:
        W = self.weights if W is None else np.asarray(W, dtype=np.float64)
        return W.ravel().copy()

    def matrix_weights(self, vector: Array) -> Array:
        vector = np.asarray(vector, dtype=np.float64).ravel()
        if vector.size != self.weight_count():
            raise ValueError(
                f"Layer expects {self.weight_count()} weights, got a vector of {vector.size}"
            )
        return vector.reshape(self.shape).copy()

    def feedforward(self, A_in: Array, W: Array | None = None) -> tuple[Array, Array]:
        """Return ``(post, pre)`` activations for the bias-augmented ``A_in``."""

        W = self.weights if W is None else W
        pre = A_in @ W
        post = self.activation.forward(pre)
        return post, pre

    def backprop(
        self,
        dA_post: Array,
        dA_pre: Array,
        A_post: Array,
        A_in: Array,
        W: Array | None = None,
    ) -> tuple[Array, Array]:
        """Return ``(dL/dW, dL/dA_in)``.

        ``dA_pre`` is added to the gradient reaching the pre-activations, after
        ``dA_post`` has been pulled back through the activation.
        """

        W = self.weights if W is None else W
        pre = A_in @ W
        transform = self.activation.transform(pre)
        d_pre = transform.backward(dA_post) + dA_pre
        dW = A_in.T @ d_pre
        dA_in = d_pre @ W.T
        return dW, dA_in

    @staticmethod
    def bound_weights(W: Array, max_norm: float) -> Array:
        """Shrink columns whose L2 norm exceeds ``max_norm`` onto the norm ball."""

        W = np.array(W, dtype=np.float64, copy=True)
        norms = np.sqrt(np.sum(W**2, axis=0))
        over = norms > max_norm
        if np.any(over):
            W[:, over] = W[:, over] * (max_norm / norms[over])
        return W


__all__ = ["Layer"]
