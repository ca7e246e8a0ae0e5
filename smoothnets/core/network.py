"""Layered feed-forward network with dropout-masked feedforward/backprop."""

from __future__ import annotations

from typing import List, Sequence

import numpy as np

from .activations import Activation
from .dropout import get_masks
from .labels import class_cats, to_cats
from .layer import Layer
from .losses import REGISTRY as LOSS_REGISTRY
from .losses import Loss
from .types import ActivationGrads, Array, ModelDescription, NetConfig, WeightSet


def bias(X: Array, value: float = 1.0) -> Array:
    """Append a constant bias column to ``X``."""

    return np.hstack([X, np.full((X.shape[0], 1), value, dtype=np.float64)])


class Network:
    """An ordered composition of :class:`Layer` objects.

    Hidden layers share one activation and the output layer is linear. The
    network holds its current weights inside its layers; every numeric method
    also accepts an explicit :class:`WeightSet` so optimisers and gradient
    checks can evaluate arbitrary weights without touching that state.
    """

    def __init__(
        self,
        layer_sizes: Sequence[int],
        activation: "Activation | str" = Activation.TANH,
        loss: "Loss | str" = "lsq",
        config: NetConfig | None = None,
    ) -> None:
        sizes = [int(s) for s in layer_sizes]
        if len(sizes) < 2:
            raise ValueError(f"Need at least input and output sizes, got {sizes}")
        activation = Activation.parse(activation)
        layers: List[Layer] = []
        for idx, (dim_in, dim_out) in enumerate(zip(sizes[:-1], sizes[1:])):
            act = activation if idx < len(sizes) - 2 else Activation.LINEAR
            layers.append(Layer(dim_in, dim_out, act))
        self._setup(layers, loss, config)

    @classmethod
    def from_layers(
        cls,
        layers: Sequence[Layer],
        loss: "Loss | str" = "lsq",
        config: NetConfig | None = None,
    ) -> "Network":
        """Build a network from pre-made layers, checking the dimension chain."""

        if not layers:
            raise ValueError("A network needs at least one layer")
        for idx in range(len(layers) - 1):
            if layers[idx].dim_out != layers[idx + 1].dim_in:
                raise ValueError(
                    f"Layer {idx} outputs {layers[idx].dim_out} units but layer "
                    f"{idx + 1} expects {layers[idx + 1].dim_in} inputs"
                )
        net = cls.__new__(cls)
        net._setup(list(layers), loss, config)
        return net

    def _setup(self, layers: List[Layer], loss: "Loss | str", config: NetConfig | None) -> None:
        self.layers = layers
        self.layer_count = len(layers)
        self.loss = LOSS_REGISTRY.resolve(loss)
        self.config = config or NetConfig()

    # ------------------------------------------------------------------
    # Structure and weight views

    @property
    def layer_sizes(self) -> List[int]:
        return [self.layers[0].dim_in] + [layer.dim_out for layer in self.layers]

    @property
    def input_dims(self) -> List[int]:
        return [layer.dim_input for layer in self.layers]

    @property
    def shapes(self) -> List[tuple[int, int]]:
        return [layer.shape for layer in self.layers]

    def describe(self) -> ModelDescription:
        hidden = self.layers[0].activation.value if self.layer_count > 1 else "linear"
        return ModelDescription(
            layer_sizes=self.layer_sizes, activation=hidden, loss=self.loss.name
        )

    def weight_count(self) -> int:
        return int(sum(layer.weight_count() for layer in self.layers))

    def init_weights(
        self,
        wt_scale: float,
        b_scale: float | None = None,
        rng: np.random.Generator | None = None,
    ) -> WeightSet:
        """Draw fresh weights; the first layer's bias starts at zero."""

        rng = rng or np.random.default_rng()
        for idx, layer in enumerate(self.layers):
            layer.init_weights(rng, wt_scale, b_scale, zero_bias=(idx == 0))
        return self.struct_weights()

    def struct_weights(self, vector: Array | None = None) -> WeightSet:
        """Return a :class:`WeightSet` for ``vector`` or for the current weights."""

        if vector is None:
            return WeightSet([layer.weights.copy() for layer in self.layers])
        return WeightSet.from_vector(vector, self.shapes)

    def vector_weights(self, weights: WeightSet | None = None) -> Array:
        weights = self.struct_weights() if weights is None else self._check(weights)
        return weights.flatten()

    def set_weights(self, weights: "WeightSet | Array") -> WeightSet:
        weights = self.as_weight_set(weights)
        for layer, W in zip(self.layers, weights):
            layer.set_weights(W)
        return weights

    def as_weight_set(self, weights: "WeightSet | Array | None") -> WeightSet:
        if weights is None:
            return self.struct_weights()
        if isinstance(weights, WeightSet):
            return self._check(weights)
        return self.struct_weights(np.asarray(weights))

    def _check(self, weights: WeightSet) -> WeightSet:
        if weights.shapes != self.shapes:
            raise ValueError(f"Weight shapes {weights.shapes} do not match network {self.shapes}")
        return weights

    def bound_weights(self, weights: WeightSet, max_norm: float) -> WeightSet:
        return WeightSet(
            [layer.bound_weights(W, max_norm) for layer, W in zip(self.layers, weights)]
        )

    # ------------------------------------------------------------------
    # Dropout

    def get_masks(
        self,
        batch_size: int,
        force_no_drop: bool = False,
        rng: np.random.Generator | None = None,
        config: NetConfig | None = None,
    ) -> List[Array]:
        config = config or self.config
        return get_masks(
            self.input_dims,
            batch_size,
            drop_input=config.drop_input,
            drop_hidden=config.drop_hidden,
            drop_undrop=config.drop_undrop,
            rng=rng or np.random.default_rng(),
            force_no_drop=force_no_drop,
        )

    def _check_masks(self, masks: Sequence[Array], rows: int) -> None:
        if len(masks) != self.layer_count:
            raise ValueError(f"Expected {self.layer_count} masks, got {len(masks)}")
        for idx, (mask, dim) in enumerate(zip(masks, self.input_dims)):
            if mask.shape != (rows, dim):
                raise ValueError(f"Mask {idx} has shape {mask.shape}, expected {(rows, dim)}")

    # ------------------------------------------------------------------
    # Feedforward / backprop

    def feedforward(
        self,
        X: Array,
        masks: Sequence[Array],
        weights: "WeightSet | Array | None" = None,
    ) -> tuple[List[Array], List[Array]]:
        """Return post- and pre-activations for every layer."""

        weights = self.as_weight_set(weights)
        self._check_masks(masks, X.shape[0])
        A_post: List[Array] = []
        A_pre: List[Array] = []
        for idx, layer in enumerate(self.layers):
            source = X if idx == 0 else A_post[idx - 1]
            A_in = bias(source) * masks[idx]
            post, pre = layer.feedforward(A_in, weights[idx])
            A_post.append(post)
            A_pre.append(pre)
        return A_post, A_pre

    def backprop(
        self,
        dA_post: "ActivationGrads | Sequence[Array | None]",
        dA_pre: "ActivationGrads | Sequence[Array | None] | None",
        A_post: Sequence[Array],
        X: Array,
        masks: Sequence[Array],
        weights: "WeightSet | Array | None" = None,
    ) -> tuple[WeightSet, Array]:
        """Backprop activation gradients into ``(dL/dW, dL/dX)``.

        Gradients handed down from layer ``i`` are added into whatever was
        already recorded for layer ``i - 1``.
        """

        weights = self.as_weight_set(weights)
        self._check_masks(masks, X.shape[0])
        post_grads = (
            dA_post.copy() if isinstance(dA_post, ActivationGrads) else ActivationGrads(dA_post)
        )
        if dA_pre is None:
            pre_grads = ActivationGrads()
        elif isinstance(dA_pre, ActivationGrads):
            pre_grads = dA_pre
        else:
            pre_grads = ActivationGrads(dA_pre)

        dW: List[Array] = [np.zeros(0)] * self.layer_count
        dX = np.zeros_like(X)
        for idx in reversed(range(self.layer_count)):
            layer = self.layers[idx]
            mask = masks[idx]
            source = X if idx == 0 else A_post[idx - 1]
            A_in = bias(source) * mask
            out_shape = A_post[idx].shape
            dW_i, dA_in = layer.backprop(
                post_grads.get(idx, out_shape),
                pre_grads.get(idx, out_shape),
                A_post[idx],
                A_in,
                weights[idx],
            )
            # dropout passes gradient only through the units it kept
            dA_in = (dA_in * mask)[:, :-1]
            if idx == 0:
                dX = dA_in
            else:
                post_grads.add(idx - 1, dA_in)
            dW[idx] = dW_i
        return WeightSet(dW), dX

    # ------------------------------------------------------------------
    # Evaluation

    def predict(self, X: Array, weights: "WeightSet | Array | None" = None) -> Array:
        masks = self.get_masks(X.shape[0], force_no_drop=True)
        A_post, _ = self.feedforward(X, masks, weights)
        return A_post[-1]

    def check_acc(self, X: Array, Y: Array, weights: "WeightSet | Array | None" = None) -> float:
        """Classification accuracy on ``(X, Y)`` with dropout disabled."""

        if Y.ndim == 1 or Y.shape[1] == 1:
            truth = to_cats(Y.reshape(-1))
        else:
            truth = class_cats(Y)
        guess = class_cats(self.predict(X, weights))
        return float(np.mean(guess == truth))


__all__ = ["Network", "bias"]
