"""Joint objective: output loss + FD curvature penalty + weight regularisation."""

from __future__ import annotations

from typing import Callable, List, Sequence

import numpy as np

from .curvature import curvature_loss
from .dropout import stack_masks
from .network import Network
from .types import ActivationGrads, Array, LossBreakdown, NetConfig, WeightSet

FD_SHORTCIRCUIT = 1e-6

LossAndGrad = Callable[[Array], tuple[float, Array]]


class JointObjective:
    """Loss/gradient engine for a :class:`Network`.

    Hyperparameters come from ``config`` (the network's own by default) and
    are never written back to the network.
    """

    def __init__(self, network: Network, config: NetConfig | None = None) -> None:
        self.network = network
        self.config = config or network.config
        self._curvature = curvature_loss(self.config.fd_loss, self.config.huber_threshold)

    def out_loss(
        self, weights: WeightSet, X: Array, Y: Array, masks: Sequence[Array]
    ) -> tuple[float, WeightSet]:
        """Output loss on ``(X, Y)`` and its weight gradient."""

        net = self.network
        A_post, _ = net.feedforward(X, masks, weights)
        loss, d_out = net.loss(A_post[-1], Y)
        dA_post = ActivationGrads()
        dA_post.add(net.layer_count - 1, d_out)
        dW, _ = net.backprop(dA_post, None, A_post, X, masks, weights)
        return loss, dW

    def fd_loss(
        self,
        weights: WeightSet,
        chains: Sequence[Array],
        step_lengths: Array,
        fd_masks: Sequence[Array] | None = None,
        rng: np.random.Generator | None = None,
    ) -> tuple[Array, WeightSet]:
        """Per-order curvature losses for the sampled chains and their weight gradient.

        One dropout draw is shared by every link of the chains so a whole chain
        sees the same sub-network. Each link is then treated as its own
        pseudo-observation in a single stacked backprop.
        """

        net = self.network
        ord_lams = self.config.ord_lams
        if not ord_lams or max(ord_lams) < FD_SHORTCIRCUIT:
            return np.zeros(len(ord_lams)), weights.zeros_like()

        chain_count = chains[0].shape[0]
        if fd_masks is None:
            fd_masks = net.get_masks(chain_count, rng=rng, config=self.config)

        link_posts: List[List[Array]] = []
        for link in chains:
            A_post, _ = net.feedforward(link, fd_masks, weights)
            link_posts.append(A_post)
        outputs = [A_post[-1] for A_post in link_posts]
        losses, d_links = self._curvature(outputs, step_lengths, ord_lams)

        stacked_posts = [
            np.vstack([A_post[idx] for A_post in link_posts]) for idx in range(net.layer_count)
        ]
        stacked_X = np.vstack(list(chains))
        stacked_masks = stack_masks([fd_masks] * len(chains))
        dA_post = ActivationGrads()
        dA_post.add(net.layer_count - 1, np.vstack(d_links))
        dW, _ = net.backprop(dA_post, None, stacked_posts, stacked_X, stacked_masks, weights)
        return losses, dW

    def reg_loss(self, weights: WeightSet) -> tuple[float, WeightSet]:
        """L2 (and L1) penalty over every weight, biases included."""

        lam_l2 = self.config.lam_l2
        lam_l1 = self.config.lam_l1
        loss = 0.0
        grads: List[Array] = []
        for W in weights:
            loss += lam_l2 * float(np.sum(W**2)) + lam_l1 * float(np.sum(np.abs(W)))
            grads.append((2.0 * lam_l2) * W + lam_l1 * np.sign(W))
        return loss, WeightSet(grads)

    def joint_loss(
        self,
        weights: "WeightSet | Array",
        X: Array,
        Y: Array,
        masks: Sequence[Array],
        chains: Sequence[Array],
        step_lengths: Array,
        fd_masks: Sequence[Array] | None = None,
        rng: np.random.Generator | None = None,
    ) -> tuple[float, "WeightSet | Array", LossBreakdown]:
        """Total loss, its gradient, and the per-term breakdown.

        The gradient comes back in the same form as ``weights``: a
        :class:`WeightSet` for structured weights, a flat vector otherwise.
        """

        as_vector = not isinstance(weights, WeightSet)
        weights = self.network.as_weight_set(weights)
        L_out, dW_out = self.out_loss(weights, X, Y, masks)
        L_fd, dW_fd = self.fd_loss(weights, chains, step_lengths, fd_masks, rng)
        L_reg, dW_reg = self.reg_loss(weights)
        breakdown = LossBreakdown(
            output=float(L_out),
            curvature=float(np.sum(L_fd)),
            regularization=float(L_reg),
            curvature_orders=tuple(float(v) for v in L_fd),
        )
        grads = dW_out + dW_fd + dW_reg
        if as_vector:
            return breakdown.total, grads.flatten(), breakdown
        return breakdown.total, grads, breakdown

    def loss_function(
        self,
        X: Array,
        Y: Array,
        masks: Sequence[Array],
        chains: Sequence[Array],
        step_lengths: Array,
        fd_masks: Sequence[Array] | None = None,
        rng: np.random.Generator | None = None,
    ) -> LossAndGrad:
        """Freeze every random input and expose ``w -> (loss, grad)`` on flat vectors."""

        if fd_masks is None:
            fd_masks = self.network.get_masks(chains[0].shape[0], rng=rng, config=self.config)

        def fn(w: Array) -> tuple[float, Array]:
            loss, grad, _ = self.joint_loss(w, X, Y, masks, chains, step_lengths, fd_masks)
            return loss, grad  # type: ignore[return-value]

        return fn


def net_joint_loss(
    network: Network,
    weights: "WeightSet | Array",
    X: Array,
    Y: Array,
    masks: Sequence[Array],
    chains: Sequence[Array],
    step_lengths: Array,
    fd_masks: Sequence[Array] | None = None,
    rng: np.random.Generator | None = None,
    config: NetConfig | None = None,
) -> tuple[float, "WeightSet | Array", LossBreakdown]:
    """Functional form of :meth:`JointObjective.joint_loss`."""

    objective = JointObjective(network, config)
    return objective.joint_loss(weights, X, Y, masks, chains, step_lengths, fd_masks, rng)


__all__ = ["JointObjective", "net_joint_loss"]
