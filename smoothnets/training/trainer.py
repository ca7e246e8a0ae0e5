"""Minibatch SGD with momentum for FD-regularised networks."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence

import numpy as np

from ..core.fd_chains import sample_fd_chains
from ..core.gradcheck import fast_derivative_check
from ..core.network import Network
from ..core.objective import JointObjective
from ..core.types import Array, LossBreakdown, NetConfig, WeightSet
from .config import TrainOptions
from .metrics import compute_metrics

logger = logging.getLogger(__name__)


@dataclass
class MomentumSGD:
    """SGD with exponential-average momentum, linear warmup and geometric decay."""

    rate: float
    decay: float
    momentum: float
    warmup_rounds: int = 1000
    _velocity: WeightSet | None = field(default=None, init=False, repr=False)

    def effective_rate(self, round_idx: int) -> float:
        if self.warmup_rounds <= 0:
            return self.rate
        return min(self.rate, (round_idx / self.warmup_rounds) * self.rate)

    def step(self, weights: WeightSet, grads: WeightSet, round_idx: int) -> WeightSet:
        if self._velocity is None:
            self._velocity = grads.zeros_like()
        rate = self.effective_rate(round_idx)
        self._velocity = self._velocity.scaled(self.momentum) + grads.scaled(1.0 - self.momentum)
        updated = weights + self._velocity.scaled(-rate)
        self.rate *= self.decay
        return updated


@dataclass
class TrainReport:
    """What a call to :meth:`Trainer.run` did."""

    options: TrainOptions
    config: NetConfig
    rounds: int
    history: List[Dict[str, float]] = field(default_factory=list)
    last_loss: LossBreakdown | None = None


class Trainer:
    """Train a :class:`Network` on the joint output/curvature/regularisation loss."""

    def __init__(
        self,
        network: Network,
        callbacks: Sequence[object] | None = None,
        metric_names: Sequence[str] = ("accuracy",),
        rng: np.random.Generator | None = None,
    ) -> None:
        self.network = network
        self.callbacks = list(callbacks or [])
        self.metric_names = list(metric_names)
        self.rng = rng

    def run(
        self,
        X: Array,
        Y: Array,
        options: "TrainOptions | Mapping[str, Any] | None" = None,
    ) -> TrainReport:
        opts = TrainOptions.from_mapping(options)
        rng = self.rng or np.random.default_rng(opts.seed)
        X = np.asarray(X, dtype=np.float64)
        Y = np.asarray(Y, dtype=np.float64)
        if X.shape[0] != Y.shape[0]:
            raise ValueError(f"X has {X.shape[0]} rows but Y has {Y.shape[0]}")

        net = self.network
        config = opts.net_config(net.config)
        objective = JointObjective(net, config)
        optimizer = MomentumSGD(
            rate=opts.start_rate,
            decay=float(opts.decay_rate),  # type: ignore[arg-type]
            momentum=opts.momentum,
            warmup_rounds=opts.warmup_rounds,
        )
        report = TrainReport(options=opts, config=config, rounds=opts.rounds)
        obs_count = X.shape[0]
        weights = net.struct_weights()

        for round_idx in range(1, opts.rounds + 1):
            if opts.batch_size < obs_count:
                idx = rng.choice(obs_count, size=opts.batch_size, replace=False)
                Xb, Yb = X[idx], Y[idx]
            else:
                Xb, Yb = X, Y
            masks = net.get_masks(Xb.shape[0], rng=rng, config=config)
            chains, fd_lens = sample_fd_chains(
                X,
                opts.batch_size,
                config.max_order,
                opts.fuzz_scale * opts.fd_len,
                opts.fd_len,
                rng=rng,
            )
            _, grads, breakdown = objective.joint_loss(
                weights, Xb, Yb, masks, chains, fd_lens, rng=rng
            )
            weights = optimizer.step(weights, grads, round_idx)  # type: ignore[arg-type]
            weights = net.bound_weights(weights, opts.weight_bound)
            report.last_loss = breakdown

            if round_idx == 1 or round_idx % max(1, opts.report_every) == 0:
                net.set_weights(weights)
                metrics = self._evaluate(X, Y, opts, rng)
                metrics.update(
                    {
                        "loss": breakdown.total,
                        "out_loss": breakdown.output,
                        "fd_loss": breakdown.curvature,
                        "reg_loss": breakdown.regularization,
                        "rate": optimizer.rate,
                    }
                )
                report.history.append({"round": float(round_idx), **metrics})
                self._log_round(round_idx, metrics, breakdown)
                self._emit(round_idx, metrics)

        net.set_weights(weights)
        return report

    # ------------------------------------------------------------------
    # Internal helpers

    def _evaluate(
        self, X: Array, Y: Array, opts: TrainOptions, rng: np.random.Generator
    ) -> Dict[str, float]:
        metrics: Dict[str, float] = {}
        splits = [("train", X, Y)]
        if opts.do_validate:
            splits.append(("val", opts.Xv, opts.Yv))  # type: ignore[arg-type]
        for split, Xs, Ys in splits:
            if Xs.shape[0] > opts.eval_samples:
                idx = rng.choice(Xs.shape[0], size=opts.eval_samples, replace=False)
                Xs, Ys = Xs[idx], Ys[idx]
            values = compute_metrics(self.metric_names, self.network.predict(Xs), Ys)
            metrics.update({f"{split}_{name}": value for name, value in values.items()})
        return metrics

    @staticmethod
    def _log_round(round_idx: int, metrics: Mapping[str, float], breakdown: LossBreakdown) -> None:
        scores = ", ".join(
            f"{name}: {value:.4f}"
            for name, value in metrics.items()
            if name.startswith(("train_", "val_"))
        )
        logger.info("Round %d, %s", round_idx, scores)
        logger.info(
            "    Lo: %.4f, Lf: %.4f, Lr: %.4f",
            breakdown.output,
            breakdown.curvature,
            breakdown.regularization,
        )

    def _emit(self, step: int, metrics: Mapping[str, float]) -> None:
        for callback in self.callbacks:
            if hasattr(callback, "on_step"):
                callback.on_step(step, metrics)  # type: ignore[attr-defined]
            elif callable(callback):
                callback(step, metrics)


def check_grad(
    network: Network,
    X: Array,
    Y: Array,
    grad_checks: int,
    options: "TrainOptions | Mapping[str, Any] | None" = None,
    rng: np.random.Generator | None = None,
) -> List[float]:
    """Run ``grad_checks`` directional derivative checks of the joint loss.

    Each check draws a fresh batch, dropout masks and FD chains, freezes them,
    and compares the analytic gradient with a central difference along a
    random direction. Returns the relative discrepancy of every check.
    """

    opts = TrainOptions.from_mapping(options)
    rng = rng or np.random.default_rng(opts.seed)
    config = opts.net_config(network.config)
    objective = JointObjective(network, config)
    obs_count = X.shape[0]
    discrepancies: List[float] = []
    for check in range(1, grad_checks + 1):
        if opts.batch_size < obs_count:
            idx = rng.choice(obs_count, size=opts.batch_size, replace=False)
            Xb, Yb = X[idx], Y[idx]
        else:
            Xb, Yb = X, Y
        masks = network.get_masks(Xb.shape[0], rng=rng, config=config)
        chains, fd_lens = sample_fd_chains(
            X,
            Xb.shape[0],
            config.max_order,
            opts.fuzz_scale * opts.fd_len,
            opts.fd_len,
            rng=rng,
        )
        fn = objective.loss_function(Xb, Yb, masks, chains, fd_lens, rng=rng)
        discrepancy = fast_derivative_check(fn, network.vector_weights(), rng=rng)
        logger.info("Gradient check %d: relative discrepancy %.3e", check, discrepancy)
        discrepancies.append(discrepancy)
    return discrepancies


__all__ = ["MomentumSGD", "TrainReport", "Trainer", "check_grad"]
