from __future__ import annotations

from typing import Mapping

import numpy as np
import pytest

from smoothnets.core.network import Network
from smoothnets.core.types import NetConfig, WeightSet
from smoothnets.training.config import TrainOptions
from smoothnets.training.trainer import MomentumSGD, Trainer, check_grad


class _Capture:
    def __init__(self) -> None:
        self.history: list[tuple[int, Mapping[str, float]]] = []

    def on_step(self, step: int, metrics: Mapping[str, float]) -> None:
        self.history.append((step, {k: float(v) for k, v in metrics.items()}))


def _blobs(seed: int = 1):
    rng = np.random.default_rng(seed)
    centers = np.array([[2.0, 2.0], [-2.0, -2.0], [2.0, -2.0]])
    labels = np.repeat(np.arange(3), 60)
    X = centers[labels] + 0.4 * rng.standard_normal((labels.size, 2))
    Y = -np.ones((labels.size, 3))
    Y[np.arange(labels.size), labels] = 1.0
    return X, Y


def test_momentum_sgd_schedule():
    opt = MomentumSGD(rate=0.1, decay=0.5, momentum=0.0, warmup_rounds=10)
    assert opt.effective_rate(1) == pytest.approx(0.01)
    assert opt.effective_rate(20) == pytest.approx(0.1)
    weights = WeightSet([np.ones((2, 2))])
    grads = WeightSet([np.ones((2, 2))])
    updated = opt.step(weights, grads, 10)
    assert np.allclose(updated[0], 0.9)
    assert opt.rate == pytest.approx(0.05)


def test_momentum_averages_gradients():
    opt = MomentumSGD(rate=1.0, decay=1.0, momentum=0.5, warmup_rounds=0)
    weights = WeightSet([np.zeros((1, 1))])
    weights = opt.step(weights, WeightSet([np.ones((1, 1))]), 1)
    assert weights[0][0, 0] == pytest.approx(-0.5)
    weights = opt.step(weights, WeightSet([np.ones((1, 1))]), 2)
    assert weights[0][0, 0] == pytest.approx(-0.5 - 0.75)


def test_multiclass_training_improves_accuracy():
    X, Y = _blobs()
    net = Network([2, 16, 3], loss="mcl2h", config=NetConfig(drop_hidden=0.0, ord_lams=(0.01, 0.01)))
    net.init_weights(0.5, 0.1, rng=np.random.default_rng(0))
    capture = _Capture()
    trainer = Trainer(net, callbacks=[capture], rng=np.random.default_rng(2))
    report = trainer.run(
        X,
        Y,
        {"rounds": 300, "batch_size": 50, "warmup_rounds": 20, "report_every": 50},
    )
    assert [step for step, _ in capture.history] == [1, 50, 100, 150, 200, 250, 300]
    last = capture.history[-1][1]
    assert last["train_accuracy"] > 0.9
    assert net.check_acc(X, Y) > 0.9
    assert report.last_loss is not None
    assert {"loss", "out_loss", "fd_loss", "reg_loss", "rate"} <= set(last)
    assert report.history[-1]["round"] == 300.0


def test_weights_stay_within_bound():
    X, Y = _blobs()
    net = Network([2, 8, 3], config=NetConfig(drop_hidden=0.0, ord_lams=(0.0,)))
    net.init_weights(3.0, 3.0, rng=np.random.default_rng(4))
    Trainer(net, rng=np.random.default_rng(5)).run(
        X, Y, TrainOptions(rounds=5, start_rate=5.0, warmup_rounds=0, weight_bound=1.5)
    )
    for W in net.struct_weights():
        assert np.all(np.linalg.norm(W, axis=0) <= 1.5 + 1e-9)


def test_validation_metrics_are_reported():
    X, Y = _blobs()
    net = Network([2, 6, 3], loss="mclr")
    net.init_weights(0.5, rng=np.random.default_rng(6))
    capture = _Capture()
    Trainer(net, callbacks=[capture], rng=np.random.default_rng(7)).run(
        X[:150],
        Y[:150],
        {"rounds": 4, "report_every": 2, "do_validate": True, "Xv": X[150:], "Yv": Y[150:]},
    )
    assert all("val_accuracy" in metrics for _, metrics in capture.history)


def test_training_options_do_not_mutate_network_config():
    X, Y = _blobs()
    config = NetConfig(lam_l2=0.0)
    net = Network([2, 4, 3], config=config)
    net.init_weights(0.5, rng=np.random.default_rng(8))
    report = Trainer(net, rng=np.random.default_rng(9)).run(
        X, Y, {"rounds": 2, "lam_l2": 0.5, "ord_lams": [0.0, 0.2]}
    )
    assert net.config is config
    assert report.config.lam_l2 == 0.5
    assert report.config.ord_lams == (0.0, 0.2)


def test_training_is_deterministic_for_a_seed():
    X, Y = _blobs()

    def run() -> np.ndarray:
        net = Network([2, 5, 3])
        net.init_weights(0.5, rng=np.random.default_rng(10))
        Trainer(net).run(X, Y, {"rounds": 10, "seed": 42})
        return net.vector_weights()

    assert np.array_equal(run(), run())


def test_row_count_mismatch_is_rejected():
    net = Network([2, 3])
    with pytest.raises(ValueError):
        Trainer(net).run(np.zeros((4, 2)), np.zeros((5, 3)), {"rounds": 1})


def test_check_grad_reports_small_discrepancies():
    X, Y = _blobs()
    net = Network([2, 5, 3], config=NetConfig(lam_l2=0.01))
    net.init_weights(0.5, 0.1, rng=np.random.default_rng(11))
    discrepancies = check_grad(
        net, X, Y, 3, {"batch_size": 20, "fd_len": 0.2}, rng=np.random.default_rng(12)
    )
    assert len(discrepancies) == 3
    assert max(discrepancies) < 1e-4
