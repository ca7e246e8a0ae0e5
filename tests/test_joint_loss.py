import numpy as np
import pytest

from smoothnets.core.fd_chains import sample_fd_chains
from smoothnets.core.gradcheck import fast_derivative_check, numerical_gradient, relative_error
from smoothnets.core.network import Network
from smoothnets.core.objective import JointObjective, net_joint_loss
from smoothnets.core.types import NetConfig, WeightSet


def _problem(activation="tanh", loss="lsq", config=None, seed=0):
    rng = np.random.default_rng(seed)
    config = config or NetConfig(lam_l2=0.01, ord_lams=(0.1, 0.1), drop_hidden=0.3)
    net = Network([3, 5, 4, 2], activation=activation, loss=loss, config=config)
    net.init_weights(0.6, 0.2, rng=rng)
    X = rng.standard_normal((8, 3))
    Y = rng.standard_normal((8, 2))
    masks = net.get_masks(8, rng=rng)
    chains, lens = sample_fd_chains(X, 6, config.max_order, 0.5, 0.2, rng=rng)
    fd_masks = net.get_masks(6, rng=rng)
    return net, X, Y, masks, chains, lens, fd_masks


@pytest.mark.parametrize(
    "activation,loss",
    [("tanh", "lsq"), ("norm", "lsq"), ("tanh", "mclr"), ("tanh", "hsq")],
)
def test_joint_gradient_matches_central_differences(activation, loss):
    net, X, Y, masks, chains, lens, fd_masks = _problem(activation, loss)
    objective = JointObjective(net)
    fn = objective.loss_function(X, Y, masks, chains, lens, fd_masks)
    w = net.vector_weights()
    _, analytic = fn(w)
    numeric = numerical_gradient(fn, w)
    assert relative_error(analytic, numeric) < 1e-4


def test_gradient_check_with_huber_curvature_and_l1():
    config = NetConfig(lam_l1=0.001, lam_l2=0.01, ord_lams=(0.2, 0.05), fd_loss="huber")
    net, X, Y, masks, chains, lens, fd_masks = _problem(config=config, seed=3)
    fn = JointObjective(net).loss_function(X, Y, masks, chains, lens, fd_masks)
    assert fast_derivative_check(fn, net.vector_weights(), rng=np.random.default_rng(9)) < 1e-4


def test_gradient_form_follows_weight_form():
    net, X, Y, masks, chains, lens, fd_masks = _problem()
    objective = JointObjective(net)
    weights = net.struct_weights()
    total_s, grads_s, breakdown = objective.joint_loss(
        weights, X, Y, masks, chains, lens, fd_masks
    )
    total_v, grads_v, _ = objective.joint_loss(
        weights.flatten(), X, Y, masks, chains, lens, fd_masks
    )
    assert isinstance(grads_s, WeightSet)
    assert isinstance(grads_v, np.ndarray)
    assert total_s == pytest.approx(total_v)
    assert np.allclose(grads_s.flatten(), grads_v)
    assert breakdown.total == pytest.approx(total_s)
    assert len(breakdown.curvature_orders) == 2
    assert breakdown.curvature == pytest.approx(sum(breakdown.curvature_orders))


def test_joint_gradient_is_the_sum_of_its_terms():
    net, X, Y, masks, chains, lens, fd_masks = _problem()
    objective = JointObjective(net)
    weights = net.struct_weights()
    _, grads, _ = objective.joint_loss(weights, X, Y, masks, chains, lens, fd_masks)
    _, d_out = objective.out_loss(weights, X, Y, masks)
    _, d_fd = objective.fd_loss(weights, chains, lens, fd_masks)
    _, d_reg = objective.reg_loss(weights)
    assert np.allclose(grads.flatten(), (d_out + d_fd + d_reg).flatten())


def test_curvature_term_is_skipped_for_tiny_order_weights():
    config = NetConfig(ord_lams=(1e-9, 0.0))
    net, X, Y, masks, chains, lens, fd_masks = _problem(config=config)
    losses, grads = JointObjective(net).fd_loss(net.struct_weights(), chains, lens, fd_masks)
    assert np.all(losses == 0.0)
    assert np.all(grads.flatten() == 0.0)


def test_objective_does_not_touch_network_config():
    net, X, Y, masks, chains, lens, fd_masks = _problem()
    before = net.config
    override = NetConfig(lam_l2=1.0, ord_lams=(0.0, 0.0))
    total, _, breakdown = net_joint_loss(
        net, net.struct_weights(), X, Y, masks, chains, lens, fd_masks, config=override
    )
    assert net.config is before
    assert breakdown.curvature == 0.0
    assert breakdown.regularization == pytest.approx(np.sum(net.vector_weights() ** 2))


def test_joint_loss_rejects_misshapen_weights():
    net, X, Y, masks, chains, lens, fd_masks = _problem()
    with pytest.raises(ValueError):
        JointObjective(net).joint_loss(np.zeros(3), X, Y, masks, chains, lens, fd_masks)
