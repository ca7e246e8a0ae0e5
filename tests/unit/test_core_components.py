import numpy as np
import pytest

from smoothnets.core.activations import Activation, norm_transform, tanh_transform
from smoothnets.core.dropout import get_masks, stack_masks
from smoothnets.core.layer import Layer
from smoothnets.core.network import Network, bias
from smoothnets.core.types import ActivationGrads, NetConfig, WeightSet


def _numeric_jvp(fn, x, v, eps=1e-6):
    return (fn(x + eps * v) - fn(x - eps * v)) / (2 * eps)


@pytest.mark.parametrize("transform", [tanh_transform, norm_transform])
def test_transform_backward_matches_numeric(transform):
    rng = np.random.default_rng(0)
    x = rng.standard_normal((5, 4))
    v = rng.standard_normal((5, 4))
    analytic = transform(x).backward(v)
    numeric = _numeric_jvp(lambda z: transform(z).output, x, v)
    assert np.allclose(analytic, numeric, atol=1e-6)


def test_activation_parse_rejects_unknown_names():
    assert Activation.parse("TANH") is Activation.TANH
    with pytest.raises(ValueError):
        Activation.parse("relu")


def test_layer_shapes_include_bias_row():
    layer = Layer(3, 5)
    assert layer.shape == (4, 5)
    assert layer.weight_count() == 20
    with pytest.raises(ValueError):
        layer.set_weights(np.zeros((3, 5)))


def test_layer_weight_vector_views():
    layer = Layer(2, 3)
    W = layer.init_weights(np.random.default_rng(0), 1.0, 0.5)
    vector = layer.vector_weights()
    assert vector.shape == (9,)
    assert np.array_equal(layer.matrix_weights(vector), W)
    with pytest.raises(ValueError):
        layer.matrix_weights(vector[:-1])


def test_layer_backprop_matches_numeric_gradient():
    rng = np.random.default_rng(1)
    layer = Layer(3, 2, Activation.TANH)
    W = rng.standard_normal(layer.shape)
    A_in = bias(rng.standard_normal((4, 3)))
    target = rng.standard_normal((4, 2))

    def loss(weights):
        post, _ = layer.feedforward(A_in, weights)
        return 0.5 * np.sum((post - target) ** 2)

    post, _ = layer.feedforward(A_in, W)
    dW, dA_in = layer.backprop(post - target, np.zeros_like(post), post, A_in, W)
    assert dA_in.shape == A_in.shape

    numeric = np.zeros_like(W)
    for idx in np.ndindex(*W.shape):
        step = np.zeros_like(W)
        step[idx] = 1e-6
        numeric[idx] = (loss(W + step) - loss(W - step)) / 2e-6
    assert np.allclose(dW, numeric, atol=1e-6)


def test_bound_weights_only_shrinks_long_columns():
    W = np.array([[3.0, 0.5, 0.0], [4.0, 0.5, 10.0]])
    bounded = Layer.bound_weights(W, 4.0)
    norms = np.linalg.norm(bounded, axis=0)
    assert np.all(norms <= 4.0 + 1e-12)
    assert np.array_equal(bounded[:, 1], W[:, 1])
    assert np.allclose(bounded[:, 0], W[:, 0] * 0.8)
    assert np.allclose(bounded[:, 2], [0.0, 4.0])
    # input is left untouched
    assert W[1, 2] == 10.0


def test_weight_vector_round_trip_is_exact():
    net = Network([3, 5, 4, 2])
    net.init_weights(0.7, 0.2, rng=np.random.default_rng(2))
    flat = net.vector_weights()
    assert flat.size == net.weight_count() == 4 * 5 + 6 * 4 + 5 * 2
    restored = net.struct_weights(flat)
    assert restored.shapes == [(4, 5), (6, 4), (5, 2)]
    assert np.array_equal(net.vector_weights(restored), flat)
    assert np.array_equal(restored.flatten(), flat)


def test_weight_vector_length_mismatch_raises():
    net = Network([2, 3, 1])
    with pytest.raises(ValueError):
        net.struct_weights(np.zeros(net.weight_count() + 1))
    with pytest.raises(ValueError):
        WeightSet.from_vector(np.zeros(5), [(2, 2)])


def test_first_layer_bias_starts_at_zero():
    net = Network([2, 4, 4, 1])
    weights = net.init_weights(1.0, 0.5, rng=np.random.default_rng(3))
    assert np.all(weights[0][-1] == 0.0)
    assert np.any(weights[1][-1] != 0.0)


def test_from_layers_checks_dimension_chain():
    with pytest.raises(ValueError):
        Network.from_layers([Layer(2, 3), Layer(4, 1, Activation.LINEAR)])
    net = Network.from_layers([Layer(2, 3), Layer(3, 1, Activation.LINEAR)])
    assert net.layer_sizes == [2, 3, 1]


def test_output_layer_is_linear():
    net = Network([2, 3, 3, 1], activation="norm")
    assert [layer.activation for layer in net.layers] == [
        Activation.NORM,
        Activation.NORM,
        Activation.LINEAR,
    ]


@pytest.mark.parametrize("drop", [0.0, 0.2, 0.5, 0.9])
def test_mask_rows_have_unit_mean(drop):
    rng = np.random.default_rng(4)
    masks = get_masks(
        [201, 65],
        batch_size=50,
        drop_input=drop,
        drop_hidden=drop,
        drop_undrop=0.0,
        rng=rng,
    )
    for mask in masks:
        means = mask.mean(axis=1)
        kept_rows = np.any(mask > 0, axis=1)
        assert np.allclose(means[kept_rows], 1.0)


def test_undropped_rows_are_kept_in_every_layer():
    masks = get_masks(
        [4, 6],
        batch_size=10,
        drop_input=0.5,
        drop_hidden=0.5,
        drop_undrop=1.0,
        rng=np.random.default_rng(5),
    )
    assert all(np.array_equal(mask, np.ones_like(mask)) for mask in masks)


def test_force_no_drop_and_stacking():
    net = Network([3, 4, 2], config=NetConfig(drop_hidden=0.9))
    masks = net.get_masks(6, force_no_drop=True)
    assert [m.shape for m in masks] == [(6, 4), (6, 5)]
    assert all(np.all(m == 1.0) for m in masks)
    stacked = stack_masks([masks, masks, masks])
    assert [m.shape for m in stacked] == [(18, 4), (18, 5)]


def test_feedforward_rejects_wrong_mask_shapes():
    net = Network([3, 4, 2])
    net.init_weights(0.5, rng=np.random.default_rng(6))
    X = np.ones((5, 3))
    with pytest.raises(ValueError):
        net.feedforward(X, net.get_masks(4, force_no_drop=True))
    with pytest.raises(ValueError):
        net.feedforward(X, net.get_masks(5, force_no_drop=True)[:1])


def test_activation_grads_accumulate_additively():
    grads = ActivationGrads()
    grads.add(0, np.ones((2, 3)))
    grads.add(0, 2 * np.ones((2, 3)))
    assert np.all(grads.get(0, (2, 3)) == 3.0)
    assert np.all(grads.get(1, (2, 2)) == 0.0)
    assert 0 in grads and 1 not in grads
    with pytest.raises(ValueError):
        grads.add(0, np.ones((3, 3)))


def test_backprop_superposition_at_shared_activation():
    rng = np.random.default_rng(7)
    net = Network([3, 4, 4, 2])
    weights = net.init_weights(0.8, 0.3, rng=rng)
    X = rng.standard_normal((6, 3))
    masks = net.get_masks(6, rng=rng, config=NetConfig(drop_hidden=0.3))
    A_post, _ = net.feedforward(X, masks, weights)

    out_grad = rng.standard_normal(A_post[-1].shape)
    hidden_grad = rng.standard_normal(A_post[0].shape)

    alone_out, dX_out = net.backprop([None, None, out_grad], None, A_post, X, masks, weights)
    alone_hidden, dX_hidden = net.backprop(
        [hidden_grad, None, None], None, A_post, X, masks, weights
    )

    both = ActivationGrads()
    both.add(2, out_grad)
    both.add(0, hidden_grad)
    combined, dX = net.backprop(both, None, A_post, X, masks, weights)

    for a, b, c in zip(alone_out, alone_hidden, combined):
        assert np.allclose(a + b, c)
    assert np.allclose(dX_out + dX_hidden, dX)
    # the caller's accumulator is not consumed by backprop
    assert 1 not in both


def test_check_acc_uses_argmax_classes():
    net = Network([2, 2], activation="linear")
    W = np.array([[1.0, 0.0], [0.0, 1.0], [0.0, 0.0]])
    net.set_weights(WeightSet([W]))
    X = np.array([[2.0, 0.0], [0.0, 2.0], [1.0, 3.0]])
    Y = np.array([[1.0, -1.0], [-1.0, 1.0], [1.0, -1.0]])
    assert net.check_acc(X, Y) == pytest.approx(2 / 3)
