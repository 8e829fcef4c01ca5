#!/usr/bin/env python3
"""
Unit Tests for Network Layers
=============================
Tests forward/backward passes, parameter access and call ordering for
Dense, Conv2D and MaxPool2D.
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)) + '/..')

import numpy as np
import pytest

from numpydnn import Conv2D, Dense, MaxPool2D, Normal, Uniform, SGD
from numpydnn.errors import ConfigurationError, OrderingError, ShapeError
from numpydnn.layers import layer_from_config


def numerical_param_grad(layer, X, dout, eps=1e-6):
    """Central differences of sum(layer(X) * dout) with respect to the parameters."""
    params = layer.get_parameters()
    grad = np.zeros_like(params)
    for i in range(params.size):
        shifted = params.copy()
        shifted[i] += eps
        layer.set_parameters(shifted)
        loss_plus = np.sum(layer.predict(X) * dout)

        shifted[i] -= 2 * eps
        layer.set_parameters(shifted)
        loss_minus = np.sum(layer.predict(X) * dout)

        grad[i] = (loss_plus - loss_minus) / (2 * eps)
    layer.set_parameters(params)
    return grad


def numerical_input_grad(layer, X, dout, eps=1e-6):
    grad = np.zeros_like(X)
    for idx in np.ndindex(*X.shape):
        X_plus = X.copy()
        X_plus[idx] += eps
        X_minus = X.copy()
        X_minus[idx] -= eps
        grad[idx] = (np.sum(layer.predict(X_plus) * dout) -
                     np.sum(layer.predict(X_minus) * dout)) / (2 * eps)
    return grad


def relative_error(a, b):
    return np.max(np.abs(a - b)) / max(1e-8, np.max(np.abs(a) + np.abs(b)))


def test_dense_forward():
    """Test Dense layer forward pass."""
    print("Testing Dense forward... ", end="")

    dense = Dense(256, 10)
    dense.init(np.random.default_rng(0))
    X = np.random.randn(4, 256).astype(np.float32)

    out = dense.forward(X)

    assert out.shape == (4, 10), f"Expected (4, 10), got {out.shape}"
    assert np.allclose(out, X.astype(float) @ dense.W.T)
    print("✓ PASSED")


def test_dense_backward():
    """Test Dense layer backward pass."""
    print("Testing Dense backward... ", end="")

    dense = Dense(128, 64, activation='relu')
    dense.init(np.random.default_rng(1))
    X = np.random.randn(2, 128)

    out = dense.forward(X)
    dout = np.random.randn(*out.shape)
    dense.backprop(X, dout)
    dX = dense.backprop_data()

    assert dX.shape == X.shape, f"Expected {X.shape}, got {dX.shape}"
    assert dense.dW.shape == dense.W.shape
    assert dense.db.shape == dense.b.shape
    print("✓ PASSED")


def test_dense_init():
    """Weights are drawn from the initializer, biases start at zero."""
    print("Testing Dense init... ", end="")

    dense = Dense(50, 40, initializer=Uniform(-0.5, 0.5))
    dense.b[...] = 3.0
    dense.init(np.random.default_rng(2))

    assert np.all(dense.b == 0.0)
    assert dense.W.min() >= -0.5 and dense.W.max() <= 0.5
    assert dense.W.std() > 0.1

    a = Dense(5, 3, initializer=Normal(0.0, 0.1))
    b = Dense(5, 3, initializer=Normal(0.0, 0.1))
    a.init(np.random.default_rng(7))
    b.init(np.random.default_rng(7))
    assert np.array_equal(a.W, b.W), "Same seed should give the same weights"
    print("✓ PASSED")


def test_conv2d_forward():
    """Test Conv2D forward pass output shapes."""
    print("Testing Conv2D forward... ", end="")

    conv = Conv2D((3, 8, 8), out_channels=16, kernel_size=3, padding=1)
    conv.init(np.random.default_rng(0))
    X = np.random.randn(2, 3 * 8 * 8)

    out = conv.forward(X)

    assert conv.out_size == 16 * 8 * 8
    assert out.shape == (2, 16 * 8 * 8), f"Expected (2, 1024), got {out.shape}"
    print("✓ PASSED")


def test_conv2d_known_values():
    """A 2x2 kernel of ones sums every 2x2 window."""
    print("Testing Conv2D values... ", end="")

    conv = Conv2D((1, 3, 3), out_channels=1, kernel_size=2)
    conv.set_parameters(np.r_[np.ones(4), 0.5])
    X = np.arange(9, dtype=float).reshape(1, 9)

    out = conv.forward(X)

    assert np.allclose(out, [[8.5, 12.5, 20.5, 24.5]]), f"Got {out}"
    print("✓ PASSED")


def test_conv2d_stride():
    print("Testing Conv2D stride... ", end="")

    conv = Conv2D((1, 5, 5), out_channels=2, kernel_size=3, stride=2)
    assert (conv.out_h, conv.out_w) == (2, 2)
    assert conv.out_size == 2 * 2 * 2

    with pytest.raises(ShapeError):
        Conv2D((1, 2, 2), out_channels=1, kernel_size=3)
    with pytest.raises(ConfigurationError):
        Conv2D((1, 5, 5), out_channels=1, kernel_size=3, stride=0)
    with pytest.raises(ConfigurationError):
        Conv2D((1, 5, 5), out_channels=1, kernel_size=0)
    with pytest.raises(ConfigurationError):
        Conv2D((1, 5, 5), out_channels=1, kernel_size=(2, 0))
    print("✓ PASSED")


def test_conv2d_backward():
    """Test Conv2D backward pass gradient shapes."""
    print("Testing Conv2D backward... ", end="")

    conv = Conv2D((3, 8, 8), out_channels=16, kernel_size=3, padding=1)
    conv.init(np.random.default_rng(3))
    X = np.random.randn(2, 3 * 8 * 8)

    out = conv.forward(X)
    dout = np.random.randn(*out.shape)
    conv.backprop(X, dout)
    dX = conv.backprop_data()

    assert dX.shape == X.shape, f"Expected {X.shape}, got {dX.shape}"
    assert conv.dW.shape == conv.W.shape, "dW shape mismatch"
    assert conv.db.shape == conv.b.shape, "db shape mismatch"
    print("✓ PASSED")


def test_maxpool_forward():
    """Test MaxPool2D forward pass."""
    print("Testing MaxPool2D forward... ", end="")

    pool = MaxPool2D((32, 16, 16), pool_size=2)
    X = np.random.randn(4, 32 * 16 * 16)

    out = pool.forward(X)

    assert out.shape == (4, 32 * 8 * 8), f"Expected (4, 2048), got {out.shape}"
    assert pool.parameter_count == 0
    print("✓ PASSED")


def test_maxpool_routing():
    """Gradients only reach the maximum of every window."""
    print("Testing MaxPool2D routing... ", end="")

    pool = MaxPool2D((1, 4, 4), pool_size=2)
    image = np.array([[1, 5, 2, 0],
                      [3, 4, 8, 1],
                      [0, 2, 1, 1],
                      [9, 1, 3, 7]], dtype=float)
    X = image.reshape(1, 16)

    out = pool.forward(X)
    assert np.allclose(out, [[5, 8, 9, 7]])
    assert np.array_equal(pool.argmax.reshape(2, 2), [[1, 2], [2, 3]])

    pool.backprop(X, np.array([[10.0, 20.0, 30.0, 40.0]]))
    dX = pool.backprop_data().reshape(4, 4)

    expected = np.zeros((4, 4))
    expected[0, 1] = 10.0
    expected[1, 2] = 20.0
    expected[3, 0] = 30.0
    expected[3, 3] = 40.0
    assert np.allclose(dX, expected), f"Got\n{dX}"
    print("✓ PASSED")


def test_maxpool_drops_remainder():
    """Rows and columns outside whole windows get no gradient."""
    print("Testing MaxPool2D remainder... ", end="")

    pool = MaxPool2D((2, 5, 5), pool_size=2)
    assert (pool.out_h, pool.out_w) == (2, 2)

    X = np.random.randn(3, 2 * 5 * 5)
    out = pool.forward(X)
    pool.backprop(X, np.ones_like(out))
    dX = pool.backprop_data().reshape(3, 2, 5, 5)

    assert np.all(dX[:, :, 4, :] == 0)
    assert np.all(dX[:, :, :, 4] == 0)
    assert np.allclose(dX.sum(axis=(2, 3)), 4.0)
    print("✓ PASSED")


def test_maxpool_no_parameters():
    print("Testing MaxPool2D parameters... ", end="")

    pool = MaxPool2D((1, 4, 4))
    assert pool.get_parameters().size == 0
    assert pool.get_derivatives().size == 0
    pool.set_parameters([])

    optimizer = SGD(lrate=0.1)
    pool.update(optimizer)
    with pytest.raises(ShapeError):
        pool.set_parameters([1.0])
    with pytest.raises(OrderingError):
        pool.argmax
    print("✓ PASSED")


def test_parameter_round_trip():
    """set_parameters(get_parameters()) leaves the layer unchanged."""
    print("Testing parameter round trip... ", end="")

    rng = np.random.default_rng(11)
    layers = [
        Dense(6, 4, activation='tanh'),
        Conv2D((2, 4, 4), out_channels=3, kernel_size=3, padding=1, activation='relu'),
        MaxPool2D((2, 4, 4)),
    ]
    for layer in layers:
        layer.init(rng)
        X = rng.standard_normal((3, layer.in_size))
        before = layer.predict(X)

        params = layer.get_parameters()
        assert params.size == layer.parameter_count
        layer.set_parameters(params)

        assert np.array_equal(layer.predict(X), before)
        assert np.array_equal(layer.get_parameters(), params)

    dense = layers[0]
    with pytest.raises(ShapeError):
        dense.set_parameters(np.zeros(dense.parameter_count + 1))
    print("✓ PASSED")


def test_set_parameters_keeps_arrays():
    """Parameters are copied into the existing arrays."""
    print("Testing in-place set_parameters... ", end="")

    dense = Dense(3, 2)
    W_id, b_id = id(dense.W), id(dense.b)
    dense.set_parameters(np.arange(8, dtype=float))

    assert id(dense.W) == W_id and id(dense.b) == b_id
    assert np.array_equal(dense.W, [[0, 1, 2], [3, 4, 5]])
    assert np.array_equal(dense.b, [6, 7])
    print("✓ PASSED")


def test_ordering_errors():
    print("Testing call ordering... ", end="")

    dense = Dense(3, 2)
    X = np.ones((2, 3))

    with pytest.raises(OrderingError):
        dense.output()
    with pytest.raises(OrderingError):
        dense.backprop(X, np.ones((2, 2)))
    with pytest.raises(OrderingError):
        dense.backprop_data()

    dense.forward(X)
    with pytest.raises(OrderingError):
        dense.backprop_data()
    with pytest.raises(ShapeError):
        dense.backprop(np.ones((3, 3)), np.ones((3, 2)))

    dense.backprop(X, np.ones((2, 2)))
    with pytest.raises(OrderingError):
        dense.backprop(X, np.ones((2, 2)))

    dense.forward(X)
    dense.backprop(X, np.ones((2, 2)))
    print("✓ PASSED")


def test_input_shape_errors():
    print("Testing input shapes... ", end="")

    dense = Dense(3, 2)
    with pytest.raises(ShapeError):
        dense.forward(np.ones((2, 4)))
    with pytest.raises(ShapeError):
        dense.forward(np.ones(3))
    with pytest.raises(ShapeError):
        Dense(0, 2)
    print("✓ PASSED")


def test_predict_keeps_cache():
    """predict() must not disturb the caches of the latest forward()."""
    print("Testing predict purity... ", end="")

    conv = Conv2D((1, 4, 4), out_channels=2, kernel_size=3, activation='relu')
    conv.init(np.random.default_rng(5))
    X1 = np.random.randn(2, 16)
    X2 = np.random.randn(5, 16)

    out = conv.forward(X1).copy()
    conv.predict(X2)

    assert np.array_equal(conv.output(), out)
    conv.backprop(X1, np.ones_like(out))
    print("✓ PASSED")


def test_gradient_numerical():
    """Numerical gradient check for Dense layer."""
    print("Testing numerical gradients (Dense)... ", end="")

    dense = Dense(4, 3, activation='sigmoid')
    dense.init(np.random.default_rng(21))
    X = np.random.randn(2, 4)

    out = dense.forward(X)
    dout = np.random.randn(*out.shape)
    dense.backprop(X, dout)

    analytical = dense.get_derivatives()
    numerical = numerical_param_grad(dense, X, dout)
    err = relative_error(analytical, numerical)
    assert err < 1e-6, f"Gradient check failed, relative error: {err}"

    err = relative_error(dense.backprop_data(), numerical_input_grad(dense, X, dout))
    assert err < 1e-6, f"Input gradient check failed, relative error: {err}"
    print("✓ PASSED")


def test_gradient_numerical_conv():
    print("Testing numerical gradients (Conv2D)... ", end="")

    conv = Conv2D((2, 5, 5), out_channels=3, kernel_size=3, stride=2, padding=1,
                  activation='tanh')
    conv.init(np.random.default_rng(22))
    X = np.random.randn(2, 2 * 5 * 5)

    out = conv.forward(X)
    dout = np.random.randn(*out.shape)
    conv.backprop(X, dout)

    err = relative_error(conv.get_derivatives(), numerical_param_grad(conv, X, dout))
    assert err < 1e-6, f"Kernel gradient check failed, relative error: {err}"

    err = relative_error(conv.backprop_data(), numerical_input_grad(conv, X, dout))
    assert err < 1e-6, f"Input gradient check failed, relative error: {err}"
    print("✓ PASSED")


def test_gradient_numerical_pool():
    print("Testing numerical gradients (MaxPool2D)... ", end="")

    pool = MaxPool2D((2, 4, 5), pool_size=2, activation='mish')
    X = np.random.default_rng(23).standard_normal((2, 2 * 4 * 5))

    out = pool.forward(X)
    dout = np.random.randn(*out.shape)
    pool.backprop(X, dout)

    err = relative_error(pool.backprop_data(), numerical_input_grad(pool, X, dout))
    assert err < 1e-6, f"Input gradient check failed, relative error: {err}"
    print("✓ PASSED")


def test_layer_from_config():
    print("Testing layer_from_config... ", end="")

    conv = Conv2D((1, 6, 6), out_channels=2, kernel_size=(3, 2), stride=1, padding=1,
                  activation='relu')
    rebuilt = layer_from_config(conv.layer_type, conv.config())

    assert isinstance(rebuilt, Conv2D)
    assert rebuilt.kernel_size == (3, 2)
    assert rebuilt.out_size == conv.out_size
    assert rebuilt.activation.name == 'relu'

    with pytest.raises(ConfigurationError):
        layer_from_config('Flatten', {})
    print("✓ PASSED")


def run_all_tests():
    """Run all unit tests."""
    print("\n" + "="*60)
    print("RUNNING LAYER TESTS")
    print("="*60 + "\n")

    tests = [
        test_dense_forward,
        test_dense_backward,
        test_dense_init,
        test_conv2d_forward,
        test_conv2d_known_values,
        test_conv2d_stride,
        test_conv2d_backward,
        test_maxpool_forward,
        test_maxpool_routing,
        test_maxpool_drops_remainder,
        test_maxpool_no_parameters,
        test_parameter_round_trip,
        test_set_parameters_keeps_arrays,
        test_ordering_errors,
        test_input_shape_errors,
        test_predict_keeps_cache,
        test_gradient_numerical,
        test_gradient_numerical_conv,
        test_gradient_numerical_pool,
        test_layer_from_config,
    ]

    passed = 0
    failed = 0

    for test in tests:
        try:
            test()
            passed += 1
        except AssertionError as e:
            print(f"✗ FAILED: {e}")
            failed += 1
        except Exception as e:
            print(f"✗ ERROR: {e}")
            failed += 1

    print("\n" + "="*60)
    print(f"RESULTS: {passed} passed, {failed} failed")
    print("="*60)

    return failed == 0


if __name__ == '__main__':
    success = run_all_tests()
    sys.exit(0 if success else 1)
