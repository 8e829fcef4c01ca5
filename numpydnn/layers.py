"""
Layer Implementations (Pure NumPy)
Includes forward and backward passes for each layer.

Every layer consumes and produces 2-D batches of shape (N, in_size) and
(N, out_size). Image layers interpret each row as a flattened
(channels, height, width) volume, so they chain directly into Dense layers.
"""

import numpy as np

from .activations import get_activation
from .errors import ConfigurationError, OrderingError, ShapeError
from .initializers import get_initializer


def _pair(value):
    if isinstance(value, (tuple, list)):
        if len(value) != 2:
            raise ConfigurationError(f"Expected an int or a pair, got {value!r}")
        return int(value[0]), int(value[1])
    return int(value), int(value)


class Layer:
    """
    Base class of all layers.

    A layer owns its parameters, the derivatives from the latest backprop,
    and the caches of its latest forward pass (input, pre-activation and
    activation). Subclasses implement _pre_activation() and
    _backprop_linear(); the activation step is shared here.
    """

    layer_type = None

    def __init__(self, in_size, out_size, activation=None):
        if in_size <= 0 or out_size <= 0:
            raise ShapeError(f"[{type(self).__name__}]: Layer sizes must be positive, "
                             f"got in_size={in_size}, out_size={out_size}")
        self.in_size = int(in_size)
        self.out_size = int(out_size)
        self.activation = get_activation(activation)

        # Cache for backward pass
        self._input = None
        self._z = None
        self._a = None
        self._cache = None
        self._din = None
        self._pending = False

    def init(self, rng):
        """Draw initial parameter values from rng. No-op for parameter-free layers."""

    def _check_input(self, X):
        X = np.asarray(X, dtype=float)
        if X.ndim != 2 or X.shape[1] != self.in_size:
            raise ShapeError(f"[{type(self).__name__}]: Input data have incorrect dimension, "
                             f"expected (N, {self.in_size}), got {X.shape}")
        return X

    def _pre_activation(self, X):
        """Return (z, cache) for input X without touching layer state."""
        raise NotImplementedError

    def _backprop_linear(self, X, dz):
        """Store parameter derivatives and return dL/dX, given dz = dL/dz."""
        raise NotImplementedError

    def forward(self, X):
        """
        Forward pass.
        X: (N, in_size)
        Returns: (N, out_size)
        """
        X = self._check_input(X)
        z, cache = self._pre_activation(X)
        a = self.activation.activate(z)

        self._input = X
        self._z = z
        self._a = a
        self._cache = cache
        self._din = None
        self._pending = True
        return a

    def predict(self, X):
        """Forward pass that leaves every cache untouched."""
        X = self._check_input(X)
        z, _ = self._pre_activation(X)
        return self.activation.activate(z)

    def output(self):
        if self._a is None:
            raise OrderingError(f"[{type(self).__name__}]: output() called before forward()")
        return self._a

    def backprop(self, layer_input, upstream):
        """
        Backward pass.
        layer_input: (N, in_size), the same batch given to the matching forward()
        upstream: (N, out_size), dL/d(output)
        """
        name = type(self).__name__
        if not self._pending:
            raise OrderingError(f"[{name}]: backprop() requires a preceding forward() "
                                f"that has not been back-propagated yet")
        layer_input = np.asarray(layer_input, dtype=float)
        if layer_input.shape != self._input.shape:
            raise ShapeError(f"[{name}]: layer_input has shape {layer_input.shape}, "
                             f"forward() saw {self._input.shape}")
        upstream = np.asarray(upstream, dtype=float)
        if upstream.shape != self._a.shape:
            raise ShapeError(f"[{name}]: upstream gradient has shape {upstream.shape}, "
                             f"expected {self._a.shape}")

        dz = self.activation.derivative(self._z, self._a, upstream)
        self._din = self._backprop_linear(layer_input, dz)
        self._pending = False

    def backprop_data(self):
        if self._din is None:
            raise OrderingError(f"[{type(self).__name__}]: backprop_data() called before backprop()")
        return self._din

    def parameter_groups(self):
        """List of (parameter, derivative) array pairs, weights before bias."""
        return []

    @property
    def parameter_count(self):
        return sum(p.size for p, _ in self.parameter_groups())

    def update(self, optimizer):
        for params, grads in self.parameter_groups():
            optimizer.update(params, grads)

    def get_parameters(self):
        groups = self.parameter_groups()
        if not groups:
            return np.zeros(0)
        return np.concatenate([p.ravel() for p, _ in groups])

    def set_parameters(self, parameters):
        parameters = np.asarray(parameters, dtype=float).ravel()
        if parameters.size != self.parameter_count:
            raise ShapeError(f"[{type(self).__name__}]: Parameter size does not match, "
                             f"expected {self.parameter_count}, got {parameters.size}")
        offset = 0
        for params, _ in self.parameter_groups():
            # Copy in place so the arrays keep their identity for the optimizer
            params[...] = parameters[offset:offset + params.size].reshape(params.shape)
            offset += params.size

    def get_derivatives(self):
        groups = self.parameter_groups()
        if not groups:
            return np.zeros(0)
        return np.concatenate([g.ravel() for _, g in groups])

    def config(self):
        """Constructor arguments, used to rebuild the layer when loading a network."""
        raise NotImplementedError

    def __repr__(self):
        return (f"{type(self).__name__}(in_size={self.in_size}, out_size={self.out_size}, "
                f"activation={self.activation.name})")


class Dense(Layer):
    """Fully Connected Layer, z = X W^T + b with W of shape (out_size, in_size)."""

    layer_type = 'Dense'

    def __init__(self, in_size, out_size, activation=None, initializer=None):
        super().__init__(in_size, out_size, activation)
        self.initializer = get_initializer(initializer)

        self.W = np.zeros((self.out_size, self.in_size))
        self.b = np.zeros(self.out_size)

        self.dW = np.zeros_like(self.W)
        self.db = np.zeros_like(self.b)

    def init(self, rng):
        self.W[...] = self.initializer.initialize(self.W.shape, rng, fan_in=self.in_size)
        self.b[...] = 0.0

    def _pre_activation(self, X):
        return X @ self.W.T + self.b, None

    def _backprop_linear(self, X, dz):
        self.dW[...] = dz.T @ X
        self.db[...] = dz.sum(axis=0)
        return dz @ self.W

    def parameter_groups(self):
        return [(self.W, self.dW), (self.b, self.db)]

    def config(self):
        return {
            'in_size': self.in_size,
            'out_size': self.out_size,
            'activation': self.activation.name,
        }


class Conv2D(Layer):
    """
    2D Convolution Layer with stride and zero-padding support.
    Uses im2col for efficient implementation.

    in_shape: (in_channels, height, width) of each flattened input row.
    Kernel shape: (out_channels, in_channels, kh, kw), plus one bias per
    output channel.
    """

    layer_type = 'Conv2D'

    def __init__(self, in_shape, out_channels, kernel_size=3, stride=1, padding=0,
                 activation=None, initializer=None):
        in_channels, height, width = (int(v) for v in in_shape)
        kernel_h, kernel_w = _pair(kernel_size)
        if kernel_h < 1 or kernel_w < 1:
            raise ConfigurationError(f"[Conv2D]: Invalid kernel size {kernel_size!r}")
        if stride < 1 or padding < 0:
            raise ConfigurationError(f"[Conv2D]: Invalid stride={stride} or padding={padding}")

        out_h = (height + 2 * padding - kernel_h) // stride + 1
        out_w = (width + 2 * padding - kernel_w) // stride + 1
        if out_h <= 0 or out_w <= 0:
            raise ShapeError(f"[Conv2D]: Kernel {kernel_h}x{kernel_w} does not fit "
                             f"input {height}x{width} with padding {padding}")

        super().__init__(in_channels * height * width, out_channels * out_h * out_w, activation)
        self.initializer = get_initializer(initializer)

        self.in_channels = in_channels
        self.out_channels = int(out_channels)
        self.height = height
        self.width = width
        self.kernel_size = (kernel_h, kernel_w)
        self.stride = int(stride)
        self.padding = int(padding)
        self.out_h = out_h
        self.out_w = out_w

        self.W = np.zeros((self.out_channels, in_channels, kernel_h, kernel_w))
        self.b = np.zeros(self.out_channels)

        # Gradients
        self.dW = np.zeros_like(self.W)
        self.db = np.zeros_like(self.b)

    def init(self, rng):
        kernel_h, kernel_w = self.kernel_size
        fan_in = self.in_channels * kernel_h * kernel_w
        self.W[...] = self.initializer.initialize(self.W.shape, rng, fan_in=fan_in)
        self.b[...] = 0.0

    def im2col(self, X):
        """
        Convert images to a column matrix.
        X: (N, C, H, W)
        Returns: (N*out_h*out_w, C*kh*kw), columns ordered like W.reshape(out_channels, -1)
        """
        N, C = X.shape[:2]
        kernel_h, kernel_w = self.kernel_size
        stride, pad = self.stride, self.padding
        out_h, out_w = self.out_h, self.out_w

        X_padded = np.pad(X, ((0, 0), (0, 0), (pad, pad), (pad, pad)), mode='constant')

        col = np.zeros((N, C, kernel_h, kernel_w, out_h, out_w))
        for y in range(kernel_h):
            y_max = y + stride * out_h
            for x in range(kernel_w):
                x_max = x + stride * out_w
                col[:, :, y, x, :, :] = X_padded[:, :, y:y_max:stride, x:x_max:stride]

        return col.transpose(0, 4, 5, 1, 2, 3).reshape(N * out_h * out_w, -1)

    def col2im(self, col, N):
        """Scatter-add a column matrix back to images of shape (N, C, H, W)."""
        C, H, W = self.in_channels, self.height, self.width
        kernel_h, kernel_w = self.kernel_size
        stride, pad = self.stride, self.padding
        out_h, out_w = self.out_h, self.out_w

        col = col.reshape(N, out_h, out_w, C, kernel_h, kernel_w).transpose(0, 3, 4, 5, 1, 2)

        X_padded = np.zeros((N, C, H + 2 * pad, W + 2 * pad))
        for y in range(kernel_h):
            y_max = y + stride * out_h
            for x in range(kernel_w):
                x_max = x + stride * out_w
                X_padded[:, :, y:y_max:stride, x:x_max:stride] += col[:, :, y, x, :, :]

        return X_padded[:, :, pad:pad + H, pad:pad + W]

    def _images(self, X):
        return X.reshape(X.shape[0], self.in_channels, self.height, self.width)

    def _pre_activation(self, X):
        N = X.shape[0]
        col = self.im2col(self._images(X))

        # Convolution as matrix multiplication
        W_col = self.W.reshape(self.out_channels, -1)
        out = col @ W_col.T + self.b  # (N*out_h*out_w, out_channels)
        out = out.reshape(N, self.out_h, self.out_w, self.out_channels).transpose(0, 3, 1, 2)
        return out.reshape(N, -1), None

    def _backprop_linear(self, X, dz):
        N = X.shape[0]
        col = self.im2col(self._images(X))

        dz = dz.reshape(N, self.out_channels, self.out_h, self.out_w)
        dz = dz.transpose(0, 2, 3, 1).reshape(-1, self.out_channels)

        # Kernel derivative: correlation of the input with dL/dz
        W_col = self.W.reshape(self.out_channels, -1)
        self.dW[...] = (dz.T @ col).reshape(self.W.shape)
        self.db[...] = dz.sum(axis=0)

        # Input gradient: full convolution of dL/dz with the kernel
        dcol = dz @ W_col
        dX = self.col2im(dcol, N)
        return dX.reshape(N, -1)

    def parameter_groups(self):
        return [(self.W, self.dW), (self.b, self.db)]

    def config(self):
        return {
            'in_shape': [self.in_channels, self.height, self.width],
            'out_channels': self.out_channels,
            'kernel_size': list(self.kernel_size),
            'stride': self.stride,
            'padding': self.padding,
            'activation': self.activation.name,
        }


class MaxPool2D(Layer):
    """
    Max Pooling Layer over non-overlapping windows.

    Rows and columns that do not fill a whole window are dropped in forward()
    and receive zero gradient. Has no parameters.
    """

    layer_type = 'MaxPool2D'

    def __init__(self, in_shape, pool_size=2, activation=None):
        channels, height, width = (int(v) for v in in_shape)
        pool_h, pool_w = _pair(pool_size)
        if pool_h < 1 or pool_w < 1:
            raise ConfigurationError(f"[MaxPool2D]: Invalid pool size {pool_size!r}")

        out_h = height // pool_h
        out_w = width // pool_w
        if out_h == 0 or out_w == 0:
            raise ShapeError(f"[MaxPool2D]: Pool {pool_h}x{pool_w} does not fit "
                             f"input {height}x{width}")

        super().__init__(channels * height * width, channels * out_h * out_w, activation)
        self.channels = channels
        self.height = height
        self.width = width
        self.pool_size = (pool_h, pool_w)
        self.out_h = out_h
        self.out_w = out_w

    def _windows(self, X):
        """(N, in_size) -> (N, C, out_h, out_w, pool_h*pool_w)."""
        N = X.shape[0]
        pool_h, pool_w = self.pool_size
        out_h, out_w = self.out_h, self.out_w

        images = X.reshape(N, self.channels, self.height, self.width)
        images = images[:, :, :out_h * pool_h, :out_w * pool_w]
        windows = images.reshape(N, self.channels, out_h, pool_h, out_w, pool_w)
        return windows.transpose(0, 1, 2, 4, 3, 5).reshape(N, self.channels, out_h, out_w, -1)

    def _pre_activation(self, X):
        windows = self._windows(X)
        argmax = np.argmax(windows, axis=-1)
        out = np.take_along_axis(windows, argmax[..., None], axis=-1)[..., 0]
        return out.reshape(X.shape[0], -1), argmax

    @property
    def argmax(self):
        """Per sample/channel/window position of the maximum inside the window."""
        if self._cache is None:
            raise OrderingError("[MaxPool2D]: argmax is only available after forward()")
        return self._cache

    def _backprop_linear(self, X, dz):
        """
        Backward pass - route gradients to max locations.
        """
        N = X.shape[0]
        pool_h, pool_w = self.pool_size
        out_h, out_w = self.out_h, self.out_w

        dz = dz.reshape(N, self.channels, out_h, out_w)
        dwindows = np.zeros((N, self.channels, out_h, out_w, pool_h * pool_w))
        np.put_along_axis(dwindows, self._cache[..., None], dz[..., None], axis=-1)

        dwindows = dwindows.reshape(N, self.channels, out_h, out_w, pool_h, pool_w)
        dwindows = dwindows.transpose(0, 1, 2, 4, 3, 5).reshape(
            N, self.channels, out_h * pool_h, out_w * pool_w)

        dX = np.zeros((N, self.channels, self.height, self.width))
        dX[:, :, :out_h * pool_h, :out_w * pool_w] = dwindows
        return dX.reshape(N, -1)

    def config(self):
        return {
            'in_shape': [self.channels, self.height, self.width],
            'pool_size': list(self.pool_size),
            'activation': self.activation.name,
        }


LAYER_TYPES = {cls.layer_type: cls for cls in (Dense, Conv2D, MaxPool2D)}


def layer_from_config(layer_type, config):
    """Rebuild a layer from its layer_type and config() dictionary."""
    try:
        cls = LAYER_TYPES[layer_type]
    except KeyError:
        raise ConfigurationError(f"Unknown layer type '{layer_type}'") from None
    return cls(**config)
