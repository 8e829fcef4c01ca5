"""
Activation Functions (Pure NumPy)
Stateless transforms applied by layers after their linear/pooling step.
"""

import numpy as np


class Activation:
    """
    Interface of an activation strategy.

    activate(z)                 -> a
    derivative(z, a, upstream)  -> dL/dz, given upstream = dL/da
    """

    name = None

    def activate(self, z):
        raise NotImplementedError

    def derivative(self, z, a, upstream):
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}()"


class Identity(Activation):
    """Identity activation, a = z."""

    name = 'identity'

    def activate(self, z):
        return z.copy()

    def derivative(self, z, a, upstream):
        return upstream.copy()


class ReLU(Activation):
    """ReLU activation function."""

    name = 'relu'

    def activate(self, z):
        return np.maximum(0, z)

    def derivative(self, z, a, upstream):
        return upstream * (z > 0)


class Sigmoid(Activation):
    """Logistic sigmoid."""

    name = 'sigmoid'

    def activate(self, z):
        # Split by sign so exp() never overflows
        out = np.empty_like(z, dtype=float)
        pos = z >= 0
        out[pos] = 1.0 / (1.0 + np.exp(-z[pos]))
        exp_z = np.exp(z[~pos])
        out[~pos] = exp_z / (1.0 + exp_z)
        return out

    def derivative(self, z, a, upstream):
        return a * (1.0 - a) * upstream


class Tanh(Activation):
    """Hyperbolic tangent."""

    name = 'tanh'

    def activate(self, z):
        return np.tanh(z)

    def derivative(self, z, a, upstream):
        return (1.0 - a ** 2) * upstream


class Mish(Activation):
    """
    Mish activation, a = z * tanh(softplus(z)).
    """

    name = 'mish'

    def activate(self, z):
        return z * np.tanh(np.logaddexp(0, z))

    def derivative(self, z, a, upstream):
        t = np.tanh(np.logaddexp(0, z))
        sig = Sigmoid().activate(z)
        return (t + z * (1.0 - t ** 2) * sig) * upstream


class Softmax(Activation):
    """
    Softmax activation, normalized across the output dimension of each sample.

    The derivative is the full Jacobian-vector product
        dL/dz = a * (dL/da - sum(a * dL/da))
    so it composes with any output layer. Paired with MultiClassEntropy the
    result equals the familiar (a - y) / N.
    """

    name = 'softmax'

    def activate(self, z):
        # Numerically stable softmax
        exp_z = np.exp(z - np.max(z, axis=1, keepdims=True))
        return exp_z / np.sum(exp_z, axis=1, keepdims=True)

    def derivative(self, z, a, upstream):
        a_dot_f = np.sum(a * upstream, axis=1, keepdims=True)
        return a * (upstream - a_dot_f)


ACTIVATIONS = {
    cls.name: cls
    for cls in (Identity, ReLU, Sigmoid, Tanh, Mish, Softmax)
}


def get_activation(activation):
    """Resolve None, a name, or an Activation instance/class to an instance."""
    if activation is None:
        return Identity()
    if isinstance(activation, Activation):
        return activation
    if isinstance(activation, type) and issubclass(activation, Activation):
        return activation()
    if isinstance(activation, str):
        try:
            return ACTIVATIONS[activation.lower()]()
        except KeyError:
            raise ValueError(f"Unknown activation '{activation}'. "
                             f"Available: {sorted(ACTIVATIONS)}") from None
    raise TypeError(f"Cannot build an activation from {activation!r}")
