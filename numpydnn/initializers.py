"""
Parameter initializers.
Each draws weight values from a numpy Generator that the caller passes in.
"""

import numpy as np


class Initializer:
    """Base class. Subclasses return an array of the requested shape."""

    name = None

    def initialize(self, shape, rng, fan_in):
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}()"


class HeNormal(Initializer):
    """He initialization, N(0, 2 / fan_in)."""

    name = 'he_normal'

    def initialize(self, shape, rng, fan_in):
        scale = np.sqrt(2.0 / fan_in)
        return rng.standard_normal(shape) * scale


class Normal(Initializer):
    """N(mu, sigma^2) regardless of fan-in."""

    name = 'normal'

    def __init__(self, mu=0.0, sigma=0.1):
        self.mu = mu
        self.sigma = sigma

    def initialize(self, shape, rng, fan_in):
        return rng.normal(self.mu, self.sigma, size=shape)

    def __repr__(self):
        return f"Normal(mu={self.mu}, sigma={self.sigma})"


class Uniform(Initializer):
    """U(a, b); the bounds may be given in either order."""

    name = 'uniform'

    def __init__(self, a=0.0, b=1.0):
        self.a = min(a, b)
        self.b = max(a, b)

    def initialize(self, shape, rng, fan_in):
        return rng.uniform(self.a, self.b, size=shape)

    def __repr__(self):
        return f"Uniform(a={self.a}, b={self.b})"


INITIALIZERS = {cls.name: cls for cls in (HeNormal, Normal, Uniform)}


def get_initializer(initializer):
    if initializer is None:
        return HeNormal()
    if isinstance(initializer, Initializer):
        return initializer
    if isinstance(initializer, str):
        try:
            return INITIALIZERS[initializer.lower()]()
        except KeyError:
            raise ValueError(f"Unknown initializer '{initializer}'. "
                             f"Available: {sorted(INITIALIZERS)}") from None
    raise TypeError(f"Cannot build an initializer from {initializer!r}")
