"""
Optimizers for Neural Network Training

Every optimizer updates one parameter group at a time, in place:
    optimizer.update(parameters, derivatives)
Per-group state (velocities, accumulated squared gradients, moments) is
keyed by the identity of the parameter array and sized on first use.
"""

import numpy as np

from .errors import ShapeError


class Optimizer:
    """Base class with lazily allocated per-group state."""

    def __init__(self):
        self._state = {}

    def reset(self):
        """Drop all per-group state."""
        self._state = {}

    def _slots(self, parameters, *names):
        """Return the state arrays of a parameter group, allocating them on first use."""
        key = id(parameters)
        slots = self._state.get(key)
        if slots is None:
            slots = {name: np.zeros(parameters.size) for name in names}
            slots['t'] = 0
            self._state[key] = slots
            return slots
        for name in names:
            if slots[name].size != parameters.size:
                raise ShapeError(f"[{type(self).__name__}]: Parameter group has "
                                 f"{parameters.size} values but its state has {slots[name].size}")
        return slots

    def _check(self, parameters, derivatives):
        if not isinstance(parameters, np.ndarray):
            raise TypeError(f"[{type(self).__name__}]: parameters must be a numpy array "
                            f"so they can be updated in place")
        derivatives = np.asarray(derivatives, dtype=float)
        if derivatives.size != parameters.size:
            raise ShapeError(f"[{type(self).__name__}]: {parameters.size} parameters but "
                             f"{derivatives.size} derivatives")
        return derivatives.reshape(parameters.shape)

    def update(self, parameters, derivatives):
        raise NotImplementedError

    def get_state(self, parameters):
        """Copy of the state registered for a parameter group, or None."""
        slots = self._state.get(id(parameters))
        if slots is None:
            return None
        return {k: (v.copy() if isinstance(v, np.ndarray) else v) for k, v in slots.items()}


class SGD(Optimizer):
    """
    Stochastic Gradient Descent with L2 decay and optional momentum.

        parameters -= lrate * (derivatives + decay * parameters)

    With momentum > 0 the step above feeds a velocity instead.
    """

    def __init__(self, lrate=0.001, decay=0.0, momentum=0.0):
        super().__init__()
        self.lrate = lrate
        self.decay = decay
        self.momentum = momentum

    def update(self, parameters, derivatives):
        derivatives = self._check(parameters, derivatives)
        step = self.lrate * (derivatives + self.decay * parameters)

        if self.momentum == 0.0:
            parameters -= step
            return

        velocity = self._slots(parameters, 'velocity')['velocity'].reshape(parameters.shape)
        velocity *= self.momentum
        velocity -= step
        parameters += velocity


class AdaGrad(Optimizer):
    """
    AdaGrad: per-element learning rates from the accumulated squared gradient.

        accumulator += derivatives^2
        parameters -= lrate * derivatives / (sqrt(accumulator) + eps)
    """

    def __init__(self, lrate=0.001, eps=1e-6):
        super().__init__()
        self.lrate = lrate
        self.eps = eps

    def update(self, parameters, derivatives):
        derivatives = self._check(parameters, derivatives)
        accumulator = self._slots(parameters, 'accumulator')['accumulator'].reshape(parameters.shape)

        accumulator += derivatives ** 2
        parameters -= self.lrate * derivatives / (np.sqrt(accumulator) + self.eps)


class RMSProp(Optimizer):
    """
    RMSProp: exponentially decayed squared-gradient accumulator.

        accumulator = decay * accumulator + (1 - decay) * derivatives^2
        parameters -= lrate * derivatives / (sqrt(accumulator) + eps)
    """

    def __init__(self, lrate=0.001, decay=0.9, eps=1e-6):
        super().__init__()
        self.lrate = lrate
        self.decay = decay
        self.eps = eps

    def update(self, parameters, derivatives):
        derivatives = self._check(parameters, derivatives)
        accumulator = self._slots(parameters, 'accumulator')['accumulator'].reshape(parameters.shape)

        accumulator *= self.decay
        accumulator += (1 - self.decay) * derivatives ** 2
        parameters -= self.lrate * derivatives / (np.sqrt(accumulator) + self.eps)


class Adam(Optimizer):
    """
    Adam optimizer with adaptive learning rates.
    Bias correction counts steps per parameter group.
    """

    def __init__(self, lrate=0.001, beta1=0.9, beta2=0.999, eps=1e-8):
        super().__init__()
        self.lrate = lrate
        self.beta1 = beta1
        self.beta2 = beta2
        self.eps = eps

    def update(self, parameters, derivatives):
        derivatives = self._check(parameters, derivatives)
        slots = self._slots(parameters, 'm', 'v')
        m = slots['m'].reshape(parameters.shape)
        v = slots['v'].reshape(parameters.shape)
        slots['t'] += 1
        t = slots['t']

        # Update biased first and second moment estimates
        m *= self.beta1
        m += (1 - self.beta1) * derivatives
        v *= self.beta2
        v += (1 - self.beta2) * derivatives ** 2

        # Bias-corrected estimates
        m_hat = m / (1 - self.beta1 ** t)
        v_hat = v / (1 - self.beta2 ** t)

        parameters -= self.lrate * m_hat / (np.sqrt(v_hat) + self.eps)
