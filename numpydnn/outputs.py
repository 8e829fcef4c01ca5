"""
Output (loss) layers.

An output layer turns the last hidden layer's prediction and the target
batch into a scalar loss (mean over the batch) and dL/d(prediction), which
is handed to the last hidden layer as its upstream gradient.
"""

import numpy as np

from .errors import OrderingError, TargetError


class Output:
    """Base class of output layers."""

    output_type = None

    def __init__(self):
        self._din = None
        self._loss = None

    def _as_matrix_target(self, target, prediction_shape):
        """Bring an accepted target encoding to the prediction's 2-D shape."""
        target = np.asarray(target)
        if target.shape != prediction_shape:
            raise TargetError(f"[{type(self).__name__}]: Target data have incorrect dimension, "
                              f"expected {prediction_shape}, got {target.shape}")
        return target.astype(float)

    def check_target_data(self, target, out_size=None):
        """Validate the target encoding; out_size is the last layer's out_size."""
        target = np.asarray(target)
        if target.ndim != 2:
            raise TargetError(f"[{type(self).__name__}]: Target data must be a 2-D array "
                              f"of shape (N, out_size), got shape {target.shape}")
        if out_size is not None and target.shape[1] != out_size:
            raise TargetError(f"[{type(self).__name__}]: Target data have {target.shape[1]} "
                              f"columns but the network produces {out_size}")

    def evaluate(self, prediction, target):
        raise NotImplementedError

    def backprop_data(self):
        if self._din is None:
            raise OrderingError(f"[{type(self).__name__}]: backprop_data() called before evaluate()")
        return self._din

    def loss(self):
        if self._loss is None:
            raise OrderingError(f"[{type(self).__name__}]: loss() called before evaluate()")
        return self._loss

    def __repr__(self):
        return f"{type(self).__name__}()"


class RegressionMSE(Output):
    """
    Squared-error loss.

    loss = sum((p - y)^2) / N
    dL/dp = 2 * (p - y) / N
    """

    output_type = 'RegressionMSE'

    def check_target_data(self, target, out_size=None):
        target = np.asarray(target)
        if target.ndim == 1 and out_size in (None, 1):
            target = target[:, None]
        super().check_target_data(target, out_size)

    def evaluate(self, prediction, target):
        prediction = np.asarray(prediction, dtype=float)
        target = np.asarray(target)
        if target.ndim == 1 and prediction.shape[1] == 1:
            target = target[:, None]
        target = self._as_matrix_target(target, prediction.shape)

        N = prediction.shape[0]
        error = prediction - target
        self._loss = float(np.sum(error ** 2) / N)
        self._din = 2.0 * error / N
        return self._loss


class BinaryClassEntropy(Output):
    """
    Binary cross-entropy on probabilities in (0, 1).

    Targets are 0/1 values of shape (N, out_size), or a vector of N integer
    labels when the network has a single output.
    """

    output_type = 'BinaryClassEntropy'

    def __init__(self, eps=1e-15):
        super().__init__()
        self.eps = eps

    def check_target_data(self, target, out_size=None):
        target = np.asarray(target)
        if target.ndim == 1:
            if out_size is not None and out_size != 1:
                raise TargetError("[BinaryClassEntropy]: Only one response variable is allowed "
                                  "when class labels are used as target data")
        else:
            super().check_target_data(target, out_size)
        if not np.all((target == 0) | (target == 1)):
            raise TargetError("[BinaryClassEntropy]: Target data should only contain zero or one")

    def evaluate(self, prediction, target):
        prediction = np.asarray(prediction, dtype=float)
        target = np.asarray(target)
        if target.ndim == 1:
            if prediction.shape[1] != 1:
                raise TargetError("[BinaryClassEntropy]: Only one response variable is allowed "
                                  "when class labels are used as target data")
            target = target[:, None]
        target = self._as_matrix_target(target, prediction.shape)

        N = prediction.shape[0]
        positive = target >= 0.5

        # Clip inside the log only; the gradient uses the raw prediction
        p = np.clip(prediction, self.eps, 1 - self.eps)
        self._loss = float(-np.sum(np.where(positive, np.log(p), np.log(1 - p))) / N)

        din = np.empty_like(prediction)
        np.divide(-1.0, prediction, out=din, where=positive)
        np.divide(1.0, 1.0 - prediction, out=din, where=~positive)
        self._din = din / N
        return self._loss


class MultiClassEntropy(Output):
    """
    Multi-class cross-entropy on per-sample probability distributions,
    usually produced by a Softmax activation on the last layer.

    Targets are one-hot rows of shape (N, n_classes), or a vector of N
    integer class labels.
    """

    output_type = 'MultiClassEntropy'

    def __init__(self, eps=1e-15):
        super().__init__()
        self.eps = eps

    def check_target_data(self, target, out_size=None):
        target = np.asarray(target)
        if target.ndim == 1:
            if not np.issubdtype(target.dtype, np.integer):
                raise TargetError("[MultiClassEntropy]: Class labels must be integers")
            if np.any(target < 0):
                raise TargetError("[MultiClassEntropy]: Target data must be non-negative")
            if out_size is not None and np.any(target >= out_size):
                raise TargetError(f"[MultiClassEntropy]: Class labels must be below {out_size}")
            return

        super().check_target_data(target, out_size)
        if not np.all((target == 0) | (target == 1)):
            raise TargetError("[MultiClassEntropy]: Target data should only contain zero or one")
        if not np.all(np.sum(target == 1, axis=1) == 1):
            raise TargetError('[MultiClassEntropy]: Each row of target data should only contain one "1"')

    def evaluate(self, prediction, target):
        prediction = np.asarray(prediction, dtype=float)
        target = np.asarray(target)
        N, n_classes = prediction.shape
        if target.ndim == 1:
            if target.shape[0] != N or not np.issubdtype(target.dtype, np.integer):
                raise TargetError("[MultiClassEntropy]: Target data have incorrect dimension")
            if np.any(target < 0) or np.any(target >= n_classes):
                raise TargetError(f"[MultiClassEntropy]: Class labels must lie in [0, {n_classes})")
            target = np.eye(n_classes)[target]
        target = self._as_matrix_target(target, prediction.shape)

        p = np.clip(prediction, self.eps, None)
        self._loss = float(-np.sum(target * np.log(p)) / N)

        # Zero where the target is zero, so an exact 0 in another class stays finite
        din = np.zeros_like(prediction)
        np.divide(-target, prediction, out=din, where=target != 0)
        self._din = din / N
        return self._loss


OUTPUT_TYPES = {cls.output_type: cls for cls in (RegressionMSE, BinaryClassEntropy, MultiClassEntropy)}
