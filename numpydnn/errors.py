"""
Exception types raised by the network core.
"""


class NetworkError(Exception):
    """Base class for every error raised by numpydnn."""


class ShapeError(NetworkError, ValueError):
    """Sizes of layers, parameter vectors or optimizer state disagree."""


class ConfigurationError(NetworkError, ValueError):
    """The network was assembled or driven in an invalid order."""


class TargetError(NetworkError, ValueError):
    """Target data do not match what the output layer expects."""


class OrderingError(NetworkError, RuntimeError):
    """A cached forward/backward result was requested out of sequence."""
