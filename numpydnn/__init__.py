"""numpydnn: a small feed-forward/convolutional network training core in NumPy."""

from .activations import Identity, ReLU, Sigmoid, Tanh, Mish, Softmax, get_activation
from .initializers import HeNormal, Normal, Uniform, get_initializer
from .layers import Layer, Dense, Conv2D, MaxPool2D
from .outputs import RegressionMSE, BinaryClassEntropy, MultiClassEntropy
from .optimizers import SGD, AdaGrad, RMSProp, Adam
from .callbacks import Callback, VerboseCallback, MetricsCallback
from .network import Network
from .data_loader import DataLoader, one_hot_encode, make_parity, make_line_images
from .metrics import Timer, TrainingMetrics, compute_accuracy
from .errors import NetworkError, ShapeError, ConfigurationError, TargetError, OrderingError

__version__ = "0.1.0"
