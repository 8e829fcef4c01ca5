"""
Neural network model: an ordered stack of layers plus one output layer.

    net = Network()
    net.add_layer(Dense(2, 10, activation='relu'))
    net.add_layer(Dense(10, 1, activation='sigmoid'))
    net.set_output(BinaryClassEntropy())
    net.init(seed=123)
    net.fit(RMSProp(lrate=0.1), X, y, batch_size=4, epoch_count=100)
"""

import json

import numpy as np

from .callbacks import Callback
from .data_loader import DataLoader
from .errors import ConfigurationError, ShapeError
from .layers import Layer, layer_from_config
from .outputs import OUTPUT_TYPES, Output


def _read_only(array):
    view = array.view()
    view.setflags(write=False)
    return view


class Network:
    """
    Feed-forward network trained with mini-batch back-propagation.

    Layers are appended with add_layer() until init() is called; the
    network owns them afterwards. Exactly one output layer is allowed.
    """

    def __init__(self, callback=None):
        self._layers = []
        self._output = None
        self._callback = callback if callback is not None else Callback()
        self._rng = None
        self._initialized = False

    @property
    def layers(self):
        return tuple(self._layers)

    @property
    def num_layers(self):
        return len(self._layers)

    @property
    def output(self):
        return self._output

    @property
    def callback(self):
        return self._callback

    @property
    def initialized(self):
        return self._initialized

    def add_layer(self, layer):
        if self._initialized:
            raise ConfigurationError("[Network]: Cannot add layers after init()")
        if not isinstance(layer, Layer):
            raise TypeError(f"[Network]: Expected a Layer, got {type(layer).__name__}")
        if self._layers and self._layers[-1].out_size != layer.in_size:
            raise ShapeError(f"[Network]: Unit sizes do not match, previous layer has "
                             f"out_size={self._layers[-1].out_size}, new layer has "
                             f"in_size={layer.in_size}")
        self._layers.append(layer)

    def set_output(self, output):
        if self._output is not None:
            raise ConfigurationError("[Network]: Output layer has already been set")
        if not isinstance(output, Output):
            raise TypeError(f"[Network]: Expected an Output, got {type(output).__name__}")
        self._output = output

    def set_callback(self, callback):
        self._callback = callback

    def check_unit_sizes(self):
        for prev, layer in zip(self._layers, self._layers[1:]):
            if prev.out_size != layer.in_size:
                raise ShapeError(f"[Network]: Unit sizes do not match between "
                                 f"{prev!r} and {layer!r}")

    def _check_layers(self):
        if not self._layers:
            raise ConfigurationError("[Network]: The network has no layers")

    def _check_output(self):
        if self._output is None:
            raise ConfigurationError("[Network]: Call set_output() before training")

    def init(self, seed=None):
        """
        Initialize layer parameters in sequence order from a generator seeded
        with `seed`. The same generator later shuffles mini-batches in fit().
        """
        self._check_layers()
        self.check_unit_sizes()

        rng = np.random.default_rng(seed)
        for layer in self._layers:
            layer.init(rng)

        self._rng = rng
        self._initialized = True

    def forward(self, X):
        """Run X through every layer, caching intermediate results. Returns the last output."""
        self._check_layers()
        X = np.asarray(X, dtype=float)
        if X.ndim != 2 or X.shape[1] != self._layers[0].in_size:
            raise ShapeError(f"[Network]: Input data have incorrect dimension, expected "
                             f"(N, {self._layers[0].in_size}), got {X.shape}")

        self._layers[0].forward(X)
        for prev, layer in zip(self._layers, self._layers[1:]):
            layer.forward(prev.output())
        return self._layers[-1].output()

    def backward(self, X, y):
        """
        Forward X, evaluate the output layer against y, and back-propagate
        through the layers in reverse order. Returns the batch loss.
        """
        self._check_layers()
        self._check_output()
        X = np.asarray(X, dtype=float)
        self.forward(X)

        last = self._layers[-1]
        self._output.check_target_data(y, last.out_size)
        self._output.evaluate(last.output(), y)

        upstream = self._output.backprop_data()
        for i in range(len(self._layers) - 1, -1, -1):
            layer_input = X if i == 0 else self._layers[i - 1].output()
            self._layers[i].backprop(layer_input, upstream)
            upstream = self._layers[i].backprop_data()

        return self._output.loss()

    def update(self, optimizer):
        for layer in self._layers:
            layer.update(optimizer)

    def fit(self, optimizer, data, targets, batch_size, epoch_count, callback=None, shuffle=True):
        """
        Train with mini-batch gradient descent.

        Args:
            optimizer: Optimizer applied after every mini-batch (reset first)
            data: (N, in_size) predictors
            targets: targets in any encoding the output layer accepts
            batch_size: mini-batch size; the last batch may be smaller
            epoch_count: number of passes over the data
            callback: overrides the network callback for this call
            shuffle: reshuffle the observations every epoch

        Returns:
            List with the mean per-sample loss of every epoch
        """
        self._check_layers()
        self._check_output()
        if not self._initialized:
            raise ConfigurationError("[Network]: Call init() before fit()")

        X = np.asarray(data, dtype=float)
        y = np.asarray(targets)
        if X.shape[0] == 0:
            raise ShapeError("[Network]: No observations to fit")
        if X.shape[0] != y.shape[0]:
            raise ShapeError(f"[Network]: Input X and y have different number of "
                             f"observations: {X.shape[0]} vs {y.shape[0]}")
        self._output.check_target_data(y, self._layers[-1].out_size)

        optimizer.reset()
        callback = callback if callback is not None else self._callback
        loader = DataLoader(X, y, batch_size=batch_size, shuffle=shuffle, rng=self._rng)

        callback.nbatch = len(loader)
        callback.nepoch = epoch_count

        history = []
        for epoch in range(epoch_count):
            callback.epoch_id = epoch
            callback.pre_training_epoch(self)

            total_loss = 0.0
            total_samples = 0
            for batch_id, (X_batch, y_batch) in enumerate(loader):
                callback.batch_id = batch_id
                x_view, y_view = _read_only(X_batch), _read_only(y_batch)

                callback.pre_training_batch(self, x_view, y_view)
                loss = self.backward(X_batch, y_batch)
                self.update(optimizer)
                callback.post_training_batch(self, x_view, y_view)

                total_loss += loss * X_batch.shape[0]
                total_samples += X_batch.shape[0]

            epoch_loss = total_loss / total_samples
            history.append(epoch_loss)
            callback.post_training_epoch(self, epoch_loss)

        return history

    def predict(self, X):
        """Forward pass that does not touch any layer cache."""
        self._check_layers()
        out = np.asarray(X, dtype=float)
        if out.ndim != 2 or out.shape[1] != self._layers[0].in_size:
            raise ShapeError(f"[Network]: Input data have incorrect dimension, expected "
                             f"(N, {self._layers[0].in_size}), got {out.shape}")
        for layer in self._layers:
            out = layer.predict(out)
        return out

    def get_parameters(self):
        """One flat parameter vector per layer, in layer order."""
        return [layer.get_parameters() for layer in self._layers]

    def set_parameters(self, parameters):
        if len(parameters) != len(self._layers):
            raise ShapeError(f"[Network]: Got {len(parameters)} parameter vectors "
                             f"for {len(self._layers)} layers")
        for layer, params in zip(self._layers, parameters):
            layer.set_parameters(params)

    def get_derivatives(self):
        return [layer.get_derivatives() for layer in self._layers]

    def export_net(self, filepath):
        """
        Save structure and parameters to a single .npz archive.
        Returns the path numpy actually wrote (".npz" is appended if missing).
        """
        self._check_layers()
        meta = {
            'layers': [{'type': layer.layer_type, 'config': layer.config()}
                       for layer in self._layers],
            'output': self._output.output_type if self._output is not None else None,
        }
        arrays = {f'layer{i}': params for i, params in enumerate(self.get_parameters())}
        np.savez(filepath, meta=np.array(json.dumps(meta)), **arrays)
        return filepath if str(filepath).endswith('.npz') else f"{filepath}.npz"

    @classmethod
    def read_net(cls, filepath, seed=None):
        """Rebuild a network written by export_net(). `seed` seeds the shuffling RNG."""
        with np.load(filepath) as data:
            meta = json.loads(str(data['meta']))
            parameters = [data[f'layer{i}'] for i in range(len(meta['layers']))]

        net = cls()
        for entry in meta['layers']:
            net.add_layer(layer_from_config(entry['type'], entry['config']))
        net.set_parameters(parameters)
        if meta['output'] is not None:
            try:
                net.set_output(OUTPUT_TYPES[meta['output']]())
            except KeyError:
                raise ConfigurationError(f"Unknown output type '{meta['output']}'") from None

        net._rng = np.random.default_rng(seed)
        net._initialized = True
        return net

    def summary(self):
        lines = [f"{'#':>3}  {'Layer':<10} {'Activation':<10} {'In':>7} {'Out':>7} {'Params':>8}"]
        for i, layer in enumerate(self._layers):
            lines.append(f"{i:>3}  {layer.layer_type:<10} {layer.activation.name:<10} "
                         f"{layer.in_size:>7} {layer.out_size:>7} {layer.parameter_count:>8}")
        output = self._output.output_type if self._output is not None else 'None'
        lines.append(f"Output: {output}")
        return "\n".join(lines)
