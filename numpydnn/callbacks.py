"""
Training callbacks.

Network.fit() calls the hooks below around every mini-batch and epoch.
Callbacks only observe: the batches they receive are read-only views and
the network is meant to be read through its public accessors.
"""

from .metrics import Timer, TrainingMetrics


class Callback:
    """Silent default callback. Subclass and override the hooks you need."""

    def __init__(self):
        self.nbatch = 0     # Number of mini-batches per epoch
        self.batch_id = 0   # Index of the current mini-batch
        self.nepoch = 0     # Total number of epochs
        self.epoch_id = 0   # Index of the current epoch

    def pre_training_epoch(self, net):
        pass

    def pre_training_batch(self, net, x, y):
        pass

    def post_training_batch(self, net, x, y):
        pass

    def post_training_epoch(self, net, epoch_loss):
        pass


class VerboseCallback(Callback):
    """Print the loss after every `every` mini-batches."""

    def __init__(self, every=1):
        super().__init__()
        self.every = every

    def post_training_batch(self, net, x, y):
        if (self.batch_id + 1) % self.every == 0:
            print(f"[Epoch {self.epoch_id}, batch {self.batch_id}] Loss = {net.output.loss():.6f}")


class MetricsCallback(Callback):
    """Collect per-epoch loss and wall time into a TrainingMetrics record."""

    def __init__(self, metrics=None, verbose=False):
        super().__init__()
        self.metrics = metrics if metrics is not None else TrainingMetrics()
        self.verbose = verbose
        self._timer = Timer()

    def pre_training_epoch(self, net):
        self._timer.start()

    def post_training_epoch(self, net, epoch_loss):
        epoch_time = self._timer.stop()
        self.metrics.add_epoch(epoch_loss, epoch_time)
        if self.verbose:
            print(f"Epoch {self.epoch_id + 1}/{self.nepoch} - "
                  f"Loss: {epoch_loss:.6f}, Time: {epoch_time:.3f}s")
