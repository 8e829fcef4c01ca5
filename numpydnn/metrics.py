"""
Metrics and Timing Utilities
"""

import time
import numpy as np


class Timer:
    """Simple timer for measuring execution time."""

    def __init__(self):
        self.start_time = None
        self.elapsed = 0

    def start(self):
        self.start_time = time.perf_counter()

    def stop(self):
        if self.start_time is not None:
            self.elapsed = time.perf_counter() - self.start_time
            self.start_time = None
        return self.elapsed

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *args):
        self.stop()


class TrainingMetrics:
    """Track training metrics over epochs."""

    def __init__(self):
        self.train_losses = []
        self.train_accuracies = []
        self.epoch_times = []
        self.total_time = 0

    def add_epoch(self, train_loss, epoch_time, train_acc=None):
        self.train_losses.append(float(train_loss))
        if train_acc is not None:
            self.train_accuracies.append(float(train_acc))
        self.epoch_times.append(float(epoch_time))
        self.total_time += epoch_time

    def get_summary(self):
        return {
            'final_train_loss': self.train_losses[-1] if self.train_losses else None,
            'best_train_loss': min(self.train_losses) if self.train_losses else None,
            'final_train_acc': self.train_accuracies[-1] if self.train_accuracies else None,
            'total_time': self.total_time,
            'avg_epoch_time': np.mean(self.epoch_times) if self.epoch_times else None,
            'num_epochs': len(self.train_losses)
        }

    def print_summary(self):
        summary = self.get_summary()
        print("\n" + "="*50)
        print("TRAINING SUMMARY")
        print("="*50)
        print(f"Total Epochs: {summary['num_epochs']}")
        if summary['num_epochs']:
            print(f"Total Training Time: {summary['total_time']:.2f}s")
            print(f"Average Epoch Time: {summary['avg_epoch_time']:.4f}s")
            print(f"Final Train Loss: {summary['final_train_loss']:.6f}")
            print(f"Best Train Loss: {summary['best_train_loss']:.6f}")
        if summary['final_train_acc'] is not None:
            print(f"Final Train Accuracy: {summary['final_train_acc']*100:.2f}%")
        print("="*50)

    def save(self, filepath):
        """Save metrics to numpy file."""
        np.savez(filepath,
                 train_losses=self.train_losses,
                 train_accuracies=self.train_accuracies,
                 epoch_times=self.epoch_times,
                 total_time=self.total_time)

    @classmethod
    def load(cls, filepath):
        """Load metrics from numpy file."""
        data = np.load(filepath)
        metrics = cls()
        metrics.train_losses = data['train_losses'].tolist()
        metrics.train_accuracies = data['train_accuracies'].tolist()
        metrics.epoch_times = data['epoch_times'].tolist()
        metrics.total_time = float(data['total_time'])
        return metrics


def compute_accuracy(y_pred, y_true):
    """
    Compute classification accuracy.

    y_pred: (N, num_classes) predicted probabilities, or (N, 1) for a
            single sigmoid output thresholded at 0.5
    y_true: (N,) labels, (N, num_classes) one-hot, or (N, 1) 0/1 values
    """
    y_pred = np.asarray(y_pred)
    y_true = np.asarray(y_true)

    if y_pred.ndim == 2 and y_pred.shape[1] == 1:
        pred_labels = (y_pred[:, 0] >= 0.5).astype(int)
        return np.mean(pred_labels == y_true.reshape(-1))

    if len(y_true.shape) > 1:
        y_true = np.argmax(y_true, axis=1)

    pred_labels = np.argmax(y_pred, axis=1)
    return np.mean(pred_labels == y_true)
