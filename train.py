#!/usr/bin/env python3
"""
Training Driver
===============
Trains a small network on one of the bundled synthetic datasets.

Datasets:
    parity  - n-bit parity (XOR for 2 bits):
              Dense(n->16) -> ReLU -> Dense(16->1) -> Sigmoid, binary cross-entropy
    lines   - 8x8 line-pattern images, 3 classes:
              Conv2D(1->4, 3x3) -> ReLU -> MaxPool(2x2) -> Dense(36->3) -> Softmax,
              multi-class cross-entropy

Usage:
    python train.py --dataset lines --epochs 30 --optimizer adam --lr 0.01
"""

import argparse
import os

import numpy as np

from numpydnn import (
    Adam, AdaGrad, BinaryClassEntropy, Conv2D, Dense, MaxPool2D, MetricsCallback,
    MultiClassEntropy, Network, RMSProp, SGD, VerboseCallback, compute_accuracy,
    make_line_images, make_parity,
)

OPTIMIZERS = {
    'sgd': SGD,
    'adagrad': AdaGrad,
    'rmsprop': RMSProp,
    'adam': Adam,
}


def build_parity_network(n_bits):
    net = Network()
    net.add_layer(Dense(n_bits, 16, activation='relu'))
    net.add_layer(Dense(16, 1, activation='sigmoid'))
    net.set_output(BinaryClassEntropy())
    return net


def build_lines_network(size):
    conv = Conv2D((1, size, size), out_channels=4, kernel_size=3, activation='relu')
    pool = MaxPool2D((4, conv.out_h, conv.out_w), pool_size=2)

    net = Network()
    net.add_layer(conv)
    net.add_layer(pool)
    net.add_layer(Dense(pool.out_size, 3, activation='softmax'))
    net.set_output(MultiClassEntropy())
    return net


def load_dataset(args, rng):
    if args.dataset == 'parity':
        X, y = make_parity(args.bits)
        return X, y, build_parity_network(args.bits)

    X, y = make_line_images(samples_per_class=args.samples, size=8, rng=rng)
    return X, y, build_lines_network(8)


def main():
    parser = argparse.ArgumentParser(description='Train a numpydnn network on synthetic data')
    parser.add_argument('--dataset', choices=['parity', 'lines'], default='parity',
                        help='Synthetic dataset to train on')
    parser.add_argument('--bits', type=int, default=2, help='Input bits for the parity dataset')
    parser.add_argument('--samples', type=int, default=60,
                        help='Samples per class for the lines dataset')
    parser.add_argument('--epochs', type=int, default=200, help='Number of epochs')
    parser.add_argument('--batch-size', type=int, default=16, help='Batch size')
    parser.add_argument('--optimizer', choices=sorted(OPTIMIZERS), default='rmsprop',
                        help='Parameter update rule')
    parser.add_argument('--lr', type=float, default=0.01, help='Learning rate')
    parser.add_argument('--seed', type=int, default=42, help='Random seed')
    parser.add_argument('--verbose-batches', type=int, default=0,
                        help='Print the loss every N mini-batches (0 disables)')
    parser.add_argument('--save-metrics', type=str, default=None,
                        help='Path to save per-epoch metrics (.npz)')
    parser.add_argument('--save-model', type=str, default=None,
                        help='Path to export the trained network (.npz)')
    args = parser.parse_args()

    data_rng = np.random.default_rng(args.seed)
    X, y, net = load_dataset(args, data_rng)

    print("\n" + "="*60)
    print(f"NUMPYDNN TRAINING - {args.dataset.upper()}")
    print("="*60)
    print(f"Training samples: {X.shape[0]}")
    print(f"Batch size: {args.batch_size}")
    print(f"Epochs: {args.epochs}")
    print(f"Optimizer: {args.optimizer} (lr={args.lr})")
    print("="*60)
    print(net.summary())

    net.init(seed=args.seed)
    optimizer = OPTIMIZERS[args.optimizer](lrate=args.lr)

    if args.verbose_batches > 0:
        callback = VerboseCallback(every=args.verbose_batches)
        history = net.fit(optimizer, X, y, args.batch_size, args.epochs, callback=callback)
        metrics = None
        print(f"\nFinal epoch loss: {history[-1]:.6f}")
    else:
        callback = MetricsCallback(verbose=True)
        net.fit(optimizer, X, y, args.batch_size, args.epochs, callback=callback)
        metrics = callback.metrics

    accuracy = compute_accuracy(net.predict(X), y)
    if metrics is not None:
        metrics.train_accuracies.append(float(accuracy))
        metrics.print_summary()
    else:
        print(f"Train Accuracy: {accuracy*100:.2f}%")

    if args.save_metrics and metrics is not None:
        os.makedirs(os.path.dirname(args.save_metrics) or '.', exist_ok=True)
        metrics.save(args.save_metrics)
        print(f"\nMetrics saved to {args.save_metrics}")

    if args.save_model:
        os.makedirs(os.path.dirname(args.save_model) or '.', exist_ok=True)
        path = net.export_net(args.save_model)
        print(f"Model saved to {path}")


if __name__ == '__main__':
    main()
