"""
Mini-batch iteration and small synthetic datasets.
"""

import numpy as np


def one_hot_encode(y, num_classes=10):
    """One-hot encode labels."""
    return np.eye(num_classes)[y]


class DataLoader:
    """
    Mini-batch data loader with shuffling.

    The shuffle order is drawn from `rng` (a numpy Generator) so that a
    seeded run always produces the same batches. The last batch holds the
    remainder and may be smaller than batch_size.
    """

    def __init__(self, X, y, batch_size=32, shuffle=True, rng=None):
        X = np.asarray(X)
        y = np.asarray(y)
        if X.shape[0] != y.shape[0]:
            raise ValueError(f"Input X and y have different number of observations: "
                             f"{X.shape[0]} vs {y.shape[0]}")
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")

        self.X = X
        self.y = y
        self.n_samples = X.shape[0]
        self.batch_size = min(batch_size, max(self.n_samples, 1))
        self.shuffle = shuffle
        self.rng = rng if rng is not None else np.random.default_rng()
        self.n_batches = (self.n_samples + self.batch_size - 1) // self.batch_size

    def __iter__(self):
        indices = np.arange(self.n_samples)
        if self.shuffle:
            indices = self.rng.permutation(self.n_samples)

        for i in range(0, self.n_samples, self.batch_size):
            batch_idx = indices[i:i + self.batch_size]
            yield self.X[batch_idx], self.y[batch_idx]

    def __len__(self):
        return self.n_batches


def make_parity(n_bits=2):
    """
    All 2**n_bits bit patterns with their odd-parity label (XOR for n_bits=2).

    Returns X (2**n_bits, n_bits) and y (2**n_bits, 1), both float.
    """
    combos = np.array([list(map(int, format(i, f'0{n_bits}b'))) for i in range(2 ** n_bits)],
                      dtype=float)
    y = (np.sum(combos, axis=1) % 2).reshape(-1, 1)
    return combos, y


LINE_CLASSES = ['horizontal', 'vertical', 'diagonal']


def make_line_images(samples_per_class=50, size=8, noise=0.05, rng=None):
    """
    Binary size x size images with line patterns, one class per pattern.

    Returns:
        X: (samples_per_class * 3, size * size) flattened single-channel images
        y: (samples_per_class * 3,) integer labels indexing LINE_CLASSES
    """
    rng = rng if rng is not None else np.random.default_rng()
    n = samples_per_class
    images = np.zeros((3 * n, size, size))

    rows = rng.integers(0, size, size=n)
    images[np.arange(n), rows, :] = 1.0

    cols = rng.integers(0, size, size=n)
    images[n + np.arange(n), :, cols] = 1.0

    offsets = rng.integers(-1, 2, size=n)
    diag_r = np.arange(size)
    for i, offset in enumerate(offsets):
        diag_c = diag_r + offset
        keep = (diag_c >= 0) & (diag_c < size)
        images[2 * n + i, diag_r[keep], diag_c[keep]] = 1.0

    # Flip a few pixels so the patterns are not trivially separable
    flips = rng.random(images.shape) < noise
    images = np.where(flips, 1.0 - images, images)

    y = np.repeat(np.arange(3), n)
    return images.reshape(3 * n, -1), y
