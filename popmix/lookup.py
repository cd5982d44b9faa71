"""
Precomputed table of log(i + j*lambda).

The Gibbs step needs log(count + lambda) and log(total + J*lambda) for every
gene copy and deme, where counts are small non-negative integers and J is a
locus cardinality. Both are read off the table with j=1 and j=J respectively.
"""

from __future__ import annotations

import numpy as np

TABLE_SIZE = 1000


class LogLookup:
    def __init__(self, lam: float, J_max: int, size: int = TABLE_SIZE):
        if lam <= 0:
            raise ValueError("lambda must be > 0")
        self.lam = float(lam)
        self.size = int(size)
        i = np.arange(self.size, dtype=float)[:, None]
        j = np.arange(int(J_max) + 1, dtype=float)[None, :]
        with np.errstate(divide="ignore"):
            # entry (0, 0) is log(0) = -inf and is never read
            self.table = np.log(i + j * self.lam)

    def __call__(self, counts: np.ndarray, j) -> np.ndarray:
        """log(counts + j*lambda), elementwise; falls back to np.log past the table."""
        counts = np.asarray(counts)
        if counts.size and counts.max() < self.size:
            return self.table[counts, j]
        return np.log(counts + np.asarray(j) * self.lam)
