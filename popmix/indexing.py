"""
Flattened gene-copy index for a ragged genotype tensor.

A gene copy is one allele observation at (individual, locus, ploidy slot).
Individuals may differ in ploidy, so the tensor is padded to the maximum
ploidy and only the first ``ploidy[i]`` slots of individual ``i`` are real
gene copies.

Gene copies are numbered 0..(n_genes-1) in the order individual -> locus ->
slot, which is also the order the Gibbs sampler visits them in. The index
stores the per-copy coordinates as flat arrays so the sampler never has to
keep a running cursor in step with nested loops.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Sequence, Tuple

import numpy as np


@dataclass(frozen=True)
class GeneCopyIndex:
    ind: np.ndarray      # shape (n_genes,); individual of each gene copy
    locus: np.ndarray    # shape (n_genes,); locus of each gene copy
    slot: np.ndarray     # shape (n_genes,); ploidy slot of each gene copy
    offsets: np.ndarray  # shape (n_ind + 1,); first gene copy of each individual
    n_loci: int

    @classmethod
    def from_ploidy(cls, ploidy: Sequence[int], n_loci: int) -> "GeneCopyIndex":
        """Build the index for individuals with the given ploidy over ``n_loci`` loci."""
        ploidy = np.asarray(ploidy, dtype=int)
        if ploidy.ndim != 1:
            raise ValueError("ploidy must be a 1D sequence")
        if np.any(ploidy < 1):
            raise ValueError("ploidy must be >= 1 for every individual")
        if n_loci < 1:
            raise ValueError("n_loci must be >= 1")

        per_ind = ploidy * n_loci
        offsets = np.concatenate([[0], np.cumsum(per_ind)]).astype(int)

        ind = np.repeat(np.arange(ploidy.size), per_ind)
        locus = np.concatenate(
            [np.repeat(np.arange(n_loci), p) for p in ploidy]
        ).astype(int)
        slot = np.concatenate(
            [np.tile(np.arange(p), n_loci) for p in ploidy]
        ).astype(int)
        return cls(ind=ind, locus=locus, slot=slot, offsets=offsets, n_loci=int(n_loci))

    @property
    def n_genes(self) -> int:
        return int(self.ind.size)

    @property
    def n_ind(self) -> int:
        return int(self.offsets.size - 1)

    def ploidy(self, i: int) -> int:
        return int((self.offsets[i + 1] - self.offsets[i]) // self.n_loci)

    def linear(self, i: int, l: int, p: int) -> int:
        """Map (individual, locus, slot) to the linear gene-copy index."""
        ploidy = self.ploidy(i)
        if not (0 <= l < self.n_loci) or not (0 <= p < ploidy):
            raise IndexError(f"no gene copy at (ind={i}, locus={l}, slot={p})")
        return int(self.offsets[i] + l * ploidy + p)

    def position(self, g: int) -> Tuple[int, int, int]:
        """Map a linear gene-copy index back to (individual, locus, slot)."""
        return int(self.ind[g]), int(self.locus[g]), int(self.slot[g])

    def individual_slice(self, i: int) -> slice:
        """Slice of linear indices holding all gene copies of individual ``i``."""
        return slice(int(self.offsets[i]), int(self.offsets[i + 1]))

    def __iter__(self) -> Iterator[Tuple[int, int, int, int]]:
        # (g, ind, locus, slot) in visiting order
        for g in range(self.n_genes):
            yield g, int(self.ind[g]), int(self.locus[g]), int(self.slot[g])
