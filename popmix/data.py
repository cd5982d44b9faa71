"""
Validated genotype input for the admixture sampler.

The genotype tensor has shape (n_ind, n_loci, max_ploidy) and integer entries:
0 marks missing data, 1..J[l] the allele observed at locus l. Slots beyond an
individual's ploidy must be 0 and are not gene copies.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from popmix.indexing import GeneCopyIndex


@dataclass
class GenotypeData:
    genotypes: np.ndarray            # (n_ind, n_loci, max_ploidy), 0 = missing
    ploidy: np.ndarray               # (n_ind,)
    J: np.ndarray                    # (n_loci,) number of alleles per locus
    pop_index: Optional[np.ndarray] = None   # (n_ind,) population of each individual
    pop_labels: Optional[np.ndarray] = None  # unique labels, order of first appearance
    pop_counts: Optional[np.ndarray] = None  # individuals per population
    index: GeneCopyIndex = field(init=False, repr=False)
    alleles: np.ndarray = field(init=False, repr=False)  # (n_genes,) allele per gene copy

    def __post_init__(self):
        self.index = GeneCopyIndex.from_ploidy(self.ploidy, self.n_loci)
        self.alleles = self.genotypes[self.index.ind, self.index.locus, self.index.slot].astype(int)

    @classmethod
    def from_arrays(
        cls,
        genotypes,
        ploidy: Sequence[int] | None = None,
        J: Sequence[int] | None = None,
        populations: Sequence | None = None,
    ) -> "GenotypeData":
        """
        Build a GenotypeData from array-likes, checking that everything agrees.

        Parameters
        ----------
        genotypes : array-like (n_ind, n_loci, max_ploidy)
            Allele codes, 0 for missing.
        ploidy : per-individual ploidy (default: max_ploidy for everyone).
        J : per-locus allele counts (default: largest code seen at each locus).
        populations : optional per-individual population labels.
        """
        G = np.asarray(genotypes)
        if G.ndim != 3:
            raise ValueError("genotypes must have shape (n_ind, n_loci, max_ploidy)")
        if not np.issubdtype(G.dtype, np.integer):
            if not np.all(np.mod(G, 1) == 0):
                raise ValueError("genotypes must hold integer allele codes")
        G = G.astype(int)
        n_ind, n_loci, max_ploidy = G.shape
        if n_ind < 1 or n_loci < 1 or max_ploidy < 1:
            raise ValueError("genotypes must have at least one individual, locus and slot")
        if np.any(G < 0):
            raise ValueError("allele codes must be >= 0 (0 = missing)")

        if ploidy is None:
            ploidy = np.full(n_ind, max_ploidy, dtype=int)
        ploidy = np.asarray(ploidy, dtype=int)
        if ploidy.shape != (n_ind,):
            raise ValueError("ploidy must have length n_ind")
        if np.any(ploidy < 1) or np.any(ploidy > max_ploidy):
            raise ValueError("ploidy must lie in 1..max_ploidy")
        for i in range(n_ind):
            if np.any(G[i, :, ploidy[i]:] != 0):
                raise ValueError(f"individual {i} has data beyond its ploidy ({ploidy[i]})")

        if J is None:
            J = np.maximum(G.max(axis=(0, 2)), 1)
        J = np.asarray(J, dtype=int)
        if J.shape != (n_loci,):
            raise ValueError("J must have length n_loci")
        if np.any(J < 1):
            raise ValueError("every locus needs at least one allele")
        if np.any(G > J[None, :, None]):
            bad = int(np.flatnonzero((G > J[None, :, None]).any(axis=(0, 2)))[0])
            raise ValueError(f"allele code exceeds J at locus {bad}")

        pop_index = pop_labels = pop_counts = None
        if populations is not None:
            populations = np.asarray(populations)
            if populations.shape != (n_ind,):
                raise ValueError("populations must have length n_ind")
            # codes follow order of first appearance
            codes, uniq = pd.factorize(pd.Series(populations), sort=False)
            pop_index = codes.astype(np.int64)
            pop_labels = np.asarray(uniq)
            pop_counts = np.bincount(pop_index, minlength=len(uniq))

        return cls(
            genotypes=G,
            ploidy=ploidy,
            J=J,
            pop_index=pop_index,
            pop_labels=pop_labels,
            pop_counts=pop_counts,
        )

    @property
    def n_ind(self) -> int:
        return int(self.genotypes.shape[0])

    @property
    def n_loci(self) -> int:
        return int(self.genotypes.shape[1])

    @property
    def n_genes(self) -> int:
        return self.index.n_genes

    @property
    def J_max(self) -> int:
        return int(self.J.max())

    @property
    def n_pops(self) -> int:
        return 0 if self.pop_counts is None else int(self.pop_counts.size)

    @property
    def observed(self) -> np.ndarray:
        """Boolean mask (n_genes,) of non-missing gene copies."""
        return self.alleles > 0

    def non_missing_per_individual(self) -> np.ndarray:
        return np.bincount(self.index.ind[self.observed], minlength=self.n_ind)
