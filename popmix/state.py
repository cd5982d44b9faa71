"""
Sufficient statistics of the admixture model.

ModelState owns the assignment of every gene copy to a deme together with the
count arrays that the collapsed sampler conditions on:

    allele_counts[k, l, j]   gene copies in deme k carrying allele j at locus l
    allele_totals[k, l]      sum over j of allele_counts[k, l, :]
    admix_counts[i, k]       non-missing gene copies of individual i in deme k
    admix_totals[i]          non-missing gene copies of individual i

Demes are 0-based. The allele axis is padded to J_max; padding stays 0.
Missing gene copies carry an assignment but never touch the counts.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from popmix.data import GenotypeData


class ModelState:
    def __init__(self, data: GenotypeData, K: int, assignment: Optional[np.ndarray] = None):
        if K < 1:
            raise ValueError("K must be >= 1")
        self.data = data
        self.K = int(K)
        self.allele_counts = np.zeros((self.K, data.n_loci, data.J_max), dtype=np.int64)
        self.allele_totals = np.zeros((self.K, data.n_loci), dtype=np.int64)
        self.admix_counts = np.zeros((data.n_ind, self.K), dtype=np.int64)
        self.admix_totals = np.zeros(data.n_ind, dtype=np.int64)
        self.assignment = np.zeros(data.n_genes, dtype=np.int64)
        if assignment is not None:
            self.rebuild(assignment)

    @classmethod
    def random(cls, data: GenotypeData, K: int, rng: np.random.Generator) -> "ModelState":
        """Draw every assignment uniformly over the K demes and build the counts."""
        return cls(data, K, assignment=rng.integers(0, K, size=data.n_genes))

    # ---------------------------------
    # Incremental updates
    # ---------------------------------

    def add(self, g: int, k: int) -> None:
        """Assign gene copy g to deme k and count it (if observed)."""
        self.assignment[g] = k
        a = self.data.alleles[g]
        if a == 0:
            return
        i = self.data.index.ind[g]
        l = self.data.index.locus[g]
        self.allele_counts[k, l, a - 1] += 1
        self.allele_totals[k, l] += 1
        self.admix_counts[i, k] += 1
        self.admix_totals[i] += 1

    def remove(self, g: int) -> None:
        """Take gene copy g out of the counts of its current deme (if observed)."""
        a = self.data.alleles[g]
        if a == 0:
            return
        k = self.assignment[g]
        i = self.data.index.ind[g]
        l = self.data.index.locus[g]
        self.allele_counts[k, l, a - 1] -= 1
        self.allele_totals[k, l] -= 1
        self.admix_counts[i, k] -= 1
        self.admix_totals[i] -= 1

    def rebuild(self, assignment) -> None:
        """Reset all counts and replay ``assignment`` against the genotype data."""
        assignment = np.asarray(assignment, dtype=np.int64)
        if assignment.shape != (self.data.n_genes,):
            raise ValueError("assignment must have one entry per gene copy")
        if assignment.size and (assignment.min() < 0 or assignment.max() >= self.K):
            raise ValueError("assignment labels must lie in 0..K-1")
        self.assignment = assignment.copy()

        self.allele_counts[:] = 0
        self.allele_totals[:] = 0
        self.admix_counts[:] = 0
        self.admix_totals[:] = 0

        obs = self.data.observed
        k = self.assignment[obs]
        ind = self.data.index.ind[obs]
        loc = self.data.index.locus[obs]
        allele = self.data.alleles[obs] - 1
        np.add.at(self.allele_counts, (k, loc, allele), 1)
        np.add.at(self.allele_totals, (k, loc), 1)
        np.add.at(self.admix_counts, (ind, k), 1)
        np.add.at(self.admix_totals, ind, 1)

    # ---------------------------------
    # Relabelling
    # ---------------------------------

    def relabel(self, permutation) -> "ModelState":
        """
        Return a new state with deme k renamed to permutation[k].

        Row k of the new allele counts (column k of the new admix counts) is
        the old row (column) at inverse(permutation)[k]. The receiver is left
        untouched.
        """
        perm = check_permutation(permutation, self.K)
        order = np.argsort(perm)  # inverse permutation

        out = ModelState.__new__(ModelState)
        out.data = self.data
        out.K = self.K
        out.assignment = perm[self.assignment]
        out.allele_counts = self.allele_counts[order].copy()
        out.allele_totals = self.allele_totals[order].copy()
        out.admix_counts = self.admix_counts[:, order].copy()
        out.admix_totals = self.admix_totals.copy()
        return out

    def copy(self) -> "ModelState":
        return self.relabel(np.arange(self.K))

    # ---------------------------------
    # Checks
    # ---------------------------------

    def check_invariants(self) -> None:
        """Raise RuntimeError if the count arrays disagree with each other."""
        if not np.array_equal(self.allele_counts.sum(axis=2), self.allele_totals):
            raise RuntimeError("allele counts do not sum to allele totals")
        if not np.array_equal(self.admix_counts.sum(axis=1), self.admix_totals):
            raise RuntimeError("admix counts do not sum to admix totals")
        if not np.array_equal(self.admix_totals, self.data.non_missing_per_individual()):
            raise RuntimeError("admix totals differ from the non-missing gene copy counts")
        if np.any(self.allele_counts < 0) or np.any(self.admix_counts < 0):
            raise RuntimeError("negative counts")
        if self.assignment.size and (self.assignment.min() < 0 or self.assignment.max() >= self.K):
            raise RuntimeError("assignment label out of range")


def check_permutation(permutation, K: int) -> np.ndarray:
    """Return ``permutation`` as an int array, raising ValueError unless it is a bijection on 0..K-1."""
    perm = np.asarray(permutation, dtype=np.int64)
    if perm.shape != (K,):
        raise ValueError(f"permutation must have length K={K}")
    if not np.array_equal(np.sort(perm), np.arange(K)):
        raise ValueError(f"not a permutation of 0..{K - 1}: {perm.tolist()}")
    return perm
