"""
qmatrix.py — posterior assignment probabilities (Q-matrices).

Each iteration the conditional probability of every gene copy under every
deme is produced from the current counts (``produce``). After label alignment
this per-iteration matrix is folded, in the log domain, into

* the running reference that the next iteration is aligned against
  (``update_running``; every iteration, burn-in included), and
* the reported gene-level accumulator (``store``; after burn-in only).

``finalize`` turns the reported accumulator into gene-, individual- and
population-level Q-matrices whose rows sum to one.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from popmix.data import GenotypeData
from popmix.state import ModelState, check_permutation


class PosteriorAccumulator:
    def __init__(self, data: GenotypeData, K: int):
        self.data = data
        self.K = int(K)
        n = data.n_genes
        self.q_new = np.zeros((n, self.K))
        self.log_q_new = np.zeros((n, self.K))
        self.log_q_running = np.full((n, self.K), -np.log(self.K))
        self.log_q_gene = np.full((n, self.K), -np.inf)
        self.n_stored = 0

        self.qmatrix_gene: Optional[np.ndarray] = None
        self.qmatrix_ind: Optional[np.ndarray] = None
        self.qmatrix_pop: Optional[np.ndarray] = None

    def reset(self, reset_running: bool = True) -> None:
        n = self.data.n_genes
        self.q_new = np.zeros((n, self.K))
        self.log_q_new = np.zeros((n, self.K))
        if reset_running:
            self.log_q_running = np.full((n, self.K), -np.log(self.K))
        self.log_q_gene = np.full((n, self.K), -np.inf)
        self.n_stored = 0
        self.qmatrix_gene = self.qmatrix_ind = self.qmatrix_pop = None

    def produce(self, state: ModelState, lam: float, alpha: float) -> None:
        """Conditional deme probabilities of every gene copy under the current counts (no temperature)."""
        data = self.data
        idx = data.index
        obs = data.observed

        # admixture factor for every gene copy: (n_genes, K)
        w = (state.admix_counts[idx.ind] + alpha).astype(float)

        # allele factor for observed gene copies; the gene copy itself stays in
        # the counts here, unlike in the Gibbs step
        loc = idx.locus[obs]
        allele = data.alleles[obs] - 1
        num = state.allele_counts[:, loc, allele].T + lam            # (n_obs, K)
        den = state.allele_totals[:, loc].T + (data.J[loc] * lam)[:, None]
        w[obs] *= num / den

        self.q_new = w / w.sum(axis=1, keepdims=True)
        with np.errstate(divide="ignore"):
            self.log_q_new = np.log(self.q_new)

    def permute(self, permutation) -> None:
        """Rename the deme columns of the unaligned matrices: column k moves to permutation[k]."""
        perm = check_permutation(permutation, self.K)
        order = np.argsort(perm)
        self.q_new = self.q_new[:, order]
        self.log_q_new = self.log_q_new[:, order]

    def update_running(self) -> None:
        self.log_q_running = np.logaddexp(self.log_q_running, self.log_q_new)

    def store(self) -> None:
        self.log_q_gene = np.logaddexp(self.log_q_gene, self.log_q_new)
        self.n_stored += 1

    def finalize(self, samples: int, pop_level: bool = False) -> None:
        """Average the stored iterations and aggregate to individuals and populations."""
        if samples < 1:
            raise ValueError("samples must be >= 1")
        data = self.data
        self.qmatrix_gene = np.exp(self.log_q_gene - np.log(samples))

        # individual level: mean over loci x ploidy slots
        q_ind = np.zeros((data.n_ind, self.K))
        np.add.at(q_ind, data.index.ind, self.qmatrix_gene)
        q_ind /= (data.ploidy * data.n_loci)[:, None]
        self.qmatrix_ind = q_ind

        self.qmatrix_pop = None
        if pop_level and data.pop_index is not None:
            q_pop = np.zeros((data.n_pops, self.K))
            np.add.at(q_pop, data.pop_index, q_ind)
            q_pop /= data.pop_counts[:, None]
            self.qmatrix_pop = q_pop
