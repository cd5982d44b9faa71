"""
Marginal and joint log-likelihoods and their running summaries.

log_like_group
    Probability of the data given the grouping only, allele frequencies
    integrated out (Dirichlet-multinomial).
log_like_joint
    Probability of the data given drawn allele frequencies and admixture
    proportions.
draw_frequencies
    Draw allele frequencies and admixture proportions from their conditional
    Dirichlet posteriors (normalised Gamma draws).
LikelihoodTracker
    Post-burn-in running sums and the harmonic-mean evidence estimate.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Tuple

import numpy as np
from scipy.special import gammaln

from popmix.data import GenotypeData
from popmix.state import ModelState


def allele_mask(data: GenotypeData) -> np.ndarray:
    """Boolean (n_loci, J_max) mask of the alleles that exist at each locus."""
    return np.arange(data.J_max)[None, :] < data.J[:, None]


def log_like_group(state: ModelState, lam: float) -> float:
    """Dirichlet-multinomial log-likelihood of the data given the current grouping."""
    J = state.data.J
    # padded alleles have zero counts and contribute lgamma(lam) - lgamma(lam) = 0
    out = (gammaln(lam + state.allele_counts) - gammaln(lam)).sum()
    out += (gammaln(J * lam)[None, :] - gammaln(J * lam + state.allele_totals)).sum()
    return float(out)


def log_like_joint(data: GenotypeData, admix_freqs: np.ndarray, allele_freqs: np.ndarray) -> float:
    """
    Log-likelihood of the observed gene copies given admixture proportions
    (n_ind, K) and allele frequencies (K, n_loci, J_max).
    """
    obs = data.observed
    ind = data.index.ind[obs]
    loc = data.index.locus[obs]
    allele = data.alleles[obs] - 1
    # (n_obs, K) . (n_obs, K) summed over demes
    p = (admix_freqs[ind] * allele_freqs[:, loc, allele].T).sum(axis=1)
    return float(np.log(p).sum())


def draw_frequencies(
    state: ModelState,
    lam: float,
    alpha: float,
    rng: np.random.Generator,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Draw (allele_freqs, admix_freqs) given the current counts.

    allele_freqs[k, l, :J[l]] ~ Dirichlet(allele_counts[k, l, :J[l]] + lambda)
    admix_freqs[i, :]        ~ Dirichlet(admix_counts[i, :] + alpha)
    """
    mask = allele_mask(state.data)
    shape = np.where(mask[None, :, :], state.allele_counts + lam, 1.0)
    allele_freqs = rng.gamma(shape, 1.0) * mask[None, :, :]
    allele_freqs /= allele_freqs.sum(axis=2, keepdims=True)

    admix_freqs = rng.gamma(state.admix_counts + alpha, 1.0)
    admix_freqs /= admix_freqs.sum(axis=1, keepdims=True)
    return allele_freqs, admix_freqs


@dataclass
class LikelihoodTracker:
    store_loglike: bool = False
    log_like_group_sum: float = 0.0
    log_like_group_sum_squared: float = 0.0
    log_like_joint_sum: float = 0.0
    log_like_joint_sum_squared: float = 0.0
    harmonic: float = -np.inf
    n: int = 0
    n_joint: int = 0
    log_like_group_store: List[float] = field(default_factory=list)

    def add(self, log_like_group: float, log_like_joint: float | None = None) -> None:
        """Fold one post-burn-in iteration into the running sums."""
        self.n += 1
        self.log_like_group_sum += log_like_group
        self.log_like_group_sum_squared += log_like_group * log_like_group
        if self.store_loglike:
            self.log_like_group_store.append(log_like_group)
        self.harmonic = float(np.logaddexp(self.harmonic, -log_like_group))
        if log_like_joint is not None:
            self.n_joint += 1
            self.log_like_joint_sum += log_like_joint
            self.log_like_joint_sum_squared += log_like_joint * log_like_joint

    def harmonic_mean(self) -> float:
        """log(n) - log(sum_t exp(-logLikeGroup_t)): harmonic-mean estimate of the log evidence."""
        if self.n == 0:
            return float("nan")
        return float(np.log(self.n) - self.harmonic)

    @property
    def log_like_group_mean(self) -> float:
        return self.log_like_group_sum / self.n if self.n else float("nan")

    @property
    def log_like_group_variance(self) -> float:
        if self.n == 0:
            return float("nan")
        mean = self.log_like_group_mean
        return max(self.log_like_group_sum_squared / self.n - mean * mean, 0.0)

    @property
    def log_like_joint_mean(self) -> float:
        # nan unless joint likelihoods were recorded
        return self.log_like_joint_sum / self.n_joint if self.n_joint else float("nan")

    @property
    def structure_estimator(self) -> float:
        """Pritchard et al. (2000) evidence estimate: mean - variance / 2."""
        return self.log_like_group_mean - 0.5 * self.log_like_group_variance
