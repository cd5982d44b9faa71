"""
The two stochastic updates of one MCMC round.

group_update
    Collapsed Gibbs sweep. Every gene copy is taken out of the counts, its
    deme is redrawn from the exact conditional posterior (allele frequencies
    and admixture proportions integrated out), and it is put back.

alpha_update
    Random-walk Metropolis step for the Dirichlet concentration parameter of
    the admixture proportions, reflected into [0, 10].
"""

from __future__ import annotations

import logging
import math

import numpy as np
from scipy.special import gammaln

from popmix.lookup import LogLookup
from popmix.state import ModelState

logger = logging.getLogger(__name__)

ALPHA_MAX = 10.0
ALPHA_FLOOR = 1e-300


# ------------------------------
# Weighted sampling helper
# ------------------------------

def sample1(weights: np.ndarray, total: float, rng: np.random.Generator) -> int:
    """Return index i with probability weights[i] / total (weights need not be normalised)."""
    if total <= 0:
        return int(rng.integers(0, len(weights)))
    u = rng.random() * total
    i = int(np.searchsorted(np.cumsum(weights), u, side="right"))
    return min(i, len(weights) - 1)


# ------------------------------
# Gibbs update of the grouping
# ------------------------------

def group_weights(
    state: ModelState,
    g: int,
    lam: float,
    alpha: float,
    beta: float = 1.0,
    log_lookup: LogLookup | None = None,
) -> np.ndarray:
    """
    Unnormalised conditional probability of gene copy g under each deme.

    The gene copy must already be removed from the counts. The common
    denominator (admix_totals[i] + K*alpha) is left out.
    """
    data = state.data
    a = data.alleles[g]
    i = data.index.ind[g]
    w = state.admix_counts[i] + alpha
    if a == 0:
        return w.astype(float)

    l = data.index.locus[g]
    J = int(data.J[l])
    num = state.allele_counts[:, l, a - 1]
    den = state.allele_totals[:, l]
    if log_lookup is None:
        log_p = np.log(num + lam) - np.log(den + J * lam)
    else:
        log_p = log_lookup(num, 1) - log_lookup(den, J)
    if beta != 1.0:
        log_p = beta * log_p
    return np.exp(log_p) * w


def group_update(
    state: ModelState,
    lam: float,
    alpha: float,
    rng: np.random.Generator,
    beta: float = 1.0,
    log_lookup: LogLookup | None = None,
) -> None:
    """One collapsed Gibbs sweep over all gene copies, in place."""
    for g in range(state.data.n_genes):
        state.remove(g)
        w = group_weights(state, g, lam, alpha, beta=beta, log_lookup=log_lookup)
        state.add(g, sample1(w, w.sum(), rng))


# ------------------------------
# Metropolis update of alpha
# ------------------------------

def reflect_alpha(alpha_new: float) -> float:
    """Reflect a proposal off the boundaries 0 and 10, never returning exactly 0."""
    if alpha_new < 0 or alpha_new > ALPHA_MAX:
        # bring into [-10, 20] by whole periods, then one last reflection
        while alpha_new < -ALPHA_MAX:
            alpha_new += 2 * ALPHA_MAX
        while alpha_new > 2 * ALPHA_MAX:
            alpha_new -= 2 * ALPHA_MAX
        if alpha_new < 0:
            alpha_new = -alpha_new
        if alpha_new > ALPHA_MAX:
            alpha_new = 2 * ALPHA_MAX - alpha_new
    if alpha_new == 0:
        alpha_new = ALPHA_FLOOR
    return float(alpha_new)


def log_prob_alpha(admix_counts: np.ndarray, admix_totals: np.ndarray, alpha: float) -> float:
    """Dirichlet-multinomial log-probability of the admix count table given alpha."""
    K = admix_counts.shape[1]
    n = admix_counts.shape[0]
    out = n * gammaln(K * alpha) - gammaln(admix_totals + K * alpha).sum()
    out += gammaln(admix_counts + alpha).sum() - n * K * gammaln(alpha)
    return float(out)


def alpha_update(
    state: ModelState,
    alpha: float,
    prop_sd: float,
    rng: np.random.Generator,
) -> float:
    """Propose, reflect and accept/reject a new alpha; returns the (possibly unchanged) value."""
    alpha_new = reflect_alpha(rng.normal(alpha, prop_sd))

    log_old = log_prob_alpha(state.admix_counts, state.admix_totals, alpha)
    log_new = log_prob_alpha(state.admix_counts, state.admix_totals, alpha_new)

    if rng.random() < math.exp(min(0.0, log_new - log_old)):
        logger.debug("alpha accepted: %.6g -> %.6g", alpha, alpha_new)
        return alpha_new
    return alpha
