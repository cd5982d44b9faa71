"""
alignment.py — label-switching correction (Stephens 2000).

Every retained iteration the freshly produced, unaligned gene-level Q-matrix
is compared with the running reference. The cost of mapping current deme k1
onto reference deme k2 is

    C[k1, k2] = sum_g Qnew[g, k1] * (log Qnew[g, k1] - log Qref[g, k2])

and the minimum-cost one-to-one mapping is found with the Hungarian algorithm
(scipy.optimize.linear_sum_assignment). If it is not the identity the model
state and the unaligned Q-matrix are relabelled accordingly.
"""

from __future__ import annotations

import logging
from typing import Tuple

import numpy as np
from scipy.optimize import linear_sum_assignment
from scipy.special import xlogy

from popmix.qmatrix import PosteriorAccumulator
from popmix.state import ModelState, check_permutation

logger = logging.getLogger(__name__)


def cost_matrix(q_new: np.ndarray, log_q_new: np.ndarray, log_q_ref: np.ndarray) -> np.ndarray:
    """K x K Stephens cost between the new iteration's demes (rows) and the reference (columns)."""
    if q_new.shape != log_q_new.shape or q_new.shape != log_q_ref.shape:
        raise ValueError(
            f"Q-matrix shapes disagree: {q_new.shape}, {log_q_new.shape}, {log_q_ref.shape}"
        )
    # xlogy keeps 0 * log(0) at 0
    self_term = xlogy(q_new, q_new).sum(axis=0)
    return self_term[:, None] - q_new.T @ log_q_ref


def best_permutation(cost: np.ndarray) -> np.ndarray:
    """
    Solve the assignment problem on a square cost matrix.

    Returns perm with perm[k1] = k2, the reference label given to current label k1.
    """
    cost = np.asarray(cost, dtype=float)
    if cost.ndim != 2 or cost.shape[0] != cost.shape[1] or cost.shape[0] == 0:
        raise ValueError(f"cost matrix must be square and non-empty, got shape {cost.shape}")
    if not np.all(np.isfinite(cost)):
        raise ValueError("cost matrix contains non-finite entries")
    K = cost.shape[0]
    row_ind, col_ind = linear_sum_assignment(cost)
    perm = np.empty(K, dtype=np.int64)
    perm[row_ind] = col_ind
    return check_permutation(perm, K)


def choose_best_label_permutation(
    state: ModelState,
    posterior: PosteriorAccumulator,
) -> Tuple[ModelState, np.ndarray]:
    """
    Align the current iteration to the running reference.

    ``posterior.produce`` must have been called for ``state``. Returns the
    (possibly relabelled) state and the permutation that was applied; the
    unaligned Q-matrices held by ``posterior`` are permuted in place.
    """
    if state.K != posterior.K:
        raise ValueError(f"K mismatch: state has {state.K}, posterior has {posterior.K}")
    cost = cost_matrix(posterior.q_new, posterior.log_q_new, posterior.log_q_running)
    perm = best_permutation(cost)

    if np.array_equal(perm, np.arange(state.K)):
        return state, perm

    logger.debug("relabelling demes: %s", perm.tolist())
    posterior.permute(perm)
    return state.relabel(perm), perm
