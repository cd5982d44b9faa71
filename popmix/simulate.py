"""
simulate.py — synthetic admixed genotype tensors for testing and demos.

Model
-----
- Deme allele frequencies at each locus: p_{k,l} ~ Dirichlet(lam, ..., lam) over J[l] alleles.
- Individual ancestry proportions: w_i ~ Dirichlet(alpha, ..., alpha), or
  Dirichlet(conc * centers) around given centers.
- Every gene copy (individual i, locus l, slot p < ploidy[i]) draws a deme
  z ~ Categorical(w_i) and an allele ~ Categorical(p_{z,l}).
- Gene copies are then set missing (0) independently with probability `missing`.

API
---
- sample_ancestry_proportions(n_ind, K, alpha=1.0, centers=None, conc=100., seed=None)
- simulate_admixed_genotypes(n_ind, n_loci, K=2, J=2, ploidy=2, ...)
    Returns a GenotypeData, or (GenotypeData, SimulationTruth) if return_truth.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from popmix.data import GenotypeData


def _rng(seed):
    # pass a Generator straight through so callers can share one stream
    if isinstance(seed, np.random.Generator):
        return seed
    return np.random.default_rng(seed)


@dataclass
class SimulationTruth:
    W: np.ndarray       # (n_ind, K) ancestry proportions
    P: np.ndarray       # (K, n_loci, J_max) allele frequencies, 0 beyond J[l]
    z: np.ndarray       # (n_ind, n_loci, max_ploidy) deme of each gene copy, -1 beyond ploidy


def sample_ancestry_proportions(n_ind: int, K: int, alpha: float = 1.0,
                                centers: np.ndarray | None = None,
                                conc: float = 100.0, seed=None) -> np.ndarray:
    """
    Draw individual ancestry proportions W (n_ind x K).
    If `centers` is None: symmetric Dirichlet(alpha).
    Else: Dirichlet(conc * centers), where centers is (K,) or (n_ind, K).
    """
    rng = _rng(seed)
    if centers is None:
        return rng.dirichlet(np.full(K, alpha), size=n_ind)
    centers = np.asarray(centers, dtype=float)
    if centers.ndim == 1:
        if centers.size != K:
            raise ValueError("centers must have length K")
        return rng.dirichlet(conc * (centers / centers.sum()), size=n_ind)
    if centers.shape != (n_ind, K):
        raise ValueError("centers must be shape (K,) or (n_ind, K)")
    out = np.empty_like(centers)
    for i in range(n_ind):
        out[i] = rng.dirichlet(conc * (centers[i] / centers[i].sum()))
    return out


def _broadcast(value, n: int, name: str) -> np.ndarray:
    arr = np.asarray(value, dtype=int)
    if arr.ndim == 0:
        return np.full(n, int(arr))
    if arr.shape != (n,):
        raise ValueError(f"{name} must be a scalar or have length {n}")
    return arr


def simulate_admixed_genotypes(n_ind: int, n_loci: int, K: int = 2,
                               J: int | Sequence[int] = 2,
                               ploidy: int | Sequence[int] = 2,
                               lam: float = 1.0, alpha: float = 1.0,
                               W: np.ndarray | None = None,
                               missing: float = 0.0,
                               populations: Sequence | None = None,
                               seed=None,
                               return_truth: bool = False):
    """
    Simulate a genotype tensor under the admixture model with K demes.

    Parameters
    ----------
    n_ind, n_loci : numbers of individuals and loci
    K       : number of demes
    J       : alleles per locus (scalar or length n_loci)
    ploidy  : ploidy per individual (scalar or length n_ind)
    lam     : Dirichlet parameter of the deme allele frequencies
    alpha   : Dirichlet parameter of the ancestry proportions (ignored if W given)
    W       : optional (n_ind, K) ancestry proportions
    missing : probability that a gene copy is unobserved
    populations : optional per-individual population labels, passed through
    seed    : int, None or an existing numpy Generator
    return_truth : if True, also return the SimulationTruth

    Returns
    -------
    GenotypeData or (GenotypeData, SimulationTruth)
    """
    if not (0.0 <= missing < 1.0):
        raise ValueError("missing must lie in [0, 1)")
    rng = _rng(seed)
    J = _broadcast(J, n_loci, "J")
    ploidy = _broadcast(ploidy, n_ind, "ploidy")
    if np.any(J < 1) or np.any(ploidy < 1):
        raise ValueError("J and ploidy must be >= 1")

    if W is None:
        W = rng.dirichlet(np.full(K, alpha), size=n_ind)
    else:
        W = np.asarray(W, dtype=float)
        if W.shape != (n_ind, K):
            raise ValueError("W must have shape (n_ind, K)")
        # ensure rows sum to 1
        W = (W.T / W.sum(axis=1)).T

    J_max = int(J.max())
    P = np.zeros((K, n_loci, J_max))
    for k in range(K):
        for l in range(n_loci):
            P[k, l, :J[l]] = rng.dirichlet(np.full(J[l], lam))

    max_ploidy = int(ploidy.max())
    G = np.zeros((n_ind, n_loci, max_ploidy), dtype=int)
    Z = np.full((n_ind, n_loci, max_ploidy), -1, dtype=int)
    for i in range(n_ind):
        z = rng.choice(K, size=(n_loci, ploidy[i]), p=W[i])
        Z[i, :, :ploidy[i]] = z
        for l in range(n_loci):
            for p in range(ploidy[i]):
                G[i, l, p] = rng.choice(J[l], p=P[z[l, p], l, :J[l]]) + 1

    if missing > 0:
        drop = rng.random(G.shape) < missing
        G[drop] = 0

    data = GenotypeData.from_arrays(G, ploidy=ploidy, J=J, populations=populations)
    if return_truth:
        return data, SimulationTruth(W=W, P=P, z=Z)
    return data
