"""
mcmc.py — one MCMC chain of the admixture model at fixed K.

Each round (after the configured thinning) runs, strictly in this order:

    group_update -> alpha_update -> produce Q -> align labels
        -> update running reference -> store Q (post burn-in)
        -> logLikeGroup -> draw frequencies + logLikeJoint

A chain always runs its full burn-in + sample count.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

import numpy as np
import pandas as pd

from popmix.alignment import choose_best_label_permutation
from popmix.config import MCMCConfig
from popmix.data import GenotypeData
from popmix.likelihood import LikelihoodTracker, draw_frequencies, log_like_group, log_like_joint
from popmix.lookup import LogLookup
from popmix.qmatrix import PosteriorAccumulator
from popmix.sampler import alpha_update, group_update
from popmix.state import ModelState

logger = logging.getLogger(__name__)

TRACE_COLUMNS = ["K", "repeat", "iteration", "logLikeGroup", "logLikeJoint", "alpha"]


@dataclass
class MCMCResult:
    K: int
    trace: pd.DataFrame                       # one row per iteration, see TRACE_COLUMNS
    posterior_grouping: Optional[np.ndarray]  # (n_rows, n_genes), 1-based deme labels
    qmatrix_gene: Optional[np.ndarray]
    qmatrix_ind: Optional[np.ndarray]
    qmatrix_pop: Optional[np.ndarray]
    log_like_group_sum: float
    log_like_group_sum_squared: float
    log_like_joint_sum: float
    log_like_joint_sum_squared: float
    log_like_group_store: Optional[np.ndarray]
    harmonic: float
    alpha: float
    samples: int
    log_like_group_mean: float
    log_like_group_variance: float
    structure_estimator: float
    log_like_joint_mean: float                # nan when frequencies are not drawn


class AdmixtureMCMC:
    """
    MCMC under the admixture model for a single K.

    The generator handle is shared by every stochastic step: seeding it (via
    ``config.seed`` or by passing ``rng``) makes a run reproducible.
    """

    def __init__(
        self,
        data: GenotypeData,
        config: MCMCConfig,
        rng: np.random.Generator | None = None,
    ):
        self.data = data
        self.config = config.validate()
        self.K = int(config.K)
        self.rng = np.random.default_rng(config.seed) if rng is None else rng
        self.log_lookup = LogLookup(config.lam, data.J_max)

        self.alpha = float(config.alpha)
        self.state: ModelState = ModelState(data, self.K)
        self.posterior = PosteriorAccumulator(data, self.K)
        self.tracker = LikelihoodTracker(store_loglike=config.store_loglike)
        self.log_like_group = 0.0
        self.log_like_joint = 0.0
        self.allele_freqs: Optional[np.ndarray] = None
        self.admix_freqs: Optional[np.ndarray] = None
        self.reset()

    def reset(self, reset_running: bool = True) -> None:
        """
        Start a fresh chain: random grouping, zeroed summaries.

        With ``reset_running=False`` the label-alignment reference from the
        previous run is kept, so repeated runs (e.g. at different beta) share
        a labelling.
        """
        self.log_like_group = 0.0
        self.log_like_joint = 0.0
        self.tracker = LikelihoodTracker(store_loglike=self.config.store_loglike)
        self.posterior.reset(reset_running=reset_running)
        self.state = ModelState.random(self.data, self.K, self.rng)
        self._fresh = True

    # ---------------------------------
    # Single steps
    # ---------------------------------

    def update_round(self) -> None:
        group_update(
            self.state,
            self.config.lam,
            self.alpha,
            self.rng,
            beta=self.config.beta,
            log_lookup=self.log_lookup,
        )
        if not self.config.fix_alpha:
            self.alpha = alpha_update(self.state, self.alpha, self.config.alpha_prop_sd, self.rng)

    def align_labels(self) -> np.ndarray:
        """Produce this iteration's Q-matrix and relabel the state to match the reference."""
        self.posterior.produce(self.state, self.config.lam, self.alpha)
        self.state, perm = choose_best_label_permutation(self.state, self.posterior)
        return perm

    # ---------------------------------
    # Full chain
    # ---------------------------------

    def perform_mcmc(self, repeat: int = 0, reset: bool = False) -> MCMCResult:
        """
        Run burn-in + samples iterations and return the summaries.

        ``repeat`` is only used to label the trace rows. A chain that has
        already run is restarted first, keeping only the label-alignment
        reference; ``reset=True`` drops the reference as well.
        """
        cfg = self.config
        if reset:
            self.reset()
        elif not self._fresh:
            self.reset(reset_running=False)
        self._fresh = False
        logger.info(
            "K=%d: running %d burn-in + %d sampling iterations (thinning %d, beta %g)",
            self.K, cfg.burnin, cfg.samples, cfg.thinning, cfg.beta,
        )

        trace: List[tuple] = []
        grouping: List[np.ndarray] = []
        thin_switch = 1
        for rep in range(cfg.burnin + cfg.samples):
            for _ in range(thin_switch):
                self.update_round()
            if rep == cfg.burnin:
                thin_switch = cfg.thinning

            if cfg.fix_labels:
                self.align_labels()
                self.posterior.update_running()
                if rep >= cfg.burnin:
                    self.posterior.store()

            self.log_like_group = log_like_group(self.state, cfg.lam)
            if cfg.draw_freqs:
                self.allele_freqs, self.admix_freqs = draw_frequencies(
                    self.state, cfg.lam, self.alpha, self.rng
                )
                self.log_like_joint = log_like_joint(self.data, self.admix_freqs, self.allele_freqs)

            if rep >= cfg.burnin:
                self.tracker.add(
                    self.log_like_group,
                    self.log_like_joint if cfg.draw_freqs else None,
                )

            trace.append(
                (self.K, repeat + 1, rep - cfg.burnin + 1, self.log_like_group, self.log_like_joint, self.alpha)
            )
            if cfg.output_grouping:
                grouping.append(self.state.assignment + 1)

            logger.debug(
                "rep %d: logLikeGroup=%.4f logLikeJoint=%.4f alpha=%.4f",
                rep, self.log_like_group, self.log_like_joint, self.alpha,
            )

        if cfg.fix_labels:
            self.posterior.finalize(cfg.samples, pop_level=cfg.qmatrix_pop)

        result = self._result(trace, grouping)
        logger.info("K=%d: harmonic mean log evidence %.4f", self.K, result.harmonic)
        return result

    def _result(self, trace: List[tuple], grouping: List[np.ndarray]) -> MCMCResult:
        cfg = self.config
        t = self.tracker
        return MCMCResult(
            K=self.K,
            trace=pd.DataFrame(trace, columns=TRACE_COLUMNS),
            posterior_grouping=np.vstack(grouping) if cfg.output_grouping else None,
            qmatrix_gene=self.posterior.qmatrix_gene,
            qmatrix_ind=self.posterior.qmatrix_ind,
            qmatrix_pop=self.posterior.qmatrix_pop,
            log_like_group_sum=t.log_like_group_sum,
            log_like_group_sum_squared=t.log_like_group_sum_squared,
            log_like_joint_sum=t.log_like_joint_sum,
            log_like_joint_sum_squared=t.log_like_joint_sum_squared,
            log_like_group_store=np.array(t.log_like_group_store) if cfg.store_loglike else None,
            harmonic=t.harmonic_mean(),
            alpha=self.alpha,
            samples=cfg.samples,
            log_like_group_mean=t.log_like_group_mean,
            log_like_group_variance=t.log_like_group_variance,
            structure_estimator=t.structure_estimator,
            log_like_joint_mean=t.log_like_joint_mean,
        )


def run_mcmc(
    data: GenotypeData,
    config: MCMCConfig,
    rng: np.random.Generator | None = None,
    repeat: int = 0,
) -> MCMCResult:
    """Convenience wrapper: build a chain and run it once."""
    return AdmixtureMCMC(data, config, rng=rng).perform_mcmc(repeat=repeat)
