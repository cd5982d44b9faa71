from .config import MCMCConfig, parse_variables
from .data import GenotypeData
from .indexing import GeneCopyIndex
from .state import ModelState
from .sampler import group_update, alpha_update, reflect_alpha
from .alignment import cost_matrix, best_permutation, choose_best_label_permutation
from .qmatrix import PosteriorAccumulator
from .likelihood import (
    LikelihoodTracker,
    draw_frequencies,
    log_like_group,
    log_like_joint,
)
from .mcmc import AdmixtureMCMC, MCMCResult, run_mcmc
from .simulate import simulate_admixed_genotypes, sample_ancestry_proportions

__all__ = [
    "MCMCConfig",
    "parse_variables",
    "GenotypeData",
    "GeneCopyIndex",
    "ModelState",
    "group_update",
    "alpha_update",
    "reflect_alpha",
    "cost_matrix",
    "best_permutation",
    "choose_best_label_permutation",
    "PosteriorAccumulator",
    "LikelihoodTracker",
    "draw_frequencies",
    "log_like_group",
    "log_like_joint",
    "AdmixtureMCMC",
    "MCMCResult",
    "run_mcmc",
    "simulate_admixed_genotypes",
    "sample_ancestry_proportions",
]
