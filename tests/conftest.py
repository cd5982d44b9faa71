import numpy as np
import pytest

from popmix.data import GenotypeData
from popmix.simulate import simulate_admixed_genotypes


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def small_data():
    """12 diploid individuals, 6 loci with 3 alleles, two demes, some missing data."""
    return simulate_admixed_genotypes(
        12, 6, K=2, J=3, ploidy=2, missing=0.1,
        populations=["north"] * 5 + ["south"] * 4 + ["east"] * 3,
        seed=7,
    )


@pytest.fixture
def ragged_data():
    """Mixed ploidy (1, 3, 2), two loci with 2 and 4 alleles, including an all-missing gene copy."""
    G = np.zeros((3, 2, 3), dtype=int)
    G[0, :, :1] = [[1], [4]]
    G[1, :, :3] = [[2, 1, 0], [3, 3, 1]]
    G[2, :, :2] = [[1, 2], [2, 4]]
    return GenotypeData.from_arrays(G, ploidy=[1, 3, 2], J=[2, 4])


@pytest.fixture
def single_data():
    """One diploid individual at one bi-allelic locus, heterozygous."""
    return GenotypeData.from_arrays([[[1, 2]]], ploidy=[2], J=[2])
