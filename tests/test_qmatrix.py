import numpy as np
import pytest

from popmix.data import GenotypeData
from popmix.qmatrix import PosteriorAccumulator
from popmix.state import ModelState


class TestProduce:
    def test_rows_are_distributions(self, small_data, rng):
        state = ModelState.random(small_data, 3, rng)
        posterior = PosteriorAccumulator(small_data, 3)
        posterior.produce(state, 1.0, 0.5)
        np.testing.assert_allclose(posterior.q_new.sum(axis=1), 1.0)
        assert np.all(posterior.q_new > 0)

    def test_hand_computed_single_individual(self, single_data):
        # both copies in deme 0; copy 0 carries allele 1
        state = ModelState(single_data, 2, assignment=np.array([0, 0]))
        posterior = PosteriorAccumulator(single_data, 2)
        posterior.produce(state, 1.0, 1.0)
        # deme 0: (1 + 1) / (2 + 2) * (2 + 1) = 1.5; deme 1: 1 / 2 * 1 = 0.5
        np.testing.assert_allclose(posterior.q_new[0], [0.75, 0.25])

    def test_missing_copy_uses_admixture_only(self, ragged_data):
        assignment = np.array([0, 1, 1, 1, 0, 0, 1, 0, 0, 0, 1, 1])
        state = ModelState(ragged_data, 2, assignment=assignment)
        posterior = PosteriorAccumulator(ragged_data, 2)
        posterior.produce(state, 1.0, 1.0)
        # individual 1 has admixture counts [2, 3]
        np.testing.assert_allclose(posterior.q_new[4], [3 / 7, 4 / 7])

    def test_permute_then_inverse_restores(self, small_data, rng):
        state = ModelState.random(small_data, 3, rng)
        posterior = PosteriorAccumulator(small_data, 3)
        posterior.produce(state, 1.0, 1.0)
        q = posterior.q_new.copy()
        perm = np.array([2, 0, 1])
        posterior.permute(perm)
        np.testing.assert_array_equal(posterior.q_new[:, perm], q)
        posterior.permute(np.argsort(perm))
        np.testing.assert_array_equal(posterior.q_new, q)


class TestFinalize:
    def _data(self):
        # two haploid individuals, one locus, populations a and b
        G = np.array([[[1]], [[2]]])
        return GenotypeData.from_arrays(G, ploidy=[1, 1], J=[2], populations=["a", "b"])

    def test_average_of_stored_iterations(self):
        posterior = PosteriorAccumulator(self._data(), 2)
        for q in ([[0.2, 0.8], [0.5, 0.5]], [[0.4, 0.6], [0.5, 0.5]]):
            posterior.log_q_new = np.log(np.array(q))
            posterior.store()
        posterior.finalize(2)
        np.testing.assert_allclose(posterior.qmatrix_gene[0], [0.3, 0.7])
        np.testing.assert_allclose(posterior.qmatrix_ind, [[0.3, 0.7], [0.5, 0.5]])
        assert posterior.n_stored == 2
        assert posterior.qmatrix_pop is None

    def test_population_level(self):
        data = GenotypeData.from_arrays(
            np.ones((3, 1, 1), dtype=int), ploidy=[1, 1, 1], J=[2], populations=["a", "a", "b"]
        )
        posterior = PosteriorAccumulator(data, 2)
        posterior.log_q_new = np.log(np.array([[0.2, 0.8], [0.6, 0.4], [1.0, 1e-300]]))
        posterior.store()
        posterior.finalize(1, pop_level=True)
        np.testing.assert_allclose(posterior.qmatrix_pop, [[0.4, 0.6], [1.0, 0.0]], atol=1e-12)

    def test_individual_rows_sum_to_one(self, small_data, rng):
        posterior = PosteriorAccumulator(small_data, 3)
        for _ in range(4):
            posterior.produce(ModelState.random(small_data, 3, rng), 1.0, 1.0)
            posterior.store()
        posterior.finalize(4, pop_level=True)
        np.testing.assert_allclose(posterior.qmatrix_gene.sum(axis=1), 1.0)
        np.testing.assert_allclose(posterior.qmatrix_ind.sum(axis=1), 1.0)
        np.testing.assert_allclose(posterior.qmatrix_pop.sum(axis=1), 1.0)
        assert posterior.qmatrix_pop.shape == (3, 3)

    def test_running_reference_starts_uniform(self, small_data):
        posterior = PosteriorAccumulator(small_data, 4)
        np.testing.assert_allclose(np.exp(posterior.log_q_running), 0.25)

    def test_reset_keeps_running_when_asked(self, small_data, rng):
        posterior = PosteriorAccumulator(small_data, 2)
        posterior.produce(ModelState.random(small_data, 2, rng), 1.0, 1.0)
        posterior.update_running()
        running = posterior.log_q_running.copy()
        posterior.reset(reset_running=False)
        np.testing.assert_array_equal(posterior.log_q_running, running)
        assert posterior.n_stored == 0
        posterior.reset()
        np.testing.assert_allclose(posterior.log_q_running, -np.log(2))

    def test_rejects_zero_samples(self, small_data):
        with pytest.raises(ValueError):
            PosteriorAccumulator(small_data, 2).finalize(0)
