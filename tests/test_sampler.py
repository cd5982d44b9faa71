import math

import numpy as np
import pytest

from popmix.lookup import LogLookup
from popmix.sampler import (
    ALPHA_FLOOR,
    alpha_update,
    group_update,
    group_weights,
    log_prob_alpha,
    reflect_alpha,
    sample1,
)
from popmix.state import ModelState


class TestSample1:
    def test_zero_weight_never_drawn(self, rng):
        w = np.array([0.0, 2.0, 0.0, 1.0])
        draws = {sample1(w, w.sum(), rng) for _ in range(200)}
        assert draws <= {1, 3}

    def test_frequencies_follow_weights(self, rng):
        w = np.array([1.0, 3.0])
        draws = np.array([sample1(w, 4.0, rng) for _ in range(4000)])
        assert abs(draws.mean() - 0.75) < 0.03


class TestLogLookup:
    def test_matches_direct_log(self):
        lookup = LogLookup(0.5, J_max=4)
        counts = np.array([0, 3, 17, 999])
        np.testing.assert_allclose(lookup(counts, 1), np.log(counts + 0.5))
        np.testing.assert_allclose(lookup(counts, 4), np.log(counts + 2.0))

    def test_falls_back_beyond_table(self):
        lookup = LogLookup(1.0, J_max=2, size=10)
        counts = np.array([3, 50])
        np.testing.assert_allclose(lookup(counts, 2), np.log(counts + 2.0))


class TestGroupUpdate:
    def test_weights_match_closed_form(self, small_data, rng):
        lam, alpha, beta = 1.0, 0.7, 0.5
        state = ModelState.random(small_data, 3, rng)
        g = int(np.flatnonzero(small_data.observed)[0])
        state.remove(g)
        i, l, _ = small_data.index.position(g)
        a = small_data.alleles[g]
        J = small_data.J[l]
        expected = [
            ((state.allele_counts[k, l, a - 1] + lam) / (state.allele_totals[k, l] + J * lam)) ** beta
            * (state.admix_counts[i, k] + alpha)
            for k in range(3)
        ]
        lookup = LogLookup(lam, small_data.J_max)
        np.testing.assert_allclose(group_weights(state, g, lam, alpha, beta), expected)
        np.testing.assert_allclose(group_weights(state, g, lam, alpha, beta, log_lookup=lookup), expected)

    def test_missing_gene_copy_uses_admixture_only(self, ragged_data, rng):
        state = ModelState.random(ragged_data, 2, rng)
        state.remove(4)
        w = group_weights(state, 4, 1.0, 0.3)
        np.testing.assert_allclose(w, state.admix_counts[1] + 0.3)

    def test_invariants_hold_across_sweeps(self, small_data, rng):
        state = ModelState.random(small_data, 3, rng)
        totals = state.admix_totals.copy()
        lookup = LogLookup(1.0, small_data.J_max)
        for _ in range(5):
            group_update(state, 1.0, 1.0, rng, log_lookup=lookup)
            state.check_invariants()
            np.testing.assert_array_equal(state.admix_totals, totals)
            assert state.assignment.min() >= 0 and state.assignment.max() < 3

    def test_same_seed_same_chain(self, small_data):
        states = []
        for _ in range(2):
            rng = np.random.default_rng(3)
            state = ModelState.random(small_data, 2, rng)
            group_update(state, 1.0, 1.0, rng, beta=0.3)
            states.append(state.assignment.copy())
        np.testing.assert_array_equal(states[0], states[1])


class TestReflectAlpha:
    @pytest.mark.parametrize(
        "proposal,expected",
        [
            (3.5, 3.5),
            (-3.0, 3.0),
            (12.0, 8.0),
            (-25.0, 5.0),
            (35.0, 5.0),
            (-10.0, 10.0),
        ],
    )
    def test_reflection(self, proposal, expected):
        assert reflect_alpha(proposal) == pytest.approx(expected)

    @pytest.mark.parametrize("proposal", [0.0, 20.0, -20.0, 40.0])
    def test_exact_zero_is_floored(self, proposal):
        assert reflect_alpha(proposal) == ALPHA_FLOOR

    def test_always_inside_support(self, rng):
        for x in rng.normal(0, 50, size=1000):
            a = reflect_alpha(float(x))
            assert 0 < a <= 10


class TestAlphaUpdate:
    def test_log_prob_matches_loop(self, small_data, rng):
        state = ModelState.random(small_data, 3, rng)
        alpha = 0.8
        expected = 0.0
        for i in range(small_data.n_ind):
            expected += math.lgamma(3 * alpha) - math.lgamma(state.admix_totals[i] + 3 * alpha)
            for k in range(3):
                expected += math.lgamma(state.admix_counts[i, k] + alpha) - math.lgamma(alpha)
        assert log_prob_alpha(state.admix_counts, state.admix_totals, alpha) == pytest.approx(expected)

    def test_alpha_stays_finite_and_in_support(self, small_data, rng):
        state = ModelState.random(small_data, 2, rng)
        alpha = 1.0
        for _ in range(300):
            alpha = alpha_update(state, alpha, 5.0, rng)
            assert np.isfinite(alpha)
            assert 0 < alpha <= 10

    def test_zero_step_keeps_alpha(self, small_data, rng):
        state = ModelState.random(small_data, 2, rng)
        assert alpha_update(state, 1.3, 0.0, rng) == pytest.approx(1.3)
