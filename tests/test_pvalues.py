"""Tests for the pvalues module."""

import warnings

import numpy as np
import pytest

from lasso_permutation.exceptions import InvalidInputError, ZeroPermutationsWarning
from lasso_permutation.pvalues import calculate_p_values, exceedance_counts


class TestCalculatePValues:
    """Tests for calculate_p_values."""

    def test_hand_computed_counts(self):
        model_coefs = np.array([0.5, -0.2, 0.0])
        permuted_coefs = np.array([
            [0.1, 0.3, 0.0],
            [-0.6, 0.0, 0.1],
            [0.2, -0.2, 0.0],
            [0.0, 0.1, -0.4],
        ])
        p = calculate_p_values(model_coefs, permuted_coefs)
        # |-0.6| >= 0.5 once; |0.3| and |-0.2| reach 0.2; every row reaches 0.
        np.testing.assert_allclose(p, [0.25, 0.5, 1.0])

    def test_ties_count_as_exceedances(self):
        p = calculate_p_values(np.array([0.3]), np.array([[0.3], [-0.3], [0.1]]))
        np.testing.assert_allclose(p, [2 / 3])

    def test_single_permutation_gives_zero_or_one(self):
        p = calculate_p_values(np.array([1.0, 0.1]), np.array([[0.5, 0.5]]))
        np.testing.assert_array_equal(p, [0.0, 1.0])

    def test_zero_observed_gives_one(self):
        rng = np.random.default_rng(0)
        p = calculate_p_values(np.zeros(3), rng.standard_normal((50, 3)))
        np.testing.assert_array_equal(p, np.ones(3))

    def test_values_in_unit_interval(self):
        rng = np.random.default_rng(1)
        p = calculate_p_values(rng.standard_normal(10), rng.standard_normal((200, 10)))
        assert np.all((p >= 0) & (p <= 1))

    def test_grid_of_size_one_over_b(self):
        rng = np.random.default_rng(2)
        B = 40
        p = calculate_p_values(rng.standard_normal(5), rng.standard_normal((B, 5)))
        np.testing.assert_allclose(p * B, np.rint(p * B))


class TestSmoothing:
    def test_never_zero(self):
        """Phipson & Smyth correction ensures p > 0."""
        p = calculate_p_values(
            np.array([100.0, 100.0]), np.zeros((500, 2)), smoothing=True
        )
        np.testing.assert_allclose(p, [1 / 501, 1 / 501])

    def test_formula(self):
        model_coefs = np.array([0.5])
        permuted_coefs = np.array([[0.6], [0.1], [0.7], [0.0]])
        p = calculate_p_values(model_coefs, permuted_coefs, smoothing=True)
        np.testing.assert_allclose(p, [3 / 5])

    def test_unsmoothed_can_be_zero(self):
        p = calculate_p_values(np.array([100.0]), np.zeros((10, 1)))
        assert p[0] == 0.0


class TestZeroPermutations:
    def test_warns_and_returns_nan(self):
        with pytest.warns(ZeroPermutationsWarning):
            p = calculate_p_values(np.array([0.1, 0.2]), np.empty((0, 2)))
        assert p.shape == (2,)
        assert np.all(np.isnan(p))

    def test_flat_empty_array_accepted(self):
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", ZeroPermutationsWarning)
            p = calculate_p_values(np.array([0.1]), np.array([]))
        assert np.isnan(p[0])


class TestValidation:
    def test_shape_mismatch(self):
        with pytest.raises(InvalidInputError, match="shape"):
            calculate_p_values(np.zeros(3), np.zeros((10, 2)))

    def test_observed_must_be_1d(self):
        with pytest.raises(InvalidInputError, match="1-D"):
            calculate_p_values(np.zeros((1, 3)), np.zeros((10, 3)))

    def test_nan_coefficients_rejected(self):
        with pytest.raises(InvalidInputError, match="finite"):
            calculate_p_values(np.array([np.nan]), np.zeros((4, 1)))


def test_exceedance_counts_are_integers():
    counts = exceedance_counts(np.array([0.5, 0.0]), np.array([[1.0, 0.0], [0.1, 0.2]]))
    np.testing.assert_array_equal(counts, [1, 2])
