"""Tests for multiple-testing correction."""

import numpy as np
import pytest

from lasso_permutation.exceptions import InvalidInputError
from lasso_permutation.multitest import correct_p_values


class TestBenjaminiHochberg:
    def test_worked_example(self):
        q = correct_p_values(np.array([0.01, 0.04, 0.03, 0.005]))
        np.testing.assert_allclose(q, [0.02, 0.04, 0.04, 0.02])

    def test_running_minimum_from_the_top(self):
        q = correct_p_values(np.array([0.9, 0.95]))
        np.testing.assert_allclose(q, [0.95, 0.95])

    def test_monotone_in_p(self):
        rng = np.random.default_rng(7)
        p = rng.uniform(size=50)
        q = correct_p_values(p)
        order = np.argsort(p)
        assert np.all(np.diff(q[order]) >= -1e-15)

    def test_at_least_p_and_at_most_one(self):
        rng = np.random.default_rng(8)
        p = rng.uniform(size=30)
        q = correct_p_values(p)
        assert np.all(q >= p - 1e-15)
        assert np.all(q <= 1.0)

    def test_repeated_calls_identical(self):
        p = np.array([0.01, 0.04, 0.03, 0.005])
        np.testing.assert_array_equal(correct_p_values(p), correct_p_values(p))

    def test_order_preserved(self):
        p = np.array([0.005, 0.04, 0.01, 0.03])
        q = correct_p_values(p)
        perm = np.array([2, 0, 3, 1])
        np.testing.assert_allclose(correct_p_values(p[perm]), q[perm])

    def test_method_name_case_insensitive(self):
        p = np.array([0.01, 0.2])
        np.testing.assert_allclose(correct_p_values(p, "bh"), correct_p_values(p, "BH"))


class TestOtherMethods:
    def test_bonferroni(self):
        q = correct_p_values(np.array([0.01, 0.04, 0.03, 0.005]), method="bonferroni")
        np.testing.assert_allclose(q, [0.04, 0.16, 0.12, 0.02])

    def test_bonferroni_capped_at_one(self):
        q = correct_p_values(np.array([0.6, 0.7]), method="bonferroni")
        np.testing.assert_allclose(q, [1.0, 1.0])

    def test_by_is_more_conservative_than_bh(self):
        p = np.array([0.01, 0.02, 0.03, 0.2])
        assert np.all(correct_p_values(p, "BY") >= correct_p_values(p, "BH"))

    def test_holm(self):
        q = correct_p_values(np.array([0.01, 0.04, 0.03]), method="holm")
        np.testing.assert_allclose(q, [0.03, 0.06, 0.06])

    def test_none_returns_copy(self):
        p = np.array([0.2, 0.5])
        q = correct_p_values(p, method="none")
        np.testing.assert_array_equal(q, p)
        assert q is not p


class TestNaNAndValidation:
    def test_nan_passthrough(self):
        q = correct_p_values(np.array([0.01, np.nan, 0.04]))
        assert np.isnan(q[1])
        # NaN entries do not count toward m.
        np.testing.assert_allclose(q[[0, 2]], [0.02, 0.04])

    def test_all_nan(self):
        q = correct_p_values(np.array([np.nan, np.nan]))
        assert np.all(np.isnan(q))

    def test_unknown_method(self):
        with pytest.raises(InvalidInputError, match="Unknown fdr_method"):
            correct_p_values(np.array([0.1]), method="storey")

    @pytest.mark.parametrize("bad", [-0.1, 1.5])
    def test_out_of_range(self, bad):
        with pytest.raises(InvalidInputError, match=r"\[0, 1\]"):
            correct_p_values(np.array([0.1, bad]))

    def test_must_be_1d(self):
        with pytest.raises(InvalidInputError, match="1-D"):
            correct_p_values(np.full((2, 2), 0.5))

    def test_empty_input(self):
        assert correct_p_values(np.array([])).shape == (0,)
