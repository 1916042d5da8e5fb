"""Tests for the LassoPermutationResult container."""

import json

import numpy as np
import pytest

from lasso_permutation._context import FitContext
from lasso_permutation._results import LassoPermutationResult, _numpy_to_python


def _make_result(**overrides):
    kwargs = dict(
        feature_names=["a", "b", "c"],
        target_name="y",
        model_coefs=np.array([0.8, 0.0, -0.1]),
        intercept=0.2,
        permuted_coefs=np.array([[0.1, 0.0, 0.2], [0.0, 0.3, 0.0]]),
        raw_empirical_p=np.array([0.0, 1.0, 0.5]),
        q_values=np.array([0.0, 1.0, 0.75]),
        monte_carlo_se=np.array([0.0, 0.0, 0.35]),
        fdr_method="BH",
        smoothing=False,
        selected_lambda=0.05,
        cv_summary={"lambdas": np.array([0.1, 0.05]), "fold_count": np.int64(5)},
        n_permutations=2,
        random_state=1,
        n_retries=0,
        diagnostics={"n_observations": 40},
        context=FitContext(),
    )
    kwargs.update(overrides)
    return LassoPermutationResult(**kwargs)


class TestTabular:
    def test_to_frame(self):
        frame = _make_result().to_frame()
        assert list(frame.columns) == ["term", "estimate", "p_value", "q_value"]
        assert frame["term"].tolist() == ["a", "b", "c"]
        assert frame.loc[1, "estimate"] == 0.0
        assert frame.loc[2, "q_value"] == 0.75

    def test_permuted_frame(self):
        frame = _make_result().permuted_frame()
        assert frame.shape == (2, 3)
        assert frame.index.name == "permutation"
        assert list(frame.columns) == ["a", "b", "c"]

    def test_permuted_frame_empty(self):
        result = _make_result(permuted_coefs=np.empty((0, 3)))
        assert result.permuted_frame().shape == (0, 3)

    def test_significant_terms(self):
        assert _make_result().significant_terms() == ["a"]
        assert _make_result().significant_terms(alpha=0.8) == ["a", "c"]

    def test_significant_terms_ignores_nan(self):
        result = _make_result(q_values=np.full(3, np.nan))
        assert result.significant_terms() == []


class TestDictAccess:
    def test_getitem(self):
        result = _make_result()
        np.testing.assert_array_equal(result["q_values"], result.q_values)

    def test_missing_key(self):
        with pytest.raises(KeyError):
            _make_result()["nonexistent"]

    def test_get_and_contains(self):
        result = _make_result()
        assert result.get("fdr_method") == "BH"
        assert result.get("nonexistent", 7) == 7
        assert "q_values" in result
        assert 3 not in result

    def test_to_dict_is_json_serialisable(self):
        d = _make_result().to_dict()
        assert "context" not in d
        assert d["cv_summary"]["fold_count"] == 5
        json.dumps(d)

    def test_frozen(self):
        result = _make_result()
        with pytest.raises(AttributeError):
            result.fdr_method = "none"  # type: ignore[misc]


def test_numpy_to_python_nested():
    out = _numpy_to_python({"a": (np.float64(1.5), np.array([1, 2])), "b": np.bool_(True)})
    assert out == {"a": (1.5, [1, 2]), "b": 1}
