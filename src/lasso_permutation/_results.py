"""Typed result object for permutation-lasso inference.

A frozen dataclass that provides:

* **Attribute access** — ``result.q_values``, ``result.fdr_method``, etc.
* **Dict-like access** — ``result["q_values"]``, ``result.get("key")``,
  ``"key" in result`` for consumers that prefer bracket syntax.
* **Tabular access** — :meth:`LassoPermutationResult.to_frame` returns
  the one-row-per-term table consumed by reporting code, and
  :meth:`LassoPermutationResult.permuted_frame` the ``(B, p)`` null
  coefficients for diagnostic plots.
* **Serialisation** — ``.to_dict()`` returns a plain ``dict[str, Any]``
  with all NumPy types converted to native Python.

The result is frozen (immutable after construction) to communicate
that it is a snapshot of a completed run.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import TYPE_CHECKING, Any, ClassVar

import numpy as np
import pandas as pd

if TYPE_CHECKING:
    from ._context import FitContext

# ------------------------------------------------------------------ #
# Serialisation helper
# ------------------------------------------------------------------ #


def _numpy_to_python(obj: Any) -> Any:
    """Recursively convert NumPy scalars/arrays to Python-native types.

    Handles nested dicts, lists, np.ndarray, np.integer, and
    np.floating so that :meth:`to_dict` returns a fully
    JSON-serialisable structure.
    """
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, (np.integer, np.bool_)):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, dict):
        return {k: _numpy_to_python(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        converted = [_numpy_to_python(item) for item in obj]
        return type(obj)(converted)
    return obj


# ------------------------------------------------------------------ #
# Dict-compatibility mixin
# ------------------------------------------------------------------ #


class _DictAccessMixin:
    """Dict-like access convenience for result dataclasses.

    Supports three access patterns:

    1. ``result["key"]``     — raises ``KeyError`` on miss
    2. ``result.get(key, d)`` — returns *d* on miss (default ``None``)
    3. ``"key" in result``   — membership test
    """

    # Fields to exclude from to_dict() serialisation.
    _EXCLUDE_FROM_DICT: ClassVar[frozenset[str]] = frozenset({"context"})

    def __getitem__(self, key: str) -> Any:
        try:
            return getattr(self, key)
        except AttributeError:
            raise KeyError(key) from None

    def get(self, key: str, default: Any = None) -> Any:
        return getattr(self, key, default)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        return hasattr(self, key)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain, JSON-serialisable dictionary."""
        result: dict[str, Any] = {}
        for f in fields(self):  # type: ignore[arg-type]
            if f.name in self._EXCLUDE_FROM_DICT:
                continue
            result[f.name] = _numpy_to_python(getattr(self, f.name))
        return result


# ------------------------------------------------------------------ #
# LassoPermutationResult
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class LassoPermutationResult(_DictAccessMixin):
    """Result of :func:`~lasso_permutation.core.permutation_test_lasso`.

    All per-term arrays are ordered like ``feature_names``.
    """

    # ---- Terms & estimates -----------------------------------------
    feature_names: list[str]
    """Term identifiers (column order of X)."""

    target_name: str
    """Response column name."""

    model_coefs: np.ndarray
    """Observed lasso coefficients ``(p,)``; exact zeros kept."""

    intercept: float
    """Observed-fit intercept on the original scale."""

    permuted_coefs: np.ndarray
    """Permuted coefficient matrix ``(B, p)``, row = permutation index."""

    # ---- Inference -------------------------------------------------
    raw_empirical_p: np.ndarray
    """Empirical p-values ``(p,)``; NaN when ``n_permutations == 0``."""

    q_values: np.ndarray
    """Multiple-testing-adjusted p-values ``(p,)``."""

    monte_carlo_se: np.ndarray
    """Monte Carlo standard error of each unsmoothed proportion ``b / B``."""

    fdr_method: str
    """Correction procedure used for ``q_values``."""

    smoothing: bool
    """Whether ``(b + 1) / (B + 1)`` was used."""

    # ---- Model selection -------------------------------------------
    selected_lambda: float
    """Penalty chosen by cross-validation for the observed fit."""

    cv_summary: dict[str, Any]
    """Observed-fit CV record: ``lambdas``, ``cv_mean``, ``cv_se``,
    ``lambda_min``, ``lambda_1se``, ``loss_metric``, ``selection_rule``,
    ``fold_count``."""

    # ---- Run metadata ----------------------------------------------
    n_permutations: int
    """Number of permutations ``B``."""

    random_state: int | None
    """Root seed of the run."""

    n_retries: int
    """Re-draws spent on failed permutation fits."""

    diagnostics: dict[str, Any] = field(default_factory=dict)
    """Run-level diagnostics (permutation coverage, sample sizes)."""

    # ---- Computation context (not serialised) ----------------------
    context: FitContext | None = field(default=None, repr=False, compare=False)
    """Pipeline computation context.  Excluded from ``to_dict()``."""

    def to_frame(self) -> pd.DataFrame:
        """One row per term: ``term``, ``estimate``, ``p_value``, ``q_value``."""
        return pd.DataFrame(
            {
                "term": list(self.feature_names),
                "estimate": np.asarray(self.model_coefs, dtype=float),
                "p_value": np.asarray(self.raw_empirical_p, dtype=float),
                "q_value": np.asarray(self.q_values, dtype=float),
            }
        )

    def permuted_frame(self) -> pd.DataFrame:
        """Permuted coefficients as a ``(B, p)`` frame, columns = terms."""
        frame = pd.DataFrame(
            np.asarray(self.permuted_coefs, dtype=float),
            columns=list(self.feature_names),
        )
        frame.index.name = "permutation"
        return frame

    def significant_terms(self, alpha: float = 0.05) -> list[str]:
        """Terms with ``q_value < alpha``, in column order."""
        q = np.asarray(self.q_values, dtype=float)
        return [t for t, qv in zip(self.feature_names, q, strict=True) if qv < alpha]


__all__ = ["LassoPermutationResult"]
