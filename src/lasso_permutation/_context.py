"""Computation context — mutable accumulator for pipeline artifacts.

A :class:`FitContext` travels through the permutation-lasso pipeline,
collecting intermediate artifacts at their natural computation points.
Downstream consumers (reporting, plotting, debugging) read from the
context instead of re-computing.

The context is **not** part of the public serialisation API: it carries
NumPy arrays and fitted-path objects that should not be JSON'd.
:meth:`~_results.LassoPermutationResult.to_dict` skips it
automatically.

Lifecycle::

    ┌──────────────────────────────────────────────┐
    │  permutation_test_lasso()                    │
    │  ├─ ctx = FitContext()                       │
    │  ├─ PermutationEngine(…).run(…, ctx=ctx)     │
    │  │   ├─ ctx.X / ctx.y / ctx.feature_names    │
    │  │   ├─ ctx.observed_fit = fitter.fit_path() │
    │  │   ├─ ctx.coefficients = observed coef     │
    │  │   └─ ctx.batch_shape / ctx.n_retries      │
    │  ├─ calculate_p_values(…)                    │
    │  ├─ correct_p_values(…)                      │
    │  │   └─ ctx.raw_empirical_p / ctx.q_values   │
    │  └─ result.context = ctx                     │
    └──────────────────────────────────────────────┘
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np


@dataclass
class FitContext:
    """Mutable accumulator for computation artifacts.

    Every field defaults to ``None`` (or an empty container) so the
    context can be created empty at the start of the pipeline and
    populated incrementally.  A ``None`` field means that pipeline
    stage has not run yet.
    """

    # ---- Inputs --------------------------------------------------
    X: np.ndarray | None = None
    """Read-only design matrix ``(n, p)``."""

    y: np.ndarray | None = None
    """Read-only observed response ``(n,)``."""

    feature_names: list[str] | None = None
    """Term identifiers (the VariableSet), in column order."""

    target_name: str | None = None
    """Response column name."""

    # ---- Fitter --------------------------------------------------
    fold_count: int | None = None
    loss_metric: str | None = None
    selection_rule: str | None = None

    # ---- Observed fit --------------------------------------------
    observed_fit: Any = None
    """:class:`~lasso_permutation.fitter.LassoCVFit` of the observed data."""

    coefficients: np.ndarray | None = None
    """Observed aligned coefficient vector ``(p,)``."""

    # ---- Permutation metadata ------------------------------------
    n_permutations: int | None = None
    random_state: int | None = None
    n_jobs: int | None = None

    batch_shape: tuple[int, ...] | None = None
    """Shape of the permuted-coefficients matrix ``(B, p)``."""

    n_retries: int = 0
    """Total re-draws spent on failed permutation fits."""

    n_distinct_labelings: int | None = None
    """``C(n, k)``: distinct arrangements of the binary response."""

    # ---- Inference -----------------------------------------------
    raw_empirical_p: np.ndarray | None = None
    q_values: np.ndarray | None = None
    fdr_method: str | None = None
    smoothing: bool | None = None

    # ---- Warnings ------------------------------------------------
    warnings_captured: list[str] = field(default_factory=list)
    """Warning messages raised during the pipeline."""


__all__ = ["FitContext"]
