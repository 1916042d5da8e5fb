"""End-to-end permutation inference for cross-validated lasso coefficients.

Cross-validated lasso produces point estimates but no analytic
p-values: the selection step invalidates classical Wald inference.
A permutation test sidesteps the problem by building the null
distribution of every coefficient empirically:

    Under H₀ the response carries no information about any predictor,
    so every rearrangement of y is equally likely.  Refitting the
    *whole* procedure (path, cross-validation, selection, refit) on a
    shuffled y yields one draw β* from the null distribution of the
    selected coefficients.

Repeating this B times and comparing |β*_j| with the observed |β_j|
gives an empirical p-value per term; a false-discovery-rate
correction across the p terms turns these into q-values.

Pipeline::

    make_dataset(X, y)                         validate, freeze
      └─ PermutationEngine.run()               map: observed + B refits
           └─ calculate_p_values()             reduce: per-term p
                └─ correct_p_values()          q-values (BH default)
                     └─ LassoPermutationResult

The aggregation and correction steps are barriers: they run once, on
the complete ``(B, p)`` matrix of permuted coefficients.
"""

from __future__ import annotations

import logging
import threading
import warnings

import numpy as np

from ._compat import DataFrameLike
from ._config import PermutationConfig
from ._context import FitContext
from ._results import LassoPermutationResult
from .dataset import make_dataset
from .diagnostics import compute_monte_carlo_se, compute_permutation_coverage
from .engine import PermutationEngine
from .exceptions import ZeroPermutationsWarning
from .fitter import RegularizedFitter
from .multitest import correct_p_values
from .pvalues import calculate_p_values, exceedance_counts

logger = logging.getLogger(__name__)


def permutation_test_lasso(
    X: DataFrameLike,
    y: DataFrameLike,
    n_permutations: int = 1_000,
    fold_count: int = 10,
    loss_metric: str = "misclassification",
    fdr_method: str = "BH",
    random_state: int | None = None,
    n_jobs: int | None = None,
    smoothing: bool = False,
    selection_rule: str = "min",
    n_lambda: int = 100,
    max_retries: int = 10,
    cancel: threading.Event | None = None,
    config: PermutationConfig | None = None,
) -> LassoPermutationResult:
    """Permutation p-values and q-values for lasso-logistic coefficients.

    Args:
        X: Design matrix ``(n, p)``.  Accepts pandas or Polars
            DataFrames and 2-D NumPy arrays (columns are then named
            ``var1 … varp``).  Column order defines the term order of
            every output.
        y: Binary response of length ``n`` with values in ``{0, 1}``.
        n_permutations: Number of response shuffles ``B``.  ``0`` is
            accepted but yields NaN p- and q-values with a
            :class:`~lasso_permutation.exceptions.ZeroPermutationsWarning`.
        fold_count: Cross-validation folds for every fit.
        loss_metric: ``"misclassification"`` (default), ``"deviance"``,
            ``"mse"`` or ``"mae"``.
        fdr_method: ``"BH"`` (default), ``"BY"``, ``"bonferroni"``,
            ``"holm"`` or ``"none"``.
        random_state: Root seed.  Fixed seeds give bit-identical
            results for any ``n_jobs``.
        n_jobs: Worker threads for the permutation loop.
        smoothing: Report ``(b + 1) / (B + 1)`` instead of ``b / B``.
        selection_rule: ``"min"`` (default) or ``"1se"``.
        n_lambda: Length of the regularization path.
        max_retries: Re-draws allowed for one failing permutation.
        cancel: Optional event; setting it aborts the run between
            batches.
        config: Options bundle.  When given, it replaces every option
            argument above.

    Returns:
        A :class:`~lasso_permutation.LassoPermutationResult`.

    Raises:
        InvalidInputError: Malformed data or options.
        DegenerateResponseError: ``y`` has a single class, or a
            permutation kept failing after ``max_retries`` re-draws.
        NumericalNonConvergenceError: No finite CV loss on the path.
        PermutationCancelledError: *cancel* was set during the run.
    """
    if config is None:
        config = PermutationConfig(
            fold_count=fold_count,
            loss_metric=loss_metric,
            n_permutations=n_permutations,
            random_state=random_state,
            fdr_method=fdr_method,
            smoothing=smoothing,
            selection_rule=selection_rule,
            n_lambda=n_lambda,
            max_retries=max_retries,
            n_jobs=n_jobs,
        )

    dataset = make_dataset(X, y, fold_count=config.fold_count)

    fitter = RegularizedFitter(
        fold_count=config.fold_count,
        loss_metric=config.loss_metric,
        n_lambda=config.n_lambda,
        selection_rule=config.selection_rule,
    )
    engine = PermutationEngine(
        fitter,
        n_permutations=config.n_permutations,
        random_state=config.random_state,
        n_jobs=config.n_jobs,
        max_retries=config.max_retries,
    )

    ctx = FitContext()
    logger.debug(
        "Running %d permutations on n=%d, p=%d with %r",
        config.n_permutations, dataset.n_samples, dataset.n_features, fitter,
    )
    run = engine.run(dataset, cancel=cancel, ctx=ctx)

    # ---- Reduce: empirical p-values and q-values -----------------
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always", ZeroPermutationsWarning)
        raw_p = calculate_p_values(
            run.observed, run.permuted, smoothing=config.smoothing
        )
    for w in caught:
        ctx.warnings_captured.append(str(w.message))
        warnings.warn(w.message, w.category, stacklevel=2)

    q_values = correct_p_values(raw_p, method=config.fdr_method)

    # Monte Carlo error is a property of the plain proportion b / B.
    if config.n_permutations > 0:
        proportion = exceedance_counts(run.observed, run.permuted) / config.n_permutations
    else:
        proportion = raw_p

    ctx.raw_empirical_p = raw_p
    ctx.q_values = q_values
    ctx.fdr_method = config.fdr_method
    ctx.smoothing = config.smoothing

    if run.n_retries:
        logger.debug("Spent %d re-draws on failed permutation fits", run.n_retries)

    coverage = compute_permutation_coverage(dataset.y, config.n_permutations)
    if config.n_permutations > coverage["n_distinct"]:
        warnings.warn(
            f"n_permutations={config.n_permutations} exceeds the "
            f"{coverage['n_distinct']} distinct arrangements of y; "
            f"repeated shuffles are certain.",
            UserWarning,
            stacklevel=2,
        )

    observed_fit = run.observed_fit
    cv_summary = {
        "lambdas": observed_fit.lambdas,
        "cv_mean": observed_fit.cv_mean,
        "cv_se": observed_fit.cv_se,
        "lambda_min": observed_fit.lambda_min,
        "lambda_1se": observed_fit.lambda_1se,
        "loss_metric": observed_fit.loss_metric,
        "selection_rule": fitter.selection_rule,
        "fold_count": fitter.fold_count,
    }
    diagnostics = {
        "n_observations": dataset.n_samples,
        "n_features": dataset.n_features,
        "n_cases": int(np.count_nonzero(dataset.y)),
        "n_nonzero": observed_fit.n_nonzero,
        "permutation_coverage": coverage["coverage_str"],
    }

    return LassoPermutationResult(
        feature_names=list(dataset.feature_names),
        target_name=dataset.target_name,
        model_coefs=run.observed,
        intercept=observed_fit.intercept,
        permuted_coefs=run.permuted,
        raw_empirical_p=raw_p,
        q_values=q_values,
        monte_carlo_se=compute_monte_carlo_se(proportion, config.n_permutations),
        fdr_method=config.fdr_method,
        smoothing=config.smoothing,
        selected_lambda=observed_fit.selected_lambda,
        cv_summary=cv_summary,
        n_permutations=config.n_permutations,
        random_state=config.random_state,
        n_retries=run.n_retries,
        diagnostics=diagnostics,
        context=ctx,
    )


__all__ = ["permutation_test_lasso"]
