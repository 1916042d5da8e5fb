"""Permutation engine — observed fit plus B independent null refits.

The :class:`PermutationEngine` runs the map phase of the pipeline:

1. **Observed fit** — one cross-validated lasso fit on the real
   response, giving the observed coefficient vector.
2. **Null fits** — for each permutation index ``i`` in ``0..B-1``,
   shuffle the response with the generator derived from
   ``(random_state, i)`` and refit.  ``X`` is never permuted: only the
   response labels move, which preserves the joint distribution of
   the predictors while destroying any predictor–response association.

Each null fit depends only on ``(X, y, i)``, so the loop is an
embarrassingly parallel map over an explicit index range.  Results are
collected by index, never by completion order, which makes the output
bit-identical for any ``n_jobs``.

Failure policy
--------------
A permuted fit can fail when a cross-validation training fold ends up
with a single class (small or very unbalanced samples) or when no λ
yields a finite loss.  The failing permutation is **re-drawn** from
its own stream, up to ``max_retries`` times; if it still fails, the
whole run fails with the last error.  Failures never leak into other
permutations, and no undefined loss value is ever aggregated.  A
failure of the observed fit is raised immediately.

Cancellation
------------
Work is dispatched in batches of ``batch_size`` permutations.  When a
:class:`threading.Event` is passed as ``cancel``, it is checked before
each batch and :class:`~lasso_permutation.exceptions.PermutationCancelledError`
is raised once it is set.  :meth:`PermutationEngine.iter_samples`
offers a lazy, sequential alternative that the caller can abandon at
any point.
"""

from __future__ import annotations

import logging
import threading
import warnings
from collections.abc import Iterator
from dataclasses import dataclass

import numpy as np
from joblib import Parallel, delayed
from sklearn.exceptions import ConvergenceWarning

from ._config import get_n_jobs
from ._context import FitContext
from .dataset import Dataset
from .exceptions import (
    DegenerateResponseError,
    InvalidInputError,
    NumericalNonConvergenceError,
    PermutationCancelledError,
)
from .fitter import LassoCVFit, RegularizedFitter
from .permutations import count_distinct_labelings, permute_response, spawn_generators

logger = logging.getLogger(__name__)

_RETRYABLE = (DegenerateResponseError, NumericalNonConvergenceError)


@dataclass(frozen=True)
class PermutationRun:
    """Output of :meth:`PermutationEngine.run`.

    Attributes:
        observed: Observed coefficient vector ``(p,)``.
        observed_fit: Full cross-validation record of the observed fit.
        permuted: Permuted coefficients ``(B, p)``; row ``i`` comes
            from permutation index ``i``.
        n_retries: Total re-draws spent on failed permutation fits.
    """

    observed: np.ndarray
    observed_fit: LassoCVFit
    permuted: np.ndarray
    n_retries: int = 0

    @property
    def n_permutations(self) -> int:
        return int(self.permuted.shape[0])


class PermutationEngine:
    """Runs the observed fit and ``B`` response-permutation refits.

    Args:
        fitter: The cross-validated fitter applied to every response.
        n_permutations: Number of shuffles ``B`` (``>= 0``).
        random_state: Root seed; the run is reproducible given
            ``(random_state, n_permutations)``.
        n_jobs: Worker threads.  ``None`` defers to
            :func:`~lasso_permutation.get_n_jobs`.
        max_retries: Re-draws allowed for one failing permutation.
        batch_size: Permutations dispatched between cancellation
            checks.
    """

    def __init__(
        self,
        fitter: RegularizedFitter,
        *,
        n_permutations: int = 1_000,
        random_state: int | None = None,
        n_jobs: int | None = None,
        max_retries: int = 10,
        batch_size: int = 64,
    ) -> None:
        if isinstance(n_permutations, bool) or not isinstance(n_permutations, int):
            raise InvalidInputError("n_permutations must be an integer.")
        if n_permutations < 0:
            raise InvalidInputError(
                f"n_permutations must be >= 0, got {n_permutations}."
            )
        if max_retries < 0:
            raise InvalidInputError(f"max_retries must be >= 0, got {max_retries}.")
        if batch_size < 1:
            raise InvalidInputError(f"batch_size must be >= 1, got {batch_size}.")
        if n_jobs is not None and n_jobs == 0:
            raise InvalidInputError("n_jobs must be non-zero.")
        self.fitter = fitter
        self.n_permutations = n_permutations
        self.random_state = random_state
        self.n_jobs: int = n_jobs if n_jobs is not None else get_n_jobs()
        self.max_retries = max_retries
        self.batch_size = batch_size

    # ---- Observed ------------------------------------------------

    def fit_observed(self, dataset: Dataset) -> LassoCVFit:
        """Fit the unpermuted data (stream 0 of the seed split)."""
        observed_rng, _ = spawn_generators(self.random_state, 0)
        return self.fitter.fit_path(dataset.X, dataset.y, random_state=observed_rng)

    # ---- Null distribution ---------------------------------------

    def _fit_permutation(
        self,
        index: int,
        rng: np.random.Generator,
        dataset: Dataset,
    ) -> tuple[np.ndarray, int]:
        """Shuffle, refit, and re-draw on failure.

        Returns:
            ``(coef, n_retries)`` for permutation *index*.
        """
        last_exc: Exception | None = None
        for attempt in range(self.max_retries + 1):
            y_perm = permute_response(rng, dataset.y)
            try:
                coef = self.fitter.fit(dataset.X, y_perm, random_state=rng)
            except _RETRYABLE as exc:
                last_exc = exc
                logger.debug(
                    "Permutation %d attempt %d failed: %s", index, attempt, exc
                )
                continue
            return coef, attempt

        assert last_exc is not None  # noqa: S101
        raise type(last_exc)(
            f"Permutation {index} failed after {self.max_retries + 1} "
            f"attempts: {last_exc}"
        ) from last_exc

    def iter_samples(self, dataset: Dataset) -> Iterator[tuple[int, np.ndarray]]:
        """Lazily yield ``(index, coef)`` pairs in index order.

        Sequential; stopping the iteration abandons the remaining
        permutations.  Yields exactly what :meth:`run` would put in
        row ``index``.
        """
        _, rngs = spawn_generators(self.random_state, self.n_permutations)
        for i, rng in enumerate(rngs):
            coef, _ = self._fit_permutation(i, rng, dataset)
            yield i, coef

    def run(
        self,
        dataset: Dataset,
        *,
        cancel: threading.Event | None = None,
        ctx: FitContext | None = None,
    ) -> PermutationRun:
        """Run the observed fit and all ``B`` permutation fits.

        Args:
            dataset: Validated input data.
            cancel: Optional event checked between batches.
            ctx: Optional context to populate with run artifacts.

        Returns:
            A :class:`PermutationRun`.

        Raises:
            DegenerateResponseError: Observed fit failed, or a
                permutation exhausted its retries.
            NumericalNonConvergenceError: Same policy as above.
            PermutationCancelledError: *cancel* was set.
        """
        B = self.n_permutations
        p = dataset.n_features
        observed_rng, rngs = spawn_generators(self.random_state, B)

        observed_fit = self.fitter.fit_path(
            dataset.X, dataset.y, random_state=observed_rng
        )
        logger.debug(
            "Observed fit: %d of %d terms non-zero at lambda=%.6g",
            observed_fit.n_nonzero, p, observed_fit.selected_lambda,
        )

        permuted = np.empty((B, p))
        n_retries = 0
        parallel = Parallel(n_jobs=self.n_jobs, prefer="threads")

        for start in range(0, B, self.batch_size):
            if cancel is not None and cancel.is_set():
                raise PermutationCancelledError(start, B)
            stop = min(start + self.batch_size, B)
            # Filters are process-global; worker threads see this one for
            # the whole batch.
            with warnings.catch_warnings():
                warnings.filterwarnings("ignore", category=ConvergenceWarning)
                results = parallel(
                    delayed(self._fit_permutation)(i, rngs[i], dataset)
                    for i in range(start, stop)
                )
            # joblib returns results in submission order.
            for i, (coef, retries) in zip(range(start, stop), results, strict=True):
                permuted[i] = coef
                n_retries += retries
            logger.debug("Completed permutations %d-%d of %d", start, stop - 1, B)

        permuted.flags.writeable = False

        if ctx is not None:
            ctx.X = dataset.X
            ctx.y = dataset.y
            ctx.feature_names = list(dataset.feature_names)
            ctx.target_name = dataset.target_name
            ctx.fold_count = self.fitter.fold_count
            ctx.loss_metric = self.fitter.loss_metric
            ctx.selection_rule = self.fitter.selection_rule
            ctx.observed_fit = observed_fit
            ctx.coefficients = observed_fit.coef
            ctx.n_permutations = B
            ctx.random_state = self.random_state
            ctx.n_jobs = self.n_jobs
            ctx.batch_shape = permuted.shape
            ctx.n_retries = n_retries
            ctx.n_distinct_labelings = count_distinct_labelings(dataset.y)

        return PermutationRun(
            observed=observed_fit.coef,
            observed_fit=observed_fit,
            permuted=permuted,
            n_retries=n_retries,
        )


__all__ = ["PermutationEngine", "PermutationRun"]
