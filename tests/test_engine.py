"""Unit tests for PermutationEngine.

Most tests run the engine on a cheap stand-in fitter (a plain
correlation score) so that scheduling, retry and cancellation
behaviour can be pinned without paying for cross-validated fits.  A
few tests use the real :class:`RegularizedFitter` on a small problem.
"""

from __future__ import annotations

import threading
import warnings

import numpy as np
import pytest
from sklearn.exceptions import ConvergenceWarning

from lasso_permutation._context import FitContext
from lasso_permutation.dataset import make_dataset
from lasso_permutation.engine import PermutationEngine, PermutationRun
from lasso_permutation.exceptions import (
    DegenerateResponseError,
    InvalidInputError,
    NumericalNonConvergenceError,
    PermutationCancelledError,
)
from lasso_permutation.fitter import LassoCVFit, RegularizedFitter

# ------------------------------------------------------------------ #
# Shared fixtures
# ------------------------------------------------------------------ #

_SEED = 42
_N_PERMS = 8  # small for speed; enough to test shapes


class _ScoreFitter:
    """Stand-in fitter: coefficient j is ``x_jᵀ (y − ȳ) / n``."""

    fold_count = 3
    loss_metric = "deviance"
    selection_rule = "min"

    def __init__(self):
        self.n_calls = 0

    def fit_path(self, X, y, random_state=None):
        self.n_calls += 1
        coef = X.T @ (y - y.mean()) / X.shape[0]
        coef.flags.writeable = False
        nan = float("nan")
        return LassoCVFit(
            lambdas=np.empty(0),
            cv_mean=np.empty(0),
            cv_se=np.empty(0),
            lambda_min=nan,
            lambda_1se=nan,
            selected_lambda=nan,
            selected_index=-1,
            coef=coef,
            intercept=0.0,
            loss_metric=self.loss_metric,
        )

    def fit(self, X, y, random_state=None):
        return self.fit_path(X, y, random_state=random_state).coef


class _FlakyFitter(_ScoreFitter):
    """Fails the first ``n_failures`` permuted fits, then behaves."""

    def __init__(self, n_failures, error=DegenerateResponseError):
        super().__init__()
        self.n_failures = n_failures
        self.error = error
        self.n_fit_calls = 0

    def fit(self, X, y, random_state=None):
        self.n_fit_calls += 1
        if self.n_fit_calls <= self.n_failures:
            raise self.error("Training data of fold 0 contains a single class.")
        return super().fit(X, y, random_state=random_state)


class _CancellingFitter(_ScoreFitter):
    """Sets *event* once ``after`` permuted fits have completed."""

    def __init__(self, event, after):
        super().__init__()
        self.event = event
        self.after = after
        self.n_fit_calls = 0

    def fit(self, X, y, random_state=None):
        self.n_fit_calls += 1
        if self.n_fit_calls >= self.after:
            self.event.set()
        return super().fit(X, y, random_state=random_state)


@pytest.fixture()
def dataset():
    rng = np.random.default_rng(_SEED)
    n, p = 60, 4
    X = rng.standard_normal((n, p))
    logits = 2.0 * X[:, 0]
    y = rng.binomial(1, 1 / (1 + np.exp(-logits))).astype(float)
    return make_dataset(X, y)


@pytest.fixture()
def small_fitter():
    return RegularizedFitter(fold_count=3, loss_metric="deviance", n_lambda=8)


# ------------------------------------------------------------------ #
# Construction
# ------------------------------------------------------------------ #


class TestConstruction:
    def test_stores_attributes(self):
        fitter = _ScoreFitter()
        engine = PermutationEngine(fitter, n_permutations=5, random_state=1, n_jobs=2)
        assert engine.fitter is fitter
        assert engine.n_permutations == 5
        assert engine.random_state == 1
        assert engine.n_jobs == 2

    def test_n_jobs_defaults_to_config(self):
        import lasso_permutation._config as _cfg

        _cfg._n_jobs_override = 3
        try:
            engine = PermutationEngine(_ScoreFitter())
            assert engine.n_jobs == 3
        finally:
            _cfg._n_jobs_override = None

    @pytest.mark.parametrize(
        ("kwargs", "match"),
        [
            ({"n_permutations": -1}, "n_permutations"),
            ({"n_permutations": True}, "n_permutations"),
            ({"n_permutations": 2.5}, "n_permutations"),
            ({"max_retries": -1}, "max_retries"),
            ({"batch_size": 0}, "batch_size"),
            ({"n_jobs": 0}, "n_jobs"),
        ],
    )
    def test_invalid(self, kwargs, match):
        with pytest.raises(InvalidInputError, match=match):
            PermutationEngine(_ScoreFitter(), **kwargs)


# ------------------------------------------------------------------ #
# Shapes and reproducibility
# ------------------------------------------------------------------ #


class TestRun:
    def test_shapes(self, dataset):
        engine = PermutationEngine(
            _ScoreFitter(), n_permutations=_N_PERMS, random_state=_SEED
        )
        run = engine.run(dataset)
        assert isinstance(run, PermutationRun)
        assert run.observed.shape == (4,)
        assert run.permuted.shape == (_N_PERMS, 4)
        assert run.n_permutations == _N_PERMS
        assert not run.permuted.flags.writeable

    def test_zero_permutations(self, dataset):
        fitter = _ScoreFitter()
        engine = PermutationEngine(fitter, n_permutations=0, random_state=_SEED)
        run = engine.run(dataset)
        assert run.permuted.shape == (0, 4)
        assert fitter.n_calls == 1

    def test_one_fit_per_permutation_plus_observed(self, dataset):
        fitter = _ScoreFitter()
        PermutationEngine(fitter, n_permutations=_N_PERMS, random_state=0).run(dataset)
        assert fitter.n_calls == _N_PERMS + 1

    def test_reproducible(self, dataset):
        kwargs = dict(n_permutations=_N_PERMS, random_state=_SEED)
        a = PermutationEngine(_ScoreFitter(), **kwargs).run(dataset)
        b = PermutationEngine(_ScoreFitter(), **kwargs).run(dataset)
        np.testing.assert_array_equal(a.permuted, b.permuted)

    def test_prefix_stable_in_b(self, dataset):
        """Row i depends on (seed, i) only, not on how many rows follow."""
        short = PermutationEngine(_ScoreFitter(), n_permutations=3, random_state=5)
        long = PermutationEngine(_ScoreFitter(), n_permutations=10, random_state=5)
        np.testing.assert_array_equal(
            short.run(dataset).permuted, long.run(dataset).permuted[:3]
        )

    def test_batch_size_does_not_change_results(self, dataset):
        kwargs = dict(n_permutations=_N_PERMS, random_state=_SEED)
        a = PermutationEngine(_ScoreFitter(), batch_size=3, **kwargs).run(dataset)
        b = PermutationEngine(_ScoreFitter(), batch_size=64, **kwargs).run(dataset)
        np.testing.assert_array_equal(a.permuted, b.permuted)

    def test_different_seeds_differ(self, dataset):
        a = PermutationEngine(_ScoreFitter(), n_permutations=4, random_state=1).run(dataset)
        b = PermutationEngine(_ScoreFitter(), n_permutations=4, random_state=2).run(dataset)
        assert not np.array_equal(a.permuted, b.permuted)

    def test_observed_matches_fit_observed(self, dataset, small_fitter):
        engine = PermutationEngine(small_fitter, n_permutations=2, random_state=_SEED)
        run = engine.run(dataset)
        np.testing.assert_array_equal(run.observed, engine.fit_observed(dataset).coef)

    def test_sequential_and_parallel_identical(self, dataset, small_fitter):
        kwargs = dict(n_permutations=_N_PERMS, random_state=_SEED)
        seq = PermutationEngine(small_fitter, n_jobs=1, **kwargs).run(dataset)
        par = PermutationEngine(small_fitter, n_jobs=2, **kwargs).run(dataset)
        np.testing.assert_array_equal(seq.observed, par.observed)
        np.testing.assert_array_equal(seq.permuted, par.permuted)

    def test_iter_samples_matches_run(self, dataset, small_fitter):
        engine = PermutationEngine(
            small_fitter, n_permutations=4, random_state=_SEED
        )
        run = engine.run(dataset)
        samples = list(engine.iter_samples(dataset))
        assert [i for i, _ in samples] == [0, 1, 2, 3]
        for i, coef in samples:
            np.testing.assert_array_equal(coef, run.permuted[i])

    def test_iter_samples_is_lazy(self, dataset):
        fitter = _ScoreFitter()
        engine = PermutationEngine(fitter, n_permutations=100, random_state=0)
        it = engine.iter_samples(dataset)
        next(it)
        next(it)
        assert fitter.n_calls == 2


# ------------------------------------------------------------------ #
# Failure policy
# ------------------------------------------------------------------ #


class TestRetries:
    def test_failed_fits_are_redrawn(self, dataset):
        fitter = _FlakyFitter(n_failures=3)
        engine = PermutationEngine(
            fitter, n_permutations=_N_PERMS, random_state=0, n_jobs=1, max_retries=5
        )
        run = engine.run(dataset)
        assert run.n_retries == 3
        assert np.all(np.isfinite(run.permuted))

    def test_retries_exhausted_raises_same_type(self, dataset):
        fitter = _FlakyFitter(n_failures=10**6)
        engine = PermutationEngine(
            fitter, n_permutations=2, random_state=0, n_jobs=1, max_retries=2
        )
        with pytest.raises(DegenerateResponseError, match="failed after 3 attempts"):
            engine.run(dataset)
        assert fitter.n_fit_calls == 3

    def test_non_convergence_is_retried(self, dataset):
        fitter = _FlakyFitter(n_failures=1, error=NumericalNonConvergenceError)
        engine = PermutationEngine(fitter, n_permutations=2, random_state=0, n_jobs=1)
        assert engine.run(dataset).n_retries == 1

    def test_zero_retries_fails_immediately(self, dataset):
        fitter = _FlakyFitter(n_failures=1)
        engine = PermutationEngine(
            fitter, n_permutations=2, random_state=0, n_jobs=1, max_retries=0
        )
        with pytest.raises(DegenerateResponseError, match="failed after 1 attempts"):
            engine.run(dataset)

    def test_retry_draws_a_fresh_shuffle(self, dataset):
        """A retried permutation differs from the un-retried first draw."""
        clean = PermutationEngine(
            _ScoreFitter(), n_permutations=1, random_state=0, n_jobs=1
        ).run(dataset)
        retried = PermutationEngine(
            _FlakyFitter(n_failures=1), n_permutations=1, random_state=0, n_jobs=1
        ).run(dataset)
        assert not np.array_equal(clean.permuted[0], retried.permuted[0])


# ------------------------------------------------------------------ #
# Cancellation and context
# ------------------------------------------------------------------ #


class TestCancellation:
    def test_cancel_before_start(self, dataset):
        event = threading.Event()
        event.set()
        engine = PermutationEngine(_ScoreFitter(), n_permutations=4, random_state=0)
        with pytest.raises(PermutationCancelledError) as excinfo:
            engine.run(dataset, cancel=event)
        assert excinfo.value.completed == 0
        assert excinfo.value.requested == 4

    def test_cancel_between_batches(self, dataset):
        event = threading.Event()
        fitter = _CancellingFitter(event, after=1)
        engine = PermutationEngine(
            fitter, n_permutations=_N_PERMS, random_state=0, n_jobs=1, batch_size=2
        )
        with pytest.raises(PermutationCancelledError, match="2 of 8"):
            engine.run(dataset, cancel=event)
        assert fitter.n_fit_calls == 2

    def test_unset_event_runs_to_completion(self, dataset):
        engine = PermutationEngine(_ScoreFitter(), n_permutations=4, random_state=0)
        run = engine.run(dataset, cancel=threading.Event())
        assert run.permuted.shape == (4, 4)


def test_context_populated(dataset):
    ctx = FitContext()
    engine = PermutationEngine(_ScoreFitter(), n_permutations=3, random_state=7)
    engine.run(dataset, ctx=ctx)
    assert ctx.feature_names == ["var1", "var2", "var3", "var4"]
    assert ctx.batch_shape == (3, 4)
    assert ctx.n_permutations == 3
    assert ctx.random_state == 7
    assert ctx.fold_count == 3
    assert ctx.coefficients is not None
    assert ctx.n_distinct_labelings > 3


@pytest.mark.parametrize("n_jobs", [1, 4])
def test_solver_warnings_stay_inside_workers(dataset, n_jobs):
    """Capped-iteration fits on worker threads never warn the caller."""
    fitter = RegularizedFitter(fold_count=3, n_lambda=6, max_iter=3)
    engine = PermutationEngine(
        fitter, n_permutations=16, random_state=0, n_jobs=n_jobs, batch_size=4
    )
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        for _ in range(3):
            engine.run(dataset)
    assert not [w for w in caught if issubclass(w.category, ConvergenceWarning)]
