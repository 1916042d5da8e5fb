"""Cross-validated L1-penalised logistic regression.

:class:`RegularizedFitter` is the leaf capability of the pipeline:
given any binary response it returns one coefficient per column of the
design matrix, selected by k-fold cross-validation over a
regularization path.

Regularization path
-------------------
Following the glmnet convention, the penalised objective is

    -(1/n) · loglik(β₀, β) + λ · ||β||₁

on standardised columns (population SD).  The largest useful penalty
is the one at which every slope is exactly zero:

    λ_max = max_j |x_jᵀ (y − ȳ)| / n

and the path is ``n_lambda`` values log-spaced from λ_max down to
``λ_max · lambda_min_ratio`` (0.01 when n < p, 1e-4 otherwise).

scikit-learn's ``LogisticRegression`` minimises
``C · Σ logloss + ||β||₁``, so dividing through by ``C · n`` gives the
mapping ``C = 1 / (n · λ)``.  The solver is warm-started from the
previous (stronger) penalty along the path.

Model selection
---------------
For each λ the fold losses are averaged, weighted by fold size.
``"min"`` selects the λ with the smallest mean loss; ties go to the
first minimiser along the path, i.e. the *largest* tied λ (glmnet's
``lambda.min``).  ``"1se"`` selects the largest λ whose mean loss is
within one standard error of that minimum (glmnet's ``lambda.1se``).
The model is then refitted on all observations at the selected λ.

Alignment
---------
Columns with zero variance cannot be standardised and are excluded
from the fit.  Their coefficients, like any coefficient the penalty
drives to zero, are reported as exactly ``0.0``: the returned vector
always has one entry per column, in column order.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass

import numpy as np
from scipy.special import expit
from sklearn.exceptions import ConvergenceWarning
from sklearn.linear_model import LogisticRegression
from sklearn.metrics import log_loss, mean_absolute_error, mean_squared_error, zero_one_loss
from sklearn.model_selection import KFold, StratifiedKFold

from ._config import LOSS_METRICS, SELECTION_RULES, normalise_choice
from .exceptions import (
    DegenerateResponseError,
    InvalidInputError,
    NumericalNonConvergenceError,
)

logger = logging.getLogger(__name__)

# scikit-learn 1.8 deprecates ``penalty``; pure L1 is then ``l1_ratio=1``.
_L1_PARAMS: dict = (
    {"penalty": "l1"}
    if LogisticRegression().get_params().get("penalty", "deprecated") != "deprecated"
    else {"l1_ratio": 1.0}
)

# ------------------------------------------------------------------ #
# Cross-validation losses
# ------------------------------------------------------------------ #
#
# Every loss receives the held-out labels and the predicted
# probabilities P(y = 1).  Lower is better for all of them.


def _misclassification(y_true: np.ndarray, prob: np.ndarray) -> float:
    return float(zero_one_loss(y_true, (prob > 0.5).astype(float)))


def _deviance(y_true: np.ndarray, prob: np.ndarray) -> float:
    # Binomial deviance per observation = 2 × mean log-loss.
    return float(2.0 * log_loss(y_true, prob, labels=[0.0, 1.0]))


def _mse(y_true: np.ndarray, prob: np.ndarray) -> float:
    return float(mean_squared_error(y_true, prob))


def _mae(y_true: np.ndarray, prob: np.ndarray) -> float:
    return float(mean_absolute_error(y_true, prob))


_LOSSES = {
    "misclassification": _misclassification,
    "deviance": _deviance,
    "mse": _mse,
    "mae": _mae,
}


# ------------------------------------------------------------------ #
# Result container
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class LassoCVFit:
    """Full record of one cross-validated path fit.

    Attributes:
        lambdas: Decreasing penalty grid, shape ``(n_lambda,)``.
        cv_mean: Mean cross-validated loss per λ.
        cv_se: Standard error of the cross-validated loss per λ.
        lambda_min: λ minimising ``cv_mean``.
        lambda_1se: Largest λ within one SE of the minimum.
        selected_lambda: λ used for the final refit.
        selected_index: Position of ``selected_lambda`` in ``lambdas``.
        coef: Aligned coefficient vector (original scale), shape ``(p,)``.
        intercept: Intercept on the original scale.
        loss_metric: Name of the cross-validation loss.
    """

    lambdas: np.ndarray
    cv_mean: np.ndarray
    cv_se: np.ndarray
    lambda_min: float
    lambda_1se: float
    selected_lambda: float
    selected_index: int
    coef: np.ndarray
    intercept: float
    loss_metric: str

    @property
    def n_nonzero(self) -> int:
        """Number of terms with a non-zero coefficient."""
        return int(np.count_nonzero(self.coef))


# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def _standardize(
    X: np.ndarray, standardize: bool
) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Centre/scale the non-constant columns of *X*.

    Returns:
        ``(Xs, center, scale, active)`` where ``Xs`` holds only the
        active (non-constant) columns and ``active`` is a boolean mask
        over the original columns.
    """
    center = X.mean(axis=0)
    sd = X.std(axis=0)
    active = sd > 0
    if not standardize:
        return X[:, active], np.zeros(int(active.sum())), np.ones(int(active.sum())), active
    Xs = (X[:, active] - center[active]) / sd[active]
    return Xs, center[active], sd[active], active


def _null_intercept(y: np.ndarray) -> float:
    """Logit of the mean response (intercept-only model)."""
    ybar = float(np.clip(y.mean(), 1e-10, 1 - 1e-10))
    return float(np.log(ybar / (1.0 - ybar)))


class RegularizedFitter:
    """Lasso-logistic fitter with k-fold selection of the penalty.

    Args:
        fold_count: Number of cross-validation folds (``k >= 2``).
        loss_metric: ``"misclassification"`` (default), ``"deviance"``,
            ``"mse"`` or ``"mae"``.
        n_lambda: Length of the regularization path.
        lambda_min_ratio: Smallest λ as a fraction of λ_max.  ``None``
            picks 0.01 when ``n < p`` and 1e-4 otherwise.
        selection_rule: ``"min"`` (default) or ``"1se"``.
        standardize: Fit on standardised columns and map the
            coefficients back to the original scale.
        max_iter: Solver iteration cap per λ.
        tol: Solver tolerance.
    """

    def __init__(
        self,
        fold_count: int = 10,
        loss_metric: str = "misclassification",
        *,
        n_lambda: int = 100,
        lambda_min_ratio: float | None = None,
        selection_rule: str = "min",
        standardize: bool = True,
        max_iter: int = 1_000,
        tol: float = 1e-4,
    ) -> None:
        if isinstance(fold_count, bool) or not isinstance(fold_count, int) or fold_count < 2:
            raise InvalidInputError(
                f"fold_count must be an integer >= 2, got {fold_count!r}."
            )
        if isinstance(n_lambda, bool) or not isinstance(n_lambda, int) or n_lambda < 1:
            raise InvalidInputError(
                f"n_lambda must be a positive integer, got {n_lambda!r}."
            )
        if lambda_min_ratio is not None and not 0 < lambda_min_ratio < 1:
            raise InvalidInputError(
                f"lambda_min_ratio must lie in (0, 1), got {lambda_min_ratio!r}."
            )
        self.fold_count = fold_count
        self.loss_metric = normalise_choice(loss_metric, LOSS_METRICS, "loss_metric")
        self.n_lambda = n_lambda
        self.lambda_min_ratio = lambda_min_ratio
        self.selection_rule = normalise_choice(
            selection_rule, SELECTION_RULES, "selection_rule"
        )
        self.standardize = standardize
        self.max_iter = max_iter
        self.tol = tol

    def __repr__(self) -> str:
        return (
            f"RegularizedFitter(fold_count={self.fold_count}, "
            f"loss_metric={self.loss_metric!r}, n_lambda={self.n_lambda}, "
            f"selection_rule={self.selection_rule!r})"
        )

    # ---- Public API ------------------------------------------------

    def fit(
        self,
        X: np.ndarray,
        y: np.ndarray,
        random_state: int | np.random.Generator | None = None,
    ) -> np.ndarray:
        """Return the aligned, read-only coefficient vector for ``(X, y)``."""
        return self.fit_path(X, y, random_state=random_state).coef

    def fit_path(
        self,
        X: np.ndarray,
        y: np.ndarray,
        random_state: int | np.random.Generator | None = None,
    ) -> LassoCVFit:
        """Cross-validate the path, select λ, and refit on all rows.

        Args:
            X: Design matrix ``(n, p)``.
            y: Binary response ``(n,)``.
            random_state: Seed or generator for the fold assignment.

        Returns:
            A :class:`LassoCVFit`.

        Raises:
            InvalidInputError: If shapes disagree or ``n < fold_count``.
            DegenerateResponseError: If *y*, or the training part of
                any fold, contains a single class.
            NumericalNonConvergenceError: If no λ has a finite
                cross-validated loss.
        """
        X = np.asarray(X, dtype=float)
        y = np.asarray(y, dtype=float)
        n, p = X.shape
        if y.shape != (n,):
            raise InvalidInputError(
                f"y must have shape ({n},), got {y.shape}."
            )
        if n < self.fold_count:
            raise InvalidInputError(
                f"n_samples={n} is smaller than fold_count={self.fold_count}."
            )
        classes, counts = np.unique(y, return_counts=True)
        if classes.size < 2:
            raise DegenerateResponseError("y contains a single class.")

        rng = np.random.default_rng(random_state)
        fold_seed = int(rng.integers(0, 2**32 - 1))

        Xs, _, _, active = _standardize(X, self.standardize)
        if not active.any():
            # Nothing to penalise: intercept-only model.
            coef = np.zeros(p)
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
                intercept=_null_intercept(y),
                loss_metric=self.loss_metric,
            )

        lambdas = self.lambda_path(Xs, y)

        # ---- Cross-validation ------------------------------------
        if counts.min() >= self.fold_count:
            splitter = StratifiedKFold(
                n_splits=self.fold_count, shuffle=True, random_state=fold_seed
            )
        else:
            splitter = KFold(
                n_splits=self.fold_count, shuffle=True, random_state=fold_seed
            )

        loss_fn = _LOSSES[self.loss_metric]
        fold_losses = np.empty((self.fold_count, lambdas.size))
        fold_weights = np.empty(self.fold_count)

        for k, (train, test) in enumerate(splitter.split(X, y)):
            y_train = y[train]
            if np.unique(y_train).size < 2:
                raise DegenerateResponseError(
                    f"Training data of fold {k} contains a single class."
                )
            X_train, center, scale, fold_active = _standardize(
                X[train], self.standardize
            )
            X_test = X[test][:, fold_active]
            X_test = (X_test - center) / scale
            coefs, intercepts = self._solve_path(X_train, y_train, lambdas)
            # (n_test, n_lambda) linear predictors for the whole path.
            eta = X_test @ coefs.T + intercepts[np.newaxis, :]
            prob = expit(eta)
            for j in range(lambdas.size):
                fold_losses[k, j] = loss_fn(y[test], prob[:, j])
            fold_weights[k] = test.size

        cv_mean, cv_se = self._summarise_folds(fold_losses, fold_weights)
        idx_min, idx_1se = self._select(cv_mean, cv_se)
        idx = idx_min if self.selection_rule == "min" else idx_1se
        logger.debug(
            "Selected lambda %.6g (index %d of %d, rule=%s, cv %s=%.4f)",
            lambdas[idx], idx, lambdas.size, self.selection_rule,
            self.loss_metric, cv_mean[idx],
        )

        # ---- Refit on all observations ---------------------------
        Xs, center, scale, active = _standardize(X, self.standardize)
        coefs, intercepts = self._solve_path(Xs, y, lambdas[: idx + 1])
        coef_s = coefs[-1]
        intercept = float(intercepts[-1] - np.sum(coef_s * center / scale))

        coef = np.zeros(p)
        coef[active] = coef_s / scale
        coef.flags.writeable = False

        return LassoCVFit(
            lambdas=lambdas,
            cv_mean=cv_mean,
            cv_se=cv_se,
            lambda_min=float(lambdas[idx_min]),
            lambda_1se=float(lambdas[idx_1se]),
            selected_lambda=float(lambdas[idx]),
            selected_index=int(idx),
            coef=coef,
            intercept=intercept,
            loss_metric=self.loss_metric,
        )

    def lambda_path(self, Xs: np.ndarray, y: np.ndarray) -> np.ndarray:
        """Decreasing, log-spaced penalty grid for standardised *Xs*."""
        n, p = Xs.shape
        lambda_max = float(np.max(np.abs(Xs.T @ (y - y.mean()))) / n)
        if lambda_max <= 0.0:
            # No column correlates with y at all; any grid gives β = 0.
            lambda_max = 1.0 / n
        ratio = self.lambda_min_ratio
        if ratio is None:
            ratio = 0.01 if n < p else 1e-4
        if self.n_lambda == 1:
            return np.array([lambda_max])
        return lambda_max * np.logspace(0.0, np.log10(ratio), self.n_lambda)

    # ---- Internals ------------------------------------------------

    def _solve_path(
        self, Xs: np.ndarray, y: np.ndarray, lambdas: np.ndarray
    ) -> tuple[np.ndarray, np.ndarray]:
        """Warm-started L1 fits along *lambdas*.

        Returns:
            ``(coefs, intercepts)`` of shapes ``(n_lambda, p_active)``
            and ``(n_lambda,)``.
        """
        n = Xs.shape[0]
        model = LogisticRegression(
            solver="saga",
            warm_start=True,
            # Fixed seed for saga's sample order keeps fits deterministic.
            random_state=0,
            max_iter=self.max_iter,
            tol=self.tol,
            **_L1_PARAMS,
        )
        coefs = np.empty((lambdas.size, Xs.shape[1]))
        intercepts = np.empty(lambdas.size)
        n_unconverged = 0
        for j, lam in enumerate(lambdas):
            model.set_params(C=1.0 / (n * lam))
            with warnings.catch_warnings():
                warnings.filterwarnings("ignore", category=ConvergenceWarning)
                warnings.filterwarnings("ignore", category=FutureWarning)
                model.fit(Xs, y)
            if int(np.max(model.n_iter_)) >= self.max_iter:
                n_unconverged += 1
            coefs[j] = model.coef_.ravel()
            intercepts[j] = float(model.intercept_[0])
        if n_unconverged:
            logger.debug(
                "Solver did not converge for %d of %d lambda values.",
                n_unconverged, lambdas.size,
            )
        return coefs, intercepts

    @staticmethod
    def _summarise_folds(
        fold_losses: np.ndarray, fold_weights: np.ndarray
    ) -> tuple[np.ndarray, np.ndarray]:
        """Fold-size-weighted mean and standard error per λ."""
        w = fold_weights / fold_weights.sum()
        with np.errstate(invalid="ignore"):
            cv_mean = w @ fold_losses
            var = w @ (fold_losses - cv_mean[np.newaxis, :]) ** 2
            cv_se = np.sqrt(var / (fold_losses.shape[0] - 1))
        return cv_mean, cv_se

    @staticmethod
    def _select(cv_mean: np.ndarray, cv_se: np.ndarray) -> tuple[int, int]:
        """Indices of ``lambda.min`` and ``lambda.1se`` on the path."""
        finite = np.isfinite(cv_mean)
        if not finite.any():
            raise NumericalNonConvergenceError(
                "No lambda on the regularization path produced a finite "
                "cross-validated loss."
            )
        min_loss = np.min(cv_mean[finite])
        # argmax on a boolean returns the first True: the largest λ.
        idx_min = int(np.argmax(finite & (cv_mean <= min_loss)))
        threshold = min_loss + (cv_se[idx_min] if np.isfinite(cv_se[idx_min]) else 0.0)
        idx_1se = int(np.argmax(finite & (cv_mean <= threshold)))
        return idx_min, idx_1se


__all__ = ["LassoCVFit", "RegularizedFitter"]
