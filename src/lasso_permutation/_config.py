"""Run configuration for the lasso_permutation package.

Two pieces live here:

* The default worker count for the permutation loop.  Resolution
  order (first match wins):

    1. Programmatic override via :func:`set_n_jobs`.
    2. The ``LASSO_PERMUTATION_N_JOBS`` environment variable.
    3. ``1`` (sequential).

  An explicit ``n_jobs`` argument to the engine or to
  :func:`~lasso_permutation.core.permutation_test_lasso` always wins
  over all three.

* :class:`PermutationConfig`, a frozen bundle of the recognised
  pipeline options, validated on construction.

Examples:
    Use all cores from the shell::

        export LASSO_PERMUTATION_N_JOBS=-1

    Or programmatically::

        import lasso_permutation
        lasso_permutation.set_n_jobs(-1)

    Restore the default::

        lasso_permutation.set_n_jobs(None)
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from .exceptions import InvalidInputError

_ENV_VAR = "LASSO_PERMUTATION_N_JOBS"

# Sentinel indicating "no programmatic override has been set".
_n_jobs_override: int | None = None

LOSS_METRICS = ("misclassification", "deviance", "mse", "mae")
SELECTION_RULES = ("min", "1se")
FDR_METHODS = ("bh", "by", "bonferroni", "holm", "none")


def get_n_jobs() -> int:
    """Return the default number of permutation workers.

    Returns:
        A joblib-style worker count (``-1`` means all cores).

    Raises:
        InvalidInputError: If the environment variable is set to
            something that is not an integer or is ``0``.
    """
    # 1. Programmatic override
    if _n_jobs_override is not None:
        return _n_jobs_override

    # 2. Environment variable
    env = os.environ.get(_ENV_VAR, "").strip()
    if env:
        try:
            value = int(env)
        except ValueError:
            raise InvalidInputError(
                f"{_ENV_VAR} must be an integer, got {env!r}."
            ) from None
        if value == 0:
            raise InvalidInputError(f"{_ENV_VAR} must be non-zero.")
        return value

    # 3. Sequential
    return 1


def set_n_jobs(n_jobs: int | None) -> None:
    """Override the default worker count.

    Args:
        n_jobs: Non-zero integer, or ``None`` to restore the default
            resolution order.

    Raises:
        InvalidInputError: If *n_jobs* is ``0`` or not an integer.
    """
    global _n_jobs_override
    if n_jobs is not None:
        if isinstance(n_jobs, bool) or not isinstance(n_jobs, int) or n_jobs == 0:
            raise InvalidInputError(
                f"n_jobs must be a non-zero integer or None, got {n_jobs!r}."
            )
    _n_jobs_override = n_jobs


def normalise_choice(value: str, choices: tuple[str, ...], name: str) -> str:
    """Lower-case *value* and check it against *choices*."""
    if not isinstance(value, str):
        raise InvalidInputError(f"{name} must be a string, got {value!r}.")
    normalised = value.strip().lower()
    if normalised not in choices:
        raise InvalidInputError(
            f"Unknown {name} '{value}'. Choose from: {list(choices)}"
        )
    return normalised


@dataclass(frozen=True)
class PermutationConfig:
    """Recognised options for :func:`permutation_test_lasso`.

    Attributes:
        fold_count: Number of cross-validation folds.
        loss_metric: Cross-validation loss used to select lambda.
        n_permutations: Number of response shuffles (``B``).
        random_state: Root seed.  ``None`` draws fresh OS entropy.
        fdr_method: Multiple-testing procedure for q-values.
        smoothing: Use ``(b + 1) / (B + 1)`` instead of ``b / B``.
        selection_rule: ``"min"`` or ``"1se"``.
        n_lambda: Length of the regularization path.
        max_retries: Re-draws allowed for a failed permutation fit.
        n_jobs: Worker count, ``None`` defers to :func:`get_n_jobs`.
    """

    fold_count: int = 10
    loss_metric: str = "misclassification"
    n_permutations: int = 1_000
    random_state: int | None = None
    fdr_method: str = "BH"
    smoothing: bool = False
    selection_rule: str = "min"
    n_lambda: int = 100
    max_retries: int = 10
    n_jobs: int | None = None

    def __post_init__(self) -> None:
        if isinstance(self.fold_count, bool) or not isinstance(self.fold_count, int):
            raise InvalidInputError("fold_count must be an integer.")
        if self.fold_count < 2:
            raise InvalidInputError(
                f"fold_count must be at least 2, got {self.fold_count}."
            )
        if (
            isinstance(self.n_permutations, bool)
            or not isinstance(self.n_permutations, int)
            or self.n_permutations < 0
        ):
            raise InvalidInputError(
                f"n_permutations must be a non-negative integer, "
                f"got {self.n_permutations!r}."
            )
        if (
            isinstance(self.n_lambda, bool)
            or not isinstance(self.n_lambda, int)
            or self.n_lambda < 1
        ):
            raise InvalidInputError(
                f"n_lambda must be a positive integer, got {self.n_lambda!r}."
            )
        if (
            isinstance(self.max_retries, bool)
            or not isinstance(self.max_retries, int)
            or self.max_retries < 0
        ):
            raise InvalidInputError(
                f"max_retries must be a non-negative integer, "
                f"got {self.max_retries!r}."
            )
        if self.n_jobs is not None and (
            not isinstance(self.n_jobs, int) or self.n_jobs == 0
        ):
            raise InvalidInputError(
                f"n_jobs must be a non-zero integer or None, got {self.n_jobs!r}."
            )
        normalise_choice(self.loss_metric, LOSS_METRICS, "loss_metric")
        normalise_choice(self.selection_rule, SELECTION_RULES, "selection_rule")
        normalise_choice(self.fdr_method, FDR_METHODS, "fdr_method")


__all__ = ["PermutationConfig", "get_n_jobs", "set_n_jobs"]
