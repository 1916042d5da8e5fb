"""Error taxonomy for the permutation-lasso pipeline.

Input problems are caught before any model is fitted and raised as
:class:`InvalidInputError`.  Fit-level failures
(:class:`DegenerateResponseError`, :class:`NumericalNonConvergenceError`)
are local to one permutation; the engine re-draws that permutation a
bounded number of times before failing the run.

``InvalidInputError`` and ``DegenerateResponseError`` also derive from
``ValueError`` so callers that already catch ``ValueError`` keep
working.
"""

from __future__ import annotations


class LassoPermutationError(Exception):
    """Base class for all package errors."""


class InvalidInputError(LassoPermutationError, ValueError):
    """Malformed data or configuration.  Fatal, no partial result."""


class DegenerateResponseError(LassoPermutationError, ValueError):
    """A response (or a training fold of it) contains only one class."""


class NumericalNonConvergenceError(LassoPermutationError, RuntimeError):
    """The regularization path produced no finite cross-validated loss."""


class PermutationCancelledError(LassoPermutationError):
    """The permutation loop was cancelled between batches."""

    def __init__(self, completed: int, requested: int) -> None:
        self.completed = completed
        self.requested = requested
        super().__init__(
            f"Permutation run cancelled after {completed} of "
            f"{requested} permutations."
        )


class ZeroPermutationsWarning(UserWarning):
    """``n_permutations=0``: empirical p-values are undefined (NaN)."""


__all__ = [
    "DegenerateResponseError",
    "InvalidInputError",
    "LassoPermutationError",
    "NumericalNonConvergenceError",
    "PermutationCancelledError",
    "ZeroPermutationsWarning",
]
