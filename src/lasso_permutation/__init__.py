"""lasso_permutation — Permutation inference for cross-validated lasso.

Fits an L1-penalised logistic regression whose penalty is chosen by
k-fold cross-validation, then refits the whole procedure on shuffled
copies of the response to obtain empirical p-values for every
coefficient, corrected for multiple testing (Benjamini–Hochberg by
default).  Permutations run sequentially or on a joblib thread pool
with per-permutation seed streams, so results are reproducible for
any degree of parallelism.

Public API:
    .. autosummary::
        permutation_test_lasso
        RegularizedFitter
        LassoCVFit
        PermutationEngine
        PermutationRun
        calculate_p_values
        correct_p_values
        compute_monte_carlo_se
        compute_clopper_pearson
        compute_permutation_coverage
        make_dataset
        Dataset
        PermutationConfig
        get_n_jobs
        set_n_jobs
        FitContext
        LassoPermutationResult
"""

from ._config import PermutationConfig, get_n_jobs, set_n_jobs
from ._context import FitContext
from ._results import LassoPermutationResult
from .core import permutation_test_lasso
from .dataset import Dataset, make_dataset
from .diagnostics import (
    compute_clopper_pearson,
    compute_monte_carlo_se,
    compute_permutation_coverage,
)
from .engine import PermutationEngine, PermutationRun
from .exceptions import (
    DegenerateResponseError,
    InvalidInputError,
    LassoPermutationError,
    NumericalNonConvergenceError,
    PermutationCancelledError,
    ZeroPermutationsWarning,
)
from .fitter import LassoCVFit, RegularizedFitter
from .multitest import correct_p_values
from .pvalues import calculate_p_values

__all__ = [
    "Dataset",
    "DegenerateResponseError",
    "FitContext",
    "InvalidInputError",
    "LassoCVFit",
    "LassoPermutationError",
    "LassoPermutationResult",
    "NumericalNonConvergenceError",
    "PermutationCancelledError",
    "PermutationConfig",
    "PermutationEngine",
    "PermutationRun",
    "RegularizedFitter",
    "ZeroPermutationsWarning",
    "calculate_p_values",
    "compute_clopper_pearson",
    "compute_monte_carlo_se",
    "compute_permutation_coverage",
    "correct_p_values",
    "get_n_jobs",
    "make_dataset",
    "permutation_test_lasso",
    "set_n_jobs",
]

__version__ = "0.1.0"
