"""Precision diagnostics for empirical p-values.

An empirical p-value estimated from B permutations is itself a
binomial proportion, so it carries Monte Carlo error that shrinks only
as ``1/sqrt(B)``.  These helpers quantify that error so a caller can
tell whether a significance conclusion is stable or whether B should
be increased.

* **Monte Carlo standard error** — ``SE = sqrt(p̂ (1 − p̂) / B)``.

* **Clopper–Pearson interval** — exact binomial confidence interval
  for the exceedance probability, from the count ``b = p̂ · B``:

      lower = Beta(α/2;  b,     B − b + 1)
      upper = Beta(1 − α/2; b + 1, B − b)

  With ``b = 0`` the lower bound is 0 and the upper bound is
  ``1 − (α/2)^(1/B)``, which makes explicit that an observed p-value
  of 0 is only a bound.

* **Permutation coverage** — how much of the space of distinct
  response arrangements the B draws can cover.  For a binary response
  with k ones among n entries only ``C(n, k)`` distinct shuffles
  exist.
"""

from __future__ import annotations

import logging
import math

import numpy as np
from scipy import stats

logger = logging.getLogger(__name__)


def compute_monte_carlo_se(
    raw_p_values: np.ndarray,
    n_permutations: int,
) -> np.ndarray:
    """Monte Carlo standard error of empirical p-values.

    Args:
        raw_p_values: Numeric empirical p-values, shape ``(p,)``.
        n_permutations: Number of permutations (B).

    Returns:
        Standard errors, shape ``(p,)``; NaN when ``B == 0``.
    """
    p = np.asarray(raw_p_values, dtype=float)
    if n_permutations <= 0:
        return np.full(p.shape, np.nan)
    result: np.ndarray = np.sqrt(p * (1.0 - p) / n_permutations)
    return result


def compute_clopper_pearson(
    raw_p_values: np.ndarray,
    n_permutations: int,
    alpha: float = 0.05,
) -> tuple[np.ndarray, np.ndarray]:
    """Exact binomial confidence interval for each empirical p-value.

    Args:
        raw_p_values: Unsmoothed empirical p-values ``b / B``.
        n_permutations: Number of permutations (B).
        alpha: One minus the confidence level.

    Returns:
        ``(lower, upper)`` arrays, shape ``(p,)``; NaN when ``B == 0``.
    """
    p = np.asarray(raw_p_values, dtype=float)
    if n_permutations <= 0:
        nan = np.full(p.shape, np.nan)
        return nan, nan.copy()

    B = n_permutations
    b = np.rint(p * B)
    # Beta quantiles are undefined at a = 0 or b = 0; those edges are
    # the exact bounds 0 and 1.
    with np.errstate(invalid="ignore", divide="ignore"):
        lower = np.where(b > 0, stats.beta.ppf(alpha / 2, b, B - b + 1), 0.0)
        upper = np.where(b < B, stats.beta.ppf(1 - alpha / 2, b + 1, B - b), 1.0)
    return lower, upper


def compute_permutation_coverage(
    y: np.ndarray,
    n_permutations: int,
) -> dict:
    """Compare B with the number of distinct response arrangements.

    Args:
        y: Binary response vector.
        n_permutations: Number of permutations drawn (B).

    Returns:
        Dictionary with ``n_distinct`` (int), ``coverage`` (float,
        ``B / n_distinct`` capped at 1) and ``coverage_str``.
    """
    y = np.asarray(y)
    n_distinct = math.comb(int(y.size), int(np.count_nonzero(y)))
    coverage = min(1.0, n_permutations / n_distinct)
    if coverage >= 0.001:
        coverage_str = f"{coverage:.1%} of {n_distinct:,} distinct labelings"
    else:
        try:
            coverage_str = f"< 0.1% of {float(n_distinct):.2e} distinct labelings"
        except OverflowError:
            coverage_str = f"< 0.1% of > 10^{len(str(n_distinct)) - 1} distinct labelings"
    if n_permutations > n_distinct:
        logger.debug(
            "B=%d exceeds the %d distinct labelings; repeats are certain.",
            n_permutations, n_distinct,
        )
    return {
        "n_distinct": n_distinct,
        "coverage": coverage,
        "coverage_str": coverage_str,
    }


__all__ = [
    "compute_clopper_pearson",
    "compute_monte_carlo_se",
    "compute_permutation_coverage",
]
