"""Empirical p-values from a permutation null distribution.

For term j with observed lasso coefficient β_j and B permuted
coefficients β*_{b,j}, each permutation contributes one comparison

    c_{b,j} = 1  if |β*_{b,j}| >= |β_j|  else 0

and the empirical p-value is the plug-in estimate

    p_j = Σ_b c_{b,j} / B

The comparison is on magnitudes (two-sided), because a lasso
coefficient can change sign between resamples.

Zero p-values
-------------
Without smoothing, ``p_j = 0`` whenever no permuted magnitude reaches
the observed one.  Such a value is really a lower bound of ``1/B``.
Passing ``smoothing=True`` applies the Phipson & Smyth (2010)
correction instead,

    p_j = (Σ_b c_{b,j} + 1) / (B + 1)

which counts the observed arrangement as one member of the reference
set, so p is never exactly zero.

Terms the observed fit shrinks to exactly zero compare ``|β*| >= 0``,
which holds for every permutation, so their p-value is 1.

Reference:
    Phipson, B. & Smyth, G. K. (2010). Permutation p-values should
    never be zero: calculating exact p-values when permutations are
    randomly drawn. *Statistical Applications in Genetics and Molecular
    Biology*, 9(1), Article 39.
"""

from __future__ import annotations

import warnings

import numpy as np

from .exceptions import InvalidInputError, ZeroPermutationsWarning


def exceedance_counts(
    model_coefs: np.ndarray, permuted_coefs: np.ndarray
) -> np.ndarray:
    """Count, per term, the permutations with ``|β*| >= |β|``.

    Args:
        model_coefs: Observed coefficients, shape ``(p,)``.
        permuted_coefs: Permuted coefficients, shape ``(B, p)``.

    Returns:
        Integer counts, shape ``(p,)``.
    """
    # Broadcast the (B, p) permuted magnitudes against the (1, p)
    # observed magnitudes; column sums are the per-term counts.
    return np.sum(
        np.abs(permuted_coefs) >= np.abs(model_coefs)[np.newaxis, :], axis=0
    )


def calculate_p_values(
    model_coefs: np.ndarray,
    permuted_coefs: np.ndarray,
    *,
    smoothing: bool = False,
) -> np.ndarray:
    """Empirical two-sided p-value for every term.

    Args:
        model_coefs: Observed coefficients, shape ``(p,)``.
        permuted_coefs: Permuted coefficients, shape ``(B, p)``.
        smoothing: Apply the ``(b + 1) / (B + 1)`` correction.

    Returns:
        Float array of shape ``(p,)`` with values in ``[0, 1]``, or
        all-NaN when ``B == 0``.

    Raises:
        InvalidInputError: If the shapes are not ``(p,)`` and
            ``(B, p)``, or any coefficient is not finite.

    Warns:
        ZeroPermutationsWarning: When ``B == 0``.
    """
    model_coefs = np.asarray(model_coefs, dtype=float)
    permuted_coefs = np.asarray(permuted_coefs, dtype=float)

    if model_coefs.ndim != 1:
        raise InvalidInputError(
            f"model_coefs must be 1-D, got shape {model_coefs.shape}."
        )
    p = model_coefs.shape[0]
    if permuted_coefs.ndim == 1 and permuted_coefs.size == 0:
        permuted_coefs = permuted_coefs.reshape(0, p)
    if permuted_coefs.ndim != 2 or permuted_coefs.shape[1] != p:
        raise InvalidInputError(
            f"permuted_coefs must have shape (B, {p}), got {permuted_coefs.shape}."
        )
    if not (np.all(np.isfinite(model_coefs)) and np.all(np.isfinite(permuted_coefs))):
        raise InvalidInputError("Coefficients must be finite.")

    n_permutations = permuted_coefs.shape[0]
    if n_permutations == 0:
        warnings.warn(
            "n_permutations=0: empirical p-values are undefined and "
            "reported as NaN.",
            ZeroPermutationsWarning,
            stacklevel=2,
        )
        return np.full(p, np.nan)

    counts = exceedance_counts(model_coefs, permuted_coefs)
    if smoothing:
        return (counts + 1) / (n_permutations + 1)
    return counts / n_permutations


__all__ = ["calculate_p_values", "exceedance_counts"]
