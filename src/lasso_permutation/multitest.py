"""Multiple-testing correction of per-term p-values.

The default procedure is Benjamini–Hochberg (1995) step-up FDR
control.  With m p-values sorted ascending,

    q_(i) = min_{k >= i} ( p_(k) · m / k ),  clipped to [0, 1]

i.e. the raw ratios ``p_(i) · m / i`` followed by a running minimum
from the largest rank down, which makes q monotone in p.  The
q-values are returned in the original term order.

All procedures are delegated to
:func:`statsmodels.stats.multitest.multipletests`, which implements
exactly this step-up rule for ``"fdr_bh"``.  Other accepted methods:

* ``"BY"`` — Benjamini–Yekutieli, valid under arbitrary dependence.
* ``"bonferroni"`` — ``min(1, p · m)``.
* ``"holm"`` — Holm step-down FWER control.
* ``"none"`` — returns the p-values unchanged.

NaN p-values (undefined, e.g. from zero permutations) are passed
through as NaN and do not count toward m.
"""

from __future__ import annotations

import numpy as np
from statsmodels.stats.multitest import multipletests

from ._config import FDR_METHODS, normalise_choice
from .exceptions import InvalidInputError

_STATSMODELS_METHODS = {
    "bh": "fdr_bh",
    "by": "fdr_by",
    "bonferroni": "bonferroni",
    "holm": "holm",
}


def correct_p_values(p_values: np.ndarray, method: str = "BH") -> np.ndarray:
    """Map p-values to adjusted q-values.

    This is a pure function of the whole vector: the result does not
    depend on the input order beyond being returned in that order.

    Args:
        p_values: P-values in ``[0, 1]`` (NaN allowed), shape ``(m,)``.
        method: ``"BH"`` (default), ``"BY"``, ``"bonferroni"``,
            ``"holm"`` or ``"none"`` (case-insensitive).

    Returns:
        Adjusted values, shape ``(m,)``, each in ``[0, 1]`` or NaN.

    Raises:
        InvalidInputError: For an unknown *method*, a non-1-D input, or
            p-values outside ``[0, 1]``.
    """
    name = normalise_choice(method, FDR_METHODS, "fdr_method")
    p = np.array(p_values, dtype=float)
    if p.ndim != 1:
        raise InvalidInputError(f"p_values must be 1-D, got shape {p.shape}.")

    defined = ~np.isnan(p)
    if np.any((p[defined] < 0.0) | (p[defined] > 1.0)):
        raise InvalidInputError("p_values must lie in [0, 1].")

    q = np.full_like(p, np.nan)
    if name == "none" or not defined.any():
        q[defined] = p[defined]
        return q

    _, adjusted, _, _ = multipletests(
        p[defined], method=_STATSMODELS_METHODS[name]
    )
    q[defined] = np.clip(adjusted, 0.0, 1.0)
    return q


__all__ = ["correct_p_values"]
