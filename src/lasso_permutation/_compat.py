"""Input compatibility layer for pandas, NumPy and optional Polars.

All public API functions accept pandas objects.  This module adds
transparent support for Polars DataFrames and plain NumPy arrays:
anything else is converted to a ``pandas.DataFrame`` at the boundary so
that internal code, which operates on NumPy arrays extracted from
pandas, never has to branch on the input type.

NumPy design matrices have no column names; they are labelled
``var1 … varp`` (1-based) so every output table has stable term
identifiers.

Polars is **not** a required dependency.  If it is not installed, the
converter simply passes pandas objects through untouched.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeAlias

import numpy as np
import pandas as pd

from .exceptions import InvalidInputError

if TYPE_CHECKING:
    import polars as pl

    DataFrameLike: TypeAlias = pd.DataFrame | pl.DataFrame | pl.LazyFrame | np.ndarray
else:
    DataFrameLike: TypeAlias = pd.DataFrame | np.ndarray

# Polars is optional.
try:
    import polars as pl

    _HAS_POLARS = True
except ImportError:
    _HAS_POLARS = False


def default_term_names(n_features: int) -> list[str]:
    """Return ``["var1", …, "var{n_features}"]``."""
    return [f"var{j + 1}" for j in range(n_features)]


def _ensure_pandas_df(obj: DataFrameLike, *, name: str = "input") -> pd.DataFrame:
    """Convert *obj* to a :class:`pandas.DataFrame` if necessary.

    Accepted types:
        * ``pandas.DataFrame`` — returned as-is.
        * ``pandas.Series`` — wrapped as a one-column frame.
        * ``numpy.ndarray`` (1-D or 2-D) — columns named ``var1…``.
        * ``polars.DataFrame`` — converted via ``.to_pandas()``.
        * ``polars.LazyFrame`` — collected then converted.

    Args:
        obj: A pandas / Polars frame or a NumPy array.
        name: Label used in error messages (e.g. ``"X"`` or ``"y"``).

    Returns:
        A pandas ``DataFrame``.

    Raises:
        TypeError: If *obj* is not a recognised type.
    """
    if isinstance(obj, pd.DataFrame):
        return obj

    if isinstance(obj, pd.Series):
        return obj.to_frame()

    if isinstance(obj, np.ndarray):
        arr = obj.reshape(-1, 1) if obj.ndim == 1 else obj
        if arr.ndim != 2:
            raise TypeError(f"'{name}' must be 1-D or 2-D, got {obj.ndim}-D array.")
        return pd.DataFrame(arr, columns=default_term_names(arr.shape[1]))

    if _HAS_POLARS:
        if isinstance(obj, pl.LazyFrame):
            return obj.collect().to_pandas()
        if isinstance(obj, pl.DataFrame):
            return obj.to_pandas()

    raise TypeError(
        f"'{name}' must be a pandas DataFrame or NumPy array"
        + (" or Polars DataFrame/LazyFrame" if _HAS_POLARS else "")
        + f", got {type(obj).__name__}."
    )


def _ensure_response_array(obj: DataFrameLike | pd.Series, *, name: str = "y") -> np.ndarray:
    """Flatten a single-column frame, Series or array into a 1-D array.

    Raises:
        TypeError: If *obj* is not a recognised type.
        InvalidInputError: If *obj* has more than one column.
    """
    frame = _ensure_pandas_df(obj, name=name)
    if frame.shape[1] != 1:
        raise InvalidInputError(
            f"'{name}' must have exactly one column, got {frame.shape[1]}."
        )
    return np.ravel(frame.to_numpy())
