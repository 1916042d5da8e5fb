"""Validated, immutable (X, y) pair shared by every pipeline stage.

The column order of ``X`` defines the *VariableSet*: every coefficient
vector produced anywhere in the pipeline has exactly ``p`` entries in
this order.  Both arrays are copied and flagged read-only so that no
stage can mutate the data another stage (or another worker thread)
is reading.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ._compat import DataFrameLike, _ensure_pandas_df, _ensure_response_array
from .exceptions import DegenerateResponseError, InvalidInputError


@dataclass(frozen=True)
class Dataset:
    """Design matrix, binary response and term identifiers.

    Attributes:
        X: Float design matrix of shape ``(n, p)``.
        y: Float response of shape ``(n,)`` with values in ``{0, 1}``.
        feature_names: Ordered term identifiers, length ``p``.
        target_name: Name of the response column.
    """

    X: np.ndarray
    y: np.ndarray
    feature_names: tuple[str, ...]
    target_name: str = "y"

    @property
    def n_samples(self) -> int:
        return int(self.X.shape[0])

    @property
    def n_features(self) -> int:
        return int(self.X.shape[1])


def make_dataset(
    X: DataFrameLike,
    y: DataFrameLike,
    *,
    fold_count: int | None = None,
) -> Dataset:
    """Coerce and validate user input into a :class:`Dataset`.

    Args:
        X: Design matrix (pandas / Polars frame or 2-D array).
        y: Binary response (frame, Series or 1-D array).
        fold_count: When given, ``n`` must be at least this large.

    Returns:
        A read-only :class:`Dataset`.

    Raises:
        InvalidInputError: On empty input, dimension mismatch,
            non-numeric or non-finite values, a non-binary response,
            duplicate column names, or ``n < fold_count``.
        DegenerateResponseError: If ``y`` contains a single class.
    """
    X_df = _ensure_pandas_df(X, name="X")
    target_name = "y"
    if hasattr(y, "columns") and len(y.columns) == 1:
        target_name = str(y.columns[0])
    elif getattr(y, "name", None) is not None:
        target_name = str(y.name)
    y_values = _ensure_response_array(y, name="y")

    if X_df.shape[1] == 0:
        raise InvalidInputError("X must contain at least one feature (p >= 1).")
    if X_df.shape[0] == 0:
        raise InvalidInputError("X must contain at least one observation.")
    if X_df.shape[0] != y_values.shape[0]:
        raise InvalidInputError(
            f"X has {X_df.shape[0]} rows but y has {y_values.shape[0]} entries."
        )

    feature_names = tuple(str(c) for c in X_df.columns)
    if len(set(feature_names)) != len(feature_names):
        raise InvalidInputError("X column names must be distinct.")

    try:
        X_np = X_df.to_numpy(dtype=float)
    except (TypeError, ValueError):
        raise InvalidInputError("X must contain only numeric columns.") from None
    try:
        y_np = np.asarray(y_values, dtype=float)
    except (TypeError, ValueError):
        raise InvalidInputError("y must be numeric with values in {0, 1}.") from None

    if not np.all(np.isfinite(X_np)):
        raise InvalidInputError("X contains NaN or infinite values.")
    if not np.all(np.isfinite(y_np)):
        raise InvalidInputError("y contains NaN or infinite values.")
    if not np.all(np.isin(y_np, (0.0, 1.0))):
        raise InvalidInputError("y must be binary with values in {0, 1}.")

    if fold_count is not None and X_np.shape[0] < fold_count:
        raise InvalidInputError(
            f"n_samples={X_np.shape[0]} is smaller than fold_count={fold_count}; "
            f"every fold needs at least one observation."
        )
    if np.unique(y_np).size < 2:
        raise DegenerateResponseError(
            "y contains a single class; cross-validated classification "
            "loss is undefined."
        )

    X_np = X_np.copy()
    y_np = y_np.copy()
    X_np.flags.writeable = False
    y_np.flags.writeable = False
    return Dataset(X=X_np, y=y_np, feature_names=feature_names, target_name=target_name)


__all__ = ["Dataset", "make_dataset"]
