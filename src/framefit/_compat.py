"""Input compatibility layer and dependency checks.

All public API functions accept pandas DataFrames.  This module adds
transparent support for the other containers callers commonly hold
tabular data in: a ``polars.DataFrame`` (or ``polars.LazyFrame``), a
``pandas.Series``, a mapping of column name to values, or a 2-D NumPy
array.  Everything is converted to ``pandas.DataFrame`` at the boundary
so that internal code, which hands frames to patsy, statsmodels and
scikit-learn, only ever sees one type.

Polars is **not** a required dependency.  If it is not installed, the
converter simply skips the Polars branches.
"""

from __future__ import annotations

import importlib.util
import logging
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, TypeAlias

import numpy as np
import pandas as pd

from .exceptions import DependencyError, SchemaError

if TYPE_CHECKING:
    import polars as pl

    DataFrameLike: TypeAlias = (
        pd.DataFrame
        | pd.Series
        | pl.DataFrame
        | pl.LazyFrame
        | Mapping[str, Any]
        | Sequence[Mapping[str, Any]]
        | np.ndarray
    )
else:
    DataFrameLike: TypeAlias = pd.DataFrame | pd.Series | Mapping | Sequence | np.ndarray

# Runtime detection: avoids a hard dependency on Polars.
try:
    import polars as pl

    _HAS_POLARS = True
except ImportError:
    _HAS_POLARS = False

logger = logging.getLogger(__name__)

# Import name -> distribution name, for install hints.
_DISTRIBUTIONS = {
    "sklearn": "scikit-learn",
}


def ensure_available(name: str) -> None:
    """Raise :class:`DependencyError` if module *name* cannot be imported.

    Only the module spec is looked up; nothing is imported, so the
    check is cheap enough to run at the top of every entry point.

    Args:
        name: Top-level import name (e.g. ``"statsmodels"``,
            ``"sklearn"``).

    Raises:
        DependencyError: If the module is not installed.
    """
    if importlib.util.find_spec(name) is None:
        dist = _DISTRIBUTIONS.get(name, name)
        raise DependencyError(
            f"Package '{name}' is required for this model family. "
            f"Install it with: pip install {dist}"
        )


def _ensure_pandas_df(obj: DataFrameLike, *, name: str = "data") -> pd.DataFrame:
    """Convert *obj* to a new :class:`pandas.DataFrame`.

    Accepted types:
        * ``pandas.DataFrame``: shallow-copied.
        * ``pandas.Series``: converted via ``.to_frame()``.
        * ``polars.DataFrame``: converted via ``.to_pandas()``.
        * ``polars.LazyFrame``: collected then converted.
        * ``Mapping`` of column name to equal-length sequences.
        * non-empty sequence of ``Mapping`` records, one per row.
        * 2-D ``numpy.ndarray``: columns are named ``X1 .. Xp``.

    Column labels are coerced to ``str``.  The caller's object is never
    modified.

    Args:
        obj: The tabular input.
        name: Label used in error messages.

    Returns:
        A pandas ``DataFrame``.

    Raises:
        SchemaError: If *obj* is not a recognised container, is not
            rectangular, or has duplicate column names.
    """
    if isinstance(obj, pd.DataFrame):
        frame = obj.copy(deep=False)
    elif isinstance(obj, pd.Series):
        frame = obj.to_frame()
    elif _HAS_POLARS and isinstance(obj, pl.LazyFrame):
        frame = obj.collect().to_pandas()
    elif _HAS_POLARS and isinstance(obj, pl.DataFrame):
        frame = obj.to_pandas()
    elif isinstance(obj, np.ndarray):
        if obj.ndim != 2:
            raise SchemaError(
                f"'{name}' must be a 2-D array, got {obj.ndim} dimension(s)."
            )
        frame = pd.DataFrame(obj, columns=[f"X{j + 1}" for j in range(obj.shape[1])])
    elif isinstance(obj, Mapping):
        try:
            frame = pd.DataFrame(dict(obj))
        except ValueError as exc:
            raise SchemaError(f"'{name}' is not rectangular: {exc}") from exc
    elif (
        isinstance(obj, Sequence)
        and not isinstance(obj, (str, bytes))
        and len(obj) > 0
        and all(isinstance(row, Mapping) for row in obj)
    ):
        frame = pd.DataFrame(list(obj))
    else:
        raise SchemaError(
            f"'{name}' must be a pandas DataFrame"
            + (", Polars DataFrame/LazyFrame" if _HAS_POLARS else "")
            + f", mapping of columns, list of records, or 2-D array, got {type(obj).__name__}."
        )

    frame.columns = [str(c) for c in frame.columns]
    duplicated = frame.columns[frame.columns.duplicated()].unique().tolist()
    if duplicated:
        raise SchemaError(f"'{name}' has duplicate column names: {duplicated}")
    logger.debug("Coerced %s to a %d x %d frame", name, *frame.shape)
    return frame
