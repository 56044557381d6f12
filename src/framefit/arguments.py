"""Argument normalization for fitting and prediction entry points."""

from __future__ import annotations

import logging
from collections.abc import Sequence

import pandas as pd

from ._compat import DataFrameLike, _ensure_pandas_df
from .exceptions import FormulaError, SchemaError
from .formula import Formula

logger = logging.getLogger(__name__)


def normalize_args(
    data: DataFrameLike,
    formula: Formula | str | None,
    *,
    default: Formula | None = None,
) -> tuple[pd.DataFrame, Formula]:
    """Coerce *data* to a frame and *formula* to a :class:`Formula`.

    Args:
        data: Any container accepted by the compatibility layer.
        formula: Formula, formula string, or ``None``.
        default: Formula used when *formula* is ``None``.  Only the
            unsupervised families have one (``ALL_COLUMNS``).

    Returns:
        ``(data, formula)``: a new frame and a parsed formula.

    Raises:
        SchemaError: If *data* cannot be coerced.
        FormulaError: If *formula* is ``None`` and there is no default,
            or it cannot be parsed.
    """
    frame = _ensure_pandas_df(data, name="data")
    if formula is None:
        if default is None:
            raise FormulaError("a formula is required for this model family.")
        logger.debug("No formula given; using default %s", default)
        formula = default
    return frame, Formula.parse(formula)


def validate_for_predict(
    data: DataFrameLike,
    fitted_formula: Formula | str | None,
    *,
    columns: Sequence[str] | None = None,
) -> pd.DataFrame:
    """Coerce new data for prediction and check it has what the model needs.

    The response is never required.  When *columns* (the input columns
    the model was fit on) is given, it is used to resolve the formula's
    names; otherwise names are read from the formula itself.

    Args:
        data: New data in any accepted container.
        fitted_formula: Formula stored with the fitted model, or
            ``None`` to skip the column check.
        columns: Input variables recorded at fit time.

    Returns:
        The coerced frame.

    Raises:
        SchemaError: If *data* cannot be coerced or lacks a column the
            formula's right-hand side references.
    """
    frame = _ensure_pandas_df(data, name="data")
    if fitted_formula is None:
        return frame

    if columns is not None:
        required = list(columns)
    else:
        required = Formula.parse(fitted_formula).variables()
    missing = [name for name in required if name not in frame.columns]
    if missing:
        raise SchemaError(f"data is missing column(s) required for prediction: {missing}")
    return frame
