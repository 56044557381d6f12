"""Design-matrix construction from a formula and a data frame.

:func:`build` expands a :class:`~framefit.formula.Formula` against a
frame with patsy and returns numeric ``x`` / ``y`` frames.  The patsy
``DesignInfo`` of ``x`` is returned too; passing it back in at predict
time rebuilds ``x`` for new data with the fit-time columns, categorical
levels and stateful transforms (``center``, ``standardize``), which is
what keeps fit-time and predict-time matrices aligned.

The intercept column is dropped from ``x`` unless asked for, mirroring
``model.matrix(...)[, -1]``: categorical terms are still dummy-coded
against a reference level.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd
from patsy import (
    DesignInfo,
    EvalEnvironment,
    PatsyError,
    build_design_matrices,
    dmatrices,
    dmatrix,
)

from ._config import get_na_action
from .exceptions import FormulaError, SchemaError
from .formula import Formula

logger = logging.getLogger(__name__)

INTERCEPT = "Intercept"


@dataclass(frozen=True)
class DesignMatrices:
    """Numeric matrices expanded from a formula.

    Attributes:
        x: Predictor matrix, one column per design column, indexed
            like the retained input rows.
        y: Response matrix, or ``None`` for response-less formulas and
            predictor-only rebuilds.
        design_info: patsy design of ``x`` (intercept included when the
            formula has one), reusable via ``build(..., design_info=...)``.
    """

    x: pd.DataFrame
    y: pd.DataFrame | None
    design_info: DesignInfo

    @property
    def columns(self) -> list[str]:
        return list(self.x.columns)


def _eval_env() -> EvalEnvironment:
    # Formulas may call numpy as ``np``; patsy adds its own builtins.
    return EvalEnvironment([{"np": np}])


def build(
    data: pd.DataFrame,
    formula: Formula | str,
    *,
    intercept: bool = False,
    design_info: DesignInfo | None = None,
    na_action: str | None = None,
) -> DesignMatrices:
    """Expand *formula* against *data* into design matrices.

    Args:
        data: Input frame (already normalized).
        formula: Formula or formula string.  ``.`` expands to every
            column the response does not reference, in frame order.
        intercept: Keep the ``Intercept`` column in ``x``.
        design_info: Fit-time design of ``x``.  When given, only ``x``
            is built, and the response is neither required nor read.
        na_action: ``"drop"`` or ``"raise"``; defaults to
            :func:`~framefit._config.get_na_action`.

    Returns:
        A :class:`DesignMatrices`.

    Raises:
        FormulaError: If the formula cannot be parsed or references a
            column that *data* lacks.
        SchemaError: If *data* is incompatible with *design_info*
            (e.g. unseen categorical levels).
    """
    formula = Formula.parse(formula)
    action = na_action or get_na_action()

    if design_info is not None:
        try:
            (x,) = build_design_matrices(
                [design_info], data, NA_action=action, return_type="dataframe"
            )
        except PatsyError as exc:
            raise SchemaError(
                f"data does not match the design of {str(formula)!r}: {exc}"
            ) from exc
        y = None
    else:
        columns = list(data.columns)
        expanded_terms = formula.expand_terms(columns)
        needed = formula.response_variables() + Formula(None, expanded_terms).variables()
        missing = [name for name in dict.fromkeys(needed) if name not in columns]
        if missing:
            raise FormulaError(
                f"formula {str(formula)!r} references unknown column(s): {missing}"
            )
        expanded = formula.expand(columns)
        try:
            if formula.has_response:
                y, x = dmatrices(
                    expanded,
                    data,
                    eval_env=_eval_env(),
                    NA_action=action,
                    return_type="dataframe",
                )
            else:
                x = dmatrix(
                    expanded,
                    data,
                    eval_env=_eval_env(),
                    NA_action=action,
                    return_type="dataframe",
                )
                y = None
        except PatsyError as exc:
            raise FormulaError(f"cannot build {expanded!r}: {exc}") from exc

    info = x.design_info
    if not intercept and INTERCEPT in x.columns:
        x = x.drop(columns=INTERCEPT)

    dropped = len(data) - len(x)
    if dropped:
        logger.debug("Dropped %d row(s) with missing values", dropped)
    logger.debug("Built design for %s with columns %s", formula, list(x.columns))
    return DesignMatrices(x=x, y=y, design_info=info)
