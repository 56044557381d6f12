"""Data-first, formula-second entry points.

Every entry point takes the data first and the formula second, runs the
same three steps, and hands off to its model family:

1. ``ensure_available`` for each library the family needs.
2. ``normalize_args``: coerce the data, parse (or default) the formula.
3. ``family.fit``: call the library, wrapping matrix-family results
   in a ``FittedModel``.

:func:`predict` is the matching generic: it finds the family from a
``FittedModel`` or from the type of a raw statsmodels result.
"""

from __future__ import annotations

import logging
from typing import Any

import pandas as pd

from ._compat import DataFrameLike, ensure_available
from ._results import FittedModel
from .arguments import normalize_args
from .families import ModelFamily, family_for_result, resolve_family
from .formula import Formula

logger = logging.getLogger(__name__)


def _fit(
    name: str | ModelFamily,
    data: DataFrameLike,
    formula: Formula | str | None,
    **kwargs: Any,
) -> Any:
    family = resolve_family(name)
    for module in family.requires:
        ensure_available(module)
    frame, formula = normalize_args(data, formula, default=family.default_formula)
    logger.debug("Fitting %s with %s on %d rows", family.name, formula, len(frame))
    return family.fit(frame, formula, **kwargs)


# ------------------------------------------------------------------ #
# Formula families
# ------------------------------------------------------------------ #


def ttest(data: DataFrameLike, formula: Formula | str, **kwargs: Any) -> Any:
    """t-test of a response against a two-level group, or of its mean.

    Examples:
        >>> ttest(df, "len ~ supp")             # Welch two-sample
        >>> ttest(df, "len ~ supp", equal_var=True)
        >>> ttest(df, "len ~ 1", mu=20)         # one-sample

    Args:
        data: Tabular data.
        formula: ``y ~ g`` (two samples, ``g`` has two values) or
            ``y ~ 1`` (one sample).
        **kwargs: ``mu`` for one-sample tests; everything else goes to
            ``scipy.stats.ttest_ind`` / ``ttest_1samp``.

    Returns:
        The ``scipy.stats`` test result, unchanged.
    """
    return _fit("ttest", data, formula, **kwargs)


def lm(data: DataFrameLike, formula: Formula | str, **kwargs: Any) -> Any:
    """Linear model fit by ordinary least squares.

    Examples:
        >>> fit = lm(mtcars, "hp ~ .")
        >>> predict(fit, mtcars.head())

    Returns:
        The statsmodels ``RegressionResultsWrapper``, unchanged.

    Raises:
        FormulaError: If *formula* has no response.
    """
    return _fit("lm", data, formula, **kwargs)


def glm(
    data: DataFrameLike,
    formula: Formula | str,
    family: Any = None,
    **kwargs: Any,
) -> Any:
    """Generalized linear model.

    Examples:
        >>> fit = glm(mtcars, "vs ~ hp + wt", family="binomial")
        >>> predict(fit, mtcars.head())

    Args:
        data: Tabular data.
        formula: Formula with a response.
        family: statsmodels family instance or name (``"binomial"``,
            ``"poisson"``, ...).  Defaults to Gaussian.
        **kwargs: Model options (``offset``, ``exposure``,
            ``freq_weights``, ``var_weights``, ``subset``, ``missing``)
            or ``.fit()`` options.

    Returns:
        The statsmodels ``GLMResultsWrapper``, unchanged.
    """
    return _fit("glm", data, formula, family=family, **kwargs)


def aov(data: DataFrameLike, formula: Formula | str, **kwargs: Any) -> Any:
    """Analysis of variance.

    The fit is an OLS model; pass it to :func:`anova` for the table and
    to :func:`predict` for fitted values on new data.

    Examples:
        >>> fit = aov(mtcars, "hp ~ C(am) * C(cyl)")
        >>> anova(fit)
    """
    return _fit("aov", data, formula, **kwargs)


def anova(fitted: Any, typ: int = 1, **kwargs: Any) -> pd.DataFrame:
    """ANOVA table of an :func:`aov` or :func:`lm` fit.

    Args:
        fitted: Result of :func:`aov` or :func:`lm`.
        typ: Sums-of-squares type (1, 2 or 3).
        **kwargs: Forwarded to ``statsmodels.stats.anova.anova_lm``.
    """
    ensure_available("statsmodels")
    from statsmodels.stats.anova import anova_lm

    return anova_lm(fitted, typ=typ, **kwargs)


# ------------------------------------------------------------------ #
# Matrix families
# ------------------------------------------------------------------ #


def kmeans(
    data: DataFrameLike,
    formula: Formula | str | None = None,
    **kwargs: Any,
) -> FittedModel:
    """k-means clustering on the columns a formula selects.

    The formula can select columns or derive new ones:

    Examples:
        >>> kmeans(iris, centers=3)                       # all columns
        >>> kmeans(iris, "~ petal_width + sepal_width", centers=3)
        >>> fit = kmeans(d, "~ X1 + X2 + I(X1**2 + X2**2)", centers=2)
        >>> predict(fit, d)

    Args:
        data: Tabular data.
        formula: Response-less formula; defaults to ``~ .``.
        **kwargs: ``centers`` (required: count or initial centroids);
            the rest goes to ``sklearn.cluster.KMeans``
            (``random_state``, ``n_init``, ``max_iter``...).

    Returns:
        A ``FittedModel`` with fields ``centers``, ``cluster``, ``size``,
        ``withinss``, ``tot_withinss``, ``totss``, ``betweenss``, ``iter``.
    """
    return _fit("kmeans", data, formula, **kwargs)


def prcomp(
    data: DataFrameLike,
    formula: Formula | str | None = None,
    **kwargs: Any,
) -> FittedModel:
    """Principal components analysis.

    Examples:
        >>> prcomp(mtcars)
        >>> fit = prcomp(mtcars, "~ . * .", scale=True)
        >>> predict(fit, mtcars.head())

    Args:
        data: Tabular data.
        formula: Response-less formula; defaults to ``~ .``.
        **kwargs: ``center`` (default ``True``), ``scale`` (default
            ``False``), ``rank`` (number of components); the rest goes
            to ``sklearn.decomposition.PCA``.

    Returns:
        A ``FittedModel`` with fields ``sdev``, ``rotation``, ``center``,
        ``scale``, ``x``.
    """
    return _fit("prcomp", data, formula, **kwargs)


def factanal(
    data: DataFrameLike,
    formula: Formula | str | None = None,
    **kwargs: Any,
) -> FittedModel:
    """Maximum-likelihood factor analysis with regression factor scores.

    Examples:
        >>> factanal(mtcars, factors=3)
        >>> fit = factanal(mtcars, "~ hp * am * wt", factors=3)
        >>> predict(fit, mtcars.head())

    Args:
        data: Tabular data.
        formula: Response-less formula; defaults to ``~ .``.
        **kwargs: ``factors`` (required), ``rotation`` (``"varimax"``,
            ``"quartimax"`` or ``None``); the rest goes to
            ``sklearn.decomposition.FactorAnalysis``.

    Returns:
        A ``FittedModel`` with fields ``loadings``, ``uniquenesses``,
        ``factors``, ``rotation``, ``iter``.

    Raises:
        SingularMatrixError: If the predictors' correlation matrix is
            not invertible.
    """
    return _fit("factanal", data, formula, **kwargs)


# ------------------------------------------------------------------ #
# Prediction
# ------------------------------------------------------------------ #


def predict(fitted: Any, data: DataFrameLike, **kwargs: Any) -> Any:
    """Predict from any fitted model on new data.

    =========================  ========================================
    Fitted with                Returns
    =========================  ========================================
    ``lm``, ``aov``, ``glm``   statsmodels predictions (``Series``)
    ``kmeans``                 1-based cluster of the nearest centroid
    ``prcomp``                 component scores (``PC1`` ...)
    ``factanal``               regression factor scores (``Factor1`` ...)
    =========================  ========================================

    New data needs every column the formula's right-hand side uses; the
    response may be absent.

    Raises:
        SchemaError: If *data* lacks a required column.
        TypeError: If the model cannot predict (``ttest``) or is not
            recognised.
    """
    if isinstance(fitted, FittedModel):
        family = resolve_family(fitted.family)
    else:
        family = family_for_result(fitted)
    for module in family.requires:
        ensure_available(module)
    logger.debug("Predicting with %s", family.name)
    return family.predict(fitted, data, **kwargs)
