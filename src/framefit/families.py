"""Model family protocol, concrete families and the family registry.

The ``ModelFamily`` protocol is the single seam between the public
entry points in ``core.py`` and the fitting libraries.  Each family
knows which libraries it needs, whether its formula must (or must not)
have a response, how to hand data to its library, and how to predict
on new data.

Two kinds of family exist:

* **Formula families** (``ttest``, ``lm``, ``glm``, ``aov``) pass the
  formula string and the frame straight to a routine that understands
  formulas, and return that routine's result unchanged.  Prediction
  uses the library's own ``predict``.
* **Matrix families** (``kmeans``, ``prcomp``, ``factanal``) build the
  predictor matrix themselves, fit on it, and wrap the library object
  in a :class:`~framefit._results.FittedModel` whose metadata lets
  ``predict`` rebuild the same matrix from new data.

Each concrete family is a ``@dataclass`` that carries no mutable state.
``resolve_family`` maps a family name to an instance; dispatch is one
level deep.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import numpy as np
import pandas as pd
import statsmodels.api as sm
import statsmodels.formula.api as smf
from scipy import stats
from statsmodels.genmod.generalized_linear_model import GLMResultsWrapper
from statsmodels.regression.linear_model import RegressionResultsWrapper

from ._config import get_na_action
from ._results import FittedModel, ModelMetadata
from .arguments import validate_for_predict
from .design import DesignMatrices, build
from .exceptions import FormulaError, SchemaError
from .formula import ALL_COLUMNS, Formula
from .predictors import factor_score_matrix, factor_scores, nearest_centroid

logger = logging.getLogger(__name__)

# ------------------------------------------------------------------ #
# ModelFamily protocol
# ------------------------------------------------------------------ #


@runtime_checkable
class ModelFamily(Protocol):
    """Interface that every model family must implement.

    Attributes:
        name: Registry key and ``FittedModel.family`` value.
        requires: Import names checked with ``ensure_available``
            before any work.
        needs_response: ``True`` if the formula must have a response,
            ``False`` if it must not.
        default_formula: Formula used when the caller passes none, or
            ``None`` if a formula is mandatory.
        result_types: Library result types this family predicts from
            directly (formula families only).
    """

    @property
    def name(self) -> str: ...

    @property
    def requires(self) -> tuple[str, ...]: ...

    @property
    def needs_response(self) -> bool: ...

    @property
    def default_formula(self) -> Formula | None: ...

    @property
    def result_types(self) -> tuple[type, ...]: ...

    def fit(self, data: pd.DataFrame, formula: Formula, **kwargs: Any) -> Any:
        """Fit the model on a normalized frame and formula.

        Args:
            data: Frame returned by ``normalize_args``.
            formula: Parsed formula.
            **kwargs: Family-specific options, forwarded to the library.

        Returns:
            The library result (formula families) or a ``FittedModel``
            (matrix families).
        """
        ...

    def predict(self, fitted: Any, data: Any, **kwargs: Any) -> Any:
        """Predict from *fitted* on new *data*.

        Raises:
            TypeError: If the family has no notion of prediction.
        """
        ...


# ------------------------------------------------------------------ #
# Shared helpers
# ------------------------------------------------------------------ #


def _check_response(family: ModelFamily, formula: Formula) -> None:
    if family.needs_response and not formula.has_response:
        raise FormulaError(
            f"{family.name} needs a formula with a response (y ~ ...), "
            f"got {str(formula)!r}."
        )
    if not family.needs_response and formula.has_response:
        raise FormulaError(
            f"{family.name} takes a formula without a response (~ ...), "
            f"got {str(formula)!r}."
        )


def _split_model_kwargs(
    kwargs: dict[str, Any], model_keys: frozenset[str]
) -> tuple[dict[str, Any], dict[str, Any]]:
    """Separate statsmodels constructor options from ``.fit()`` options."""
    model_kwargs = {k: v for k, v in kwargs.items() if k in model_keys}
    fit_kwargs = {k: v for k, v in kwargs.items() if k not in model_keys}
    model_kwargs.setdefault("missing", get_na_action())
    return model_kwargs, fit_kwargs


def _predict_with_statsmodels(results: Any, data: Any, **kwargs: Any) -> pd.Series:
    # Resolve names against the fit-time schema so columns such as
    # ``len`` or ``sum`` are not mistaken for builtins.
    formula = Formula.parse(results.model.formula)
    schema = list(results.model.data.frame.columns)
    frame = validate_for_predict(data, formula, columns=formula.variables(schema))
    return results.predict(frame, **kwargs)


def _matrix_design(family: ModelFamily, data: pd.DataFrame, formula: Formula) -> DesignMatrices:
    _check_response(family, formula)
    matrices = build(data, formula)
    if matrices.x.shape[1] == 0:
        raise FormulaError(f"formula {str(formula)!r} selects no columns.")
    return matrices


def _metadata(
    data: pd.DataFrame,
    formula: Formula,
    matrices: DesignMatrices,
    predict_matrix: np.ndarray | None = None,
) -> ModelMetadata:
    return ModelMetadata(
        formula=formula,
        design_info=matrices.design_info,
        columns=tuple(matrices.columns),
        variables=tuple(formula.variables(list(data.columns))),
        predict_matrix=predict_matrix,
    )


def _predict_design(fitted: FittedModel, data: Any) -> pd.DataFrame:
    """Rebuild the fit-time predictor matrix from new data."""
    meta = fitted.metadata
    frame = validate_for_predict(data, meta.formula, columns=meta.variables)
    x = build(frame, meta.formula, design_info=meta.design_info).x
    if tuple(x.columns) != meta.columns:
        raise SchemaError(
            f"rebuilt columns {list(x.columns)} differ from fit-time "
            f"columns {list(meta.columns)}."
        )
    return x


def _numbered(prefix: str, n: int) -> list[str]:
    return [f"{prefix}{j + 1}" for j in range(n)]


# ------------------------------------------------------------------ #
# TTestFamily
# ------------------------------------------------------------------ #
#
# ``y ~ 1`` is a one-sample test of mean ``mu`` (default 0).
# ``y ~ g`` is a two-sample test between the two values of the single
# predictor column; a two-level factor becomes one 0/1 dummy column, so
# the reference level forms the first sample.  Welch's unequal-variance
# test is the default.


@dataclass(frozen=True)
class TTestFamily:
    """Student/Welch t-test via ``scipy.stats``."""

    @property
    def name(self) -> str:
        return "ttest"

    @property
    def requires(self) -> tuple[str, ...]:
        return ("scipy",)

    @property
    def needs_response(self) -> bool:
        return True

    @property
    def default_formula(self) -> Formula | None:
        return None

    @property
    def result_types(self) -> tuple[type, ...]:
        return ()

    def fit(self, data: pd.DataFrame, formula: Formula, **kwargs: Any) -> Any:
        _check_response(self, formula)
        matrices = build(data, formula)
        y = matrices.y.iloc[:, 0].to_numpy(dtype=float)
        x = matrices.x

        if x.shape[1] == 0:
            mu = kwargs.pop("mu", 0.0)
            return stats.ttest_1samp(y, popmean=mu, **kwargs)

        levels = np.unique(x.iloc[:, 0].to_numpy()) if x.shape[1] == 1 else ()
        if len(levels) != 2:
            raise FormulaError(
                f"grouping factor in {str(formula)!r} must have exactly 2 levels."
            )
        first = x.iloc[:, 0].to_numpy() == levels[0]
        kwargs.setdefault("equal_var", False)
        return stats.ttest_ind(y[first], y[~first], **kwargs)

    def predict(self, fitted: Any, data: Any, **kwargs: Any) -> Any:
        raise TypeError("ttest results do not support prediction.")


# ------------------------------------------------------------------ #
# LinearFamily / AnovaFamily
# ------------------------------------------------------------------ #

_OLS_MODEL_KEYS = frozenset({"subset", "drop_cols", "missing"})


@dataclass(frozen=True)
class LinearFamily:
    """Ordinary least squares via ``statsmodels.formula.api.ols``.

    ``subset``, ``drop_cols`` and ``missing`` go to the model
    constructor; every other keyword goes to ``.fit()`` (e.g.
    ``cov_type="HC3"``).
    """

    @property
    def name(self) -> str:
        return "lm"

    @property
    def requires(self) -> tuple[str, ...]:
        return ("statsmodels",)

    @property
    def needs_response(self) -> bool:
        return True

    @property
    def default_formula(self) -> Formula | None:
        return None

    @property
    def result_types(self) -> tuple[type, ...]:
        return (RegressionResultsWrapper,)

    def fit(self, data: pd.DataFrame, formula: Formula, **kwargs: Any) -> Any:
        _check_response(self, formula)
        model_kwargs, fit_kwargs = _split_model_kwargs(kwargs, _OLS_MODEL_KEYS)
        expanded = formula.expand(list(data.columns))
        return smf.ols(expanded, data, **model_kwargs).fit(**fit_kwargs)

    def predict(self, fitted: Any, data: Any, **kwargs: Any) -> Any:
        return _predict_with_statsmodels(fitted, data, **kwargs)


@dataclass(frozen=True)
class AnovaFamily(LinearFamily):
    """Analysis of variance: an OLS fit whose table comes from
    ``core.anova``.  Prediction is the linear model's."""

    @property
    def name(self) -> str:
        return "aov"

    @property
    def result_types(self) -> tuple[type, ...]:
        return ()


# ------------------------------------------------------------------ #
# GLMFamily
# ------------------------------------------------------------------ #

_GLM_MODEL_KEYS = frozenset(
    {"subset", "drop_cols", "missing", "offset", "exposure", "freq_weights", "var_weights"}
)

_GLM_FAMILIES: dict[str, type] = {
    "gaussian": sm.families.Gaussian,
    "binomial": sm.families.Binomial,
    "poisson": sm.families.Poisson,
    "gamma": sm.families.Gamma,
    "inverse_gaussian": sm.families.InverseGaussian,
    "negative_binomial": sm.families.NegativeBinomial,
    "tweedie": sm.families.Tweedie,
}


def _resolve_glm_family(family: Any) -> Any:
    if family is None:
        return sm.families.Gaussian()
    if isinstance(family, str):
        key = family.strip().lower()
        if key not in _GLM_FAMILIES:
            available = ", ".join(sorted(_GLM_FAMILIES))
            raise ValueError(f"Unknown GLM family {family!r}.  Available: {available}.")
        return _GLM_FAMILIES[key]()
    return family


@dataclass(frozen=True)
class GLMFamily:
    """Generalized linear model via ``statsmodels.formula.api.glm``.

    ``family`` accepts a statsmodels family instance or one of the
    names in ``_GLM_FAMILIES``; the default is Gaussian.
    """

    @property
    def name(self) -> str:
        return "glm"

    @property
    def requires(self) -> tuple[str, ...]:
        return ("statsmodels",)

    @property
    def needs_response(self) -> bool:
        return True

    @property
    def default_formula(self) -> Formula | None:
        return None

    @property
    def result_types(self) -> tuple[type, ...]:
        return (GLMResultsWrapper,)

    def fit(self, data: pd.DataFrame, formula: Formula, **kwargs: Any) -> Any:
        _check_response(self, formula)
        family = _resolve_glm_family(kwargs.pop("family", None))
        model_kwargs, fit_kwargs = _split_model_kwargs(kwargs, _GLM_MODEL_KEYS)
        expanded = formula.expand(list(data.columns))
        return smf.glm(expanded, data, family=family, **model_kwargs).fit(**fit_kwargs)

    def predict(self, fitted: Any, data: Any, **kwargs: Any) -> Any:
        return _predict_with_statsmodels(fitted, data, **kwargs)


# ------------------------------------------------------------------ #
# KMeansFamily
# ------------------------------------------------------------------ #
#
# scikit-learn's KMeans labels rows 0..k-1; every label framefit exposes
# is 1-based so that ``fitted["centers"].loc[label]`` is the centroid of
# ``label``.


@dataclass(frozen=True)
class KMeansFamily:
    """k-means clustering via ``sklearn.cluster.KMeans``.

    ``centers`` is either the number of clusters or an initial
    ``(k, p)`` centroid matrix (which implies a single start).
    """

    @property
    def name(self) -> str:
        return "kmeans"

    @property
    def requires(self) -> tuple[str, ...]:
        return ("sklearn",)

    @property
    def needs_response(self) -> bool:
        return False

    @property
    def default_formula(self) -> Formula | None:
        return ALL_COLUMNS

    @property
    def result_types(self) -> tuple[type, ...]:
        return ()

    def fit(self, data: pd.DataFrame, formula: Formula, **kwargs: Any) -> FittedModel:
        from sklearn.cluster import KMeans

        centers = kwargs.pop("centers", None)
        if centers is None:
            raise TypeError("kmeans requires 'centers' (a count or initial centroids).")
        matrices = _matrix_design(self, data, formula)
        x = matrices.x.to_numpy(dtype=float)

        if np.ndim(centers) == 0:
            n_clusters = int(centers)
        else:
            init = np.asarray(centers, dtype=float)
            n_clusters = init.shape[0]
            kwargs["init"] = init
            kwargs.setdefault("n_init", 1)
        model = KMeans(n_clusters=n_clusters, **kwargs).fit(x)

        labels = model.labels_
        centroids = model.cluster_centers_
        withinss = np.array(
            [np.sum((x[labels == j] - centroids[j]) ** 2) for j in range(n_clusters)]
        )
        totss = float(np.sum((x - x.mean(axis=0)) ** 2))
        fields = {
            "centers": pd.DataFrame(
                centroids,
                index=pd.RangeIndex(1, n_clusters + 1),
                columns=matrices.x.columns,
            ),
            "cluster": pd.Series(labels + 1, index=matrices.x.index, name="cluster"),
            "size": np.bincount(labels, minlength=n_clusters),
            "withinss": withinss,
            "tot_withinss": float(withinss.sum()),
            "totss": totss,
            "betweenss": totss - float(withinss.sum()),
            "iter": int(model.n_iter_),
        }
        logger.debug("kmeans: %d clusters on %d rows", n_clusters, x.shape[0])
        return FittedModel(
            family=self.name,
            model=model,
            metadata=_metadata(data, formula, matrices),
            fields=fields,
        )

    def predict(self, fitted: FittedModel, data: Any, **kwargs: Any) -> pd.Series:
        x = _predict_design(fitted, data)
        labels = nearest_centroid(x.to_numpy(dtype=float), fitted["centers"].to_numpy())
        return pd.Series(labels, index=x.index, name="cluster")


# ------------------------------------------------------------------ #
# PCAFamily
# ------------------------------------------------------------------ #
#
# Centering and scaling are a StandardScaler in front of PCA, so the
# fitted pipeline's ``transform`` is the whole projection step.


@dataclass(frozen=True)
class PCAFamily:
    """Principal components via a ``StandardScaler`` + ``PCA`` pipeline."""

    @property
    def name(self) -> str:
        return "prcomp"

    @property
    def requires(self) -> tuple[str, ...]:
        return ("sklearn",)

    @property
    def needs_response(self) -> bool:
        return False

    @property
    def default_formula(self) -> Formula | None:
        return ALL_COLUMNS

    @property
    def result_types(self) -> tuple[type, ...]:
        return ()

    def fit(self, data: pd.DataFrame, formula: Formula, **kwargs: Any) -> FittedModel:
        from sklearn.decomposition import PCA
        from sklearn.pipeline import make_pipeline
        from sklearn.preprocessing import StandardScaler

        center = kwargs.pop("center", True)
        scale = kwargs.pop("scale", False)
        rank = kwargs.pop("rank", None)
        if not center:
            raise ValueError("prcomp always centers; center=False is not supported.")
        matrices = _matrix_design(self, data, formula)

        n = matrices.x.shape[0]
        scaler = StandardScaler(with_std=scale).fit(matrices.x)
        if scale and n > 1:
            # Sample (ddof=1) standard deviation, as in ``sd()``.
            scaler.scale_ = scaler.scale_ * np.sqrt(n / (n - 1))
        pca = PCA(n_components=rank, **kwargs).fit(scaler.transform(matrices.x))
        pipeline = make_pipeline(scaler, pca)
        components = _numbered("PC", pca.n_components_)

        fields = {
            "sdev": np.sqrt(pca.explained_variance_),
            "rotation": pd.DataFrame(
                pca.components_.T, index=matrices.x.columns, columns=components
            ),
            "center": scaler.mean_,
            "scale": scaler.scale_ if scale else False,
            "x": pd.DataFrame(
                pipeline.transform(matrices.x), index=matrices.x.index, columns=components
            ),
        }
        return FittedModel(
            family=self.name,
            model=pipeline,
            metadata=_metadata(data, formula, matrices),
            fields=fields,
        )

    def predict(self, fitted: FittedModel, data: Any, **kwargs: Any) -> pd.DataFrame:
        x = _predict_design(fitted, data)
        scores = fitted.model.transform(x)
        return pd.DataFrame(scores, index=x.index, columns=fitted["rotation"].columns)


# ------------------------------------------------------------------ #
# FactorAnalysisFamily
# ------------------------------------------------------------------ #
#
# Loadings are extracted from standardized data so they are on the
# correlation scale that the regression score matrix R⁻¹Λ expects.
# The score matrix is computed at fit time; a singular correlation
# matrix fails the fit.


@dataclass(frozen=True)
class FactorAnalysisFamily:
    """Maximum-likelihood factor analysis via ``FactorAnalysis``."""

    @property
    def name(self) -> str:
        return "factanal"

    @property
    def requires(self) -> tuple[str, ...]:
        return ("sklearn",)

    @property
    def needs_response(self) -> bool:
        return False

    @property
    def default_formula(self) -> Formula | None:
        return ALL_COLUMNS

    @property
    def result_types(self) -> tuple[type, ...]:
        return ()

    def fit(self, data: pd.DataFrame, formula: Formula, **kwargs: Any) -> FittedModel:
        from sklearn.decomposition import FactorAnalysis
        from sklearn.pipeline import make_pipeline
        from sklearn.preprocessing import StandardScaler

        factors = kwargs.pop("factors", None)
        if factors is None:
            raise TypeError("factanal requires 'factors' (the number of factors).")
        rotation = kwargs.pop("rotation", "varimax")
        matrices = _matrix_design(self, data, formula)

        pipeline = make_pipeline(
            StandardScaler(),
            FactorAnalysis(n_components=int(factors), rotation=rotation, **kwargs),
        ).fit(matrices.x)
        fa = pipeline[-1]
        loadings = fa.components_.T

        predict_matrix = factor_score_matrix(matrices.x.to_numpy(dtype=float), loadings)
        names = _numbered("Factor", loadings.shape[1])
        fields = {
            "loadings": pd.DataFrame(loadings, index=matrices.x.columns, columns=names),
            "uniquenesses": pd.Series(fa.noise_variance_, index=matrices.x.columns),
            "factors": int(factors),
            "rotation": rotation,
            "iter": int(fa.n_iter_),
        }
        return FittedModel(
            family=self.name,
            model=pipeline,
            metadata=_metadata(data, formula, matrices, predict_matrix=predict_matrix),
            fields=fields,
        )

    def predict(self, fitted: FittedModel, data: Any, **kwargs: Any) -> pd.DataFrame:
        x = _predict_design(fitted, data)
        scores = factor_scores(x.to_numpy(dtype=float), fitted.metadata.predict_matrix)
        return pd.DataFrame(scores, index=x.index, columns=fitted["loadings"].columns)


# ------------------------------------------------------------------ #
# Family registry
# ------------------------------------------------------------------ #

_FAMILIES: dict[str, type] = {}
"""Registry mapping family name strings to concrete ModelFamily classes."""


def register_family(name: str, cls: type) -> None:
    """Register a concrete ``ModelFamily`` class under *name*.

    Args:
        name: Lookup key (e.g. ``"kmeans"``).
        cls: A class implementing the ``ModelFamily`` protocol.

    Raises:
        TypeError: If *cls* does not satisfy the ``ModelFamily``
            protocol.
    """
    # runtime_checkable protocols with non-method members do not
    # support issubclass(); use isinstance() on a sentinel instance.
    try:
        instance = cls()
    except Exception:  # noqa: BLE001
        msg = f"{cls!r} could not be instantiated for protocol check."
        raise TypeError(msg) from None
    if not isinstance(instance, ModelFamily):
        msg = f"{cls!r} does not implement the ModelFamily protocol."
        raise TypeError(msg)
    _FAMILIES[name] = cls


def resolve_family(family: str | ModelFamily) -> ModelFamily:
    """Resolve a family name or instance to a ``ModelFamily``.

    Instances are returned as-is.

    Raises:
        ValueError: If *family* is a name that is not registered.
    """
    if isinstance(family, ModelFamily):
        return family
    if family not in _FAMILIES:
        available = ", ".join(sorted(_FAMILIES)) or "(none registered)"
        msg = f"Unknown family {family!r}.  Available families: {available}."
        raise ValueError(msg)
    instance: ModelFamily = _FAMILIES[family]()
    return instance


def family_for_result(result: Any) -> ModelFamily:
    """Find the family that predicts from a raw library *result*.

    An exact type match wins over a subclass match, so a GLM result
    resolves to ``glm`` even though it subclasses the OLS result type.

    Raises:
        TypeError: If no registered family accepts *result*.
    """
    families = [cls() for cls in _FAMILIES.values()]
    for family in families:
        if type(result) in family.result_types:
            return family
    for family in families:
        if family.result_types and isinstance(result, family.result_types):
            return family
    raise TypeError(f"No model family predicts from {type(result).__name__}.")


# ------------------------------------------------------------------ #
# Register built-in families
# ------------------------------------------------------------------ #

register_family("ttest", TTestFamily)
register_family("lm", LinearFamily)
register_family("glm", GLMFamily)
register_family("kmeans", KMeansFamily)
register_family("prcomp", PCAFamily)
register_family("aov", AnovaFamily)
register_family("factanal", FactorAnalysisFamily)
