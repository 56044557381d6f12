"""framefit: data-first, formula-second statistical model fitting.

One calling convention, ``fit(data, formula, ...)``, in front of scipy,
statsmodels and scikit-learn routines, and one ``predict(fitted, data)``
that also works for clustering, principal components and factor
analysis, whose libraries cannot predict from a formula.

Public API:
    .. autosummary::
        ttest
        lm
        glm
        aov
        anova
        kmeans
        prcomp
        factanal
        predict
        build
        normalize_args
        validate_for_predict
        Formula
        ALL_COLUMNS
        DesignMatrices
        FittedModel
        ModelMetadata
        ModelFamily
        register_family
        resolve_family
        get_na_action
        set_na_action
        FramefitError
        DependencyError
        SchemaError
        FormulaError
        SingularMatrixError
"""

from ._config import get_na_action, set_na_action
from ._results import FittedModel, ModelMetadata
from .arguments import normalize_args, validate_for_predict
from .core import aov, anova, factanal, glm, kmeans, lm, prcomp, predict, ttest
from .design import DesignMatrices, build
from .exceptions import (
    DependencyError,
    FormulaError,
    FramefitError,
    SchemaError,
    SingularMatrixError,
)
from .families import ModelFamily, register_family, resolve_family
from .formula import ALL_COLUMNS, Formula

__all__ = [
    "ttest",
    "lm",
    "glm",
    "aov",
    "anova",
    "kmeans",
    "prcomp",
    "factanal",
    "predict",
    "build",
    "normalize_args",
    "validate_for_predict",
    "Formula",
    "ALL_COLUMNS",
    "DesignMatrices",
    "FittedModel",
    "ModelMetadata",
    "ModelFamily",
    "register_family",
    "resolve_family",
    "get_na_action",
    "set_na_action",
    "FramefitError",
    "DependencyError",
    "SchemaError",
    "FormulaError",
    "SingularMatrixError",
]

__version__ = "0.1.0"
