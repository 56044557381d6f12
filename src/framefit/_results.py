"""Typed containers for fitted unsupervised models.

The clustering, principal-component and factor-analysis routines return
objects that know nothing about formulas, so prediction on new data
needs extra information captured at fit time.  Rather than stashing it
on the library object, it is carried next to it:

* :class:`ModelMetadata`: the formula, the patsy design of ``x``, and
  (factor analysis only) the factor-score predict matrix.
* :class:`FittedModel`: the unchanged library object, its metadata, and
  the routine's documented named outputs (``centers``, ``loadings``...).

Both are frozen: a fitted model is a snapshot and is safe to share
between concurrent predictions.

``FittedModel`` supports:

* **Attribute access**: ``fitted.model``, ``fitted.metadata``.
* **Dict-like access**: ``fitted["centers"]``, ``fitted.get("key")``,
  ``"key" in fitted`` for named outputs and data attributes.
* **Serialisation**: ``.to_dict()`` returns plain Python types.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd
from patsy import DesignInfo

from .formula import Formula

# Attributes reachable through dict syntax; methods are not.
_ATTRIBUTES = frozenset({"family", "model", "metadata", "formula"})

# ------------------------------------------------------------------ #
# Serialisation helper
# ------------------------------------------------------------------ #


def _numpy_to_python(obj: Any) -> Any:
    """Recursively convert NumPy / pandas values to Python-native types.

    Handles nested dicts, lists, DataFrames, Series, np.ndarray,
    np.integer, and np.floating so that :meth:`FittedModel.to_dict`
    returns a fully JSON-serialisable structure.
    """
    if isinstance(obj, pd.DataFrame):
        return {str(k): _numpy_to_python(v) for k, v in obj.to_dict(orient="list").items()}
    if isinstance(obj, pd.Series):
        return _numpy_to_python(obj.to_numpy())
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, (np.integer, np.bool_)):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, Formula):
        return str(obj)
    if isinstance(obj, dict):
        return {k: _numpy_to_python(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        converted = [_numpy_to_python(item) for item in obj]
        return type(obj)(converted)
    return obj


# ------------------------------------------------------------------ #
# Metadata
# ------------------------------------------------------------------ #


@dataclass(frozen=True, eq=False)
class ModelMetadata:
    """What a fitted unsupervised model needs to predict on new data."""

    formula: Formula
    """Normalized formula the model was fit with."""

    design_info: DesignInfo
    """patsy design of ``x`` at fit time."""

    columns: tuple[str, ...]
    """Design-matrix column names, in order."""

    variables: tuple[str, ...]
    """Input data columns the formula references."""

    predict_matrix: np.ndarray | None = None
    """Factor-score coefficients ``(p, m)``; factor analysis only."""


# ------------------------------------------------------------------ #
# FittedModel
# ------------------------------------------------------------------ #


@dataclass(frozen=True, eq=False)
class FittedModel:
    """A library fit paired with the metadata needed to predict.

    All named outputs are reachable with dict syntax
    (``fitted["centers"]``); attributes work the same way
    (``fitted["family"]``).
    """

    family: str
    """Registered family name (e.g. ``"kmeans"``)."""

    model: Any
    """The object returned by the fitting library, unchanged."""

    metadata: ModelMetadata
    """Formula and design captured at fit time."""

    fields: Mapping[str, Any] = field(default_factory=dict)
    """Documented named outputs of the routine."""

    @property
    def formula(self) -> Formula:
        return self.metadata.formula

    def __getitem__(self, key: str) -> Any:
        """Named-output lookup, falling back to the data attributes."""
        if key in self.fields:
            return self.fields[key]
        if key in _ATTRIBUTES:
            return getattr(self, key)
        raise KeyError(key)

    def get(self, key: str, default: Any = None) -> Any:
        """Lookup with a fallback default."""
        try:
            return self[key]
        except KeyError:
            return default

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        return key in self.fields or key in _ATTRIBUTES

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary.

        The library object and the patsy design are skipped; they are
        not plain data.
        """
        meta = {
            name: getattr(self.metadata, name)
            for name in ("formula", "columns", "variables", "predict_matrix")
        }
        return {
            "family": self.family,
            "metadata": _numpy_to_python(meta),
            "fields": _numpy_to_python(dict(self.fields)),
        }
