"""Exception hierarchy for the framefit package.

Every error raised by framefit itself derives from :class:`FramefitError`
and also from the closest built-in exception, so callers that already
catch ``ValueError`` or ``ImportError`` keep working.  Errors raised by
the underlying fitting libraries (scipy, statsmodels, scikit-learn) are
never wrapped; they propagate unchanged.
"""

from __future__ import annotations

import numpy as np


class FramefitError(Exception):
    """Base class for errors raised by framefit."""


class DependencyError(FramefitError, ImportError):
    """A library required by a model family is not installed."""


class SchemaError(FramefitError, ValueError):
    """Input data cannot be used as a table, or lacks required columns."""


class FormulaError(FramefitError, ValueError):
    """A formula is malformed, references unknown columns, or has the
    wrong shape (response present/absent) for the model family."""


class SingularMatrixError(FramefitError, np.linalg.LinAlgError):
    """The correlation matrix used for factor scoring is not invertible."""
