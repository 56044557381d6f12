"""Prediction for models whose libraries cannot predict from a formula.

Three algorithms live here:

* :func:`nearest_centroid`: k-means cluster assignment for new rows.
* :func:`factor_score_matrix`: the fit-time half of regression
  ("Thomson") factor scores: ``R⁻¹ Λ``.
* :func:`factor_scores`: the predict-time half: standardized rows
  times the score matrix.

Principal-component prediction needs no algorithm of its own; the
fitted scikit-learn pipeline projects new rows (see
``PCAFamily.predict`` in ``families.py``).
"""

from __future__ import annotations

import logging

import numpy as np

from .exceptions import SingularMatrixError

logger = logging.getLogger(__name__)

# Reciprocal condition number below which the correlation matrix is
# treated as singular.  Exactly collinear columns rarely produce an
# exactly singular matrix in floating point.
_RCOND = np.finfo(float).eps * 64


def nearest_centroid(x: np.ndarray, centers: np.ndarray) -> np.ndarray:
    """Assign every row of *x* to its closest centroid.

    Distance is Euclidean.  Ties go to the lowest centroid index.

    Args:
        x: Points of shape ``(n, p)``.
        centers: Centroids of shape ``(k, p)``.

    Returns:
        Integer array of shape ``(n,)`` with 1-based centroid indices.

    Raises:
        ValueError: If the column counts differ.
    """
    x = np.asarray(x, dtype=float)
    centers = np.asarray(centers, dtype=float)
    if x.ndim != 2 or centers.ndim != 2 or x.shape[1] != centers.shape[1]:
        raise ValueError(
            f"x {x.shape} and centers {centers.shape} must be 2-D with the "
            "same number of columns."
        )
    # distances[i, j] = ||x_i - c_j||
    diffs = x[:, np.newaxis, :] - centers[np.newaxis, :, :]
    distances = np.sqrt(np.sum(diffs**2, axis=2))
    # argmin returns the first minimum.
    return np.argmin(distances, axis=1) + 1


def factor_score_matrix(x: np.ndarray, loadings: np.ndarray) -> np.ndarray:
    """Regression factor-score coefficients ``R⁻¹ Λ``.

    ``R`` is the correlation matrix of *x*, computed from its ddof=1
    covariance.

    Args:
        x: Fit-time design matrix ``(n, p)``.
        loadings: Factor loadings ``Λ`` of shape ``(p, m)``.

    Returns:
        The ``(p, m)`` matrix that maps standardized rows to scores.

    Raises:
        SingularMatrixError: If ``R`` is not invertible.
    """
    x = np.asarray(x, dtype=float)
    loadings = np.asarray(loadings, dtype=float)
    cv = np.atleast_2d(np.cov(x, rowvar=False))
    sds = np.sqrt(np.diag(cv))
    with np.errstate(divide="ignore", invalid="ignore"):
        correlation = cv / np.outer(sds, sds)

    if not np.all(np.isfinite(correlation)):
        raise SingularMatrixError(
            "correlation matrix has undefined entries (constant column?)."
        )
    # Condition via the smallest/largest singular value ratio.
    singular_values = np.linalg.svd(correlation, compute_uv=False)
    if singular_values[-1] <= _RCOND * singular_values[0]:
        raise SingularMatrixError(
            "correlation matrix is singular; predictors are collinear."
        )
    try:
        predict_matrix = np.linalg.solve(correlation, loadings)
    except np.linalg.LinAlgError as exc:
        raise SingularMatrixError(f"correlation matrix is singular: {exc}") from exc
    logger.debug("Factor score matrix of shape %s", predict_matrix.shape)
    return predict_matrix


def factor_scores(x: np.ndarray, predict_matrix: np.ndarray) -> np.ndarray:
    """Standardize *x* by its own column means and ddof=1 standard
    deviations, then multiply by *predict_matrix*.

    New data is scaled by its own statistics, not the fit-time ones, as
    R's ``scale()`` does.  A single row, or any column that is constant
    in *x*, has a zero or undefined standard deviation, so the affected
    scores are NaN (numpy emits a ``RuntimeWarning``; no error is
    raised).

    Returns:
        Scores of shape ``(n, m)``.
    """
    x = np.asarray(x, dtype=float)
    scaled = (x - x.mean(axis=0)) / x.std(axis=0, ddof=1)
    return scaled @ np.asarray(predict_matrix, dtype=float)
