"""Per-cell mapping error score from per-cluster distances.

The score is the weighted *sum* of distances over clusters, not a
weighted average. With soft assignments that sum to 1 per cell the two
coincide; unnormalised weights scale the score proportionally.
"""

from __future__ import annotations

import numpy as np

from .errors import DimensionMismatchError, InvalidInputError


def check_weights_shape(weights: np.ndarray, n_cells: int, n_clusters: int) -> None:
    """Validate a soft assignment matrix.

    Raises
    ------
    DimensionMismatchError
        If weights are not ``n_cells x n_clusters``
    InvalidInputError
        If weights contain non-finite values
    """
    if weights.shape != (n_cells, n_clusters):
        raise DimensionMismatchError(
            f"Expected cluster weights of shape {(n_cells, n_clusters)}, got {weights.shape}"
        )
    if not np.isfinite(weights).all():
        raise InvalidInputError("Cluster weights contain non-finite values")


def weights_are_normalized(weights: np.ndarray, atol: float = 1e-6) -> bool:
    """Return True if every weight row sums to 1 within ``atol``."""
    weights = np.asarray(weights, dtype=float)
    if weights.size == 0:
        return True
    return bool(np.allclose(weights.sum(axis=1), 1.0, rtol=0.0, atol=atol))


def aggregate_scores(distances: np.ndarray, weights: np.ndarray) -> np.ndarray:
    """Weighted sum of per-cluster distances for each cell.

    ``score[i] = sum_k distances[i, k] * weights[i, k]``

    Parameters
    ----------
    distances : np.ndarray
        Per-cluster Mahalanobis distances (N x K)
    weights : np.ndarray
        Soft cluster membership (N x K), same cluster order as distances

    Returns
    -------
    np.ndarray
        Mapping error score per cell (N,)
    """
    distances = np.asarray(distances, dtype=float)
    weights = np.asarray(weights, dtype=float)
    if distances.ndim != 2:
        raise DimensionMismatchError(
            f"Distances must be a (cells x clusters) matrix, got shape {distances.shape}"
        )
    check_weights_shape(weights, *distances.shape)

    # Accumulate clusters in index order for run-to-run reproducibility
    scores = np.zeros(distances.shape[0], dtype=float)
    for k in range(distances.shape[1]):
        scores += distances[:, k] * weights[:, k]
    return scores
