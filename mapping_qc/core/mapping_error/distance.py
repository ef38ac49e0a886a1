"""Mahalanobis distances from query cells to reference clusters.

Each cluster is evaluated independently: all N cells against that
cluster's center and inverse covariance in one batched pass. Columns
are assembled by cluster index, so parallel and sequential execution
give identical matrices.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
from joblib import Parallel, delayed

from .errors import DimensionMismatchError, InvalidInputError, NumericalError
from .reference import ReferenceModel

logger = logging.getLogger(__name__)

# Reciprocal condition numbers below this are computationally singular
RCOND_TOL = np.finfo(float).eps


def is_computationally_singular(cond: float) -> bool:
    """True if a condition number marks a matrix as numerically singular."""
    return not np.isfinite(cond) or 1.0 / cond < RCOND_TOL


def invert_covariance(cov: np.ndarray, cluster: str = "?") -> np.ndarray:
    """Invert a cluster covariance, rejecting singular matrices.

    Parameters
    ----------
    cov : np.ndarray
        Covariance matrix (d x d)
    cluster : str
        Cluster name used in error messages

    Returns
    -------
    np.ndarray
        Inverse covariance

    Raises
    ------
    NumericalError
        If the matrix is singular or its reciprocal condition number is
        below machine epsilon
    """
    cond = np.linalg.cond(cov)
    if is_computationally_singular(cond):
        raise NumericalError(
            f"Covariance of cluster '{cluster}' is computationally singular "
            f"(condition number {cond:.3e})",
            cluster=cluster,
        )
    try:
        return np.linalg.inv(cov)
    except np.linalg.LinAlgError as exc:
        raise NumericalError(
            f"Covariance of cluster '{cluster}' is not invertible: {exc}",
            cluster=cluster,
        ) from exc


def squared_mahalanobis(
    embeddings: np.ndarray,
    center: np.ndarray,
    inv_cov: np.ndarray,
) -> np.ndarray:
    """Squared Mahalanobis distance of every row to one center."""
    diff = embeddings - center
    return np.einsum("ij,jk,ik->i", diff, inv_cov, diff)


def cluster_distances(
    embeddings: np.ndarray,
    center: np.ndarray,
    cov: np.ndarray,
    cluster: str = "?",
    negative_tolerance: float = 1e-10,
) -> np.ndarray:
    """Mahalanobis distances of all cells to a single reference cluster.

    Parameters
    ----------
    embeddings : np.ndarray
        Query embedding (N x d)
    center : np.ndarray
        Cluster center (d,)
    cov : np.ndarray
        Cluster covariance (d x d)
    cluster : str
        Cluster name used in messages
    negative_tolerance : float
        Squared distances in [-negative_tolerance, 0) are set to 0 and
        reported with a warning

    Returns
    -------
    np.ndarray
        Distances (N,)

    Raises
    ------
    NumericalError
        If the covariance is singular or a squared distance is negative
        beyond the tolerance
    """
    inv_cov = invert_covariance(cov, cluster=cluster)
    sq = squared_mahalanobis(embeddings, center, inv_cov)

    negative = sq < 0
    if negative.any():
        worst = float(sq.min())
        if worst < -negative_tolerance:
            raise NumericalError(
                f"Negative squared Mahalanobis distance ({worst:.3e}) for cluster "
                f"'{cluster}'; covariance is not positive definite",
                cluster=cluster,
            )
        logger.warning(
            "Cluster %s: %d squared distances in [%.1e, 0) set to 0",
            cluster,
            int(negative.sum()),
            -negative_tolerance,
        )
        sq = np.where(negative, 0.0, sq)

    return np.sqrt(sq)


def check_embedding_shape(embeddings: np.ndarray, reference: ReferenceModel) -> None:
    """Validate a query embedding against the reference dimensionality.

    Raises
    ------
    DimensionMismatchError
        If the embedding is not N x d
    InvalidInputError
        If the embedding contains non-finite values
    """
    if embeddings.ndim != 2:
        raise DimensionMismatchError(
            f"Embeddings must be a 2-D (cells x dims) matrix, got shape {embeddings.shape}"
        )
    if embeddings.shape[1] != reference.n_dims:
        raise DimensionMismatchError(
            f"Embedding has {embeddings.shape[1]} dimensions but the reference "
            f"has {reference.n_dims}"
        )
    if not np.isfinite(embeddings).all():
        raise InvalidInputError("Embeddings contain non-finite values")


def mahalanobis_distances(
    embeddings: np.ndarray,
    reference: ReferenceModel,
    n_jobs: int = 1,
    negative_tolerance: float = 1e-10,
    logger: Optional[logging.Logger] = None,
) -> np.ndarray:
    """Compute the N x K Mahalanobis distance matrix.

    ``dist[i, k] = sqrt((x_i - c_k)^T cov_k^-1 (x_i - c_k))``

    Parameters
    ----------
    embeddings : np.ndarray
        Query embedding (N x d)
    reference : ReferenceModel
        Reference clusters
    n_jobs : int
        Parallel workers across clusters (1 = sequential, -1 = all cores)
    negative_tolerance : float
        See :func:`cluster_distances`
    logger : logging.Logger, optional
        Logger instance

    Returns
    -------
    np.ndarray
        Distance matrix (N x K), columns in reference cluster order
    """
    logger = logger or logging.getLogger(__name__)
    embeddings = np.asarray(embeddings, dtype=float)
    check_embedding_shape(embeddings, reference)

    n_cells = embeddings.shape[0]
    n_clusters = reference.n_clusters
    logger.info(
        "Computing Mahalanobis distances: %d cells x %d clusters (d=%d, n_jobs=%d)",
        n_cells,
        n_clusters,
        reference.n_dims,
        n_jobs,
    )

    jobs = (
        delayed(cluster_distances)(
            embeddings,
            reference.centers[k],
            reference.covariances[k],
            cluster=reference.cluster_names[k],
            negative_tolerance=negative_tolerance,
        )
        for k in range(n_clusters)
    )
    if n_jobs == 1:
        columns = [func(*args, **kwargs) for func, args, kwargs in jobs]
    else:
        columns = Parallel(n_jobs=n_jobs, prefer="threads")(jobs)

    distances = np.empty((n_cells, n_clusters), dtype=float)
    for k, column in enumerate(columns):
        distances[:, k] = column
    return distances
