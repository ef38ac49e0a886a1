"""Mock reference and query generators for testing.

Provides functions to build small references and AnnData queries
without requiring a real reference atlas.
"""

from typing import Optional, Sequence

import numpy as np
import pandas as pd

from mapping_qc.core.mapping_error import ReferenceModel


def create_mock_reference(
    n_clusters: int = 4,
    n_dims: int = 5,
    seed: int = 42,
    spread: float = 10.0,
) -> ReferenceModel:
    """Create a reference with random centers and SPD covariances.

    Parameters
    ----------
    n_clusters : int
        Number of reference clusters
    n_dims : int
        Embedding dimensionality
    seed : int
        Random seed for reproducibility
    spread : float
        Scale of the cluster center coordinates

    Returns
    -------
    ReferenceModel
        Reference with well-conditioned covariances
    """
    rng = np.random.default_rng(seed)
    centers = rng.uniform(-spread, spread, size=(n_clusters, n_dims))
    covariances = []
    for _ in range(n_clusters):
        a = rng.normal(size=(n_dims, n_dims))
        covariances.append(a @ a.T + n_dims * np.eye(n_dims))
    return ReferenceModel(
        centers=centers,
        covariances=np.stack(covariances),
        cluster_names=[f"cluster_{k}" for k in range(n_clusters)],
    )


def create_two_cluster_reference() -> ReferenceModel:
    """Two identity-covariance clusters at (0, 0) and (10, 10)."""
    return ReferenceModel(
        centers=[[0.0, 0.0], [10.0, 10.0]],
        covariances=[np.eye(2), np.eye(2)],
    )


def create_mock_query(
    reference: ReferenceModel,
    n_cells: int = 200,
    seed: int = 42,
    noise: float = 1.0,
):
    """Sample query embeddings around reference centers.

    Returns
    -------
    Tuple[np.ndarray, np.ndarray, np.ndarray]
        (embeddings N x d, soft weights N x K, hard cluster index N)
    """
    rng = np.random.default_rng(seed)
    assigned = rng.integers(0, reference.n_clusters, size=n_cells)
    embeddings = reference.centers[assigned] + rng.normal(
        scale=noise, size=(n_cells, reference.n_dims)
    )

    logits = rng.normal(size=(n_cells, reference.n_clusters))
    logits[np.arange(n_cells), assigned] += 4.0
    weights = np.exp(logits)
    weights /= weights.sum(axis=1, keepdims=True)
    return embeddings, weights, assigned


def create_query_adata(
    embeddings: np.ndarray,
    weights: np.ndarray,
    donors: Optional[Sequence[str]] = None,
    embedding_key: str = "X_pca",
    weights_key: str = "R",
):
    """Wrap query arrays in an AnnData object.

    Parameters
    ----------
    embeddings : np.ndarray
        Query embedding (N x d)
    weights : np.ndarray
        Soft cluster weights (N x K)
    donors : Sequence[str], optional
        Donor label per cell, stored in obs["donor"]
    embedding_key : str
        obsm key for the embedding
    weights_key : str
        obsm key for the weights

    Returns
    -------
    AnnData
        Query with an empty expression matrix
    """
    import anndata as ad

    n_cells = embeddings.shape[0]
    obs = pd.DataFrame(index=pd.Index([f"cell_{i}" for i in range(n_cells)], name="cell_id"))
    if donors is not None:
        obs["donor"] = pd.Categorical(list(donors))

    adata = ad.AnnData(X=np.zeros((n_cells, 1), dtype=np.float32), obs=obs)
    adata.obsm[embedding_key] = np.asarray(embeddings, dtype=float)
    adata.obsm[weights_key] = np.asarray(weights, dtype=float)
    return adata
