"""Reference model consumed by the distance engine.

The reference is built upstream (cluster centroids in the shared
embedding plus one covariance matrix per cluster) and is never mutated
here.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import DimensionMismatchError, InvalidInputError

PathLike = Union[str, Path]


def _frozen_copy(values: Any) -> np.ndarray:
    arr = np.array(values, dtype=float, copy=True)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, init=False, eq=False)
class ReferenceModel:
    """Immutable reference: K cluster centers with their covariances.

    Parameters
    ----------
    centers : array-like
        Cluster centers, shape (K, d)
    covariances : array-like
        Per-cluster covariance matrices, shape (K, d, d)
    cluster_names : Sequence[str], optional
        Cluster labels; defaults to "0".."K-1"

    Raises
    ------
    DimensionMismatchError
        If shapes are inconsistent or K == 0
    InvalidInputError
        If any center or covariance entry is non-finite

    Example
    -------
    >>> ref = ReferenceModel(
    ...     centers=[[0.0, 0.0], [10.0, 10.0]],
    ...     covariances=[np.eye(2), np.eye(2)],
    ... )
    >>> ref.n_clusters, ref.n_dims
    (2, 2)
    """

    centers: np.ndarray
    covariances: np.ndarray
    cluster_names: Tuple[str, ...]

    def __init__(
        self,
        centers: Any,
        covariances: Any,
        cluster_names: Optional[Sequence[str]] = None,
    ):
        centers_arr = _frozen_copy(centers)
        cov_arr = _frozen_copy(covariances)

        if centers_arr.ndim != 2:
            raise DimensionMismatchError(
                f"Reference centers must be a (K, d) matrix, got shape {centers_arr.shape}"
            )
        n_clusters, n_dims = centers_arr.shape
        if n_clusters < 1:
            raise DimensionMismatchError("Reference must contain at least one cluster")
        if cov_arr.shape != (n_clusters, n_dims, n_dims):
            raise DimensionMismatchError(
                f"Expected covariances of shape {(n_clusters, n_dims, n_dims)}, "
                f"got {cov_arr.shape}"
            )
        if not np.isfinite(centers_arr).all():
            raise InvalidInputError("Reference centers contain non-finite values")
        if not np.isfinite(cov_arr).all():
            raise InvalidInputError("Reference covariances contain non-finite values")

        if cluster_names is None:
            names = tuple(str(k) for k in range(n_clusters))
        else:
            names = tuple(str(name) for name in cluster_names)
            if len(names) != n_clusters:
                raise DimensionMismatchError(
                    f"Got {len(names)} cluster names for {n_clusters} clusters"
                )

        object.__setattr__(self, "centers", centers_arr)
        object.__setattr__(self, "covariances", cov_arr)
        object.__setattr__(self, "cluster_names", names)

    @property
    def n_clusters(self) -> int:
        """Number of reference clusters (K)."""
        return self.centers.shape[0]

    @property
    def n_dims(self) -> int:
        """Embedding dimensionality (d)."""
        return self.centers.shape[1]

    def condition_numbers(self) -> np.ndarray:
        """2-norm condition number of each cluster covariance."""
        return np.array([np.linalg.cond(cov) for cov in self.covariances])

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ReferenceModel":
        """Create a reference from a mapping (e.g. ``adata.uns`` entry).

        Accepts ``centers`` (K x d) or ``center_ks`` (d x K, one column per
        cluster), plus ``covariances`` or ``cov_ks``.
        """
        if "centers" in data:
            centers = np.asarray(data["centers"], dtype=float)
        elif "center_ks" in data:
            centers = np.asarray(data["center_ks"], dtype=float).T
        else:
            raise KeyError("Reference is missing 'centers' (or 'center_ks')")

        if "covariances" in data:
            covariances = data["covariances"]
        elif "cov_ks" in data:
            covariances = data["cov_ks"]
        else:
            raise KeyError("Reference is missing 'covariances' (or 'cov_ks')")

        names = data.get("cluster_names")
        if names is not None:
            names = [str(name) for name in np.asarray(names).tolist()]
        return cls(
            centers=centers,
            covariances=np.asarray([np.asarray(cov, dtype=float) for cov in covariances]),
            cluster_names=names,
        )

    @classmethod
    def from_npz(cls, path: PathLike) -> "ReferenceModel":
        """Load a reference saved with :meth:`to_npz` or by the builder."""
        with np.load(Path(path), allow_pickle=False) as npz:
            return cls.from_dict({key: npz[key] for key in npz.files})

    def to_npz(self, path: PathLike) -> Path:
        """Save the reference as a compressed ``.npz`` archive."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        np.savez_compressed(
            path,
            centers=self.centers,
            covariances=self.covariances,
            cluster_names=np.array(self.cluster_names, dtype=str),
        )
        return path
