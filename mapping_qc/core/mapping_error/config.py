"""Configuration for mapping error scoring.

All parameters are configurable via YAML so the same reference can be
applied to different query cohorts.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


WEIGHT_LAYOUTS = ("cells_by_clusters", "clusters_by_cells")


@dataclass
class MappingErrorConfig:
    """Configuration for mapping error scoring and QC.

    Attributes
    ----------
    mad_threshold : float
        Number of scaled MADs above the median before a cell is called Fail
    threshold_by_donor : bool
        Compute a separate threshold within each donor
    donor_key : str, optional
        obs column holding donor labels (required if threshold_by_donor)
    embedding_key : str
        obsm key of the query embedding in reference space (N x d)
    weights_key : str
        obsm key of the soft cluster assignment matrix
    weights_layout : str
        "cells_by_clusters" (N x K, in obsm) or "clusters_by_cells"
        (K x N, in uns)
    score_key : str
        obs column written with the per-cell score
    qc_key : str
        obs column written with the Pass/Fail call
    store_distances : bool
        Also write the N x K per-cluster distance matrix to obsm
    distances_key : str
        obsm key for the per-cluster distance matrix
    n_jobs : int
        Parallel workers across reference clusters (1 = sequential, -1 = all)
    negative_tolerance : float
        Squared distances in [-negative_tolerance, 0) are treated as rounding
        noise and set to zero with a warning; anything lower is an error
    normalization_atol : float
        Tolerance for warning about weight rows that do not sum to 1
    """

    mad_threshold: float = 2.5
    threshold_by_donor: bool = False
    donor_key: Optional[str] = None
    embedding_key: str = "X_pca"
    weights_key: str = "R"
    weights_layout: str = "cells_by_clusters"
    score_key: str = "mapping_error_score"
    qc_key: str = "mapping_error_QC"
    store_distances: bool = False
    distances_key: str = "mapping_error_dist"
    n_jobs: int = 1
    negative_tolerance: float = 1e-10
    normalization_atol: float = 1e-6

    def validate(self) -> List[str]:
        """Check parameter consistency.

        Returns
        -------
        List[str]
            Problems found (empty if valid)
        """
        errors = []
        if self.mad_threshold < 0:
            errors.append(f"mad_threshold must be >= 0, got {self.mad_threshold}")
        if self.weights_layout not in WEIGHT_LAYOUTS:
            errors.append(
                f"weights_layout must be one of {WEIGHT_LAYOUTS}, got '{self.weights_layout}'"
            )
        if self.n_jobs == 0:
            errors.append("n_jobs must be a positive integer or -1")
        if self.negative_tolerance < 0:
            errors.append("negative_tolerance must be >= 0")
        if self.threshold_by_donor and not self.donor_key:
            errors.append("donor_key is required when threshold_by_donor is enabled")
        return errors

    @classmethod
    def from_yaml(cls, path: Path) -> "MappingErrorConfig":
        """Load configuration from YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        # Handle nested mapping_error section
        if "mapping_error" in data:
            data = data["mapping_error"] or {}

        return cls(**data)

    @classmethod
    def default(cls) -> "MappingErrorConfig":
        """Create default configuration."""
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "mad_threshold": self.mad_threshold,
            "threshold_by_donor": self.threshold_by_donor,
            "donor_key": self.donor_key,
            "embedding_key": self.embedding_key,
            "weights_key": self.weights_key,
            "weights_layout": self.weights_layout,
            "score_key": self.score_key,
            "qc_key": self.qc_key,
            "store_distances": self.store_distances,
            "distances_key": self.distances_key,
            "n_jobs": self.n_jobs,
            "negative_tolerance": self.negative_tolerance,
            "normalization_atol": self.normalization_atol,
        }
