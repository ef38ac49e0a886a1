"""Mapping error engine: score query cells against a reference and call QC.

Runs the three stages in order on an AnnData query:

1. Mahalanobis distance of every cell to every reference cluster
2. Weighted sum of distances by soft cluster membership
3. median + k * MAD thresholding, globally or per donor

All inputs are validated before any distance is computed, and nothing
is written back to the AnnData unless every stage succeeds.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from .aggregation import aggregate_scores, check_weights_shape, weights_are_normalized
from .config import MappingErrorConfig
from .distance import check_embedding_shape, mahalanobis_distances
from .errors import ConfigurationError
from .reference import ReferenceModel
from .thresholding import FAIL, PASS, QC_CATEGORIES, ClassificationResult, classify_scores


@dataclass
class MappingErrorResult:
    """Result from scoring a query.

    Attributes
    ----------
    n_cells : int
        Number of query cells scored
    n_clusters : int
        Number of reference clusters
    scores : np.ndarray
        Mapping error score per cell
    labels : np.ndarray
        "Pass"/"Fail" per cell
    thresholds : pd.DataFrame
        Per-group threshold table
    distances : np.ndarray, optional
        Per-cluster distances (N x K), kept when store_distances is set
    weights_normalized : bool
        Whether every weight row summed to 1
    elapsed_seconds : float
        Wall time of the scoring run
    """

    n_cells: int = 0
    n_clusters: int = 0
    scores: np.ndarray = field(default_factory=lambda: np.empty(0))
    labels: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=object))
    thresholds: pd.DataFrame = field(default_factory=pd.DataFrame)
    distances: Optional[np.ndarray] = None
    weights_normalized: bool = True
    elapsed_seconds: float = 0.0

    @property
    def n_fail(self) -> int:
        return int((self.labels == FAIL).sum())

    @property
    def n_pass(self) -> int:
        return int((self.labels == PASS).sum())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for reporting."""
        return {
            "n_cells": self.n_cells,
            "n_clusters": self.n_clusters,
            "n_pass": self.n_pass,
            "n_fail": self.n_fail,
            "fail_fraction": round(self.n_fail / self.n_cells, 4) if self.n_cells else 0.0,
            "score_median": float(np.median(self.scores)) if self.n_cells else None,
            "score_max": float(np.max(self.scores)) if self.n_cells else None,
            "weights_normalized": self.weights_normalized,
            "n_groups": len(self.thresholds),
            "elapsed_seconds": round(self.elapsed_seconds, 3),
        }


class MappingErrorEngine:
    """Per-cell mapping confidence scoring with MAD-based QC.

    Parameters
    ----------
    config : MappingErrorConfig, optional
        Scoring configuration. If None, uses defaults.
    logger : logging.Logger, optional
        Logger instance. If None, creates default logger.

    Example
    -------
    >>> from mapping_qc.core.mapping_error import MappingErrorEngine, MappingErrorConfig
    >>> engine = MappingErrorEngine(MappingErrorConfig(mad_threshold=3.0))
    >>> result = engine.run(adata, reference)
    >>> print(f"{result.n_fail} of {result.n_cells} cells failed")
    """

    def __init__(
        self,
        config: Optional[MappingErrorConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or MappingErrorConfig()
        self.logger = logger or logging.getLogger(__name__)

    def check_config(self, adata: Any) -> None:
        """Validate parameters and required AnnData keys.

        Raises
        ------
        ConfigurationError
            If the config is inconsistent or a required key is absent
        """
        problems = self.config.validate()
        if problems:
            raise ConfigurationError("; ".join(problems))

        if self.config.threshold_by_donor and self.config.donor_key not in adata.obs:
            raise ConfigurationError(
                f"Label '{self.config.donor_key}' is not available in the query metadata"
            )
        if self.config.embedding_key not in adata.obsm:
            raise ConfigurationError(f"Missing '{self.config.embedding_key}' in AnnData.obsm")
        store, store_name = self._weights_store(adata)
        if self.config.weights_key not in store:
            raise ConfigurationError(f"Missing '{self.config.weights_key}' in AnnData.{store_name}")

    def _weights_store(self, adata: Any):
        # K x N matrices cannot live in the cell-indexed obsm
        if self.config.weights_layout == "clusters_by_cells":
            return adata.uns, "uns"
        return adata.obsm, "obsm"

    def get_embeddings(self, adata: Any) -> np.ndarray:
        """Return the query embedding as a dense float matrix."""
        return np.asarray(adata.obsm[self.config.embedding_key], dtype=float)

    def get_weights(self, adata: Any) -> np.ndarray:
        """Return soft cluster weights as a cells x clusters matrix."""
        store, _ = self._weights_store(adata)
        weights = np.asarray(store[self.config.weights_key], dtype=float)
        if self.config.weights_layout == "clusters_by_cells":
            weights = weights.T
        return weights

    def get_groups(self, adata: Any) -> Optional[pd.Series]:
        """Return donor labels if per-donor thresholding is enabled."""
        if not self.config.threshold_by_donor:
            return None
        return adata.obs[self.config.donor_key]

    def score(
        self,
        embeddings: np.ndarray,
        weights: np.ndarray,
        reference: ReferenceModel,
        groups: Optional[Any] = None,
    ) -> MappingErrorResult:
        """Score and classify cells from plain arrays.

        Parameters
        ----------
        embeddings : np.ndarray
            Query embedding (N x d)
        weights : np.ndarray
            Soft cluster membership (N x K)
        reference : ReferenceModel
            Reference clusters
        groups : array-like, optional
            Group label per cell; enables per-group thresholds

        Returns
        -------
        MappingErrorResult
            Scores, labels and thresholds
        """
        start = time.time()
        embeddings = np.asarray(embeddings, dtype=float)
        weights = np.asarray(weights, dtype=float)

        # Fail fast before any distance is computed
        check_embedding_shape(embeddings, reference)
        check_weights_shape(weights, embeddings.shape[0], reference.n_clusters)

        normalized = weights_are_normalized(weights, atol=self.config.normalization_atol)
        if not normalized:
            self.logger.warning(
                "Cluster weights do not sum to 1 for every cell; scores are an "
                "unnormalised weighted sum and scale with the row sums"
            )

        distances = mahalanobis_distances(
            embeddings,
            reference,
            n_jobs=self.config.n_jobs,
            negative_tolerance=self.config.negative_tolerance,
            logger=self.logger,
        )
        scores = aggregate_scores(distances, weights)

        mode = "per-group" if groups is not None else "global"
        self.logger.info(
            "Thresholding %d scores (%s, median + %.2f * MAD)",
            len(scores),
            mode,
            self.config.mad_threshold,
        )
        classification: ClassificationResult = classify_scores(
            scores, n_mads=self.config.mad_threshold, groups=groups
        )
        for group in classification.groups:
            self.logger.debug(
                "Group %s: n=%d median=%.4f MAD=%.4f threshold=%.4f fail=%d",
                group.group,
                group.n_cells,
                group.median,
                group.mad,
                group.threshold,
                group.n_fail,
            )

        result = MappingErrorResult(
            n_cells=len(scores),
            n_clusters=reference.n_clusters,
            scores=scores,
            labels=classification.labels,
            thresholds=classification.thresholds,
            distances=distances if self.config.store_distances else None,
            weights_normalized=normalized,
            elapsed_seconds=time.time() - start,
        )
        self.logger.info(
            "Mapping error QC: %d pass, %d fail (%.1f%%)",
            result.n_pass,
            result.n_fail,
            100.0 * result.n_fail / result.n_cells if result.n_cells else 0.0,
        )
        return result

    def run(self, adata: Any, reference: ReferenceModel) -> MappingErrorResult:
        """Score an AnnData query and write the results back.

        Writes ``obs[score_key]``, ``obs[qc_key]`` and ``uns["mapping_error"]``
        (plus ``obsm[distances_key]`` when store_distances is set).

        Parameters
        ----------
        adata : AnnData
            Query cells projected into the reference embedding
        reference : ReferenceModel
            Reference clusters

        Returns
        -------
        MappingErrorResult
            Scores, labels and thresholds
        """
        self.check_config(adata)
        result = self.score(
            self.get_embeddings(adata),
            self.get_weights(adata),
            reference,
            groups=self.get_groups(adata),
        )
        self.annotate(adata, result)
        return result

    def annotate(self, adata: Any, result: MappingErrorResult) -> None:
        """Write scores, QC calls and run parameters onto the AnnData."""
        cfg = self.config
        adata.obs[cfg.score_key] = result.scores
        adata.obs[cfg.qc_key] = pd.Categorical(result.labels, categories=QC_CATEGORIES)
        if result.distances is not None:
            adata.obsm[cfg.distances_key] = result.distances

        thresholds = result.thresholds.copy()
        thresholds["group"] = thresholds["group"].astype(str)
        adata.uns["mapping_error"] = {
            "params": {k: v for k, v in cfg.to_dict().items() if v is not None},
            "summary": {k: v for k, v in result.to_dict().items() if v is not None},
            "thresholds": thresholds,
        }


def calculate_mapping_error(
    adata: Any,
    reference: ReferenceModel,
    mad_threshold: float = 2.5,
    threshold_by_donor: bool = False,
    donor_key: Optional[str] = None,
    **config_kwargs: Any,
) -> Any:
    """Annotate a query AnnData with mapping error scores and QC calls.

    Parameters
    ----------
    adata : AnnData
        Query cells projected into the reference embedding
    reference : ReferenceModel
        Reference clusters
    mad_threshold : float
        MAD multiplier for the Fail threshold (default: 2.5)
    threshold_by_donor : bool
        Compute thresholds within each donor
    donor_key : str, optional
        obs column with donor labels
    **config_kwargs
        Any other MappingErrorConfig field

    Returns
    -------
    AnnData
        The same object, with ``mapping_error_score`` and
        ``mapping_error_QC`` added to obs
    """
    config = MappingErrorConfig(
        mad_threshold=mad_threshold,
        threshold_by_donor=threshold_by_donor,
        donor_key=donor_key,
        **config_kwargs,
    )
    MappingErrorEngine(config).run(adata, reference)
    return adata
