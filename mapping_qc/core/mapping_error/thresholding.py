"""Robust Pass/Fail calls on mapping error scores.

A cell fails when its score exceeds ``median + k * MAD`` of the scores in
its partition. Global thresholding is the special case of a single
partition, so both modes share the same threshold function.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ...utils.stats import mad, robust_threshold
from .errors import ConfigurationError, DimensionMismatchError

PASS = "Pass"
FAIL = "Fail"
QC_CATEGORIES = [PASS, FAIL]

GLOBAL_GROUP = "all"

THRESHOLD_COLUMNS = [
    "group",
    "n_cells",
    "median",
    "mad",
    "threshold",
    "n_fail",
    "fail_fraction",
]


@dataclass
class GroupThreshold:
    """Threshold statistics for one partition of cells.

    Attributes
    ----------
    group : Any
        Partition label (GLOBAL_GROUP in global mode)
    n_cells : int
        Cells in the partition
    median : float
        Median score
    mad : float
        Scaled median absolute deviation
    threshold : float
        median + k * MAD
    n_fail : int
        Cells with score strictly above the threshold
    """

    group: Any
    n_cells: int
    median: float
    mad: float
    threshold: float
    n_fail: int = 0

    @property
    def fail_fraction(self) -> float:
        return self.n_fail / self.n_cells if self.n_cells > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for reporting."""
        return {
            "group": self.group,
            "n_cells": self.n_cells,
            "median": self.median,
            "mad": self.mad,
            "threshold": self.threshold,
            "n_fail": self.n_fail,
            "fail_fraction": round(self.fail_fraction, 4),
        }


@dataclass
class ClassificationResult:
    """Pass/Fail calls with the thresholds that produced them.

    Attributes
    ----------
    labels : np.ndarray
        "Pass"/"Fail" per cell, in input order
    groups : List[GroupThreshold]
        One entry per partition, in sorted group order
    by_group : bool
        Whether thresholds were computed per group
    """

    labels: np.ndarray
    groups: List[GroupThreshold]
    by_group: bool = False

    @property
    def n_fail(self) -> int:
        return int((self.labels == FAIL).sum())

    @property
    def n_pass(self) -> int:
        return int((self.labels == PASS).sum())

    @property
    def thresholds(self) -> pd.DataFrame:
        """Per-group threshold table."""
        return pd.DataFrame(
            [g.to_dict() for g in self.groups], columns=THRESHOLD_COLUMNS
        )


def partition_indices(keys: Optional[Sequence[Any]], n_obs: int) -> Dict[Any, np.ndarray]:
    """Map each partition label to the positions of its members.

    Parameters
    ----------
    keys : Sequence, optional
        One label per observation; None puts everything in GLOBAL_GROUP
    n_obs : int
        Number of observations

    Returns
    -------
    Dict[Any, np.ndarray]
        Label -> integer positions, groups in sorted order

    Raises
    ------
    ConfigurationError
        If any label is missing (membership must be exhaustive)
    DimensionMismatchError
        If the number of labels differs from ``n_obs``
    """
    if keys is None:
        return {GLOBAL_GROUP: np.arange(n_obs)}

    key_series = pd.Series(keys).reset_index(drop=True)
    if len(key_series) != n_obs:
        raise DimensionMismatchError(
            f"Got {len(key_series)} group labels for {n_obs} observations"
        )
    n_missing = int(key_series.isna().sum())
    if n_missing:
        raise ConfigurationError(
            f"{n_missing} observations have no group label; every cell must belong to a group"
        )
    grouped = key_series.groupby(key_series, sort=True, observed=True)
    return {key: np.asarray(idx) for key, idx in grouped.indices.items()}


def partition_apply(
    values: np.ndarray,
    keys: Optional[Sequence[Any]],
    func: Callable[[np.ndarray], Any],
) -> Dict[Any, Tuple[np.ndarray, Any]]:
    """Apply ``func`` independently to each partition of ``values``.

    Returns
    -------
    Dict[Any, Tuple[np.ndarray, Any]]
        Label -> (member positions, func result)
    """
    values = np.asarray(values)
    return {
        key: (idx, func(values[idx]))
        for key, idx in partition_indices(keys, len(values)).items()
    }


def threshold_partition(scores: np.ndarray, n_mads: float) -> Tuple[np.ndarray, GroupThreshold]:
    """Compute one partition's threshold and label its cells.

    Cells strictly above ``median + n_mads * MAD`` fail; a score equal to
    the threshold passes.
    """
    threshold = robust_threshold(scores, n_mads)
    labels = np.where(scores > threshold, FAIL, PASS)
    stats = GroupThreshold(
        group=None,
        n_cells=len(scores),
        median=float(np.median(scores)),
        mad=mad(scores),
        threshold=threshold,
        n_fail=int((labels == FAIL).sum()),
    )
    return labels, stats


def classify_scores(
    scores: Sequence[float],
    n_mads: float = 2.5,
    groups: Optional[Sequence[Any]] = None,
) -> ClassificationResult:
    """Label each cell Pass or Fail against a robust threshold.

    Parameters
    ----------
    scores : Sequence[float]
        Mapping error scores (N,)
    n_mads : float
        Number of scaled MADs above the median (default: 2.5)
    groups : Sequence, optional
        Group label per cell (e.g. donor). When given, each group gets
        its own threshold computed from its own scores only.

    Returns
    -------
    ClassificationResult
        Labels in input order plus per-group threshold statistics
    """
    scores = np.asarray(scores, dtype=float)
    labels = np.empty(len(scores), dtype=object)
    group_stats: List[GroupThreshold] = []

    if len(scores) == 0:
        return ClassificationResult(
            labels=labels, groups=group_stats, by_group=groups is not None
        )

    partitions = partition_apply(
        scores, groups, lambda part: threshold_partition(part, n_mads)
    )
    for key, (idx, (part_labels, stats)) in partitions.items():
        labels[idx] = part_labels
        stats.group = key
        group_stats.append(stats)

    return ClassificationResult(labels=labels, groups=group_stats, by_group=groups is not None)
