"""Export functions for mapping error results."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from ...utils.stats import robust_zscore
from .config import MappingErrorConfig
from .engine import MappingErrorResult
from .thresholding import partition_indices


def build_score_table(
    adata: Any,
    result: MappingErrorResult,
    config: MappingErrorConfig,
) -> pd.DataFrame:
    """Build the per-cell score table.

    Columns: cell_id, score, QC call, group (per-donor mode only) and a
    robust z-score computed within the same partition as the threshold.
    """
    groups = adata.obs[config.donor_key] if config.threshold_by_donor else None
    robust_z = np.full(result.n_cells, np.nan)
    for idx in partition_indices(groups, result.n_cells).values():
        robust_z[idx] = robust_zscore(result.scores[idx])

    table = pd.DataFrame({
        "cell_id": adata.obs_names.astype(str),
        config.score_key: result.scores,
        config.qc_key: result.labels,
        "robust_z": robust_z,
    })
    if groups is not None:
        table.insert(1, config.donor_key, np.asarray(groups).astype(str))
    return table


def export_scores(
    adata: Any,
    result: MappingErrorResult,
    config: MappingErrorConfig,
    output_path: Path,
    logger: logging.Logger,
) -> Path:
    """Export per-cell scores to CSV."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    build_score_table(adata, result, config).to_csv(output_path, index=False)
    logger.info("Wrote mapping error scores: %s", output_path)
    return output_path


def export_thresholds(
    result: MappingErrorResult,
    output_path: Path,
    logger: logging.Logger,
) -> Path:
    """Export the per-group threshold table to CSV."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    result.thresholds.to_csv(output_path, index=False)
    logger.info("Wrote mapping error thresholds: %s", output_path)
    return output_path


def export_summary(
    result: MappingErrorResult,
    config: MappingErrorConfig,
    output_path: Path,
    logger: logging.Logger,
    extra: Optional[Dict[str, Any]] = None,
) -> Path:
    """Export a JSON run summary (parameters, counts, thresholds)."""
    summary = {
        "generated": datetime.now().isoformat(timespec="seconds"),
        "params": config.to_dict(),
        "result": result.to_dict(),
        "thresholds": result.thresholds.to_dict(orient="records"),
    }
    if extra:
        summary.update(extra)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(summary, f, indent=2, default=str)
    logger.info("Wrote mapping error summary: %s", output_path)
    return output_path
