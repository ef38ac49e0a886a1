"""Mapping error score distribution plot."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence, Tuple

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

from .thresholding import FAIL, PASS


def plot_score_distribution(
    scores: np.ndarray,
    labels: np.ndarray,
    thresholds: pd.DataFrame,
    output_path: Path,
    groups: Optional[Sequence[str]] = None,
    figsize: Tuple[int, int] = (10, 5),
    dpi: int = 200,
    title: str = "Mapping Error Score",
) -> None:
    """Plot score histograms with the Fail threshold of each group.

    Parameters
    ----------
    scores : np.ndarray
        Mapping error score per cell
    labels : np.ndarray
        "Pass"/"Fail" per cell
    thresholds : pd.DataFrame
        Threshold table (columns: group, threshold, ...)
    output_path : Path
        Path to save figure
    groups : Sequence[str], optional
        Group label per cell; one panel per group when given
    figsize : Tuple[int, int]
        Size of a single panel
    dpi : int
        Figure resolution
    title : str
        Plot title
    """
    if len(scores) == 0:
        return

    df = pd.DataFrame({
        "score": scores,
        "qc": pd.Categorical(labels, categories=[PASS, FAIL]),
        "group": np.asarray(groups).astype(str) if groups is not None else "all",
    })
    cutoffs = dict(zip(thresholds["group"].astype(str), thresholds["threshold"]))
    panels = sorted(df["group"].unique())

    n_cols = min(len(panels), 3)
    n_rows = int(np.ceil(len(panels) / n_cols))
    fig, axes = plt.subplots(
        n_rows,
        n_cols,
        figsize=(figsize[0] * n_cols / 2, figsize[1] * n_rows),
        squeeze=False,
    )

    for ax, panel in zip(axes.flat, panels):
        sub = df[df["group"] == panel]
        sns.histplot(
            data=sub,
            x="score",
            hue="qc",
            palette={PASS: "steelblue", FAIL: "coral"},
            bins=50,
            multiple="stack",
            ax=ax,
        )
        if panel in cutoffs:
            ax.axvline(x=cutoffs[panel], color="red", linestyle="--", linewidth=1)
        n_fail = int((sub["qc"] == FAIL).sum())
        ax.set_title(f"{panel} (n={len(sub):,}, fail={n_fail:,})", fontsize=10)
        ax.set_xlabel("Mapping error score")

    for ax in list(axes.flat)[len(panels):]:
        ax.set_visible(False)

    fig.suptitle(title, fontsize=14)
    plt.tight_layout()
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_path, dpi=dpi, bbox_inches="tight")
    plt.close(fig)
