"""Utility functions for mapping-qc.

Provides the robust statistics shared by the QC thresholding and reporting.
"""

from .stats import (
    MAD_SCALE,
    mad,
    robust_threshold,
    robust_zscore,
)

__all__ = [
    "MAD_SCALE",
    "mad",
    "robust_threshold",
    "robust_zscore",
]
