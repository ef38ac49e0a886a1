"""Robust statistics for mapping-qc.

Median absolute deviation and the median + k * MAD outlier threshold
used to call poorly mapped cells.
"""

from __future__ import annotations

from typing import Iterable, Union

import numpy as np
from scipy.stats import median_abs_deviation

ArrayLike = Union[Iterable[float], np.ndarray]

# Normal-consistency constant, matches R's stats::mad default
MAD_SCALE = 1.4826


def _as_float_array(values: ArrayLike) -> np.ndarray:
    """Convert input to a 1-D float array."""
    if isinstance(values, np.ndarray):
        return values.astype(float, copy=False).ravel()
    return np.asarray(list(values), dtype=float)


def mad(values: ArrayLike, scale: float = MAD_SCALE) -> float:
    """Compute the scaled median absolute deviation.

    Parameters
    ----------
    values : ArrayLike
        Input values. Must be finite.
    scale : float
        Consistency constant applied to the raw MAD (default: 1.4826).

    Returns
    -------
    float
        ``scale * median(|x - median(x)|)``. NaN for empty input.
    """
    arr = _as_float_array(values)
    if arr.size == 0:
        return float("nan")
    return float(median_abs_deviation(arr, scale=1.0) * scale)


def robust_threshold(
    values: ArrayLike,
    n_mads: float = 2.5,
    scale: float = MAD_SCALE,
) -> float:
    """Compute the upper outlier threshold ``median + n_mads * MAD``.

    A zero-spread input (including a single value) yields MAD = 0, so the
    threshold collapses to the median.

    Parameters
    ----------
    values : ArrayLike
        Input values. Must be finite.
    n_mads : float
        Number of scaled MADs above the median.
    scale : float
        MAD consistency constant.

    Returns
    -------
    float
        Threshold value. NaN for empty input.
    """
    arr = _as_float_array(values)
    if arr.size == 0:
        return float("nan")
    return float(np.median(arr) + n_mads * mad(arr, scale=scale))


def robust_zscore(values: ArrayLike, scale: float = MAD_SCALE) -> np.ndarray:
    """Compute a MAD-based z-score.

    Parameters
    ----------
    values : ArrayLike
        Input values.
    scale : float
        MAD consistency constant.

    Returns
    -------
    np.ndarray
        ``(x - median) / MAD``. All zeros when MAD is 0; non-finite inputs
        become NaN in the output.
    """
    arr = _as_float_array(values)
    if arr.size == 0:
        return arr

    mask = np.isfinite(arr)
    clean = arr[mask]
    if clean.size == 0:
        return np.full_like(arr, np.nan, dtype=float)

    spread = mad(clean, scale=scale)
    if not np.isfinite(spread) or spread == 0:
        z = np.zeros_like(clean)
    else:
        z = (clean - np.median(clean)) / spread

    result = np.full_like(arr, np.nan, dtype=float)
    result[mask] = z
    return result
