"""Unit tests for robust statistics."""

import pytest
import numpy as np

from mapping_qc.utils import MAD_SCALE, mad, robust_threshold, robust_zscore


class TestMad:
    """Tests for the scaled MAD."""

    def test_two_values(self):
        """Test MAD of [0, 5] is 2.5 * 1.4826."""
        assert mad([0.0, 5.0]) == pytest.approx(2.5 * MAD_SCALE)

    def test_constant(self):
        """Test zero spread gives MAD = 0."""
        assert mad([3.0, 3.0, 3.0]) == 0.0

    def test_single_value(self):
        """Test a single value gives MAD = 0."""
        assert mad([7.0]) == 0.0

    def test_empty(self):
        """Test empty input gives NaN."""
        assert np.isnan(mad([]))

    def test_robust_to_outlier(self):
        """Test one extreme value barely moves the MAD."""
        assert mad([1.0, 2.0, 3.0, 4.0, 1000.0]) == pytest.approx(1.0 * MAD_SCALE)


class TestRobustThreshold:
    """Tests for median + k * MAD."""

    def test_two_cell_scenario(self):
        """Test threshold for scores [0, 5] with k = 2.5."""
        assert robust_threshold([0.0, 5.0], 2.5) == pytest.approx(2.5 + 2.5 * 2.5 * 1.4826)

    def test_zero_spread_is_median(self):
        """Test constant scores put the threshold at the median."""
        assert robust_threshold([50.0, 50.0, 50.0], 2.5) == 50.0

    def test_zero_multiplier(self):
        """Test k = 0 gives the median."""
        assert robust_threshold([1.0, 2.0, 9.0], 0.0) == 2.0


class TestRobustZscore:
    """Tests for robust_zscore."""

    def test_median_is_zero(self):
        """Test the median maps to z = 0."""
        z = robust_zscore([1.0, 2.0, 3.0])
        assert z[1] == 0.0

    def test_constant_is_zero(self):
        """Test zero spread gives all-zero z-scores."""
        np.testing.assert_array_equal(robust_zscore([4.0, 4.0]), [0.0, 0.0])

    def test_nan_preserved(self):
        """Test non-finite inputs stay NaN."""
        z = robust_zscore([1.0, np.nan, 3.0])
        assert np.isnan(z[1])
        assert np.isfinite(z[[0, 2]]).all()
