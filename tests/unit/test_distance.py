"""Unit tests for the Mahalanobis distance engine."""

import logging

import pytest
import numpy as np
from scipy.spatial.distance import mahalanobis as scipy_mahalanobis

from mapping_qc.core.mapping_error import (
    DimensionMismatchError,
    InvalidInputError,
    NumericalError,
    ReferenceModel,
    cluster_distances,
    invert_covariance,
    mahalanobis_distances,
)


class TestInvertCovariance:
    """Tests for invert_covariance."""

    def test_identity(self):
        """Test identity inverts to identity."""
        np.testing.assert_allclose(invert_covariance(np.eye(3)), np.eye(3))

    def test_singular_raises(self):
        """Test singular covariance raises NumericalError with cluster name."""
        cov = np.array([[1.0, 1.0], [1.0, 1.0]])
        with pytest.raises(NumericalError) as exc_info:
            invert_covariance(cov, cluster="B cells")
        assert exc_info.value.cluster == "B cells"
        assert "B cells" in str(exc_info.value)

    def test_zero_matrix_raises(self):
        """Test all-zero covariance is rejected."""
        with pytest.raises(NumericalError):
            invert_covariance(np.zeros((2, 2)))


class TestClusterDistances:
    """Tests for single-cluster distances."""

    def test_point_at_center_is_zero(self):
        """Test a cell at the center with identity covariance has distance 0."""
        center = np.array([1.5, -2.0, 3.0])
        d = cluster_distances(center[None, :], center, np.eye(3))
        assert d[0] == 0.0

    def test_identity_is_euclidean(self):
        """Test identity covariance gives Euclidean distance."""
        d = cluster_distances(np.array([[3.0, 4.0]]), np.zeros(2), np.eye(2))
        assert d[0] == pytest.approx(5.0)

    def test_scaled_covariance(self):
        """Test variance 4 along each axis halves the distance."""
        d = cluster_distances(np.array([[3.0, 4.0]]), np.zeros(2), 4.0 * np.eye(2))
        assert d[0] == pytest.approx(2.5)

    def test_matches_scipy(self):
        """Test agreement with scipy's Mahalanobis distance."""
        rng = np.random.default_rng(0)
        a = rng.normal(size=(4, 4))
        cov = a @ a.T + np.eye(4)
        center = rng.normal(size=4)
        x = rng.normal(size=(10, 4))

        d = cluster_distances(x, center, cov)
        inv = np.linalg.inv(cov)
        expected = [scipy_mahalanobis(row, center, inv) for row in x]
        np.testing.assert_allclose(d, expected, rtol=1e-10)

    def test_non_positive_definite_raises(self):
        """Test an indefinite covariance producing negative squares raises."""
        cov = np.array([[1.0, 0.0], [0.0, -1.0]])
        with pytest.raises(NumericalError) as exc_info:
            cluster_distances(np.array([[0.0, 3.0]]), np.zeros(2), cov, cluster="bad")
        assert exc_info.value.cluster == "bad"

    def test_rounding_noise_flagged(self, caplog):
        """Test tiny negative squares are zeroed with a warning."""
        cov = np.array([[1.0, 0.0], [0.0, -1.0]])
        x = np.array([[0.0, 1e-6]])
        with caplog.at_level(logging.WARNING):
            d = cluster_distances(x, np.zeros(2), cov, cluster="noisy", negative_tolerance=1e-9)
        assert d[0] == 0.0
        assert "noisy" in caplog.text


class TestMahalanobisDistances:
    """Tests for the N x K distance matrix."""

    def test_shape(self, mock_reference, mock_query):
        """Test output is cells x clusters."""
        embeddings, _, _ = mock_query
        dist = mahalanobis_distances(embeddings, mock_reference)
        assert dist.shape == (len(embeddings), mock_reference.n_clusters)
        assert (dist >= 0).all()

    def test_two_cluster_scenario(self, two_cluster_reference):
        """Test distances to both identity clusters."""
        x = np.array([[0.0, 0.0], [3.0, 4.0]])
        dist = mahalanobis_distances(x, two_cluster_reference)
        assert dist[0, 0] == 0.0
        assert dist[1, 0] == pytest.approx(5.0)
        assert dist[0, 1] == pytest.approx(np.sqrt(200.0))
        assert dist[1, 1] == pytest.approx(np.sqrt(49.0 + 36.0))

    def test_cluster_order_independent(self, mock_reference, mock_query):
        """Test permuting clusters permutes columns and nothing else."""
        embeddings, _, _ = mock_query
        order = [2, 0, 3, 1]
        permuted = ReferenceModel(
            centers=mock_reference.centers[order],
            covariances=mock_reference.covariances[order],
        )
        dist = mahalanobis_distances(embeddings, mock_reference)
        dist_perm = mahalanobis_distances(embeddings, permuted)
        np.testing.assert_array_equal(dist[:, order], dist_perm)

    def test_parallel_matches_sequential(self, mock_reference, mock_query):
        """Test joblib execution is bit-identical to sequential."""
        embeddings, _, _ = mock_query
        sequential = mahalanobis_distances(embeddings, mock_reference, n_jobs=1)
        parallel = mahalanobis_distances(embeddings, mock_reference, n_jobs=2)
        np.testing.assert_array_equal(sequential, parallel)

    def test_dimension_mismatch(self, mock_reference):
        """Test wrong embedding width fails before computing."""
        with pytest.raises(DimensionMismatchError):
            mahalanobis_distances(np.zeros((3, mock_reference.n_dims + 1)), mock_reference)

    def test_one_dimensional_input_rejected(self, two_cluster_reference):
        """Test a flat vector is not accepted as an embedding matrix."""
        with pytest.raises(DimensionMismatchError):
            mahalanobis_distances(np.zeros(2), two_cluster_reference)

    def test_non_finite_embedding(self, two_cluster_reference):
        """Test NaN embeddings are rejected."""
        with pytest.raises(InvalidInputError):
            mahalanobis_distances(np.array([[np.nan, 0.0]]), two_cluster_reference)

    def test_singular_cluster_reported(self):
        """Test the failing cluster is named in the error."""
        reference = ReferenceModel(
            centers=[[0.0, 0.0], [1.0, 1.0]],
            covariances=[np.eye(2), np.zeros((2, 2))],
            cluster_names=["good", "broken"],
        )
        with pytest.raises(NumericalError) as exc_info:
            mahalanobis_distances(np.zeros((2, 2)), reference)
        assert exc_info.value.cluster == "broken"
