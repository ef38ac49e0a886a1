"""Pytest configuration and shared fixtures for mapping-qc tests."""

import sys
from pathlib import Path

import pytest
import numpy as np

# Add package to path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Import mock data generators
from tests.fixtures import (
    create_mock_reference,
    create_mock_query,
    create_two_cluster_reference,
    create_query_adata,
)


# ============================================================================
# Reference Fixtures
# ============================================================================


@pytest.fixture
def two_cluster_reference():
    """Identity-covariance clusters at (0, 0) and (10, 10)."""
    return create_two_cluster_reference()


@pytest.fixture
def mock_reference():
    """Reference with 4 clusters in 5 dimensions."""
    return create_mock_reference(n_clusters=4, n_dims=5)


@pytest.fixture
def reference_npz(tmp_path, mock_reference) -> Path:
    """Mock reference saved as .npz."""
    return mock_reference.to_npz(tmp_path / "reference.npz")


# ============================================================================
# Query Fixtures
# ============================================================================


@pytest.fixture
def mock_query(mock_reference):
    """(embeddings, weights, assigned) sampled around the mock reference."""
    return create_mock_query(mock_reference, n_cells=200)


@pytest.fixture
def query_adata(mock_query):
    """Query AnnData with two donors."""
    embeddings, weights, _ = mock_query
    donors = np.repeat(["D1", "D2"], len(embeddings) // 2)
    return create_query_adata(embeddings, weights, donors=donors)


@pytest.fixture
def two_cell_adata():
    """Cells at (0, 0) and (3, 4), fully assigned to cluster 0."""
    embeddings = np.array([[0.0, 0.0], [3.0, 4.0]])
    weights = np.array([[1.0, 0.0], [1.0, 0.0]])
    return create_query_adata(embeddings, weights)


@pytest.fixture
def query_h5ad(tmp_path, query_adata) -> Path:
    """Query AnnData written to disk."""
    path = tmp_path / "query.h5ad"
    query_adata.write_h5ad(path)
    return path


@pytest.fixture
def tmp_output_dir(tmp_path: Path) -> Path:
    """Create a temporary output directory for tests."""
    output_dir = tmp_path / "output"
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def sample_config_yaml(tmp_path) -> Path:
    """Create sample mapping error configuration file."""
    import yaml

    config = {
        "mapping_error": {
            "mad_threshold": 3.0,
            "threshold_by_donor": True,
            "donor_key": "donor",
            "store_distances": True,
        },
    }

    path = tmp_path / "mapping_error.yaml"
    with open(path, "w") as f:
        yaml.dump(config, f)

    return path
