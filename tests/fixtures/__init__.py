"""Test fixtures for mapping-qc.

Provides mock reference and query generators.
"""

from .mock_query import (
    create_mock_reference,
    create_mock_query,
    create_two_cluster_reference,
    create_query_adata,
)

__all__ = [
    "create_mock_reference",
    "create_mock_query",
    "create_two_cluster_reference",
    "create_query_adata",
]
