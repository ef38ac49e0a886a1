"""mapping-qc: Per-cell mapping confidence for reference-projected single-cell data.

This package provides tools for:
- Mahalanobis distances from projected query cells to reference clusters
- Per-cell mapping error scores weighted by soft cluster membership
- Robust (median + k * MAD) Pass/Fail calls, globally or per donor

The reference (cluster centers and covariances) and the query embedding
with its soft cluster assignments are produced upstream; this package
only consumes them.

Example usage:
    >>> from mapping_qc.core.mapping_error import (
    ...     MappingErrorEngine, MappingErrorConfig, ReferenceModel,
    ... )
    >>>
    >>> reference = ReferenceModel.from_npz("reference.npz")
    >>> config = MappingErrorConfig(threshold_by_donor=True, donor_key="donor")
    >>> result = MappingErrorEngine(config).run(adata, reference)
    >>> adata.obs["mapping_error_QC"].value_counts()
"""

__version__ = "0.1.0"
