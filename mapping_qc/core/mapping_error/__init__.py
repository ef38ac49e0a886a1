"""Mapping error module: per-cell confidence for reference-mapped queries.

Scores how well each query cell fits the reference it was projected
into, then flags cells whose score is a robust outlier.

Stages
------
- Distance: Mahalanobis distance from every cell to every reference cluster
- Aggregation: distances weighted by soft cluster membership, summed per cell
- Thresholding: median + k * MAD, over all cells or within each donor

Example Usage
-------------
>>> from mapping_qc.core.mapping_error import (
...     MappingErrorEngine, MappingErrorConfig, ReferenceModel,
... )
>>> reference = ReferenceModel.from_npz("reference.npz")
>>> config = MappingErrorConfig(threshold_by_donor=True, donor_key="donor")
>>> engine = MappingErrorEngine(config)
>>> result = engine.run(adata, reference)
>>> result.thresholds
"""

__version__ = "0.1.0"

# Configuration
from .config import (
    MappingErrorConfig,
    WEIGHT_LAYOUTS,
)

# Errors
from .errors import (
    MappingQCError,
    ConfigurationError,
    DimensionMismatchError,
    InvalidInputError,
    NumericalError,
)

# Reference
from .reference import ReferenceModel

# Distance engine
from .distance import (
    cluster_distances,
    invert_covariance,
    mahalanobis_distances,
)

# Score aggregation
from .aggregation import (
    aggregate_scores,
    weights_are_normalized,
)

# Thresholding
from .thresholding import (
    FAIL,
    PASS,
    ClassificationResult,
    GroupThreshold,
    classify_scores,
    partition_apply,
    threshold_partition,
)

# Engine
from .engine import (
    MappingErrorEngine,
    MappingErrorResult,
    calculate_mapping_error,
)

# Export
from .export import (
    build_score_table,
    export_scores,
    export_summary,
    export_thresholds,
)

__all__ = [
    # Version
    "__version__",
    # Config
    "MappingErrorConfig",
    "WEIGHT_LAYOUTS",
    # Errors
    "MappingQCError",
    "ConfigurationError",
    "DimensionMismatchError",
    "InvalidInputError",
    "NumericalError",
    # Reference
    "ReferenceModel",
    # Distance
    "cluster_distances",
    "invert_covariance",
    "mahalanobis_distances",
    # Aggregation
    "aggregate_scores",
    "weights_are_normalized",
    # Thresholding
    "FAIL",
    "PASS",
    "ClassificationResult",
    "GroupThreshold",
    "classify_scores",
    "partition_apply",
    "threshold_partition",
    # Engine
    "MappingErrorEngine",
    "MappingErrorResult",
    "calculate_mapping_error",
    # Export
    "build_score_table",
    "export_scores",
    "export_summary",
    "export_thresholds",
]
