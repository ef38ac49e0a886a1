"""Error taxonomy for mapping error scoring.

Every error raised here is fatal for the batch: scoring is a pure
transformation, so the caller has to fix the reference, the query
embedding, or the grouping key and resubmit.
"""

from typing import Optional


class MappingQCError(Exception):
    """Base class for mapping-qc failures."""

    pass


class ConfigurationError(MappingQCError):
    """Raised when parameters or requested AnnData keys are unusable."""

    pass


class DimensionMismatchError(MappingQCError, ValueError):
    """Raised when array shapes disagree with the reference."""

    pass


class InvalidInputError(MappingQCError, ValueError):
    """Raised when embeddings, weights or reference contain non-finite values."""

    pass


class NumericalError(MappingQCError, ArithmeticError):
    """Raised when a cluster's covariance cannot yield a valid distance.

    Attributes
    ----------
    cluster : str or None
        Name of the offending reference cluster
    """

    def __init__(self, message: str, cluster: Optional[str] = None):
        super().__init__(message)
        self.cluster = cluster
