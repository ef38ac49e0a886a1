"""Command-line interface for mapping-qc.

Example Usage
-------------
    # From command line:
    mapping-qc --help
    mapping-qc score --input mapped_query.h5ad --reference reference.npz --out qc/
    mapping-qc score -i mapped_query.h5ad -r reference.npz -o qc/ --donor-key donor
    mapping-qc inspect-reference --reference reference.npz
"""

__version__ = "0.1.0"

from .main import cli, main

__all__ = [
    "__version__",
    "cli",
    "main",
]
