"""I/O utilities for mapping-qc.

Provides logging setup and structured run records.
"""

from .logging import get_timestamped_log_path, log_json, log_yaml, setup_logging

__all__ = [
    "get_timestamped_log_path",
    "log_json",
    "log_yaml",
    "setup_logging",
]
