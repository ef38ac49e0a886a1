"""Logging utilities for mapping-qc.

Console + optional file logging for scoring runs, and structured
run records (JSON lines, YAML documents).
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

import yaml

PathLike = Union[str, Path]

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_timestamped_log_path(log_path: PathLike) -> Path:
    """Insert a timestamp into a log file name.

    Example: mapping_error.log -> mapping_error_20251209_080530.log
    """
    log_path = Path(log_path)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    suffix = log_path.suffix or ".log"
    return log_path.parent / f"{log_path.stem}_{timestamp}{suffix}"


def setup_logging(
    verbose: bool = False,
    log_dir: Optional[PathLike] = None,
    log_filename: str = "mapping_error.log",
    name: str = "mapping_qc",
    timestamped: bool = False,
) -> logging.Logger:
    """Configure a console logger with an optional file handler.

    Parameters
    ----------
    verbose : bool
        Enable DEBUG logging
    log_dir : PathLike, optional
        Directory for the log file (console only if None)
    log_filename : str
        Log file name
    name : str
        Logger name
    timestamped : bool
        Add a timestamp to the file name to keep previous logs

    Returns
    -------
    logging.Logger
        Configured logger
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_dir:
        log_path = Path(log_dir) / log_filename
        if timestamped:
            log_path = get_timestamped_log_path(log_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
        logger.info("Log file: %s", log_path)

    return logger


def _prepare_log_destination(log_path: PathLike) -> Path:
    path = Path(log_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def log_json(log_path: PathLike, record: dict[str, Any]) -> None:
    """Append one JSON line to ``log_path``."""
    path = _prepare_log_destination(log_path)
    with path.open("a", encoding="utf-8") as handle:
        handle.write(json.dumps(record, default=str))
        handle.write("\n")


def log_yaml(
    record: dict[str, Any],
    *,
    logger: Optional[logging.Logger] = None,
    log_path: Optional[PathLike] = None,
) -> str:
    """Emit a YAML document to a logger and/or append it to a file.

    Returns
    -------
    str
        The rendered YAML document
    """
    message = yaml.safe_dump(record, sort_keys=False).rstrip("\n") + "\n---"
    if logger is not None:
        logger.info("%s", message)
    if log_path is not None:
        path = _prepare_log_destination(log_path)
        with path.open("a", encoding="utf-8") as handle:
            handle.write(message)
            handle.write("\n")
    return message
