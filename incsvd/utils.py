"""Miscellaneous helpers: timing and configuration files."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager

import yaml

logger = logging.getLogger(__name__)


@contextmanager
def timer(message: str | None = None):
    """A context manager logging the wall time of a block of code.

    Parameters
    ----------
    message : str, optional
        If provided, this string is logged together with the elapsed time
        upon exit.
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        if message:
            logger.info("%s: %.3f s", message, elapsed)


def load_config(config_path: str) -> dict:
    """Load a YAML configuration file.

    Parameters
    ----------
    config_path : str
        Path to a YAML file.

    Returns
    -------
    cfg : dict
        Configuration dictionary.
    """
    with open(config_path, 'r', encoding='utf-8') as f:
        cfg = yaml.safe_load(f)
    return cfg or {}
