"""Centralized logging configuration for the media optimizer."""

import os
import sys
import logging
from typing import Optional, Union

ROOT_LOGGER = "media-optimizer"

# LOG_FORMAT value -> (format, datefmt)
FORMATS = {
    "structured": (
        "%(asctime)s | %(name)s | %(levelname)-8s | "
        "%(filename)s:%(lineno)d | %(funcName)s() | %(message)s",
        "%Y-%m-%d %H:%M:%S",
    ),
    "simple": ("%(asctime)s - %(name)s - %(levelname)s - %(message)s", None),
}


def qualified_name(name: str) -> str:
    """Place ``name`` under the ``media-optimizer`` logger tree."""
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return name
    return f"{ROOT_LOGGER}.{name}"


def resolve_level(level: Union[str, int, None] = None) -> int:
    """Numeric level from an explicit value, else ``LOG_LEVEL``, else INFO."""
    if isinstance(level, int):
        return level
    name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    resolved = getattr(logging, name, logging.INFO)
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logger(
    name: str = ROOT_LOGGER,
    level: Union[str, int, None] = None,
    format_type: str = "structured",
) -> logging.Logger:
    """
    Configure the ``media-optimizer`` logger tree and return ``name`` in it.

    The stdout handler and the level live on the tree root; every component
    logger is a child that propagates to it, so one call governs the CLI
    summary and all per-item ``[key]`` lines alike.

    Args:
        name: Logger name, qualified under ``media-optimizer`` when needed
        level: Level override (defaults to env var or INFO)
        format_type: Logging format ("structured" or "simple")

    Environment Variables:
        LOG_LEVEL: Set logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        LOG_FORMAT: Set format type ("structured" or "simple")
    """
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(resolve_level(level))

    env_format = os.getenv("LOG_FORMAT", format_type).lower()
    fmt, datefmt = FORMATS.get(env_format, FORMATS["structured"])

    if not root.handlers:
        root.addHandler(logging.StreamHandler(sys.stdout))
    for handler in root.handlers:
        handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root.propagate = False
    return logging.getLogger(qualified_name(name))


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Logger under the ``media-optimizer`` tree, configuring the tree on first use."""
    if not logging.getLogger(ROOT_LOGGER).handlers:
        setup_logger()
    return logging.getLogger(qualified_name(name))


logger = setup_logger()
