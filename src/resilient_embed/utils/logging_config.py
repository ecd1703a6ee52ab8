"""
Logging configuration for Resilient Embed.

All modules obtain their logger through ``get_logger(__name__)`` so that the
whole package shares the ``resilient_embed`` logger hierarchy. Call
``setup_logging()`` once from an entry point (CLI, script, notebook) to attach
handlers; library code never configures handlers itself.

Usage:
    from resilient_embed.utils.logging_config import setup_logging, get_logger

    setup_logging()
    logger = get_logger(__name__)
    logger.info("Embedding %d records", len(records))
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

ROOT_LOGGER_NAME = "resilient_embed"


def setup_logging(
    level: Optional[Union[int, str]] = None,
    log_file: Optional[Union[str, Path]] = None,
) -> logging.Logger:
    """
    Configure console (and optional file) logging for the package.

    Safe to call more than once: existing handlers installed by a previous
    call are replaced rather than duplicated.

    Args:
        level: Log level name or number. Defaults to the ``LOG_LEVEL``
               environment variable, then ``INFO``.
        log_file: Optional path of a file that receives the same records.

    Returns:
        The package root logger.
    """
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level)

    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    root.propagate = False
    return root


def get_logger(name: str) -> logging.Logger:
    """
    Return a logger for *name*.

    Names outside the package (e.g. ``__main__`` in a script) are nested under
    the package root so ``setup_logging()`` still applies to them.
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)
