"""Utility modules for Resilient Embed."""

from .logging_config import get_logger, setup_logging
from .text_utils import is_blank, truncate_large_text

__all__ = [
    "get_logger",
    "setup_logging",
    "is_blank",
    "truncate_large_text",
]
