"""Structured logging module.

This module provides utilities for structured logging using structlog,
optionally forwarded to logfire.
"""

from .setup import build_processors, get_logger, setup_logging

__all__ = [
    "build_processors",
    # Setup
    "get_logger",
    "setup_logging",
]
