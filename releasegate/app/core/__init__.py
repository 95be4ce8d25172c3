"""Core utilities for the gateway application."""

from releasegate.app.core.config import settings
from releasegate.app.core.logging import get_logger, setup_logging

__all__ = [
    "settings",
    "get_logger",
    "setup_logging",
]
