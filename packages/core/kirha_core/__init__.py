"""Shared settings and logging for the kirha-mcp-installer bootstrap."""

from .config import BootstrapSettings, load_settings, parse_bool
from .logging_setup import configure_logging, get_logger

__all__ = [
    "BootstrapSettings",
    "configure_logging",
    "get_logger",
    "load_settings",
    "parse_bool",
]
