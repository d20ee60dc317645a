"""
ShaderWatch Utilities Package.

Common utilities shared across all modules.
Requires Python 3.11+.
"""

from shaderwatch.utils.config import Settings, get_settings
from shaderwatch.utils.logger import configure_logging, get_logger, logger, LoggerMixin

__all__ = [
    "Settings",
    "get_settings",
    "configure_logging",
    "get_logger",
    "logger",
    "LoggerMixin",
]
