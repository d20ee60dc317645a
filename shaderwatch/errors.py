"""
ShaderWatch Errors.

Structural errors that terminate the process. Per-build compiler failures
are not exceptions; they are reported as CompileFailure outcomes.
Requires Python 3.11+.
"""

from pathlib import Path


class ShaderWatchError(Exception):
    """Base class for all fatal ShaderWatch errors."""

    exit_code = 1


class ConfigurationError(ShaderWatchError):
    """Invalid startup configuration (bad crate path, missing watch path)."""

    exit_code = 2

    def __init__(self, message: str, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class WatcherError(ShaderWatchError):
    """The filesystem watcher stopped delivering events."""

    exit_code = 3
