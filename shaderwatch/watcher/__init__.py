"""
ShaderWatch File Watcher Package.

File system monitoring and the rebuild loop.
Requires Python 3.11+.
"""

from shaderwatch.watcher.file_watcher import ChangeEvent, ChangeKind, FileWatcher, ShaderFileHandler
from shaderwatch.watcher.session import WatchSession, WatchState, report_outcome

__all__ = [
    "ChangeEvent",
    "ChangeKind",
    "FileWatcher",
    "ShaderFileHandler",
    "WatchSession",
    "WatchState",
    "report_outcome",
]
