"""
ShaderWatch File Watcher.

Cross-platform file system monitoring using watchdog.
Requires Python 3.11+.
"""

import fnmatch
import os
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from watchdog.events import (
    FileSystemEvent,
    FileSystemEventHandler,
    FileSystemMovedEvent,
)
from watchdog.observers import Observer

from shaderwatch.errors import ConfigurationError, WatcherError
from shaderwatch.utils.config import get_settings
from shaderwatch.utils.logger import LoggerMixin


class ChangeKind(str, Enum):
    """Kinds of filesystem change that can trigger a rebuild."""

    CREATED = "created"
    MODIFIED = "modified"
    REMOVED = "removed"
    RENAMED = "renamed"


@dataclass(frozen=True)
class ChangeEvent:
    """A relevant change under a watched path."""

    path: Path
    kind: ChangeKind


EventSink = Callable[[ChangeEvent | WatcherError], Any]


def _event_path(raw: str | bytes) -> Path:
    return Path(os.fsdecode(raw))


class ShaderFileHandler(FileSystemEventHandler, LoggerMixin):
    """
    Handles file system events under one watched root.

    Directory events and ignored paths are dropped. When the watch target
    is a single file, only events naming that file are forwarded.
    """

    def __init__(
        self,
        root: Path,
        sink: EventSink,
        ignore_patterns: list[str] | None = None,
        target_file: Path | None = None,
        exclude_dirs: Sequence[Path] = (),
    ) -> None:
        """
        Initialize the file handler.

        Args:
            root: Directory scheduled with the observer
            sink: Receives ChangeEvents, or a WatcherError if the root vanishes
            ignore_patterns: Glob patterns matched against each path component
            target_file: Restrict events to this file
            exclude_dirs: Directories whose contents never trigger, such as
                the build output directory
        """
        super().__init__()
        self._root = root
        self._sink = sink
        self._ignore_patterns = ignore_patterns or []
        self._target_file = target_file
        self._exclude_dirs = tuple(exclude_dirs)

    @property
    def root(self) -> Path:
        return self._root

    def _should_ignore(self, path: Path) -> bool:
        """Check if a path should be ignored."""
        try:
            parts = path.relative_to(self._root).parts
        except ValueError:
            # Outside the watched root
            return True
        return any(
            fnmatch.fnmatch(part, pattern)
            for part in parts
            for pattern in self._ignore_patterns
        )

    def is_relevant(self, path: Path) -> bool:
        """Check whether a change to `path` should trigger a rebuild."""
        if any(path.is_relative_to(d) for d in self._exclude_dirs):
            return False
        if self._target_file is not None:
            return path == self._target_file
        return not self._should_ignore(path)

    def _forward(self, path: Path, kind: ChangeKind) -> None:
        self.log.debug("file_changed", path=str(path), kind=kind.value)
        self._sink(ChangeEvent(path=path, kind=kind))

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle file creation."""
        path = _event_path(event.src_path)
        if not event.is_directory and self.is_relevant(path):
            self._forward(path, ChangeKind.CREATED)

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle file modification."""
        path = _event_path(event.src_path)
        if not event.is_directory and self.is_relevant(path):
            self._forward(path, ChangeKind.MODIFIED)

    def on_deleted(self, event: FileSystemEvent) -> None:
        """Handle file deletion, and loss of the watched root itself."""
        path = _event_path(event.src_path)
        if path == self._root:
            self.log.error("watched_root_removed", path=str(path))
            self._sink(WatcherError(f"Watched directory {path} was removed"))
            return

        if not event.is_directory and self.is_relevant(path):
            self._forward(path, ChangeKind.REMOVED)

    def on_moved(self, event: FileSystemMovedEvent) -> None:
        """Handle file move/rename."""
        if event.is_directory:
            return

        src_path = _event_path(event.src_path)
        dest_path = _event_path(event.dest_path)

        # Editors often save by renaming an ignored temp file over the real one
        if self.is_relevant(dest_path):
            self._forward(dest_path, ChangeKind.RENAMED)
        elif self.is_relevant(src_path):
            self._forward(src_path, ChangeKind.RENAMED)


class FileWatcher(LoggerMixin):
    """
    Watches one or more paths for shader source changes.

    Uses a single watchdog observer. Each watch path gets its own handler;
    a file path is watched through its parent directory.
    """

    def __init__(
        self,
        paths: Sequence[Path],
        sink: EventSink,
        ignore_patterns: list[str] | None = None,
        recursive: bool | None = None,
        exclude_dirs: Sequence[Path] = (),
    ) -> None:
        """
        Initialize the file watcher.

        Args:
            paths: Files or directories to watch
            sink: Receives change events from the observer thread
            ignore_patterns: Glob patterns to ignore
            recursive: Whether to watch subdirectories
            exclude_dirs: Directories ignored regardless of patterns

        Raises:
            ConfigurationError: If a watch path does not exist
        """
        settings = get_settings()

        self._ignore_patterns = (
            ignore_patterns if ignore_patterns is not None else settings.watcher.ignore_patterns
        )
        self._recursive = recursive if recursive is not None else settings.watcher.recursive

        exclude_dirs = [d.resolve() for d in exclude_dirs]

        self._handlers: list[ShaderFileHandler] = []
        for path in paths:
            if not path.exists():
                raise ConfigurationError(f"Watch path {path} does not exist", path)
            path = path.resolve()
            if path.is_dir():
                handler = ShaderFileHandler(
                    path, sink, self._ignore_patterns, exclude_dirs=exclude_dirs
                )
            else:
                handler = ShaderFileHandler(
                    path.parent,
                    sink,
                    self._ignore_patterns,
                    target_file=path,
                    exclude_dirs=exclude_dirs,
                )
            self._handlers.append(handler)

        self._observer: Any = None
        self._running = False

    @property
    def roots(self) -> list[Path]:
        """Directories scheduled with the observer."""
        return [handler.root for handler in self._handlers]

    def start(self) -> None:
        """Start watching for file changes."""
        if self._running:
            return

        self._observer = Observer()
        for handler in self._handlers:
            try:
                self._observer.schedule(handler, str(handler.root), recursive=self._recursive)
            except OSError as e:
                raise WatcherError(f"Cannot watch {handler.root}: {e}") from e
            self.log.info("watching_path", path=str(handler.root), recursive=self._recursive)

        self._observer.start()
        self._running = True

    def stop(self) -> None:
        """Stop watching for file changes."""
        if not self._running:
            return

        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5.0)
            self._observer = None

        self._running = False
        self.log.info("file_watcher_stopped")

    def is_alive(self) -> bool:
        """Check that the observer thread is still delivering events."""
        return self._running and self._observer is not None and self._observer.is_alive()

    @property
    def is_running(self) -> bool:
        """Check if the watcher is running."""
        return self._running

    def __enter__(self) -> "FileWatcher":
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, *args: Any) -> None:
        """Context manager exit."""
        self.stop()
