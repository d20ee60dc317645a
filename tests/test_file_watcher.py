"""
Tests for the File Watcher.

Requires Python 3.11+.
"""

from pathlib import Path

import pytest
from watchdog.events import (
    DirDeletedEvent,
    DirModifiedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from shaderwatch.errors import ConfigurationError, WatcherError
from shaderwatch.utils.config import get_settings
from shaderwatch.watcher import ChangeEvent, ChangeKind, FileWatcher, ShaderFileHandler


class TestShaderFileHandler:
    """Test cases for event filtering."""

    @pytest.fixture
    def received(self) -> list:
        return []

    @pytest.fixture
    def handler(self, tmp_path: Path, received: list) -> ShaderFileHandler:
        """Create a handler for a directory root."""
        return ShaderFileHandler(
            tmp_path,
            received.append,
            ignore_patterns=get_settings().watcher.ignore_patterns,
        )

    def test_modified_file(self, handler: ShaderFileHandler, tmp_path: Path, received: list):
        """Test a source edit is forwarded."""
        path = tmp_path / "src" / "lib.rs"
        handler.on_modified(FileModifiedEvent(str(path)))

        assert received == [ChangeEvent(path, ChangeKind.MODIFIED)]

    def test_created_and_deleted(self, handler: ShaderFileHandler, tmp_path: Path, received: list):
        """Test creation and removal are forwarded with their kind."""
        path = tmp_path / "src" / "util.rs"
        handler.on_created(FileCreatedEvent(str(path)))
        handler.on_deleted(FileDeletedEvent(str(path)))

        assert [e.kind for e in received] == [ChangeKind.CREATED, ChangeKind.REMOVED]

    def test_directory_events_ignored(self, handler: ShaderFileHandler, tmp_path: Path, received: list):
        """Test directory metadata changes do not trigger."""
        handler.on_modified(DirModifiedEvent(str(tmp_path / "src")))

        assert received == []

    @pytest.mark.parametrize(
        "relative",
        [
            "target/spirv-builder/spirv-unknown-vulkan1.2/release/sky_shader.spv",
            ".git/index",
            "src/.lib.rs.swp",
            "src/lib.rs~",
            "src/.#lib.rs",
            "src/4913",
        ],
    )
    def test_ignored_paths(self, handler: ShaderFileHandler, tmp_path: Path, received: list, relative: str):
        """Test build outputs and editor droppings do not trigger."""
        handler.on_modified(FileModifiedEvent(str(tmp_path / relative)))

        assert received == []

    def test_similar_names_not_ignored(self, handler: ShaderFileHandler, tmp_path: Path, received: list):
        """Test patterns match whole path components only."""
        handler.on_modified(FileModifiedEvent(str(tmp_path / "src" / "targeting.rs")))

        assert len(received) == 1

    def test_outside_root_ignored(self, handler: ShaderFileHandler, tmp_path: Path, received: list):
        """Test events outside the watched root do not trigger."""
        handler.on_modified(FileModifiedEvent(str(tmp_path.parent / "elsewhere.rs")))

        assert received == []

    def test_rename_over_source(self, handler: ShaderFileHandler, tmp_path: Path, received: list):
        """Test an editor saving through an ignored temp file."""
        src = tmp_path / "src" / "lib.rs~"
        dest = tmp_path / "src" / "lib.rs"
        handler.on_moved(FileMovedEvent(str(src), str(dest)))

        assert received == [ChangeEvent(dest, ChangeKind.RENAMED)]

    def test_root_removed(self, handler: ShaderFileHandler, tmp_path: Path, received: list):
        """Test losing the watched root reports a watcher error."""
        handler.on_deleted(DirDeletedEvent(str(tmp_path)))

        assert len(received) == 1
        assert isinstance(received[0], WatcherError)

    def test_single_file_target(self, tmp_path: Path, received: list):
        """Test a file watch only reacts to that file."""
        target = tmp_path / "lib.rs"
        handler = ShaderFileHandler(tmp_path, received.append, target_file=target)

        handler.on_modified(FileModifiedEvent(str(tmp_path / "other.rs")))
        handler.on_modified(FileModifiedEvent(str(target)))

        assert received == [ChangeEvent(target, ChangeKind.MODIFIED)]

    def test_excluded_directory(self, tmp_path: Path, received: list):
        """Test the build output directory never triggers, even inside the root."""
        shaders = tmp_path / "shaders"
        handler = ShaderFileHandler(tmp_path, received.append, exclude_dirs=[shaders])

        handler.on_created(FileCreatedEvent(str(shaders / ".staging-x1" / "sky_shader.spv")))
        handler.on_moved(FileMovedEvent(str(shaders / ".staging-x1" / "a.spv"), str(shaders / "a.spv")))
        handler.on_modified(FileModifiedEvent(str(tmp_path / "shaders.rs")))

        assert received == [ChangeEvent(tmp_path / "shaders.rs", ChangeKind.MODIFIED)]


class TestFileWatcher:
    """Test cases for FileWatcher setup."""

    def test_missing_path(self, tmp_path: Path):
        """Test a watch path that does not exist."""
        with pytest.raises(ConfigurationError, match="does not exist"):
            FileWatcher([tmp_path / "missing"], sink=lambda item: None)

    def test_file_path_watches_parent(self, shader_crate: Path):
        """Test a file is watched through its directory."""
        lib = shader_crate / "src" / "lib.rs"
        watcher = FileWatcher([shader_crate, lib], sink=lambda item: None)

        assert watcher.roots == [shader_crate.resolve(), lib.parent.resolve()]

    def test_start_stop(self, tmp_path: Path):
        """Test the observer thread lifecycle."""
        with FileWatcher([tmp_path], sink=lambda item: None) as watcher:
            assert watcher.is_running
            assert watcher.is_alive()

        assert not watcher.is_running
        assert not watcher.is_alive()
