"""
ShaderWatch Watch Session.

Turns filesystem change events into a debounced, strictly serialized
sequence of rebuilds.
Requires Python 3.11+.
"""

import asyncio
from collections.abc import Callable, Sequence
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from shaderwatch.compiler.models import CompileFailure, CompileOutcome, CompileRequest
from shaderwatch.errors import WatcherError
from shaderwatch.utils.config import get_settings
from shaderwatch.utils.logger import LoggerMixin, get_logger
from shaderwatch.watcher.file_watcher import ChangeEvent, FileWatcher


class Compiler(Protocol):
    """Anything that can run one build."""

    def compile(self, request: CompileRequest) -> CompileOutcome: ...


class WatchState(str, Enum):
    """States of the rebuild state machine."""

    IDLE = "idle"
    PENDING = "pending"
    COMPILING = "compiling"


def report_outcome(outcome: CompileOutcome, log: Any = None) -> None:
    """Log the result of a build."""
    log = log or get_logger("shaderwatch")
    if isinstance(outcome, CompileFailure):
        log.error(
            "build_failed",
            duration_s=round(outcome.duration, 2),
            diagnostic=outcome.diagnostic,
        )
    else:
        log.info(
            "build_complete",
            artifact=str(outcome.artifact_path),
            metadata=str(outcome.metadata_path),
            entry_points=[e.name for e in outcome.entry_points],
            duration_s=round(outcome.duration, 2),
        )


class WatchSession(LoggerMixin):
    """
    Watch loop for one shader crate.

    Idle --change--> Pending --quiet period--> Compiling --done--> Idle,
    or back to Pending if anything changed while compiling. Changes during
    Pending push the deadline out. At most one build runs at a time and it
    always runs to completion.

    The watchdog observer thread only posts to an asyncio queue; all state
    is owned by the task running `run()`. Builds run in a worker thread so
    events keep arriving while the toolchain works.
    """

    def __init__(
        self,
        request: CompileRequest,
        compiler: Compiler,
        watch_paths: Sequence[Path] = (),
        debounce_delay_ms: int | None = None,
        ignore_patterns: list[str] | None = None,
        recursive: bool | None = None,
        health_check_interval_s: float | None = None,
        on_outcome: Callable[[CompileOutcome], Any] | None = None,
    ) -> None:
        """
        Initialize the session.

        Args:
            request: The build to repeat on every change
            compiler: Compiler adapter invoked once per rebuild
            watch_paths: Files or directories to watch; with none, changes
                only arrive through `notify`
            debounce_delay_ms: Quiet period before a rebuild fires
            ignore_patterns: Glob patterns for paths that never trigger
            recursive: Whether to watch subdirectories
            health_check_interval_s: How often to verify the observer thread
            on_outcome: Called with every build outcome after it is logged

        Raises:
            ConfigurationError: If a watch path does not exist
        """
        settings = get_settings()

        self._request = request
        self._compiler = compiler
        if debounce_delay_ms is None:
            debounce_delay_ms = settings.watcher.debounce_delay_ms
        if health_check_interval_s is None:
            health_check_interval_s = settings.watcher.health_check_interval_s

        self._delay = debounce_delay_ms / 1000.0
        self._health_interval = health_check_interval_s
        self._on_outcome = on_outcome

        self._watcher: FileWatcher | None = None
        if watch_paths:
            self._watcher = FileWatcher(
                watch_paths,
                sink=self.notify,
                ignore_patterns=ignore_patterns,
                recursive=recursive,
                # The build writes here; its own outputs must not retrigger it
                exclude_dirs=[request.output_directory],
            )

        self._queue: asyncio.Queue[ChangeEvent | WatcherError] = asyncio.Queue()
        self._loop: asyncio.AbstractEventLoop | None = None

        self._state = WatchState.IDLE
        self._deadline = 0.0
        self._rebuild_requested = False
        self._compile_task: asyncio.Task[CompileOutcome] | None = None
        self._compile_count = 0

    @property
    def state(self) -> WatchState:
        """Current state of the rebuild state machine."""
        return self._state

    @property
    def compile_count(self) -> int:
        """Number of builds started by this session."""
        return self._compile_count

    @property
    def rebuild_requested(self) -> bool:
        """Whether a change arrived during the running build."""
        return self._rebuild_requested

    def notify(self, item: ChangeEvent | WatcherError) -> None:
        """
        Post a change event (or a fatal watcher error) to the session.

        Safe to call from any thread.
        """
        loop = self._loop
        if loop is None or loop.is_closed():
            self._queue.put_nowait(item)
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._queue.put_nowait(item)
        else:
            loop.call_soon_threadsafe(self._queue.put_nowait, item)

    async def run(self, initial_build: bool = False) -> None:
        """
        Run the watch loop until cancelled.

        Args:
            initial_build: Build once right away. The watcher is already
                running, so edits saved during this build schedule a rebuild.

        Raises:
            WatcherError: If the filesystem watcher stops working
        """
        self._loop = asyncio.get_running_loop()
        if self._watcher is not None:
            self._watcher.start()
        try:
            if initial_build:
                self._start_compile()
            await self._drive()
        finally:
            if self._watcher is not None:
                self._watcher.stop()
            if self._compile_task is not None and not self._compile_task.done():
                # The worker thread cannot be interrupted; it finishes on its own.
                self.log.warning("build_abandoned_on_shutdown")

    async def _drive(self) -> None:
        loop = asyncio.get_running_loop()
        intake: asyncio.Task[ChangeEvent | WatcherError] | None = None
        try:
            while True:
                if intake is None:
                    intake = asyncio.create_task(self._queue.get())

                waiters: set[asyncio.Task[Any]] = {intake}
                if self._compile_task is not None:
                    waiters.add(self._compile_task)

                timeout = self._health_interval
                if self._state is WatchState.PENDING:
                    timeout = min(timeout, max(0.0, self._deadline - loop.time()))

                done, _ = await asyncio.wait(
                    waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
                )

                if intake in done:
                    self._on_item(intake.result())
                    intake = None
                    while not self._queue.empty():
                        self._on_item(self._queue.get_nowait())

                if self._compile_task is not None and self._compile_task in done:
                    outcome = self._compile_task.result()
                    self._compile_task = None
                    self._on_compiled(outcome)

                if self._state is WatchState.PENDING and loop.time() >= self._deadline:
                    self._start_compile()

                if self._watcher is not None and not self._watcher.is_alive():
                    raise WatcherError("Filesystem observer thread stopped")
        finally:
            if intake is not None:
                intake.cancel()

    def _on_item(self, item: ChangeEvent | WatcherError) -> None:
        if isinstance(item, WatcherError):
            raise item
        self._on_change(item)

    def _on_change(self, event: ChangeEvent) -> None:
        loop = asyncio.get_running_loop()
        if self._state is WatchState.COMPILING:
            if not self._rebuild_requested:
                self.log.info("change_during_build", path=str(event.path))
            self._rebuild_requested = True
            return

        if self._state is WatchState.IDLE:
            self.log.info("change_detected", path=str(event.path), kind=event.kind.value)
        self._state = WatchState.PENDING
        self._deadline = loop.time() + self._delay

    def _start_compile(self) -> None:
        self._state = WatchState.COMPILING
        self._rebuild_requested = False
        self._compile_count += 1
        self.log.info("build_started", crate=str(self._request.source_path))
        self._compile_task = asyncio.create_task(asyncio.to_thread(self._compile_safely))

    def _compile_safely(self) -> CompileOutcome:
        try:
            return self._compiler.compile(self._request)
        except Exception as e:
            self.log.exception("compiler_crashed", error=str(e))
            return CompileFailure(diagnostic=f"Unexpected compiler error: {e}")

    def _on_compiled(self, outcome: CompileOutcome) -> None:
        report_outcome(outcome, self.log)
        if self._on_outcome is not None:
            self._on_outcome(outcome)

        if self._rebuild_requested:
            self._rebuild_requested = False
            self._state = WatchState.PENDING
            self._deadline = asyncio.get_running_loop().time() + self._delay
        else:
            self._state = WatchState.IDLE
