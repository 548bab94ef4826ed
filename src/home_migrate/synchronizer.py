#!/usr/bin/env python3
"""
home-migrate Tree Synchronizer

Copies a home directory tree onto a drive with progress tracking.

A run walks the source twice with the same exclusion rules: first to count
the files, then to copy them. Errors while counting only make the total
less accurate; any error while copying fails the whole run.
"""

from __future__ import annotations

import logging
import shutil
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from common.decorators import timed
from common.exceptions import (
    DirectoryCreationError,
    EnumerationError,
    FileCopyError,
    SyncCancelledError,
    SyncError,
    SyncInProgressError,
    SyncPhase,
)

from .exclusions import DEFAULT_EXCLUDED_SUBSTRINGS, ExclusionRules, walk_tree

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncRequest:
    """Source and destination of one synchronization run."""
    source_root: Path
    destination_root: Path

    def __post_init__(self):
        # Frozen: normalize through object.__setattr__
        object.__setattr__(self, "source_root", Path(self.source_root).expanduser().resolve())
        object.__setattr__(
            self, "destination_root", Path(self.destination_root).expanduser().resolve()
        )

    @property
    def destination_inside_source(self) -> bool:
        return self.source_root in self.destination_root.parents


@dataclass(frozen=True)
class SyncProgress:
    """Progress after a file has been copied."""
    files_copied: int = 0
    files_total: int = 0

    @property
    def fraction(self) -> float:
        if self.files_total == 0:
            return 1.0
        return max(0.0, min(1.0, self.files_copied / self.files_total))

    @property
    def percent(self) -> float:
        return self.fraction * 100


@dataclass(frozen=True)
class SyncOutcome:
    """Terminal result of a run: success, or failure with its cause."""
    error: Optional[SyncError] = None
    files_copied: int = 0

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def phase(self) -> Optional[SyncPhase]:
        return self.error.phase if self.error else None

    @property
    def message(self) -> str:
        if self.error is None:
            return "Home folder migration completed!"
        return self.error.message

    @classmethod
    def succeeded(cls, files_copied: int = 0) -> "SyncOutcome":
        return cls(files_copied=files_copied)

    @classmethod
    def failed(cls, error: SyncError, files_copied: int = 0) -> "SyncOutcome":
        return cls(error=error, files_copied=files_copied)


ProgressSink = Callable[[SyncProgress], None]
OutcomeSink = Callable[[SyncOutcome], None]


class TreeSynchronizer:
    """
    Mirrors a source tree under a destination root.

    Regular files are copied byte for byte and get the source permission
    bits. Directories are recreated with their source permission bits,
    which are applied after the copy pass so a read-only source directory
    does not block writing its own contents.
    """

    def __init__(
        self,
        request: SyncRequest,
        rules: Optional[ExclusionRules] = None,
        progress_sink: Optional[ProgressSink] = None,
    ):
        self.request = request
        self.rules = rules or ExclusionRules(
            request.source_root,
            DEFAULT_EXCLUDED_SUBSTRINGS,
            destination_root=request.destination_root,
        )
        self._progress_sink = progress_sink
        self._cancelled = threading.Event()
        self.files_total = 0
        self.files_copied = 0

    def cancel(self):
        """Stop the run before the next file copy."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def count_files(self) -> int:
        """
        Count files that a run would copy.

        Directories that cannot be listed are logged and skipped.
        """
        def skip(path: Path, error: OSError):
            logger.warning(f"Error walking {path}: {error}")

        return sum(
            1 for entry in walk_tree(self.request.source_root, self.rules, skip)
            if not _is_directory(entry)
        )

    @timed
    def synchronize(self) -> SyncOutcome:
        """
        Perform the run.

        Returns:
            SyncOutcome, never raises for I/O errors.
        """
        source = self.request.source_root
        destination = self.request.destination_root
        self.files_copied = 0

        try:
            if not source.is_dir():
                raise EnumerationError(source, NotADirectoryError("source is not a readable directory"))

            self.files_total = self.count_files()
            logger.info(f"Found {self.files_total} files to copy from {source}")

            try:
                destination.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise DirectoryCreationError(destination, e)

            self._copy_tree()

        except SyncError as e:
            if isinstance(e, SyncCancelledError):
                logger.warning(e.message, extra={"sync_error": e})
            else:
                logger.error(f"Error copying files: {e.message}", extra={"sync_error": e})
            return SyncOutcome.failed(e, self.files_copied)

        logger.info(f"Migration complete: {self.files_copied} files copied to {destination}")
        return SyncOutcome.succeeded(self.files_copied)

    def _copy_tree(self):
        directories: List[Tuple[Path, Path]] = []

        def fail(path: Path, error: OSError):
            raise EnumerationError(path, error)

        for source_path in walk_tree(self.request.source_root, self.rules, fail):
            target_path = self._target_for(source_path)

            if _is_directory(source_path):
                self._make_directory(target_path)
                directories.append((source_path, target_path))
                continue

            if self._cancelled.is_set():
                raise SyncCancelledError(self.files_copied)

            self._copy_file(source_path, target_path)
            self.files_copied += 1
            self._notify_progress()

        # Deepest first, so parents are still writable while children are set
        for source_dir, target_dir in reversed(directories):
            try:
                shutil.copymode(source_dir, target_dir)
            except OSError as e:
                raise DirectoryCreationError(target_dir, e)

    def _target_for(self, source_path: Path) -> Path:
        relative = source_path.relative_to(self.request.source_root)
        return self.request.destination_root / relative

    def _make_directory(self, target: Path):
        try:
            target.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Error creating directory {target}: {e}")
            raise DirectoryCreationError(target, e)

    def _copy_file(self, source: Path, target: Path):
        """
        Copy one file's bytes and permission bits.

        A file left by an earlier run is replaced, even when it is read-only.
        """
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            if target.is_symlink() or target.is_file():
                target.unlink()
            shutil.copyfile(source, target)
            shutil.copymode(source, target)
        except OSError as e:
            logger.error(f"Error copying file {source}: {e}")
            raise FileCopyError(source, e)

        logger.debug(f"Copied {source} -> {target}")

    def _notify_progress(self):
        if self._progress_sink:
            self._progress_sink(SyncProgress(self.files_copied, self.files_total))


def _is_directory(path: Path) -> bool:
    return path.is_dir() and not path.is_symlink()


def synchronize(
    request: SyncRequest,
    progress_sink: Optional[ProgressSink] = None,
    rules: Optional[ExclusionRules] = None,
) -> SyncOutcome:
    """
    Run one synchronization in the calling thread.

    Args:
        request: Source and destination roots
        progress_sink: Called after every copied file
        rules: Exclusion rules (defaults exclude hidden paths, caches and
            the destination itself)

    Returns:
        Terminal SyncOutcome.
    """
    return TreeSynchronizer(request, rules, progress_sink).synchronize()


@dataclass
class _ActiveRun:
    synchronizer: TreeSynchronizer
    thread: Optional[threading.Thread] = None
    done: threading.Event = field(default_factory=threading.Event)
    outcome: Optional[SyncOutcome] = None


class SyncRunner:
    """
    Runs synchronizations in a background thread, one at a time.

    Example:
        runner = SyncRunner(on_progress=bar.update, on_outcome=show_result)
        runner.start(SyncRequest(Path.home(), Path("/media/usb/home_backup")))
    """

    def __init__(
        self,
        on_progress: Optional[ProgressSink] = None,
        on_outcome: Optional[OutcomeSink] = None,
        excluded_substrings=DEFAULT_EXCLUDED_SUBSTRINGS,
    ):
        self.on_progress = on_progress
        self.on_outcome = on_outcome
        self.excluded_substrings = tuple(excluded_substrings)
        self._lock = threading.Lock()
        self._active: Optional[_ActiveRun] = None

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._active is not None and not self._active.done.is_set()

    def start(self, request: SyncRequest) -> None:
        """
        Start a run in the background.

        Raises:
            SyncInProgressError: If a previous run has not finished.
        """
        with self._lock:
            if self._active is not None and not self._active.done.is_set():
                raise SyncInProgressError(self._active.synchronizer.request.destination_root)

            rules = ExclusionRules(
                request.source_root,
                self.excluded_substrings,
                destination_root=request.destination_root,
            )
            synchronizer = TreeSynchronizer(request, rules, self.on_progress)
            run = _ActiveRun(synchronizer)
            run.thread = threading.Thread(
                target=self._run, args=(run,), name="tree-sync", daemon=True
            )
            self._active = run

        logger.info(f"Starting migration {request.source_root} -> {request.destination_root}")
        run.thread.start()

    def _run(self, run: _ActiveRun):
        try:
            outcome = run.synchronizer.synchronize()
        except Exception as e:
            logger.exception("Migration aborted by unexpected error")
            error = SyncError(cause=e, phase=SyncPhase.FILE_COPY)
            outcome = SyncOutcome.failed(error, run.synchronizer.files_copied)

        run.outcome = outcome
        try:
            if self.on_outcome:
                self.on_outcome(outcome)
        finally:
            run.done.set()

    def cancel(self) -> None:
        """Cancel the active run, if any."""
        with self._lock:
            if self._active is not None:
                self._active.synchronizer.cancel()

    def wait(self, timeout: Optional[float] = None) -> Optional[SyncOutcome]:
        """
        Wait for the current run to finish.

        Returns:
            The outcome, or None if no run was started or the wait timed out.
        """
        with self._lock:
            run = self._active
        if run is None or not run.done.wait(timeout):
            return None
        return run.outcome
