"""
Registry of currently available drives.

The registry is the only owner of the drive list. It is fed by drive
monitor events on a single consumer thread; front ends read the immutable
snapshots it hands out.
"""

from __future__ import annotations

import logging
import queue
import threading
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from common.exceptions import NoDestinationError

from .drive_detector import DetectedDrive
from .drive_monitor import DeviceEvent, DriveAttached, DriveDetached

logger = logging.getLogger(__name__)


class DeviceRegistry:
    """
    Folds attach/detach events into a list of drives and tracks the
    drive the user selected as migration target.
    """

    def __init__(self, on_change: Optional[Callable[[Tuple[DetectedDrive, ...]], None]] = None):
        self.on_change = on_change
        self._drives: List[DetectedDrive] = []
        self._selected: Optional[DetectedDrive] = None

    @property
    def drives(self) -> Tuple[DetectedDrive, ...]:
        return tuple(self._drives)

    @property
    def selected(self) -> Optional[DetectedDrive]:
        return self._selected

    def labels(self) -> List[str]:
        return [drive.label for drive in self._drives]

    def find(self, name_or_path: str) -> Optional[DetectedDrive]:
        """Look a drive up by mount point, name or label."""
        for drive in self._drives:
            if name_or_path in (str(drive.mount_point), drive.name, drive.label):
                return drive
        return None

    def apply(self, event: DeviceEvent) -> bool:
        """
        Apply one event.

        Returns:
            True if the drive list changed.
        """
        mount_point = Path(event.mount_path)
        existing = next((d for d in self._drives if d.mount_point == mount_point), None)

        if isinstance(event, DriveAttached):
            if existing is not None:
                return False
            self._drives.append(DetectedDrive(mount_point, event.size_bytes))

        elif isinstance(event, DriveDetached):
            if existing is None:
                return False
            self._drives.remove(existing)
            if self._selected is existing:
                logger.info(f"Selected drive {existing.name} was removed")
                self._selected = None

        else:
            raise TypeError(f"Unknown device event: {event!r}")

        if self.on_change:
            self.on_change(self.drives)
        return True

    def select(self, name_or_path: str) -> DetectedDrive:
        """
        Select the migration target.

        Raises:
            KeyError: If no such drive is available.
        """
        drive = self.find(name_or_path)
        if drive is None:
            raise KeyError(name_or_path)
        self._selected = drive
        logger.info(f"Selected USB drive: {drive.label}")
        return drive

    def require_selection(self) -> DetectedDrive:
        """
        Raises:
            NoDestinationError: When no drive has been selected.
        """
        if self._selected is None:
            raise NoDestinationError()
        return self._selected

    def consume(
        self,
        events: "queue.Queue[DeviceEvent]",
        stop_event: threading.Event,
        timeout: float = 0.5,
    ) -> None:
        """Apply events from the queue until stop_event is set."""
        while not stop_event.is_set():
            try:
                event = events.get(timeout=timeout)
            except queue.Empty:
                continue
            try:
                self.apply(event)
            finally:
                events.task_done()
