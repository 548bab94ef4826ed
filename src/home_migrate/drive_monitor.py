#!/usr/bin/env python3
"""
home-migrate Drive Monitor

Polls the mount table and turns changes in the set of removable drives
into attach/detach events.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

from .drive_detector import (
    DevicePrefixPredicate,
    MountedPartition,
    RemovablePredicate,
    list_mounted_partitions,
    volume_capacity,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeviceEvent:
    """Base for drive events."""
    mount_path: str


@dataclass(frozen=True)
class DriveAttached(DeviceEvent):
    """A removable drive appeared."""
    size_bytes: int = 0


@dataclass(frozen=True)
class DriveDetached(DeviceEvent):
    """A removable drive went away."""


EventSink = Callable[[DeviceEvent], None]


class DriveMonitor:
    """
    Watches for removable drives being mounted and unmounted.

    The monitor keeps the mount points seen at the last successful poll and
    emits one event per difference. Errors raised while reading or
    classifying the mount table never reach the caller: the poll is logged
    and skipped, and the previous snapshot stays in place so no drive is
    reported as removed because of it.

    Example:
        events = queue.Queue()
        monitor = DriveMonitor()
        monitor.start(events.put)
        ...
        monitor.stop()
    """

    DEFAULT_POLL_INTERVAL = 2.0

    def __init__(
        self,
        partition_source: Callable[[], List[MountedPartition]] = list_mounted_partitions,
        is_removable: Optional[RemovablePredicate] = None,
        capacity_probe: Callable[[str], int] = volume_capacity,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        self._partition_source = partition_source
        self._is_removable = is_removable or DevicePrefixPredicate()
        self._capacity_probe = capacity_probe
        self.poll_interval = poll_interval

        self._previous: List[str] = []
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def snapshot(self) -> List[str]:
        """Mount points seen at the last successful poll."""
        return list(self._previous)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def poll(self, event_sink: EventSink) -> int:
        """
        Run one poll cycle.

        Args:
            event_sink: Receives each attach/detach event

        Returns:
            Number of events emitted.
        """
        # Nothing is emitted until classification and sizing have succeeded
        try:
            current: List[str] = []
            for partition in self._partition_source():
                if self._is_removable(partition) and partition.mount_point not in current:
                    current.append(partition.mount_point)

            added = [path for path in current if path not in self._previous]
            removed = [path for path in self._previous if path not in current]
            sizes = {path: self._capacity_probe(path) for path in added}
        except Exception as e:
            logger.warning(f"Error getting disk partitions: {e}")
            return 0

        for path in added:
            logger.info(f"New USB drive detected: {path}")
            event_sink(DriveAttached(path, sizes[path]))

        for path in removed:
            logger.info(f"USB drive removed: {path}")
            event_sink(DriveDetached(path))

        self._previous = current
        return len(added) + len(removed)

    def run(self, event_sink: EventSink, stop_event: Optional[threading.Event] = None) -> None:
        """
        Poll until stop_event is set.

        Without a stop event this only returns when the process exits.
        """
        stop_event = stop_event or self._stop_event
        logger.debug(f"Drive monitor started (interval {self.poll_interval}s)")

        while not stop_event.is_set():
            try:
                self.poll(event_sink)
            except Exception:
                logger.exception("Drive monitor poll failed")
            stop_event.wait(self.poll_interval)

        logger.debug("Drive monitor stopped")

    def start(self, event_sink: EventSink) -> None:
        """Start polling in a background thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self.run,
            args=(event_sink, self._stop_event),
            name="drive-monitor",
            daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the background thread."""
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            self._thread = None
