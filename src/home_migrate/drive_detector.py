#!/usr/bin/env python3
"""
home-migrate Drive Detector

Lists mounted filesystems and decides which of them are removable drives.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional

import psutil
import pyudev

from common.decorators import handle_errors

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MountedPartition:
    """One row of the mounted filesystem table."""
    device: str  # e.g., /dev/sdb1
    mount_point: str
    fstype: str = ""


@dataclass
class DetectedDrive:
    """A removable drive that can be picked as migration target."""
    mount_point: Path
    size_bytes: int = 0

    @property
    def name(self) -> str:
        return self.mount_point.name or str(self.mount_point)

    @property
    def size_gb(self) -> float:
        return self.size_bytes / (1024 ** 3)

    @property
    def size_display(self) -> str:
        if self.size_gb >= 1000:
            return f"{self.size_gb / 1024:.1f} TB"
        elif self.size_gb >= 1:
            return f"{self.size_gb:.1f} GB"
        else:
            return f"{self.size_bytes / (1024 ** 2):.0f} MB"

    @property
    def label(self) -> str:
        """Label shown in drive pickers, e.g. 'KINGSTON (14.4 GB)'."""
        return f"{self.name} ({self.size_gb:.1f} GB)"


RemovablePredicate = Callable[[MountedPartition], bool]


class DevicePrefixPredicate:
    """
    Classifies a partition as removable by its device path prefix.

    On Linux, USB sticks and card readers show up as /dev/sd* block devices
    while the system disk is usually NVMe or virtio.
    """

    DEFAULT_PREFIXES = ("/dev/sd",)

    def __init__(self, prefixes: Iterable[str] = DEFAULT_PREFIXES):
        self.prefixes = tuple(prefixes)

    def __call__(self, partition: MountedPartition) -> bool:
        return partition.device.startswith(self.prefixes)

    def __repr__(self):
        return f"DevicePrefixPredicate({list(self.prefixes)!r})"


class UdevRemovablePredicate:
    """
    Classifies a partition as removable by asking udev.

    A partition counts as removable when it sits on the USB bus or when its
    parent disk reports the sysfs 'removable' flag.
    """

    def __init__(self, context: Optional[pyudev.Context] = None):
        self._context = context or pyudev.Context()

    def __call__(self, partition: MountedPartition) -> bool:
        if not partition.device.startswith("/dev/"):
            return False

        try:
            device = pyudev.Devices.from_device_file(self._context, partition.device)
        except (pyudev.DeviceNotFoundError, OSError, ValueError) as e:
            logger.debug(f"udev lookup failed for {partition.device}: {e}")
            return False

        if device.get("ID_BUS") == "usb":
            return True

        if device.device_type == "disk":
            disk = device
        else:
            disk = device.find_parent("block", "disk")
        if disk is None:
            return False

        try:
            return disk.attributes.asstring("removable").strip() == "1"
        except KeyError:
            return False


def build_removable_predicate(method: str = "prefix",
                              prefixes: Iterable[str] = DevicePrefixPredicate.DEFAULT_PREFIXES,
                              ) -> RemovablePredicate:
    """
    Create the removable-drive predicate for a detection method.

    Args:
        method: "prefix" (device path prefixes) or "udev"
        prefixes: Device path prefixes for the "prefix" method

    Returns:
        Predicate over MountedPartition.
    """
    if method == "udev":
        return UdevRemovablePredicate()
    if method == "prefix":
        return DevicePrefixPredicate(prefixes)
    raise ValueError(f"Unknown removable detection method: {method}")


def list_mounted_partitions() -> List[MountedPartition]:
    """
    List mounted physical filesystems.

    Raises:
        OSError or psutil.Error if the mount table cannot be read.
    """
    return [
        MountedPartition(
            device=part.device,
            mount_point=part.mountpoint,
            fstype=part.fstype,
        )
        for part in psutil.disk_partitions(all=False)
    ]


@handle_errors(OSError, default=0, log_level=logging.WARNING,
               message="Error getting size")
def volume_capacity(mount_point: str) -> int:
    """Total capacity in bytes of the volume mounted at mount_point, 0 if unknown."""
    return psutil.disk_usage(mount_point).total


def scan_removable_drives(
    is_removable: Optional[RemovablePredicate] = None,
    partition_source: Callable[[], List[MountedPartition]] = list_mounted_partitions,
) -> List[DetectedDrive]:
    """
    One-shot scan for removable drives.

    Returns:
        Drives in mount table order, one per mount point.
    """
    is_removable = is_removable or DevicePrefixPredicate()
    drives: List[DetectedDrive] = []
    seen = set()

    for partition in partition_source():
        if not is_removable(partition) or partition.mount_point in seen:
            continue
        seen.add(partition.mount_point)
        drives.append(DetectedDrive(
            mount_point=Path(partition.mount_point),
            size_bytes=volume_capacity(partition.mount_point),
        ))

    return drives
