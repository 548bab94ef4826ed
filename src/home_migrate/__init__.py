"""
home-migrate

Copies a user's home folder onto a removable drive:
- Removable drive detection and hot-plug monitoring
- Two-pass tree copy with exclusion rules and progress reporting
"""

from .drive_detector import (
    DetectedDrive,
    DevicePrefixPredicate,
    MountedPartition,
    UdevRemovablePredicate,
    list_mounted_partitions,
    scan_removable_drives,
    volume_capacity,
)
from .drive_monitor import DeviceEvent, DriveAttached, DriveDetached, DriveMonitor
from .device_registry import DeviceRegistry
from .exclusions import DEFAULT_EXCLUDED_SUBSTRINGS, ExclusionRules
from .settings import MigrationSettings, load_settings, save_settings
from .synchronizer import (
    SyncOutcome,
    SyncProgress,
    SyncRequest,
    SyncRunner,
    TreeSynchronizer,
    synchronize,
)

__version__ = "0.1.0"

__all__ = [
    "DetectedDrive",
    "DevicePrefixPredicate",
    "MountedPartition",
    "UdevRemovablePredicate",
    "list_mounted_partitions",
    "scan_removable_drives",
    "volume_capacity",
    "DeviceEvent",
    "DriveAttached",
    "DriveDetached",
    "DriveMonitor",
    "DeviceRegistry",
    "DEFAULT_EXCLUDED_SUBSTRINGS",
    "ExclusionRules",
    "MigrationSettings",
    "load_settings",
    "save_settings",
    "SyncOutcome",
    "SyncProgress",
    "SyncRequest",
    "SyncRunner",
    "TreeSynchronizer",
    "synchronize",
]
