"""
Tests for the drive registry fed by monitor events.
"""

import queue
import threading
import pytest
from pathlib import Path


@pytest.mark.unit
class TestDeviceRegistry:
    """Tests for DeviceRegistry."""

    def test_attach_adds_drive(self):
        from home_migrate.device_registry import DeviceRegistry
        from home_migrate.drive_monitor import DriveAttached

        registry = DeviceRegistry()
        assert registry.apply(DriveAttached("/media/u/KINGSTON", 16 * 1024 ** 3))

        assert len(registry.drives) == 1
        drive = registry.drives[0]
        assert drive.mount_point == Path("/media/u/KINGSTON")
        assert registry.labels() == ["KINGSTON (16.0 GB)"]

    def test_duplicate_attach_is_ignored(self):
        from home_migrate.device_registry import DeviceRegistry
        from home_migrate.drive_monitor import DriveAttached

        registry = DeviceRegistry()
        registry.apply(DriveAttached("/media/usb"))
        assert not registry.apply(DriveAttached("/media/usb"))
        assert len(registry.drives) == 1

    def test_detach_removes_drive_and_selection(self):
        from home_migrate.device_registry import DeviceRegistry
        from home_migrate.drive_monitor import DriveAttached, DriveDetached

        registry = DeviceRegistry()
        registry.apply(DriveAttached("/media/a"))
        registry.apply(DriveAttached("/media/b"))
        registry.select("/media/a")

        assert registry.apply(DriveDetached("/media/a"))
        assert [d.name for d in registry.drives] == ["b"]
        assert registry.selected is None

    def test_detach_keeps_other_selection(self):
        from home_migrate.device_registry import DeviceRegistry
        from home_migrate.drive_monitor import DriveAttached, DriveDetached

        registry = DeviceRegistry()
        registry.apply(DriveAttached("/media/a"))
        registry.apply(DriveAttached("/media/b"))
        registry.select("b")

        registry.apply(DriveDetached("/media/a"))
        assert registry.selected.name == "b"

    def test_unknown_detach_is_ignored(self):
        from home_migrate.device_registry import DeviceRegistry
        from home_migrate.drive_monitor import DriveDetached

        registry = DeviceRegistry()
        assert not registry.apply(DriveDetached("/media/never-seen"))

    def test_unknown_event_type(self):
        from home_migrate.device_registry import DeviceRegistry
        from home_migrate.drive_monitor import DeviceEvent

        with pytest.raises(TypeError):
            DeviceRegistry().apply(DeviceEvent("/media/usb"))

    def test_on_change_receives_snapshots(self):
        from home_migrate.device_registry import DeviceRegistry
        from home_migrate.drive_monitor import DriveAttached, DriveDetached

        snapshots = []
        registry = DeviceRegistry(on_change=snapshots.append)
        registry.apply(DriveAttached("/media/usb"))
        registry.apply(DriveAttached("/media/usb"))
        registry.apply(DriveDetached("/media/usb"))

        assert [len(s) for s in snapshots] == [1, 0]
        assert all(isinstance(s, tuple) for s in snapshots)

    def test_find_by_path_name_or_label(self):
        from home_migrate.device_registry import DeviceRegistry
        from home_migrate.drive_monitor import DriveAttached

        registry = DeviceRegistry()
        registry.apply(DriveAttached("/media/u/KINGSTON", 2 * 1024 ** 3))

        assert registry.find("/media/u/KINGSTON") is registry.find("KINGSTON")
        assert registry.find("KINGSTON (2.0 GB)") is not None
        assert registry.find("SANDISK") is None

    def test_select_unknown_drive(self):
        from home_migrate.device_registry import DeviceRegistry

        with pytest.raises(KeyError):
            DeviceRegistry().select("/media/usb")

    def test_require_selection(self):
        from common.exceptions import NoDestinationError
        from home_migrate.device_registry import DeviceRegistry
        from home_migrate.drive_monitor import DriveAttached

        registry = DeviceRegistry()
        registry.apply(DriveAttached("/media/usb"))

        with pytest.raises(NoDestinationError, match="Please select a USB drive first"):
            registry.require_selection()

        registry.select("usb")
        assert registry.require_selection().name == "usb"


@pytest.mark.unit
class TestRegistryConsumer:
    """Tests for the event-queue consumer."""

    def test_consume_until_stopped(self):
        from home_migrate.device_registry import DeviceRegistry
        from home_migrate.drive_monitor import DriveAttached, DriveDetached

        registry = DeviceRegistry()
        events = queue.Queue()
        stop = threading.Event()

        consumer = threading.Thread(
            target=registry.consume, args=(events, stop, 0.01), daemon=True
        )
        consumer.start()

        events.put(DriveAttached("/media/a"))
        events.put(DriveAttached("/media/b"))
        events.put(DriveDetached("/media/a"))
        events.join()

        stop.set()
        consumer.join(timeout=5)

        assert not consumer.is_alive()
        assert [d.name for d in registry.drives] == ["b"]

    def test_monitor_feeds_registry(self, mount_table, partition_factory):
        from home_migrate.device_registry import DeviceRegistry
        from home_migrate.drive_monitor import DriveMonitor

        mount_table.partitions.append(partition_factory("/dev/sdb1", "/media/u/KINGSTON"))
        monitor = DriveMonitor(mount_table, capacity_probe=lambda path: 4 * 1024 ** 3)
        registry = DeviceRegistry()

        monitor.poll(registry.apply)
        assert registry.labels() == ["KINGSTON (4.0 GB)"]

        mount_table.partitions.pop()
        monitor.poll(registry.apply)
        assert registry.drives == ()
