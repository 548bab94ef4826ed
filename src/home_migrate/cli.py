#!/usr/bin/env python3
"""
home-migrate CLI

Command-line front end: find USB drives and copy the home folder to one.
"""

import argparse
import logging
import queue
import sys
import threading
from pathlib import Path
from typing import Optional, Sequence

from common.exceptions import ConfigError, NoDestinationError
from common.logging_config import migration_context, setup_logging

from .device_registry import DeviceRegistry
from .drive_detector import scan_removable_drives
from .drive_monitor import DeviceEvent, DriveMonitor
from .exclusions import ExclusionRules
from .settings import MigrationSettings, load_settings
from .synchronizer import SyncOutcome, SyncProgress, SyncRequest, SyncRunner, TreeSynchronizer

logger = logging.getLogger(__name__)


def progress_callback(progress: SyncProgress):
    """Display progress during migration."""
    bar_width = 40
    filled = int(bar_width * progress.fraction)
    bar = "=" * filled + "-" * (bar_width - filled)

    print(
        f"\r[{bar}] {progress.percent:.1f}% "
        f"({progress.files_copied}/{progress.files_total})",
        end="",
        flush=True,
    )


def print_drives(drives) -> None:
    if not drives:
        print("Waiting for USB drive...")
        return
    print("Available USB drives:")
    for i, drive in enumerate(drives, 1):
        print(f"  {i}. {drive.label}  {drive.mount_point}")


def cmd_drives(args):
    """List removable drives."""
    settings: MigrationSettings = args.settings
    drives = scan_removable_drives(settings.removable_predicate())

    if not drives:
        print("No USB drives found.")
        print("Plug in a drive and make sure it is mounted.")
        return 1

    print_drives(drives)
    return 0


def cmd_watch(args):
    """Print drive changes until interrupted."""
    settings: MigrationSettings = args.settings
    events: "queue.Queue[DeviceEvent]" = queue.Queue()
    stop = threading.Event()

    registry = DeviceRegistry(on_change=print_drives)
    monitor = DriveMonitor(
        is_removable=settings.removable_predicate(),
        poll_interval=settings.poll_interval,
    )

    print("Watching for USB drives (Ctrl+C to stop)...")
    monitor.start(events.put)
    try:
        registry.consume(events, stop)
    except KeyboardInterrupt:
        print()
    finally:
        stop.set()
        monitor.stop()

    return 0


def choose_drive(registry: DeviceRegistry, assume_yes: bool = False):
    """
    Select the target drive: the only one present, or ask the user.

    Raises:
        NoDestinationError: When no drive is available or none was chosen.
    """
    drives = registry.drives
    if not drives:
        raise NoDestinationError("No USB drive found. Plug in a drive and try again.")

    if len(drives) == 1:
        return registry.select(str(drives[0].mount_point))

    if assume_yes:
        raise NoDestinationError("Several USB drives found; pass the target mount point")

    print_drives(drives)
    response = input(f"Select USB drive [1-{len(drives)}]: ").strip()
    try:
        index = int(response)
    except ValueError:
        index = 0
    if not 1 <= index <= len(drives):
        raise NoDestinationError("Please select a USB drive first")

    return registry.select(str(drives[index - 1].mount_point))


def cmd_migrate(args):
    """Copy the home folder to a USB drive."""
    settings: MigrationSettings = args.settings
    source_path = Path(args.source).expanduser() if args.source else Path.home()

    if not source_path.is_dir():
        print(f"Error: Source path does not exist: {source_path}")
        return 1

    if args.target:
        target_mount = Path(args.target).expanduser()
        if not target_mount.is_dir():
            print(f"Error: Target is not a mounted directory: {target_mount}")
            return 1
    else:
        registry = DeviceRegistry()
        monitor = DriveMonitor(is_removable=settings.removable_predicate())
        monitor.poll(registry.apply)
        try:
            target_mount = choose_drive(registry, args.yes).mount_point
        except NoDestinationError as e:
            print(f"Error: {e.message}")
            return 1

    request = SyncRequest(source_path, settings.destination_for(target_mount))
    rules = ExclusionRules(
        request.source_root,
        settings.excluded_substrings,
        destination_root=request.destination_root,
    )

    print(f"Source: {request.source_root}")
    print(f"Target: {request.destination_root}")
    if request.destination_inside_source:
        print("Note: the target is inside the source folder and will not be copied into itself.")
    print()

    print("Scanning files...")
    files_total = TreeSynchronizer(request, rules).count_files()
    print(f"Found {files_total} files")
    print()

    if not args.yes:
        response = input("Proceed with migration? [y/N] ")
        if response.lower() != "y":
            print("Migration cancelled.")
            return 0

    print("Migrating files...")
    runner = SyncRunner(
        on_progress=progress_callback,
        excluded_substrings=settings.excluded_substrings,
    )

    with migration_context(request.source_root, request.destination_root):
        runner.start(request)
        outcome: Optional[SyncOutcome] = None
        while outcome is None:
            try:
                outcome = runner.wait(timeout=0.5)
            except KeyboardInterrupt:
                print("\nCancelling...")
                runner.cancel()
    print()  # New line after progress bar

    print()
    if outcome.success:
        print("Migration completed successfully!")
        print(f"{outcome.files_copied} files copied to {request.destination_root}")
        return 0

    print(f"Migration failed: {outcome.message}")
    return 1


def main(argv: Optional[Sequence[str]] = None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="home-migrate",
        description="Copy your home folder to a USB drive",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  home-migrate drives                      # List plugged-in USB drives
  home-migrate watch                       # Follow drives as they come and go
  home-migrate migrate                     # Copy ~ to the USB drive
  home-migrate migrate /media/ann/KINGSTON -y
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--config", help="Settings file (default: ~/.config/home-migrate/settings.json)")
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument("--json-logs", action="store_true", help="Write the log file as JSON lines")
    parser.add_argument("--udev", action="store_true", help="Detect removable drives through udev")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    drives_parser = subparsers.add_parser("drives", help="List USB drives")
    drives_parser.set_defaults(func=cmd_drives)

    watch_parser = subparsers.add_parser("watch", help="Watch for USB drives")
    watch_parser.set_defaults(func=cmd_watch)

    migrate_parser = subparsers.add_parser("migrate", help="Copy the home folder to a USB drive")
    migrate_parser.add_argument("target", nargs="?", help="Mount point of the USB drive")
    migrate_parser.add_argument("-s", "--source", help="Folder to copy (default: home)")
    migrate_parser.add_argument("-y", "--yes", action="store_true", help="Skip confirmation")
    migrate_parser.set_defaults(func=cmd_migrate)

    args = parser.parse_args(argv)

    try:
        args.settings = load_settings(args.config)
    except ConfigError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 2

    if args.udev:
        args.settings.removable_detection = "udev"

    level = logging.DEBUG if args.verbose else logging.INFO
    log_file = args.log_file or args.settings.log_file
    setup_logging(level, Path(log_file) if log_file else None, json_logs=args.json_logs)
    logger.debug(f"Settings: {args.settings}")

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
