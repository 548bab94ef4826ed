"""
Pytest configuration and shared fixtures for home-migrate tests.

Provides fake mount tables and throwaway home directory trees.
"""

import os
import pytest
from pathlib import Path
from typing import Generator, List
import sys

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


# ============ Environment Fixtures ============

@pytest.fixture
def temp_home(tmp_path: Path) -> Generator[Path, None, None]:
    """Provide a temporary home directory for tests."""
    home = tmp_path / "home"
    home.mkdir()
    old_home = os.environ.get('HOME')
    os.environ['HOME'] = str(home)

    yield home

    if old_home:
        os.environ['HOME'] = old_home
    else:
        os.environ.pop('HOME', None)


@pytest.fixture
def home_tree(tmp_path: Path) -> Path:
    """
    A small home folder:

        a.txt            0644
        run.sh           0755
        .hidden/x.txt
        .bashrc
        sub/b.txt        0600
        sub/deeper/c.bin
        .cache/thumb.png
        go/pkg/mod/m.go
        go/src/main.go
        empty/
    """
    root = tmp_path / "source"
    root.mkdir()

    (root / "a.txt").write_text("alpha")
    (root / "a.txt").chmod(0o644)
    (root / "run.sh").write_text("#!/bin/sh\necho hi\n")
    (root / "run.sh").chmod(0o755)
    (root / ".bashrc").write_text("export PS1='$ '")

    (root / ".hidden").mkdir()
    (root / ".hidden/x.txt").write_text("secret")

    (root / "sub/deeper").mkdir(parents=True)
    (root / "sub/b.txt").write_text("bravo")
    (root / "sub/b.txt").chmod(0o600)
    (root / "sub/deeper/c.bin").write_bytes(bytes(range(256)) * 4)

    (root / ".cache").mkdir()
    (root / ".cache/thumb.png").write_bytes(b"\x89PNG")

    (root / "go/pkg/mod").mkdir(parents=True)
    (root / "go/pkg/mod/m.go").write_text("package m")
    (root / "go/src").mkdir(parents=True)
    (root / "go/src/main.go").write_text("package main")

    (root / "empty").mkdir()

    return root


# Files of home_tree that a run copies
HOME_TREE_COPIED = {
    "a.txt",
    "run.sh",
    "sub/b.txt",
    "sub/deeper/c.bin",
    "go/src/main.go",
}


@pytest.fixture
def copied_files() -> set:
    return set(HOME_TREE_COPIED)


# ============ Mount Table Fixtures ============

@pytest.fixture
def partition_factory():
    """Build MountedPartition rows."""
    from home_migrate.drive_detector import MountedPartition

    def make(device: str, mount_point: str, fstype: str = "vfat"):
        return MountedPartition(device=device, mount_point=mount_point, fstype=fstype)

    return make


@pytest.fixture
def system_partitions(partition_factory) -> List:
    """Fixed disks that are never removable."""
    return [
        partition_factory("/dev/nvme0n1p2", "/", "ext4"),
        partition_factory("/dev/nvme0n1p1", "/boot/efi", "vfat"),
    ]


class FakeMountTable:
    """Mutable partition source for DriveMonitor."""

    def __init__(self, partitions=None):
        self.partitions = list(partitions or [])
        self.fail_with = None
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.fail_with is not None:
            raise self.fail_with
        return list(self.partitions)


@pytest.fixture
def mount_table(system_partitions) -> FakeMountTable:
    return FakeMountTable(system_partitions)


# ============ Marker Configuration ============

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "unit: fast unit tests with no external deps"
    )
    config.addinivalue_line(
        "markers", "integration: tests that copy real directory trees"
    )
