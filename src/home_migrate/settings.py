"""
home-migrate settings.

Settings live in ~/.config/home-migrate/settings.json. Every field is
optional in the file; missing fields keep their defaults.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from common.exceptions import ConfigError, InvalidConfigError

from .drive_detector import DevicePrefixPredicate, RemovablePredicate, build_removable_predicate
from .exclusions import DEFAULT_EXCLUDED_SUBSTRINGS

logger = logging.getLogger(__name__)

CONFIG_RELATIVE_PATH = ".config/home-migrate/settings.json"

DETECTION_METHODS = ("prefix", "udev")


def default_config_path() -> Path:
    return Path.home() / CONFIG_RELATIVE_PATH


@dataclass
class MigrationSettings:
    """User-tunable settings."""
    poll_interval: float = 2.0
    removable_detection: str = "prefix"
    device_prefixes: List[str] = field(
        default_factory=lambda: list(DevicePrefixPredicate.DEFAULT_PREFIXES)
    )
    excluded_substrings: List[str] = field(
        default_factory=lambda: list(DEFAULT_EXCLUDED_SUBSTRINGS)
    )
    backup_dir_name: str = "home_backup"
    log_file: Optional[str] = None

    def validate(self) -> None:
        """
        Raises:
            InvalidConfigError: On the first invalid field.
        """
        if not isinstance(self.poll_interval, (int, float)) or self.poll_interval <= 0:
            raise InvalidConfigError("poll_interval", self.poll_interval, "must be a positive number")

        if self.removable_detection not in DETECTION_METHODS:
            raise InvalidConfigError(
                "removable_detection", self.removable_detection,
                f"must be one of {', '.join(DETECTION_METHODS)}",
            )

        if not _is_string_list(self.device_prefixes) or not self.device_prefixes:
            raise InvalidConfigError("device_prefixes", self.device_prefixes, "must be a non-empty list of strings")

        if not _is_string_list(self.excluded_substrings):
            raise InvalidConfigError("excluded_substrings", self.excluded_substrings, "must be a list of strings")

        name = self.backup_dir_name
        if not isinstance(name, str) or not name or "/" in name or name in (".", ".."):
            raise InvalidConfigError("backup_dir_name", name, "must be a plain directory name")

        if self.log_file is not None and not isinstance(self.log_file, str):
            raise InvalidConfigError("log_file", self.log_file, "must be a path string")

    def destination_for(self, mount_point: Union[str, Path]) -> Path:
        """Folder on the drive that receives the home directory copy."""
        return Path(mount_point) / self.backup_dir_name

    def removable_predicate(self) -> RemovablePredicate:
        return build_removable_predicate(self.removable_detection, self.device_prefixes)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MigrationSettings":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown settings: {', '.join(unknown)}")

        settings = cls(**{k: v for k, v in data.items() if k in known})
        settings.validate()
        return settings

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _is_string_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


def load_settings(path: Optional[Union[str, Path]] = None) -> MigrationSettings:
    """
    Load settings, falling back to defaults when the file does not exist.

    Raises:
        ConfigError: If the file cannot be read or is not a JSON object.
        InvalidConfigError: If a value is out of range.
    """
    path = Path(path) if path else default_config_path()

    if not path.exists():
        logger.debug(f"No settings file at {path}, using defaults")
        return MigrationSettings()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigError(
            f"Cannot read settings file {path}",
            code="CONFIG_UNREADABLE",
            details={"path": str(path)},
            cause=e,
        )

    if not isinstance(data, dict):
        raise ConfigError(
            f"Settings file {path} must contain a JSON object",
            code="CONFIG_UNREADABLE",
            details={"path": str(path)},
        )

    return MigrationSettings.from_dict(data)


def save_settings(settings: MigrationSettings, path: Optional[Union[str, Path]] = None) -> Path:
    """
    Write settings atomically (temp file in the same directory, then rename).

    Returns:
        The path written.
    """
    settings.validate()
    path = Path(path) if path else default_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp"
    )

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(settings.to_dict(), f, indent=2)
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())

        os.chmod(temp_path, 0o644)
        os.replace(temp_path, path)
    except Exception:
        # Clean up temp file on failure
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise

    return path
