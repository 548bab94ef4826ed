"""
Exclusion rules and tree walking shared by the counting and copying passes.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional, Union

logger = logging.getLogger(__name__)

# Caches, package stores and desktop application data
DEFAULT_EXCLUDED_SUBSTRINGS = ("go/pkg/mod", ".cache", ".local/share")


class ExclusionRules:
    """
    Decides which paths under a source root are left out of a migration.

    A path is excluded when any component below the source root starts
    with a dot, when its relative path contains one of the excluded
    substrings, or when it is the destination root or lies inside it.
    """

    def __init__(
        self,
        source_root: Union[str, Path],
        excluded_substrings: Iterable[str] = DEFAULT_EXCLUDED_SUBSTRINGS,
        destination_root: Optional[Union[str, Path]] = None,
    ):
        self.source_root = Path(source_root).resolve()
        self.excluded_substrings = tuple(s for s in excluded_substrings if s)
        self.destination_root = (
            Path(destination_root).resolve() if destination_root is not None else None
        )

    def is_excluded(self, path: Union[str, Path]) -> bool:
        path = Path(os.path.abspath(path))

        try:
            relative = path.relative_to(self.source_root)
        except ValueError:
            relative = None

        if relative is not None:
            if any(part.startswith(".") for part in relative.parts):
                return True

            relative_str = relative.as_posix()
            if any(sub in relative_str for sub in self.excluded_substrings):
                return True

        if self.destination_root is not None:
            if path == self.destination_root or self.destination_root in path.parents:
                return True

        return False

    __call__ = is_excluded


def walk_tree(
    root: Path,
    rules: ExclusionRules,
    on_error: Callable[[Path, OSError], None],
) -> Iterator[Path]:
    """
    Yield every non-excluded entry below root, parents before children.

    Excluded directories are not listed at all. Symlinks are yielded but
    never descended into. When a directory cannot be listed, on_error is
    called with the directory and the error; it may raise to stop the walk,
    otherwise the directory's contents are skipped.
    """
    try:
        entries = sorted(root.iterdir())
    except OSError as e:
        on_error(root, e)
        return

    for entry in entries:
        if rules.is_excluded(entry):
            logger.debug(f"Skipping excluded path: {entry}")
            continue

        yield entry

        if entry.is_dir() and not entry.is_symlink():
            yield from walk_tree(entry, rules, on_error)
