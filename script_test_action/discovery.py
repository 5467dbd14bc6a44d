"""Discover candidate scripts under a root directory."""

import fnmatch
import logging
import os
from collections.abc import Mapping, Sequence
from pathlib import Path, PurePosixPath

from script_test_action.models.script import ScriptUnit

log = logging.getLogger(__name__)


class DiscoveryError(Exception):
    """Raised when the search root cannot be walked."""


def discover_scripts(
    root: Path,
    extensions: Mapping[str, str],
    exclude: Sequence[str] = (),
) -> Sequence[ScriptUnit]:
    """Find all scripts below ``root`` handled by an enabled interpreter.

    Symlinked directories are followed, but a directory already visited (same
    device and inode) is never entered again, so link cycles terminate.

    Args:
        root: Directory to search
        extensions: Lower-case file suffix (e.g. ".sh") to interpreter key
        exclude: Glob patterns matched against relative paths and names;
            a matching directory is pruned with everything below it

    Returns:
        Script units sorted by relative path (may be empty)

    Raises:
        DiscoveryError: If the root does not exist, is not a directory or
            cannot be read

    """
    if not root.exists():
        raise DiscoveryError(f"Search root does not exist: {root}")
    if not root.is_dir():
        raise DiscoveryError(f"Search root is not a directory: {root}")
    if not os.access(root, os.R_OK | os.X_OK):
        raise DiscoveryError(f"Search root is not readable: {root}")

    root = root.resolve()
    visited: set[tuple[int, int]] = set()
    units: list[ScriptUnit] = []

    def on_error(error: OSError) -> None:
        if Path(error.filename or "") == root:
            raise DiscoveryError(f"Cannot read search root {root}: {error}") from error
        log.warning("Skipping unreadable directory %s: %s", error.filename, error.strerror)

    for dirpath, dirnames, filenames in os.walk(root, onerror=on_error, followlinks=True):
        current = Path(dirpath)
        stat = current.stat()
        if (stat.st_dev, stat.st_ino) in visited:
            log.debug("Not re-entering already visited directory %s", current)
            dirnames[:] = []
            continue
        visited.add((stat.st_dev, stat.st_ino))

        dirnames[:] = sorted(
            name
            for name in dirnames
            if not is_excluded(_relative(current / name, root), exclude)
        )

        for name in filenames:
            interpreter = extensions.get(Path(name).suffix.lower())
            if interpreter is None:
                continue
            path = current / name
            relative = _relative(path, root)
            if is_excluded(relative, exclude):
                log.debug("Excluded %s", relative)
                continue
            units.append(ScriptUnit(path=path, relative_path=relative, interpreter=interpreter))

    units.sort(key=lambda unit: unit.relative_path)
    log.info("Discovered %d script(s) under %s", len(units), root)
    return units


def is_excluded(relative_path: str, patterns: Sequence[str]) -> bool:
    """Check a POSIX relative path against exclusion globs.

    A pattern matches when it matches the whole relative path or the last
    path component.
    """
    name = PurePosixPath(relative_path).name
    return any(
        fnmatch.fnmatchcase(relative_path, pattern) or fnmatch.fnmatchcase(name, pattern)
        for pattern in patterns
    )


def _relative(path: Path, root: Path) -> str:
    return path.relative_to(root).as_posix()
