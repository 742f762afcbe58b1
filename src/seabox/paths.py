"""Path utilities for seabox mounts.

Resolves the host directory bound to the container's mount root, and maps
the caller's working directory back into that mount when entering.
"""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from .constants import MOUNT_ROOT
from .errors import PathError


def resolve_mount_directory(directory: str | None = None) -> Path:
    """Resolve the host directory for the primary mount.

    Args:
        directory: Explicit directory (-d), or None for the current directory.

    Returns:
        Canonical absolute path (symlinks resolved).

    Raises:
        PathError: If the explicit directory does not exist.
    """
    if directory is None:
        return Path.cwd()
    try:
        return Path(directory).resolve(strict=True)
    except (FileNotFoundError, RuntimeError) as e:
        raise PathError(f"Directory '{directory}' does not exist") from e


def relative_enter_path(mount_source: str | Path, cwd: str | Path) -> str:
    """Path of cwd relative to the container's mount source.

    Returns an empty string when cwd is the mount source itself or lies
    outside it, so entering lands at the mount root.

    Examples:
        >>> relative_enter_path("/home/u/proj", "/home/u/proj/sub")
        'sub'
        >>> relative_enter_path("/home/u/proj", "/tmp")
        ''
    """
    source = Path(os.path.abspath(mount_source))
    current = Path(os.path.abspath(cwd))
    try:
        relative = current.relative_to(source)
    except ValueError:
        return ""
    return "" if relative == Path(".") else relative.as_posix()


def primary_mount_source(mounts: Sequence[Mapping[str, Any]]) -> str | None:
    """Host source of the mount bound at the mount root, if any.

    Args:
        mounts: The `Mounts` list of a `podman container inspect` entry.
    """
    root = MOUNT_ROOT.rstrip("/")
    for mount in mounts:
        if str(mount.get("Destination", "")).rstrip("/") == root:
            source = mount.get("Source")
            return str(source) if source else None
    return None
