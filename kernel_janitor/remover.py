"""
File removal module.

Provides functionality to delete kernel artifacts from the filesystem.
"""

import os
import shutil
from pathlib import Path
from typing import List, Tuple

from .catalog import InstalledKernel, InstalledItemKind
from .errors import DeletionError


def check_sudo() -> bool:
    """
    Check if the current process has root privileges.

    Returns:
        bool: True if running with sudo/root, False otherwise
    """
    try:
        # On Unix systems, root has UID 0
        return os.geteuid() == 0
    except AttributeError:
        # os.geteuid() not available on Windows
        return False


def remove_path(path: Path) -> None:
    """
    Delete a file, a directory tree or a symlink.

    A symlink is removed as a link; whatever it points to is left in place,
    even when it points to a directory.

    Args:
        path: Path to delete

    Raises:
        DeletionError: If the path cannot be removed
    """
    try:
        if path.is_symlink():
            path.unlink()
        elif path.is_dir():
            shutil.rmtree(path)
        elif path.exists():
            path.unlink()
        else:
            raise DeletionError(path, "no such file or directory")
    except OSError as e:
        raise DeletionError(path, e.strerror or str(e))


def removal_targets(kernel: InstalledKernel) -> List[Tuple[InstalledItemKind, Path]]:
    """
    List the paths that must be deleted to remove a kernel.

    Returns:
        List[Tuple[InstalledItemKind, Path]]: (kind, path) for every populated
        artifact, links rather than their targets for symlinked artifacts
    """
    targets = []
    for kind in InstalledItemKind:
        path = kernel.removal_path(kind)
        if path is not None:
            targets.append((kind, path))
    return targets
