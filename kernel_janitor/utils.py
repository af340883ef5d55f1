"""
Utility functions.

Shared helper functions used across kernel-janitor modules.
"""

import os
from typing import Optional

from . import version as versions
from .errors import InvalidVersion, JanitorError
from .version import KernelVersion


def get_running_kernel() -> str:
    """
    Detect the currently running kernel release.

    Reads the release from the uname system call, so no process is started.

    Returns:
        str: Kernel release as printed by 'uname -r' (e.g. '5.15.0-gentoo')

    Raises:
        JanitorError: If unable to detect the running kernel
    """
    try:
        release = os.uname().release
    except (AttributeError, OSError) as e:
        # os.uname() not available on Windows
        raise JanitorError(f"Failed to detect running kernel: {e}")

    release = release.strip()
    if not release:
        raise JanitorError("uname returned empty kernel version")
    return release


def parse_release(release: Optional[str]) -> Optional[KernelVersion]:
    """Parse a kernel release, returning None for anything unparsable."""
    if not release:
        return None
    try:
        return versions.parse(release)
    except InvalidVersion:
        return None
