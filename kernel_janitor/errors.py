"""
Error taxonomy.

Every condition kernel-janitor reports derives from JanitorError so the
CLI can catch them in one place.
"""

from pathlib import Path
from typing import Optional


class JanitorError(RuntimeError):
    """Base class for all kernel-janitor errors."""


class InvalidVersion(JanitorError, ValueError):
    """A string could not be parsed as a kernel version."""

    def __init__(self, text: str, reason: str = "no numeric major component"):
        super().__init__(f"Could not parse {text!r} as a kernel version: {reason}")
        self.text = text


class ScanError(JanitorError):
    """A search root could not be listed."""

    def __init__(self, root: Path, reason: str):
        super().__init__(f"Could not scan {root}: {reason}")
        self.root = root
        self.reason = reason


class NoBuildTarget(JanitorError):
    """No source tree is waiting to be built."""


class TargetNotFound(JanitorError):
    """The target version vanished from the inventory after installation."""

    def __init__(self, version):
        super().__init__(
            f"Kernel {version} was not found after installation; refusing to clean up"
        )
        self.version = version


class CommandFailed(JanitorError):
    """An external command exited with a non-zero status."""

    def __init__(self, program: str, exit_status: int, reason: Optional[str] = None):
        message = f"{program} failed with exit code {exit_status}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.program = program
        self.exit_status = exit_status


class DeletionError(JanitorError):
    """A file or directory could not be removed."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"Failed to remove {path}: {reason}")
        self.path = path
        self.reason = reason


class ConfigError(JanitorError):
    """The configuration file is missing a value or holds a bad one."""


class CleanupIncomplete(JanitorError):
    """Some artifacts of old kernels could not be removed."""

    def __init__(self, failures):
        super().__init__(f"{len(failures)} path(s) could not be removed")
        self.failures = list(failures)
