"""
Installed kernel discovery.

Scans the source, module and boot directories and groups the artifacts
belonging to each kernel version into one InstalledKernel record.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from . import version as versions
from .errors import InvalidVersion, ScanError
from .version import KernelVersion

OLD_SUFFIX = ".old"


class InstalledItemKind(Enum):
    """Kinds of artifacts a kernel installation leaves on disk."""
    IMAGE = "image"
    MODULES_DIR = "modules"
    SOURCE_DIR = "sources"
    CONFIG = "config"
    SYSTEM_MAP = "System.map"
    INITRAMFS = "initramfs"


# File name prefixes for artifacts installed into the boot directory
IMAGE_PREFIXES = ("vmlinuz-",)
CONFIG_PREFIXES = ("config-",)
SYSTEM_MAP_PREFIXES = ("System.map-",)
INITRAMFS_PREFIXES = ("initramfs-", "initrd.img-", "initrd-")
INITRAMFS_SUFFIX = ".img"
SOURCE_PREFIX = "linux-"


@dataclass(frozen=True)
class InstalledKernel:
    """
    All artifacts of one installed kernel version.

    Attributes:
        version: Kernel version shared by every artifact
        paths: Resolved location of each artifact kind that was found
        links: Link path for artifacts that were reached through a symlink
        is_old: True if the artifacts carry a '.old' suffix
    """
    version: KernelVersion
    paths: Dict[InstalledItemKind, Path] = field(default_factory=dict)
    links: Dict[InstalledItemKind, Path] = field(default_factory=dict)
    is_old: bool = False

    def has(self, kind: InstalledItemKind) -> bool:
        return kind in self.paths

    def path(self, kind: InstalledItemKind) -> Optional[Path]:
        return self.paths.get(kind)

    def removal_path(self, kind: InstalledItemKind) -> Optional[Path]:
        """
        Path to delete for an artifact.

        Symlinked artifacts are removed through the link itself so that the
        data the link points to is left alone.
        """
        return self.links.get(kind, self.paths.get(kind))

    def missing_kinds(self) -> List[InstalledItemKind]:
        return [kind for kind in InstalledItemKind if kind not in self.paths]

    def __str__(self):
        label = f"{self.version} (old)" if self.is_old else str(self.version)
        kinds = ", ".join(kind.value for kind in InstalledItemKind if kind in self.paths)
        return f"{label}: {kinds}"


@dataclass(frozen=True)
class Catalog:
    """
    Point-in-time snapshot of the installed kernels.

    Attributes:
        kernels: Records in ascending version order, old records first on ties
        errors: Roots that could not be scanned
        warnings: Entries that looked like kernel artifacts but were skipped
    """
    kernels: Tuple[InstalledKernel, ...] = ()
    errors: Tuple[ScanError, ...] = ()
    warnings: Tuple[str, ...] = ()

    def find(self, version: KernelVersion, is_old: bool = False) -> Optional[InstalledKernel]:
        for kernel in self.kernels:
            if kernel.version == version and kernel.is_old == is_old:
                return kernel
        return None

    def __iter__(self):
        return iter(self.kernels)

    def __len__(self):
        return len(self.kernels)


def _strip_prefix(name: str, prefixes: Tuple[str, ...]) -> Optional[str]:
    for prefix in prefixes:
        if name.startswith(prefix):
            return name[len(prefix):]
    return None


def classify(name: str, is_dir: bool) -> Optional[Tuple[InstalledItemKind, str]]:
    """
    Match an entry name against the artifact patterns.

    Args:
        name: Entry name with any '.old' suffix already removed
        is_dir: Whether the entry (after following symlinks) is a directory

    Returns:
        Optional[Tuple[InstalledItemKind, str]]: Kind and the version part
        of the name, or None if the entry is not a kernel artifact
    """
    if is_dir:
        if name.startswith(SOURCE_PREFIX):
            return InstalledItemKind.SOURCE_DIR, name
        if name[:1].isdigit():
            return InstalledItemKind.MODULES_DIR, name
        return None

    rest = _strip_prefix(name, IMAGE_PREFIXES)
    if rest is not None:
        return InstalledItemKind.IMAGE, rest

    rest = _strip_prefix(name, CONFIG_PREFIXES)
    if rest is not None:
        return InstalledItemKind.CONFIG, rest

    rest = _strip_prefix(name, SYSTEM_MAP_PREFIXES)
    if rest is not None:
        return InstalledItemKind.SYSTEM_MAP, rest

    rest = _strip_prefix(name, INITRAMFS_PREFIXES)
    if rest is not None:
        if rest.endswith(INITRAMFS_SUFFIX):
            rest = rest[:-len(INITRAMFS_SUFFIX)]
        return InstalledItemKind.INITRAMFS, rest

    return None


def list_root(root: Path) -> List[Path]:
    """
    List the entries of a search root.

    Raises:
        ScanError: If the directory is missing or unreadable
    """
    try:
        with os.scandir(root) as entries:
            return sorted(Path(entry.path) for entry in entries)
    except FileNotFoundError:
        raise ScanError(root, "directory does not exist")
    except NotADirectoryError:
        raise ScanError(root, "not a directory")
    except PermissionError:
        raise ScanError(root, "permission denied")
    except OSError as e:
        raise ScanError(root, e.strerror or str(e))


def scan(roots: Iterable[Path]) -> Catalog:
    """
    Discover installed kernels below the given roots.

    Every entry of every root is matched against all artifact patterns.
    Entries that match nothing are skipped silently; entries that match
    but carry an unparsable version, or cannot be inspected, are skipped
    with a warning. A root that cannot be listed is reported and does not
    stop the scan.

    Args:
        roots: Directories to search (e.g. /usr/src, /lib/modules, /boot)

    Returns:
        Catalog: Snapshot with one record per (version, old) pair
    """
    records: Dict[Tuple[KernelVersion, bool], Tuple[dict, dict]] = {}
    errors = []
    warnings = []

    for root in sorted({Path(root) for root in roots}):
        try:
            entries = list_root(root)
        except ScanError as e:
            errors.append(e)
            continue

        for entry in entries:
            name = entry.name
            is_old = name.endswith(OLD_SUFFIX)
            if is_old:
                name = name[:-len(OLD_SUFFIX)]

            # is_dir follows symlinks; a dangling link is neither dir nor file
            try:
                is_dir = entry.is_dir()
                if not is_dir and not entry.is_file():
                    continue
                is_link = entry.is_symlink()
            except OSError as e:
                warnings.append(f"Could not inspect {entry}: {e.strerror or e}")
                continue

            match = classify(name, is_dir)
            if match is None:
                continue
            kind, version_text = match

            try:
                kernel_version = versions.parse(version_text)
            except InvalidVersion:
                warnings.append(f"Could not parse {entry} as a kernel version")
                continue

            paths, links = records.setdefault((kernel_version, is_old), ({}, {}))
            if kind in paths:
                warnings.append(
                    f"Ignoring {entry}: {kind.value} for {kernel_version} "
                    f"already found at {links.get(kind, paths[kind])}"
                )
                continue

            if is_link:
                paths[kind] = entry.resolve()
                links[kind] = entry
            else:
                paths[kind] = entry

    kernels = [
        InstalledKernel(version=key[0], paths=value[0], links=value[1], is_old=key[1])
        for key, value in records.items()
    ]
    kernels.sort(key=lambda kernel: (kernel.version, not kernel.is_old))

    return Catalog(kernels=tuple(kernels), errors=tuple(errors), warnings=tuple(warnings))
