"""
Inventory queries.

A reusable builder of filters over a catalog snapshot. Every setter
returns the builder so filters can be chained; all filters must hold for
a record to be selected.
"""

import copy
from typing import Iterable, List, Optional, Set

from .catalog import Catalog, InstalledItemKind, InstalledKernel
from .version import KernelVersion


class InventoryQuery:
    """
    Filter and sort installed kernels.

    Example:
        InventoryQuery().with_kinds(InstalledItemKind.IMAGE).old(False).latest(2)
    """

    def __init__(self):
        self._required: Set[InstalledItemKind] = set()
        self._excluded: Set[InstalledItemKind] = set()
        self._lower: Optional[KernelVersion] = None
        self._lower_inclusive = True
        self._upper: Optional[KernelVersion] = None
        self._upper_inclusive = True
        self._is_old: Optional[bool] = None
        self._only_versions: Optional[Set[KernelVersion]] = None
        self._skip_versions: Set[KernelVersion] = set()
        self._latest: Optional[int] = None

    def copy(self) -> "InventoryQuery":
        return copy.deepcopy(self)

    def with_kinds(self, *kinds: InstalledItemKind) -> "InventoryQuery":
        """Require every given artifact kind to be present."""
        self._required.update(kinds)
        return self

    def without_kinds(self, *kinds: InstalledItemKind) -> "InventoryQuery":
        """Require every given artifact kind to be absent."""
        self._excluded.update(kinds)
        return self

    def lower_bound(self, version: KernelVersion, inclusive: bool = True) -> "InventoryQuery":
        self._lower = version
        self._lower_inclusive = inclusive
        return self

    def upper_bound(self, version: KernelVersion, inclusive: bool = True) -> "InventoryQuery":
        self._upper = version
        self._upper_inclusive = inclusive
        return self

    def older_than(self, version: KernelVersion) -> "InventoryQuery":
        return self.upper_bound(version, inclusive=False)

    def newer_than(self, version: KernelVersion) -> "InventoryQuery":
        return self.lower_bound(version, inclusive=False)

    def old(self, is_old: bool = True) -> "InventoryQuery":
        """Restrict to records with (or without) the '.old' marker."""
        self._is_old = is_old
        return self

    def versions(self, versions: Iterable[KernelVersion]) -> "InventoryQuery":
        """Restrict to an explicit set of versions."""
        self._only_versions = set(versions)
        return self

    def excluding(self, versions: Iterable[KernelVersion]) -> "InventoryQuery":
        """Drop an explicit set of versions."""
        self._skip_versions.update(versions)
        return self

    def latest(self, count: int = 1) -> "InventoryQuery":
        """Keep only records of the newest `count` distinct versions."""
        if count < 1:
            raise ValueError("latest() needs a count of at least 1")
        self._latest = count
        return self

    def matches(self, kernel: InstalledKernel) -> bool:
        """Check a single record against every filter except `latest`."""
        if any(not kernel.has(kind) for kind in self._required):
            return False
        if any(kernel.has(kind) for kind in self._excluded):
            return False
        if self._is_old is not None and kernel.is_old != self._is_old:
            return False
        if self._only_versions is not None and kernel.version not in self._only_versions:
            return False
        if kernel.version in self._skip_versions:
            return False

        if self._lower is not None:
            if kernel.version < self._lower:
                return False
            if not self._lower_inclusive and kernel.version == self._lower:
                return False
        if self._upper is not None:
            if kernel.version > self._upper:
                return False
            if not self._upper_inclusive and kernel.version == self._upper:
                return False

        return True

    def evaluate(self, catalog: Catalog) -> List[InstalledKernel]:
        """
        Run the query against a snapshot.

        Args:
            catalog: Snapshot to select from

        Returns:
            List[InstalledKernel]: Matching records, ascending by version;
            descending when `latest` is set
        """
        selected = [kernel for kernel in catalog.kernels if self.matches(kernel)]
        selected.sort(key=lambda kernel: (kernel.version, not kernel.is_old))

        if self._latest is None:
            return selected

        selected.reverse()
        newest: List[KernelVersion] = []
        for kernel in selected:
            if kernel.version not in newest:
                newest.append(kernel.version)
        keep = set(newest[:self._latest])
        return [kernel for kernel in selected if kernel.version in keep]
