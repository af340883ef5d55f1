"""
Output reporting module.

Renders inventories and run reports to the terminal and asks the user
for confirmation in interactive runs.
"""

import sys
from enum import Enum
from typing import List

from .catalog import Catalog, InstalledItemKind
from .runner import Invocation
from .update import Confirmation, ExecutionReport, Step, StepStatus


class OutputLevel(Enum):
    """Output verbosity levels."""
    QUIET = 0
    NORMAL = 1
    VERBOSE = 2


STATUS_LABELS = {
    StepStatus.SUCCESS: "ok",
    StepStatus.SKIPPED: "skipped",
    StepStatus.FAILED: "FAILED",
}


class Reporter:
    """
    Handles formatted output for kernel-janitor operations.

    Errors always go to stderr, even in quiet mode.
    """

    def __init__(self, level: OutputLevel = OutputLevel.NORMAL):
        self.level = level

    def info(self, message: str) -> None:
        if self.level != OutputLevel.QUIET:
            print(message)

    def verbose(self, message: str) -> None:
        if self.level == OutputLevel.VERBOSE:
            print(message)

    def error(self, message: str) -> None:
        print(f"Error: {message}", file=sys.stderr)

    def warn(self, message: str) -> None:
        if self.level != OutputLevel.QUIET:
            print(f"Warning: {message}", file=sys.stderr)

    def step_started(self, step: Step) -> None:
        self.verbose(f">>> {step.value}")

    def print_inventory(self, catalog: Catalog) -> None:
        """
        Print every installed kernel and where its artifacts live.

        Args:
            catalog: Snapshot to display
        """
        for error in catalog.errors:
            self.warn(str(error))
        for warning in catalog.warnings:
            if self.level == OutputLevel.VERBOSE:
                self.warn(warning)

        if self.level == OutputLevel.QUIET:
            return

        if not len(catalog):
            print("No installed kernels found.")
            return

        print("Installed kernels:")
        for kernel in catalog:
            label = f"{kernel.version}" + (" (old)" if kernel.is_old else "")
            print(f"  {label}")
            for kind in InstalledItemKind:
                path = kernel.path(kind)
                if path is None:
                    if self.level == OutputLevel.VERBOSE:
                        print(f"    {kind.value:<11} -")
                    continue
                link = kernel.links.get(kind)
                location = f"{link} -> {path}" if link else str(path)
                print(f"    {kind.value:<11} {location}")

    def print_commands(self, invocations: List[Invocation], dry_run: bool = False) -> None:
        if self.level == OutputLevel.QUIET or not invocations:
            return
        print()
        for invocation in invocations:
            if dry_run:
                print(f"[DRY RUN] Would execute: {invocation}")
            else:
                print(f"Executed: {invocation}")

    def print_report(self, report: ExecutionReport) -> None:
        """
        Print the outcome of an update run.

        Deletion failures are always shown, even when every other step
        succeeded.

        Args:
            report: Report returned by the orchestrator
        """
        for error in report.deletion_errors:
            self.error(str(error))

        if self.level == OutputLevel.QUIET:
            return

        if report.target is not None:
            print(f"Target kernel: {report.target}")

        self.print_commands(report.invocations, dry_run=report.pretend)

        if report.planned_deletions:
            print()
            if report.pretend:
                print("The following files would be REMOVED:")
            else:
                print("The following files were selected for removal:")
            for planned in report.planned_deletions:
                old = " (old)" if planned.is_old else ""
                print(f"  {planned.version}{old} {planned.kind.value}: {planned.path}")

        if report.protected:
            print()
            print("Kept: " + ", ".join(str(version) for version in report.protected))
        if report.declined:
            print("Declined: " + ", ".join(str(version) for version in report.declined))

        print()
        for result in report.steps:
            label = STATUS_LABELS[result.status]
            line = f"  {result.step.value:<14} {label}"
            if result.detail and (result.status != StepStatus.SUCCESS
                                  or self.level == OutputLevel.VERBOSE):
                line += f" ({result.detail})"
            print(line)

        print()
        if report.pretend:
            print("[DRY RUN] Nothing was changed.")
        elif report.removed:
            print(f"Removed {len(report.removed)} path(s).")
        if report.failed_step is None:
            print("Done.")


class ConsoleConfirmation(Confirmation):
    """Ask on the terminal; anything but 'y' or 'yes' means no."""

    def ask(self, prompt: str) -> bool:
        try:
            response = input(f"{prompt} [y/N]: ").strip().lower()
        except EOFError:
            return False
        return response in ("y", "yes")
