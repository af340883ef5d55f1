"""
Kernel update orchestration.

Drives one update run through its steps:

    select-target -> copy-config -> build -> install -> finalize-boot -> cleanup-old

Each step only starts once the previous one succeeded. Nothing is rolled
back: when a step fails, the effects of earlier steps stay in place and
the remaining steps are reported as skipped.
"""

import shutil
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Set

from . import catalog as catalogs
from .catalog import Catalog, InstalledItemKind, InstalledKernel
from .config import Configuration
from .errors import (
    CleanupIncomplete,
    DeletionError,
    JanitorError,
    NoBuildTarget,
    TargetNotFound,
)
from .query import InventoryQuery
from .remover import remove_path, removal_targets
from .runner import CommandRunner, Invocation, RunMode
from .utils import get_running_kernel, parse_release
from .version import KernelVersion

EXIT_SUCCESS = 0
EXIT_STEP_FAILED = 1
EXIT_CLEANUP_INCOMPLETE = 3


class Step(Enum):
    """Steps of an update run, in execution order."""
    SELECT_TARGET = "select-target"
    COPY_CONFIG = "copy-config"
    BUILD = "build"
    INSTALL = "install"
    FINALIZE_BOOT = "finalize-boot"
    CLEANUP_OLD = "cleanup-old"


class StepStatus(Enum):
    """Outcome of a single step."""
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class StepResult:
    step: Step
    status: StepStatus
    detail: str = ""
    cause: Optional[JanitorError] = None


@dataclass
class PlannedDeletion:
    """A path selected for removal during cleanup."""
    version: KernelVersion
    kind: InstalledItemKind
    path: Path
    is_old: bool = False


@dataclass
class ExecutionReport:
    """
    Everything that happened during one run.

    Attributes:
        steps: Outcome of every step, in order
        target: Version that was built (or kept, for clean-only runs)
        pretend: True if nothing was actually changed
        invocations: Commands that were run or would have been run
        planned_deletions: Paths selected for removal
        removed: Paths that were removed
        deletion_errors: Paths that could not be removed
        declined: Versions the user chose to keep when asked
        protected: Older versions kept because of the keep list or running kernel
        inventory: Installed kernels as last scanned
    """
    steps: List[StepResult] = field(default_factory=list)
    target: Optional[KernelVersion] = None
    pretend: bool = False
    invocations: List[Invocation] = field(default_factory=list)
    planned_deletions: List[PlannedDeletion] = field(default_factory=list)
    removed: List[Path] = field(default_factory=list)
    deletion_errors: List[DeletionError] = field(default_factory=list)
    declined: List[KernelVersion] = field(default_factory=list)
    protected: List[KernelVersion] = field(default_factory=list)
    inventory: Optional[Catalog] = None

    def result(self, step: Step) -> Optional[StepResult]:
        for result in self.steps:
            if result.step == step:
                return result
        return None

    def status(self, step: Step) -> Optional[StepStatus]:
        result = self.result(step)
        return result.status if result else None

    @property
    def failed_step(self) -> Optional[StepResult]:
        for result in self.steps:
            if result.status == StepStatus.FAILED:
                return result
        return None

    @property
    def exit_status(self) -> int:
        """
        Process exit status for the run.

        Returns:
            int: 0 if every step succeeded or was skipped on purpose,
            3 if only the removal of some old artifacts failed,
            1 for any other failure
        """
        failed = self.failed_step
        if failed is None:
            return EXIT_SUCCESS
        if failed.step == Step.CLEANUP_OLD and isinstance(failed.cause, CleanupIncomplete):
            return EXIT_CLEANUP_INCOMPLETE
        return EXIT_STEP_FAILED


class Confirmation:
    """Source of yes/no answers for interactive runs."""

    def ask(self, prompt: str) -> bool:
        raise NotImplementedError


class AssumeYes(Confirmation):
    def ask(self, prompt: str) -> bool:
        return True


@dataclass
class UpdateState:
    """State owned by a single run."""
    config: Configuration
    report: ExecutionReport
    target: Optional[InstalledKernel] = None
    catalog: Optional[Catalog] = None


class UpdateOrchestrator:
    """
    Build, install and clean up kernels.

    Example:
        orchestrator = UpdateOrchestrator(config, confirm=ConsoleConfirmation())
        report = orchestrator.run()
    """

    def __init__(self,
                 config: Configuration,
                 runner: Optional[CommandRunner] = None,
                 confirm: Optional[Confirmation] = None,
                 scan: Callable[[Iterable[Path]], Catalog] = catalogs.scan,
                 running_kernel: Optional[str] = None,
                 progress: Optional[Callable[[Step], None]] = None):
        """
        Initialize the orchestrator.

        Args:
            config: Resolved configuration for this run
            runner: Command runner (a new one is created if omitted)
            confirm: Answers the per-kernel removal question in interactive mode
            scan: Discovery function producing a catalog snapshot
            running_kernel: Release of the running kernel; detected when omitted
            progress: Called with each step as it starts
        """
        if config.interactive and confirm is None:
            raise ValueError("Interactive mode needs a confirmation source")

        self.config = config
        self.mode = RunMode.PRETEND if config.pretend else RunMode.EXECUTE
        self.runner = runner or CommandRunner(self.mode)
        self.confirm = confirm
        self.scan = scan
        self.running_kernel = running_kernel
        self.progress = progress

    def run(self) -> ExecutionReport:
        """
        Execute every step in order.

        Returns:
            ExecutionReport: Outcome of every step plus the final inventory
        """
        state = UpdateState(
            config=self.config,
            report=ExecutionReport(pretend=self.config.pretend),
        )
        handlers = [
            (Step.SELECT_TARGET, self._select_target),
            (Step.COPY_CONFIG, self._copy_config),
            (Step.BUILD, self._build),
            (Step.INSTALL, self._install),
            (Step.FINALIZE_BOOT, self._finalize_boot),
            (Step.CLEANUP_OLD, self._cleanup_old),
        ]

        halted = False
        for step, handler in handlers:
            if halted:
                state.report.steps.append(
                    StepResult(step, StepStatus.SKIPPED, "not run after an earlier failure"))
                continue

            if self.progress is not None:
                self.progress(step)

            try:
                result = handler(state)
            except JanitorError as e:
                result = StepResult(step, StepStatus.FAILED, str(e), e)

            state.report.steps.append(result)
            if result.status == StepStatus.FAILED:
                halted = True

        state.report.inventory = state.catalog
        state.report.invocations = list(self.runner.invocations)
        return state.report

    def _select_target(self, state: UpdateState) -> StepResult:
        catalog = self.scan(self.config.search_roots)
        state.catalog = catalog

        newest_installed = (InventoryQuery()
                            .with_kinds(InstalledItemKind.IMAGE)
                            .old(False)
                            .latest(1)
                            .evaluate(catalog))

        if self.config.clean_only:
            if not newest_installed:
                raise NoBuildTarget(f"No installed kernel found in {self.config.boot_root}")
            state.target = newest_installed[0]
        else:
            candidates = (InventoryQuery()
                          .with_kinds(InstalledItemKind.SOURCE_DIR)
                          .without_kinds(InstalledItemKind.IMAGE)
                          .old(False)
                          .latest(1)
                          .evaluate(catalog))
            if not candidates:
                raise NoBuildTarget(
                    f"No kernel sources waiting to be built in {self.config.source_root}")
            target = candidates[0]
            if newest_installed and newest_installed[0].version > target.version:
                raise NoBuildTarget(
                    f"Newest unbuilt sources ({target.version}) are older than the "
                    f"installed kernel {newest_installed[0].version}")
            state.target = target

        state.report.target = state.target.version
        return StepResult(Step.SELECT_TARGET, StepStatus.SUCCESS,
                          f"Selected {state.target.version}")

    def _find_config_source(self, state: UpdateState) -> Optional[Path]:
        if self.config.config_source is not None:
            return self.config.config_source
        installed = (InventoryQuery()
                     .with_kinds(InstalledItemKind.CONFIG)
                     .old(False)
                     .excluding([state.target.version])
                     .latest(1)
                     .evaluate(state.catalog))
        if installed:
            return installed[0].path(InstalledItemKind.CONFIG)
        return None

    def _copy_config(self, state: UpdateState) -> StepResult:
        if self.config.clean_only:
            return StepResult(Step.COPY_CONFIG, StepStatus.SKIPPED, "clean-only run")
        if self.config.manual_edit:
            return StepResult(Step.COPY_CONFIG, StepStatus.SKIPPED,
                              "kernel config was edited manually")

        source_dir = state.target.path(InstalledItemKind.SOURCE_DIR)
        destination = source_dir / ".config"
        config_source = self._find_config_source(state)
        if config_source is None:
            raise JanitorError(
                f"No kernel config found to copy into {source_dir}; "
                "set config_source or use --manual-edit")

        if self.config.pretend:
            return StepResult(Step.COPY_CONFIG, StepStatus.SUCCESS,
                              f"Would copy {config_source} to {destination}")

        try:
            shutil.copyfile(config_source, destination)
        except OSError as e:
            raise JanitorError(
                f"Could not copy {config_source} to {destination}: {e.strerror or e}")
        return StepResult(Step.COPY_CONFIG, StepStatus.SUCCESS,
                          f"Copied {config_source} to {destination}")

    def _run_commands(self, state: UpdateState, step: Step, commands: List[List[str]],
                      cwd: Optional[Path]) -> StepResult:
        if self.config.clean_only:
            return StepResult(step, StepStatus.SKIPPED, "clean-only run")
        for command in commands:
            self.runner.run_command(command, cwd=cwd, mode=self.mode)
        ran = "; ".join(" ".join(command) for command in commands)
        verb = "Would run" if self.config.pretend else "Ran"
        return StepResult(step, StepStatus.SUCCESS, f"{verb} {ran}")

    def _build(self, state: UpdateState) -> StepResult:
        return self._run_commands(state, Step.BUILD, self.config.build_commands,
                                  state.target.path(InstalledItemKind.SOURCE_DIR))

    def _install(self, state: UpdateState) -> StepResult:
        return self._run_commands(state, Step.INSTALL, self.config.install_commands,
                                  state.target.path(InstalledItemKind.SOURCE_DIR))

    def _finalize_boot(self, state: UpdateState) -> StepResult:
        return self._run_commands(state, Step.FINALIZE_BOOT,
                                  [self.config.finalize_command], None)

    def _protected_versions(self) -> Set[KernelVersion]:
        protected = set(self.config.keep)
        if self.config.protect_running:
            release = self.running_kernel
            if release is None:
                try:
                    release = get_running_kernel()
                except JanitorError:
                    release = None
            running = parse_release(release)
            if running is not None:
                protected.add(running)
        return protected

    def select_old_kernels(self, catalog: Catalog, target: KernelVersion) -> List[InstalledKernel]:
        """
        Choose the kernels a cleanup would remove.

        Selects every record strictly older than `target`, minus protected
        versions and the newest `versions_to_keep - 1` older versions.
        """
        protected = self._protected_versions()
        query = InventoryQuery().older_than(target).excluding(protected)

        if self.config.versions_to_keep > 1:
            retained = (query.copy()
                        .old(False)
                        .latest(self.config.versions_to_keep - 1)
                        .evaluate(catalog))
            query.excluding(kernel.version for kernel in retained)

        return query.evaluate(catalog)

    def _cleanup_old(self, state: UpdateState) -> StepResult:
        report = state.report
        target = state.target.version

        # Building and installing changed the filesystem
        catalog = self.scan(self.config.search_roots)
        state.catalog = catalog
        if catalog.find(target) is None:
            raise TargetNotFound(target)

        selected = self.select_old_kernels(catalog, target)
        selected_versions = {kernel.version for kernel in selected}
        report.protected = sorted({
            kernel.version for kernel in InventoryQuery().older_than(target).evaluate(catalog)
            if kernel.version not in selected_versions
        })

        removed_any = False
        for kernel in selected:
            targets = removal_targets(kernel)
            for kind, path in targets:
                report.planned_deletions.append(
                    PlannedDeletion(kernel.version, kind, path, kernel.is_old))

            if self.config.pretend:
                continue

            if self.config.interactive:
                label = f"{kernel.version} (old)" if kernel.is_old else str(kernel.version)
                paths = ", ".join(str(path) for _, path in targets)
                if not self.confirm.ask(f"Remove kernel {label} ({paths})?"):
                    report.declined.append(kernel.version)
                    continue

            for _, path in targets:
                try:
                    remove_path(path)
                    report.removed.append(path)
                    removed_any = True
                except DeletionError as e:
                    report.deletion_errors.append(e)

        if removed_any:
            state.catalog = self.scan(self.config.search_roots)

        if report.deletion_errors:
            error = CleanupIncomplete(report.deletion_errors)
            return StepResult(Step.CLEANUP_OLD, StepStatus.FAILED, str(error), error)

        if self.config.pretend:
            detail = f"Would remove {len(selected)} kernel(s)"
        else:
            detail = f"Removed {len(selected) - len(report.declined)} kernel(s)"
        return StepResult(Step.CLEANUP_OLD, StepStatus.SUCCESS, detail)
