"""
External command execution.

Runs build, install and bootloader commands with their output streamed
live, or only records them when pretending.
"""

import subprocess
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from .errors import CommandFailed

Sink = Callable[[str], None]


class RunMode(Enum):
    """How commands are handled."""
    EXECUTE = "execute"
    PRETEND = "pretend"


@dataclass
class Invocation:
    """A command that was run, or would have been run."""
    program: str
    args: List[str] = field(default_factory=list)
    cwd: Optional[Path] = None

    @property
    def argv(self) -> List[str]:
        return [self.program] + list(self.args)

    def __str__(self):
        command = " ".join(self.argv)
        if self.cwd is not None:
            return f"(cd {self.cwd} && {command})"
        return command


@dataclass
class CommandOutcome:
    """Result of a command that exited successfully (or was pretended)."""
    invocation: Invocation
    exit_status: int = 0
    pretended: bool = False


def _write_stdout(line: str) -> None:
    sys.stdout.write(line)
    sys.stdout.flush()


class CommandRunner:
    """
    Run external commands one at a time.

    Every invocation is recorded in `invocations`, whether it was executed
    or only pretended.
    """

    def __init__(self, mode: RunMode = RunMode.EXECUTE, sink: Optional[Sink] = None):
        """
        Initialize the runner.

        Args:
            mode: Default mode for `run`
            sink: Receives the command output line by line (defaults to stdout)
        """
        self.mode = mode
        self.sink = sink or _write_stdout
        self.invocations: List[Invocation] = []

    def run(self, program: str, args: Sequence[str] = (), cwd: Optional[Path] = None,
            mode: Optional[RunMode] = None) -> CommandOutcome:
        """
        Run a command and block until it exits.

        Standard output and standard error are merged and passed to the sink
        as they are produced. Bytes that are not valid UTF-8 are replaced.

        Args:
            program: Program name or path
            args: Program arguments
            cwd: Working directory for the command
            mode: Overrides the runner's default mode for this call

        Returns:
            CommandOutcome: Outcome of a successful run

        Raises:
            CommandFailed: If the command cannot be started or exits non-zero
        """
        invocation = Invocation(program, list(args), Path(cwd) if cwd is not None else None)
        self.invocations.append(invocation)

        if (mode or self.mode) == RunMode.PRETEND:
            return CommandOutcome(invocation, exit_status=0, pretended=True)

        try:
            process = subprocess.Popen(
                invocation.argv,
                cwd=invocation.cwd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except FileNotFoundError:
            raise CommandFailed(program, 127, "command not found")
        except PermissionError:
            raise CommandFailed(program, 126, "permission denied")
        except OSError as e:
            raise CommandFailed(program, 1, str(e))

        with process:
            for line in process.stdout:
                self.sink(line)
            exit_status = process.wait()

        # A negative status means the command was killed by a signal
        if exit_status != 0:
            raise CommandFailed(program, exit_status)

        return CommandOutcome(invocation, exit_status=exit_status)

    def run_command(self, command: Sequence[str], cwd: Optional[Path] = None,
                    mode: Optional[RunMode] = None) -> CommandOutcome:
        """Run a command given as a single argv list."""
        if not command:
            raise ValueError("Empty command")
        return self.run(command[0], command[1:], cwd=cwd, mode=mode)
