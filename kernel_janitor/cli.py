"""
Command-line interface for kernel-janitor.

Provides argument parsing and runs either the inventory listing or the
build/install/cleanup workflow.
"""

import sys
import argparse
from pathlib import Path
from typing import Optional

from . import __version__
from .catalog import scan
from .config import Configuration, find_config, load_config, parse_versions, validate_config
from .errors import JanitorError
from .remover import check_sudo
from .reporter import ConsoleConfirmation, OutputLevel, Reporter
from .runner import CommandRunner, RunMode
from .update import EXIT_STEP_FAILED, AssumeYes, UpdateOrchestrator

EXIT_NO_PRIVILEGES = 4


def create_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser.

    Returns:
        argparse.ArgumentParser: Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="kernel-janitor",
        description="Build the newest kernel sources, install them and remove older kernels",
        epilog="Example: kernel-janitor --pretend  # See what would be built and removed",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "-m", "--manual-edit",
        action="store_true",
        help="The kernel config was prepared by hand; do not copy the installed one",
    )

    parser.add_argument(
        "-c", "--clean-only",
        action="store_true",
        help="Only remove kernels older than the newest installed one",
    )

    parser.add_argument(
        "-l", "--list",
        action="store_true",
        help="List installed kernels and exit",
    )

    parser.add_argument(
        "-p", "--pretend",
        action="store_true",
        help="Show what would be done without running or removing anything",
    )

    parser.add_argument(
        "-a", "--ask",
        action="store_true",
        help="Ask before removing each old kernel",
    )

    parser.add_argument(
        "--yes",
        action="store_true",
        help="Assume yes to all prompts (use with --ask in scripts)",
    )

    parser.add_argument(
        "-k", "--keep",
        action="append",
        default=[],
        metavar="VERSION",
        help="Never remove this kernel version (may be repeated)",
    )

    parser.add_argument(
        "--config",
        type=Path,
        metavar="PATH",
        help="Configuration file (default: ./kernel-janitor.conf, then /etc/kernel-janitor.conf)",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress non-essential output",
    )

    return parser


def _setup_reporter(args) -> Reporter:
    if args.quiet:
        output_level = OutputLevel.QUIET
    elif args.verbose:
        output_level = OutputLevel.VERBOSE
    else:
        output_level = OutputLevel.NORMAL

    return Reporter(output_level)


def _load_configuration(args, reporter: Reporter) -> Configuration:
    """
    Resolve the configuration from the config file and the flags.

    Flags take precedence over values from the file.
    """
    path = args.config or find_config()
    if path is not None:
        reporter.verbose(f"Using configuration {path}")
        config = load_config(path)
    else:
        reporter.verbose("No configuration file found, using defaults")
        config = Configuration()

    config.manual_edit = config.manual_edit or args.manual_edit
    config.clean_only = args.clean_only
    config.pretend = args.pretend
    config.interactive = (config.interactive or args.ask) and not args.yes
    if args.keep:
        config.keep = list(config.keep) + parse_versions(" ".join(args.keep))

    validate_config(config)
    return config


def _list_kernels(config: Configuration, reporter: Reporter) -> int:
    reporter.verbose("Scanning " + ", ".join(str(root) for root in config.search_roots))
    catalog = scan(config.search_roots)
    reporter.print_inventory(catalog)
    return 0


def _run_update(config: Configuration, reporter: Reporter, verbose: bool) -> int:
    # Actual changes need root; pretending does not
    if not config.pretend and not check_sudo():
        reporter.error("Root privileges required to build, install and remove kernels.")
        print("Please run with sudo, or use --pretend to see what would be done.", file=sys.stderr)
        return EXIT_NO_PRIVILEGES

    runner = CommandRunner(RunMode.PRETEND if config.pretend else RunMode.EXECUTE)
    confirm = ConsoleConfirmation() if config.interactive else AssumeYes()
    orchestrator = UpdateOrchestrator(
        config,
        runner=runner,
        confirm=confirm,
        progress=reporter.step_started,
    )

    report = orchestrator.run()

    if verbose and report.inventory is not None:
        reporter.print_inventory(report.inventory)
    reporter.print_report(report)

    failed = report.failed_step
    if failed is not None and failed.cause is not None:
        reporter.error(f"{failed.step.value}: {failed.cause}")

    return report.exit_status


def main(argv: Optional[list] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        int: Exit code:
            0 = success
            1 = a build, install or boot step failed, or bad configuration
            3 = update succeeded but some old kernel files could not be removed
            4 = insufficient privileges (not root)
    """
    parser = create_parser()

    if argv is None:
        argv = sys.argv[1:]

    args = parser.parse_args(argv)

    if args.quiet and args.verbose:
        parser.error("--quiet and --verbose cannot be used together")
        return 1

    if args.list and (args.clean_only or args.manual_edit):
        parser.error("--list cannot be combined with --clean-only or --manual-edit")
        return 1

    reporter = _setup_reporter(args)

    try:
        reporter.verbose(f"kernel-janitor v{__version__}")
        config = _load_configuration(args, reporter)

        if args.list:
            return _list_kernels(config, reporter)

        return _run_update(config, reporter, args.verbose)

    except JanitorError as e:
        reporter.error(str(e))
        if args.verbose:
            import traceback
            traceback.print_exc()
        return EXIT_STEP_FAILED


if __name__ == "__main__":
    sys.exit(main())
