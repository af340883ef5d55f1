"""
Configuration.

Holds the resolved settings for one run and loads them from an INI file.

Example kernel-janitor.conf:

    [paths]
    source_root = /usr/src
    module_root = /lib/modules
    boot_root = /boot

    [build]
    commands =
        make olddefconfig
        make -j8

    [boot]
    mode = generate-config
    generate_config_command = grub-mkconfig -o /boot/grub/grub.cfg

    [cleanup]
    versions_to_keep = 2
    keep = 5.10.52-gentoo
"""

import configparser
import os
import shlex
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence

from . import version as versions
from .errors import ConfigError, InvalidVersion
from .version import KernelVersion

CONFIG_FILE_NAME = "kernel-janitor.conf"

SEARCH_PATHS = (
    Path(".") / CONFIG_FILE_NAME,
    Path("/etc") / CONFIG_FILE_NAME,
)


class BootMode(Enum):
    """What runs once the new kernel is installed."""
    GENERATE_CONFIG = "generate-config"
    PACKAGE_COMMAND = "package-command"


def _default_build_commands() -> List[List[str]]:
    return [["make", "olddefconfig"], ["make", f"-j{os.cpu_count() or 1}"]]


def _default_install_commands() -> List[List[str]]:
    return [["make", "modules_install"], ["make", "install"]]


@dataclass
class Configuration:
    """
    Settings for one kernel-janitor run.

    Attributes:
        source_root: Directory holding linux-* source trees
        module_root: Directory holding per-version module directories
        boot_root: Directory holding vmlinuz, config, System.map and initramfs files
        build_commands: Commands run in the target source tree to build it
        install_commands: Commands run in the target source tree to install it
        boot_mode: Whether to regenerate the bootloader config or run a package command
        boot_config_command: Bootloader config generator
        package_command: Package manager command (e.g. rebuilding external modules)
        config_source: Kernel config copied into the new tree; None uses the
            newest installed kernel's config
        versions_to_keep: Number of newest versions to keep, counting the target
        keep: Versions that are never removed
        protect_running: Never remove the running kernel
        manual_edit: The kernel config was already prepared by hand
        interactive: Ask before removing each kernel
        pretend: Plan everything but change nothing
        clean_only: Skip building and only remove old kernels
    """
    source_root: Path = Path("/usr/src")
    module_root: Path = Path("/lib/modules")
    boot_root: Path = Path("/boot")
    build_commands: List[List[str]] = field(default_factory=_default_build_commands)
    install_commands: List[List[str]] = field(default_factory=_default_install_commands)
    boot_mode: BootMode = BootMode.GENERATE_CONFIG
    boot_config_command: List[str] = field(
        default_factory=lambda: ["grub-mkconfig", "-o", "/boot/grub/grub.cfg"])
    package_command: List[str] = field(
        default_factory=lambda: ["emerge", "@module-rebuild"])
    config_source: Optional[Path] = None
    versions_to_keep: int = 1
    keep: List[KernelVersion] = field(default_factory=list)
    protect_running: bool = True
    manual_edit: bool = False
    interactive: bool = False
    pretend: bool = False
    clean_only: bool = False

    @property
    def search_roots(self) -> List[Path]:
        return [self.source_root, self.module_root, self.boot_root]

    @property
    def finalize_command(self) -> List[str]:
        """The single command run by the boot finalization step."""
        if self.boot_mode == BootMode.PACKAGE_COMMAND:
            return self.package_command
        return self.boot_config_command


def parse_command(text: str) -> List[str]:
    """Split one command line into arguments."""
    try:
        return shlex.split(text)
    except ValueError as e:
        raise ConfigError(f"Could not parse command {text!r}: {e}")


def parse_command_list(text: str) -> List[List[str]]:
    """Split a multi-line value into one command per non-empty line."""
    return [parse_command(line) for line in text.splitlines() if line.strip()]


def parse_versions(text: str) -> List[KernelVersion]:
    """Parse a whitespace or comma separated list of versions."""
    result = []
    for item in text.replace(",", " ").split():
        try:
            result.append(versions.parse(item))
        except InvalidVersion as e:
            raise ConfigError(str(e))
    return result


def _get_bool(parser: configparser.ConfigParser, section: str, option: str, default: bool) -> bool:
    try:
        return parser.getboolean(section, option, fallback=default)
    except ValueError:
        raise ConfigError(f"[{section}] {option} must be a boolean, got {parser.get(section, option)!r}")


def _get_int(parser: configparser.ConfigParser, section: str, option: str, default: int) -> int:
    try:
        return parser.getint(section, option, fallback=default)
    except ValueError:
        raise ConfigError(f"[{section}] {option} must be an integer, got {parser.get(section, option)!r}")


def load_config(path: Path, base: Optional[Configuration] = None) -> Configuration:
    """
    Load a configuration file.

    Values missing from the file keep their value from `base` (or the
    defaults).

    Args:
        path: INI file to read
        base: Configuration to start from

    Returns:
        Configuration: Resolved configuration

    Raises:
        ConfigError: If the file cannot be read or holds an invalid value
    """
    config = base or Configuration()
    parser = configparser.ConfigParser(interpolation=None)
    try:
        with open(path, encoding="utf-8") as f:
            parser.read_file(f)
    except OSError as e:
        raise ConfigError(f"Could not read {path}: {e.strerror or e}")
    except configparser.Error as e:
        raise ConfigError(f"Could not parse {path}: {e}")

    if parser.has_section("paths"):
        for option in ("source_root", "module_root", "boot_root"):
            if parser.has_option("paths", option):
                setattr(config, option, Path(parser.get("paths", option)))

    if parser.has_option("build", "commands"):
        config.build_commands = parse_command_list(parser.get("build", "commands"))
    if parser.has_option("build", "config_source"):
        config.config_source = Path(parser.get("build", "config_source"))
    config.manual_edit = _get_bool(parser, "build", "manual_edit", config.manual_edit)

    if parser.has_option("install", "commands"):
        config.install_commands = parse_command_list(parser.get("install", "commands"))

    if parser.has_option("boot", "mode"):
        mode = parser.get("boot", "mode").strip()
        try:
            config.boot_mode = BootMode(mode)
        except ValueError:
            choices = ", ".join(m.value for m in BootMode)
            raise ConfigError(f"[boot] mode must be one of {choices}, got {mode!r}")
    if parser.has_option("boot", "generate_config_command"):
        config.boot_config_command = parse_command(parser.get("boot", "generate_config_command"))
    if parser.has_option("boot", "package_command"):
        config.package_command = parse_command(parser.get("boot", "package_command"))

    config.versions_to_keep = _get_int(parser, "cleanup", "versions_to_keep", config.versions_to_keep)
    if parser.has_option("cleanup", "keep"):
        config.keep = parse_versions(parser.get("cleanup", "keep"))
    config.protect_running = _get_bool(parser, "cleanup", "protect_running", config.protect_running)
    config.interactive = _get_bool(parser, "cleanup", "interactive", config.interactive)

    validate_config(config)
    return config


def validate_config(config: Configuration) -> None:
    """
    Check settings that cannot work.

    Raises:
        ConfigError: On the first invalid setting
    """
    if config.versions_to_keep < 1:
        raise ConfigError("versions_to_keep must be at least 1 (the new kernel is always kept)")
    if not config.build_commands:
        raise ConfigError("No build commands configured")
    if not config.install_commands:
        raise ConfigError("No install commands configured")
    if not config.finalize_command:
        raise ConfigError(f"No command configured for boot mode {config.boot_mode.value}")
    for command in list(config.build_commands) + list(config.install_commands):
        if not command:
            raise ConfigError("Empty command in configuration")


def find_config(search_paths: Sequence[Path] = SEARCH_PATHS) -> Optional[Path]:
    """Return the first configuration file that exists, if any."""
    for path in search_paths:
        if path.is_file():
            return path
    return None
