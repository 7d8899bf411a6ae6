"""Error taxonomy for mactl.

Every error a command can surface derives from MactlError, which is a
click.ClickException: the dispatcher renders it as a single "Error: ..." line on
stderr and exits with the class's exit code. Usage errors derive from
click.UsageError so click prints the usage hint alongside them.
"""

from enum import Enum, IntEnum
from typing import Optional

import click


class ExitCode(IntEnum):
    """Process exit codes, one per error category."""

    SUCCESS = 0
    FAILURE = 1
    USAGE = 2
    DEPENDENCY_MISSING = 3
    PRECONDITION = 4
    TOOL_FAILED = 5


class MactlError(click.ClickException):
    """Base class for every failure rendered by the dispatcher."""

    exit_code = ExitCode.FAILURE


# Process runner


class SpawnError(MactlError):
    """The executable could not be located or started."""

    def __init__(self, executable: str, reason: str = "not found on PATH"):
        self.executable = executable
        super().__init__(f"Could not start '{executable}': {reason}")


class CommandTimeoutError(MactlError):
    """A child process outlived its timeout and was killed."""

    def __init__(self, command: str, timeout: float):
        self.command = command
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout:g}s: {command}")


class DependencyMissingError(MactlError):
    """A required external tool is not installed."""

    exit_code = ExitCode.DEPENDENCY_MISSING

    def __init__(self, tool: str, hint: Optional[str] = None):
        self.tool = tool
        message = f"Required tool '{tool}' is not installed"
        if hint:
            message += f". {hint}"
        super().__init__(message)


# Installer


class InstallFailureReason(Enum):
    DEPENDENCY_MISSING = "dependency-missing"
    INSTALL_FAILED = "install-failed"


class InstallError(MactlError):
    """Homebrew could not install a package."""

    def __init__(self, package: str, reason: InstallFailureReason, detail: str = ""):
        self.package = package
        self.reason = reason
        self.detail = detail
        if reason is InstallFailureReason.DEPENDENCY_MISSING:
            self.exit_code = ExitCode.DEPENDENCY_MISSING
            message = f"Cannot install {package}: Homebrew is not installed (see https://brew.sh)"
        else:
            self.exit_code = ExitCode.TOOL_FAILED
            message = f"Failed to install {package}"
            if detail:
                message += f": {detail}"
        super().__init__(message)


class SetupError(MactlError):
    """A tool setup step failed."""

    exit_code = ExitCode.TOOL_FAILED


# Dispatcher


class UnknownCommandError(click.UsageError):
    """No command matches the given name."""

    exit_code = ExitCode.USAGE


class InvalidFlagError(click.UsageError):
    """Flags or arguments could not be parsed for the resolved command."""

    exit_code = ExitCode.USAGE


# User input


class UnsupportedKeyError(MactlError):
    """A Dock preference name outside the allow-list."""

    exit_code = ExitCode.USAGE

    def __init__(self, key: str, supported):
        self.key = key
        super().__init__(
            f"Unsupported Dock preference '{key}'. Supported: {', '.join(supported)}"
        )


class InvalidPreferenceValueError(MactlError):
    exit_code = ExitCode.USAGE


class InvalidEnvVarNameError(MactlError):
    exit_code = ExitCode.USAGE


class InvalidEnvVarValueError(MactlError):
    exit_code = ExitCode.USAGE


class InvalidConfigKeyError(MactlError):
    exit_code = ExitCode.USAGE


class UnsupportedKeyTypeError(MactlError):
    exit_code = ExitCode.USAGE


# Preconditions


class DuplicateKeyError(MactlError):
    """The environment variable is already defined in the profile file."""

    exit_code = ExitCode.PRECONDITION

    def __init__(self, name: str, path):
        self.name = name
        self.path = path
        super().__init__(f"{name} is already set in {path} (use --overwrite to replace it)")


class NotARepositoryError(MactlError):
    """Local git config was requested outside any repository."""

    exit_code = ExitCode.PRECONDITION

    def __init__(self, start):
        self.start = start
        super().__init__(f"Not inside a git repository: {start}")


# External tool failures


class PreferenceError(MactlError):
    exit_code = ExitCode.TOOL_FAILED


class GitError(MactlError):
    exit_code = ExitCode.TOOL_FAILED


class KeyGenerationError(MactlError):
    exit_code = ExitCode.TOOL_FAILED


class KeyVerificationError(MactlError):
    exit_code = ExitCode.TOOL_FAILED
