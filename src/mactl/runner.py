"""Process runner: the only place mactl spawns external processes.

Feature code builds an ExecutionRequest and hands it to a ProcessRunner. A
completed child always produces an ExecutionResult, whatever its exit code;
interpreting the code is left to the caller, since tools like brew use nonzero
exits for states that are not really failures.
"""

import logging
import os
import shlex
import shutil
import signal
import subprocess
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple

import click

from mactl.errors import CommandTimeoutError, SpawnError

logger = logging.getLogger(__name__)

# Grace period between SIGTERM and SIGKILL when tearing down a child group.
TERMINATE_GRACE_SECONDS = 3.0


@dataclass(frozen=True)
class ExecutionRequest:
    """A single external tool invocation.

    Attributes:
        executable: Name of the program, resolved on PATH.
        args: Arguments passed verbatim, never through a shell.
        cwd: Working directory for the child, if not the current one.
        env: Variables merged over the inherited environment.
        timeout: Seconds before the child is killed; None uses the runner default.
        read_only: True for queries that never change machine state.
    """

    executable: str
    args: Tuple[str, ...] = ()
    cwd: Optional[Path] = None
    env: Optional[Dict[str, str]] = None
    timeout: Optional[float] = None
    read_only: bool = False

    @property
    def argv(self) -> Tuple[str, ...]:
        return (self.executable, *self.args)

    def display(self) -> str:
        """Render the command line for logs and messages."""
        return shlex.join(self.argv)


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of a completed child process."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration: Optional[float] = field(default=None, compare=False)

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def output(self) -> str:
        """Combined stdout and stderr, stripped."""
        return "\n".join(part.strip() for part in (self.stdout, self.stderr) if part.strip())


def request(executable: str, *args: str, **kwargs) -> ExecutionRequest:
    """Shorthand for building an ExecutionRequest from positional arguments."""
    return ExecutionRequest(executable, tuple(str(arg) for arg in args), **kwargs)


class ProcessRunner(ABC):
    """Runs ExecutionRequests and reports their results."""

    @abstractmethod
    def run(self, request: ExecutionRequest) -> ExecutionResult:
        """Run a request to completion.

        Raises:
            SpawnError: The executable could not be located or started.
            CommandTimeoutError: The timeout elapsed before the child exited.
        """

    @abstractmethod
    def which(self, executable: str) -> Optional[str]:
        """Return the resolved path of an executable, or None if it is absent."""


class RealProcessRunner(ProcessRunner):
    """ProcessRunner backed by subprocess.

    Each child starts in its own session so the whole process group can be
    terminated if the parent is interrupted or the timeout elapses.
    """

    def __init__(self, default_timeout: Optional[float] = None):
        self.default_timeout = default_timeout

    def which(self, executable: str) -> Optional[str]:
        return shutil.which(executable)

    def run(self, request: ExecutionRequest) -> ExecutionResult:
        path = self.which(request.executable)
        if path is None:
            raise SpawnError(request.executable)

        env = None
        if request.env:
            env = {**os.environ, **request.env}
        timeout = request.timeout if request.timeout is not None else self.default_timeout

        logger.debug("Running: %s", request.display())
        started = time.monotonic()
        try:
            process = subprocess.Popen(
                [path, *request.args],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=request.cwd,
                env=env,
                text=True,
                start_new_session=True,
            )
        except OSError as e:
            raise SpawnError(request.executable, e.strerror or str(e)) from e

        try:
            stdout, stderr = process.communicate(timeout=timeout)
        except subprocess.TimeoutExpired as e:
            _terminate_group(process)
            raise CommandTimeoutError(request.display(), timeout) from e
        except KeyboardInterrupt:
            _terminate_group(process)
            raise

        duration = time.monotonic() - started
        logger.debug(
            "Exited %d after %.2fs: %s", process.returncode, duration, request.display()
        )
        return ExecutionResult(
            exit_code=process.returncode,
            stdout=stdout,
            stderr=stderr,
            duration=duration,
        )


def _terminate_group(process: subprocess.Popen) -> None:
    """Terminate a child's process group, escalating to SIGKILL."""
    for sig in (signal.SIGTERM, signal.SIGKILL):
        try:
            os.killpg(process.pid, sig)
        except ProcessLookupError:
            break
        try:
            process.communicate(timeout=TERMINATE_GRACE_SECONDS)
            break
        except subprocess.TimeoutExpired:
            continue


class DryRunProcessRunner(ProcessRunner):
    """Wraps another runner, running queries but only announcing changes."""

    def __init__(self, wrapped: ProcessRunner):
        self.wrapped = wrapped

    def which(self, executable: str) -> Optional[str]:
        return self.wrapped.which(executable)

    def run(self, request: ExecutionRequest) -> ExecutionResult:
        if request.read_only:
            return self.wrapped.run(request)
        click.echo(click.style("[dry-run] ", fg="yellow") + f"would run: {request.display()}")
        return ExecutionResult(exit_code=0, duration=0.0)
