"""Per-invocation application context.

The root command builds one AppContext and stores it on click's ctx.obj. Tests
pass their own through CliRunner.invoke(obj=...), which is how a fake runner
reaches the commands.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from mactl.installer import BrewInstaller, InstallCache
from mactl.runner import DryRunProcessRunner, ProcessRunner, RealProcessRunner


@dataclass
class AppContext:
    runner: ProcessRunner
    home: Path
    cwd: Path
    install_cache: InstallCache = field(default_factory=InstallCache)
    verbosity: int = 0
    dry_run: bool = False

    @property
    def installer(self) -> BrewInstaller:
        return BrewInstaller(self.runner)


def create_context(
    verbosity: int = 0, dry_run: bool = False, timeout: Optional[float] = None
) -> AppContext:
    """Build the context for a real invocation."""
    runner: ProcessRunner = RealProcessRunner(default_timeout=timeout)
    if dry_run:
        runner = DryRunProcessRunner(runner)
    return AppContext(
        runner=runner,
        home=Path.home(),
        cwd=Path.cwd(),
        verbosity=verbosity,
        dry_run=dry_run,
    )
