"""Homebrew installer adapter.

ensure_installed() makes sure a package is present, querying first so that an
installed package is never reinstalled.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Set, Tuple

from mactl.errors import InstallError, InstallFailureReason
from mactl.runner import ProcessRunner, request

logger = logging.getLogger(__name__)

BREW = "brew"

# Output fragments brew prints when it exits nonzero but the package still ends
# up installed. A match is only trusted after a follow-up query confirms it.
BENIGN_INSTALL_PATTERNS: Tuple[str, ...] = (
    "The `brew link` step did not complete successfully",
    "The post-install step did not complete successfully",
    "is already installed",
)


class PackageKind(Enum):
    FORMULA = "formula"
    CASK = "cask"


class InstallOutcome(Enum):
    ALREADY_INSTALLED = "already-installed"
    INSTALLED = "installed"
    INSTALLED_WITH_WARNINGS = "installed-with-warnings"


@dataclass(frozen=True)
class InstallTarget:
    """A Homebrew package and whether it is a formula or a cask."""

    name: str
    kind: PackageKind = PackageKind.FORMULA

    @property
    def kind_flag(self) -> str:
        return f"--{self.kind.value}"


@dataclass(frozen=True)
class InstallResult:
    target: InstallTarget
    outcome: InstallOutcome
    warnings: Tuple[str, ...] = ()


@dataclass
class InstallCache:
    """Packages already known to be installed during this invocation."""

    installed: Set[InstallTarget] = field(default_factory=set)

    def __contains__(self, target: InstallTarget) -> bool:
        return target in self.installed

    def add(self, target: InstallTarget) -> None:
        self.installed.add(target)


class BrewInstaller:
    """Installs packages with Homebrew through a ProcessRunner."""

    def __init__(self, runner: ProcessRunner):
        self.runner = runner

    def is_installed(self, target: InstallTarget) -> bool:
        """Ask brew whether the target is installed."""
        result = self.runner.run(
            request(BREW, "list", target.kind_flag, target.name, read_only=True)
        )
        return result.ok

    def ensure_installed(
        self, target: InstallTarget, cache: Optional[InstallCache] = None
    ) -> InstallResult:
        """Install the target unless it is already present.

        Args:
            target: Package to install.
            cache: Packages already confirmed during this invocation; updated on success.

        Returns:
            InstallResult: What happened to the package.

        Raises:
            InstallError: Homebrew is missing, or the install genuinely failed.
        """
        if cache is not None and target in cache:
            logger.debug("%s already confirmed installed", target.name)
            return InstallResult(target, InstallOutcome.ALREADY_INSTALLED)

        if self.runner.which(BREW) is None:
            raise InstallError(target.name, InstallFailureReason.DEPENDENCY_MISSING)

        if self.is_installed(target):
            logger.info("%s is already installed", target.name)
            result = InstallResult(target, InstallOutcome.ALREADY_INSTALLED)
        else:
            result = self._install(target)

        if cache is not None:
            cache.add(target)
        return result

    def _install(self, target: InstallTarget) -> InstallResult:
        args = ["install"]
        if target.kind is PackageKind.CASK:
            args.append(target.kind_flag)
        args.append(target.name)

        logger.info("installing %s", target.name)
        result = self.runner.run(request(BREW, *args))
        if result.ok:
            logger.info("installed %s", target.name)
            return InstallResult(target, InstallOutcome.INSTALLED)

        warnings = _benign_lines(result.output)
        if warnings and self.is_installed(target):
            logger.warning("%s installed with warnings (brew exit %d)", target.name, result.exit_code)
            return InstallResult(target, InstallOutcome.INSTALLED_WITH_WARNINGS, warnings)

        raise InstallError(
            target.name,
            InstallFailureReason.INSTALL_FAILED,
            result.stderr.strip() or result.stdout.strip(),
        )


def _benign_lines(output: str) -> Tuple[str, ...]:
    lines: List[str] = []
    for line in output.splitlines():
        if any(pattern in line for pattern in BENIGN_INSTALL_PATTERNS):
            lines.append(line.strip())
    return tuple(lines)
