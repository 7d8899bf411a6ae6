"""Developer tool setup through Homebrew."""

import logging
from typing import Dict, List, Optional

import click

from mactl.errors import InstallError, InstallFailureReason, SetupError
from mactl.installer import (
    BrewInstaller,
    InstallCache,
    InstallOutcome,
    InstallResult,
    InstallTarget,
    PackageKind,
)

logger = logging.getLogger(__name__)

TOOLS: Dict[str, InstallTarget] = {
    "kustomize": InstallTarget("kustomize"),
    "kubectl": InstallTarget("kubernetes-cli"),
    "helm": InstallTarget("helm"),
}

TOOL_HELP = {
    "kustomize": "Install kustomize for Kubernetes manifest customization.",
    "kubectl": "Install kubectl, the Kubernetes command line client.",
    "helm": "Install helm, the Kubernetes package manager.",
}


def setup_tool(installer: BrewInstaller, name: str, cache: Optional[InstallCache] = None) -> InstallResult:
    """Install one of the known tools.

    Raises:
        SetupError: The tool is unknown or its install failed.
        InstallError: Homebrew itself is missing.
    """
    target = TOOLS.get(name)
    if target is None:
        raise SetupError(f"Unknown tool '{name}'. Known tools: {', '.join(TOOLS)}")

    logger.info("installing %s", name)
    try:
        result = installer.ensure_installed(target, cache)
    except InstallError as e:
        if e.reason is InstallFailureReason.DEPENDENCY_MISSING:
            raise
        raise SetupError(f"Failed to install {name}: {e.detail or e.message}") from e
    logger.info("installed %s", name)
    return result


def report(result: InstallResult, label: Optional[str] = None) -> None:
    name = label or result.target.name
    if result.outcome is InstallOutcome.ALREADY_INSTALLED:
        click.echo(f"{name} is already installed")
    elif result.outcome is InstallOutcome.INSTALLED_WITH_WARNINGS:
        click.echo(f"✅ Installed {name} with warnings:")
        for warning in result.warnings:
            click.echo(click.style(f"  {warning}", fg="yellow"))
    else:
        click.echo(f"✅ Installed {name}")


def make_tool_command(name: str) -> click.Command:
    """Build the `mactl setup <name>` command for a known tool."""

    @click.pass_obj
    def callback(app) -> None:
        report(setup_tool(app.installer, name, app.install_cache), label=name)

    return click.Command(name, callback=callback, help=TOOL_HELP.get(name), short_help=TOOL_HELP.get(name))


def tool_commands() -> List[click.Command]:
    return [make_tool_command(name) for name in TOOLS]


@click.command("package")
@click.argument("name")
@click.option("--cask", is_flag=True, help="Install a cask (GUI application) instead of a formula")
@click.pass_obj
def package(app, name: str, cask: bool) -> None:
    """Install any Homebrew package by NAME."""
    target = InstallTarget(name, PackageKind.CASK if cask else PackageKind.FORMULA)
    report(app.installer.ensure_installed(target, app.install_cache))
