"""Test cases for the tool setup commands."""

import pytest

from mactl.cli import cli
from mactl.commands.setup import TOOLS, setup_tool
from mactl.errors import ExitCode, InstallError, SetupError
from mactl.installer import BrewInstaller, InstallCache, InstallOutcome
from mactl.runner import ExecutionResult
from tests.fakes.runner import FakeProcessRunner

NOT_INSTALLED = ExecutionResult(exit_code=1)


def test_setup_kustomize_installs_fixed_target():
    """Test that setup delegates to the installer with the tool's formula."""
    runner = FakeProcessRunner(results={"brew list --formula kustomize": NOT_INSTALLED})
    result = setup_tool(BrewInstaller(runner), "kustomize")

    assert result.outcome is InstallOutcome.INSTALLED
    assert runner.commands == ["brew list --formula kustomize", "brew install kustomize"]


def test_setup_kubectl_uses_formula_name():
    """Test that kubectl maps to the kubernetes-cli formula."""
    runner = FakeProcessRunner()
    setup_tool(BrewInstaller(runner), "kubectl")
    assert runner.commands == ["brew list --formula kubernetes-cli"]


def test_setup_unknown_tool():
    """Test that unknown tools are refused."""
    with pytest.raises(SetupError):
        setup_tool(BrewInstaller(FakeProcessRunner()), "terraform")


def test_setup_wraps_install_failure():
    """Test that a failed install becomes a SetupError."""
    runner = FakeProcessRunner(
        results={
            "brew list --formula helm": NOT_INSTALLED,
            "brew install helm": ExecutionResult(exit_code=1, stderr="Error: Download failed\n"),
        }
    )
    with pytest.raises(SetupError) as excinfo:
        setup_tool(BrewInstaller(runner), "helm")
    assert "Failed to install helm: Error: Download failed" in str(excinfo.value)


def test_setup_without_brew():
    """Test that a missing Homebrew is not disguised as a setup failure."""
    with pytest.raises(InstallError) as excinfo:
        setup_tool(BrewInstaller(FakeProcessRunner(missing=["brew"])), "kustomize")
    assert excinfo.value.exit_code == ExitCode.DEPENDENCY_MISSING


def test_setup_uses_cache():
    """Test that the install cache is consulted."""
    runner = FakeProcessRunner()
    cache = InstallCache()
    installer = BrewInstaller(runner)
    setup_tool(installer, "kustomize", cache)
    setup_tool(installer, "kustomize", cache)
    assert runner.commands == ["brew list --formula kustomize"]


@pytest.mark.parametrize("tool", sorted(TOOLS))
def test_cli_setup_tools(cli_runner, make_app, tool):
    """Test that every known tool has a setup subcommand."""
    result = cli_runner.invoke(cli, ["setup", tool], obj=make_app())
    assert result.exit_code == 0, result.output
    assert f"{tool} is already installed" in result.output


def test_cli_setup_kustomize_installs(cli_runner, make_app):
    """Test a fresh install through the CLI."""
    runner = FakeProcessRunner(results={"brew list --formula kustomize": NOT_INSTALLED})
    result = cli_runner.invoke(cli, ["setup", "kustomize"], obj=make_app(runner))

    assert result.exit_code == 0
    assert "Installed kustomize" in result.output


def test_cli_setup_without_brew(cli_runner, make_app):
    """Test the exit code when Homebrew is missing."""
    result = cli_runner.invoke(cli, ["setup", "kustomize"], obj=make_app(FakeProcessRunner(missing=["brew"])))

    assert result.exit_code == ExitCode.DEPENDENCY_MISSING
    assert "Homebrew is not installed" in result.output


def test_cli_setup_failure(cli_runner, make_app):
    """Test the exit code of a failed install."""
    runner = FakeProcessRunner(
        results={
            "brew list --formula kustomize": NOT_INSTALLED,
            "brew install kustomize": ExecutionResult(exit_code=1, stderr="Error: boom\n"),
        }
    )
    result = cli_runner.invoke(cli, ["setup", "kustomize"], obj=make_app(runner))

    assert result.exit_code == ExitCode.TOOL_FAILED
    assert "Error: Failed to install kustomize" in result.output


def test_cli_setup_cask_package(cli_runner, make_app):
    """Test installing an arbitrary cask."""
    runner = FakeProcessRunner(results={"brew list --cask iterm2": NOT_INSTALLED})
    result = cli_runner.invoke(cli, ["setup", "package", "iterm2", "--cask"], obj=make_app(runner))

    assert result.exit_code == 0, result.output
    assert runner.commands[-1] == "brew install --cask iterm2"


def test_cli_setup_warnings(cli_runner, make_app):
    """Test that install warnings are shown."""
    queries = iter([NOT_INSTALLED, ExecutionResult(exit_code=0)])
    runner = FakeProcessRunner(
        results={
            "brew list --formula jq": lambda request: next(queries),
            "brew install jq": ExecutionResult(
                exit_code=1, stderr="Warning: The post-install step did not complete successfully\n"
            ),
        }
    )
    result = cli_runner.invoke(cli, ["setup", "package", "jq"], obj=make_app(runner))

    assert result.exit_code == 0, result.output
    assert "Installed jq with warnings" in result.output
    assert "post-install step" in result.output
