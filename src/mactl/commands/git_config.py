"""Git configuration through git's own tooling."""

import logging
import re
from pathlib import Path
from typing import Optional

import click

from mactl.errors import (
    DependencyMissingError,
    GitError,
    InvalidConfigKeyError,
    NotARepositoryError,
    SpawnError,
)
from mactl.runner import ExecutionRequest, ExecutionResult, ProcessRunner, request

logger = logging.getLogger(__name__)

SCOPES = ("local", "global")

# section.name or section.subsection.name; subsections may hold anything but newlines.
CONFIG_KEY_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9-]*(\.[^\n]+)?\.[A-Za-z][A-Za-z0-9-]*$")


def find_repo_root(start: Path) -> Optional[Path]:
    """Walk up from `start` to the first directory containing `.git`.

    `.git` may be a directory or, in worktrees and submodules, a file.
    """
    current = Path(start).resolve()
    for parent in [current, *current.parents]:
        if (parent / ".git").exists():
            return parent
    return None


def _run_git(runner: ProcessRunner, req: ExecutionRequest) -> ExecutionResult:
    try:
        return runner.run(req)
    except SpawnError as e:
        raise DependencyMissingError("git", "Install it with 'xcode-select --install'") from e


def _validate_key(key: str) -> None:
    if not CONFIG_KEY_PATTERN.match(key):
        raise InvalidConfigKeyError(f"Invalid git config key '{key}': expected section.name")


def _scope_args(scope: str, cwd: Path):
    """Return the scope flag and working directory for a git config call."""
    if scope not in SCOPES:
        raise InvalidConfigKeyError(f"Unknown scope '{scope}', expected local or global")
    if scope == "global":
        return "--global", None
    root = find_repo_root(cwd)
    if root is None:
        raise NotARepositoryError(cwd)
    return "--local", root


def set_config(runner: ProcessRunner, key: str, value: str, scope: str, cwd: Path) -> None:
    """Set a git config value.

    Args:
        runner: Process runner used to call git.
        key: Config key such as user.email.
        value: Value to store.
        scope: "local" for the enclosing repository, "global" for the user.
        cwd: Directory the repository search starts from.

    Raises:
        InvalidConfigKeyError: The key is not of the form section.name.
        NotARepositoryError: Local scope outside any repository; git is not called.
        GitError: git config exited nonzero.
    """
    _validate_key(key)
    flag, repo_root = _scope_args(scope, cwd)

    logger.info("setting git %s config %s", scope, key)
    result = _run_git(runner, request("git", "config", flag, key, value, cwd=repo_root))
    if not result.ok:
        raise GitError(f"git config {flag} {key} failed: {result.output or f'exit code {result.exit_code}'}")


def get_config(runner: ProcessRunner, key: str, scope: str, cwd: Path) -> Optional[str]:
    """Read a git config value, None when it is unset."""
    _validate_key(key)
    flag, repo_root = _scope_args(scope, cwd)
    result = _run_git(
        runner, request("git", "config", flag, "--get", key, cwd=repo_root, read_only=True)
    )
    # git config --get exits 1 for a missing key.
    if result.exit_code == 1:
        return None
    if not result.ok:
        raise GitError(f"git config --get {key} failed: {result.output}")
    return result.stdout.strip()


@click.command("config")
@click.argument("key")
@click.argument("value")
@click.option("--local", "scope", flag_value="local", help="Write to the enclosing repository's config")
@click.option("--global", "scope", flag_value="global", default=True,
              help="Write to the user's global config (default)")
@click.pass_obj
def config(app, key: str, value: str, scope: str) -> None:
    """Set git config KEY to VALUE."""
    previous = get_config(app.runner, key, scope, app.cwd)
    if previous == value:
        click.echo(f"git {scope} {key} is already {value}")
        return

    set_config(app.runner, key, value, scope, app.cwd)
    click.echo(f"✅ Set git {scope} {key} = {value}")
