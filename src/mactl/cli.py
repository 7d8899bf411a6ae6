"""
Command line interface for mactl.

This module provides the main CLI entry point. build_cli() assembles the whole
command tree in one place and in a fixed order; MactlGroup turns every failure
raised below it into a one-line message and an exit code.
"""

import logging
from typing import Iterable, Optional

import click

from mactl import __version__
from mactl.commands import dock, env_var, git_config, git_ssh, setup
from mactl.context import create_context
from mactl.errors import InvalidFlagError, MactlError, UnknownCommandError
from mactl.log import configure_logging

logger = logging.getLogger(__name__)

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"], auto_envvar_prefix="MACTL")

# click errors raised while parsing a resolved command's own flags and arguments
PARSE_ERRORS = (
    click.NoSuchOption,
    click.BadOptionUsage,
    click.BadArgumentUsage,
    click.BadParameter,
)


class MactlGroup(click.Group):
    """click.Group that keeps registration order and normalizes errors."""

    def add_command(self, cmd: click.Command, name: Optional[str] = None) -> None:
        name = name or cmd.name
        if name in self.commands:
            raise ValueError(f"Command '{name}' is already registered under '{self.name}'")
        super().add_command(cmd, name)

    def list_commands(self, ctx: click.Context):
        return list(self.commands)

    def resolve_command(self, ctx: click.Context, args):
        cmd_name = args[0]
        if (
            self.get_command(ctx, cmd_name) is None
            and not cmd_name.startswith("-")
            and not ctx.resilient_parsing
        ):
            raise UnknownCommandError(f"No such command '{cmd_name}'.", ctx=ctx)
        return super().resolve_command(ctx, args)

    def invoke(self, ctx: click.Context):
        is_root = ctx.parent is None
        try:
            return super().invoke(ctx)
        except (UnknownCommandError, InvalidFlagError):
            raise
        except PARSE_ERRORS as e:
            raise InvalidFlagError(e.format_message(), ctx=e.ctx) from e
        except MactlError:
            if is_root:
                logger.debug("Command failed", exc_info=True)
            raise
        except (click.ClickException, click.exceptions.Exit, click.Abort):
            raise
        except Exception as e:
            if not is_root:
                raise
            logger.debug("Unexpected error", exc_info=True)
            raise MactlError(f"{type(e).__name__}: {e}") from e


def _group(name: str, help_text: str, commands: Iterable[click.Command]) -> MactlGroup:
    group = MactlGroup(name, help=help_text)
    for command in commands:
        group.add_command(command)
    return group


def build_cli() -> MactlGroup:
    """Assemble the mactl command tree.

    Returns:
        MactlGroup: The root command, ready to be invoked.
    """

    @click.group(cls=MactlGroup, context_settings=CONTEXT_SETTINGS)
    @click.version_option(__version__, prog_name="mactl")
    @click.option("-v", "--verbose", count=True, help="Increase log output (-v info, -vv debug)")
    @click.option("--dry-run", is_flag=True, help="Show what would change without changing anything")
    @click.option("--timeout", type=click.FloatRange(min=0, min_open=True), metavar="SECONDS",
                  help="Kill external commands that run longer than this")
    @click.pass_context
    def cli(ctx: click.Context, verbose: int, dry_run: bool, timeout: Optional[float]) -> None:
        """Bootstrap and configure a macOS developer machine.

        Installs Homebrew packages, tunes the Dock, manages environment
        variables in shell profiles, and sets up git and SSH.
        """
        configure_logging(verbose)
        # Tests provide their own context with a fake runner
        if ctx.obj is None:
            ctx.obj = create_context(verbosity=verbose, dry_run=dry_run, timeout=timeout)

    git = _group("git", "Configure git and its SSH key.", [git_config.config])
    git.add_command(_group("ssh", "Manage the SSH key git uses.", [git_ssh.ensure]))

    for group in (
        _group("optimize", "Optimize mac features.", [dock.dock]),
        _group("env-var", "Manage environment variables in shell profiles.",
               [env_var.list_cmd, env_var.add_cmd]),
        git,
        _group("setup", "Install developer tools with Homebrew.",
               [*setup.tool_commands(), setup.package]),
    ):
        cli.add_command(group)
    return cli


cli = build_cli()


def main() -> None:
    """Entry point used by the `mactl` console script."""
    cli(prog_name="mactl")
