"""Environment variable management for shell profile files.

Variables live in a profile file as `export NAME=VALUE` lines. Reads always go
back to the file; writes replace the whole file atomically so a crash never
leaves it truncated.
"""

import json
import logging
import os
import re
import tempfile
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

import click

from mactl.errors import (
    DuplicateKeyError,
    InvalidEnvVarNameError,
    InvalidEnvVarValueError,
    MactlError,
)

logger = logging.getLogger(__name__)

PROFILE_FILES = {
    "user": Path("~/.zshrc"),
    "system": Path("/etc/zshrc"),
}

NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
EXPORT_PATTERN = re.compile(r"^\s*export\s+([A-Za-z_][A-Za-z0-9_]*)=(.*)$")
# Values made only of these characters are written unquoted. "$" is allowed so
# references such as $HOME/bin still expand when the profile is sourced.
PLAIN_VALUE = re.compile(r"^[\w@%+=:,./$~-]+$")


def quote_value(value: str) -> str:
    if PLAIN_VALUE.match(value):
        return value
    return '"' + re.sub(r'([\\"`])', r"\\\1", value) + '"'


def unquote_value(raw: str) -> str:
    text = raw.strip()
    if len(text) >= 2 and text[0] == text[-1] == '"':
        return re.sub(r'\\([\\"`$])', r"\1", text[1:-1])
    if len(text) >= 2 and text[0] == text[-1] == "'":
        return text[1:-1]
    return text.split(" #", 1)[0].strip()


@dataclass(frozen=True)
class EnvVarEntry:
    name: str
    value: str

    def to_line(self) -> str:
        return f"export {self.name}={quote_value(self.value)}"


def profile_path(scope: str, home: Path, override: Optional[Path] = None) -> Path:
    """Resolve the profile file for a scope.

    Args:
        scope: "user" or "system".
        home: Home directory used to expand "~".
        override: Explicit path from --profile, which wins over the scope.
    """
    if override is not None:
        return Path(override)
    path = PROFILE_FILES[scope]
    if path.parts[0] == "~":
        return home.joinpath(*path.parts[1:])
    return path


def parse_line(line: str) -> Optional[EnvVarEntry]:
    """Parse an `export NAME=VALUE` line, None for anything else."""
    match = EXPORT_PATTERN.match(line)
    if not match:
        return None
    name, raw = match.groups()
    return EnvVarEntry(name, unquote_value(raw))


def list_env_vars(path: Path) -> Iterator[EnvVarEntry]:
    """Yield the variables exported by a profile file.

    Each call re-reads the file. A missing file yields nothing.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                entry = parse_line(line)
                if entry is not None:
                    yield entry
    except FileNotFoundError:
        return


def atomic_write_text(path: Path, text: str) -> None:
    """Replace the contents of `path` without ever leaving it half-written.

    The text goes to a temporary file in the same directory, which is fsynced
    and then renamed over the target. The original mode is preserved. A
    symlinked path is followed so the link itself survives the write.
    """
    path = Path(path)
    if path.is_symlink():
        path = path.resolve()
    try:
        mode = path.stat().st_mode & 0o7777
    except FileNotFoundError:
        mode = 0o644

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


def plan_env_var(path: Path, entry: EnvVarEntry, overwrite: bool = False) -> Tuple[str, bool]:
    """Work out the new profile contents for exporting `entry`.

    Nothing is written. Returns the full new text and whether an existing
    definition is replaced.

    Raises:
        InvalidEnvVarNameError: The name is not a valid shell identifier.
        InvalidEnvVarValueError: The value spans more than one line.
        DuplicateKeyError: The name is already exported and overwrite is False.
    """
    if not NAME_PATTERN.match(entry.name):
        raise InvalidEnvVarNameError(f"Invalid environment variable name: '{entry.name}'")
    if "\n" in entry.value or "\r" in entry.value:
        raise InvalidEnvVarValueError(f"Value for {entry.name} must be a single line")

    path = Path(path)
    try:
        original = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        original = ""

    lines = original.splitlines(keepends=True)
    positions = [i for i, line in enumerate(lines) if _defines(line, entry.name)]
    if positions and not overwrite:
        raise DuplicateKeyError(entry.name, path)

    if positions:
        first = positions[0]
        newline = "\n" if lines[first].endswith("\n") else ""
        lines[first] = entry.to_line() + newline
        for i in reversed(positions[1:]):
            del lines[i]
    else:
        if lines and not lines[-1].endswith("\n"):
            lines[-1] += "\n"
        lines.append(entry.to_line() + "\n")
    return "".join(lines), bool(positions)


def add_env_var(path: Path, entry: EnvVarEntry, overwrite: bool = False) -> bool:
    """Export a variable from a profile file.

    Args:
        path: Profile file; created if it does not exist. A symlink is
            followed and its target is rewritten.
        entry: Variable to export.
        overwrite: Replace an existing definition instead of failing.

    Returns:
        bool: True if an existing definition was replaced.

    Raises:
        InvalidEnvVarNameError: The name is not a valid shell identifier.
        InvalidEnvVarValueError: The value spans more than one line.
        DuplicateKeyError: The name is already exported and overwrite is False.
    """
    text, replaced = plan_env_var(path, entry, overwrite)
    logger.info("%s %s in %s", "replacing" if replaced else "appending", entry.name, path)
    try:
        atomic_write_text(path, text)
    except PermissionError as e:
        raise MactlError(f"Cannot write {path}: permission denied") from e
    return replaced


def _defines(line: str, name: str) -> bool:
    entry = parse_line(line)
    return entry is not None and entry.name == name


@click.command("list")
@click.option("--scope", type=click.Choice(sorted(PROFILE_FILES)), default="user", show_default=True)
@click.option("--profile", type=click.Path(dir_okay=False, path_type=Path), envvar="MACTL_PROFILE",
              help="Profile file to read instead of the scope's default")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
@click.pass_obj
def list_cmd(app, scope: str, profile: Optional[Path], json_output: bool) -> None:
    """List environment variables exported by a profile file."""
    path = profile_path(scope, app.home, profile)
    entries: List[EnvVarEntry] = list(list_env_vars(path))

    if json_output:
        click.echo(json.dumps({"profile": str(path), "variables": [asdict(e) for e in entries]}, indent=2))
        return

    if not entries:
        click.echo(f"No environment variables exported in {path}")
        return
    width = max(len(entry.name) for entry in entries)
    for entry in entries:
        click.echo(f"{entry.name:{width}} = {entry.value}")


@click.command("add")
@click.argument("name")
@click.argument("value")
@click.option("--scope", type=click.Choice(sorted(PROFILE_FILES)), default="user", show_default=True)
@click.option("--overwrite", is_flag=True, help="Replace the variable if it is already exported")
@click.option("--profile", type=click.Path(dir_okay=False, path_type=Path), envvar="MACTL_PROFILE",
              help="Profile file to edit instead of the scope's default")
@click.pass_obj
def add_cmd(app, name: str, value: str, scope: str, overwrite: bool, profile: Optional[Path]) -> None:
    """Export NAME=VALUE from a shell profile file.

    VALUE must be a single line. It is written unquoted when it only holds
    plain characters and double-quoted otherwise. "$" is never escaped, so
    $VAR references and $(...) command substitutions are expanded by the
    shell every time the profile is sourced. Wrap VALUE in single quotes on
    the command line to keep your own shell from expanding it first.
    """
    path = profile_path(scope, app.home, profile)
    entry = EnvVarEntry(name, value)
    if app.dry_run:
        replaced = plan_env_var(path, entry, overwrite)[1]
        verb = "replace" if replaced else "add"
        click.echo(click.style("[dry-run] ", fg="yellow") + f"would {verb} '{entry.to_line()}' in {path}")
        return

    replaced = add_env_var(path, entry, overwrite=overwrite)
    verb = "Updated" if replaced else "Added"
    click.echo(f"✅ {verb} {name} in {path}")
    click.echo(f"Run 'source {path}' or open a new shell to pick it up.")
