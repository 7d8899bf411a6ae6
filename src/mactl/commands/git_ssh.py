"""SSH keys for git hosting."""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

import click

from mactl.errors import (
    DependencyMissingError,
    KeyGenerationError,
    KeyVerificationError,
    SpawnError,
    UnsupportedKeyTypeError,
)
from mactl.runner import ExecutionRequest, ExecutionResult, ProcessRunner, request

logger = logging.getLogger(__name__)

KEY_TYPES = ("ed25519", "rsa")
RSA_BITS = 4096


class KeyStatus(Enum):
    ALREADY_EXISTS = "already-exists"
    GENERATED = "generated"


@dataclass(frozen=True)
class KeyOutcome:
    status: KeyStatus
    private_key: Path
    public_key: Path
    public_key_text: str = ""
    fingerprint: str = ""


def default_key_path(home: Path, key_type: str) -> Path:
    return home / ".ssh" / f"id_{key_type}"


def _run_keygen(runner: ProcessRunner, req: ExecutionRequest) -> ExecutionResult:
    try:
        return runner.run(req)
    except SpawnError as e:
        raise DependencyMissingError("ssh-keygen") from e


def _read_public_key(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8").strip()
    except OSError:
        return ""


def ensure_key(
    runner: ProcessRunner, key_path: Path, key_type: str = "ed25519", comment: Optional[str] = None
) -> KeyOutcome:
    """Make sure an SSH key pair exists at `key_path`.

    An existing private key is verified with `ssh-keygen -l` and left alone.
    Otherwise a new pair is generated without a passphrase.

    Raises:
        UnsupportedKeyTypeError: key_type is not ed25519 or rsa.
        KeyVerificationError: The existing key could not be read by ssh-keygen.
        KeyGenerationError: The key directory or the key could not be created.
    """
    if key_type not in KEY_TYPES:
        raise UnsupportedKeyTypeError(
            f"Unsupported key type '{key_type}'. Supported: {', '.join(KEY_TYPES)}"
        )
    key_path = Path(key_path).expanduser()
    public_path = key_path.with_name(key_path.name + ".pub")

    if key_path.exists():
        result = _run_keygen(runner, request("ssh-keygen", "-l", "-f", key_path, read_only=True))
        if not result.ok:
            raise KeyVerificationError(f"Existing key {key_path} is not valid: {result.output}")
        logger.info("SSH key %s already exists", key_path)
        return KeyOutcome(
            KeyStatus.ALREADY_EXISTS,
            key_path,
            public_path,
            _read_public_key(public_path),
            result.stdout.strip(),
        )

    try:
        key_path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
    except OSError as e:
        raise KeyGenerationError(f"Cannot create {key_path.parent}: {e.strerror or e}") from e

    args = ["-q", "-t", key_type]
    if key_type == "rsa":
        args += ["-b", str(RSA_BITS)]
    args += ["-N", "", "-f", str(key_path)]
    if comment:
        args += ["-C", comment]

    logger.info("generating %s key at %s", key_type, key_path)
    result = _run_keygen(runner, request("ssh-keygen", *args))
    if not result.ok:
        raise KeyGenerationError(
            f"ssh-keygen failed for {key_path}: {result.output or f'exit code {result.exit_code}'}"
        )
    if key_path.exists():
        os.chmod(key_path, 0o600)
    return KeyOutcome(KeyStatus.GENERATED, key_path, public_path, _read_public_key(public_path))


@click.command("ensure")
@click.option("--type", "key_type", type=click.Choice(KEY_TYPES), default="ed25519", show_default=True,
              help="Key algorithm")
@click.option("--path", "key_path", type=click.Path(dir_okay=False, path_type=Path),
              help="Private key location [default: ~/.ssh/id_<type>]")
@click.option("--comment", help="Comment stored in the public key, usually your email")
@click.pass_obj
def ensure(app, key_type: str, key_path: Optional[Path], comment: Optional[str]) -> None:
    """Generate an SSH key pair unless one already exists."""
    if key_path is None:
        key_path = default_key_path(app.home, key_type)

    outcome = ensure_key(app.runner, key_path, key_type, comment)
    if outcome.status is KeyStatus.GENERATED:
        click.echo(f"✅ Generated {key_type} key at {outcome.private_key}")
    else:
        click.echo(f"SSH key already exists at {outcome.private_key}")
        if outcome.fingerprint:
            click.echo(f"Fingerprint: {outcome.fingerprint}")

    if outcome.public_key_text:
        click.echo("\nAdd this public key to your git host:")
        click.echo(outcome.public_key_text)
