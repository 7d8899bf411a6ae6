"""Command modules for the mactl CLI."""

from . import (
    dock,
    env_var,
    git_config,
    git_ssh,
    setup,
)

# Modules the registry in mactl.cli assembles into the command tree
__all__ = [
    "dock",
    "env_var",
    "git_config",
    "git_ssh",
    "setup",
]
