"""Shared fixtures for the mactl tests."""

from pathlib import Path

import pytest
from click.testing import CliRunner

from mactl.context import AppContext
from tests.fakes.runner import FakeProcessRunner


@pytest.fixture
def fake_runner():
    return FakeProcessRunner()


@pytest.fixture
def home(tmp_path) -> Path:
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def make_app(home, tmp_path):
    """Build an AppContext around a fake runner, rooted in tmp_path."""

    def _make(runner=None, cwd=None, dry_run=False):
        return AppContext(
            runner=runner if runner is not None else FakeProcessRunner(),
            home=home,
            cwd=cwd if cwd is not None else tmp_path,
            dry_run=dry_run,
        )

    return _make


@pytest.fixture
def cli_runner():
    return CliRunner()
