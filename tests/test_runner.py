"""Test cases for the process runners."""

import os
import subprocess
import sys
import time
from pathlib import Path

import pytest

from mactl import runner as runner_module
from mactl.errors import CommandTimeoutError, SpawnError
from mactl.runner import (
    DryRunProcessRunner,
    ExecutionRequest,
    ExecutionResult,
    RealProcessRunner,
    request,
)
from tests.fakes.runner import FakeProcessRunner


def python(code, **kwargs):
    return request(sys.executable, "-c", code, **kwargs)


def test_run_captures_output():
    """Test that stdout, stderr and exit code are captured."""
    result = RealProcessRunner().run(
        python("import sys; print('out'); print('err', file=sys.stderr)")
    )
    assert result.ok
    assert result.stdout == "out\n"
    assert result.stderr == "err\n"
    assert result.duration is not None and result.duration >= 0


def test_nonzero_exit_is_a_result_not_an_error():
    """Test that a failing child still produces an ExecutionResult."""
    result = RealProcessRunner().run(python("import sys; sys.exit(3)"))
    assert result.exit_code == 3
    assert not result.ok


def test_arguments_are_not_interpreted_by_a_shell():
    """Test that shell metacharacters reach the child verbatim."""
    result = RealProcessRunner().run(
        request(sys.executable, "-c", "import sys; print(sys.argv[1])", "$HOME; echo hi")
    )
    assert result.stdout.strip() == "$HOME; echo hi"


def test_env_overrides_and_cwd(tmp_path):
    """Test that env overrides merge over the environment and cwd is honored."""
    result = RealProcessRunner().run(
        python(
            "import os; print(os.environ['MACTL_TEST_VALUE']); print(os.getcwd())",
            env={"MACTL_TEST_VALUE": "42"},
            cwd=tmp_path,
        )
    )
    lines = result.stdout.splitlines()
    assert lines[0] == "42"
    assert lines[1] == str(tmp_path.resolve())


def test_missing_executable_raises_spawn_error():
    """Test that an executable absent from PATH raises SpawnError."""
    with pytest.raises(SpawnError) as excinfo:
        RealProcessRunner().run(request("mactl-definitely-not-a-real-tool"))
    assert excinfo.value.executable == "mactl-definitely-not-a-real-tool"


def test_timeout_kills_child():
    """Test that a child outliving its timeout raises CommandTimeoutError."""
    with pytest.raises(CommandTimeoutError) as excinfo:
        RealProcessRunner().run(python("import time; time.sleep(30)", timeout=0.5))
    assert excinfo.value.timeout == 0.5


def test_default_timeout_applies_when_request_has_none():
    """Test that the runner's default timeout is used."""
    with pytest.raises(CommandTimeoutError):
        RealProcessRunner(default_timeout=0.5).run(python("import time; time.sleep(30)"))


def is_running(pid):
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    # An orphan may linger as a zombie until init reaps it
    stat_file = Path(f"/proc/{pid}/stat")
    if stat_file.exists():
        return stat_file.read_text().rsplit(")", 1)[1].split()[0] != "Z"
    return True


def wait_until_gone(pid, deadline=5.0):
    stop = time.monotonic() + deadline
    while time.monotonic() < stop:
        if not is_running(pid):
            return True
        time.sleep(0.05)
    return False


def test_timeout_kills_grandchildren(tmp_path):
    """Test that a timeout kills the child's whole process group."""
    pid_file = tmp_path / "grandchild.pid"
    code = (
        "import subprocess, sys, time\n"
        "p = subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(60)'])\n"
        f"with open({str(pid_file)!r}, 'w') as f: f.write(str(p.pid))\n"
        "time.sleep(60)\n"
    )

    with pytest.raises(CommandTimeoutError):
        RealProcessRunner().run(python(code, timeout=2.0))

    grandchild = int(pid_file.read_text())
    assert wait_until_gone(grandchild)


def test_interrupt_terminates_group_and_reraises(monkeypatch):
    """Test that Ctrl-C while waiting kills the child and propagates."""
    original_communicate = subprocess.Popen.communicate
    interrupted = []

    def communicate(self, *args, **kwargs):
        if not interrupted:
            interrupted.append(self)
            raise KeyboardInterrupt
        return original_communicate(self, *args, **kwargs)

    terminated = []
    original_terminate = runner_module._terminate_group

    def terminate_group(process):
        terminated.append(process)
        original_terminate(process)

    monkeypatch.setattr(subprocess.Popen, "communicate", communicate)
    monkeypatch.setattr(runner_module, "_terminate_group", terminate_group)

    with pytest.raises(KeyboardInterrupt):
        RealProcessRunner().run(python("import time; time.sleep(30)"))

    assert terminated == interrupted
    assert terminated[0].returncode is not None


def test_display_quotes_arguments():
    """Test the printable form of a request."""
    req = request("git", "config", "user.name", "Jane Doe")
    assert req.display() == "git config user.name 'Jane Doe'"
    assert req.argv == ("git", "config", "user.name", "Jane Doe")


def test_request_stringifies_arguments(tmp_path):
    """Test that request() turns paths into strings."""
    req = request("ssh-keygen", "-f", tmp_path / "id_ed25519")
    assert req.args == ("-f", str(tmp_path / "id_ed25519"))


def test_output_combines_streams():
    """Test the combined output helper."""
    assert ExecutionResult(1, stdout=" a \n", stderr="b\n").output == "a\nb"
    assert ExecutionResult(1).output == ""


def test_dry_run_announces_mutating_requests(capsys):
    """Test that the dry-run runner prints mutating requests instead of running them."""
    wrapped = FakeProcessRunner(default=ExecutionResult(exit_code=9))
    runner = DryRunProcessRunner(wrapped)

    result = runner.run(request("brew", "install", "kustomize"))

    assert result.ok
    assert wrapped.commands == []
    assert "would run: brew install kustomize" in capsys.readouterr().out


def test_dry_run_still_runs_queries():
    """Test that the dry-run runner delegates read-only requests."""
    wrapped = FakeProcessRunner(results={"brew list --formula jq": ExecutionResult(exit_code=1)})
    runner = DryRunProcessRunner(wrapped)

    result = runner.run(ExecutionRequest("brew", ("list", "--formula", "jq"), read_only=True))

    assert result.exit_code == 1
    assert wrapped.commands == ["brew list --formula jq"]
