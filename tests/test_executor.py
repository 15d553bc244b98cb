"""Tests for command execution."""

import os
import threading
import time

import pytest

from llmd.executor import get_shell_context, get_shell_path, run_command


@pytest.fixture(autouse=True)
def posix_shell(monkeypatch):
    monkeypatch.setenv("SHELL", "/bin/sh")


def test_run_command_exit_code_success():
    """Test that successful commands return 0."""
    assert run_command("true").exit_code == 0


def test_run_command_specific_exit_code():
    """Test that specific exit codes are preserved."""
    assert run_command("exit 42").exit_code == 42


def test_run_command_captures_and_echoes_stdout(capsys):
    result = run_command("echo hello")

    assert result.stdout == "hello\n"
    assert capsys.readouterr().out == "hello\n"


def test_run_command_captures_stderr(capsys):
    result = run_command("echo error >&2")

    assert result.stderr == "error\n"
    assert result.stdout == ""
    assert "error" in capsys.readouterr().err


def test_run_command_uses_cwd(tmp_path):
    result = run_command("pwd", cwd=str(tmp_path))
    assert os.path.realpath(result.stdout.strip()) == os.path.realpath(str(tmp_path))


def test_run_command_supports_pipes_and_expansion(monkeypatch):
    monkeypatch.setenv("LLMD_TEST_VALUE", "abc")
    result = run_command('printf "%s\\n" "$LLMD_TEST_VALUE" | tr a-z A-Z')
    assert result.stdout == "ABC\n"


def test_missing_shell_reports_failure(monkeypatch):
    monkeypatch.setenv("SHELL", "/nonexistent/shell")

    result = run_command("echo hi")

    assert result.exit_code == 1
    assert result.stdout == ""
    assert result.stderr


def test_shell_path_defaults_without_shell_variable(monkeypatch, mocker):
    monkeypatch.delenv("SHELL")
    mocker.patch("llmd.executor._is_windows", return_value=False)
    assert get_shell_path() == "/bin/sh"


def test_get_shell_context(monkeypatch, tmp_path):
    monkeypatch.setenv("SHELL", "/usr/bin/zsh")
    monkeypatch.chdir(tmp_path)

    context = get_shell_context()

    assert context.shell == "zsh"
    assert context.cwd == os.getcwd()
    assert context.os


class _RecordingSink:
    """Stand-in for sys.stdout that keeps every write."""

    def __init__(self):
        self.parts: list[str] = []

    def write(self, text: str) -> None:
        self.parts.append(text)

    def flush(self) -> None:
        pass

    @property
    def text(self) -> str:
        return "".join(self.parts)


def test_partial_line_is_shown_before_command_exits(monkeypatch):
    """A prompt without a trailing newline must reach the terminal at once."""
    sink = _RecordingSink()
    monkeypatch.setattr("llmd.executor.sys.stdout", sink)
    results = []
    worker = threading.Thread(
        target=lambda: results.append(run_command("printf 'Name: '; sleep 2; echo done"))
    )
    worker.start()

    deadline = time.monotonic() + 1.5
    while sink.text != "Name: " and time.monotonic() < deadline:
        time.sleep(0.05)

    assert sink.text == "Name: "
    assert worker.is_alive()

    worker.join(timeout=10)
    assert sink.text == "Name: done\n"
    assert results[0].stdout == "Name: done\n"


def test_multibyte_output_survives_chunking():
    result = run_command("printf 'caf\\303\\251 ✓\\n'")
    assert result.stdout == "café ✓\n"
