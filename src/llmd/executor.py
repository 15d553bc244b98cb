"""Command execution module.

Runs an approved command through the user's shell, streaming its output
to the terminal while also capturing it for session history.
"""

import codecs
import logging
import os
import platform
import subprocess
import sys
import threading

from llmd.models import ExecutionResult, ShellContext

logger = logging.getLogger(__name__)

_READ_SIZE = 4096


def _is_windows() -> bool:
    return sys.platform == "win32"


def get_shell_path() -> str:
    """Shell used to run commands: $SHELL, else cmd.exe or /bin/sh."""
    shell = os.environ.get("SHELL", "")
    if shell:
        return shell
    return "cmd.exe" if _is_windows() else "/bin/sh"


def get_shell_context() -> ShellContext:
    """Environment facts included in generation and verification prompts."""
    shell = get_shell_path()
    return ShellContext(
        cwd=os.getcwd(),
        shell=os.path.basename(shell) or shell,
        os=f"{platform.system().lower()} {platform.release()}",
    )


def _build_argv(command: str) -> list[str]:
    if _is_windows() and not os.environ.get("SHELL"):
        return [get_shell_path(), "/c", command]
    return [get_shell_path(), "-c", command]


def _pump(source, sink, chunks: list[str]) -> None:
    """Copy a child stream to the terminal as bytes arrive, keeping a copy.

    Reads whatever the pipe holds rather than whole lines, so prompts and
    carriage-return progress bars show up before their newline.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    fd = source.fileno()
    while True:
        data = os.read(fd, _READ_SIZE)
        text = decoder.decode(data, final=not data)
        if text:
            chunks.append(text)
            sink.write(text)
            sink.flush()
        if not data:
            break
    source.close()


def run_command(command: str, cwd: str | None = None) -> ExecutionResult:
    """Execute a command through the shell.

    stdin is inherited so interactive commands still work; stdout and
    stderr are echoed live and captured.

    Args:
        command: The command string to execute.
        cwd: Working directory. If None, uses os.getcwd().

    Returns:
        ExecutionResult with the exit code and captured output. A shell
        that cannot be started yields exit code 1 with the error as stderr.
    """
    if cwd is None:
        cwd = os.getcwd()

    try:
        process = subprocess.Popen(
            _build_argv(command),
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except OSError as e:
        logger.warning("Could not start shell for command %r: %s", command, e)
        return ExecutionResult(exit_code=1, stdout="", stderr=str(e))

    stdout_chunks: list[str] = []
    stderr_chunks: list[str] = []
    pumps = [
        threading.Thread(target=_pump, args=(process.stdout, sys.stdout, stdout_chunks)),
        threading.Thread(target=_pump, args=(process.stderr, sys.stderr, stderr_chunks)),
    ]
    for pump in pumps:
        pump.start()

    try:
        exit_code = process.wait()
    except KeyboardInterrupt:
        # Ctrl+C reaches the child too; wait for it to finish dying
        exit_code = process.wait()
    for pump in pumps:
        pump.join()

    return ExecutionResult(
        exit_code=exit_code,
        stdout="".join(stdout_chunks),
        stderr="".join(stderr_chunks),
    )
