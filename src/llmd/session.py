"""Session history module.

Keeps a short, per-terminal history of queries, generated commands and
their results in $LLMD_HOME/sessions.json. The summary of recent entries
is fed back into the generation prompt so follow-up requests ("now delete
them") have context.

A session belongs to one terminal (see terminal_fingerprint), holds at
most MAX_HISTORY_ENTRIES entries (oldest dropped first) and is deleted
after SESSION_TIMEOUT_SECONDS without activity.
"""

import json
import logging
import os
import re
import sys
import tempfile
import time
import uuid

from llmd.config import get_home_dir
from llmd.constants import (
    MAX_HISTORY_ENTRIES,
    SESSION_TIMEOUT_SECONDS,
    SESSIONS_FILE_NAME,
)
from llmd.models import ExecutionResult, GeneratedCommand, VerificationResult
from llmd.utils import truncate_output

logger = logging.getLogger(__name__)


def terminal_fingerprint() -> str:
    """Stable identifier for the terminal this process runs in.

    Combines the parent (shell) PID, the controlling tty and whatever
    terminal-session variable the emulator exports.
    """
    try:
        tty = os.ttyname(sys.stdout.fileno()) if sys.stdout.isatty() else "notty"
    except (OSError, ValueError, AttributeError):
        tty = "notty"
    ppid = os.getppid() or os.getpid()
    leader = (
        os.environ.get("TERM_SESSION_ID")
        or os.environ.get("WINDOWID")
        or os.environ.get("TERM_PROGRAM_VERSION")
        or ""
    )
    return re.sub(r"[^a-zA-Z0-9_]", "_", f"term_{ppid}_{tty}_{leader}")


def _is_well_formed(session) -> bool:
    """A stored session has the fields the manager reads back."""
    if not isinstance(session, dict):
        return False
    last_activity = session.get("lastActivity")
    history = session.get("history")
    return (
        isinstance(session.get("sessionId"), str)
        and isinstance(last_activity, (int, float))
        and not isinstance(last_activity, bool)
        and isinstance(history, list)
        and all(isinstance(entry, dict) for entry in history)
    )


class SessionManager:
    """Read/write access to the session store for one terminal.

    Every operation re-reads the store file and writes it back whole
    (temp file + rename), so separate processes never corrupt it; the last
    writer wins.
    """

    def __init__(self, path: str | None = None, terminal_id: str | None = None, clock=time.time):
        self.path = path or os.path.join(get_home_dir(), SESSIONS_FILE_NAME)
        self.terminal_id = terminal_id or terminal_fingerprint()
        self._clock = clock
        self._current_session_id: str | None = None

    # ---- storage ----

    def _load(self) -> dict[str, dict]:
        """All well-formed, unexpired sessions; anything else is dropped on read."""
        try:
            with open(self.path) as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning("Session store %s unreadable (%s), starting fresh", self.path, e)
            return {}

        sessions = data.get("sessions") if isinstance(data, dict) else None
        if not isinstance(sessions, dict):
            return {}

        now = self._clock()
        live = {}
        for sid, session in sessions.items():
            if not _is_well_formed(session):
                logger.warning("Dropping malformed session %r from %s", sid, self.path)
                continue
            if not self._is_expired(session, now):
                live[session["sessionId"]] = session
        return live

    def _save(self, sessions: dict[str, dict]) -> None:
        directory = os.path.dirname(self.path) or "."
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".sessions-")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump({"sessions": sessions}, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def _is_expired(self, session: dict, now: float) -> bool:
        return now - session.get("lastActivity", 0) > SESSION_TIMEOUT_SECONDS

    def _find_session(self, sessions: dict[str, dict]) -> dict | None:
        if self._current_session_id in sessions:
            return sessions[self._current_session_id]
        for session in sessions.values():
            if session.get("terminalId") == self.terminal_id:
                self._current_session_id = session["sessionId"]
                return session
        self._current_session_id = None
        return None

    # ---- public API ----

    def get_current_session(self) -> dict | None:
        """The live session for this terminal, without creating one."""
        return self._find_session(self._load())

    def _new_session(self, cwd: str) -> dict:
        now = self._clock()
        session = {
            "sessionId": f"session_{int(now * 1000)}_{uuid.uuid4().hex[:9]}",
            "terminalId": self.terminal_id,
            "startTime": now,
            "lastActivity": now,
            "history": [],
            "currentCwd": cwd,
        }
        self._current_session_id = session["sessionId"]
        return session

    def add_command(
        self,
        query: str,
        generated: GeneratedCommand,
        verification: VerificationResult,
        execution_result: ExecutionResult | None = None,
        cwd: str | None = None,
    ) -> None:
        """Append an interaction, creating or refreshing the session.

        Output is truncated before storage; history keeps only the most
        recent MAX_HISTORY_ENTRIES entries.
        """
        cwd = cwd or os.getcwd()
        sessions = self._load()
        session = self._find_session(sessions) or self._new_session(cwd)

        now = self._clock()
        session["history"].append({
            "query": query,
            "command": generated.command,
            "explanation": generated.explanation,
            "confidence": verification.confidence,
            "exitCode": execution_result.exit_code if execution_result else None,
            "stdout": truncate_output(execution_result.stdout) if execution_result else None,
            "stderr": truncate_output(execution_result.stderr) if execution_result else None,
            "timestamp": now,
            "cwd": cwd,
        })
        session["history"] = session["history"][-MAX_HISTORY_ENTRIES:]
        session["lastActivity"] = now
        session["currentCwd"] = cwd

        sessions[session["sessionId"]] = session
        self._save(sessions)

    def get_history(self) -> list[dict]:
        session = self.get_current_session()
        return list(session["history"]) if session else []

    def get_context_summary(self, max_history: int = 5) -> str:
        """Text block describing the last few interactions, or ""."""
        history = self.get_history()
        if not history:
            return ""

        lines = []
        for idx, entry in enumerate(history[-max_history:], 1):
            exit_code = entry.get("exitCode")
            if exit_code is None:
                result = "Not executed"
            else:
                status = "✓" if exit_code == 0 else "✗"
                result = f"Result: {status} (exit code: {exit_code})"
            lines.append(
                f'{idx}. Query: "{entry.get("query", "")}"\n'
                f'   Command: {entry.get("command", "")}\n'
                f"   {result}"
            )

        return "\nPrevious commands in this session:\n" + "\n\n".join(lines) + "\n"

    def end_session(self) -> None:
        """Delete this terminal's session."""
        sessions = self._load()
        session = self._find_session(sessions)
        if session is not None:
            del sessions[session["sessionId"]]
            self._save(sessions)
        self._current_session_id = None

    def clear_all_sessions(self) -> None:
        self._save({})
        self._current_session_id = None
