"""Query pipeline module.

Drives one natural-language request end to end:

    generate -> verify -> (informational reply | clarification | display)
             -> severity gate -> run / edit / cancel -> execute -> record

Every path that gets past verification is written to session history,
with no execution result when nothing ran. Errors while generating or
verifying stop the pipeline before anything is recorded or executed.
"""

import logging
import sys

from llmd.config import (
    get_active_provider_config,
    get_confidence_threshold,
    has_any_provider,
)
from llmd.constants import PROMPT_HISTORY_ENTRIES
from llmd.executor import get_shell_context, run_command
from llmd.llm_client import ConfigurationError, GenerationError, generate_command
from llmd.models import (
    ExecutionResult,
    GeneratedCommand,
    SeverityCheck,
    VerificationResult,
)
from llmd.prompts import PromptCancelled
from llmd.severity import check_severity, requires_confirmation, severity_emoji
from llmd.tools import get_available_tools
from llmd.utils import looks_like_credential_error
from llmd.verifier import (
    displayed_text,
    format_suggested_questions,
    format_verification_issues,
    verify_command,
)
from llmd.version import display_update_hint

logger = logging.getLogger(__name__)

# Terminal outcomes of run_query()
EXECUTED = "executed"
CANCELLED = "cancelled"
INFORMATIONAL = "informational"
CLARIFICATION_CANCELLED = "clarification_cancelled"
FAILED = "failed"
NOT_CONFIGURED = "not_configured"

# Outcomes that make the CLI exit non-zero
ERROR_OUTCOMES = frozenset({FAILED, NOT_CONFIGURED})

DANGER_CONFIRM_MESSAGE = "⚠️  This is a potentially dangerous command. Are you sure?"
CREDENTIAL_HINT = "Check your API key configuration with: llmd config list"
RULE = "─" * 42


class QueryRunner:
    """Runs queries against one prompter and one session store.

    Args:
        prompter: Object with confirm(), choose() and ask() (see
            llmd.prompts.TerminalPrompter).
        sessions: llmd.session.SessionManager for this terminal.
        version_check: Optional started BackgroundVersionCheck; its result
            is shown once, after the first command that runs once the
            check has finished.
    """

    def __init__(self, prompter, sessions, version_check=None):
        self.prompter = prompter
        self.sessions = sessions
        self.version_check = version_check

    # ---- entry points ----

    def run_query(self, query: str) -> str:
        """Process one request and return its outcome constant."""
        if not has_any_provider():
            print("\n⚠️  No LLM provider configured.")
            print('Run "llmd setup" to configure a provider.\n')
            return NOT_CONFIGURED

        context = get_shell_context()
        print("Generating command...")
        try:
            generated = generate_command(
                query,
                context,
                history=self.sessions.get_context_summary(PROMPT_HISTORY_ENTRIES),
                tools=get_available_tools(),
            )
            print("Verifying command...")
            outcome = verify_command(generated.command, query, context)
        except ConfigurationError as e:
            _report_error(str(e))
            return NOT_CONFIGURED
        except GenerationError as e:
            _report_error(str(e))
            return FAILED

        if outcome.is_informational_response:
            message = (
                outcome.extracted_message
                or displayed_text(generated.command)
                or generated.explanation
            )
            print(f"\n\U0001f4ac {message}\n")
            self._record(query, generated, outcome.result)
            return INFORMATIONAL

        if outcome.needs_clarification:
            return self._handle_clarification(query, generated, outcome.result)

        return self._display_and_execute(query, generated, outcome.result)

    def run_loop(self, query: str) -> str:
        """Run queries until the user leaves the follow-up prompt empty.

        Returns the outcome of the last query.
        """
        result = self.run_query(query)
        while True:
            try:
                query = self.prompter.ask("Next request (leave empty to exit)")
            except PromptCancelled:
                break
            if not query:
                break
            result = self.run_query(query)
        return result

    # ---- branches ----

    def _handle_clarification(
        self, query: str, generated: GeneratedCommand, verification: VerificationResult
    ) -> str:
        print("\n⚠️  The command needs clarification:\n")
        print("Generated command:")
        print(f"  $ {generated.command}\n")
        print(
            f"Confidence: {verification.confidence}% "
            f"(threshold: {get_confidence_threshold()}%)\n"
        )

        issues = format_verification_issues(verification)
        if issues:
            print("Issues:")
            for issue in issues:
                print(f"  {issue}")
            print()

        print("Please clarify:")
        for question in format_suggested_questions(verification):
            print(f"  {question}")
        print()

        try:
            action = self.prompter.choose(
                "What would you like to do?",
                [
                    ("clarify", "Provide more details"),
                    ("run", "Run command anyway"),
                    ("cancel", "Cancel"),
                ],
                default="clarify",
            )
            if action == "run":
                return self._display_and_execute(query, generated, verification)
            if action == "clarify":
                details = self.prompter.ask("Add more details:")
                if details:
                    # The superseded candidate is not recorded
                    return self.run_query(f"{query}. Additional context: {details}")
        except PromptCancelled:
            pass

        print("\nCommand cancelled.\n")
        self._record(query, generated, verification)
        return CLARIFICATION_CANCELLED

    def _display_and_execute(
        self, query: str, generated: GeneratedCommand, verification: VerificationResult
    ) -> str:
        severity = check_severity(generated.command)
        print(render_command(generated, verification, severity, _provider_name()))

        try:
            if requires_confirmation(severity.level):
                if self.prompter.confirm(DANGER_CONFIRM_MESSAGE, default=False):
                    return self._execute(query, generated, verification)
                return self._cancel(query, generated, verification)

            action = self.prompter.choose(
                "Action:",
                [
                    ("run", "Run command"),
                    ("edit", "Edit command"),
                    ("cancel", "Cancel"),
                ],
                default="run",
            )
            if action == "run":
                return self._execute(query, generated, verification)
            if action == "edit":
                return self._edit_and_execute(query, generated, verification)
        except PromptCancelled:
            pass

        return self._cancel(query, generated, verification)

    def _edit_and_execute(
        self, query: str, generated: GeneratedCommand, verification: VerificationResult
    ) -> str:
        edited = self.prompter.ask("Edit command:", default=generated.command)
        if not edited:
            return self._cancel(query, generated, verification)

        # Verification is not repeated: the recorded confidence is the original's
        edited_command = GeneratedCommand(command=edited, explanation=generated.explanation)
        severity = check_severity(edited)
        if requires_confirmation(severity.level):
            try:
                confirmed = self.prompter.confirm(
                    f"⚠️  {severity.reason}. Continue?", default=False
                )
            except PromptCancelled:
                confirmed = False
            if not confirmed:
                return self._cancel(query, edited_command, verification)
        return self._execute(query, edited_command, verification)

    def _execute(
        self, query: str, generated: GeneratedCommand, verification: VerificationResult
    ) -> str:
        print("\nExecuting...\n")
        result = run_command(generated.command)

        if result.exit_code == 0:
            print("\n✓ Command completed successfully\n")
        else:
            print(f"\n⚠️  Command exited with code {result.exit_code}\n")

        self._record(query, generated, verification, result)
        self._show_update_hint()
        return EXECUTED

    def _show_update_hint(self) -> None:
        """Print the release hint the first time the check has an answer."""
        if self.version_check is None:
            return
        result = self.version_check.poll()
        if result is not None:
            self.version_check = None
            display_update_hint(result)

    def _cancel(
        self, query: str, generated: GeneratedCommand, verification: VerificationResult
    ) -> str:
        print("\nCommand cancelled.\n")
        self._record(query, generated, verification)
        return CANCELLED

    def _record(
        self,
        query: str,
        generated: GeneratedCommand,
        verification: VerificationResult,
        result: ExecutionResult | None = None,
    ) -> None:
        try:
            self.sessions.add_command(query, generated, verification, result)
        except OSError as e:
            logger.warning("Could not save session history: %s", e)


# =============================================================================
# Rendering
# =============================================================================


def render_command(
    generated: GeneratedCommand,
    verification: VerificationResult,
    severity: SeverityCheck,
    provider: str,
) -> str:
    """Text block shown before the run/edit/cancel decision."""
    lines = ["", "Generated Command", RULE, f"$ {generated.command}"]
    if generated.explanation:
        lines += ["", generated.explanation]
    lines += ["", f"Confidence: {verification.confidence}% • Provider: {provider}"]

    if severity.level != "safe":
        lines += ["", f"{severity_emoji(severity.level)} {severity.level.upper()}: {severity.reason}"]
        lines += [f"  • {warning}" for warning in severity.warnings if warning != severity.reason]

    lines.append(RULE)
    return "\n".join(lines)


def _provider_name() -> str:
    provider = get_active_provider_config()
    return provider.name if provider else "unknown"


def _report_error(message: str) -> None:
    print(f"\n✗ Error: {message}\n", file=sys.stderr)
    if looks_like_credential_error(message):
        print(f"{CREDENTIAL_HINT}\n", file=sys.stderr)
