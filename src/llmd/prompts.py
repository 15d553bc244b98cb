"""Interactive prompt module.

The orchestrator only needs three questions: yes/no, pick one of a list,
and a free-text line. TerminalPrompter answers them with typer prompts;
tests substitute a scripted object with the same three methods.
"""

import typer


class PromptCancelled(Exception):
    """Raised when the user aborts a prompt with Ctrl+C or Ctrl+D."""


class TerminalPrompter:
    """Prompts on the controlling terminal via typer."""

    def confirm(self, message: str, default: bool = False) -> bool:
        try:
            return typer.confirm(message, default=default)
        except typer.Abort as e:
            raise PromptCancelled() from e

    def choose(self, message: str, choices: list[tuple[str, str]], default: str) -> str:
        """Ask for one of ``choices`` (value, label) by number.

        Re-asks until a listed number is entered; an empty answer picks
        ``default``.
        """
        values = [value for value, _ in choices]
        default_index = values.index(default) + 1 if default in values else 1

        typer.echo(message)
        for idx, (_, label) in enumerate(choices, 1):
            typer.echo(f"  {idx}) {label}")

        while True:
            try:
                answer = typer.prompt("Select", default=str(default_index))
            except typer.Abort as e:
                raise PromptCancelled() from e
            answer = answer.strip()
            if answer.isdigit() and 1 <= int(answer) <= len(choices):
                return values[int(answer) - 1]
            typer.echo(f"Please enter a number between 1 and {len(choices)}.")

    def ask(self, message: str, default: str = "", secret: bool = False) -> str:
        """Free-text answer, stripped. ``secret`` hides the typed text."""
        try:
            answer = typer.prompt(
                message,
                default=default,
                show_default=bool(default) and not secret,
                hide_input=secret,
            )
        except typer.Abort as e:
            raise PromptCancelled() from e
        return answer.strip()
