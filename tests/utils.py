"""Shared test utilities for llmd tests.

Provides common mock classes and helper functions used across test modules.
"""

from unittest.mock import MagicMock, patch

from llmd.prompts import PromptCancelled


class MockChoice:
    """Mock LiteLLM choice object."""

    def __init__(self, content: str | None):
        self.message = MagicMock()
        self.message.content = content


class MockResponse:
    """Mock LiteLLM response object."""

    def __init__(self, content: str | None):
        self.choices = [MockChoice(content)]


def mock_providers(providers: list[str]):
    """Helper to mock API keys and model chain for specified providers.

    Args:
        providers: Provider names to mock as available, in chain order
                   (e.g., ["openai", "anthropic"]).

    Returns:
        A patch context manager for llmd.llm_client.

    Example:
        with mock_providers(["openai", "anthropic"]):
            text = chat([{"role": "user", "content": "hi"}])
    """
    provider_keys = {p: "test-key" for p in providers}
    default_models = {
        "openai": "openai/gpt-4o",
        "anthropic": "anthropic/claude-sonnet-4-20250514",
        "groq": "groq/llama-3.3-70b-versatile",
    }
    model_chain = [default_models[p] for p in providers]

    def mock_get_api_key(provider: str) -> str | None:
        return provider_keys.get(provider.lower())

    return patch.multiple(
        "llmd.llm_client",
        get_api_key=mock_get_api_key,
        get_model_chain=lambda: model_chain,
    )


class FakePrompter:
    """Scripted stand-in for llmd.prompts.TerminalPrompter.

    Answers are consumed in order. The string "<default>" answers with the
    question's default; "<cancel>" raises PromptCancelled. Every question
    asked is recorded in ``asked`` as (kind, message).
    """

    DEFAULT = "<default>"
    CANCEL = "<cancel>"

    def __init__(self, answers=None):
        self.answers = list(answers or [])
        self.asked: list[tuple[str, str]] = []

    def _next(self, kind: str, message: str, default):
        self.asked.append((kind, message))
        if not self.answers:
            raise AssertionError(f"Unexpected {kind} prompt: {message}")
        answer = self.answers.pop(0)
        if answer == self.CANCEL:
            raise PromptCancelled()
        if answer == self.DEFAULT:
            return default
        return answer

    def confirm(self, message: str, default: bool = False) -> bool:
        return self._next("confirm", message, default)

    def choose(self, message: str, choices, default: str) -> str:
        return self._next("choose", message, default)

    def ask(self, message: str, default: str = "", secret: bool = False) -> str:
        return self._next("ask", message, default)
