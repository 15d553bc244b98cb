"""Data records passed between the pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class GeneratedCommand:
    """A command candidate extracted from model output.

    Never mutated: an edit produces a new value.
    """

    command: str
    explanation: str = ""


@dataclass
class VerificationResult:
    """Structured verdict returned by the judgment prompt."""

    confidence: int
    is_correct: bool
    issues: list[str] = field(default_factory=list)
    suggested_questions: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SeverityCheck:
    level: str
    reason: str
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class InformationalCheck:
    is_informational: bool
    message: str | None = None


@dataclass
class VerificationOutcome:
    """Result of the verification judge for one command candidate."""

    passed: bool
    result: VerificationResult
    needs_clarification: bool
    is_informational_response: bool
    extracted_message: str | None = None


@dataclass(frozen=True)
class ExecutionResult:
    exit_code: int
    stdout: str = ""
    stderr: str = ""


@dataclass(frozen=True)
class ShellContext:
    cwd: str
    shell: str
    os: str


@dataclass(frozen=True)
class ToolInfo:
    name: str
    path: str
    category: str = "Other"


@dataclass(frozen=True)
class ProviderConfig:
    """Credentials and model for one configured provider."""

    name: str
    model: str
    api_key: str

    @property
    def litellm_model(self) -> str:
        """Model string in litellm's provider/model-name format."""
        return f"{self.name}/{self.model}"
