"""Tests for main module.

Tests the CLI commands through typer's CliRunner and the argv routing
used by the console script.
"""

import pytest
from typer.testing import CliRunner

from llmd import __version__
from llmd.config import (
    get_api_key,
    get_confidence_threshold,
    get_default_provider,
    get_provider_model,
    set_provider,
)
from llmd.main import app, route_args
from llmd.models import ToolInfo
from llmd.runner import CANCELLED, EXECUTED, FAILED, NOT_CONFIGURED
from llmd.tools import get_available_tools, save_available_tools
from llmd.version import VersionCheckResult

runner = CliRunner()


class TestRouteArgs:
    """Tests for route_args function."""

    def test_query_gets_run_inserted(self):
        assert route_args(["list", "big", "files"]) == ["run", "list", "big", "files"]

    def test_subcommands_untouched(self):
        assert route_args(["config", "list"]) == ["config", "list"]
        assert route_args(["setup"]) == ["setup"]
        assert route_args(["update", "check"]) == ["update", "check"]
        assert route_args(["run", "ls"]) == ["run", "ls"]

    def test_global_options_stay_in_front(self):
        assert route_args(["--debug", "show", "disk"]) == ["--debug", "run", "show", "disk"]
        assert route_args(["--debug", "scan"]) == ["--debug", "scan"]

    def test_empty_and_options_only(self):
        assert route_args([]) == []
        assert route_args(["--version"]) == ["--version"]

    def test_query_with_dashes_is_routed(self):
        assert route_args(["delete", "-rf", "build"]) == ["run", "delete", "-rf", "build"]


class TestRunCommand:
    """Tests for the run command wiring."""

    @pytest.fixture
    def query_runner(self, mocker):
        mocker.patch("llmd.main.BackgroundVersionCheck")
        mocker.patch("llmd.main.SessionManager")
        mocker.patch("llmd.main.TerminalPrompter")
        runner_cls = mocker.patch("llmd.main.QueryRunner")
        return runner_cls.return_value

    def test_joins_query_words(self, query_runner):
        query_runner.run_query.return_value = EXECUTED

        result = runner.invoke(app, ["run", "list", "big", "files"])

        assert result.exit_code == 0
        query_runner.run_query.assert_called_once_with("list big files")

    @pytest.mark.parametrize("outcome,exit_code", [
        (EXECUTED, 0),
        (CANCELLED, 0),
        (FAILED, 1),
        (NOT_CONFIGURED, 1),
    ])
    def test_exit_code_follows_outcome(self, query_runner, outcome, exit_code):
        query_runner.run_query.return_value = outcome
        result = runner.invoke(app, ["run", "ls"])
        assert result.exit_code == exit_code

    def test_loop_flag(self, query_runner):
        query_runner.run_loop.return_value = EXECUTED

        result = runner.invoke(app, ["run", "--loop", "ls"])

        assert result.exit_code == 0
        query_runner.run_loop.assert_called_once_with("ls")
        query_runner.run_query.assert_not_called()

    def test_blank_query_rejected(self, query_runner):
        result = runner.invoke(app, ["run", "  "])
        assert result.exit_code == 1
        query_runner.run_query.assert_not_called()


class TestVersionOption:
    def test_shows_version_and_providers(self, openai_key):
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert f"llmd version {__version__}" in result.output
        assert "Configured providers: openai" in result.output

    def test_no_providers(self):
        result = runner.invoke(app, ["-v"])
        assert "none" in result.output


class TestConfigCommands:
    """Tests for the config sub-commands."""

    def test_list(self, openai_key):
        result = runner.invoke(app, ["config", "list"])

        assert result.exit_code == 0
        assert "✓ openai [gpt-4o] (default)" in result.output
        assert "○ anthropic" in result.output
        assert "Confidence threshold: 70%" in result.output

    def test_set_with_key_and_model(self):
        result = runner.invoke(app, ["config", "set", "groq", "gsk-1", "-m", "llama-3.1-8b-instant"])

        assert result.exit_code == 0
        assert get_api_key("groq") == "gsk-1"
        assert get_provider_model("groq") == "llama-3.1-8b-instant"

    def test_set_prompts_for_missing_values(self):
        result = runner.invoke(app, ["config", "set", "anthropic"], input="sk-ant\n\n")

        assert result.exit_code == 0, result.output
        assert get_api_key("anthropic") == "sk-ant"
        assert get_provider_model("anthropic") == "claude-sonnet-4-20250514"

    def test_set_unknown_model_warns(self):
        result = runner.invoke(app, ["config", "set", "openai", "sk", "--model", "gpt-9"])

        assert result.exit_code == 0
        assert "not in the known models list" in result.output
        assert get_provider_model("openai") == "gpt-9"

    def test_set_invalid_provider(self):
        result = runner.invoke(app, ["config", "set", "skynet", "key"])

        assert result.exit_code == 1
        assert "Invalid provider" in result.output

    def test_default(self):
        set_provider("groq", "g")

        result = runner.invoke(app, ["config", "default", "groq"])

        assert result.exit_code == 0
        assert get_default_provider() == "groq"

    def test_default_requires_configured_provider(self):
        result = runner.invoke(app, ["config", "default", "anthropic"])

        assert result.exit_code == 1
        assert "llmd config set anthropic" in result.output

    @pytest.mark.parametrize("value", ["abc", "101", "-5"])
    def test_threshold_rejects_invalid(self, value):
        result = runner.invoke(app, ["config", "threshold", "--", value])
        assert result.exit_code == 1
        assert get_confidence_threshold() == 70

    def test_threshold(self):
        result = runner.invoke(app, ["config", "threshold", "85"])

        assert result.exit_code == 0
        assert get_confidence_threshold() == 85

    def test_model(self):
        set_provider("openai", "o")

        result = runner.invoke(app, ["config", "model", "openai", "gpt-4o-mini"])

        assert result.exit_code == 0
        assert get_provider_model("openai") == "gpt-4o-mini"

    def test_remove(self):
        set_provider("openai", "o")

        result = runner.invoke(app, ["config", "remove", "openai"])

        assert result.exit_code == 0
        assert get_api_key("openai") is None

    def test_path(self, isolated_home):
        result = runner.invoke(app, ["config", "path"])
        assert str(isolated_home) in result.output

    def test_reset(self):
        set_provider("openai", "o")

        result = runner.invoke(app, ["config", "reset"])

        assert result.exit_code == 0
        assert get_api_key("openai") is None


class TestSetup:
    def test_wizard_saves_provider_and_threshold(self, mocker):
        mocker.patch("llmd.main.scan_cli_tools", return_value=[])
        # provider 2 (anthropic), key, model default, threshold, no more providers, no scan
        answers = "2\nsk-ant\n\n80\nn\nn\n"

        result = runner.invoke(app, ["setup"], input=answers)

        assert result.exit_code == 0, result.output
        assert get_api_key("anthropic") == "sk-ant"
        assert get_default_provider() == "anthropic"
        assert get_confidence_threshold() == 80
        assert "Setup complete" in result.output

    def test_wizard_cancel(self):
        result = runner.invoke(app, ["setup"], input="")

        assert result.exit_code == 1
        assert "Setup cancelled" in result.output


class TestToolCommands:
    def test_scan_saves_inventory(self, mocker):
        mocker.patch(
            "llmd.main.scan_cli_tools",
            return_value=[ToolInfo(name="git", path="/usr/bin/git", category="Version Control")],
        )

        result = runner.invoke(app, ["scan"])

        assert result.exit_code == 0
        assert "Found 1 CLI tools" in result.output
        assert "Version Control: git" in result.output
        assert [t.name for t in get_available_tools()] == ["git"]

    def test_tools_before_scan(self):
        result = runner.invoke(app, ["tools"])
        assert "No CLI tools scanned yet" in result.output

    def test_tools_lists_by_category(self):
        save_available_tools([
            ToolInfo(name="jq", path="/usr/bin/jq", category="Text Processing"),
            ToolInfo(name="rg", path="/usr/bin/rg", category="Text Processing"),
        ])

        result = runner.invoke(app, ["tools"])

        assert "(2 found)" in result.output
        assert "jq, rg" in result.output
        assert "Last scanned:" in result.output


class TestUpdateCommands:
    def test_check_reports_update(self, mocker):
        mocker.patch(
            "llmd.main.check_for_updates",
            return_value=VersionCheckResult("0.3.0", "0.4.0", has_update=True),
        )

        result = runner.invoke(app, ["update", "check"])

        assert "Latest version:  v0.4.0" in result.output
        assert "Update available" in result.output

    def test_bare_update_runs_check(self, mocker):
        check = mocker.patch(
            "llmd.main.check_for_updates",
            return_value=VersionCheckResult("0.3.0", "0.3.0"),
        )

        result = runner.invoke(app, ["update"])

        assert "latest version" in result.output
        check.assert_called_once_with(force=True)

    def test_check_reports_error(self, mocker):
        mocker.patch(
            "llmd.main.check_for_updates",
            return_value=VersionCheckResult("0.3.0", error="HTTP 503"),
        )

        result = runner.invoke(app, ["update", "check"])

        assert "Could not check for updates: HTTP 503" in result.output

    def test_install_runs_pip(self, mocker):
        mocker.patch(
            "llmd.main.check_for_updates",
            return_value=VersionCheckResult("0.3.0", "0.4.0", has_update=True),
        )
        pip = mocker.patch("llmd.main.subprocess.run")
        pip.return_value.returncode = 0

        result = runner.invoke(app, ["update", "install"])

        assert result.exit_code == 0
        argv = pip.call_args.args[0]
        assert argv[1:] == ["-m", "pip", "install", "--upgrade", "llmd"]

    def test_install_skips_when_current(self, mocker):
        mocker.patch(
            "llmd.main.check_for_updates",
            return_value=VersionCheckResult("0.4.0", "0.4.0"),
        )
        pip = mocker.patch("llmd.main.subprocess.run")

        result = runner.invoke(app, ["update", "install"])

        assert "already on the latest version" in result.output
        pip.assert_not_called()

    def test_install_failure_exits_nonzero(self, mocker):
        mocker.patch(
            "llmd.main.check_for_updates",
            return_value=VersionCheckResult("0.3.0", "0.4.0", has_update=True),
        )
        mocker.patch("llmd.main.subprocess.run").return_value.returncode = 2

        result = runner.invoke(app, ["update", "install"])

        assert result.exit_code == 1
