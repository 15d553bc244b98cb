"""llmd CLI entry point.

Provides the Typer CLI: ``llmd <query...>`` runs the pipeline, the
subcommands manage configuration, the tool inventory and updates.
"""

import logging
import subprocess
import sys
from datetime import datetime
from typing import List, NoReturn, Optional

import typer

from llmd import __version__
from llmd.config import (
    get_available_providers,
    get_config_path,
    get_confidence_threshold,
    list_providers,
    remove_provider,
    reset_config,
    set_confidence_threshold,
    set_default_provider,
    set_provider,
    set_provider_model,
)
from llmd.constants import (
    API_KEY_URLS,
    DEFAULT_CONFIDENCE_THRESHOLD,
    DEFAULT_PROVIDER,
    PACKAGE_NAME,
    PROVIDER_DISPLAY_NAMES,
    PROVIDER_MODELS,
    PROVIDERS,
)
from llmd.prompts import PromptCancelled, TerminalPrompter
from llmd.runner import ERROR_OUTCOMES, QueryRunner
from llmd.session import SessionManager
from llmd.tools import (
    get_available_tools,
    get_scan_date,
    get_tools_path,
    group_by_category,
    has_scanned_tools,
    save_available_tools,
    scan_cli_tools,
)
from llmd.version import BackgroundVersionCheck, check_for_updates, display_update_hint

app = typer.Typer(
    name="llmd",
    help="Natural language to shell commands using AI",
    no_args_is_help=True,
)
config_app = typer.Typer(help="Manage configuration", no_args_is_help=True)
update_app = typer.Typer(help="Check for and install updates")
app.add_typer(config_app, name="config")
app.add_typer(update_app, name="update")

# Global options accepted before the query or subcommand
_GLOBAL_OPTIONS = {"--debug", "--version", "-v", "--help"}

CUSTOM_MODEL = "__custom__"


def version_callback(value: bool) -> None:
    """Display version and configured providers, then exit."""
    if value:
        print(f"llmd version {__version__}")
        providers = get_available_providers()
        if providers:
            print(f"Configured providers: {', '.join(providers)}")
        else:
            print('Configured providers: none (run "llmd setup")')
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    debug: bool = typer.Option(False, "--debug", help="Log debug output to stderr"),
) -> None:
    """llmd: talk to your terminal."""
    if debug:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


@app.command(context_settings={"ignore_unknown_options": True})
def run(
    query: List[str] = typer.Argument(..., help="What you want to do, in plain words"),
    loop: bool = typer.Option(False, "--loop", help="Ask for another request after each run"),
) -> None:
    """Translate a request into a shell command, check it and run it."""
    text = " ".join(query).strip()
    if not text:
        print("\nError: empty request\n", file=sys.stderr)
        raise typer.Exit(1)

    runner = QueryRunner(
        TerminalPrompter(),
        SessionManager(),
        version_check=BackgroundVersionCheck().start(),
    )
    outcome = runner.run_loop(text) if loop else runner.run_query(text)
    if outcome in ERROR_OUTCOMES:
        raise typer.Exit(1)


# =============================================================================
# Setup wizard
# =============================================================================


def _ask_api_key(prompter: TerminalPrompter, provider: str) -> str:
    while True:
        api_key = prompter.ask(f"Enter your {PROVIDER_DISPLAY_NAMES[provider]} API key", secret=True)
        if api_key:
            return api_key
        print("API key is required")


def _choose_model(prompter: TerminalPrompter, provider: str) -> str:
    models = PROVIDER_MODELS.get(provider, [])
    choice = prompter.choose(
        "Select your preferred model:",
        [(m, m) for m in models] + [(CUSTOM_MODEL, "Enter custom model name...")],
        default=models[0] if models else CUSTOM_MODEL,
    )
    while choice == CUSTOM_MODEL:
        custom = prompter.ask("Enter the model name")
        if custom:
            return custom
        print("Model name is required")
    return choice


def _ask_threshold(prompter: TerminalPrompter) -> int:
    while True:
        raw = prompter.ask(
            "Confidence threshold (0-100, commands below this ask for clarification)",
            default=str(DEFAULT_CONFIDENCE_THRESHOLD),
        )
        if raw.isdigit() and 0 <= int(raw) <= 100:
            return int(raw)
        print("Threshold must be a number between 0 and 100")


def _configure_provider(prompter: TerminalPrompter, provider: str) -> None:
    print(f"\nGet your API key at: {API_KEY_URLS[provider]}\n")
    api_key = _ask_api_key(prompter, provider)
    model = _choose_model(prompter, provider)
    set_provider(provider, api_key, model)


@app.command()
def setup() -> None:
    """Interactive setup wizard."""
    prompter = TerminalPrompter()
    print("\n\U0001f680 Welcome to llmd Setup\n")
    print("Let's configure your LLM provider to get started.\n")

    try:
        provider = prompter.choose(
            "Select your preferred LLM provider:",
            [(p, PROVIDER_DISPLAY_NAMES[p]) for p in PROVIDERS],
            default=DEFAULT_PROVIDER,
        )
        _configure_provider(prompter, provider)
        set_default_provider(provider)
        set_confidence_threshold(_ask_threshold(prompter))

        print("\n✓ Configuration saved successfully!\n")
        print(f"Config file: {get_config_path()}\n")

        while prompter.confirm("Would you like to add another provider?", default=False):
            others = [p for p in PROVIDERS if p != provider]
            extra = prompter.choose(
                "Select provider:",
                [(p, PROVIDER_DISPLAY_NAMES[p]) for p in others],
                default=others[0],
            )
            _configure_provider(prompter, extra)
            print(f"\n✓ {extra} configured\n")

        rescan = has_scanned_tools()
        question = (
            "Would you like to rescan your system for available CLI tools?"
            if rescan
            else "Would you like to scan your system for available CLI tools?"
        )
        if prompter.confirm(question, default=not rescan):
            _scan_and_report()
    except PromptCancelled:
        print("\nSetup cancelled.\n")
        raise typer.Exit(1)

    print("\n\U0001f389 Setup complete!\n")
    print("You can now use llmd:")
    print('  llmd "your natural language command"\n')
    print("Examples:")
    print('  llmd "list all files sorted by size"')
    print('  llmd "create a new git branch called feature-auth"')
    print('  llmd "find all Python files containing print"\n')


# =============================================================================
# Config commands
# =============================================================================


def _fail(message: str, hint: str | None = None) -> NoReturn:
    print(f"\nError: {message}", file=sys.stderr)
    if hint:
        print(hint, file=sys.stderr)
    print(file=sys.stderr)
    raise typer.Exit(1)


@config_app.command("list")
def config_list() -> None:
    """List all providers and their status."""
    print("\nConfigured Providers:\n")
    for provider in list_providers():
        status = "✓" if provider["configured"] else "○"
        default_badge = " (default)" if provider["is_default"] else ""
        print(f"  {status} {provider['name']} [{provider['model']}]{default_badge}")
    print(f"\nConfidence threshold: {get_confidence_threshold()}%")
    print(f"Config file: {get_config_path()}\n")


@config_app.command("set")
def config_set(
    provider: str = typer.Argument(..., help="Provider name"),
    api_key: Optional[str] = typer.Argument(None, help="API key (prompted if omitted)"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model name"),
) -> None:
    """Configure a provider with an API key."""
    name = provider.strip().lower()
    if name not in PROVIDERS:
        _fail(f"Invalid provider: {provider}", f"Valid providers: {', '.join(PROVIDERS)}")

    prompter = TerminalPrompter()
    try:
        key = api_key or _ask_api_key(prompter, name)
        chosen = model or _choose_model(prompter, name)
    except PromptCancelled:
        print("\nCancelled.\n")
        raise typer.Exit(1)

    if chosen not in PROVIDER_MODELS.get(name, []):
        print(f"\nWarning: {chosen} is not in the known models list. Proceeding anyway.")
    try:
        set_provider(name, key, chosen)
    except ValueError as e:
        _fail(str(e))
    print(f"\n✓ {name} configured successfully!\n")


@config_app.command("default")
def config_default(provider: str = typer.Argument(..., help="Provider name")) -> None:
    """Set the default provider."""
    try:
        set_default_provider(provider)
    except ValueError as e:
        _fail(str(e), f"Run: llmd config set {provider}")
    print(f"\n✓ Default provider set to {provider.strip().lower()}\n")


@config_app.command("threshold")
def config_threshold(value: str = typer.Argument(..., help="Confidence threshold (0-100)")) -> None:
    """Set the confidence threshold."""
    try:
        threshold = int(value)
        set_confidence_threshold(threshold)
    except ValueError:
        _fail("Threshold must be a number between 0 and 100")
    print(f"\n✓ Confidence threshold set to {threshold}%\n")


@config_app.command("model")
def config_model(
    provider: str = typer.Argument(..., help="Provider name"),
    model: str = typer.Argument(..., help="Model name"),
) -> None:
    """Set the model for a configured provider."""
    name = provider.strip().lower()
    known = PROVIDER_MODELS.get(name, [])
    try:
        set_provider_model(name, model)
    except ValueError as e:
        _fail(str(e), f"Run: llmd config set {provider}")
    if model not in known:
        print(f"\nWarning: {model} is not in the known models list.")
        print(f"Known models: {', '.join(known)}")
    print(f"\n✓ Model for {name} set to {model}\n")


@config_app.command("remove")
def config_remove(provider: str = typer.Argument(..., help="Provider name")) -> None:
    """Remove a provider's stored API key and model."""
    try:
        remove_provider(provider)
    except ValueError as e:
        _fail(str(e))
    print(f"\n✓ {provider.strip().lower()} removed from the config file\n")


@config_app.command("path")
def config_path() -> None:
    """Show the config file path."""
    print(f"\nConfig file: {get_config_path()}\n")


@config_app.command("reset")
def config_reset() -> None:
    """Reset configuration to defaults."""
    reset_config()
    print("\n✓ Configuration reset to defaults\n")


# =============================================================================
# Update commands
# =============================================================================


@update_app.callback(invoke_without_command=True)
def update(ctx: typer.Context) -> None:
    """Check for and install updates (defaults to check)."""
    if ctx.invoked_subcommand is None:
        update_check()


@update_app.command("check")
def update_check() -> None:
    """Check if a newer version is available."""
    result = check_for_updates(force=True)
    print("\n\U0001f4e6 llmd Version Info\n")
    print(f"Current version: v{result.current_version}")

    if result.error and not result.latest_version:
        print(f"\n⚠️  Could not check for updates: {result.error}")
        print("Check your internet connection and try again.\n")
        return

    print(f"Latest version:  v{result.latest_version}")
    if result.has_update:
        display_update_hint(result)
    else:
        print("\n✓ You are on the latest version!\n")


@update_app.command("install")
def update_install() -> None:
    """Install the latest version with pip."""
    result = check_for_updates(force=True)

    if result.error and not result.latest_version:
        print(f"\n⚠️  Could not check for updates: {result.error}")
        print("Check your internet connection and try again.\n")
        return

    if not result.has_update:
        print("\n✓ You are already on the latest version!")
        print(f"  Current: v{result.current_version}\n")
        return

    print(f"\n\U0001f4e6 Updating llmd: v{result.current_version} → v{result.latest_version}\n")
    completed = subprocess.run(
        [sys.executable, "-m", "pip", "install", "--upgrade", PACKAGE_NAME],
        check=False,
    )
    if completed.returncode != 0:
        _fail(
            f"pip exited with code {completed.returncode}",
            f"Try manually: pip install --upgrade {PACKAGE_NAME}",
        )
    print(f"\n✓ Updated to v{result.latest_version}\n")


# =============================================================================
# Tool inventory
# =============================================================================


def _scan_and_report() -> None:
    print("\n\U0001f50d Scanning System CLI Tools\n")
    print("This helps llmd generate more accurate commands for your system.\n")

    tools = scan_cli_tools()
    save_available_tools(tools)
    print(f"Found {len(tools)} CLI tools available on your system\n")

    print("Available tools by category:\n")
    for category, category_tools in sorted(group_by_category(tools).items()):
        print(f"  {category}: {', '.join(t.name for t in category_tools)}")

    print("\n✓ Tool information saved")
    print(f"  Tools file: {get_tools_path()}\n")


@app.command()
def scan() -> None:
    """Scan the system for available CLI tools."""
    _scan_and_report()


@app.command()
def tools() -> None:
    """List scanned CLI tools."""
    available = get_available_tools()
    if not available:
        print("\n⚠️  No CLI tools scanned yet.")
        print('Run "llmd scan" to scan your system for available tools.\n')
        return

    scan_date = get_scan_date()
    print(f"\n\U0001f527 Available CLI Tools ({len(available)} found)\n")
    if scan_date is not None:
        print(f"Last scanned: {datetime.fromtimestamp(scan_date):%Y-%m-%d %H:%M}\n")

    for category, category_tools in sorted(group_by_category(available).items()):
        print(f"  {category}:")
        print(f"    {', '.join(t.name for t in category_tools)}")
    print('\nRun "llmd scan" to refresh the list.\n')


# =============================================================================
# Console script
# =============================================================================


def route_args(args: list[str]) -> list[str]:
    """Insert the ``run`` subcommand when argv starts with a query.

    ``llmd list big files`` becomes ``llmd run list big files``; global
    options before the query are kept in front.
    """
    subcommands = {cmd.name or cmd.callback.__name__ for cmd in app.registered_commands}
    subcommands |= {group.name for group in app.registered_groups}

    idx = 0
    while idx < len(args) and args[idx] in _GLOBAL_OPTIONS:
        idx += 1
    rest = args[idx:]
    if not rest or rest[0] in subcommands:
        return args
    return args[:idx] + ["run"] + rest


def cli() -> None:
    app(args=route_args(sys.argv[1:]), prog_name="llmd")


if __name__ == "__main__":
    cli()
