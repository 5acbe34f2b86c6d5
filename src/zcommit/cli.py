"""
Command line interface for zcommit.

This module defines the ``main`` click group used as the entry point of
the ``zcommit`` command. Invoked without a subcommand it runs the commit
flow: repository checks, credential resolution, staging, diff
collection, message generation, selection, and the commit itself. The
``config`` subcommand manages the stored API key.

Exit codes: 0 on success or when there is nothing to do, 1 on any
failure, 130 when interrupted with Ctrl+C and 143 on SIGTERM.
"""

from __future__ import annotations

import fnmatch
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List

import click

from zcommit import __version__
from zcommit.config.loader import (
    API_KEY_ENV_VAR,
    ConfigError,
    CredentialError,
    delete_api_key,
    get_api_key,
    get_config_path,
    get_key_source,
    load_config,
    mask_key,
    set_api_key,
)
from zcommit.diff.diff_bundler import DiffBundle
from zcommit.llm.cerebras_client import DEFAULT_MODEL, CerebrasClient, ErrorKind, LLMError
from zcommit.llm.commit_message_generator import CommitMessageGenerator
from zcommit.ui.console import (
    Spinner,
    banner,
    bold,
    cyan,
    dim,
    echo,
    green,
    print_error,
    print_hint,
    print_info,
    print_success,
    print_warning,
    red,
    yellow,
)
from zcommit.ui.prompts import ask, ask_secret, confirm
from zcommit.ui.selector import Selector
from zcommit.ui.terminal import terminal
from zcommit.vcs.git_client import (
    CommitRejectedError,
    CommitRejection,
    ConflictInProgressError,
    GitClient,
    GitError,
    NotARepositoryError,
    RepoStatus,
    StagingError,
)

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------
EXIT_SUCCESS = 0
EXIT_GENERIC_ERROR = 1
EXIT_INTERRUPTED = 130
# 143 (SIGTERM) is raised by the terminal guard, see zcommit.ui.terminal

SIGNUP_URL = "https://cloud.cerebras.ai"
HISTORY_COUNT = 5

HELP_EPILOG = f"""
\b
NAVIGATION
  Up/Down or k/j   Move selection
  1/2/3            Jump to option
  Enter            Confirm and commit
  Ctrl+C           Cancel and exit

\b
CONFIGURATION
  The API key is read from (in priority order):
    1. the {API_KEY_ENV_VAR} environment variable
    2. ~/.zcommit/config.json
  Get a free API key at {SIGNUP_URL}

\b
ENVIRONMENT
  {API_KEY_ENV_VAR}   Your Cerebras API key
  NO_COLOR           Disable all colors
  FORCE_COLOR        Force colors even when output is not a terminal
"""


def _configure_logging(verbose: bool) -> None:
    # User-facing failures are printed by the CLI itself; log records are
    # only shown with --verbose.
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.CRITICAL,
        format="%(levelname)s: %(message)s",
        force=True,
    )


def _run_guarded(step: Callable[[], int]) -> None:
    """Run ``step`` with the terminal guard installed and map its outcome to an exit code."""
    terminal.install()
    try:
        code = step()
    except click.exceptions.Exit:
        raise
    except (KeyboardInterrupt, click.Abort):
        terminal.restore()
        echo(dim("\n  Interrupted.\n"))
        raise click.exceptions.Exit(EXIT_INTERRUPTED)
    except Exception as exc:
        terminal.restore()
        logger.debug("Unhandled error", exc_info=True)
        print_error(f"Unexpected error: {exc}")
        raise click.exceptions.Exit(EXIT_GENERIC_ERROR)
    finally:
        terminal.restore()
    raise click.exceptions.Exit(code)


# ---------------------------------------------------------------------------
# Commit flow steps
# ---------------------------------------------------------------------------

def open_repository(cwd: Path) -> GitClient:
    """Return a client for the repository at ``cwd`` with no operation in progress."""
    try:
        client = GitClient.open(cwd)
        client.ensure_no_conflict()
    except NotARepositoryError:
        print_error("Not a git repository.")
        print_hint("Run this command inside a git project.\n")
        raise click.exceptions.Exit(EXIT_GENERIC_ERROR)
    except ConflictInProgressError as exc:
        print_error(f"A {exc.state.value} is in progress.")
        print_hint(f"Resolve the {exc.state.value} before committing.\n")
        raise click.exceptions.Exit(EXIT_GENERIC_ERROR)
    except GitError as exc:
        print_error(f"Git error: {exc}")
        raise click.exceptions.Exit(EXIT_GENERIC_ERROR)
    return client


def resolve_api_key(yes: bool = False) -> str:
    """Return the API key, prompting for one when none is configured.

    Raises
    ------
    CredentialError
        If the user enters an empty key.
    """
    api_key = get_api_key()
    if api_key:
        return api_key

    print_warning("No Cerebras API key found.\n")
    echo(dim("  Get a free key at: ") + cyan(SIGNUP_URL))
    echo()
    api_key = ask_secret(bold("  Enter your Cerebras API key: "))
    if not api_key:
        raise CredentialError("API key is required.")
    if not yes and confirm(dim("  Save key for future use?")):
        path = set_api_key(api_key)
        print_success(f"Key saved to {path}\n")
    echo()
    return api_key


def match_paths(requested: List[str], changed: List[str]) -> List[str]:
    """Return the changed paths selected by the user's tokens.

    A token selects a path it equals, a directory containing it, or a
    glob pattern matching it.
    """
    selected: List[str] = []
    for token in requested:
        prefix = token.rstrip("/") + "/"
        matches = [
            path for path in changed
            if path == token or path.startswith(prefix) or fnmatch.fnmatch(path, token)
        ]
        if not matches:
            print_warning(f"'{token}' not in changed files, skipping.")
        for path in matches:
            if path not in selected:
                selected.append(path)
    return selected


def _show_staged(status: RepoStatus) -> None:
    echo(dim("  Using already-staged changes:"))
    for entry in status.staged:
        icon = green("+") if entry.is_new else yellow("~")
        echo(f"    {icon} {entry.path}")
    not_staged = len(status.unstaged) + len(status.untracked)
    if not_staged:
        echo(dim(f"\n  Note: {not_staged} other changed file(s) not staged."))
    echo()


def stage_changes(client: GitClient, status: RepoStatus, stage_everything: bool, yes: bool) -> None:
    """Make sure the index holds something to commit.

    Raises
    ------
    StagingError
        If the index is still empty after staging.
    """
    if client.has_staged_changes():
        _show_staged(status)
        return

    changed = [entry.path for entry in status.unstaged + status.untracked]
    echo(bold("  Changed files:"))
    for entry in status.unstaged + status.untracked:
        icon = green("+ new") if entry.is_new else yellow("~ mod")
        echo(f"    {icon}  {entry.path}")
    echo()

    if stage_everything or yes:
        client.stage_all()
        print_success("All changes staged.\n")
    else:
        choice = Selector().select(
            bold("  How would you like to stage?"),
            ["Stage all changes  (git add -A)", "Select specific files"],
        )
        if choice == 0:
            client.stage_all()
            print_success("All changes staged.\n")
        else:
            answer = ask(bold("  Enter file paths ") + dim("(space-separated)") + bold(": "))
            selected = match_paths(answer.split(), changed)
            if not selected:
                raise StagingError("No valid files selected.")
            client.stage_files(selected)
            print_success(f"Staged {len(selected)} file(s).\n")

    if not client.has_staged_changes():
        raise StagingError("No changes in the index after staging.")


def collect_diff(client: GitClient) -> DiffBundle:
    bundle = client.get_staged_diff() if client.has_head() else DiffBundle("", "")
    if bundle.is_empty:
        # Initial commit: there is no HEAD to diff against
        bundle = client.get_staged_diff_for_empty_repo()
    return bundle


def _llm_settings() -> Dict[str, Any]:
    try:
        config = load_config()
    except ConfigError as exc:
        print_warning(f"Ignoring configuration: {exc}")
        return {}
    settings: Dict[str, Any] = {"model": config.get("model", DEFAULT_MODEL)}
    if "baseUrl" in config:
        settings["base_url"] = config["baseUrl"]
    if "requestTimeout" in config:
        settings["request_timeout"] = float(config["requestTimeout"])
    if "maxTokens" in config:
        settings["max_tokens"] = config["maxTokens"]
    if "temperature" in config:
        settings["temperature"] = float(config["temperature"])
    return settings


def report_llm_error(exc: LLMError) -> None:
    """Print what went wrong with the request and how to fix it."""
    if exc.kind is ErrorKind.UNAUTHORIZED:
        print_error("Invalid API key.")
        print_hint("Run zcommit config to update it.\n")
    elif exc.kind is ErrorKind.RATE_LIMITED:
        print_error("Rate limited by the API.")
        print_hint("Please wait a moment and try again.\n")
    elif exc.kind is ErrorKind.NETWORK:
        print_error(f"Network error: {exc}")
        print_hint("Check your internet connection.\n")
    elif exc.kind is ErrorKind.INVALID_REQUEST:
        print_error(f"The request was rejected: {exc}")
        print_hint("Try staging fewer changes at once.\n")
    elif exc.kind is ErrorKind.PARSE:
        print_error("Could not extract commit messages from the response.")
        print_hint("Run zcommit again to retry.\n")
    else:
        print_error(f"Error: {exc}")
        print_hint("The API may be temporarily unavailable; try again shortly.\n")


def generate_messages(api_key: str, bundle: DiffBundle, history: str) -> List[str]:
    generator = CommitMessageGenerator(CerebrasClient(api_key=api_key, **_llm_settings()))
    with Spinner(bold("Generating commit messages with AI...")) as spinner:
        try:
            messages = generator.generate_messages(bundle, history)
        except LLMError as exc:
            spinner.stop(red("  ✖ Failed to generate messages."))
            report_llm_error(exc)
            raise click.exceptions.Exit(EXIT_GENERIC_ERROR)
        count = len(messages)
        spinner.stop(green(f"  ✔ Generated {count} commit message suggestion{'s' if count != 1 else ''}.\n"))
    return messages


def report_commit_rejection(exc: CommitRejectedError) -> None:
    if exc.reason is CommitRejection.HOOK:
        print_error("A commit hook rejected the commit.")
        print_hint(exc.detail)
        print_hint("Fix the issues reported by the hook and try again.\n")
    elif exc.reason is CommitRejection.LOCKED:
        print_error("The git index is locked.")
        print_hint("Another git process may be running; if not, remove .git/index.lock.\n")
    elif exc.reason is CommitRejection.NOTHING_TO_COMMIT:
        print_error("Nothing to commit.")
        print_hint("Stage some changes first.\n")
    else:
        print_error(f"Commit failed: {exc.detail}\n")


def run_commit_flow(cwd: Path, stage_everything: bool = False, yes: bool = False) -> int:
    """Run the full stage, generate, select and commit flow. Returns the exit code."""
    banner()
    client = open_repository(cwd)
    try:
        echo(dim(f"  Branch: {bold(client.get_current_branch())}"))

        try:
            api_key = resolve_api_key(yes)
        except CredentialError as exc:
            print_error(str(exc))
            print_hint(f"Set {API_KEY_ENV_VAR} or run zcommit config.\n")
            return EXIT_GENERIC_ERROR

        status = client.get_status()
        if status.conflicted:
            print_error(f"{len(status.conflicted)} file(s) have unresolved conflicts.")
            print_hint("Resolve the conflicts and stage the files before committing.\n")
            return EXIT_GENERIC_ERROR
        if status.is_clean and not client.has_staged_changes():
            print_warning("No changes detected. Nothing to commit.\n")
            return EXIT_SUCCESS

        try:
            stage_changes(client, status, stage_everything, yes)
        except StagingError as exc:
            print_error(f"Staging failed: {exc}")
            print_hint("Check the paths and try again.\n")
            return EXIT_GENERIC_ERROR

        bundle = collect_diff(client)
        if bundle.is_empty:
            print_error("Could not read staged changes.")
            print_hint("Try running: git diff --cached\n")
            return EXIT_GENERIC_ERROR
        history = client.get_recent_history(HISTORY_COUNT)

        messages = generate_messages(api_key, bundle, history)

        if yes:
            chosen = messages[0]
            print_info(f"Using the first suggestion: {chosen}")
        else:
            chosen = messages[Selector().select(bold("  Pick a commit message:"), messages)]

        try:
            client.commit(chosen)
        except CommitRejectedError as exc:
            echo()
            report_commit_rejection(exc)
            return EXIT_GENERIC_ERROR
    except GitError as exc:
        print_error(f"Git error: {exc}")
        print_hint("Run git status to inspect the repository.\n")
        return EXIT_GENERIC_ERROR

    echo()
    print_success("Committed successfully!")
    print_info(f'Message: "{chosen}"\n')
    return EXIT_SUCCESS


# ---------------------------------------------------------------------------
# Config subcommand
# ---------------------------------------------------------------------------

def run_config() -> int:
    """Show the active key and let the user set, replace or delete it."""
    banner()
    echo(bold("  Configure zcommit\n"))

    source = get_key_source()
    active = get_api_key()
    if source == "env" and active:
        echo(dim(f"  Active key: {mask_key(active)} (from {API_KEY_ENV_VAR} env var)"))
    elif source == "file" and active:
        echo(dim(f"  Active key: {mask_key(active)} (from {get_config_path()})"))
    else:
        print_warning("No API key configured.\n")
        echo(dim("  Get a free key at: ") + cyan(SIGNUP_URL))
    echo()

    if active:
        options = ["Set new API key"]
        if source == "file":
            options.append("Delete saved API key")
        options += ["Show config path", "Exit"]
    else:
        options = ["Set API key", "Exit"]

    picked = options[Selector().select(bold("  What would you like to do?"), options)]

    if picked == "Exit":
        echo()
        return EXIT_SUCCESS
    if picked == "Show config path":
        echo(dim(f"\n  Config file: {get_config_path()}\n"))
        return EXIT_SUCCESS
    if picked == "Delete saved API key":
        if delete_api_key():
            print_success("API key deleted from config.\n")
        else:
            print_info("No saved key to delete.\n")
        return EXIT_SUCCESS

    echo()
    key = ask_secret(bold("  Enter your Cerebras API key: "))
    if not key:
        print_error("No key provided.\n")
        return EXIT_GENERIC_ERROR
    path = set_api_key(key)
    print_success(f"API key saved to {path}\n")
    if source == "env":
        print_info(f"{API_KEY_ENV_VAR} is set and still takes priority.\n")
    return EXIT_SUCCESS


# ---------------------------------------------------------------------------
# Click entry points
# ---------------------------------------------------------------------------

@click.group(
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
    epilog=HELP_EPILOG,
)
@click.option("-a", "--all", "stage_everything", is_flag=True, help="Stage all changes automatically.")
@click.option("-y", "--yes", is_flag=True, help="Skip confirmations and commit the first suggestion.")
@click.option("--verbose", is_flag=True, help="Enable verbose (debug) output.")
@click.version_option(__version__, "-v", "--version", prog_name="zcommit", message="%(prog)s v%(version)s")
@click.pass_context
def main(ctx: click.Context, stage_everything: bool, yes: bool, verbose: bool) -> None:
    """⚡ AI-powered git commit messages.

    Analyzes your staged (or stageable) changes, asks Cerebras for three
    Conventional Commits suggestions and commits the one you pick.
    """
    _configure_logging(verbose)
    if ctx.invoked_subcommand is not None:
        return
    _run_guarded(lambda: run_commit_flow(Path.cwd(), stage_everything, yes))


@main.command("config")
def config_command() -> None:
    """Set, update, or delete your API key."""
    _run_guarded(run_config)
