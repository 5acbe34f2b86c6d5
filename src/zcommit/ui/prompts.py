"""Line-based prompts built on :func:`click.prompt`."""

from __future__ import annotations

import click


def ask(question: str) -> str:
    """Ask a free-text question; an empty answer is allowed."""
    answer = click.prompt(question, default="", show_default=False, prompt_suffix="")
    return answer.strip()


def ask_secret(question: str) -> str:
    """Ask for a secret without echoing it."""
    answer = click.prompt(
        question, default="", show_default=False, prompt_suffix="", hide_input=True
    )
    return answer.strip()


def confirm(question: str, default: bool = False) -> bool:
    return click.confirm(question, default=default)
