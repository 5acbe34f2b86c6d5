"""
Commit message generation using an LLM.

This module provides the :class:`CommitMessageGenerator` class, which
sends the staged diff to the language model (via
:class:`CerebrasClient`) and turns its free-form answer into exactly
the commit message candidates the user picks from.

The pipeline is:

1. Build a prompt from the diff summary, the bounded diff text and the
   recent commit history (for style consistency).
2. Call the model. Transient failures (rate limiting, server errors,
   network problems) are retried with increasing backoff; a
   ``Retry-After`` hint from the server is honoured up to a ceiling.
   Authentication and malformed-request failures are raised at once.
3. Parse the answer line by line, stripping enumeration markers and
   quotes, keeping at most three well-formed candidates.
4. If fewer than three were found, scan the model's separate reasoning
   text for numbered Conventional Commits lines.
5. If nothing usable remains, raise an :class:`LLMError` of kind
   ``PARSE`` rather than inventing a placeholder.

All candidates follow the format::

  type(optional-scope): lowercase imperative description
"""

from __future__ import annotations

import logging
import re
import time
from textwrap import dedent
from typing import Callable, List, Optional, Sequence

from zcommit.diff.diff_bundler import DiffBundle
from zcommit.llm.cerebras_client import CerebrasClient, ErrorKind, LLMError


logger = logging.getLogger(__name__)
# Attach a null handler to prevent logging errors when no handlers are
# configured on the root logger. Logs will propagate when configured.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


MESSAGE_COUNT = 3
MAX_RETRIES = 2
RETRY_DELAYS = (1.0, 3.0)
MAX_RETRY_AFTER = 10.0
MIN_MESSAGE_LENGTH = 4
MAX_MESSAGE_LENGTH = 200

COMMIT_TYPES = ("feat", "fix", "refactor", "docs", "style", "test", "chore", "perf", "ci", "build")

SYSTEM_PROMPT = dedent(
    f"""
    You are an expert at writing concise, meaningful git commit messages following the Conventional Commits specification.

    Rules:
    - Use format: <type>(<optional scope>): <description>
    - Types: {', '.join(COMMIT_TYPES)}
    - Description must be lowercase, imperative mood, no period at end
    - Keep under 72 characters
    - Be specific about what changed and why
    - Return EXACTLY 3 commit messages, one per line, numbered 1-3
    - Do NOT include any explanation, just the 3 numbered messages
    """
).strip()

# "1. ", "1) ", "1- ", "1: ", "- ", "* ", "• "
_ENUMERATION = re.compile(r"^(?:\d+\s*[.):\-]|[-*•])\s*")
_QUOTES = "\"'`"
_SUBJECT_SHAPE = re.compile(r"^[^:\s][^:]*:\s*\S")
_REASONING_LINE = re.compile(
    r"^\s*\d+\s*[.):\-]\s*[\"'`*]*((?:%s)(?:\([^)\n]*\))?!?:[^\n]+)$" % "|".join(COMMIT_TYPES),
    re.MULTILINE | re.IGNORECASE,
)


def build_user_prompt(diff_bundle: DiffBundle, recent_history: str = "") -> str:
    """Build the user prompt from the diff bundle and recent history."""
    prompt = (
        "Here are the staged changes:\n\n"
        f"--- Diff Stats ---\n{diff_bundle.stat}\n\n"
        f"--- Diff Details ---\n{diff_bundle.diff}"
    )
    if recent_history:
        prompt += f"\n\n--- Recent Commits (for style context) ---\n{recent_history}"
    prompt += "\n\nGenerate 3 commit messages for these changes:"
    return prompt


def _strip_bold(text: str) -> str:
    """Remove Markdown bold markers wrapping ``text``, keeping inner ones."""
    if text.startswith("**"):
        text = text[2:]
    if text.endswith("**"):
        text = text[:-2]
    return text.strip()


def clean_line(line: str) -> str:
    """Strip enumeration markers, surrounding quotes and bold, collapse whitespace."""
    cleaned = _strip_bold(line.strip())
    cleaned = _ENUMERATION.sub("", cleaned, count=1).strip()
    cleaned = _strip_bold(cleaned).strip(_QUOTES).strip()
    cleaned = _strip_bold(cleaned)
    return " ".join(cleaned.split())


def is_candidate(message: str, require_colon: bool = True) -> bool:
    """Return True if ``message`` is usable as a one-line commit subject."""
    if not MIN_MESSAGE_LENGTH <= len(message) < MAX_MESSAGE_LENGTH:
        return False
    if require_colon and not _SUBJECT_SHAPE.match(message):
        return False
    return True


def parse_messages(
    raw: str,
    limit: int = MESSAGE_COUNT,
    require_colon: bool = True,
) -> List[str]:
    """Extract at most ``limit`` commit message candidates from ``raw``.

    Parameters
    ----------
    raw : str
        Free-form text returned by the model.
    limit : int, optional
        Maximum number of candidates to return.
    require_colon : bool, optional
        Only accept lines shaped like ``type: description``. This drops
        preambles such as "Here are three options:".

    Returns
    -------
    List[str]
        Candidates in the order the model gave them, without duplicates.
    """
    messages: List[str] = []
    for line in raw.splitlines():
        if not line.strip():
            continue
        cleaned = clean_line(line)
        if is_candidate(cleaned, require_colon) and cleaned not in messages:
            messages.append(cleaned)
        if len(messages) >= limit:
            break
    return messages


def extract_from_reasoning(
    reasoning: str,
    existing: Sequence[str],
    limit: int = MESSAGE_COUNT,
) -> List[str]:
    """Top up ``existing`` with numbered Conventional Commits lines from ``reasoning``."""
    messages = list(existing)
    for match in _REASONING_LINE.finditer(reasoning):
        if len(messages) >= limit:
            break
        cleaned = clean_line(match.group(1))
        if is_candidate(cleaned) and cleaned not in messages:
            messages.append(cleaned)
    return messages


class CommitMessageGenerator:
    """Generate commit message candidates for a staged diff."""

    def __init__(
        self,
        client: CerebrasClient,
        sleep: Callable[[float], None] = time.sleep,
        max_retries: int = MAX_RETRIES,
    ) -> None:
        self.client = client
        self.sleep = sleep
        self.max_retries = max_retries

    def _retry_delay(self, attempt: int, error: LLMError) -> float:
        if error.retry_after is not None:
            return min(error.retry_after, MAX_RETRY_AFTER)
        return RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]

    def _request(self, system_prompt: str, user_prompt: str):
        last_error: Optional[LLMError] = None
        for attempt in range(self.max_retries + 1):
            try:
                return self.client.complete(system_prompt, user_prompt)
            except LLMError as exc:
                last_error = exc
                if not exc.retryable:
                    logger.debug("Not retrying %s failure: %s", exc.kind.value, exc)
                    raise
                if attempt < self.max_retries:
                    delay = self._retry_delay(attempt, exc)
                    logger.info(
                        "Attempt %d failed (%s); retrying in %.1fs", attempt + 1, exc.kind.value, delay
                    )
                    self.sleep(delay)
        assert last_error is not None
        raise last_error

    def generate_messages(self, diff_bundle: DiffBundle, recent_history: str = "") -> List[str]:
        """Return up to three commit message candidates for ``diff_bundle``.

        Raises
        ------
        ValueError
            If the bundle holds no diff text. Callers must not request
            messages for an empty index.
        LLMError
            If the request fails after retries, or no candidate could be
            extracted from the response (kind ``PARSE``).
        """
        if diff_bundle.is_empty:
            raise ValueError("Cannot generate commit messages for an empty diff")

        completion = self._request(SYSTEM_PROMPT, build_user_prompt(diff_bundle, recent_history))
        messages = parse_messages(completion.content)
        if len(messages) < MESSAGE_COUNT and completion.reasoning:
            logger.debug("Only %d candidate(s) in content; scanning reasoning", len(messages))
            messages = extract_from_reasoning(completion.reasoning, messages)
        if not messages:
            raise LLMError("Could not extract commit messages from response", ErrorKind.PARSE)
        logger.debug("Parsed commit message candidates: %s", messages)
        return messages


def generate_commit_messages(
    api_key: str,
    diff_bundle: DiffBundle,
    recent_history: str = "",
    **client_options,
) -> List[str]:
    """Convenience wrapper building a :class:`CerebrasClient` for one request."""
    client = CerebrasClient(api_key=api_key, **client_options)
    return CommitMessageGenerator(client).generate_messages(diff_bundle, recent_history)
