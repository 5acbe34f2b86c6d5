"""
Language model integration for zcommit.

This package contains the :class:`CerebrasClient` for communicating with
the Cerebras chat-completions API and the :class:`CommitMessageGenerator`
which turns a staged diff into commit message candidates.
"""

from .cerebras_client import CerebrasClient, Completion, ErrorKind, LLMError  # noqa: F401
from .commit_message_generator import CommitMessageGenerator, generate_commit_messages  # noqa: F401
