"""
Terminal user interface for zcommit.

Contains the console output helpers and spinner, the interactive
selector with its line-based fallback, simple text prompts, and the
:class:`TerminalGuard` that keeps the terminal usable on every exit path.
"""

from .selector import SelectionState, Selector  # noqa: F401
from .terminal import TerminalGuard, terminal  # noqa: F401
