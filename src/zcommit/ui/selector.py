"""
Interactive single-choice selector.

:class:`Selector` draws a title and a list of options, lets the user
move a highlighted cursor with the arrow keys (or ``j``/``k``), jump
with a digit, and confirm with Enter. Every redraw moves the cursor back
to the top of the previously drawn block and clears each line before
rewriting it, so repeated redraws never leave stale characters behind
or scroll the terminal.

When either standard input or standard output is not a terminal (pipes,
CI), the selector prints a numbered list instead and reads one line:
a valid 1-based number picks that option, anything else picks the first.

Ctrl+C while selecting restores the terminal and raises
:class:`KeyboardInterrupt`.
"""

from __future__ import annotations

import codecs
import os
import re
import shutil
import sys
from contextlib import ExitStack
from dataclasses import dataclass
from typing import IO, List, Optional, Sequence, Tuple

import click

from zcommit.ui.console import style, use_color
from zcommit.ui.terminal import TerminalGuard, isatty, terminal


KEY_UP = "up"
KEY_DOWN = "down"
KEY_ENTER = "enter"
KEY_INTERRUPT = "interrupt"
KEY_OTHER = "other"

RESOLVED = "resolved"
CANCELLED = "cancelled"

_ARROWS = {
    "\x1b[A": KEY_UP,
    "\x1bOA": KEY_UP,
    "\x1b[B": KEY_DOWN,
    "\x1bOB": KEY_DOWN,
}
_SINGLE = {
    "\x03": KEY_INTERRUPT,
    "\r": KEY_ENTER,
    "\n": KEY_ENTER,
    "k": KEY_UP,
    "j": KEY_DOWN,
}
_ESCAPE_SEQUENCE = re.compile(r"\x1b(?:\[[0-9;?]*[@-~]|O.)?")


def decode_keys(chunk: str) -> List[str]:
    """Split a chunk of raw terminal input into key events, in order.

    Digits are returned as themselves; unrecognised input (including
    escape sequences other than up/down) becomes ``KEY_OTHER``.
    """
    keys: List[str] = []
    index = 0
    while index < len(chunk):
        arrow = _ARROWS.get(chunk[index:index + 3])
        if arrow is not None:
            keys.append(arrow)
            index += 3
            continue
        char = chunk[index]
        if char == "\x1b":
            match = _ESCAPE_SEQUENCE.match(chunk, index)
            keys.append(KEY_OTHER)
            index = match.end() if match else index + 1
            continue
        if char in _SINGLE:
            keys.append(_SINGLE[char])
        elif char.isdigit():
            keys.append(char)
        else:
            keys.append(KEY_OTHER)
        index += 1
    return keys


def split_incomplete_escape(text: str) -> Tuple[str, str]:
    """Split off a trailing escape prefix that the next read may complete.

    Returns ``(complete, pending)``; ``pending`` is ``""``, ``"\\x1b"``,
    ``"\\x1b["`` or ``"\\x1bO"``.
    """
    for prefix in ("\x1b[", "\x1bO", "\x1b"):
        if text.endswith(prefix):
            return text[:-len(prefix)], prefix
    return text, ""


@dataclass
class SelectionState:
    """Options plus the index of the highlighted one."""

    options: Sequence[str]
    cursor: int = 0

    def __post_init__(self) -> None:
        if not self.options:
            raise ValueError("SelectionState needs at least one option")
        if not 0 <= self.cursor < len(self.options):
            raise ValueError(f"cursor {self.cursor} out of range")

    def move_up(self) -> None:
        self.cursor = (self.cursor - 1 + len(self.options)) % len(self.options)

    def move_down(self) -> None:
        self.cursor = (self.cursor + 1) % len(self.options)

    def jump(self, number: int) -> bool:
        """Move to the 1-based option ``number``; False if out of range."""
        if 1 <= number <= len(self.options):
            self.cursor = number - 1
            return True
        return False

    def apply(self, key: str) -> Optional[str]:
        """Apply one key event; return ``RESOLVED``/``CANCELLED`` when finished."""
        if key == KEY_ENTER:
            return RESOLVED
        if key == KEY_INTERRUPT:
            return CANCELLED
        if key == KEY_UP:
            self.move_up()
        elif key == KEY_DOWN:
            self.move_down()
        elif key.isdigit():
            self.jump(int(key))
        return None


class RawKeyReader:
    """Reads key events from a terminal file descriptor in raw mode."""

    def __init__(self, stream: IO, guard: TerminalGuard = terminal, chunk_size: int = 32) -> None:
        self.fd = stream.fileno()
        self.guard = guard
        self.chunk_size = chunk_size
        self._stack: Optional[ExitStack] = None
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="ignore")
        self._pending = ""

    def __enter__(self) -> "RawKeyReader":
        self._stack = ExitStack()
        self._stack.enter_context(self.guard.raw_mode(self.fd))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        stack, self._stack = self._stack, None
        if stack is not None:
            stack.close()
        return False

    def read_keys(self) -> List[str]:
        """Block until input arrives and return the decoded key events."""
        while True:
            data = os.read(self.fd, self.chunk_size)
            if not data:
                # End of input: nothing more can ever be selected
                self._pending = ""
                return [KEY_INTERRUPT]
            text, self._pending = split_incomplete_escape(self._pending + self._decoder.decode(data))
            if text:
                return decode_keys(text)


class Selector:
    """Single-choice menu with an interactive and a line-based mode.

    Parameters
    ----------
    input : IO, optional
        Where keys or the fallback answer are read from (stdin by default).
    output : IO, optional
        Where the menu is drawn (stdout by default).
    keys : optional
        A key source with ``read_keys()`` usable as a context manager.
        Defaults to a :class:`RawKeyReader` on ``input``.
    interactive : bool, optional
        Force the mode; by default interactive only when both streams
        are terminals.
    guard : TerminalGuard, optional
        The guard that tracks cursor visibility.
    """

    def __init__(
        self,
        input: Optional[IO] = None,
        output: Optional[IO] = None,
        keys=None,
        interactive: Optional[bool] = None,
        guard: TerminalGuard = terminal,
    ) -> None:
        self.input = input
        self.output = output
        self.keys = keys
        self.interactive = interactive
        self.guard = guard
        self._drawn_lines = 0

    @property
    def _in(self) -> IO:
        return self.input or sys.stdin

    @property
    def _out(self) -> IO:
        return self.output or sys.stdout

    def _is_interactive(self) -> bool:
        if self.interactive is not None:
            return self.interactive
        return isatty(self._in) and isatty(self._out)

    def _write(self, text: str) -> None:
        self._out.write(text)
        self._out.flush()

    def _option_line(self, state: SelectionState, index: int, final: bool) -> str:
        option = state.options[index]
        # Lines that wrap would break the in-place redraw
        width = shutil.get_terminal_size().columns - 6
        if width > 1 and len(option) > width:
            option = option[:width - 1] + "…"
        out = self._out
        if final:
            if index == state.cursor:
                return f"{style('✔', out, fg='green')} {style(option, out, bold=True)}"
            return style(f"  {option}", out, dim=True)
        if index == state.cursor:
            return f"{style('❯', out, fg='cyan')} {style(option, out, fg='cyan', bold=True)}"
        return f"  {style(option, out, dim=True)}"

    def render(self, title: str, state: SelectionState, final: bool = False) -> None:
        """Draw (or redraw in place) the title and every option."""
        if not use_color(self._out):
            title = click.unstyle(title)
        parts: List[str] = []
        if self._drawn_lines:
            parts.append(f"\x1b[{self._drawn_lines}A")
        parts.append(f"\r\x1b[2K{title}\n")
        for index in range(len(state.options)):
            parts.append(f"\r\x1b[2K  {self._option_line(state, index, final)}\n")
        # Raw mode does not translate LF into CR LF
        parts.append("\r")
        self._write("".join(parts))
        self._drawn_lines = len(state.options) + 1

    def select(self, title: str, options: Sequence[str]) -> int:
        """Let the user pick one of ``options`` and return its index."""
        state = SelectionState(list(options))
        if not self._is_interactive():
            return self._select_from_line(title, state)

        self._drawn_lines = 0
        keys = self.keys if self.keys is not None else RawKeyReader(self._in, self.guard)
        outcome: Optional[str] = None
        self._write("\n")
        with ExitStack() as stack:
            stack.enter_context(keys)
            stack.enter_context(self.guard.hidden_cursor(self._out))
            self.render(title, state)
            while outcome is None:
                for key in keys.read_keys():
                    outcome = state.apply(key)
                    if outcome is not None:
                        break
                    self.render(title, state)
            if outcome == RESOLVED:
                self.render(title, state, final=True)
        if outcome == CANCELLED:
            self._write("\n")
            raise KeyboardInterrupt
        return state.cursor

    def _select_from_line(self, title: str, state: SelectionState) -> int:
        out = self._out
        click.echo(f"\n{click.unstyle(title)}", file=out)
        for number, option in enumerate(state.options, start=1):
            click.echo(f"  {number}. {option}", file=out)
        click.echo(f"  Enter a number [1-{len(state.options)}]: ", file=out, nl=False)
        answer = self._in.readline()
        try:
            chosen = int(answer.strip())
        except ValueError:
            chosen = 0
        if not state.jump(chosen):
            state.cursor = 0
        click.echo("", file=out)
        return state.cursor
