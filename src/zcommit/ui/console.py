"""
Console output helpers for zcommit.

Everything the CLI prints goes through :func:`echo`, which honours the
conventional color switches: a non-empty ``NO_COLOR`` disables ANSI
styling, ``FORCE_COLOR`` keeps it even when output is not a terminal,
and otherwise click decides based on the stream.
"""

from __future__ import annotations

import os
import sys
import threading
import time
from typing import IO, Optional

import click

from zcommit.ui.terminal import isatty, terminal


SPINNER_FRAMES = ['⠋', '⠙', '⠹', '⠸', '⠼', '⠴', '⠦', '⠧', '⠇', '⠏']


def color_enabled() -> Optional[bool]:
    """Return the forced color mode, or ``None`` to let click auto-detect."""
    if os.environ.get("NO_COLOR"):
        return False
    force = os.environ.get("FORCE_COLOR")
    if force is not None and force.strip().lower() not in ("0", "false"):
        return True
    return None


def use_color(stream: Optional[IO] = None) -> bool:
    """Return True if ANSI styling should be written to ``stream``."""
    forced = color_enabled()
    if forced is not None:
        return forced
    return isatty(stream or sys.stdout)


def style(text: str, stream: Optional[IO] = None, **styles) -> str:
    """Apply :func:`click.style` only when colors are enabled for ``stream``."""
    if not use_color(stream):
        return text
    return click.style(text, **styles)


def echo(message: str = "", err: bool = False, nl: bool = True, file: Optional[IO] = None) -> None:
    click.echo(message, file=file, nl=nl, err=err, color=color_enabled())


def bold(text: str) -> str:
    return click.style(text, bold=True)


def dim(text: str) -> str:
    return click.style(text, dim=True)


def cyan(text: str) -> str:
    return click.style(text, fg="cyan")


def green(text: str) -> str:
    return click.style(text, fg="green")


def yellow(text: str) -> str:
    return click.style(text, fg="yellow")


def red(text: str) -> str:
    return click.style(text, fg="red")


def print_info(message: str) -> None:
    """Print a de-emphasized info line."""
    echo(dim(f"  {message}"))


def print_success(message: str) -> None:
    """Print a success message."""
    echo(green(f"  ✔ {message}"))


def print_warning(message: str) -> None:
    """Print a warning message."""
    echo(yellow(f"  ⚠ {message}"))


def print_error(message: str) -> None:
    """Print an error message."""
    echo(red(f"  ✖ {message}"), err=True)


def print_hint(message: str) -> None:
    """Print the remedy that goes with an error."""
    echo(dim(f"  {message}"), err=True)


def banner() -> None:
    echo()
    echo(bold(cyan("  ⚡ zcommit")) + dim(" — AI-powered git commits"))
    echo(dim("  ─────────────────────────────────"))
    echo()


class Spinner:
    """Progress indicator shown while waiting on the network.

    On a terminal a background thread redraws a braille frame every
    ``interval`` seconds; elsewhere a single static line is printed.
    Stopping is always safe and clears the spinner line.
    """

    def __init__(self, message: str, interval: float = 0.08, stream: Optional[IO] = None):
        self.message = message
        self.interval = interval
        self.stream = stream
        self.start_time: Optional[float] = None
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._interactive = False
        self._stopped = True

    @property
    def _out(self) -> IO:
        return self.stream or sys.stdout

    def _write(self, text: str) -> None:
        self._out.write(text)
        self._out.flush()

    def _spin(self) -> None:
        index = 0
        message = self.message if use_color(self._out) else click.unstyle(self.message)
        while not self._stop_event.is_set():
            frame = style(SPINNER_FRAMES[index % len(SPINNER_FRAMES)], self._out, fg="cyan")
            self._write(f"\r{frame} {message}")
            index += 1
            self._stop_event.wait(self.interval)

    def start(self) -> "Spinner":
        self.start_time = time.time()
        self._stopped = False
        self._interactive = isatty(self._out)
        if self._interactive:
            terminal.hide_cursor(self._out)
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._spin, daemon=True)
            self._thread.start()
        else:
            echo(f"→ {click.unstyle(self.message)}...", file=self._out)
        return self

    def stop(self, final_text: Optional[str] = None) -> float:
        """Stop spinning, print ``final_text`` and return the elapsed seconds."""
        elapsed = time.time() - self.start_time if self.start_time is not None else 0.0
        if self._stopped:
            return elapsed
        self._stopped = True
        if self._interactive:
            self._stop_event.set()
            if self._thread is not None:
                self._thread.join()
            self._write("\r\x1b[K")
            terminal.show_cursor()
        if final_text:
            echo(final_text, file=self._out)
        return elapsed

    def __enter__(self) -> "Spinner":
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
