"""
Terminal state management for zcommit.

Raw keyboard input and a hidden cursor are process-wide terminal
state. :class:`TerminalGuard` owns both: raw sessions and hidden-cursor
spans are acquired through context managers, and :meth:`restore` puts
the terminal back no matter how the process ends. The CLI calls
:meth:`install` once at start-up so that ``atexit`` and ``SIGTERM``
also go through :meth:`restore`.
"""

from __future__ import annotations

import atexit
import logging
import signal
import sys
from contextlib import contextmanager
from typing import IO, Iterator, List, Optional, Tuple

if sys.platform != "win32":
    import termios
    import tty


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


HIDE_CURSOR = "\x1b[?25l"
SHOW_CURSOR = "\x1b[?25h"
EXIT_TERMINATED = 143


def isatty(stream: Optional[IO]) -> bool:
    """Return True if ``stream`` is attached to a terminal."""
    try:
        return bool(stream is not None and stream.isatty())
    except (AttributeError, ValueError):
        return False


class TerminalGuard:
    """Tracks and restores raw mode and cursor visibility."""

    def __init__(self) -> None:
        self._saved_modes: List[Tuple[int, list]] = []
        self._cursor_stream: Optional[IO] = None
        self._installed = False

    @property
    def in_raw_mode(self) -> bool:
        return bool(self._saved_modes)

    @property
    def cursor_hidden(self) -> bool:
        return self._cursor_stream is not None

    # ------------------------------------------------------------------
    # Raw mode
    # ------------------------------------------------------------------
    @contextmanager
    def raw_mode(self, fd: int) -> Iterator[None]:
        """Put ``fd`` in raw mode for the duration of the block."""
        if sys.platform == "win32":
            raise RuntimeError("raw terminal mode is not supported on Windows")
        attrs = termios.tcgetattr(fd)
        self._saved_modes.append((fd, attrs))
        tty.setraw(fd)
        try:
            yield
        finally:
            self._restore_modes()

    def _restore_modes(self) -> None:
        while self._saved_modes:
            fd, attrs = self._saved_modes.pop()
            try:
                termios.tcsetattr(fd, termios.TCSADRAIN, attrs)
            except (termios.error, OSError, ValueError) as exc:
                logger.debug("Could not restore terminal mode on fd %s: %s", fd, exc)

    # ------------------------------------------------------------------
    # Cursor visibility
    # ------------------------------------------------------------------
    def hide_cursor(self, stream: Optional[IO] = None) -> None:
        stream = stream or sys.stdout
        stream.write(HIDE_CURSOR)
        stream.flush()
        self._cursor_stream = stream

    def show_cursor(self) -> None:
        stream, self._cursor_stream = self._cursor_stream, None
        if stream is None:
            return
        try:
            stream.write(SHOW_CURSOR)
            stream.flush()
        except (OSError, ValueError) as exc:
            logger.debug("Could not show cursor: %s", exc)

    @contextmanager
    def hidden_cursor(self, stream: Optional[IO] = None) -> Iterator[None]:
        """Hide the cursor on ``stream`` (stdout by default) for the block."""
        self.hide_cursor(stream)
        try:
            yield
        finally:
            self.show_cursor()

    # ------------------------------------------------------------------
    # Process-wide cleanup
    # ------------------------------------------------------------------
    def restore(self) -> None:
        """Leave raw mode and show the cursor. Safe to call repeatedly."""
        self._restore_modes()
        self.show_cursor()

    def _on_terminate(self, signum, frame) -> None:
        self.restore()
        sys.exit(EXIT_TERMINATED)

    def install(self) -> None:
        """Register :meth:`restore` with ``atexit`` and the SIGTERM handler (once)."""
        if self._installed:
            return
        atexit.register(self.restore)
        try:
            signal.signal(signal.SIGTERM, self._on_terminate)
        except ValueError:
            # Only the main thread may install signal handlers
            logger.debug("SIGTERM handler not installed outside the main thread")
        self._installed = True


terminal = TerminalGuard()
