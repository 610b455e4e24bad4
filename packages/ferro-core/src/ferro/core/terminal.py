"""Terminal abstraction for raw-mode stdin/stdout interaction.

Provides a ``Terminal`` protocol and a concrete ``ProcessTerminal``
implementation that manages raw mode, mouse tracking, cursor visibility
and resize notification.  When stdin/stdout is not an interactive terminal
the raw-mode and mouse steps are skipped and output is still written.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
import termios
import tty
from typing import Callable, Protocol

from ferro.core import ansi

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Terminal protocol
# ---------------------------------------------------------------------------


class Terminal(Protocol):
    """Interface for terminal I/O operations."""

    def start(
        self,
        on_input: Callable[[str], None],
        on_resize: Callable[[], None],
    ) -> None: ...

    def stop(self) -> None: ...

    def write(self, data: str) -> None: ...

    @property
    def columns(self) -> int: ...

    @property
    def rows(self) -> int: ...

    @property
    def is_interactive(self) -> bool: ...

    def enable_mouse(self) -> None: ...

    def disable_mouse(self) -> None: ...


# ---------------------------------------------------------------------------
# ProcessTerminal implementation
# ---------------------------------------------------------------------------


class ProcessTerminal:
    """Terminal backed by the process's own ``stdin``/``stdout``.

    ``start`` puts stdin into raw mode, installs a SIGWINCH handler and
    registers an asyncio reader; ``stop`` undoes each step that was taken.
    """

    def __init__(self, write_log: str | None = None) -> None:
        self.write_log = write_log
        self._on_input: Callable[[str], None] | None = None
        self._on_resize: Callable[[], None] | None = None
        self._saved_mode: list | None = None
        self._saved_winch: object = None
        self._reading = False
        self._mouse = False

    def _size(self) -> os.terminal_size:
        try:
            return os.get_terminal_size(sys.stdout.fileno())
        except (ValueError, OSError):
            return os.terminal_size((80, 24))

    @property
    def columns(self) -> int:
        return self._size().columns

    @property
    def rows(self) -> int:
        return self._size().lines

    @property
    def is_interactive(self) -> bool:
        try:
            return sys.stdin.isatty() and sys.stdout.isatty()
        except (ValueError, AttributeError):
            return False

    # -- session -------------------------------------------------------------

    def start(
        self,
        on_input: Callable[[str], None],
        on_resize: Callable[[], None],
    ) -> None:
        self._on_input, self._on_resize = on_input, on_resize

        if self.is_interactive:
            stdin_fd = sys.stdin.fileno()
            self._saved_mode = termios.tcgetattr(stdin_fd)
            tty.setraw(stdin_fd)
        else:
            logger.warning("stdin/stdout is not a terminal; raw mode skipped")

        if hasattr(signal, "SIGWINCH"):
            self._saved_winch = signal.signal(signal.SIGWINCH, self._handle_winch)

        self._watch_stdin(True)

    def stop(self) -> None:
        self.disable_mouse()
        self._watch_stdin(False)

        if self._saved_winch is not None:
            signal.signal(signal.SIGWINCH, self._saved_winch)
            self._saved_winch = None

        if self._saved_mode is not None:
            termios.tcsetattr(sys.stdin.fileno(), termios.TCSADRAIN, self._saved_mode)
            self._saved_mode = None

        self._on_input = self._on_resize = None

    # -- output --------------------------------------------------------------

    def write(self, data: str) -> None:
        self._emit(data)
        if not self.write_log:
            return
        try:
            with open(self.write_log, "a", encoding="utf-8") as log_file:
                log_file.write(data)
        except OSError:
            logger.debug("write log %s is not writable", self.write_log)

    def enable_mouse(self) -> None:
        if not self.is_interactive:
            logger.info("mouse tracking skipped: not a terminal")
            return
        self._emit(ansi.MOUSE_ENABLE)
        self._mouse = True

    def disable_mouse(self) -> None:
        if self._mouse:
            self._emit(ansi.MOUSE_DISABLE)
            self._mouse = False

    def _emit(self, data: str) -> None:
        try:
            sys.stdout.write(data)
            sys.stdout.flush()
        except OSError as exc:
            logger.debug("stdout write failed: %s", exc)

    # -- input ---------------------------------------------------------------

    def _watch_stdin(self, enabled: bool) -> None:
        """Add or remove the event-loop reader for stdin."""
        if enabled == self._reading:
            return
        try:
            loop = asyncio.get_running_loop()
            if enabled:
                loop.add_reader(sys.stdin.fileno(), self._read_stdin)
            else:
                loop.remove_reader(sys.stdin.fileno())
        except RuntimeError:
            logger.debug("no running event loop; stdin reader %s skipped",
                         "registration" if enabled else "removal")
        except (ValueError, OSError, NotImplementedError) as exc:
            logger.warning("cannot watch stdin: %s", exc)
        else:
            self._reading = enabled
            return
        if not enabled:
            self._reading = False

    def _read_stdin(self) -> None:
        try:
            chunk = os.read(sys.stdin.fileno(), 4096)
        except OSError:
            return
        if not chunk:
            self._watch_stdin(False)
        elif self._on_input is not None:
            self._on_input(chunk.decode("utf-8", errors="replace"))

    def _handle_winch(self, signum: int, frame: object) -> None:
        if self._on_resize is not None:
            self._on_resize()
