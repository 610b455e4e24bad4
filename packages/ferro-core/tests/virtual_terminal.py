"""In-memory ``Terminal`` used by the host and renderer tests.

Every ``write`` call is kept as a separate chunk so tests can assert both
on the concatenated output and on how many writes a frame produced.
"""

from __future__ import annotations

from typing import Callable

from ferro.core import ansi


class VirtualTerminal:
    """Records output and lets tests drive input and resize callbacks."""

    def __init__(self, rows: int = 24, columns: int = 80, interactive: bool = True) -> None:
        self.size = (columns, rows)
        self.interactive = interactive
        self.chunks: list[str] = []
        self.callbacks: tuple[Callable[[str], None], Callable[[], None]] | None = None
        self.mouse_enabled = False
        self.stop_count = 0

    @property
    def columns(self) -> int:
        return self.size[0]

    @property
    def rows(self) -> int:
        return self.size[1]

    @property
    def is_interactive(self) -> bool:
        return self.interactive

    @property
    def started(self) -> bool:
        return self.callbacks is not None

    def start(self, on_input: Callable[[str], None], on_resize: Callable[[], None]) -> None:
        self.callbacks = (on_input, on_resize)

    def stop(self) -> None:
        self.stop_count += 1
        self.callbacks = None

    def write(self, data: str) -> None:
        self.chunks.append(data)

    def enable_mouse(self) -> None:
        self.mouse_enabled = True
        self.write(ansi.MOUSE_ENABLE)

    def disable_mouse(self) -> None:
        if self.mouse_enabled:
            self.mouse_enabled = False
            self.write(ansi.MOUSE_DISABLE)

    # -- inspection --------------------------------------------------------

    @property
    def output(self) -> str:
        return "".join(self.chunks)

    @property
    def write_count(self) -> int:
        return len(self.chunks)

    def clear_buffer(self) -> None:
        self.chunks.clear()

    # -- driving -----------------------------------------------------------

    def simulate_input(self, data: str) -> None:
        """Deliver *data* as if it had arrived on stdin."""
        if self.callbacks is None:
            raise RuntimeError("terminal not started")
        self.callbacks[0](data)

    def simulate_resize(self, rows: int | None = None, columns: int | None = None) -> None:
        """Change the reported size and fire the resize callback, if any."""
        self.size = (
            self.columns if columns is None else columns,
            self.rows if rows is None else rows,
        )
        if self.callbacks is not None:
            self.callbacks[1]()
