"""Differential terminal renderer.

``paint`` turns a laid-out tree into screen lines; ``Renderer`` keeps the
lines of the last frame and rewrites only the lines that changed, in a
single terminal write per frame.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Union

from ferro.core import ansi
from ferro.core.layout import Layout, LayoutNode, build_layout_tree
from ferro.core.nodes import BoxNode, TextNode
from ferro.core.terminal import Terminal
from ferro.core.utils import iter_cells, truncate_to_width

logger = logging.getLogger(__name__)

Content = Union[str, LayoutNode, TextNode, BoxNode, None]

# ---------------------------------------------------------------------------
# Painting
# ---------------------------------------------------------------------------


def _cell(value: float) -> int:
    return int(math.floor(value + 0.5))


class _Clip:
    __slots__ = ("x0", "y0", "x1", "y1")

    def __init__(self, x0: int, y0: int, x1: int, y1: int) -> None:
        self.x0, self.y0, self.x1, self.y1 = x0, y0, x1, y1

    def intersect(self, x0: int, y0: int, x1: int, y1: int) -> _Clip:
        return _Clip(max(self.x0, x0), max(self.y0, y0), min(self.x1, x1), min(self.y1, y1))

    def contains(self, x: int, y: int) -> bool:
        return self.x0 <= x < self.x1 and self.y0 <= y < self.y1


class Canvas:
    """A grid of ``(char, sgr)`` cells.

    The right half of a wide character is stored as ``("", sgr)``.
    """

    def __init__(self, width: int, height: int) -> None:
        self.width = max(0, width)
        self.height = max(0, height)
        self.cells: list[list[tuple[str, str]]] = [
            [(" ", "")] * self.width for _ in range(self.height)
        ]

    def put(self, x: int, y: int, char: str, sgr: str, width: int = 1) -> None:
        if not (0 <= y < self.height and 0 <= x < self.width):
            return
        row = self.cells[y]
        if row[x][0] == "" and x > 0:
            # overwriting the right half of a wide character
            row[x - 1] = (" ", row[x - 1][1])
        if x + 1 < self.width and row[x + 1][0] == "":
            row[x + 1] = (" ", row[x + 1][1])
        if width == 2:
            if x + 1 >= self.width:
                row[x] = (" ", sgr)
                return
            if x + 2 < self.width and row[x + 2][0] == "":
                row[x + 2] = (" ", row[x + 2][1])
            row[x] = (char, sgr)
            row[x + 1] = ("", sgr)
            return
        row[x] = (char, sgr)

    def fill(self, clip: _Clip, sgr: str) -> None:
        for y in range(max(0, clip.y0), min(self.height, clip.y1)):
            for x in range(max(0, clip.x0), min(self.width, clip.x1)):
                self.put(x, y, " ", sgr)

    def lines(self) -> list[str]:
        result: list[str] = []
        for row in self.cells:
            end = len(row)
            while end > 0 and row[end - 1] == (" ", ""):
                end -= 1
            parts: list[str] = []
            current = ""
            for char, sgr in row[:end]:
                if sgr != current:
                    if current:
                        parts.append(ansi.RESET)
                    parts.append(sgr)
                    current = sgr
                parts.append(char)
            if current:
                parts.append(ansi.RESET)
            result.append("".join(parts))
        while result and result[-1] == "":
            result.pop()
        return result


def paint(root: LayoutNode, width: int, height: int) -> list[str]:
    """Paint a laid-out tree onto a ``width`` x ``height`` canvas."""
    canvas = Canvas(width, height)
    _paint_node(canvas, root, _Clip(0, 0, canvas.width, canvas.height), {})
    return canvas.lines()


def _paint_node(canvas: Canvas, node: LayoutNode, clip: _Clip, inherited: dict[str, Any]) -> None:
    style = node.style
    if style.display == "none":
        return

    attrs = {**inherited, **style.text_attributes()}
    x0, y0 = _cell(node.x), _cell(node.y)
    x1, y1 = _cell(node.x + node.width), _cell(node.y + node.height)
    box_clip = clip.intersect(x0, y0, x1, y1)

    if style.background_color is not None:
        canvas.fill(box_clip, ansi.sgr(attrs))

    if style.border is not None and x1 - x0 >= 2 and y1 - y0 >= 2:
        border_attrs = dict(attrs)
        if style.border.color is not None:
            border_attrs["color"] = style.border.color
        _paint_border(canvas, x0, y0, x1, y1, style.border.style, ansi.sgr(border_attrs), clip)

    inset = style.border_width
    content_clip = clip
    if style.overflow == "hidden":
        content_clip = clip.intersect(x0 + inset, y0 + inset, x1 - inset, y1 - inset)

    if node.text is not None:
        tx = x0 + inset + _cell(style.padding.left)
        ty = y0 + inset + _cell(style.padding.top)
        _paint_text(canvas, node.text, tx, ty, ansi.sgr(attrs), content_clip)

    for child in node.children:
        _paint_node(canvas, child, content_clip, attrs)


def _paint_border(
    canvas: Canvas, x0: int, y0: int, x1: int, y1: int, kind: str, sgr: str, clip: _Clip
) -> None:
    hz, vt, tl, tr, bl, br = ansi.BOX_GLYPHS[kind]

    def put(x: int, y: int, ch: str) -> None:
        if clip.contains(x, y):
            canvas.put(x, y, ch, sgr)

    for x in range(x0 + 1, x1 - 1):
        put(x, y0, hz)
        put(x, y1 - 1, hz)
    for y in range(y0 + 1, y1 - 1):
        put(x0, y, vt)
        put(x1 - 1, y, vt)
    put(x0, y0, tl)
    put(x1 - 1, y0, tr)
    put(x0, y1 - 1, bl)
    put(x1 - 1, y1 - 1, br)


def _paint_text(canvas: Canvas, content: str, x: int, y: int, base: str, clip: _Clip) -> None:
    for row, line in enumerate(content.split("\n")):
        cy = y + row
        if cy >= clip.y1:
            break
        if cy < clip.y0:
            continue
        cx = x
        inline = ""
        for codes, cluster, width in iter_cells(line):
            if codes:
                inline = "" if codes.endswith(ansi.RESET) else inline + codes
            if not cluster or width == 0:
                continue
            if cx >= clip.x1:
                break
            if cx >= clip.x0 and cx + width <= clip.x1:
                canvas.put(cx, cy, cluster, base + inline, width)
            cx += width


# ---------------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------------


class Renderer:
    """Owns the screen buffers and paints frames differentially.

    Fullscreen mode clears the screen on initialisation and addresses lines
    absolutely; inline mode paints below the cursor with relative moves.
    Use as a context manager (or call :meth:`initialize` / :meth:`cleanup`)
    so the cursor is always restored.
    """

    def __init__(
        self,
        terminal: Terminal,
        *,
        fullscreen: bool = False,
        width: int | None = None,
        height: int | None = None,
        title: str | None = None,
    ) -> None:
        self.terminal = terminal
        self.fullscreen = fullscreen
        self.title = title
        self.width = width if width is not None else terminal.columns
        self.height = height if height is not None else terminal.rows
        self.layout = Layout()

        self._buffer: list[str] = []
        # None means "unknown": the next frame repaints everything
        self._previous: list[str] | None = None
        self._initialized = False
        self._cursor_row = 0
        self._extent = 0

        self.painted_lines: list[int] = []
        self.full_redraws = 0

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def lines(self) -> list[str]:
        """A copy of the last rendered frame."""
        return list(self._buffer)

    def __enter__(self) -> Renderer:
        self.initialize()
        return self

    def __exit__(self, *exc: object) -> None:
        self.cleanup()

    # -- session -----------------------------------------------------------

    def initialize(self) -> None:
        if self._initialized:
            return
        out = [ansi.SAVE_CURSOR]
        if self.fullscreen:
            out.append(ansi.CLEAR_SCREEN + ansi.CURSOR_HOME)
        out.append(ansi.HIDE_CURSOR)
        if self.title:
            out.append(ansi.set_title(self.title))
        self.terminal.write("".join(out))
        self._buffer = []
        self._previous = None
        self._cursor_row = 0
        self._extent = 0
        self._initialized = True

    def cleanup(self) -> None:
        """Restore cursor visibility (and the screen, in fullscreen mode)."""
        if not self._initialized:
            return
        self._initialized = False
        if self.fullscreen:
            out = ansi.CLEAR_SCREEN + ansi.CURSOR_HOME + ansi.RESTORE_CURSOR
        else:
            below = max(0, self._extent - 1 - self._cursor_row)
            out = ansi.move_cursor_down(below) + ("\r\n" if self._extent else "")
        self.terminal.write(out + ansi.SHOW_CURSOR)

    # -- frames ------------------------------------------------------------

    def render(self, content: Content) -> bool:
        """Render *content* and return whether anything was written."""
        if not self._initialized:
            return False
        lines = self.to_lines(content)
        self._buffer = lines[: max(0, self.height)]
        return self._flush()

    def to_lines(self, content: Content) -> list[str]:
        """Serialise *content* to screen lines without painting them."""
        if content is None:
            return []
        if isinstance(content, str):
            return content.split("\n")
        if isinstance(content, (TextNode, BoxNode)):
            content = self.layout.calculate(build_layout_tree(content), self.width, self.height)
        return paint(content, self.width, self.height)

    def _flush(self) -> bool:
        lines = self._buffer
        previous = self._previous
        out: list[str] = []
        painted: list[int] = []

        if previous is None:
            self.full_redraws += 1
            if self.fullscreen:
                out.append(ansi.CLEAR_SCREEN)
            else:
                self._goto(out, 0)
                out.append(ansi.CLEAR_TO_END_OF_SCREEN)
                self._extent = 1
            previous = []

        for i in range(max(len(lines), len(previous))):
            new = lines[i] if i < len(lines) else None
            old = previous[i] if i < len(previous) else None
            if new == old:
                continue
            self._goto(out, i)
            out.append(ansi.CLEAR_LINE)
            if new:
                out.append(truncate_to_width(new, self.width))
            painted.append(i)

        self.painted_lines = painted
        self._previous = list(lines)
        if not out:
            return False
        self.terminal.write("".join(out))
        return True

    def _goto(self, out: list[str], row: int) -> None:
        if self.fullscreen:
            out.append(ansi.move_cursor(0, row))
            self._cursor_row = row
            return
        delta = row - self._cursor_row
        if delta < 0:
            out.append(ansi.move_cursor_up(-delta))
        elif delta > 0:
            within = min(delta, max(0, self._extent - 1 - self._cursor_row))
            out.append(ansi.move_cursor_down(within))
            # rows past the painted region do not exist yet
            out.append("\r\n" * (delta - within))
        out.append("\r")
        self._cursor_row = row
        self._extent = max(self._extent, row + 1)

    # -- misc ----------------------------------------------------------------

    def clear(self) -> None:
        """Clear the painted region and forget both buffers."""
        if not self._initialized:
            return
        if self.fullscreen:
            self.terminal.write(ansi.CLEAR_SCREEN + ansi.CURSOR_HOME)
            self._cursor_row = 0
        else:
            out: list[str] = []
            self._goto(out, 0)
            out.append(ansi.CLEAR_TO_END_OF_SCREEN)
            self.terminal.write("".join(out))
            self._extent = 1
        self._buffer = []
        self._previous = []

    def resize(self, width: int, height: int) -> None:
        """Adopt a new terminal size; the next frame is a full repaint."""
        logger.debug("renderer resize %dx%d -> %dx%d", self.width, self.height, width, height)
        self.width = width
        self.height = height
        self._previous = None

    def invalidate(self) -> None:
        self._previous = None

    def write_raw(self, text: str) -> None:
        """Write *text* straight to the terminal, bypassing the diff."""
        self.terminal.write(text)
