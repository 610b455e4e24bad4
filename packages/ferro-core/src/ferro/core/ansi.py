"""ANSI / VT100 escape sequences used by the renderer and the terminal."""

from __future__ import annotations

from typing import Any, Mapping

from ferro.core.style import Color

# ---------------------------------------------------------------------------
# Cursor / screen
# ---------------------------------------------------------------------------

ESC = "\x1b"
CSI = "\x1b["

HIDE_CURSOR = "\x1b[?25l"
SHOW_CURSOR = "\x1b[?25h"
SAVE_CURSOR = "\x1b7"
RESTORE_CURSOR = "\x1b8"
CURSOR_HOME = "\x1b[H"

CLEAR_SCREEN = "\x1b[2J"
CLEAR_LINE = "\x1b[2K"
CLEAR_TO_END_OF_SCREEN = "\x1b[J"

RESET = "\x1b[0m"

# X10 press/release, any-motion tracking, SGR extended coordinates
MOUSE_ENABLE = "\x1b[?1000h\x1b[?1003h\x1b[?1006h"
MOUSE_DISABLE = "\x1b[?1006l\x1b[?1003l\x1b[?1000l"


def move_cursor(x: int, y: int) -> str:
    """Absolute move to 0-based column *x*, row *y*."""
    return f"\x1b[{y + 1};{x + 1}H"


def move_cursor_up(n: int = 1) -> str:
    return f"\x1b[{n}A" if n > 0 else ""


def move_cursor_down(n: int = 1) -> str:
    return f"\x1b[{n}B" if n > 0 else ""


def set_title(title: str) -> str:
    return f"\x1b]0;{title}\x07"


# ---------------------------------------------------------------------------
# SGR
# ---------------------------------------------------------------------------

_FOREGROUND = {
    "black": 30,
    "red": 31,
    "green": 32,
    "yellow": 33,
    "blue": 34,
    "magenta": 35,
    "cyan": 36,
    "white": 37,
    "gray": 90,
    "grey": 90,
    "brightBlack": 90,
    "brightRed": 91,
    "brightGreen": 92,
    "brightYellow": 93,
    "brightBlue": 94,
    "brightMagenta": 95,
    "brightCyan": 96,
    "brightWhite": 97,
}

_ATTRIBUTE_CODES = {
    "bold": 1,
    "dim": 2,
    "italic": 3,
    "underline": 4,
    "inverse": 7,
    "strikethrough": 9,
}


def _named_code(name: str) -> int | None:
    if name.startswith("bright_"):
        name = "bright" + name[7:].capitalize()
    return _FOREGROUND.get(name)


def color_params(color: Color, background: bool = False) -> str:
    """SGR parameters selecting *color* as foreground or background.

    Unknown colour names yield ``""`` (no colour).
    """
    if isinstance(color, int):
        return f"{48 if background else 38};5;{color}"
    if isinstance(color, tuple):
        r, g, b = color
        return f"{48 if background else 38};2;{r};{g};{b}"
    if color.startswith("#"):
        r, g, b = (int(color[i : i + 2], 16) for i in (1, 3, 5))
        return f"{48 if background else 38};2;{r};{g};{b}"
    code = _named_code(color)
    if code is None:
        return ""
    return str(code + 10 if background else code)


def sgr(attrs: Mapping[str, Any]) -> str:
    """Build one SGR sequence from a text-attribute mapping.

    Returns ``""`` when *attrs* selects nothing.
    """
    params: list[str] = []
    for name, code in _ATTRIBUTE_CODES.items():
        if attrs.get(name):
            params.append(str(code))
    if attrs.get("color") is not None:
        params.append(color_params(attrs["color"]))
    if attrs.get("background_color") is not None:
        params.append(color_params(attrs["background_color"], background=True))
    params = [p for p in params if p]
    if not params:
        return ""
    return f"\x1b[{';'.join(params)}m"


# ---------------------------------------------------------------------------
# Box drawing
# ---------------------------------------------------------------------------

# (horizontal, vertical, top-left, top-right, bottom-left, bottom-right)
BOX_GLYPHS: dict[str, tuple[str, str, str, str, str, str]] = {
    "single": ("─", "│", "┌", "┐", "└", "┘"),
    "double": ("═", "║", "╔", "╗", "╚", "╝"),
    "rounded": ("─", "│", "╭", "╮", "╰", "╯"),
    "heavy": ("━", "┃", "┏", "┓", "┗", "┛"),
}

