"""Terminal input decoding: raw stdin chunks to key and mouse events.

Handles single characters, control characters, Alt/Meta prefixes, the
legacy xterm/VT escape sequences for navigation and function keys (with
xterm modifier parameters) and SGR mouse reports.

Each call is self-contained: a sequence split across two reads is not
reassembled and decodes as two unrelated inputs.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal, Optional, Union

# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass
class KeyEvent:
    """A decoded key press."""

    sequence: str
    name: Optional[str] = None
    ctrl: bool = False
    meta: bool = False
    shift: bool = False
    code: Optional[int] = None

    @property
    def id(self) -> str:
        """Combination string such as ``"ctrl+c"`` or ``"meta+shift+up"``."""
        prefix = ""
        if self.ctrl:
            prefix += "ctrl+"
        if self.meta:
            prefix += "meta+"
        if self.shift:
            prefix += "shift+"
        return prefix + (self.name if self.name is not None else self.sequence)


MouseAction = Literal["press", "release", "scroll"]


@dataclass
class MouseEvent:
    """A decoded SGR mouse report (0-based cell coordinates)."""

    x: int
    y: int
    button: Optional[str]
    action: MouseAction
    ctrl: bool = False
    meta: bool = False
    shift: bool = False
    motion: bool = False
    sequence: str = ""


InputEvent = Union[KeyEvent, MouseEvent]

# ---------------------------------------------------------------------------
# Sequence tables
# ---------------------------------------------------------------------------

# Single bytes with a name of their own (checked before the ctrl+letter rule)
SPECIAL_KEYS: dict[str, str] = {
    "\x1b": "escape",
    "\r": "enter",
    "\n": "enter",
    "\t": "tab",
    "\x7f": "backspace",
    "\x08": "backspace",
}

# Final byte of ``ESC [ ...`` and ``ESC O ...`` sequences
LETTER_KEYS: dict[str, str] = {
    "A": "up",
    "B": "down",
    "C": "right",
    "D": "left",
    "E": "clear",
    "H": "home",
    "F": "end",
    "P": "f1",
    "Q": "f2",
    "R": "f3",
    "S": "f4",
}

# ``ESC [ <n> ~``
TILDE_KEYS: dict[int, str] = {
    1: "home",
    2: "insert",
    3: "delete",
    4: "end",
    5: "pageup",
    6: "pagedown",
    7: "home",
    8: "end",
    11: "f1",
    12: "f2",
    13: "f3",
    14: "f4",
    15: "f5",
    17: "f6",
    18: "f7",
    19: "f8",
    20: "f9",
    21: "f10",
    23: "f11",
    24: "f12",
}

_MOUSE_RE = re.compile(r"\x1b\[<(\d+);(\d+);(\d+)([Mm])")
_CSI_TILDE_RE = re.compile(r"\x1b\[(\d+)(?:;(\d+))?~")
_CSI_LETTER_RE = re.compile(r"\x1b\[(?:1;(\d+))?([ABCDEFHPQRSZ])")
_SS3_RE = re.compile(r"\x1bO(\d?)([ABCDEFHPQRS])")

# One complete escape sequence of any kind, for tokenising
_TOKEN_RE = re.compile(
    r"\x1b\[<\d+;\d+;\d+[Mm]"
    r"|\x1b\[[0-9;?]*[ -/]*[@-~]"
    r"|\x1bO\d?[A-Za-z]"
)

# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def _apply_modifier(event: KeyEvent, param: Optional[str]) -> KeyEvent:
    """Apply an xterm modifier parameter (1 + bitmask of shift/alt/ctrl)."""
    if not param:
        return event
    mask = int(param) - 1
    if mask & 1:
        event.shift = True
    if mask & 2:
        event.meta = True
    if mask & 4:
        event.ctrl = True
    return event


def _decode_char(ch: str) -> KeyEvent:
    code = ord(ch)
    event = KeyEvent(sequence=ch, code=code)
    special = SPECIAL_KEYS.get(ch)
    if special is not None:
        event.name = special
    elif code < 32:
        event.ctrl = True
        event.name = chr(code + 64).lower()
    else:
        event.name = ch
        event.shift = ch != ch.lower() and ch == ch.upper()
    return event


def decode_mouse(data: str) -> Optional[MouseEvent]:
    """Decode an SGR mouse report, or return ``None``."""
    match = _MOUSE_RE.fullmatch(data)
    if match is None:
        return None
    code = int(match.group(1))
    event = MouseEvent(
        x=int(match.group(2)) - 1,
        y=int(match.group(3)) - 1,
        button=("left", "middle", "right", None)[code & 3],
        action="release" if match.group(4) == "m" else "press",
        shift=bool(code & 4),
        meta=bool(code & 8),
        ctrl=bool(code & 16),
        motion=bool(code & 32),
        sequence=data,
    )
    if code & 64:
        event.action = "scroll"
        event.button = "down" if code & 1 else "up"
    return event


def decode(data: Union[str, bytes]) -> Optional[InputEvent]:
    """Decode one input chunk into a single event.

    Returns ``None`` for anything that is not exactly one recognised key or
    mouse report.
    """
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    if not data:
        return None

    if len(data) == 1:
        return _decode_char(data)

    if data[0] != "\x1b":
        return None

    if data.startswith("\x1b[<"):
        return decode_mouse(data)

    match = _CSI_LETTER_RE.fullmatch(data)
    if match is not None:
        param, letter = match.groups()
        if letter == "Z":
            return KeyEvent(sequence=data, name="tab", shift=True)
        return _apply_modifier(KeyEvent(sequence=data, name=LETTER_KEYS[letter]), param)

    match = _CSI_TILDE_RE.fullmatch(data)
    if match is not None:
        name = TILDE_KEYS.get(int(match.group(1)))
        if name is None:
            return None
        return _apply_modifier(KeyEvent(sequence=data, name=name), match.group(2))

    match = _SS3_RE.fullmatch(data)
    if match is not None:
        param, letter = match.groups()
        return _apply_modifier(KeyEvent(sequence=data, name=LETTER_KEYS[letter]), param)

    if len(data) == 2:
        event = _decode_char(data[1])
        event.sequence = data
        event.code = None
        event.meta = True
        return event

    return None


def split_sequences(data: Union[str, bytes]) -> list[str]:
    """Split one input chunk into individual key / mouse sequences."""
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    tokens: list[str] = []
    i = 0
    n = len(data)
    while i < n:
        if data[i] != "\x1b":
            tokens.append(data[i])
            i += 1
            continue
        match = _TOKEN_RE.match(data, i)
        if match is not None:
            end = match.end()
        elif i + 1 < n and data[i + 1] != "\x1b":
            end = i + 2
        else:
            end = i + 1
        tokens.append(data[i:end])
        i = end
    return tokens


class InputDecoder:
    """Turns raw input chunks into an ordered list of events."""

    def __init__(self) -> None:
        self.dropped = 0

    def feed(self, data: Union[str, bytes]) -> list[InputEvent]:
        if isinstance(data, bytes):
            data = data.decode("utf-8", errors="replace")
        # a whole chunk that is one sequence decodes as-is
        single = decode(data)
        if single is not None:
            return [single]
        events: list[InputEvent] = []
        for token in split_sequences(data):
            event = decode(token)
            if event is None:
                self.dropped += 1
                continue
            events.append(event)
        return events
