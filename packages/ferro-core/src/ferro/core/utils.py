"""Terminal text utilities: ANSI handling and column-width measurement.

Widths are measured per grapheme cluster (``grapheme``) using ``wcwidth``
for East-Asian wide characters, with SGR/OSC escapes counting as zero
columns.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Iterator

import grapheme
import wcwidth as _wcwidth

# CSI SGR / cursor / erase sequences, OSC 8 hyperlinks, APC payloads
_STRIP_RE = re.compile(
    r"\x1b\[[0-9;]*[mGKHJ]"
    r"|\x1b\]8;;[^\x07]*\x07"
    r"|\x1b_[^\x07\x1b]*(?:\x07|\x1b\\)"
)

# ---------------------------------------------------------------------------
# Width cache (capped)
# ---------------------------------------------------------------------------

_width_cache: dict[str, int] = {}
_WIDTH_CACHE_MAX = 512


def _cache_width(key: str, value: int) -> int:
    if len(_width_cache) >= _WIDTH_CACHE_MAX:
        _width_cache.clear()
    _width_cache[key] = value
    return value


def grapheme_width(g: str) -> int:
    """Return the terminal display width of a single grapheme cluster."""
    if not g:
        return 0

    if len(g) == 1:
        cp = ord(g)
        if cp < 0x20 or (0x7F <= cp <= 0x9F):
            return 0
        return max(_wcwidth.wcwidth(g), 0)

    # Emoji presentation, ZWJ sequences, skin tones, flags
    for ch in g:
        cp = ord(ch)
        if cp in (0xFE0F, 0x200D):
            return 2
        if 0x1F3FB <= cp <= 0x1F3FF or 0x1F1E6 <= cp <= 0x1F1FF:
            return 2

    first = g[0]
    if ord(first) >= 0x1F000:
        return 2
    if unicodedata.category(first) in ("Mn", "Me", "Mc", "Cf"):
        return 0
    return max(_wcwidth.wcwidth(first), 0)


def strip_ansi(text: str) -> str:
    """Remove escape sequences from *text*."""
    return _STRIP_RE.sub("", text)


def visible_width(text: str) -> int:
    """Calculate the visible terminal width of *text*.

    ANSI escapes are ignored and tabs count as three columns.
    """
    if not text:
        return 0

    stripped = _STRIP_RE.sub("", text)
    if not stripped:
        return 0
    stripped = stripped.replace("\t", "   ")

    if stripped.isascii() and stripped.isprintable():
        return len(stripped)

    cached = _width_cache.get(stripped)
    if cached is not None:
        return cached

    total = sum(grapheme_width(g) for g in grapheme.graphemes(stripped))
    return _cache_width(stripped, total)


# ---------------------------------------------------------------------------
# Escape extraction
# ---------------------------------------------------------------------------


def extract_ansi_code(text: str, pos: int) -> tuple[str, int] | None:
    """Extract the escape sequence starting at *pos* in *text*.

    Returns ``(code, length)`` or ``None`` when *pos* does not start a
    CSI (``ESC[`` ... ``m/G/K/H/J``), OSC or APC sequence.
    """
    if pos + 1 >= len(text) or text[pos] != "\x1b":
        return None

    kind = text[pos + 1]
    if kind == "[":
        i = pos + 2
        while i < len(text):
            ch = text[i]
            if ch in "mGKHJ":
                return text[pos : i + 1], i + 1 - pos
            if not (ch.isdigit() or ch == ";"):
                return None
            i += 1
        return None

    if kind in "]_":
        i = pos + 2
        while i < len(text):
            if text[i] == "\x07":
                return text[pos : i + 1], i + 1 - pos
            if text[i] == "\x1b" and i + 1 < len(text) and text[i + 1] == "\\":
                return text[pos : i + 2], i + 2 - pos
            i += 1
    return None


def iter_cells(text: str) -> Iterator[tuple[str, str, int]]:
    """Walk *text* cell by cell.

    Yields ``(codes, cluster, width)`` where *codes* are the escape
    sequences immediately preceding the grapheme *cluster*.  Escapes
    trailing the last cluster are yielded with an empty cluster.
    """
    codes: list[str] = []
    i = 0
    n = len(text)
    while i < n:
        extracted = extract_ansi_code(text, i)
        if extracted is not None:
            code, length = extracted
            codes.append(code)
            i += length
            continue
        # Take the grapheme cluster that starts here, stopping at the next escape
        end = text.find("\x1b", i + 1)
        chunk = text[i:] if end == -1 else text[i:end]
        cluster = next(grapheme.graphemes(chunk))
        i += len(cluster)
        if cluster == "\t":
            for _ in range(3):
                yield "".join(codes), " ", 1
                codes = []
            continue
        yield "".join(codes), cluster, grapheme_width(cluster)
        codes = []
    if codes:
        yield "".join(codes), "", 0


# ---------------------------------------------------------------------------
# Truncation
# ---------------------------------------------------------------------------


def truncate_to_width(text: str, max_width: int, ellipsis: str = "") -> str:
    """Cut *text* so it occupies at most *max_width* columns.

    Escape sequences are preserved (including any after the cut, so a
    trailing reset is never lost).  *ellipsis*, when given, replaces the
    tail of over-long text and counts towards the width.
    """
    if max_width <= 0:
        return ""
    if visible_width(text) <= max_width:
        return text

    target = max_width - visible_width(ellipsis)
    if target < 0:
        return _take_columns(ellipsis, max_width)
    return _take_columns(text, target) + ellipsis


def _take_columns(text: str, max_cols: int) -> str:
    parts: list[str] = []
    cols = 0
    full = False
    for codes, cluster, width in iter_cells(text):
        parts.append(codes)
        if full or not cluster:
            continue
        if cols + width > max_cols:
            full = True
            continue
        parts.append(cluster)
        cols += width
    return "".join(parts)
