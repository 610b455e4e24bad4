"""Style records: box-model, flexbox and text attributes of a node.

A :class:`Style` is built either directly (snake_case keyword arguments) or
from the mapping carried by a render node, whose keys may use the camelCase
spelling of the node boundary (``flexDirection``).  Every value is validated
and normalised on construction, so the layout engine only ever sees finite,
non-negative numbers, ``"auto"`` or a percentage string.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field, fields, replace
from typing import Any, Mapping, Union

from ferro.core.errors import StyleError

logger = logging.getLogger(__name__)

# int/float -> absolute cells, "50%" -> percentage of the parent content box,
# "auto" -> decided by the layout pass
SizeValue = Union[int, float, str]

# named colour, 0-255 palette index, "#rrggbb" or (r, g, b)
Color = Union[str, int, tuple]

AUTO = "auto"

DISPLAY_VALUES = ("block", "flex", "none")
FLEX_DIRECTIONS = ("row", "column")
FLEX_WRAPS = ("nowrap", "wrap")
JUSTIFY_VALUES = (
    "flex-start",
    "flex-end",
    "center",
    "space-between",
    "space-around",
    "space-evenly",
)
ALIGN_VALUES = ("flex-start", "flex-end", "center", "stretch")
OVERFLOW_VALUES = ("visible", "hidden")
BORDER_KINDS = ("single", "double", "rounded", "heavy")

TEXT_ATTRIBUTES = (
    "color",
    "background_color",
    "bold",
    "dim",
    "italic",
    "underline",
    "inverse",
    "strikethrough",
)

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")
_HEX_COLOR_RE = re.compile(r"^#[0-9a-fA-F]{6}$")


def snake_case(name: str) -> str:
    """``flexDirection`` -> ``flex_direction`` (snake_case passes through)."""
    return _CAMEL_RE.sub("_", name).lower()


# ---------------------------------------------------------------------------
# Sizes
# ---------------------------------------------------------------------------


def _check_number(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise StyleError(f"{name}: expected a number, got {value!r}")
    if not math.isfinite(value):
        raise StyleError(f"{name}: must be finite, got {value!r}")
    if value < 0:
        raise StyleError(f"{name}: must be non-negative, got {value!r}")
    return value


def parse_size(name: str, value: Any) -> SizeValue:
    """Validate a size attribute and return its canonical form."""
    if value is None or value == AUTO:
        return AUTO
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("%"):
            try:
                pct = float(text[:-1])
            except ValueError:
                raise StyleError(f"{name}: bad percentage {value!r}") from None
            _check_number(name, pct)
            return text
        try:
            return _check_number(name, float(text))
        except ValueError:
            raise StyleError(f"{name}: bad size {value!r}") from None
    return _check_number(name, value)


def is_percentage(value: SizeValue) -> bool:
    return isinstance(value, str) and value.endswith("%")


def resolve_size(value: SizeValue, basis: float | None) -> float | None:
    """Resolve *value* against *basis*.

    * number -> itself
    * ``"50%"`` -> ``basis * 50 / 100`` (``None`` when there is no basis)
    * ``"auto"`` -> ``None``
    """
    if isinstance(value, (int, float)):
        return float(value)
    if is_percentage(value):
        if basis is None:
            return None
        return basis * float(value[:-1]) / 100
    return None


# ---------------------------------------------------------------------------
# Edges / Border
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Edges:
    """Per-edge spacing used for padding and margin."""

    top: float = 0
    right: float = 0
    bottom: float = 0
    left: float = 0

    @property
    def horizontal(self) -> float:
        return self.left + self.right

    @property
    def vertical(self) -> float:
        return self.top + self.bottom

    @classmethod
    def of(cls, value: Any, name: str = "padding") -> Edges:
        """Normalise a scalar, CSS-style tuple or mapping into ``Edges``."""
        if value is None:
            return cls()
        if isinstance(value, Edges):
            return value
        if isinstance(value, Mapping):
            unknown = set(value) - {"top", "right", "bottom", "left"}
            if unknown:
                raise StyleError(f"{name}: unknown edges {sorted(unknown)}")
            return cls(
                **{k: _check_number(f"{name}.{k}", v or 0) for k, v in value.items()}
            )
        if isinstance(value, (tuple, list)):
            nums = [_check_number(name, v) for v in value]
            if len(nums) == 2:
                return cls(nums[0], nums[1], nums[0], nums[1])
            if len(nums) == 4:
                return cls(*nums)
            raise StyleError(f"{name}: expected 2 or 4 values, got {len(nums)}")
        n = _check_number(name, value)
        return cls(n, n, n, n)


@dataclass(frozen=True)
class Border:
    """Border kind plus optional colour."""

    style: str = "single"
    color: Color | None = None

    @classmethod
    def of(cls, value: Any) -> Border | None:
        if value is None or value is False:
            return None
        if isinstance(value, Border):
            border = value
        elif value is True:
            border = cls()
        elif isinstance(value, str):
            border = cls(style=value)
        elif isinstance(value, Mapping):
            border = cls(
                style=value.get("style", value.get("kind", "single")),
                color=value.get("color"),
            )
        else:
            raise StyleError(f"border: unsupported value {value!r}")
        if border.style not in BORDER_KINDS:
            raise StyleError(
                f"border: unknown kind {border.style!r} (expected one of {BORDER_KINDS})"
            )
        if border.color is not None:
            check_color("border.color", border.color)
        return border


def check_color(name: str, value: Any) -> Color:
    if isinstance(value, bool):
        raise StyleError(f"{name}: bad colour {value!r}")
    if isinstance(value, int):
        if not 0 <= value <= 255:
            raise StyleError(f"{name}: palette index out of range: {value}")
        return value
    if isinstance(value, (tuple, list)):
        if len(value) != 3 or not all(
            isinstance(c, int) and 0 <= c <= 255 for c in value
        ):
            raise StyleError(f"{name}: expected (r, g, b), got {value!r}")
        return tuple(value)
    if isinstance(value, str):
        if value.startswith("#") and not _HEX_COLOR_RE.match(value):
            raise StyleError(f"{name}: bad hex colour {value!r}")
        return value
    raise StyleError(f"{name}: bad colour {value!r}")


# ---------------------------------------------------------------------------
# Style
# ---------------------------------------------------------------------------


def _check_choice(name: str, value: Any, choices: tuple[str, ...]) -> str:
    if value not in choices:
        raise StyleError(f"{name}: {value!r} is not one of {choices}")
    return value


@dataclass
class Style:
    """The full attribute set of a node."""

    display: str = "block"

    width: SizeValue = AUTO
    height: SizeValue = AUTO
    min_width: float = 0
    min_height: float = 0
    max_width: float | None = None
    max_height: float | None = None

    padding: Edges = field(default_factory=Edges)
    margin: Edges = field(default_factory=Edges)

    flex_direction: str = "row"
    flex_wrap: str = "nowrap"
    justify_content: str = "flex-start"
    align_items: str = "stretch"
    align_self: str = AUTO
    # accepted for multi-line flex containers; lines are always packed at the start
    align_content: str = "stretch"
    gap: float = 0
    flex_grow: float = 0
    flex_shrink: float = 1
    flex_basis: SizeValue = AUTO

    border: Border | None = None
    overflow: str = "visible"

    color: Color | None = None
    background_color: Color | None = None
    bold: bool | None = None
    dim: bool | None = None
    italic: bool | None = None
    underline: bool | None = None
    inverse: bool | None = None
    strikethrough: bool | None = None

    def __post_init__(self) -> None:
        _check_choice("display", self.display, DISPLAY_VALUES)
        _check_choice("flex_direction", self.flex_direction, FLEX_DIRECTIONS)
        _check_choice("flex_wrap", self.flex_wrap, FLEX_WRAPS)
        _check_choice("justify_content", self.justify_content, JUSTIFY_VALUES)
        _check_choice("align_items", self.align_items, ALIGN_VALUES)
        _check_choice("align_self", self.align_self, (AUTO, *ALIGN_VALUES))
        _check_choice("align_content", self.align_content, ALIGN_VALUES)
        _check_choice("overflow", self.overflow, OVERFLOW_VALUES)

        self.width = parse_size("width", self.width)
        self.height = parse_size("height", self.height)
        if self.flex_basis != "content":
            self.flex_basis = parse_size("flex_basis", self.flex_basis)
        self.min_width = _check_number("min_width", self.min_width)
        self.min_height = _check_number("min_height", self.min_height)
        if self.max_width is not None:
            self.max_width = _check_number("max_width", self.max_width)
        if self.max_height is not None:
            self.max_height = _check_number("max_height", self.max_height)
        self.gap = _check_number("gap", self.gap)
        self.flex_grow = _check_number("flex_grow", self.flex_grow)
        self.flex_shrink = _check_number("flex_shrink", self.flex_shrink)

        self.padding = Edges.of(self.padding, "padding")
        self.margin = Edges.of(self.margin, "margin")
        self.border = Border.of(self.border)

        if self.color is not None:
            self.color = check_color("color", self.color)
        if self.background_color is not None:
            self.background_color = check_color(
                "background_color", self.background_color
            )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | Style | None) -> Style:
        """Build a style from a node's style mapping (camel or snake keys).

        ``borderColor`` colours the border when the mapping has one.  Keys
        the engine has no use for (``align``, ``wrap`` on text nodes) are
        dropped; their values are not checked.
        """
        if data is None:
            return cls()
        if isinstance(data, Style):
            return data
        kwargs: dict[str, Any] = {}
        border_color = None
        for key, value in data.items():
            name = snake_case(key)
            if name == "background":
                name = "background_color"
            if name == "border_color":
                border_color = value
            elif name in _FIELD_NAMES:
                kwargs[name] = value
            else:
                logger.debug("ignoring style attribute %r", key)
        style = cls(**kwargs)
        if border_color is not None and style.border is not None and style.border.color is None:
            style.border = replace(
                style.border, color=check_color("border_color", border_color)
            )
        return style

    @property
    def is_flex(self) -> bool:
        return self.display == "flex"

    @property
    def is_row(self) -> bool:
        return self.flex_direction == "row"

    @property
    def border_width(self) -> int:
        return 1 if self.border is not None else 0

    def text_attributes(self) -> dict[str, Any]:
        """The text attributes this style sets explicitly."""
        result: dict[str, Any] = {}
        for name in TEXT_ATTRIBUTES:
            value = getattr(self, name)
            if value is not None:
                result[name] = value
        return result


_FIELD_NAMES = frozenset(f.name for f in fields(Style))
