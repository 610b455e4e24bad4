"""Flexbox-style layout engine.

``Layout.calculate(node, available_width, available_height)`` resolves the
size of *node* against the available space and then positions and sizes
every descendant.  Results are written to ``x`` / ``y`` / ``width`` /
``height`` of each :class:`LayoutNode`; positions are absolute (they include
the offsets of all ancestors).  The engine keeps no state between passes.

Sizing rules:

* literal numbers are absolute cells, percentages resolve against the
  parent's content box, ``"auto"`` is decided by the pass;
* the node handed to ``calculate`` fills the available space on its auto
  axes;
* block children stack vertically, fill the content width and size their
  height to their content;
* flex items start from their flex basis (0 for ``auto`` on containers,
  the measured text for text leaves, the laid-out content height for
  ``flex_basis="content"``), then grow / shrink along the main axis;
* min/max clamps are applied last and always win.
"""

from __future__ import annotations

import weakref
from dataclasses import dataclass
from typing import Any

from ferro.core.nodes import BoxNode, RenderNode, TextNode
from ferro.core.style import AUTO, Style, resolve_size
from ferro.core.utils import visible_width

__all__ = ["LayoutNode", "Layout", "Rect", "build_layout_tree"]


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float


class LayoutNode:
    """A node of the layout tree.

    Holds its computed box, its style, its children and a weak reference to
    its parent (used for re-parenting only).  ``text`` is set for text
    leaves and ``source`` points back at the render node it was built from.
    """

    def __init__(
        self,
        style: Style | dict[str, Any] | None = None,
        *,
        text: str | None = None,
        source: RenderNode | None = None,
        **attrs: Any,
    ) -> None:
        if attrs:
            if isinstance(style, Style):
                raise TypeError("pass either a Style instance or style keywords, not both")
            style = {**(style or {}), **attrs}
        self.style: Style = Style.from_dict(style)
        self.text = text
        self.source = source

        self.x: float = 0.0
        self.y: float = 0.0
        self.width: float = 0.0
        self.height: float = 0.0
        if isinstance(self.style.width, (int, float)):
            self.width = float(self.style.width)
        if isinstance(self.style.height, (int, float)):
            self.height = float(self.style.height)

        self.children: list[LayoutNode] = []
        self._parent: weakref.ReferenceType[LayoutNode] | None = None

    def __repr__(self) -> str:
        kind = "text" if self.text is not None else self.style.display
        return (
            f"<LayoutNode {kind} x={self.x:g} y={self.y:g} "
            f"w={self.width:g} h={self.height:g} children={len(self.children)}>"
        )

    @property
    def parent(self) -> LayoutNode | None:
        return self._parent() if self._parent is not None else None

    def append_child(self, child: LayoutNode) -> LayoutNode:
        """Append *child*, detaching it from any previous parent first."""
        previous = child.parent
        if previous is not None:
            previous.remove_child(child)
        self.children.append(child)
        child._parent = weakref.ref(self)
        return child

    def remove_child(self, child: LayoutNode) -> LayoutNode:
        """Remove *child* (no-op if it is not a child of this node)."""
        for i, existing in enumerate(self.children):
            if existing is child:
                del self.children[i]
                child._parent = None
                break
        return child

    def get_style(self, name: str) -> Any:
        return getattr(self.style, name)

    def measure(self) -> tuple[float, float]:
        """Intrinsic content size of a text leaf (columns, lines)."""
        if not self.text:
            return 0.0, 0.0
        lines = self.text.split("\n")
        return float(max(visible_width(line) for line in lines)), float(len(lines))

    def walk(self):
        """Yield this node and its descendants in pre-order."""
        yield self
        for child in self.children:
            yield from child.walk()


def build_layout_tree(node: RenderNode) -> LayoutNode:
    """Create a fresh layout tree from a normalised render tree."""
    if isinstance(node, TextNode):
        return LayoutNode(node.style, text=node.content, source=node)
    layout_node = LayoutNode(node.style, source=node)
    if isinstance(node, BoxNode):
        for child in node.children:
            layout_node.append_child(build_layout_tree(child))
    return layout_node


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _clamp(value: float, lo: float, hi: float | None) -> float:
    if hi is not None:
        value = min(value, hi)
    return max(value, lo, 0.0)


def _clamp_width(node: LayoutNode, value: float) -> float:
    return _clamp(value, node.style.min_width, node.style.max_width)


def _clamp_height(node: LayoutNode, value: float) -> float:
    return _clamp(value, node.style.min_height, node.style.max_height)


def _insets(style: Style) -> tuple[float, float]:
    """Horizontal and vertical space taken by padding and border."""
    b = style.border_width * 2
    return style.padding.horizontal + b, style.padding.vertical + b


class _Item:
    """Per-pass bookkeeping for one flex item."""

    __slots__ = ("node", "main", "cross", "auto_cross", "margin_main", "margin_cross")

    def __init__(self, node: LayoutNode, row: bool) -> None:
        self.node = node
        self.main = 0.0
        self.cross = 0.0
        style = node.style
        self.auto_cross = (style.height if row else style.width) == AUTO
        m = style.margin
        self.margin_main = (m.left, m.right) if row else (m.top, m.bottom)
        self.margin_cross = (m.top, m.bottom) if row else (m.left, m.right)

    @property
    def outer_main(self) -> float:
        return self.main + self.margin_main[0] + self.margin_main[1]

    @property
    def outer_cross(self) -> float:
        return self.cross + self.margin_cross[0] + self.margin_cross[1]


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------


class Layout:
    """Computes positions and sizes for a layout tree."""

    def __init__(self) -> None:
        # (id(node), width) -> content-fitted height, valid for one calculate()
        self._fitted: dict[tuple[int, float], float] = {}

    def calculate(
        self,
        node: LayoutNode,
        available_width: float | None = None,
        available_height: float | None = None,
    ) -> LayoutNode:
        """Lay out *node* and its subtree in place and return *node*.

        When a dimension is not given the node's current size is used.
        """
        aw = node.width if available_width is None else available_width
        ah = node.height if available_height is None else available_height
        self._resolve_own_size(node, (aw, ah), (aw, ah))
        self._fitted.clear()
        try:
            self._layout(node, fit_height=False)
        finally:
            self._fitted.clear()
        return node

    # -- box model ---------------------------------------------------------

    def get_content_box(self, node: LayoutNode) -> Rect:
        """The node's box minus padding and border, relative to the node."""
        style = node.style
        b = style.border_width
        p = style.padding
        return Rect(
            x=p.left + b,
            y=p.top + b,
            width=max(0.0, node.width - p.horizontal - 2 * b),
            height=max(0.0, node.height - p.vertical - 2 * b),
        )

    def get_outer_box(self, node: LayoutNode) -> Rect:
        """The node's box grown by its margin."""
        m = node.style.margin
        return Rect(
            x=node.x - m.left,
            y=node.y - m.top,
            width=node.width + m.horizontal,
            height=node.height + m.vertical,
        )

    def apply_constraints(
        self,
        node: LayoutNode,
        parent_width: float | None = None,
        parent_height: float | None = None,
    ) -> None:
        """Apply literal / percentage sizes and min/max clamps to *node*."""
        style = node.style
        width = resolve_size(style.width, parent_width)
        height = resolve_size(style.height, parent_height)
        if width is not None:
            node.width = width
        if height is not None:
            node.height = height
        node.width = _clamp_width(node, node.width)
        node.height = _clamp_height(node, node.height)

    # -- own size ------------------------------------------------------------

    def _resolve_own_size(
        self,
        node: LayoutNode,
        basis: tuple[float | None, float | None],
        available: tuple[float | None, float | None],
    ) -> None:
        style = node.style
        width = resolve_size(style.width, basis[0])
        height = resolve_size(style.height, basis[1])
        measured = self._measure(node) if node.text is not None else None

        if width is None:
            if available[0] is not None:
                width = available[0]
            elif measured is not None:
                width = measured[0]
            else:
                width = node.width
        if height is None:
            if measured is not None:
                height = measured[1]
            elif available[1] is not None:
                height = available[1]
            else:
                height = node.height

        node.width = _clamp_width(node, width)
        node.height = _clamp_height(node, height)

    def _measure(self, node: LayoutNode) -> tuple[float, float]:
        w, h = node.measure()
        iw, ih = _insets(node.style)
        return w + iw, h + ih

    # -- dispatch ------------------------------------------------------------

    def _layout(self, node: LayoutNode, fit_height: bool) -> None:
        """Lay out the children of *node*, whose own size is already fixed.

        With *fit_height* the node's height is replaced by the height of its
        laid-out content.
        """
        style = node.style
        if style.display == "none":
            node.width = 0.0
            node.height = 0.0
            return

        if not node.children:
            if fit_height and node.text is None:
                node.height = _clamp_height(node, _insets(style)[1])
            return

        if style.is_flex:
            content_height = self._flex_layout(node, fit_height)
        else:
            content_height = self._block_layout(node)

        if fit_height:
            node.height = _clamp_height(node, content_height + _insets(style)[1])

    def _fitted_height(self, node: LayoutNode) -> float:
        """Height of *node* fitted to its content at its current width.

        The subtree is laid out at most once per width during a pass; later
        requests reuse that height.
        """
        key = (id(node), node.width)
        height = self._fitted.get(key)
        if height is None:
            self._layout(node, fit_height=True)
            height = self._fitted[key] = node.height
        else:
            node.height = height
        return height

    # -- block ---------------------------------------------------------------

    def _block_layout(self, node: LayoutNode) -> float:
        """Stack children vertically; returns the stacked height."""
        content = self.get_content_box(node)
        origin_x = node.x + content.x
        origin_y = node.y + content.y
        offset = 0.0

        for child in node.children:
            margin = child.style.margin
            child.x = origin_x + margin.left
            child.y = origin_y + offset + margin.top
            if child.style.display == "none":
                child.width = child.height = 0.0
                continue

            remaining = max(0.0, content.height - offset - margin.vertical)
            self._resolve_own_size(
                child,
                (content.width, content.height),
                (max(0.0, content.width - margin.horizontal), remaining),
            )
            fit = child.style.height == AUTO and child.text is None
            self._layout(child, fit_height=fit)
            offset += child.height + margin.vertical

        return offset

    # -- flex ----------------------------------------------------------------

    def _flex_layout(self, node: LayoutNode, fit_height: bool) -> float:
        """Flex layout; returns the content height actually used."""
        style = node.style
        row = style.is_row
        content = self.get_content_box(node)
        origin_x = node.x + content.x
        origin_y = node.y + content.y
        gap = style.gap

        main_size = content.width if row else content.height
        cross_size = content.height if row else content.width
        main_definite = row or not fit_height
        cross_definite = not row or not fit_height

        items: list[_Item] = []
        for child in node.children:
            if child.style.display == "none":
                child.x, child.y = origin_x, origin_y
                child.width = child.height = 0.0
                continue
            item = _Item(child, row)
            item.main = self._flex_basis(child, content, row)
            items.append(item)

        if not items:
            return 0.0

        if style.flex_wrap == "wrap" and main_definite:
            lines = self._break_lines(items, main_size, gap)
        else:
            lines = [items]

        line_crosses: list[float] = []
        line_frees: list[float] = []
        for line in lines:
            used = sum(i.outer_main for i in line) + gap * (len(line) - 1)
            line_main = main_size if main_definite else used
            free = self._distribute(line, line_main, gap, row)
            line_frees.append(free)

            for item in line:
                self._set_main(item, row)
                item.cross = self._hypothetical_cross(item, content, row)
            if len(lines) == 1 and cross_definite:
                line_crosses.append(cross_size)
            else:
                line_crosses.append(max(i.outer_cross for i in line))

        if not main_definite:
            main_size = max(
                sum(i.outer_main for i in line) + gap * (len(line) - 1)
                for line in lines
            )

        cross_offset = 0.0
        for line, line_cross, free in zip(lines, line_crosses, line_frees):
            self._position_line(
                node, line, line_cross, free, gap, row, origin_x, origin_y, cross_offset
            )
            cross_offset += line_cross + gap
        cross_used = cross_offset - gap

        for item in items:
            self._layout(item.node, fit_height=False)

        return cross_used if row else main_size

    def _flex_basis(self, child: LayoutNode, content: Rect, row: bool) -> float:
        style = child.style
        content_main = content.width if row else content.height
        if style.flex_basis == "content":
            return self._content_main(child, content, row)
        basis = resolve_size(style.flex_basis, content_main)
        if basis is None:
            basis = resolve_size(style.width if row else style.height, content_main)
        if basis is None:
            if child.text is not None:
                measured = self._measure(child)
                basis = measured[0] if row else measured[1]
            else:
                basis = 0.0
        return basis

    def _content_main(self, child: LayoutNode, content: Rect, row: bool) -> float:
        """Main size a child takes when laid out at its content size."""
        if child.text is not None:
            measured = self._measure(child)
            return measured[0] if row else measured[1]
        if row:
            # no intrinsic widths for containers: use the explicit width, if any
            return resolve_size(child.style.width, content.width) or 0.0
        width = resolve_size(child.style.width, content.width)
        child.width = _clamp_width(child, content.width if width is None else width)
        return self._fitted_height(child)

    @staticmethod
    def _break_lines(items: list[_Item], main_size: float, gap: float) -> list[list[_Item]]:
        lines: list[list[_Item]] = []
        current: list[_Item] = []
        used = 0.0
        for item in items:
            extra = item.outer_main if not current else gap + item.outer_main
            if current and used + extra > main_size:
                lines.append(current)
                current = [item]
                used = item.outer_main
            else:
                current.append(item)
                used += extra
        if current:
            lines.append(current)
        return lines

    @staticmethod
    def _distribute(line: list[_Item], main_size: float, gap: float, row: bool) -> float:
        """Grow or shrink the items of one line; returns the leftover space."""
        total = sum(i.outer_main for i in line) + gap * (len(line) - 1)
        remaining = main_size - total
        total_grow = sum(i.node.style.flex_grow for i in line)
        total_shrink = sum(i.node.style.flex_shrink for i in line)

        if remaining > 0 and total_grow > 0:
            per_unit = remaining / total_grow
            for item in line:
                item.main += per_unit * item.node.style.flex_grow
        elif remaining < 0 and total_shrink > 0:
            per_unit = remaining / total_shrink
            for item in line:
                item.main = max(0.0, item.main + per_unit * item.node.style.flex_shrink)

        for item in line:
            clamp = _clamp_width if row else _clamp_height
            item.main = clamp(item.node, item.main)

        return main_size - (sum(i.outer_main for i in line) + gap * (len(line) - 1))

    @staticmethod
    def _set_main(item: _Item, row: bool) -> None:
        if row:
            item.node.width = item.main
        else:
            item.node.height = item.main

    def _hypothetical_cross(self, item: _Item, content: Rect, row: bool) -> float:
        child = item.node
        style = child.style
        cross_basis = content.height if row else content.width
        explicit = resolve_size(style.height if row else style.width, cross_basis)
        if explicit is not None:
            value = explicit
        elif child.text is not None:
            measured = self._measure(child)
            value = measured[1] if row else measured[0]
        elif row:
            value = self._fitted_height(child)
        else:
            value = max(0.0, cross_basis - item.margin_cross[0] - item.margin_cross[1])
        value = _clamp_height(child, value) if row else _clamp_width(child, value)
        if row:
            child.height = value
        else:
            child.width = value
        return value

    def _position_line(
        self,
        node: LayoutNode,
        line: list[_Item],
        line_cross: float,
        free: float,
        gap: float,
        row: bool,
        origin_x: float,
        origin_y: float,
        cross_offset: float,
    ) -> None:
        style = node.style
        n = len(line)
        start = 0.0
        between = gap
        justify = style.justify_content
        if justify == "flex-end":
            start = free
        elif justify == "center":
            start = free / 2
        elif justify == "space-between":
            if n > 1:
                between += free / (n - 1)
        elif justify == "space-around":
            spacing = free / n
            start = spacing / 2
            between += spacing
        elif justify == "space-evenly":
            spacing = free / (n + 1)
            start = spacing
            between += spacing

        main_origin = origin_x if row else origin_y
        cross_origin = (origin_y if row else origin_x) + cross_offset
        pos = start
        for item in line:
            child = item.node
            align = child.style.align_self
            if align == AUTO:
                align = style.align_items

            if align == "stretch" and item.auto_cross:
                stretched = max(0.0, line_cross - item.margin_cross[0] - item.margin_cross[1])
                if row:
                    child.height = _clamp_height(child, stretched)
                    item.cross = child.height
                else:
                    child.width = _clamp_width(child, stretched)
                    item.cross = child.width

            cross_free = line_cross - item.outer_cross
            if align == "center":
                cross_pos = cross_free / 2
            elif align == "flex-end":
                cross_pos = cross_free
            else:
                cross_pos = 0.0

            main_pos = main_origin + pos + item.margin_main[0]
            cross_abs = cross_origin + cross_pos + item.margin_cross[0]
            if row:
                child.x, child.y = main_pos, cross_abs
            else:
                child.x, child.y = cross_abs, main_pos
            pos += item.outer_main + between
