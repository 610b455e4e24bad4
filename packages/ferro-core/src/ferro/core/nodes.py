"""Render nodes: the immutable output of a component's ``render()``.

Components may return plain strings, ``TextNode`` / ``BoxNode`` values,
mappings shaped like ``{"type": "box", "style": {...}, "children": [...]}``,
elements built with :func:`h`, nested lists of any of these, or other
component instances.  :func:`normalize` folds all of those into a tree of
``TextNode`` / ``BoxNode`` that the layout engine and renderer consume.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Callable, Iterable, Mapping, Union

from ferro.core.style import Style


@dataclass(frozen=True)
class TextNode:
    """A run of text (may contain newlines and embedded SGR escapes)."""

    content: str = ""
    style: Style = field(default_factory=Style)

    @property
    def type(self) -> str:
        return "text"


@dataclass(frozen=True)
class BoxNode:
    """A styled container.

    ``kind`` is ``"box"`` for real boxes; unknown node types keep their type
    name here and are treated as plain containers of their children.
    """

    style: Style = field(default_factory=Style)
    children: tuple[Any, ...] = ()
    kind: str = "box"

    @property
    def type(self) -> str:
        return self.kind


RenderNode = Union[TextNode, BoxNode]


@dataclass(frozen=True)
class Element:
    """A component-tree definition produced by :func:`h`."""

    type: Any
    props: dict[str, Any] = field(default_factory=dict)
    children: tuple[Any, ...] = ()


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def flatten_children(children: Iterable[Any]) -> list[Any]:
    flat: list[Any] = []
    for child in children:
        if isinstance(child, (list, tuple)):
            flat.extend(flatten_children(child))
        elif child is not None and child is not False and child is not True:
            flat.append(child)
    return flat


def text(content: Any = "", style: Style | Mapping[str, Any] | None = None, **attrs: Any) -> TextNode:
    """Build a ``TextNode``; keyword arguments are style attributes."""
    if isinstance(style, Style) and not attrs:
        node_style = style
    else:
        node_style = Style.from_dict({**_style_dict(style), **attrs})
    return TextNode(content="" if content is None else str(content), style=node_style)


def box(*children: Any, style: Style | Mapping[str, Any] | None = None, **attrs: Any) -> BoxNode:
    """Build a ``BoxNode``; keyword arguments are style attributes."""
    if isinstance(style, Style) and not attrs:
        node_style = style
    else:
        node_style = Style.from_dict({**_style_dict(style), **attrs})
    return BoxNode(style=node_style, children=tuple(flatten_children(children)))


def h(type: Any, props: Mapping[str, Any] | None = None, *children: Any) -> Element:
    """Create an element definition (``None``/``False`` children dropped)."""
    return Element(type=type, props=dict(props or {}), children=tuple(flatten_children(children)))


def _style_dict(style: Style | Mapping[str, Any] | None) -> dict[str, Any]:
    if style is None:
        return {}
    if isinstance(style, Style):
        return {f.name: getattr(style, f.name) for f in fields(style)}
    return dict(style)


# ---------------------------------------------------------------------------
# Normalisation
# ---------------------------------------------------------------------------

Expander = Callable[[Any], Any]


def normalize(value: Any, expand: Expander | None = None) -> RenderNode | None:
    """Fold arbitrary render output into a ``TextNode`` / ``BoxNode`` tree.

    *expand* is called for embedded component instances (anything with a
    ``render`` attribute that is not already a node) and must return that
    instance's render output.
    """
    if value is None or value is False or value is True:
        return None
    if isinstance(value, str):
        return TextNode(content=value)
    if isinstance(value, (int, float)):
        return TextNode(content=str(value))
    if isinstance(value, TextNode):
        return value
    if isinstance(value, BoxNode):
        return BoxNode(
            style=value.style,
            children=_normalize_children(value.children, expand),
            kind=value.kind,
        )
    if isinstance(value, (list, tuple)):
        return BoxNode(children=_normalize_children(value, expand), kind="fragment")
    if isinstance(value, Element):
        if not isinstance(value.type, str):
            raise TypeError(
                f"component element {value.type!r} must be built into the "
                "component tree, not returned from render()"
            )
        return _from_mapping(
            {"type": value.type, **value.props, "children": value.children},
            expand,
        )
    if isinstance(value, Mapping):
        return _from_mapping(value, expand)
    if expand is not None and callable(getattr(value, "render", None)):
        return normalize(expand(value), expand)
    raise TypeError(f"cannot render {type(value).__name__!r} value: {value!r}")


def _normalize_children(children: Iterable[Any], expand: Expander | None) -> tuple[RenderNode, ...]:
    result: list[RenderNode] = []
    for child in flatten_children(children):
        node = normalize(child, expand)
        if node is not None:
            result.append(node)
    return tuple(result)


def _from_mapping(data: Mapping[str, Any], expand: Expander | None) -> RenderNode:
    props = data.get("props") or {}
    style = Style.from_dict(data.get("style", props.get("style")))
    node_type = data.get("type", "box")
    if node_type == "text":
        content = data.get("content", props.get("content", ""))
        if content == "" and data.get("children"):
            content = "".join(str(c) for c in flatten_children(data["children"]))
        return TextNode(content="" if content is None else str(content), style=style)
    children = data.get("children", props.get("children", ()))
    if not isinstance(children, (list, tuple)):
        children = (children,)
    return BoxNode(
        style=style,
        children=_normalize_children(children, expand),
        kind=str(node_type),
    )
