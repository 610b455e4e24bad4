"""The mounted component tree: building, focus and input routing, frames."""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional, Union

from ferro.core.component import (
    Component,
    ElementComponent,
    FunctionComponent,
    ObjectComponent,
    StaticComponent,
)
from ferro.core.keys import InputEvent
from ferro.core.layout import Layout, LayoutNode, build_layout_tree
from ferro.core.nodes import BoxNode, Element, TextNode, flatten_children, normalize

logger = logging.getLogger(__name__)

Frame = Union[str, LayoutNode, None]

_LITERALS = (str, int, float, TextNode, BoxNode)


class ComponentTree:
    """Owns one root component and the focus pointer.

    *on_schedule* is called with a component whenever it requests a
    re-render; the host uses it to coalesce renders.
    """

    def __init__(
        self,
        root: Any = None,
        *,
        props: Optional[Mapping[str, Any]] = None,
        layout: Optional[Layout] = None,
        on_schedule: Optional[Callable[[Component], None]] = None,
    ) -> None:
        self.layout = layout or Layout()
        self.focused: Optional[Component] = None
        self.on_schedule = on_schedule
        self.root: Optional[Component] = None
        if root is not None:
            self.set_root(root, props)

    # -- building ----------------------------------------------------------------

    def set_root(self, definition: Any, props: Optional[Mapping[str, Any]] = None) -> Component:
        if self.root is not None and self.root.mounted:
            self.unmount()
        self.root = self.build(definition, props)
        self.root._schedule = self._schedule
        return self.root

    def build(self, definition: Any, props: Optional[Mapping[str, Any]] = None) -> Component:
        """Adapt any supported definition shape into a ``Component``."""
        if isinstance(definition, Component):
            if props:
                definition.props.update(props)
            return definition
        if isinstance(definition, type) and issubclass(definition, Component):
            return definition(props)
        if isinstance(definition, Element):
            return self._build_element(definition, props)
        if isinstance(definition, Mapping):
            if callable(definition.get("render")):
                return ObjectComponent(definition, props)
            if "type" in definition:
                element_props = dict(definition.get("props") or {})
                element_props.update(
                    (k, v) for k, v in definition.items() if k not in ("type", "props", "children")
                )
                children = definition.get("children") or ()
                if not isinstance(children, (list, tuple)):
                    children = (children,)
                element = Element(definition["type"], element_props, tuple(flatten_children(children)))
                return self._build_element(element, props)
            raise TypeError(f"mapping definition needs a 'render' callable or a 'type': {definition!r}")
        if isinstance(definition, _LITERALS):
            return StaticComponent(definition)
        if callable(definition):
            return FunctionComponent(definition, props)
        raise TypeError(f"unsupported component definition: {definition!r}")

    def _build_element(self, element: Element, props: Optional[Mapping[str, Any]]) -> Component:
        merged = {**element.props, **(props or {})}
        if isinstance(element.type, str):
            host = ElementComponent(element.type, merged)
            for child in element.children:
                host.add_item(child if isinstance(child, _LITERALS) else self.build(child))
            return host
        component = self.build(element.type, merged)
        for child in element.children:
            component.add_child(self.build(child))
        return component

    # -- lifecycle ---------------------------------------------------------------

    def mount(self) -> None:
        if self.root is not None:
            self.root.mount()

    def unmount(self) -> None:
        self.set_focus(None)
        if self.root is not None:
            self.root.unmount()

    def _schedule(self, component: Component) -> None:
        if self.on_schedule is not None:
            self.on_schedule(component)

    # -- focus -------------------------------------------------------------------

    def set_focus(self, component: Optional[Component]) -> None:
        """Move focus to *component*, blurring the previous holder first."""
        previous = self.focused
        if previous is component:
            return
        if previous is not None:
            previous.focused = False
            previous.on_blur()
        self.focused = component
        if component is not None:
            component.focused = True
            component.on_focus()

    def focusables(self) -> list[Component]:
        if self.root is None:
            return []
        return [c for c in self.root.walk() if c.mounted and c.focusable]

    def focus_next(self) -> Optional[Component]:
        return self._cycle_focus(1)

    def focus_previous(self) -> Optional[Component]:
        return self._cycle_focus(-1)

    def _cycle_focus(self, step: int) -> Optional[Component]:
        candidates = self.focusables()
        if not candidates:
            self.set_focus(None)
            return None
        if self.focused in candidates:
            index = (candidates.index(self.focused) + step) % len(candidates)
        else:
            index = 0 if step > 0 else len(candidates) - 1
        self.set_focus(candidates[index])
        return self.focused

    # -- input -------------------------------------------------------------------

    def handle_input(self, event: InputEvent) -> bool:
        """Dispatch *event* from the focused component up to the root."""
        if self.root is None or not self.root.mounted:
            return False
        if self.focused is not None and not self.focused.mounted:
            self.set_focus(None)
        return self.root.dispatch_input(event, self.focused)

    # -- frames ------------------------------------------------------------------

    def render(self) -> Any:
        """Render the whole tree once.

        Returns the root's raw string output, or the normalised render tree.
        Components marked dirty get their update callbacks around the pass.

        A fresh component instance found in a component's output is adopted
        as its child and mounted; an adopted child missing from its owner's
        next output is unmounted and dropped.
        """
        if self.root is None or not self.root.mounted:
            return None
        dirty = [c for c in self.root.walk() if c.dirty and c.mounted]
        for component in dirty:
            component._fire("before_update")

        outputs: dict[int, Any] = {}
        owners: list[Component] = [self.root]
        rendered: list[Component] = [self.root]
        seen: set[int] = set()

        def expand(component: Any) -> Any:
            if not isinstance(component, Component):
                return normalize(component.render(), expand)
            seen.add(id(component))
            if component.parent is None and component is not self.root:
                owners[-1].add_child(component)
                component._adopted = True
            owners.append(component)
            rendered.append(component)
            try:
                output = component.render()
                outputs[id(component)] = output
                return normalize(output, expand)
            finally:
                owners.pop()

        raw = self.root.render()
        outputs[id(self.root)] = raw
        result = raw if isinstance(raw, str) else normalize(raw, expand)

        for owner in rendered:
            for child in list(owner.children):
                if child._adopted and id(child) not in seen:
                    owner.remove_child(child)

        for component in dirty:
            component.dirty = False
            component._fire("update", outputs.get(id(component)))
            component._fire("after_update")
        return result

    def update_layout(self, node: Any, width: float, height: float) -> Optional[LayoutNode]:
        """Build and lay out a fresh layout tree for a render tree."""
        if node is None:
            return None
        return self.layout.calculate(build_layout_tree(node), width, height)

    def render_frame(self, width: float, height: float) -> Frame:
        """Render and lay out one frame for a ``width`` x ``height`` screen."""
        output = self.render()
        if output is None or isinstance(output, str):
            return output
        return self.update_layout(output, width, height)
