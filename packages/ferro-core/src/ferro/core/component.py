"""Live component instances and their lifecycle.

A :class:`Component` owns ``props``, ``state`` and child instances and moves
through ``unmounted -> mounted -> unmounted``; a used instance can not be
mounted again.  Lifecycle callbacks are kept in one ordered list per phase
and invoked directly by the state machine.

Other definition shapes (plain functions, mappings with a ``render``
callable, :func:`~ferro.core.nodes.h` elements, strings) are adapted into
``Component`` subclasses here so the rest of the engine only ever sees one
interface.
"""

from __future__ import annotations

import logging
import weakref
from typing import Any, Callable, Mapping, Optional, Union

from ferro.core.errors import LifecycleError
from ferro.core.keys import InputEvent
from ferro.core.nodes import Element

logger = logging.getLogger(__name__)

LIFECYCLE_PHASES = (
    "before_mount",
    "mount",
    "after_mount",
    "before_update",
    "update",
    "after_update",
    "before_unmount",
    "unmount",
    "after_unmount",
)

StateUpdate = Union[Mapping[str, Any], Callable[[dict[str, Any]], Mapping[str, Any]]]
LifecycleCallback = Callable[..., Any]


class Component:
    """Base class for stateful components.

    Subclasses override :meth:`render` and optionally :meth:`handle_input`,
    :meth:`on_focus` and :meth:`on_blur`.  Set ``focusable = True`` to take
    part in focus cycling.
    """

    focusable: bool = False

    def __init__(self, props: Optional[Mapping[str, Any]] = None) -> None:
        self.props: dict[str, Any] = dict(props or {})
        self.state: dict[str, Any] = {}
        self.children: list[Component] = []
        self.mounted = False
        self.dirty = False
        self.focused = False
        self._used = False
        # adopted from render output rather than added with add_child
        self._adopted = False
        self._parent: Optional[weakref.ReferenceType[Component]] = None
        self._hooks: dict[str, list[LifecycleCallback]] = {p: [] for p in LIFECYCLE_PHASES}
        # set on the root by the tree that owns it
        self._schedule: Optional[Callable[[Component], None]] = None

    def __repr__(self) -> str:
        state = "mounted" if self.mounted else "unmounted"
        return f"<{self.name} {state} children={len(self.children)}>"

    @property
    def name(self) -> str:
        return type(self).__name__

    # -- tree ------------------------------------------------------------------

    @property
    def parent(self) -> Optional[Component]:
        return self._parent() if self._parent is not None else None

    @property
    def root(self) -> Component:
        node = self
        while node.parent is not None:
            node = node.parent
        return node

    def add_child(self, child: Component) -> Component:
        """Adopt *child*; it is mounted at once if this component is."""
        child._parent = weakref.ref(self)
        self.children.append(child)
        if self.mounted:
            child.mount()
        return child

    def remove_child(self, child: Component) -> None:
        """Unmount and drop *child*."""
        if child not in self.children:
            return
        child.unmount()
        self.children.remove(child)
        child._parent = None

    def walk(self):
        """Yield this component and its descendants in pre-order."""
        yield self
        for child in self.children:
            yield from child.walk()

    def is_ancestor_of(self, other: Component) -> bool:
        node = other.parent
        while node is not None:
            if node is self:
                return True
            node = node.parent
        return False

    # -- hooks -----------------------------------------------------------------

    def on(self, phase: str, callback: LifecycleCallback) -> Callable[[], None]:
        """Register *callback* for a lifecycle phase; returns an unsubscribe function."""
        if phase not in self._hooks:
            raise ValueError(f"unknown lifecycle phase {phase!r}")
        self._hooks[phase].append(callback)

        def unsubscribe() -> None:
            if callback in self._hooks[phase]:
                self._hooks[phase].remove(callback)

        return unsubscribe

    def _fire(self, phase: str, *args: Any) -> None:
        for callback in list(self._hooks[phase]):
            callback(self, *args)

    # -- lifecycle -------------------------------------------------------------

    def mount(self) -> None:
        if self.mounted:
            return
        if self._used:
            raise LifecycleError(f"{self.name} was already unmounted and can not be mounted again")
        self._used = True
        self.mounted = True
        rendered = self.render()
        for child in list(self.children):
            child.mount()
        self._fire("before_mount")
        self._fire("mount", rendered)
        self._fire("after_mount")

    def unmount(self) -> None:
        if not self.mounted:
            return
        for child in list(self.children):
            child.unmount()
        self.mounted = False
        self.dirty = False
        self._fire("before_unmount")
        self._fire("unmount")
        self._fire("after_unmount")

    def update(self) -> Any:
        """Re-render now and fire the update callbacks."""
        self._fire("before_update")
        rendered = self.render()
        self.dirty = False
        self._fire("update", rendered)
        self._fire("after_update")
        return rendered

    # -- state -----------------------------------------------------------------

    def set_state(self, update: StateUpdate) -> None:
        """Shallow-merge *update* into ``state`` and schedule a re-render."""
        changes = update(self.state) if callable(update) else update
        self.state = {**self.state, **(changes or {})}
        self.dirty = True
        if self.mounted:
            self.schedule_update()

    def force_update(self) -> None:
        self.dirty = True
        if self.mounted:
            self.schedule_update()

    def schedule_update(self) -> None:
        schedule = self.root._schedule
        if schedule is None:
            logger.debug("%s: update requested outside a component tree", self.name)
            return
        schedule(self)

    # -- overridable -----------------------------------------------------------

    def render(self) -> Any:
        return None

    def handle_input(self, event: InputEvent) -> bool:
        return False

    def on_focus(self) -> None:
        pass

    def on_blur(self) -> None:
        pass

    def dispatch_input(self, event: InputEvent, focused: Optional[Component] = None) -> bool:
        """Offer *event* along the focus path, deepest first.

        The child on the path to *focused* gets the event before this
        component's own :meth:`handle_input`; the first handler returning a
        true value consumes it.
        """
        if focused is not None and focused is not self:
            for child in self.children:
                if child is focused or child.is_ancestor_of(focused):
                    if child.dispatch_input(event, focused):
                        return True
                    break
        return bool(self.handle_input(event))


# ---------------------------------------------------------------------------
# Functional components
# ---------------------------------------------------------------------------


def create_component(
    render_fn: Callable[..., Any],
    *,
    initial_state: Optional[Mapping[str, Any]] = None,
    on_mount: Optional[LifecycleCallback] = None,
    on_unmount: Optional[LifecycleCallback] = None,
    on_update: Optional[LifecycleCallback] = None,
    on_input: Optional[Callable[..., Any]] = None,
    name: Optional[str] = None,
) -> type[Component]:
    """Build a ``Component`` subclass around a render function.

    ``render_fn(component, props, state, set_state)`` produces the render
    output; ``on_input(component, event, props, state)`` handles input.
    Lifecycle callbacks receive the component.
    """

    class FunctionalComponent(Component):
        def __init__(self, props: Optional[Mapping[str, Any]] = None) -> None:
            super().__init__(props)
            if initial_state:
                self.state = dict(initial_state)
            if on_mount is not None:
                self.on("after_mount", on_mount)
            if on_unmount is not None:
                self.on("before_unmount", on_unmount)
            if on_update is not None:
                self.on("after_update", lambda component, *_: on_update(component))

        def render(self) -> Any:
            return render_fn(self, self.props, self.state, self.set_state)

        def handle_input(self, event: InputEvent) -> bool:
            if on_input is not None:
                return bool(on_input(self, event, self.props, self.state))
            return False

    FunctionalComponent.__name__ = name or getattr(render_fn, "__name__", "FunctionalComponent")
    FunctionalComponent.__qualname__ = FunctionalComponent.__name__
    return FunctionalComponent


# ---------------------------------------------------------------------------
# Definition adapters
# ---------------------------------------------------------------------------


class FunctionComponent(Component):
    """Wraps a plain ``props -> render output`` function."""

    def __init__(self, fn: Callable[[dict[str, Any]], Any], props: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(props)
        self.fn = fn

    @property
    def name(self) -> str:
        return getattr(self.fn, "__name__", "FunctionComponent")

    def render(self) -> Any:
        return self.fn(self.props)


class ObjectComponent(Component):
    """Wraps a mapping with a zero-argument ``render`` callable.

    Optional keys: ``handle_input(event) -> bool``, ``cleanup()`` (run on
    unmount), ``name`` and ``focusable``.
    """

    def __init__(self, definition: Mapping[str, Any], props: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(props)
        self.definition = definition
        self.focusable = bool(definition.get("focusable", False))
        cleanup = definition.get("cleanup") or definition.get("destroy")
        if cleanup is not None:
            self.on("unmount", lambda component: cleanup())

    @property
    def name(self) -> str:
        return str(self.definition.get("name", "ObjectComponent"))

    def render(self) -> Any:
        return self.definition["render"]()

    def handle_input(self, event: InputEvent) -> bool:
        handler = self.definition.get("handle_input") or self.definition.get("handleInput")
        if handler is None:
            return False
        return bool(handler(event))


class ElementComponent(Component):
    """A host element (``"box"``, ``"text"`` or an opaque type name).

    ``items`` keeps the element's children in order: component instances
    and literal values (strings, numbers, render nodes).
    """

    def __init__(self, type: str, props: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(props)
        self.type = type
        self.items: list[Any] = []

    @property
    def name(self) -> str:
        return f"<{self.type}>"

    def add_item(self, item: Any) -> None:
        if isinstance(item, Component):
            self.add_child(item)
        self.items.append(item)

    def render(self) -> Any:
        return Element(type=self.type, props=self.props, children=tuple(self.items))


class StaticComponent(Component):
    """Renders a fixed value (a string or a render node)."""

    def __init__(self, value: Any) -> None:
        super().__init__()
        self.value = value

    def render(self) -> Any:
        return self.value
