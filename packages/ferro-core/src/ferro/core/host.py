"""The host: owns the terminal, renderer, decoder and component tree.

Typical use::

    host = Host(HostConfig.from_env())
    asyncio.run(host.run(App))

Events (subscribe with :meth:`Host.on`): ``start``, ``mount``,
``unmount``, ``render``, ``input``, ``update``, ``resize``, ``error`` and
``cleanup``.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Any, Callable, Mapping, Optional

from ferro.core.component import Component
from ferro.core.config import HostConfig
from ferro.core.errors import (
    CleanupError,
    InputFailure,
    LifecycleError,
    MountConflict,
    RenderFailure,
    TerminalUnavailable,
)
from ferro.core.keys import InputDecoder, InputEvent, KeyEvent
from ferro.core.log import configure_from_env
from ferro.core.renderer import Renderer
from ferro.core.scheduler import RenderScheduler
from ferro.core.terminal import ProcessTerminal, Terminal
from ferro.core.tree import ComponentTree

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]
KeyHandler = Callable[[KeyEvent], Any]


class Host:
    """Top-level coordinator for one mounted application at a time."""

    def __init__(
        self,
        config: Optional[HostConfig] = None,
        terminal: Optional[Terminal] = None,
    ) -> None:
        self.config = config if config is not None else HostConfig.from_env()
        self.terminal: Terminal = (
            terminal if terminal is not None else ProcessTerminal(write_log=self.config.write_log)
        )
        self.tree: Optional[ComponentTree] = None
        self.renderer: Optional[Renderer] = None
        self.decoder = InputDecoder()
        self.scheduler = RenderScheduler(self.render)
        self.is_running = False
        self.last_error: Optional[BaseException] = None
        self._listeners: dict[str, list[Listener]] = {}
        self._key_bindings: dict[str, KeyHandler] = {}
        self._key_waiters: list[asyncio.Future] = []
        self._stopped: Optional[asyncio.Event] = None

    @property
    def root(self) -> Optional[Component]:
        return self.tree.root if self.tree is not None else None

    # -- events ------------------------------------------------------------------

    def on(self, event: str, handler: Listener) -> Callable[[], None]:
        """Subscribe to *event*. Returns an unsubscribe function."""
        self._listeners.setdefault(event, []).append(handler)

        def unsubscribe() -> None:
            self.off(event, handler)

        return unsubscribe

    def off(self, event: str, handler: Listener) -> None:
        handlers = self._listeners.get(event)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def listeners(self, event: str) -> list[Listener]:
        return list(self._listeners.get(event, ()))

    def emit(self, event: str, *args: Any) -> None:
        for handler in list(self._listeners.get(event, ())):
            try:
                handler(*args)
            except Exception:
                logger.exception("listener for %r failed", event)

    # -- key bindings ------------------------------------------------------------

    def on_key(self, key_id: str, handler: KeyHandler) -> Callable[[], None]:
        """Bind *handler* to a key combination such as ``"ctrl+s"`` or ``"up"``.

        One handler per combination; binding it again replaces the previous
        handler.  A bound key is consumed before the component tree sees it.
        Returns an unbind function.
        """
        self._key_bindings[key_id] = handler

        def unbind() -> None:
            if self._key_bindings.get(key_id) is handler:
                del self._key_bindings[key_id]

        return unbind

    def off_key(self, key_id: str) -> None:
        self._key_bindings.pop(key_id, None)

    async def wait_for_key(self) -> KeyEvent:
        """Wait for the next key press delivered to the host."""
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._key_waiters.append(future)
        try:
            return await future
        finally:
            if future in self._key_waiters:
                self._key_waiters.remove(future)

    # -- mounting ----------------------------------------------------------------

    def mount(self, definition: Any, props: Optional[Mapping[str, Any]] = None) -> Component:
        """Mount *definition* as the application root and render it.

        Raises :class:`MountConflict` when a tree is already mounted; the
        mounted tree is left untouched.  A component instance that was
        mounted before raises :class:`LifecycleError` and nothing stays
        mounted.
        """
        if self.tree is not None:
            raise MountConflict("a component tree is already mounted; call unmount() first")

        tree = ComponentTree(on_schedule=self._on_schedule)
        root = tree.set_root(definition, props)
        self.tree = tree

        if not self.is_running:
            self.start()

        try:
            tree.mount()
        except LifecycleError:
            self.tree = None
            tree.unmount()
            raise
        except Exception as exc:
            self._report(exc)
        self.render()
        logger.info("mounted %s", root.name)
        self.emit("mount", root)
        return root

    def unmount(self) -> None:
        """Unmount the current tree; pending renders are dropped."""
        if self.tree is None:
            return
        self.scheduler.reset()
        tree = self.tree
        self.tree = None
        tree.unmount()
        self.emit("unmount")

    def start(self) -> None:
        """Acquire the terminal and initialise the renderer."""
        if self.is_running:
            return
        self.scheduler.reset()
        self.renderer = Renderer(
            self.terminal,
            fullscreen=self.config.fullscreen,
            title=self.config.title,
        )
        self.renderer.initialize()
        self.terminal.start(self._on_input, self._on_resize)
        if not self.terminal.is_interactive:
            self.emit("error", TerminalUnavailable("not a terminal: raw mode and mouse tracking skipped"))
        if self.config.mouse:
            self.terminal.enable_mouse()
        self.is_running = True
        self.emit("start")

    def cleanup(self) -> None:
        """Tear everything down; safe to call any number of times.

        Every step runs even when an earlier one fails; failures are logged
        and reported once as a :class:`CleanupError` on the ``error`` event.
        """
        if not self.is_running and self.tree is None:
            return
        self.scheduler.cancel()

        failures: list[tuple[str, BaseException]] = []
        steps: list[tuple[str, Callable[[], None]]] = [
            ("unmount", self.unmount),
            ("mouse", self.terminal.disable_mouse),
            ("terminal", self.terminal.stop),
        ]
        if self.renderer is not None:
            steps.append(("renderer", self.renderer.cleanup))
        for name, step in steps:
            try:
                step()
            except Exception as exc:
                logger.exception("cleanup step %r failed", name)
                failures.append((name, exc))

        # unmount() reopens the scheduler for a later mount; close it again
        self.scheduler.cancel()
        self.renderer = None
        self.is_running = False
        waiters, self._key_waiters = self._key_waiters, []
        for future in waiters:
            future.cancel()
        if self._stopped is not None:
            self._stopped.set()
        if failures:
            error = CleanupError(failures)
            self.last_error = error
            self.emit("error", error)
        self.emit("cleanup")

    async def run(self, definition: Any, props: Optional[Mapping[str, Any]] = None) -> None:
        """Mount *definition* and serve it until :meth:`cleanup` is called.

        File logging is set up from ``FERRO_LOG_FILE`` / ``FERRO_LOG_LEVEL``
        first, when they are set.
        """
        configure_from_env()
        self._stopped = asyncio.Event()
        try:
            self.mount(definition, props)
            await self._stopped.wait()
        finally:
            self.cleanup()
            self._stopped = None

    # -- rendering ---------------------------------------------------------------

    def update(self) -> None:
        """Request a (coalesced) re-render."""
        self.scheduler.request_render()
        self.emit("update")

    def render(self) -> None:
        """Render one frame now. Render errors are reported, never raised."""
        if self.tree is None or self.renderer is None:
            return
        try:
            frame = self.tree.render_frame(self.renderer.width, self.renderer.height)
            self.renderer.render(frame)
        except Exception as exc:
            self._report(exc)
            if self.config.show_errors and self.renderer is not None:
                self.renderer.render(f"Error: {exc}")
            return
        self.emit("render", frame)

    def _report(
        self,
        exc: Exception,
        kind: type[RenderFailure] | type[InputFailure] = RenderFailure,
    ) -> None:
        failure = kind(exc)
        failure.__cause__ = exc
        self.last_error = failure
        if kind is InputFailure:
            logger.error("input handler failed: %s", failure, exc_info=exc)
        else:
            logger.error("render failed: %s", failure, exc_info=exc)
        self.emit("error", failure)

    def _on_schedule(self, component: Component) -> None:
        self.scheduler.request_render()

    # -- input -------------------------------------------------------------------

    def _on_input(self, data: str) -> None:
        self.scheduler.post(lambda: self.handle_data(data))

    def handle_data(self, data: str) -> None:
        """Decode one raw input chunk and dispatch its events in order."""
        for event in self.decoder.feed(data):
            if not self.is_running:
                break
            self.handle_input(event)

    def handle_input(self, event: InputEvent) -> bool:
        """Dispatch one event: Ctrl+C first, then key bindings, then the tree."""
        if isinstance(event, KeyEvent) and event.ctrl and event.name == "c":
            logger.info("interrupt received")
            self.cleanup()
            if self.config.exit_on_interrupt:
                sys.exit(0)
            return True

        binding = None
        if isinstance(event, KeyEvent):
            waiters, self._key_waiters = self._key_waiters, []
            for future in waiters:
                if not future.done():
                    future.set_result(event)
            binding = self._key_bindings.get(event.id)

        consumed = False
        try:
            if binding is not None:
                binding(event)
                consumed = True
            elif self.tree is not None:
                consumed = self.tree.handle_input(event)
        except Exception as exc:
            self._report(exc, InputFailure)
        if binding is not None or self.tree is not None:
            self.scheduler.request_render()
        self.emit("input", event)
        return consumed

    def _on_resize(self) -> None:
        self.scheduler.post(self._apply_resize)

    def _apply_resize(self) -> None:
        if self.renderer is None:
            return
        width, height = self.terminal.columns, self.terminal.rows
        self.renderer.resize(width, height)
        self.scheduler.request_render()
        self.emit("resize", width, height)
