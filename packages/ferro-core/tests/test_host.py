"""Tests for ferro.core.host -- mounting, scheduling, input and teardown."""

from __future__ import annotations

import asyncio
import logging

import pytest

from ferro.core.component import Component, create_component
from ferro.core.config import HostConfig
from ferro.core.errors import (
    CleanupError,
    InputFailure,
    LifecycleError,
    MountConflict,
    RenderFailure,
    TerminalUnavailable,
)
from ferro.core.host import Host
from ferro.core.keys import KeyEvent
from ferro.core.log import configure_logging
from ferro.core.nodes import box, text

from .virtual_terminal import VirtualTerminal


class Hello(Component):
    def render(self):
        return box(text(self.props.get("greeting", "hello")))


class Fragile(Component):
    def render(self):
        if self.state.get("boom"):
            raise ValueError("boom")
        return "fine"


class BrokenStopTerminal(VirtualTerminal):
    def stop(self) -> None:
        super().stop()
        raise OSError("tty gone")


@pytest.fixture
def terminal() -> VirtualTerminal:
    return VirtualTerminal(rows=10, columns=40)


@pytest.fixture
def host(terminal: VirtualTerminal) -> Host:
    return Host(HostConfig(exit_on_interrupt=False), terminal=terminal)


def record(host: Host, event: str) -> list:
    seen: list = []
    host.on(event, lambda *args: seen.append(args[0] if len(args) == 1 else args))
    return seen


# ---------------------------------------------------------------------------
# Mounting
# ---------------------------------------------------------------------------


class TestMount:
    def test_mount_starts_terminal_and_renders(self, host: Host, terminal: VirtualTerminal):
        mounted = record(host, "mount")
        root = host.mount(Hello)
        assert isinstance(root, Hello)
        assert root.mounted
        assert host.is_running
        assert terminal.started
        assert "hello" in terminal.output
        assert mounted == [root]
        assert host.renderer.lines == ["hello"]

    def test_mount_passes_props(self, host: Host):
        host.mount(Hello, {"greeting": "hi"})
        assert host.renderer.lines == ["hi"]

    def test_second_mount_conflicts(self, host: Host, terminal: VirtualTerminal):
        root = host.mount(Hello)
        before = terminal.output
        with pytest.raises(MountConflict):
            host.mount(Hello, {"greeting": "other"})
        assert host.root is root
        assert root.mounted
        assert terminal.output == before

    def test_unmount_then_mount_again(self, host: Host):
        unmounted = record(host, "unmount")
        first = host.mount(Hello)
        host.unmount()
        assert not first.mounted
        assert host.root is None
        assert unmounted == [()]
        second = host.mount(Hello, {"greeting": "again"})
        assert second.mounted
        assert host.renderer.lines == ["again"]

    def test_used_instance_is_rejected(self, host: Host):
        used = Hello()
        used.mount()
        used.unmount()
        with pytest.raises(LifecycleError):
            host.mount(used)
        assert host.tree is None
        assert not used.mounted
        other = host.mount(lambda props: "other")
        assert other.mounted
        assert host.renderer.lines == ["other"]

    def test_mount_string_component(self, host: Host):
        host.mount(lambda props: "line one\nline two")
        assert host.renderer.lines == ["line one", "line two"]

    def test_non_interactive_terminal_reports_unavailable(self):
        terminal = VirtualTerminal(interactive=False)
        host = Host(HostConfig(), terminal=terminal)
        errors = record(host, "error")
        host.mount(Hello)
        assert len(errors) == 1
        assert isinstance(errors[0], TerminalUnavailable)
        assert "hello" in terminal.output

    def test_mouse_is_enabled_when_configured(self, terminal: VirtualTerminal):
        host = Host(HostConfig(mouse=True), terminal=terminal)
        host.mount(Hello)
        assert terminal.mouse_enabled
        host.cleanup()
        assert not terminal.mouse_enabled


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


class TestRendering:
    def test_state_changes_coalesce_into_one_render(self, host: Host):
        Counter = create_component(
            lambda self, props, state, set_state: f"count {state['n']}",
            initial_state={"n": 0},
        )
        root = host.mount(Counter)
        renders = record(host, "render")

        root.set_state({"n": 1})
        root.set_state({"n": 2})
        root.set_state({"n": 3})
        assert host.scheduler.render_pending
        host.scheduler.drain()

        assert len(renders) == 1
        assert host.scheduler.render_count == 1
        assert host.renderer.lines == ["count 3"]

    def test_update_requests_render(self, host: Host):
        host.mount(Hello)
        updates = record(host, "update")
        host.update()
        host.update()
        assert len(updates) == 2
        host.scheduler.drain()
        assert host.scheduler.render_count == 1

    def test_render_error_is_reported_and_shown(self, host: Host, terminal: VirtualTerminal):
        errors = record(host, "error")
        root = host.mount(Fragile)
        root.set_state({"boom": True})
        host.scheduler.drain()

        assert len(errors) == 1
        failure = errors[0]
        assert isinstance(failure, RenderFailure)
        assert isinstance(failure.error, ValueError)
        assert failure.__cause__ is failure.error
        assert host.last_error is failure
        assert host.renderer.lines == ["Error: boom"]
        assert "Error: boom" in terminal.output

    def test_render_error_hidden_in_production(self, terminal: VirtualTerminal):
        host = Host(HostConfig(show_errors=False), terminal=terminal)
        root = host.mount(Fragile)
        root.set_state({"boom": True})
        host.scheduler.drain()
        assert isinstance(host.last_error, RenderFailure)
        assert "Error:" not in terminal.output
        assert host.renderer.lines == ["fine"]

    def test_failing_listener_does_not_break_render(self, host: Host):
        def broken(*args):
            raise RuntimeError("listener")

        host.on("render", broken)
        host.mount(Hello)
        assert host.renderer.lines == ["hello"]

    def test_unsubscribe(self, host: Host):
        seen = []
        unsubscribe = host.on("render", seen.append)
        unsubscribe()
        host.mount(Hello)
        assert seen == []
        assert host.listeners("render") == []


# ---------------------------------------------------------------------------
# Input and resize
# ---------------------------------------------------------------------------


class TestInput:
    def test_input_is_decoded_and_dispatched(self, host: Host, terminal: VirtualTerminal):
        keys = []

        def on_input(self, event, props, state):
            keys.append(event.name)
            return True

        Widget = create_component(lambda *a: "w", on_input=on_input)
        host.mount(Widget)
        inputs = record(host, "input")

        terminal.simulate_input("ab\x1b[A")
        assert keys == []
        host.scheduler.drain()

        assert keys == ["a", "b", "up"]
        assert [e.name for e in inputs] == ["a", "b", "up"]
        assert all(isinstance(e, KeyEvent) for e in inputs)

    def test_input_requests_a_render(self, host: Host):
        host.mount(Hello)
        host.handle_data("x")
        assert host.scheduler.render_pending

    def test_ctrl_c_cleans_up(self, host: Host, terminal: VirtualTerminal):
        cleanups = record(host, "cleanup")
        host.mount(Hello)
        assert host.handle_input(KeyEvent(sequence="\x03", name="c", ctrl=True)) is True
        assert not host.is_running
        assert terminal.stop_count == 1
        assert len(cleanups) == 1

    def test_ctrl_c_exits_when_configured(self, terminal: VirtualTerminal):
        host = Host(HostConfig(exit_on_interrupt=True), terminal=terminal)
        host.mount(Hello)
        with pytest.raises(SystemExit) as info:
            host.handle_data("\x03")
        assert info.value.code == 0
        assert not host.is_running

    def test_events_after_ctrl_c_are_dropped(self, host: Host):
        inputs = record(host, "input")
        host.mount(Hello)
        host.handle_data("a\x03b")
        assert [e.name for e in inputs] == ["a"]

    def test_resize_repaints(self, host: Host, terminal: VirtualTerminal):
        resizes = record(host, "resize")
        host.mount(Hello)
        terminal.simulate_resize(rows=5, columns=20)
        host.scheduler.drain()
        assert resizes == [(20, 5)]
        assert (host.renderer.width, host.renderer.height) == (20, 5)
        assert host.renderer.full_redraws == 2
        assert host.renderer.lines == ["hello"]

    def test_input_handler_error_is_reported(self, host: Host):
        def on_input(self, event, props, state):
            raise KeyError("missing")

        host.mount(create_component(lambda *a: "w", on_input=on_input))
        errors = record(host, "error")
        host.handle_data("x")
        assert len(errors) == 1
        assert isinstance(errors[0], InputFailure)
        assert isinstance(errors[0].error, KeyError)
        assert host.is_running


class TestKeyBindings:
    def test_bound_key_is_consumed_before_the_tree(self, host: Host):
        routed = []

        def on_input(self, event, props, state):
            routed.append(event.id)
            return True

        host.mount(create_component(lambda *a: "w", on_input=on_input))
        saved = []
        host.on_key("ctrl+s", saved.append)
        inputs = record(host, "input")

        host.handle_data("\x13")
        host.handle_data("x")

        assert [e.id for e in saved] == ["ctrl+s"]
        assert routed == ["x"]
        assert [e.id for e in inputs] == ["ctrl+s", "x"]

    def test_rebinding_replaces_the_handler(self, host: Host):
        first, second = [], []
        host.mount(Hello)
        host.on_key("up", first.append)
        host.on_key("up", second.append)
        host.handle_data("\x1b[A")
        assert first == []
        assert len(second) == 1

    def test_off_key_and_unbind(self, host: Host):
        seen = []
        host.mount(Hello)
        unbind = host.on_key("q", seen.append)
        unbind()
        host.handle_data("q")
        host.on_key("q", seen.append)
        host.off_key("q")
        host.handle_data("q")
        assert seen == []

    def test_ctrl_c_is_not_bindable(self, host: Host):
        seen = []
        host.mount(Hello)
        host.on_key("ctrl+c", seen.append)
        host.handle_data("\x03")
        assert seen == []
        assert not host.is_running

    def test_failing_binding_is_reported(self, host: Host):
        def broken(event):
            raise RuntimeError("binding")

        host.mount(Hello)
        host.on_key("x", broken)
        errors = record(host, "error")
        host.handle_data("x")
        assert isinstance(errors[0], InputFailure)
        assert host.is_running

    @pytest.mark.asyncio
    async def test_wait_for_key(self, host: Host):
        host.mount(Hello)
        waiter = asyncio.ensure_future(host.wait_for_key())
        await asyncio.sleep(0)
        host.handle_data("y")
        event = await asyncio.wait_for(waiter, timeout=1)
        assert event.name == "y"
        host.cleanup()

    @pytest.mark.asyncio
    async def test_wait_for_key_is_cancelled_by_cleanup(self, host: Host):
        host.mount(Hello)
        waiter = asyncio.ensure_future(host.wait_for_key())
        await asyncio.sleep(0)
        host.cleanup()
        with pytest.raises(asyncio.CancelledError):
            await waiter


# ---------------------------------------------------------------------------
# Teardown
# ---------------------------------------------------------------------------


class TestCleanup:
    def test_cleanup_is_idempotent(self, host: Host, terminal: VirtualTerminal):
        cleanups = record(host, "cleanup")
        root = host.mount(Hello)
        host.cleanup()
        host.cleanup()
        assert terminal.stop_count == 1
        assert len(cleanups) == 1
        assert not root.mounted
        assert host.renderer is None
        assert terminal.output.endswith("\x1b[?25h")

    def test_cleanup_drops_pending_render(self, host: Host):
        root = host.mount(Hello)
        root.force_update()
        host.cleanup()
        assert host.scheduler.closed
        assert not host.scheduler.render_pending

    def test_failing_step_does_not_stop_the_rest(self):
        terminal = BrokenStopTerminal()
        host = Host(HostConfig(), terminal=terminal)
        errors = record(host, "error")
        host.mount(Hello)
        host.cleanup()

        assert len(errors) == 1
        error = errors[0]
        assert isinstance(error, CleanupError)
        assert [step for step, _ in error.failures] == ["terminal"]
        assert terminal.output.endswith("\x1b[?25h")
        assert not host.is_running


class TestRun:
    @pytest.mark.asyncio
    async def test_run_serves_until_interrupted(self, host: Host, terminal: VirtualTerminal):
        task = asyncio.create_task(host.run(Hello))
        await asyncio.sleep(0)
        assert host.is_running
        assert "hello" in terminal.output

        terminal.simulate_input("\x03")
        await asyncio.wait_for(task, timeout=1)
        assert not host.is_running
        assert terminal.stop_count == 1

    @pytest.mark.asyncio
    async def test_input_is_drained_by_the_loop(self, host: Host, terminal: VirtualTerminal):
        inputs = record(host, "input")
        task = asyncio.create_task(host.run(Hello))
        await asyncio.sleep(0)
        terminal.simulate_input("q")
        await asyncio.sleep(0)
        assert [e.name for e in inputs] == ["q"]
        host.cleanup()
        await asyncio.wait_for(task, timeout=1)

    @pytest.mark.asyncio
    async def test_run_sets_up_file_logging_from_env(
        self, host: Host, tmp_path, monkeypatch
    ):
        path = tmp_path / "host.log"
        monkeypatch.setenv("FERRO_LOG_FILE", str(path))
        monkeypatch.setenv("FERRO_LOG_LEVEL", "info")
        task = asyncio.create_task(host.run(Hello))
        try:
            await asyncio.sleep(0)
            host.cleanup()
            await asyncio.wait_for(task, timeout=1)
        finally:
            configure_logging(logging.WARNING)
        assert "[INFO] ferro.core.host: mounted Hello" in path.read_text(encoding="utf-8")
