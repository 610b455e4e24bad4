"""Coalescing render scheduler.

Work reaches the engine from two sources, input chunks and state changes.
Both go through one :class:`RenderScheduler`: tasks are queued and run in
arrival order, render requests only raise a flag, and a drain runs the
queued tasks followed by at most one render.  With a running asyncio loop
a drain is scheduled with ``loop.call_soon``; without one the owner calls
:meth:`RenderScheduler.drain` itself.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class RenderScheduler:
    def __init__(self, render: Callable[[], None]) -> None:
        self._render = render
        self._tasks: deque[Callable[[], None]] = deque()
        self._render_pending = False
        self._handle: Optional[asyncio.Handle] = None
        self._closed = False
        self.render_count = 0

    @property
    def render_pending(self) -> bool:
        return self._render_pending

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    @property
    def closed(self) -> bool:
        return self._closed

    def post(self, task: Callable[[], None]) -> None:
        """Queue *task* to run on the next drain."""
        if self._closed:
            return
        self._tasks.append(task)
        self._schedule_drain()

    def request_render(self) -> None:
        """Ask for a render; repeated requests before the drain coalesce."""
        if self._closed or self._render_pending:
            return
        self._render_pending = True
        self._schedule_drain()

    def _schedule_drain(self) -> None:
        if self._handle is not None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No running event loop -- the owner drains explicitly
            return
        self._handle = loop.call_soon(self.drain)

    def drain(self) -> None:
        """Run queued tasks in order, then render once if requested."""
        self._handle = None
        while self._tasks and not self._closed:
            task = self._tasks.popleft()
            task()
        if self._render_pending and not self._closed:
            self._render_pending = False
            self.render_count += 1
            self._render()

    def cancel(self) -> None:
        """Drop queued work and refuse new work until :meth:`reset`."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if self._tasks or self._render_pending:
            logger.debug(
                "scheduler cancelled with %d task(s), render pending=%s",
                len(self._tasks),
                self._render_pending,
            )
        self._tasks.clear()
        self._render_pending = False
        self._closed = True

    def reset(self) -> None:
        self.cancel()
        self._closed = False
