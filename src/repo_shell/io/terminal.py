"""Terminal session boundary consumed by the session runtime.

A TerminalSession is what the transport hands to the session factory: the
geometry at connect time, a live source of later geometry changes, a stream
of raw keystroke text, and a sink for rendered frames. Disconnect is signalled
by the key stream ending (or raising TransportError).

This module is a STABLE BOUNDARY. Import as: import repo_shell.io.terminal
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Protocol

from repo_shell.event_types import Geometry


class ResizeSource(Protocol):
    """Unbounded stream of geometry updates, consumed one at a time."""

    async def next(self) -> Geometry | None:
        """Wait for the next geometry. None means the stream has closed."""
        ...


class TerminalSession(Protocol):
    geometry: Geometry
    resizes: ResizeSource

    def keys(self) -> AsyncIterator[str]:
        """Raw input text as it arrives. Ends when the peer disconnects."""
        ...

    def write(self, text: str) -> None:
        ...

    def close(self, exit_status: int = 0) -> None:
        ...


class QueueResizeSource:
    """ResizeSource fed by the transport through push()/close().

    Every pushed geometry is delivered exactly once, in order. After close()
    every pending and future next() returns None.
    """

    _CLOSED = None

    def __init__(self):
        self._queue: asyncio.Queue[Geometry | None] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, width: int, height: int) -> None:
        if self._closed:
            return
        self._queue.put_nowait(Geometry(width, height))

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(self._CLOSED)

    async def next(self) -> Geometry | None:
        geometry = await self._queue.get()
        if geometry is self._CLOSED:
            # Leave the marker in place for any later caller.
            self._queue.put_nowait(self._CLOSED)
        return geometry
