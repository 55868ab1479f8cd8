"""Session runtime. Drives one SessionController over one terminal.

One inbound asyncio.Queue per session. Keystrokes (from the terminal) and
command results (from tasks) are put on it; the loop takes one message at a
time, calls controller.update(), schedules the returned commands, and renders
a frame. Nothing else touches the controller.

// [LAW:single-enforcer] SessionProgram.run is the only caller of update().
// [LAW:no-shared-mutable-globals] Each program owns its queue, tasks, and console.

Cancellation: when the terminal disconnects (key stream ends or raises
TransportError) or the controller reaches CLOSING, every pending command task
is cancelled and no further message is applied.
"""

from __future__ import annotations

import asyncio
import io
import logging

from rich.console import Console, RenderableType

from repo_shell.errors import TransportError
from repo_shell.event_types import Command, ErrorMsg, Geometry, KeyMsg, Msg
from repo_shell.io.terminal import TerminalSession
from repo_shell.tui.controller import SessionController
from repo_shell.tui.keys import decode_keys

logger = logging.getLogger(__name__)

ENTER_ALT_SCREEN = "\x1b[?1049h\x1b[?25l"
EXIT_ALT_SCREEN = "\x1b[?25h\x1b[?1049l"
_HOME = "\x1b[H"
_CLEAR_BELOW = "\x1b[J"


def render_frame(renderable: RenderableType, geometry: Geometry, *, color_system: str | None = "truecolor") -> str:
    """Render to an ANSI string sized to geometry, with CRLF line endings."""
    console = Console(
        file=io.StringIO(),
        width=max(1, geometry.width),
        height=max(1, geometry.height),
        force_terminal=color_system is not None,
        color_system=color_system,
        legacy_windows=False,
        highlight=False,
    )
    with console.capture() as capture:
        console.print(renderable, end="")
    text = capture.get()
    # The peer terminal is in raw mode: bare LF would not return the carriage.
    return _HOME + text.replace("\n", "\r\n") + _CLEAR_BELOW


class SessionProgram:
    """Event loop for one session."""

    def __init__(
        self,
        controller: SessionController,
        terminal: TerminalSession,
        *,
        color_system: str | None = "truecolor",
        alt_screen: bool = True,
    ):
        self.controller = controller
        self._terminal = terminal
        self._color_system = color_system
        self._alt_screen = alt_screen
        self._queue: asyncio.Queue[Msg] = asyncio.Queue()
        self._pending: set[asyncio.Task] = set()
        self._disconnected = asyncio.Event()
        self._stopped = False
        self.frames_written = 0

    @property
    def pending_commands(self) -> int:
        return len(self._pending)

    # ── Scheduling ─────────────────────────────────────────────────────

    def _schedule(self, commands: list[Command]) -> None:
        for command in commands:
            task = asyncio.create_task(self._run_command(command))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _run_command(self, command: Command) -> None:
        try:
            msg = await command()
        except asyncio.CancelledError:
            raise
        except TransportError as e:
            logger.info("Transport failed in command: %s", e)
            self._disconnect()
            return
        except Exception as e:
            logger.exception("Command failed")
            msg = ErrorMsg(f"{type(e).__name__}: {e}")
        if msg is not None and not self._stopped:
            self._queue.put_nowait(msg)

    def _disconnect(self) -> None:
        self._disconnected.set()

    async def _pump_keys(self) -> None:
        try:
            async for chunk in self._terminal.keys():
                for key in decode_keys(chunk):
                    self._queue.put_nowait(KeyMsg(key))
        except TransportError as e:
            logger.info("Terminal input failed: %s", e)
        finally:
            # End of input is how the peer signals disconnect.
            self._disconnect()

    async def _next_message(self) -> Msg | None:
        """Wait for the next message, or None once disconnected."""
        if self._disconnected.is_set():
            return None
        get = asyncio.ensure_future(self._queue.get())
        gone = asyncio.ensure_future(self._disconnected.wait())
        try:
            await asyncio.wait({get, gone}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            gone.cancel()
            if not get.done():
                get.cancel()
        if self._disconnected.is_set():
            return None
        return get.result()

    # ── Output ─────────────────────────────────────────────────────────

    def _write(self, text: str) -> None:
        try:
            self._terminal.write(text)
        except (OSError, TransportError) as e:
            logger.info("Terminal write failed: %s", e)
            self._disconnect()

    def draw(self) -> str:
        frame = render_frame(
            self.controller.render(),
            self.controller.geometry,
            color_system=self._color_system,
        )
        self._write(frame)
        self.frames_written += 1
        return frame

    # ── Main loop ──────────────────────────────────────────────────────

    def dispatch(self, msg: Msg) -> None:
        """Apply one message, schedule its follow-ups, and render."""
        self._schedule(self.controller.update(msg))
        self.draw()

    async def run(self) -> None:
        if self._alt_screen:
            self._write(ENTER_ALT_SCREEN)
        keys_task = asyncio.create_task(self._pump_keys())
        try:
            self._schedule(self.controller.init())
            self.draw()
            while not self.controller.finished:
                msg = await self._next_message()
                if msg is None:
                    logger.debug("Session disconnected")
                    break
                self.dispatch(msg)
        finally:
            await self._shutdown(keys_task)

    async def _shutdown(self, keys_task: asyncio.Task) -> None:
        self._stopped = True
        peer_gone = self._disconnected.is_set()
        tasks = [keys_task, *self._pending]
        for task in tasks:
            task.cancel()
        # Let cancellations settle; results are dropped because _stopped is set.
        await asyncio.gather(*tasks, return_exceptions=True)
        self._pending.clear()
        self.controller.mark_closed()
        if self._alt_screen and not peer_gone:
            self._write(EXIT_ALT_SCREEN)
