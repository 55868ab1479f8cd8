"""Per-connection entry point.

Every accepted terminal gets a fresh SessionController built from the
configuration snapshot published at that moment and the terminal's geometry
at connect time. Sessions keep that snapshot for their whole lifetime; the
refresher's later publications only reach sessions created afterwards.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from repo_shell.app.config_store import ConfigStore
from repo_shell.errors import ConfigLoadError
from repo_shell.io.terminal import TerminalSession
from repo_shell.tui.controller import SessionController
from repo_shell.tui.runtime import SessionProgram

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionOptions:
    """Behavior switches applied to every new session."""

    selector_wrap: bool = False
    live_preview: bool = True
    color_system: str | None = "truecolor"
    alt_screen: bool = True


class SessionFactory:
    """Builds and runs one SessionProgram per terminal."""

    def __init__(
        self,
        config_store: ConfigStore,
        store=None,
        options: SessionOptions | None = None,
    ):
        self._config_store = config_store
        self._store = store
        self._options = options or SessionOptions()
        self._live: set[SessionProgram] = set()
        self.sessions_started = 0

    @property
    def live_sessions(self) -> int:
        return len(self._live)

    def create(self, terminal: TerminalSession) -> SessionProgram:
        """Snapshot configuration and geometry, and build the session program.

        Raises:
            ConfigLoadError: no configuration has been published yet.
        """
        config = self._config_store.current()
        opts = self._options
        controller = SessionController(
            config,
            self._config_store.source,
            terminal.geometry,
            terminal.resizes,
            store=self._store,
            selector_wrap=opts.selector_wrap,
            live_preview=opts.live_preview,
        )
        return SessionProgram(
            controller,
            terminal,
            color_system=opts.color_system,
            alt_screen=opts.alt_screen,
        )

    async def serve(self, terminal: TerminalSession) -> None:
        """Run one session to completion and close its terminal."""
        try:
            program = self.create(terminal)
        except ConfigLoadError as e:
            logger.error("Rejecting session: %s", e)
            terminal.write(f"repo-shell is not ready: {e}\r\n")
            terminal.close(1)
            return

        self.sessions_started += 1
        self._live.add(program)
        logger.info(
            "Session started (%dx%d), %d live",
            terminal.geometry.width, terminal.geometry.height, len(self._live),
        )
        exit_status = 0
        try:
            await program.run()
        except Exception:
            # One broken session must not take the server down.
            logger.exception("Session crashed")
            exit_status = 1
        finally:
            self._live.discard(program)
            logger.info("Session ended, %d live", len(self._live))
            terminal.close(exit_status)
