"""SSH transport built on asyncssh.

Accepts every client without authentication, requires a PTY, and hands each
interactive channel to the SessionFactory as a TerminalSession.

asyncssh reports terminal resizes by raising TerminalSizeChanged from stdin
reads; SSHTerminal turns those into pushes on a QueueResizeSource so resizes
reach the controller out-of-band from keystrokes.
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from pathlib import Path

import asyncssh

from repo_shell.errors import TransportError
from repo_shell.event_types import Geometry
from repo_shell.io.terminal import QueueResizeSource
from repo_shell.server.session_factory import SessionFactory
from repo_shell.settings import ServerSettings

logger = logging.getLogger(__name__)

_READ_SIZE = 1024
_DEFAULT_GEOMETRY = Geometry(80, 24)
_HOST_KEY_ALGORITHM = "ssh-ed25519"


class SSHTerminal:
    """TerminalSession over one asyncssh server process."""

    def __init__(self, process: asyncssh.SSHServerProcess):
        self._process = process
        width, height, _, _ = process.get_terminal_size()
        self.geometry = Geometry(width or _DEFAULT_GEOMETRY.width, height or _DEFAULT_GEOMETRY.height)
        self.resizes = QueueResizeSource()

    async def keys(self) -> AsyncIterator[str]:
        try:
            while True:
                try:
                    data = await self._process.stdin.read(_READ_SIZE)
                except asyncssh.TerminalSizeChanged as exc:
                    self.resizes.push(exc.width, exc.height)
                    continue
                except asyncssh.BreakReceived:
                    # A break is an interrupt.
                    yield "\x03"
                    continue
                except asyncssh.SignalReceived as exc:
                    logger.debug("Ignoring signal %s from client", exc.signal)
                    continue
                except (asyncssh.Error, OSError) as e:
                    raise TransportError(f"ssh input failed: {e}") from e
                if not data:
                    return
                yield data
        finally:
            self.resizes.close()

    def write(self, text: str) -> None:
        self._process.stdout.write(text)

    def close(self, exit_status: int = 0) -> None:
        self.resizes.close()
        try:
            self._process.exit(exit_status)
        except (asyncssh.Error, OSError) as e:
            logger.debug("Channel already closed: %s", e)


class _OpenServer(asyncssh.SSHServer):
    """Connection-level callbacks: logging and no-auth policy."""

    def connection_made(self, conn: asyncssh.SSHServerConnection) -> None:
        self._peer = conn.get_extra_info("peername")
        logger.info("Connection from %s", self._peer)

    def connection_lost(self, exc: Exception | None) -> None:
        if exc is not None:
            logger.info("Connection from %s lost: %s", getattr(self, "_peer", None), exc)

    def begin_auth(self, username: str) -> bool:
        # False means no authentication is required.
        return False


def load_or_create_host_key(path: str | os.PathLike) -> asyncssh.SSHKey:
    """Read the server host key, generating and saving one on first run."""
    key_path = Path(path)
    if key_path.exists():
        return asyncssh.read_private_key(str(key_path))
    logger.info("Generating %s host key at %s", _HOST_KEY_ALGORITHM, key_path)
    key_path.parent.mkdir(parents=True, exist_ok=True)
    key = asyncssh.generate_private_key(_HOST_KEY_ALGORITHM)
    key.write_private_key(str(key_path))
    os.chmod(key_path, 0o600)
    return key


def make_process_handler(factory: SessionFactory):
    """Return the asyncssh process_factory that runs one session per channel."""

    async def handle(process: asyncssh.SSHServerProcess) -> None:
        if process.command or process.get_terminal_type() is None:
            process.stdout.write("repo-shell needs an interactive terminal (ssh -t)\r\n")
            process.exit(1)
            return
        await factory.serve(SSHTerminal(process))

    return handle


async def start_server(settings: ServerSettings, factory: SessionFactory) -> asyncssh.SSHAcceptor:
    """Start listening. Returns the acceptor; close() it to stop."""
    host_key = load_or_create_host_key(settings.host_key_path)
    acceptor = await asyncssh.create_server(
        _OpenServer,
        settings.host,
        settings.port,
        server_host_keys=[host_key],
        process_factory=make_process_handler(factory),
        line_editor=False,
        encoding="utf-8",
    )
    logger.info("Listening on %s:%d", settings.host, settings.port)
    return acceptor
