"""Type-safe message system for session controllers.

// [LAW:one-source-of-truth] The class IS the type; there is no msg_type field.
// [LAW:single-enforcer] SessionController.update is the sole consumer of Msg values.

Every value that can reach SessionController.update is a frozen dataclass
deriving from Msg. The set is closed: tests assert that each subclass has a
handler, so adding a message without wiring it fails the suite.

Commands are zero-argument coroutine functions. The session runtime runs each
one as a task and feeds its returned Msg (if any) back into the inbound queue.

This module is STABLE. Safe for `from` imports everywhere.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from repo_shell.app.config_store import MenuEntry
from repo_shell.io.repo_source import CommitInfo


# ─── Value types ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Geometry:
    """Terminal dimensions in cells. Replaced wholesale by resize events."""

    width: int
    height: int


@dataclass(frozen=True)
class RepoContent:
    """Detail payload for one repository, as shown by the viewer panel."""

    repo: str
    readme: str | None
    commits: tuple[CommitInfo, ...] = ()
    description: str | None = None


# ─── Message hierarchy ───────────────────────────────────────────────────────
# // [LAW:one-source-of-truth] The class IS the type.


@dataclass(frozen=True)
class Msg:
    """Base class for all session messages."""


@dataclass(frozen=True)
class KeyMsg(Msg):
    """One decoded keystroke, e.g. "q", "tab", "up", "ctrl+c"."""

    key: str


@dataclass(frozen=True)
class ResizeMsg(Msg):
    """The terminal was resized."""

    width: int
    height: int

    @property
    def geometry(self) -> Geometry:
        return Geometry(self.width, self.height)


@dataclass(frozen=True)
class ErrorMsg(Msg):
    """Unrecoverable failure for this session."""

    message: str


@dataclass(frozen=True)
class SetupCompleteMsg(Msg):
    """Initial setup finished; the selector can be populated."""

    entries: tuple[MenuEntry, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class SelectedMsg(Msg):
    """Selector confirmed the entry at index."""

    index: int


@dataclass(frozen=True)
class ActiveMsg(Msg):
    """Selector cursor moved onto the entry at index."""

    index: int


@dataclass(frozen=True)
class LoadCompletedMsg(Msg):
    """A viewer load finished. Exactly one of content/error is set."""

    token: int
    repo: str
    content: RepoContent | None = None
    error: str | None = None


@dataclass(frozen=True)
class QuitMsg(Msg):
    """The user asked to end the session."""


Command = Callable[[], Awaitable[Msg | None]]
"""A scheduled action. Runs off the update path; its result re-enters as a Msg."""


def all_message_types() -> tuple[type[Msg], ...]:
    """Return every concrete Msg subclass defined in this module."""
    return tuple(
        cls for cls in Msg.__subclasses__()
        if cls.__module__ == __name__
    )
