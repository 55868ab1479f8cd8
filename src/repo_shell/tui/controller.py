"""Session controller: the per-connection state machine.

Owns the selector and the viewer, tracks focus and terminal geometry, and
turns one message at a time into state changes plus follow-up commands.

// [LAW:single-enforcer] update() is the only entry point that mutates session
//   state. The runtime calls it strictly sequentially.
// [LAW:dataflow-not-control-flow] Message dispatch is a table keyed by type.
// [LAW:locality-or-seam] Panels are reached only through the Panel protocol.

States:
    STARTING ──SetupCompleteMsg──▶ READY
    STARTING / READY ──ErrorMsg──▶ ERROR
    any ──quit key / QuitMsg──▶ CLOSING ──runtime exit──▶ CLOSED

Messages other than the global ones are forwarded to the focused panel, and
only in READY.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import Enum

from rich.console import Group, RenderableType
from rich.panel import Panel as BoxPanel
from rich.table import Table
from rich.text import Text

from repo_shell.app.config_store import CONFIG_REPO, Configuration, MenuEntry
from repo_shell.errors import DataLoadError, StoreNotFoundError
from repo_shell.event_types import (
    ActiveMsg,
    Command,
    ErrorMsg,
    Geometry,
    KeyMsg,
    LoadCompletedMsg,
    Msg,
    QuitMsg,
    ResizeMsg,
    SelectedMsg,
    SetupCompleteMsg,
)
from repo_shell.io.terminal import ResizeSource
from repo_shell.tui.protocols import Panel, validate_panel_protocol
from repo_shell.tui.selector import Selector
from repo_shell.tui.viewer import Viewer
import repo_shell.tui.palette as palette

logger = logging.getLogger(__name__)

QUIT_KEYS = frozenset({"q", "ctrl+c"})
FOCUS_CYCLE_KEY = "tab"
SELECTOR, VIEWER = 0, 1

FOOTER_HELP = "tab: switch panel • ↑/↓: move • enter: open • q: quit"


class SessionState(Enum):
    STARTING = "starting"
    ERROR = "error"
    READY = "ready"
    CLOSING = "closing"
    CLOSED = "closed"


def build_menu(config: Configuration, source, store=None) -> tuple[MenuEntry, ...]:
    """Blocking: configured entries, then (with show_all) every other public repo."""
    entries = list(config.menu)
    if not config.show_all:
        return tuple(entries)

    listed = {entry.repo for entry in entries}
    for name in source.list():
        if name in listed or name == CONFIG_REPO:
            continue
        if store is not None and _is_private(store, name):
            continue
        entries.append(MenuEntry(name=name, repo=name))
        listed.add(name)
    return tuple(entries)


def _is_private(store, name: str) -> bool:
    try:
        return bool(store.get_repo(name).is_private)
    except StoreNotFoundError:
        return False


class SessionController:
    """Top-level model for one interactive session."""

    def __init__(
        self,
        config: Configuration,
        source,
        geometry: Geometry,
        resizes: ResizeSource,
        *,
        store=None,
        selector_wrap: bool = False,
        live_preview: bool = True,
    ):
        self._config = config
        self._source = source
        self._store = store
        self._resizes = resizes
        self.geometry = geometry
        self.state = SessionState.STARTING
        self.error: str | None = None

        self.selector = Selector(wrap=selector_wrap, live_preview=live_preview)
        self.viewer = Viewer(source, store)
        self.panels: tuple[Panel, ...] = (self.selector, self.viewer)
        for panel in self.panels:
            validate_panel_protocol(panel)
        self.focus = SELECTOR
        self.panels[self.focus].focus_gained()
        self._layout_panels()

        # [LAW:dataflow-not-control-flow] Message type → handler.
        self._handlers: dict[type[Msg], Callable[[Msg], list[Command]]] = {
            KeyMsg: self._on_key,
            ResizeMsg: self._on_resize,
            ErrorMsg: self._on_error,
            SetupCompleteMsg: self._on_setup_complete,
            SelectedMsg: self._on_selected,
            ActiveMsg: self._on_active,
            LoadCompletedMsg: self._on_load_completed,
            QuitMsg: self._on_quit,
        }

    @property
    def config(self) -> Configuration:
        return self._config

    @property
    def store(self):
        return self._store

    @property
    def handled_message_types(self) -> frozenset[type[Msg]]:
        return frozenset(self._handlers)

    @property
    def finished(self) -> bool:
        return self.state in (SessionState.CLOSING, SessionState.CLOSED)

    # ── Commands ───────────────────────────────────────────────────────

    def init(self) -> list[Command]:
        """Initial commands: resize subscription and the first data load."""
        return [self._wait_for_resize, self._setup]

    async def _wait_for_resize(self) -> Msg | None:
        geometry = await self._resizes.next()
        if geometry is None:
            return None
        return ResizeMsg(geometry.width, geometry.height)

    async def _setup(self) -> Msg:
        try:
            entries = await asyncio.to_thread(build_menu, self._config, self._source, self._store)
        except DataLoadError as e:
            return ErrorMsg(f"cannot load repositories: {e}")
        return SetupCompleteMsg(entries)

    # ── Update ─────────────────────────────────────────────────────────

    def update(self, msg: Msg) -> list[Command]:
        """Apply one message. Returns the follow-up commands to schedule."""
        if self.finished:
            return []
        handler = self._handlers.get(type(msg))
        if handler is None:
            raise TypeError(f"unhandled message type {type(msg).__name__}")
        return handler(msg)

    def _set_focus(self, index: int) -> None:
        index %= len(self.panels)
        if index == self.focus:
            return
        self.panels[self.focus].focus_lost()
        self.focus = index
        self.panels[self.focus].focus_gained()

    def _layout_panels(self) -> None:
        self.viewer.set_viewport(palette.body_height(self.geometry.height) - palette.PANEL_CHROME)

    def _on_key(self, msg: KeyMsg) -> list[Command]:
        if msg.key in QUIT_KEYS:
            return self._on_quit(QuitMsg())
        if msg.key == FOCUS_CYCLE_KEY:
            self._set_focus(self.focus + 1)
            return []
        if self.state is not SessionState.READY:
            return []
        return self.panels[self.focus].handle_event(msg)

    def _on_quit(self, msg: QuitMsg) -> list[Command]:
        logger.debug("Session quitting from state %s", self.state.value)
        self.state = SessionState.CLOSING
        return []

    def _on_resize(self, msg: ResizeMsg) -> list[Command]:
        self.geometry = msg.geometry
        self._layout_panels()
        # The resize source is a stream: subscribe again for the next one.
        return [self._wait_for_resize]

    def _on_error(self, msg: ErrorMsg) -> list[Command]:
        logger.warning("Session error: %s", msg.message)
        self.error = msg.message
        self.state = SessionState.ERROR
        return []

    def _on_setup_complete(self, msg: SetupCompleteMsg) -> list[Command]:
        if self.state is not SessionState.STARTING:
            return []
        self.selector.set_entries(msg.entries)
        self.state = SessionState.READY
        if not msg.entries:
            return []
        return [self.viewer.request_load(msg.entries[self.selector.cursor].repo)]

    def _entry_at(self, index: int) -> MenuEntry | None:
        entries = self.selector.entries
        if self.state is not SessionState.READY or not 0 <= index < len(entries):
            return None
        return entries[index]

    def _on_selected(self, msg: SelectedMsg) -> list[Command]:
        entry = self._entry_at(msg.index)
        if entry is None:
            return []
        self._set_focus(VIEWER)
        return [self.viewer.request_load(entry.repo)]

    def _on_active(self, msg: ActiveMsg) -> list[Command]:
        entry = self._entry_at(msg.index)
        if entry is None:
            return []
        return [self.viewer.request_load(entry.repo)]

    def _on_load_completed(self, msg: LoadCompletedMsg) -> list[Command]:
        # Routed to the viewer regardless of focus.
        return self.viewer.handle_event(msg)

    def mark_closed(self) -> None:
        self.state = SessionState.CLOSED

    # ── Render ─────────────────────────────────────────────────────────

    def _panel_box(self, index: int, width: int, height: int) -> BoxPanel:
        border = palette.ACTIVE_BORDER_STYLE if index == self.focus else palette.INACTIVE_BORDER_STYLE
        inner_width = max(1, width - palette.PANEL_CHROME)
        inner_height = max(1, height - palette.PANEL_CHROME)
        return BoxPanel(
            self.panels[index].render(inner_width, inner_height),
            box=palette.PANEL_BOX,
            border_style=border,
            width=width,
            height=height,
            padding=0,
        )

    def _render_body(self) -> RenderableType:
        if self.state is SessionState.READY:
            left, right = palette.panel_widths(self.geometry.width)
            height = palette.body_height(self.geometry.height)
            grid = Table.grid(padding=0)
            grid.add_column(width=left)
            grid.add_column(width=right)
            grid.add_row(
                self._panel_box(SELECTOR, left, height),
                self._panel_box(VIEWER, right, height),
            )
            return grid
        if self.state is SessionState.ERROR:
            return Text(f"Bummer: {self.error}", style=palette.ERROR_STYLE)
        if self.state is SessionState.STARTING:
            return Text("Loading repositories…", style=palette.NORMAL_STYLE)
        return Text("Goodbye!", style=palette.NORMAL_STYLE)

    def render(self) -> RenderableType:
        """Compose the full frame for the current state and geometry."""
        width, height = self.geometry.width, self.geometry.height
        header = Text(self._config.name, style=palette.HEADER_STYLE, no_wrap=True, overflow="ellipsis")
        footer = Text(FOOTER_HELP, style=palette.FOOTER_STYLE, no_wrap=True, overflow="ellipsis")
        content = Group(header, Text(""), self._render_body(), footer)
        return BoxPanel(
            content,
            box=palette.APP_BOX,
            style=palette.APP_BOX_STYLE,
            width=width,
            height=height,
            padding=(0, 2),
        )
