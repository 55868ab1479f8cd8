"""Selector panel: the repository list.

Holds the ordered menu entries and a cursor. Keys move the cursor or confirm
the entry under it; the panel reports both through messages routed back
through the session queue (SelectedMsg on confirm, ActiveMsg on move when
live_preview is on).

// [LAW:one-source-of-truth] _entries is the canonical row list, _cursor the
//   canonical position. Emitted indices are always read from _cursor after
//   bounds are applied, so they can never fall outside the entries.

Boundary behavior is an explicit choice: wrap=False (default) clamps at the
first and last row, wrap=True cycles.
"""

from __future__ import annotations

from collections.abc import Sequence

from rich.text import Text

from repo_shell.app.config_store import MenuEntry
from repo_shell.event_types import ActiveMsg, Command, KeyMsg, Msg, SelectedMsg
import repo_shell.tui.palette as palette

# [LAW:dataflow-not-control-flow] Key → cursor delta as data.
_MOVE_KEYS: dict[str, int] = {
    "up": -1,
    "k": -1,
    "down": +1,
    "j": +1,
}
_JUMP_FIRST = frozenset({"home", "g"})
_JUMP_LAST = frozenset({"end", "G"})
_CONFIRM_KEYS = frozenset({"enter", "space"})


def emit(msg: Msg) -> Command:
    """Wrap a message in a command so it re-enters through the session queue."""

    async def _emit() -> Msg:
        return msg

    return _emit


class Selector:
    """Focusable list of MenuEntry rows."""

    def __init__(
        self,
        entries: Sequence[MenuEntry] = (),
        *,
        wrap: bool = False,
        live_preview: bool = True,
    ):
        self._entries: tuple[MenuEntry, ...] = tuple(entries)
        self._cursor = 0
        self._wrap = wrap
        self._live_preview = live_preview
        self.focused = False

    @property
    def entries(self) -> tuple[MenuEntry, ...]:
        return self._entries

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def wrap(self) -> bool:
        return self._wrap

    def set_entries(self, entries: Sequence[MenuEntry]) -> None:
        self._entries = tuple(entries)
        self._cursor = min(self._cursor, max(0, len(self._entries) - 1))

    # ── Cursor movement ────────────────────────────────────────────────

    def _bounded(self, index: int) -> int:
        count = len(self._entries)
        if count == 0:
            return 0
        if self._wrap:
            return index % count
        return max(0, min(index, count - 1))

    def _move_to(self, index: int) -> list[Command]:
        new_cursor = self._bounded(index)
        if not self._entries or new_cursor == self._cursor:
            return []
        self._cursor = new_cursor
        if not self._live_preview:
            return []
        return [emit(ActiveMsg(self._cursor))]

    def _confirm(self) -> list[Command]:
        # An empty list has nothing to confirm.
        if not self._entries:
            return []
        return [emit(SelectedMsg(self._cursor))]

    # ── Panel protocol ─────────────────────────────────────────────────

    def handle_event(self, msg: Msg) -> list[Command]:
        if not isinstance(msg, KeyMsg):
            return []
        key = msg.key
        if key in _MOVE_KEYS:
            return self._move_to(self._cursor + _MOVE_KEYS[key])
        if key in _JUMP_FIRST:
            return self._move_to(0)
        if key in _JUMP_LAST:
            return self._move_to(len(self._entries) - 1)
        if key in _CONFIRM_KEYS:
            return self._confirm()
        return []

    def focus_gained(self) -> None:
        self.focused = True

    def focus_lost(self) -> None:
        self.focused = False

    def _window(self, height: int) -> range:
        """Rows to show so the cursor stays visible."""
        count = len(self._entries)
        height = max(1, height)
        if count <= height:
            return range(count)
        start = max(0, min(self._cursor - height + 1, count - height))
        return range(start, start + height)

    def render(self, width: int, height: int) -> Text:
        text = Text(no_wrap=True, overflow="ellipsis")
        if not self._entries:
            text.append("No repositories", style=palette.NOTE_STYLE)
            return text

        marker_width = len(palette.CURSOR_MARKER)
        for row, index in enumerate(self._window(height)):
            entry = self._entries[index]
            if row:
                text.append("\n")
            is_cursor = index == self._cursor
            marker = palette.CURSOR_MARKER if is_cursor else " " * marker_width
            style = palette.CURSOR_STYLE if is_cursor and self.focused else (
                palette.SELECTED_ROW_STYLE if is_cursor else palette.ROW_STYLE
            )
            text.append(marker, style=palette.CURSOR_STYLE)
            text.append(entry.name, style=style)
            if entry.note:
                text.append(f"  {entry.note}", style=palette.NOTE_STYLE)
        return text
