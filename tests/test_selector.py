"""Unit tests for the Selector panel.

Cursor movement, boundary policy (clamp vs wrap), emitted messages, and
render output.
"""

import random

from rich.text import Text

from repo_shell.app.config_store import MenuEntry
from repo_shell.event_types import ActiveMsg, KeyMsg, ResizeMsg, SelectedMsg
from repo_shell.tui.selector import Selector


def _entries(*names):
    return tuple(MenuEntry(name=n, repo=n) for n in names)


async def _messages(commands):
    return [await command() for command in commands]


class TestMovement:
    async def test_down_emits_active(self):
        sel = Selector(_entries("a", "b", "c"))
        commands = sel.handle_event(KeyMsg("down"))
        assert sel.cursor == 1
        assert await _messages(commands) == [ActiveMsg(1)]

    async def test_vi_keys(self):
        sel = Selector(_entries("a", "b", "c"))
        sel.handle_event(KeyMsg("j"))
        sel.handle_event(KeyMsg("j"))
        sel.handle_event(KeyMsg("k"))
        assert sel.cursor == 1

    async def test_jump_first_and_last(self):
        sel = Selector(_entries("a", "b", "c"))
        assert await _messages(sel.handle_event(KeyMsg("G"))) == [ActiveMsg(2)]
        assert await _messages(sel.handle_event(KeyMsg("home"))) == [ActiveMsg(0)]

    def test_clamps_at_top(self):
        sel = Selector(_entries("a", "b"))
        assert sel.handle_event(KeyMsg("up")) == []
        assert sel.cursor == 0

    def test_clamps_at_bottom(self):
        sel = Selector(_entries("a", "b"))
        sel.handle_event(KeyMsg("down"))
        assert sel.handle_event(KeyMsg("down")) == []
        assert sel.cursor == 1

    async def test_wrap_cycles(self):
        sel = Selector(_entries("a", "b", "c"), wrap=True)
        assert await _messages(sel.handle_event(KeyMsg("up"))) == [ActiveMsg(2)]
        assert await _messages(sel.handle_event(KeyMsg("down"))) == [ActiveMsg(0)]

    def test_live_preview_off_moves_silently(self):
        sel = Selector(_entries("a", "b"), live_preview=False)
        assert sel.handle_event(KeyMsg("down")) == []
        assert sel.cursor == 1

    def test_unhandled_key(self):
        sel = Selector(_entries("a", "b"))
        assert sel.handle_event(KeyMsg("x")) == []
        assert sel.cursor == 0

    def test_non_key_messages_ignored(self):
        sel = Selector(_entries("a", "b"))
        assert sel.handle_event(ResizeMsg(80, 24)) == []


class TestConfirm:
    async def test_enter_emits_selected(self):
        sel = Selector(_entries("a", "b"))
        sel.handle_event(KeyMsg("down"))
        assert await _messages(sel.handle_event(KeyMsg("enter"))) == [SelectedMsg(1)]

    async def test_space_confirms(self):
        sel = Selector(_entries("a"))
        assert await _messages(sel.handle_event(KeyMsg("space"))) == [SelectedMsg(0)]


class TestEmptyMenu:
    def test_no_messages_for_any_key(self):
        sel = Selector(())
        for key in ("up", "down", "enter", "space", "home", "end", "j", "k", "g", "G"):
            assert sel.handle_event(KeyMsg(key)) == []
        assert sel.cursor == 0

    def test_wrap_on_empty_menu(self):
        sel = Selector((), wrap=True)
        assert sel.handle_event(KeyMsg("up")) == []


class TestIndicesStayInRange:
    async def test_random_key_sequences(self):
        rng = random.Random(1234)
        keys = ["up", "down", "j", "k", "home", "end", "g", "G", "enter", "space", "x"]
        for wrap in (False, True):
            for size in range(1, 6):
                sel = Selector(_entries(*[f"r{i}" for i in range(size)]), wrap=wrap)
                for _ in range(200):
                    for msg in await _messages(sel.handle_event(KeyMsg(rng.choice(keys)))):
                        assert 0 <= msg.index < size
                    assert 0 <= sel.cursor < size

    def test_set_entries_clamps_cursor(self):
        sel = Selector(_entries("a", "b", "c"))
        sel.handle_event(KeyMsg("end"))
        sel.set_entries(_entries("a"))
        assert sel.cursor == 0
        sel.set_entries(())
        assert sel.cursor == 0


class TestRender:
    def test_marks_cursor_row(self):
        sel = Selector(_entries("alpha", "beta"))
        sel.handle_event(KeyMsg("down"))
        text = sel.render(30, 10)
        assert isinstance(text, Text)
        lines = text.plain.split("\n")
        assert lines == ["  alpha", "> beta"]

    def test_note_is_shown(self):
        sel = Selector((MenuEntry(name="Home", repo="config", note="start"),))
        assert "start" in sel.render(30, 10).plain

    def test_empty_placeholder(self):
        assert Selector(()).render(30, 10).plain == "No repositories"

    def test_window_follows_cursor(self):
        sel = Selector(_entries(*[f"r{i}" for i in range(10)]))
        sel.handle_event(KeyMsg("end"))
        lines = sel.render(30, 3).plain.split("\n")
        assert lines == ["  r7", "  r8", "> r9"]
