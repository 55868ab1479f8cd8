"""Tests for the SessionController state machine and frame layout.

The controller is driven directly with messages; command results are awaited
by hand so every transition is observable.
"""

import io
import random

import pytest
from rich.console import Console

from repo_shell.app.config_store import MenuEntry, parse_configuration
from repo_shell.errors import DataLoadError
from repo_shell.event_types import (
    ActiveMsg,
    ErrorMsg,
    Geometry,
    KeyMsg,
    LoadCompletedMsg,
    Msg,
    QuitMsg,
    ResizeMsg,
    SelectedMsg,
    SetupCompleteMsg,
    all_message_types,
)
from repo_shell.io.terminal import QueueResizeSource
from repo_shell.tui.controller import SELECTOR, VIEWER, SessionController, SessionState, build_menu
from repo_shell.tui.palette import panel_widths

from tests.harness import make_config, make_source


def _controller(config=None, source=None, size=(80, 24), **kwargs):
    return SessionController(
        config or make_config(),
        source or make_source(),
        Geometry(*size),
        QueueResizeSource(),
        **kwargs,
    )


async def _ready(controller):
    """Run the setup command and apply its result."""
    msg = await controller._setup()
    assert isinstance(msg, SetupCompleteMsg)
    return controller.update(msg)


def _plain(controller):
    console = Console(
        file=io.StringIO(),
        width=controller.geometry.width,
        height=controller.geometry.height,
        color_system=None,
        legacy_windows=False,
    )
    with console.capture() as capture:
        console.print(controller.render())
    return capture.get()


class TestMessageTable:
    def test_every_message_type_has_a_handler(self):
        assert _controller().handled_message_types == frozenset(all_message_types())

    def test_message_set_is_closed(self):
        names = {cls.__name__ for cls in all_message_types()}
        assert names == {
            "KeyMsg", "ResizeMsg", "ErrorMsg", "SetupCompleteMsg",
            "SelectedMsg", "ActiveMsg", "LoadCompletedMsg", "QuitMsg",
        }

    def test_unknown_message_type_raises(self):
        class Stray(Msg):
            pass

        with pytest.raises(TypeError):
            _controller().update(Stray())


class TestStartup:
    def test_initial_state(self):
        controller = _controller()
        assert controller.state is SessionState.STARTING
        assert controller.focus == SELECTOR
        assert controller.selector.focused
        assert not controller.viewer.focused

    def test_init_returns_resize_and_setup(self):
        assert len(_controller().init()) == 2

    async def test_setup_populates_selector_and_loads_first(self):
        controller = _controller()
        commands = await _ready(controller)
        assert controller.state is SessionState.READY
        assert [e.repo for e in controller.selector.entries] == ["repo1", "repo2"]
        assert len(commands) == 1
        msg = await commands[0]()
        assert isinstance(msg, LoadCompletedMsg)
        assert msg.repo == "repo1"

    async def test_setup_with_empty_menu(self):
        controller = _controller(config=make_config(repos=()))
        assert await _ready(controller) == []
        assert controller.state is SessionState.READY

    async def test_setup_failure_becomes_error(self, monkeypatch):
        source = make_source()
        controller = _controller(config=make_config(show_all=True), source=source)

        def broken_list():
            raise DataLoadError("gone")

        monkeypatch.setattr(source, "list", broken_list)
        msg = await controller._setup()
        assert isinstance(msg, ErrorMsg)
        controller.update(msg)
        assert controller.state is SessionState.ERROR

    def test_setup_complete_after_error_is_ignored(self):
        controller = _controller()
        controller.update(ErrorMsg("boom"))
        controller.update(SetupCompleteMsg((MenuEntry("a", "a"),)))
        assert controller.state is SessionState.ERROR


class TestDemoScenario:
    async def test_document_to_selected_to_load(self):
        config = parse_configuration(
            '{"name":"Demo","host":"0.0.0.0","port":23,'
            '"menu":[{"name":"repo1","note":"","repo":"repo1"}]}'
        )
        controller = _controller(config=config)
        await _ready(controller)
        assert [e.name for e in controller.selector.entries] == ["repo1"]

        emitted = [await c() for c in controller.update(KeyMsg("enter"))]
        assert emitted == [SelectedMsg(0)]
        commands = controller.update(emitted[0])
        assert controller.focus == VIEWER
        assert controller.viewer.repo == "repo1"
        assert (await commands[0]()).repo == "repo1"

    async def test_selected_focuses_viewer_and_loads(self):
        controller = _controller()
        await _ready(controller)

        commands = controller.update(SelectedMsg(0))
        assert controller.focus == VIEWER
        assert controller.viewer.focused
        assert not controller.selector.focused
        assert len(commands) == 1
        msg = await commands[0]()
        assert msg.repo == "repo1"
        controller.update(msg)
        assert controller.viewer.content.repo == "repo1"

    async def test_resize_keeps_focus_and_relayouts(self):
        controller = _controller()
        await _ready(controller)
        controller.update(SelectedMsg(0))

        commands = controller.update(ResizeMsg(120, 40))
        assert controller.geometry == Geometry(120, 40)
        assert controller.focus == VIEWER
        # Resubscribes for the next resize.
        assert len(commands) == 1
        assert panel_widths(120) == (34, 80)

        lines = _plain(controller).splitlines()
        assert len(lines) == 40
        assert all(len(line) == 120 for line in lines)
        # Both panel boxes start on the first body row.
        body = next(line for line in lines if "╭" in line[3:])
        left_box = body.index("╭", 3)
        right_box = body.index("╭", left_box + 1)
        assert right_box - left_box == 34

    async def test_active_loads_without_moving_focus(self):
        controller = _controller()
        await _ready(controller)
        commands = controller.update(ActiveMsg(1))
        assert controller.focus == SELECTOR
        assert (await commands[0]()).repo == "repo2"

    async def test_out_of_range_index_ignored(self):
        controller = _controller()
        await _ready(controller)
        assert controller.update(SelectedMsg(5)) == []
        assert controller.update(ActiveMsg(-1)) == []
        assert controller.focus == SELECTOR

    def test_selected_before_ready_ignored(self):
        controller = _controller()
        assert controller.update(SelectedMsg(0)) == []
        assert controller.focus == SELECTOR


class TestKeys:
    async def test_tab_cycles_focus(self):
        controller = _controller()
        await _ready(controller)
        controller.update(KeyMsg("tab"))
        assert controller.focus == VIEWER
        controller.update(KeyMsg("tab"))
        assert controller.focus == SELECTOR

    def test_tab_works_before_ready(self):
        controller = _controller()
        controller.update(KeyMsg("tab"))
        assert controller.focus == VIEWER

    async def test_keys_go_to_focused_panel(self):
        controller = _controller()
        await _ready(controller)
        commands = controller.update(KeyMsg("down"))
        assert controller.selector.cursor == 1
        assert await commands[0]() == ActiveMsg(1)

        controller.update(KeyMsg("tab"))
        controller.update(KeyMsg("down"))
        assert controller.selector.cursor == 1

    def test_keys_not_forwarded_while_starting(self):
        controller = _controller()
        controller.selector.set_entries((MenuEntry("a", "a"), MenuEntry("b", "b")))
        assert controller.update(KeyMsg("down")) == []
        assert controller.selector.cursor == 0

    @pytest.mark.parametrize("key", ["q", "ctrl+c"])
    def test_quit_from_starting(self, key):
        controller = _controller()
        controller.update(KeyMsg(key))
        assert controller.state is SessionState.CLOSING
        assert controller.finished

    async def test_quit_from_ready(self):
        controller = _controller()
        await _ready(controller)
        controller.update(QuitMsg())
        assert controller.state is SessionState.CLOSING

    def test_quit_from_error(self):
        controller = _controller()
        controller.update(ErrorMsg("boom"))
        controller.update(KeyMsg("q"))
        assert controller.state is SessionState.CLOSING

    def test_updates_after_quit_are_ignored(self):
        controller = _controller()
        controller.update(KeyMsg("q"))
        assert controller.update(SetupCompleteMsg((MenuEntry("a", "a"),))) == []
        assert controller.state is SessionState.CLOSING

    async def test_never_closes_without_quit(self):
        rng = random.Random(7)
        keys = ["up", "down", "j", "k", "enter", "space", "tab", "home", "end", "x", "escape"]
        controller = _controller()
        pending = list(await _ready(controller))
        for _ in range(300):
            for command in controller.update(KeyMsg(rng.choice(keys))):
                pending.append(command)
            while pending:
                msg = await pending.pop()()
                if msg is not None:
                    pending.extend(controller.update(msg))
            assert controller.state is SessionState.READY
            assert 0 <= controller.selector.cursor < 2


class TestRender:
    def test_starting_frame(self):
        text = _plain(_controller())
        assert "Demo" in text
        assert "Loading repositories" in text

    def test_error_frame(self):
        controller = _controller()
        controller.update(ErrorMsg("no data"))
        assert "Bummer: no data" in _plain(controller)

    async def test_ready_frame_lists_repos(self):
        controller = _controller()
        await _ready(controller)
        text = _plain(controller)
        assert "> repo1" in text
        assert "repo2" in text
        assert "tab: switch panel" in text

    def test_closing_frame(self):
        controller = _controller()
        controller.update(QuitMsg())
        assert "Goodbye!" in _plain(controller)

    def test_frame_fills_geometry(self):
        controller = _controller(size=(60, 15))
        lines = _plain(controller).splitlines()
        assert len(lines) == 15
        assert all(len(line) == 60 for line in lines)


class TestBuildMenu:
    def test_without_show_all(self):
        menu = build_menu(make_config(repos=("repo1",)), make_source())
        assert [e.repo for e in menu] == ["repo1"]

    def test_show_all_appends_unlisted_repos(self):
        source = make_source(repos=("repo1", "repo2", "repo3"))
        menu = build_menu(make_config(repos=("repo2",), show_all=True), source)
        assert [e.repo for e in menu] == ["repo2", "repo1", "repo3"]

    def test_show_all_skips_private_repos(self, store):
        source = make_source(repos=("repo1", "secret"))
        store.add_repo("secret", "", "", True)
        menu = build_menu(make_config(repos=(), show_all=True), source, store)
        assert [e.repo for e in menu] == ["repo1"]
