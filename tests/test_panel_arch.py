"""Tests for the panel protocol, layout arithmetic, and the resize stream."""

import pytest

from repo_shell.event_types import Geometry, ResizeMsg
from repo_shell.io.terminal import QueueResizeSource
from repo_shell.tui import palette
from repo_shell.tui.protocols import validate_panel_protocol
from repo_shell.tui.selector import Selector
from repo_shell.tui.viewer import Viewer

from tests.harness import make_source


class TestPanelProtocol:
    def test_panels_conform(self):
        validate_panel_protocol(Selector())
        validate_panel_protocol(Viewer(make_source()))

    def test_missing_method(self):
        class Incomplete:
            def handle_event(self, msg):
                return []

        with pytest.raises(TypeError, match="render"):
            validate_panel_protocol(Incomplete())

    def test_non_callable_attribute(self):
        class Broken:
            handle_event = render = focus_gained = None

            def focus_lost(self):
                pass

        with pytest.raises(TypeError, match="not callable"):
            validate_panel_protocol(Broken())


class TestLayout:
    @pytest.mark.parametrize(
        "width, expected",
        [
            (120, (34, 80)),
            (80, (22, 52)),
            (20, (10, 10)),
        ],
    )
    def test_panel_widths(self, width, expected):
        assert palette.panel_widths(width) == expected

    def test_body_height(self):
        assert palette.body_height(40) == 35
        assert palette.body_height(4) == palette.PANEL_CHROME + 1


class TestQueueResizeSource:
    async def test_delivers_in_order(self):
        source = QueueResizeSource()
        source.push(100, 30)
        source.push(120, 40)
        assert await source.next() == Geometry(100, 30)
        assert await source.next() == Geometry(120, 40)

    async def test_close_ends_stream_for_every_reader(self):
        source = QueueResizeSource()
        source.close()
        source.push(1, 1)
        assert await source.next() is None
        assert await source.next() is None
        assert source.closed

    def test_resize_msg_geometry(self):
        assert ResizeMsg(120, 40).geometry == Geometry(120, 40)
