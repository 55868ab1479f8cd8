"""Protocol definitions for focusable panels.

The session controller holds its panels in one tuple and talks to whichever is
focused through this protocol only, so the selector and the viewer are
interchangeable behind the focus slot.

The protocol uses structural typing: panels do not inherit from it.

State contract:
- handle_event() is called synchronously inside SessionController.update and
  returns follow-up commands; it never awaits.
- render() is a pure function of panel state and the given cell budget.
- focus_gained()/focus_lost() are called in pairs by the controller; at most
  one panel is focused at any time.
"""

from typing import Protocol

from rich.console import RenderableType

from repo_shell.event_types import Command, Msg


class Panel(Protocol):
    """A focusable sub-model composed inside the session controller."""

    focused: bool

    def handle_event(self, msg: Msg) -> list[Command]:
        """Apply one message and return follow-up commands (possibly empty)."""
        ...

    def render(self, width: int, height: int) -> RenderableType:
        """Render the panel content to fit width x height cells."""
        ...

    def focus_gained(self) -> None:
        ...

    def focus_lost(self) -> None:
        ...


def validate_panel_protocol(panel) -> None:
    """Validate that an object implements the Panel protocol.

    Raises:
        TypeError: If a required method is missing or not callable.
    """
    required_methods = ["handle_event", "render", "focus_gained", "focus_lost"]

    for method_name in required_methods:
        if not hasattr(panel, method_name):
            raise TypeError(
                f"Panel {type(panel).__name__} does not implement Panel protocol: "
                f"missing method '{method_name}()'"
            )

        method = getattr(panel, method_name)
        if not callable(method):
            raise TypeError(
                f"Panel {type(panel).__name__} does not implement Panel protocol: "
                f"'{method_name}' exists but is not callable"
            )
