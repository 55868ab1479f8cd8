"""Styles and layout constants for session rendering.

// [LAW:one-source-of-truth] Every color and every layout dimension used by the
//   panels and the controller is defined here.
"""

from rich import box
from rich.style import Style

# Semantic colors (24-bit).
ACCENT = "#6C50FF"
ACCENT_DIM = "#3F3F5F"
TEXT = "#DDDADA"
MUTED = "#8E8E8E"
ERROR = "#FF6050"
WARNING = "#F0C674"
SUCCESS = "#5FD787"

APP_BOX_STYLE = Style(color=TEXT)
APP_BOX = box.ROUNDED

HEADER_STYLE = Style(color=ACCENT, bold=True)
FOOTER_STYLE = Style(color=MUTED)
NORMAL_STYLE = Style(color=TEXT)
ERROR_STYLE = Style(color=ERROR, bold=True)
NOTE_STYLE = Style(color=MUTED, italic=True)

ACTIVE_BORDER_STYLE = Style(color=ACCENT)
INACTIVE_BORDER_STYLE = Style(color=ACCENT_DIM)
PANEL_BOX = box.ROUNDED

CURSOR_STYLE = Style(color=ACCENT, bold=True)
SELECTED_ROW_STYLE = Style(color=TEXT, bold=True)
ROW_STYLE = Style(color=MUTED)
CURSOR_MARKER = "> "

COMMIT_HASH_STYLE = Style(color=WARNING)
COMMIT_AUTHOR_STYLE = Style(color=SUCCESS)
SECTION_STYLE = Style(color=ACCENT, bold=True, underline=True)

# ── Layout ─────────────────────────────────────────────────────────────
# Horizontal cells taken by the outer box border (2) and its padding (2 * 2).
HORIZONTAL_PADDING = 6
# Vertical cells taken by the outer border (2), header (1), blank line (1), footer (1).
VERTICAL_PADDING = 5
# Share of the inner width given to the selector; the viewer gets the rest.
LEFT_RATIO = 0.3
MIN_PANEL_WIDTH = 10
# Border cells around each panel box.
PANEL_CHROME = 2


def panel_widths(width: int) -> tuple[int, int]:
    """Split the terminal width between the selector and the viewer.

    >>> panel_widths(120)
    (34, 80)
    """
    inner = max(0, width - HORIZONTAL_PADDING)
    left = max(MIN_PANEL_WIDTH, int(inner * LEFT_RATIO))
    right = max(MIN_PANEL_WIDTH, inner - left)
    return left, right


def body_height(height: int) -> int:
    """Rows available to the panel boxes below the header."""
    return max(PANEL_CHROME + 1, height - VERTICAL_PADDING)
