"""Viewer panel: README and recent history of one repository.

Loads run as commands off the update path. Each request_load() bumps a token;
a LoadCompletedMsg is applied only if its token is the latest one issued, so
the panel shows the most recently requested repository even when an older
load finishes last.

Load failures are shown inline and carry the token of their request, so a
failure from a superseded load is discarded like any other stale result.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from rich.text import Text

from repo_shell.errors import DataLoadError, ItemNotFoundError, StoreNotFoundError
from repo_shell.event_types import Command, KeyMsg, LoadCompletedMsg, Msg, RepoContent
import repo_shell.tui.palette as palette

logger = logging.getLogger(__name__)

README_PATH = "README.md"
COMMIT_LIMIT = 10

_SCROLL_KEYS: dict[str, int] = {
    "up": -1,
    "k": -1,
    "down": +1,
    "j": +1,
}


def fetch_repo_content(source, name: str, store=None, commit_limit: int = COMMIT_LIMIT) -> RepoContent:
    """Blocking fetch of everything the viewer shows for one repository.

    Raises:
        DataLoadError: the repository is missing or cannot be read.
    """
    repo = source.get(name)
    try:
        readme = source.latest_file(repo, README_PATH)
    except ItemNotFoundError:
        readme = None
    commits = source.commits(repo, commit_limit)

    description = None
    if store is not None:
        try:
            record = store.get_repo(name)
        except StoreNotFoundError:
            record = None
        if record is not None:
            description = record.description or None
    return RepoContent(repo=name, readme=readme, commits=commits, description=description)


def _format_timestamp(ts: int) -> str:
    if ts <= 0:
        return ""
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d")


class Viewer:
    """Focusable detail panel for the repository picked in the selector."""

    def __init__(self, source, store=None, *, commit_limit: int = COMMIT_LIMIT):
        self._source = source
        self._store = store
        self._commit_limit = commit_limit
        self._token = 0
        self._repo: str | None = None
        self._content: RepoContent | None = None
        self._error: str | None = None
        self._loading = False
        self._scroll = 0
        self._viewport_height = 1
        self.focused = False

    @property
    def token(self) -> int:
        return self._token

    @property
    def repo(self) -> str | None:
        return self._repo

    @property
    def content(self) -> RepoContent | None:
        return self._content

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def scroll(self) -> int:
        return self._scroll

    # ── Loading ────────────────────────────────────────────────────────

    def request_load(self, name: str) -> Command:
        """Start loading name. Supersedes any load still in flight."""
        self._token += 1
        token = self._token
        self._repo = name
        self._loading = True
        self._error = None
        self._content = None
        self._scroll = 0
        source, store, limit = self._source, self._store, self._commit_limit

        async def _load() -> Msg:
            try:
                content = await asyncio.to_thread(fetch_repo_content, source, name, store, limit)
            except DataLoadError as e:
                return LoadCompletedMsg(token=token, repo=name, error=str(e))
            except Exception as e:
                logger.exception("Loading %s failed", name)
                return LoadCompletedMsg(token=token, repo=name, error=f"{type(e).__name__}: {e}")
            return LoadCompletedMsg(token=token, repo=name, content=content)

        return _load

    def apply_result(self, msg: LoadCompletedMsg) -> bool:
        """Apply a finished load. Returns False if the result was stale."""
        if msg.token != self._token:
            logger.debug("Discarding stale load of %s (token %d, latest %d)",
                          msg.repo, msg.token, self._token)
            return False
        self._loading = False
        self._content = msg.content
        self._error = msg.error
        self._scroll = 0
        return True

    # ── Panel protocol ─────────────────────────────────────────────────

    def handle_event(self, msg: Msg) -> list[Command]:
        if isinstance(msg, LoadCompletedMsg):
            self.apply_result(msg)
            return []
        if not isinstance(msg, KeyMsg):
            return []

        key = msg.key
        page = max(1, self._viewport_height - 1)
        if key in _SCROLL_KEYS:
            self._scroll_by(_SCROLL_KEYS[key])
        elif key in ("pagedown", "space"):
            self._scroll_by(page)
        elif key == "pageup":
            self._scroll_by(-page)
        elif key in ("home", "g"):
            self._scroll = 0
        elif key in ("end", "G"):
            self._scroll = self._max_scroll(self._viewport_height)
        return []

    def _scroll_by(self, delta: int) -> None:
        self._scroll = max(0, min(self._scroll + delta, self._max_scroll(self._viewport_height)))

    def _max_scroll(self, height: int) -> int:
        return max(0, len(self._lines()) - max(1, height))

    def focus_gained(self) -> None:
        self.focused = True

    def focus_lost(self) -> None:
        self.focused = False

    def _lines(self) -> list[Text]:
        content = self._content
        if content is None:
            return []
        lines: list[Text] = []
        if content.description:
            lines.append(Text(content.description, style=palette.NOTE_STYLE))
            lines.append(Text(""))
        if content.readme is None:
            lines.append(Text("No README found", style=palette.NOTE_STYLE))
        else:
            lines.extend(Text(line, style=palette.NORMAL_STYLE) for line in content.readme.splitlines())
        if content.commits:
            lines.append(Text(""))
            lines.append(Text("Recent commits", style=palette.SECTION_STYLE))
            for commit in content.commits:
                row = Text()
                row.append(commit.short_hash, style=palette.COMMIT_HASH_STYLE)
                row.append(f" {_format_timestamp(commit.timestamp)} ", style=palette.FOOTER_STYLE)
                row.append(commit.author, style=palette.COMMIT_AUTHOR_STYLE)
                row.append(f"  {commit.subject}", style=palette.NORMAL_STYLE)
                lines.append(row)
        return lines

    def set_viewport(self, height: int) -> None:
        """Record how many content rows fit below the title line."""
        self._viewport_height = max(1, height - 1)
        self._scroll = min(self._scroll, self._max_scroll(self._viewport_height))

    def render(self, width: int, height: int) -> Text:
        text = Text(no_wrap=True, overflow="ellipsis")
        title = self._repo or "Nothing selected"
        text.append(title, style=palette.HEADER_STYLE)
        if self._loading:
            text.append("  loading…", style=palette.NOTE_STYLE)

        if self._error is not None:
            text.append("\n")
            text.append(self._error, style=palette.ERROR_STYLE)
            return text

        body_rows = max(1, height - 1)
        start = min(self._scroll, self._max_scroll(body_rows))
        for line in self._lines()[start:start + body_rows]:
            text.append("\n")
            text.append_text(line)
        return text
