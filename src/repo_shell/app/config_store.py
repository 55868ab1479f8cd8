"""Configuration snapshot: parsing, first-run bootstrap, and publication.

The configuration document is `config.json` at the latest commit of the
`config` repository in the data source.

// [LAW:one-source-of-truth] ConfigStore._snapshot is the only live configuration.
// [LAW:single-enforcer] publish() is the sole writer; it replaces the reference,
//   never fields of the published value.

Sessions read current() once when they are created and keep that reference.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field

from repo_shell.errors import ConfigLoadError, DataLoadError

logger = logging.getLogger(__name__)

CONFIG_REPO = "config"
CONFIG_FILE = "config.json"

DEFAULT_CONFIG: dict[str, object] = {
    "name": "Repo Shell",
    "host": "localhost",
    "port": 23231,
    "show_all": True,
    "menu": [
        {"name": "Home", "note": "", "repo": CONFIG_REPO},
    ],
}

DEFAULT_README = """\
# Repo Shell

This is the `config` repository. Edit `config.json` and commit to change what
every new session sees. Existing sessions keep the configuration they started
with.

    {
      "name": "Repo Shell",
      "host": "localhost",
      "port": 23231,
      "show_all": true,
      "menu": [{"name": "Home", "note": "", "repo": "config"}]
    }
"""


@dataclass(frozen=True)
class MenuEntry:
    """One selector row: label, annotation, and the repository it points at."""

    name: str
    repo: str
    note: str = ""


@dataclass(frozen=True)
class Configuration:
    """Immutable configuration snapshot."""

    name: str
    host: str = ""
    port: int = 0
    show_all: bool = False
    menu: tuple[MenuEntry, ...] = field(default_factory=tuple)


# ─── Parsing ─────────────────────────────────────────────────────────────────


def _require(doc: dict, key: str, kind: type, *, default=None, required: bool = True):
    """Fetch doc[key] checking its type. bool never satisfies int."""
    if key not in doc:
        if required:
            raise ConfigLoadError(f"bad structure in {CONFIG_FILE}: missing {key!r}")
        return default
    value = doc[key]
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise ConfigLoadError(
            f"bad structure in {CONFIG_FILE}: {key!r} must be {kind.__name__}"
        )
    return value


def _parse_menu_entry(raw: object, position: int) -> MenuEntry:
    if not isinstance(raw, dict):
        raise ConfigLoadError(
            f"bad structure in {CONFIG_FILE}: menu[{position}] must be an object"
        )
    try:
        return MenuEntry(
            name=_require(raw, "name", str),
            repo=_require(raw, "repo", str),
            note=_require(raw, "note", str, default="", required=False),
        )
    except ConfigLoadError as e:
        raise ConfigLoadError(f"{e} (menu[{position}])") from e


def parse_configuration(text: str) -> Configuration:
    """Parse a configuration document. Unknown fields are ignored.

    Raises:
        ConfigLoadError: invalid JSON or missing/mistyped required structure.
    """
    try:
        doc = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigLoadError(f"bad json in {CONFIG_FILE}: {e}") from e
    if not isinstance(doc, dict):
        raise ConfigLoadError(f"bad structure in {CONFIG_FILE}: top level must be an object")

    # "show_all_repos" is the older spelling of "show_all".
    show_all_key = "show_all" if "show_all" in doc or "show_all_repos" not in doc else "show_all_repos"
    menu_raw = _require(doc, "menu", list)
    return Configuration(
        name=_require(doc, "name", str),
        host=_require(doc, "host", str, default="", required=False),
        port=_require(doc, "port", int, default=0, required=False),
        show_all=_require(doc, show_all_key, bool, default=False, required=False),
        menu=tuple(_parse_menu_entry(raw, i) for i, raw in enumerate(menu_raw)),
    )


def load_configuration(source) -> Configuration:
    """Read and parse the latest committed configuration from the data source."""
    try:
        repo = source.get(CONFIG_REPO)
    except DataLoadError as e:
        raise ConfigLoadError(f"cannot load config repo: {e}") from e
    try:
        text = source.latest_file(repo, CONFIG_FILE)
    except DataLoadError as e:
        raise ConfigLoadError(f"cannot load {CONFIG_FILE}: {e}") from e
    return parse_configuration(text)


def ensure_default_config(source) -> bool:
    """Create the config repository with default content if it does not exist.

    Returns True when a default configuration was written.
    """
    if CONFIG_REPO in source.list():
        return False
    logger.info("No %s repository found, creating default configuration", CONFIG_REPO)
    try:
        repo = source.create_repo(CONFIG_REPO)
        source.commit_files(
            repo,
            {
                CONFIG_FILE: json.dumps(DEFAULT_CONFIG, indent=2) + "\n",
                "README.md": DEFAULT_README,
            },
            "Default configuration",
        )
    except DataLoadError as e:
        raise ConfigLoadError(f"cannot create config repo: {e}") from e
    return True


# ─── Snapshot holder ─────────────────────────────────────────────────────────


class ConfigStore:
    """Holds the latest published Configuration for the whole process."""

    def __init__(self, source, initial: Configuration | None = None):
        self._source = source
        self._snapshot: Configuration | None = initial

    @property
    def source(self):
        return self._source

    def current(self) -> Configuration:
        """Return the published snapshot. Raises ConfigLoadError before the first publish."""
        snapshot = self._snapshot
        if snapshot is None:
            raise ConfigLoadError("no configuration has been loaded")
        return snapshot

    def publish(self, config: Configuration) -> None:
        # Single reference assignment; readers see the old or the new value.
        self._snapshot = config

    def load(self) -> Configuration:
        """Load a fresh configuration without publishing it."""
        return load_configuration(self._source)

    def bootstrap(self) -> Configuration:
        """First load at process start: synthesize defaults if absent, then publish.

        Raises:
            ConfigLoadError: the process cannot start without a configuration.
        """
        try:
            self._source.reload()
        except DataLoadError as e:
            raise ConfigLoadError(f"cannot read data source: {e}") from e
        ensure_default_config(self._source)
        config = self.load()
        self.publish(config)
        logger.info("Loaded configuration %r with %d menu entries", config.name, len(config.menu))
        return config
