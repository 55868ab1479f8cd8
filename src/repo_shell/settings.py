"""Process-level settings for the repo-shell server.

Values come from REPO_SHELL_* environment variables, and cli.py lets flags
override them. The configuration document in the `config` repository is a
separate, refreshable concern (see repo_shell.app.config_store).

This module is a STABLE BOUNDARY. Import as: import repo_shell.settings
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path


def _data_home() -> Path:
    data_home = os.environ.get("XDG_DATA_HOME", os.path.expanduser("~/.local/share"))
    return Path(data_home) / "repo-shell"


@dataclass(frozen=True)
class ServerSettings:
    """Listen address, storage paths, and refresh interval."""

    host: str = "0.0.0.0"
    port: int = 23231
    repos_path: str = ""
    host_key_path: str = ""
    db_path: str = ""
    poll_interval: float = 10.0

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ServerSettings:
        env = os.environ if environ is None else environ
        base = _data_home()
        return cls(
            host=env.get("REPO_SHELL_HOST", cls.host),
            port=_int(env.get("REPO_SHELL_PORT"), cls.port, "REPO_SHELL_PORT"),
            repos_path=env.get("REPO_SHELL_REPOS") or str(base / "repos"),
            host_key_path=env.get("REPO_SHELL_KEY_PATH") or str(base / "ssh_host_ed25519"),
            db_path=env.get("REPO_SHELL_DB") or str(base / "repo-shell.db"),
            poll_interval=_float(env.get("REPO_SHELL_POLL"), cls.poll_interval, "REPO_SHELL_POLL"),
        )


def _int(raw: str | None, default: int, name: str) -> int:
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


def _float(raw: str | None, default: float, name: str) -> float:
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value
