"""Git-backed repository source.

Repositories are the immediate subdirectories of one root directory. All reads
go through the `git` CLI so the source works against both bare and non-bare
repositories without extra dependencies.

// [LAW:single-enforcer] reload() is the only writer of the repository index.
// [LAW:no-shared-mutable-globals] The index is replaced wholesale, never mutated
//   in place, so concurrent readers always see a complete index.

This module is a STABLE BOUNDARY. Import as: import repo_shell.io.repo_source
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from repo_shell.errors import DataLoadError, ItemNotFoundError

logger = logging.getLogger(__name__)

_GIT_TIMEOUT_S = 15.0
_FIELD_SEP = "\x1f"
# Commits made by the server itself (default config bootstrap).
_COMMITTER = ("repo-shell", "repo-shell@localhost")


@dataclass(frozen=True)
class GitRepo:
    """Handle to one repository in the source."""

    name: str
    path: Path


@dataclass(frozen=True)
class CommitInfo:
    """One entry of a repository's history."""

    hash: str
    author: str
    timestamp: int
    subject: str

    @property
    def short_hash(self) -> str:
        return self.hash[:7]


class RepoSource(Protocol):
    """Versioned data source consumed by sessions and the refresher."""

    def list(self) -> list[str]:
        """Repository names in display order."""
        ...

    def get(self, name: str) -> GitRepo:
        """Return the named repository or raise ItemNotFoundError."""
        ...

    def latest_file(self, repo: GitRepo, path: str) -> str:
        """Content of path at the latest commit, or raise ItemNotFoundError."""
        ...

    def commits(self, repo: GitRepo, limit: int = 10) -> tuple[CommitInfo, ...]:
        """Most recent commits, newest first."""
        ...

    def reload(self) -> None:
        """Rescan the root directory. Raises DataLoadError on access failure."""
        ...


def _run_git(args: list[str], cwd: Path | None = None) -> subprocess.CompletedProcess:
    """Run git and return the completed process. Raises DataLoadError if git cannot run."""
    cmd = ["git", *args]
    try:
        return subprocess.run(
            cmd,
            cwd=str(cwd) if cwd is not None else None,
            capture_output=True,
            text=True,
            # Repository content is not guaranteed to be UTF-8.
            encoding="utf-8",
            errors="replace",
            timeout=_GIT_TIMEOUT_S,
            check=False,
        )
    except FileNotFoundError as e:
        raise DataLoadError("git executable not found") from e
    except (OSError, subprocess.TimeoutExpired) as e:
        raise DataLoadError(f"git {args[0]} failed: {e}") from e


def _is_repository(path: Path) -> bool:
    # Non-bare: has a .git entry. Bare: HEAD plus objects/ at the top level.
    if (path / ".git").exists():
        return True
    return (path / "HEAD").is_file() and (path / "objects").is_dir()


def _parse_log(output: str) -> tuple[CommitInfo, ...]:
    commits: list[CommitInfo] = []
    for line in output.splitlines():
        parts = line.split(_FIELD_SEP)
        if len(parts) != 4:
            continue
        commit_hash, author, ts, subject = parts
        try:
            timestamp = int(ts)
        except ValueError:
            timestamp = 0
        commits.append(CommitInfo(commit_hash, author, timestamp, subject))
    return tuple(commits)


class GitRepoSource:
    """RepoSource over a directory of git repositories."""

    def __init__(self, root: str | os.PathLike):
        self._root = Path(root)
        self._repos: dict[str, GitRepo] = {}

    @property
    def root(self) -> Path:
        return self._root

    def reload(self) -> None:
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            children = sorted(p for p in self._root.iterdir() if p.is_dir())
        except OSError as e:
            raise DataLoadError(f"cannot read repositories at {self._root}: {e}") from e

        index = {
            child.name: GitRepo(name=child.name, path=child)
            for child in children
            if _is_repository(child)
        }
        # Swap the reference only once the new index is complete.
        self._repos = index
        logger.debug("Loaded %d repositories from %s", len(index), self._root)

    def list(self) -> list[str]:
        return list(self._repos)

    def get(self, name: str) -> GitRepo:
        repo = self._repos.get(name)
        if repo is None:
            raise ItemNotFoundError(f"repository {name!r} not found")
        return repo

    def latest_file(self, repo: GitRepo, path: str) -> str:
        result = _run_git(["show", f"HEAD:{path}"], cwd=repo.path)
        if result.returncode != 0:
            raise ItemNotFoundError(f"{path} not found in {repo.name}")
        return result.stdout

    def commits(self, repo: GitRepo, limit: int = 10) -> tuple[CommitInfo, ...]:
        fmt = _FIELD_SEP.join(["%H", "%an", "%at", "%s"])
        result = _run_git(["log", f"-n{max(0, limit)}", f"--format={fmt}"], cwd=repo.path)
        if result.returncode != 0:
            # Empty repository: no HEAD yet.
            return ()
        return _parse_log(result.stdout)

    # ── Write side (bootstrap only) ───────────────────────────────────────

    def create_repo(self, name: str) -> GitRepo:
        """Initialize a new non-bare repository under the root and reindex."""
        path = self._root / name
        if path.exists() and _is_repository(path):
            raise DataLoadError(f"repository {name!r} already exists")
        path.mkdir(parents=True, exist_ok=True)
        result = _run_git(["init", "--quiet", str(path)])
        if result.returncode != 0:
            raise DataLoadError(f"git init {name} failed: {result.stderr.strip()}")
        self.reload()
        return self.get(name)

    def commit_files(self, repo: GitRepo, files: dict[str, str], message: str) -> None:
        """Write files into the repository worktree and commit them."""
        try:
            for rel_path, content in files.items():
                target = repo.path / rel_path
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(content, encoding="utf-8")
        except OSError as e:
            raise DataLoadError(f"cannot write files into {repo.name}: {e}") from e

        name, email = _COMMITTER
        steps = (
            ("add", ["add", "--", *files]),
            ("commit", ["-c", f"user.name={name}", "-c", f"user.email={email}",
                        "commit", "--quiet", "-m", message]),
        )
        for label, args in steps:
            result = _run_git(args, cwd=repo.path)
            if result.returncode != 0:
                raise DataLoadError(
                    f"git {label} in {repo.name} failed: {result.stderr.strip()}"
                )
