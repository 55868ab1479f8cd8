"""Pytest configuration and shared fixtures for repo-shell tests."""

import shutil

import pytest

from repo_shell.io.store import SqliteStore

from tests.harness import make_config, make_source

HAS_GIT = shutil.which("git") is not None


def pytest_collection_modifyitems(config, items):
    if HAS_GIT:
        return
    skip_git = pytest.mark.skip(reason="git executable not available")
    for item in items:
        if "git" in item.keywords:
            item.add_marker(skip_git)


@pytest.fixture
def demo_config():
    """The two-repository configuration used across controller tests."""
    return make_config()


@pytest.fixture
def demo_source():
    return make_source()


@pytest.fixture
def store():
    db = SqliteStore()
    db.create_db()
    yield db
    db.close()


@pytest.fixture
def repos_root(tmp_path):
    root = tmp_path / "repos"
    root.mkdir()
    return root
