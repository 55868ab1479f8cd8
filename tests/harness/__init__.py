"""In-process test harness for repo-shell sessions.

Re-exports all public API for convenient imports:
    from tests.harness import run_session, FakeTerminal, make_source, ...
"""

from tests.harness.app_runner import run_session, wait_until
from tests.harness.builders import make_commit, make_config, make_config_doc, make_source
from tests.harness.fakes import FakeRepoData, FakeRepoSource, FakeTerminal

__all__ = [
    "run_session",
    "wait_until",
    "make_commit",
    "make_config",
    "make_config_doc",
    "make_source",
    "FakeRepoData",
    "FakeRepoSource",
    "FakeTerminal",
]
