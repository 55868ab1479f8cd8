"""Exception hierarchy for repo-shell.

// [LAW:one-source-of-truth] Every error kind the server distinguishes lives here.

Propagation:
- ConfigLoadError: retried on the next refresh tick; fatal only at process start.
- DataLoadError: local to one panel or one session, never process-fatal.
- TransportError: ends the session it belongs to.
- RefreshError: logged by the refresher; the previous snapshot is kept.
- StoreError: raised by Store implementations.

This module is STABLE. Safe for `from` imports everywhere.
"""


class RepoShellError(Exception):
    """Base class for all repo-shell errors."""


class ConfigLoadError(RepoShellError):
    """The configuration document is missing or malformed."""


class DataLoadError(RepoShellError):
    """A repository or file could not be read from the data source."""


class ItemNotFoundError(DataLoadError):
    """The requested repository or file does not exist."""


class TransportError(RepoShellError):
    """The session connection failed or was closed by the peer."""


class RefreshError(RepoShellError):
    """One background refresh tick failed."""


class StoreError(RepoShellError):
    """Base class for persistent store failures."""


class StoreNotFoundError(StoreError):
    """The requested record does not exist."""


class AlreadyExistsError(StoreError):
    """A record with the same unique key already exists."""


class StorageIOError(StoreError):
    """The backing storage could not be read or written."""
