"""Background refresh of the data source index and configuration snapshot.

One refresher task runs for the lifetime of the process. Each tick reloads
the repository index, then the configuration, and publishes the result only
if both steps succeeded.

// [LAW:single-enforcer] The refresher is the only caller of ConfigStore.publish
//   after startup.

Failures never reach sessions: they are logged, recorded as last_error, and
the previous snapshot stays published.
"""

from __future__ import annotations

import asyncio
import logging

from repo_shell.app.config_store import ConfigStore
from repo_shell.errors import ConfigLoadError, DataLoadError, RefreshError

logger = logging.getLogger(__name__)


class DataSourceRefresher:
    """Periodically reload the data source and republish configuration."""

    def __init__(self, store: ConfigStore, interval: float):
        if interval <= 0:
            raise ValueError("refresh interval must be positive")
        self._store = store
        self._interval = interval
        self._task: asyncio.Task | None = None
        self.last_error: RefreshError | None = None
        self.tick_count = 0

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick(self) -> bool:
        """Run one refresh. Returns True if a new snapshot was published."""
        self.tick_count += 1
        source = self._store.source
        try:
            # Blocking git I/O stays off the event loop.
            await asyncio.to_thread(source.reload)
        except DataLoadError as e:
            return self._fail(RefreshError(f"cannot load repos: {e}"))

        try:
            config = await asyncio.to_thread(self._store.load)
        except ConfigLoadError as e:
            return self._fail(RefreshError(f"cannot load config: {e}"))

        self._store.publish(config)
        self.last_error = None
        logger.debug("Published configuration %r (tick %d)", config.name, self.tick_count)
        return True

    def _fail(self, error: RefreshError) -> bool:
        self.last_error = error
        logger.warning("Refresh failed, keeping previous configuration: %s", error)
        return False

    async def run(self) -> None:
        """Refresh forever on a fixed interval."""
        logger.info("Refresher started (every %.1fs)", self._interval)
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                # Unexpected failure in one tick must not end the loop.
                self.last_error = RefreshError("unexpected refresh failure")
                logger.exception("Unexpected error during refresh tick")

    def start(self) -> asyncio.Task:
        if self.running:
            raise RuntimeError("refresher already running")
        self._task = asyncio.create_task(self.run(), name="repo-shell-refresher")
        return self._task

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
