"""CLI entry point for repo-shell."""

import argparse
import asyncio
import logging
import signal
import sys

from repo_shell.app.config_store import ConfigStore
from repo_shell.app.refresher import DataSourceRefresher
from repo_shell.errors import ConfigLoadError, StoreError
from repo_shell.io.repo_source import GitRepoSource
from repo_shell.io.store import SqliteStore
from repo_shell.server.session_factory import SessionFactory, SessionOptions
from repo_shell.server.ssh import start_server
from repo_shell.settings import ServerSettings
import repo_shell.io.logging_setup

logger = logging.getLogger(__name__)


def build_parser(defaults: ServerSettings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Browse git repositories over SSH")
    parser.add_argument(
        "--host",
        type=str,
        default=defaults.host,
        help=f"Bind address (default: {defaults.host})",
    )
    parser.add_argument("--port", type=int, default=defaults.port, help=f"Bind port (default: {defaults.port})")
    parser.add_argument(
        "--repos",
        dest="repos_path",
        type=str,
        default=defaults.repos_path,
        help="Directory holding the git repositories",
    )
    parser.add_argument(
        "--host-key",
        dest="host_key_path",
        type=str,
        default=defaults.host_key_path,
        help="SSH host key path (generated on first run)",
    )
    parser.add_argument("--db", dest="db_path", type=str, default=defaults.db_path, help="SQLite store path")
    parser.add_argument(
        "--poll",
        dest="poll_interval",
        type=float,
        default=defaults.poll_interval,
        help=f"Seconds between repository/config refreshes (default: {defaults.poll_interval:g})",
    )
    parser.add_argument(
        "--wrap",
        action="store_true",
        help="Wrap the repository cursor at the ends of the list instead of stopping",
    )
    parser.add_argument(
        "--no-live-preview",
        dest="live_preview",
        action="store_false",
        help="Only load repository details on enter, not on cursor movement",
    )
    parser.add_argument("--log-level", type=str, default=None, help="Log level (default: $REPO_SHELL_LOG_LEVEL or INFO)")
    return parser


def settings_from_args(args: argparse.Namespace) -> ServerSettings:
    if args.poll_interval <= 0:
        raise ValueError("--poll must be positive")
    return ServerSettings(
        host=args.host,
        port=args.port,
        repos_path=args.repos_path,
        host_key_path=args.host_key_path,
        db_path=args.db_path,
        poll_interval=args.poll_interval,
    )


async def serve(settings: ServerSettings, factory: SessionFactory, refresher: DataSourceRefresher) -> None:
    """Run the SSH server and the refresher until SIGINT/SIGTERM."""
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform; KeyboardInterrupt still stops asyncio.run.
            pass

    refresher.start()
    acceptor = await start_server(settings, factory)
    try:
        await stop.wait()
        logger.info("Shutting down (%d live sessions)", factory.live_sessions)
    finally:
        acceptor.close()
        await acceptor.wait_closed()
        await refresher.stop()


def main(argv: list[str] | None = None) -> int:
    try:
        defaults = ServerSettings.from_env()
    except ValueError as e:
        print(f"repo-shell: {e}", file=sys.stderr)
        return 2
    parser = build_parser(defaults)
    args = parser.parse_args(argv)
    try:
        settings = settings_from_args(args)
    except ValueError as e:
        parser.error(str(e))

    log_target = repo_shell.io.logging_setup.configure(args.log_level)
    logger.info("Logging to %s at %s", log_target.file_path, log_target.level_name)

    source = GitRepoSource(settings.repos_path)
    config_store = ConfigStore(source)
    try:
        config_store.bootstrap()
    except ConfigLoadError as e:
        # No session can run without an initial configuration.
        logger.error("Cannot start: %s", e)
        return 1

    try:
        store = SqliteStore(settings.db_path)
        store.create_db()
    except StoreError as e:
        logger.error("Cannot open store: %s", e)
        return 1

    factory = SessionFactory(
        config_store,
        store,
        SessionOptions(selector_wrap=args.wrap, live_preview=args.live_preview),
    )
    refresher = DataSourceRefresher(config_store, settings.poll_interval)
    try:
        asyncio.run(serve(settings, factory, refresher))
    except KeyboardInterrupt:
        pass
    except OSError as e:
        logger.error("Server failed: %s", e)
        return 1
    finally:
        store.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
