"""Polling driver that keeps a process refreshed while it runs.

Runs ``RefreshEngine.refresh()`` on an interval and hands every report that
touched something to a callback. The configuration file is watched too, so
scope changes apply without restarting the loop.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from pathlib import Path

from classrefresh.config import RefreshConfig, load_config
from classrefresh.engine import RefreshEngine, RefreshReport
from classrefresh.errors import ConfigError
from classrefresh.fingerprint import UNSEEN, Fingerprint

logger = logging.getLogger(__name__)

ReportCallback = Callable[[RefreshReport], Awaitable[None] | None]


class ConfigWatcher:
    """Watches a configuration file for changes.

    Uses modification time to detect changes.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._last_mtime_ns: int = 0

        # Initialize state if file exists
        if self.path.exists():
            self._last_mtime_ns = self.path.stat().st_mtime_ns

    def check_changed(self) -> bool:
        """Check if the config file has changed.

        Returns:
            True if file has been modified since last check.
        """
        if not self.path.exists():
            return False

        mtime_ns = self.path.stat().st_mtime_ns
        if mtime_ns != self._last_mtime_ns:
            self._last_mtime_ns = mtime_ns
            return True

        return False

    def reload(self, current: RefreshConfig) -> RefreshConfig:
        """Re-read the file, keeping ``current`` if it no longer parses."""
        try:
            return load_config(self.path)
        except ConfigError as e:
            logger.error(f"Keeping previous configuration: {e}")
            return current


def apply_config(engine: RefreshEngine, config: RefreshConfig) -> None:
    """Push a new configuration into an engine and its runtime bindings."""
    engine.resolver.max_depth = config.max_depth
    for component in (engine.files, engine.registry):
        if hasattr(component, "config"):
            component.config = config


async def watch_loop(
    engine: RefreshEngine,
    callback: ReportCallback | None = None,
    poll_interval: float = 1.0,
    debounce_seconds: float = 0.0,
    config_watcher: ConfigWatcher | None = None,
    config: RefreshConfig | None = None,
    max_iterations: int | None = None,
) -> None:
    """Run a continuous refresh loop.

    Args:
        engine: Engine whose tracker has already seen the baseline.
        callback: Sync or async function called with each non-empty report.
        poll_interval: Seconds between refresh passes.
        debounce_seconds: How long pending edits must stay unchanged before
            they are refreshed.
        config_watcher: Optional watcher for the configuration file.
        config: Configuration currently applied to ``engine``.
        max_iterations: Stop after this many polls; runs forever when None.
    """
    current = config or RefreshConfig()
    last_pending: frozenset[tuple[str, Fingerprint]] = frozenset()
    last_change = datetime.now(UTC)
    iterations = 0

    while max_iterations is None or iterations < max_iterations:
        iterations += 1

        if config_watcher is not None and config_watcher.check_changed():
            current = config_watcher.reload(current)
            apply_config(engine, current)
            poll_interval = current.poll_interval
            debounce_seconds = current.debounce_seconds
            logger.info(f"Configuration reloaded from {config_watcher.path}")

        settled = True
        if debounce_seconds > 0:
            pending = pending_changes(engine)
            if pending != last_pending:
                last_pending = pending
                last_change = datetime.now(UTC)
            quiet = (datetime.now(UTC) - last_change).total_seconds()
            settled = not pending or quiet >= debounce_seconds

        if settled:
            report = engine.refresh()
            last_pending = frozenset()
            if report.changed and callback is not None:
                result = callback(report)
                if inspect.isawaitable(result):
                    await result

        await asyncio.sleep(poll_interval)


def pending_changes(engine: RefreshEngine) -> frozenset[tuple[str, Fingerprint]]:
    """Fingerprints of edits the next refresh would pick up.

    Read-only: the engine's fingerprint cache is left untouched.
    """
    loaded = engine.files.snapshot()
    pending = set()
    for key, fingerprint in engine.tracker.tracked().items():
        if key not in loaded:
            pending.add((key, UNSEEN))
            continue
        current = Fingerprint.of(loaded[key])
        if current != fingerprint:
            pending.add((key, current))
    return frozenset(pending)
