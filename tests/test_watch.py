"""Tests for the polling watch driver."""

import os
from pathlib import Path

import pytest

from classrefresh.config import RefreshConfig
from classrefresh.watch import ConfigWatcher, apply_config, pending_changes, watch_loop


class TestConfigWatcher:
    """Tests for ConfigWatcher."""

    def test_init_with_missing_file(self, tmp_path: Path):
        """Config watcher handles missing file gracefully."""
        watcher = ConfigWatcher(tmp_path / "classrefresh.toml")

        assert not watcher.check_changed()

    def test_check_changed_detects_modification(self, tmp_path: Path):
        """Config watcher detects file modification once."""
        config_file = tmp_path / "classrefresh.toml"
        config_file.write_text("poll_interval = 1.0\n")
        watcher = ConfigWatcher(config_file)
        assert not watcher.check_changed()

        config_file.write_text("poll_interval = 2.0\n")
        mtime_ns = config_file.stat().st_mtime_ns + 1_000_000_000
        os.utime(config_file, ns=(mtime_ns, mtime_ns))

        assert watcher.check_changed()
        assert not watcher.check_changed()

    def test_reload_keeps_previous_on_error(self, tmp_path: Path):
        """A broken edit to the config file keeps the current settings."""
        config_file = tmp_path / "classrefresh.toml"
        config_file.write_text("poll_interval = [\n")
        current = RefreshConfig(poll_interval=3.0)

        assert ConfigWatcher(config_file).reload(current) is current


class TestApplyConfig:
    """Tests for apply_config."""

    def test_updates_depth_limit(self, world):
        """The resolver's depth limit follows the configuration."""
        engine = world.engine()

        apply_config(engine, RefreshConfig(max_depth=5))

        assert engine.resolver.max_depth == 5


class TestPendingChanges:
    """Tests for pending_changes."""

    def test_reports_without_updating_cache(self, world):
        """Pending edits are visible and the tracker still reports them later."""
        world.add_module("zoo.cat")
        engine = world.engine()
        engine.refresh()
        world.edit("zoo.cat", "# edited\n")

        assert [key for key, _ in pending_changes(engine)] == ["zoo/cat.py"]
        assert engine.tracker.scan() == ["zoo.cat"]


class TestWatchLoop:
    """Tests for watch_loop."""

    @pytest.mark.asyncio
    async def test_reports_changes_to_callback(self, world):
        """Each pass that finds changes is handed to the callback."""
        world.add_module("zoo.cat")
        engine = world.engine()
        engine.refresh()
        world.edit("zoo.cat", "# edited\n")
        reports = []

        await watch_loop(engine, callback=reports.append, poll_interval=0.01, max_iterations=3)

        assert len(reports) == 1
        assert reports[0].reloaded == ["zoo.cat"]

    @pytest.mark.asyncio
    async def test_async_callback(self, world):
        """Async callbacks are awaited."""
        world.add_module("zoo.cat")
        engine = world.engine()
        engine.refresh()
        world.edit("zoo.cat", "# edited\n")
        seen = []

        async def on_report(report):
            seen.extend(report.changed)

        await watch_loop(engine, callback=on_report, poll_interval=0.01, max_iterations=1)

        assert seen == ["zoo.cat"]

    @pytest.mark.asyncio
    async def test_debounce_waits_for_quiet_period(self, world):
        """Edits are not reloaded until they stop changing for the debounce period."""
        world.add_module("zoo.cat")
        engine = world.engine()
        engine.refresh()
        world.edit("zoo.cat", "# edited\n")

        await watch_loop(engine, poll_interval=0.01, debounce_seconds=60, max_iterations=3)

        assert world.calls == []
        assert engine.tracker.scan() == ["zoo.cat"]

    @pytest.mark.asyncio
    async def test_config_file_changes_apply(self, world, tmp_path: Path):
        """Editing the watched config file updates the engine."""
        config_file = tmp_path / "classrefresh.toml"
        config_file.write_text("max_depth = 10\n")
        watcher = ConfigWatcher(config_file)
        engine = world.engine()

        config_file.write_text("max_depth = 4\npoll_interval = 0.01\n")
        mtime_ns = config_file.stat().st_mtime_ns + 1_000_000_000
        os.utime(config_file, ns=(mtime_ns, mtime_ns))

        await watch_loop(engine, poll_interval=0.01, config_watcher=watcher, max_iterations=1)

        assert engine.resolver.max_depth == 4
