"""
Tests for watch mode triggering.
"""

import asyncio

import pytest

from mathbuild.watcher import SourceWatcher


class CountingRebuild:
    def __init__(self, hold=None):
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self.hold = hold

    async def __call__(self):
        self.calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.hold is not None:
                await self.hold.wait()
            return []
        finally:
            self.active -= 1


class TestRebuildFilter:
    @pytest.fixture(autouse=True)
    def setup(self, config):
        self.config = config
        self.watcher = SourceWatcher(config, CountingRebuild(), delay=0.01)

    def test_version_fragment_is_ignored(self):
        assert not self.watcher.should_rebuild(self.config.version_file)

    def test_source_files_trigger(self):
        assert self.watcher.should_rebuild(self.config.src_dir / "add.js")
        assert self.watcher.should_rebuild(self.config.src_dir / "function" / "arithmetic" / "add.js")

    def test_package_json_triggers(self):
        assert self.watcher.should_rebuild(self.config.package_json)

    def test_other_files_are_ignored(self):
        assert not self.watcher.should_rebuild(self.config.src_dir / "notes.md")
        assert not self.watcher.should_rebuild(self.config.lib_dir / "cjs" / "add.js")
        assert not self.watcher.should_rebuild(self.config.root / "gulpfile.js")


class TestWatchScheduling:
    def test_initial_build_and_ignored_event(self, config):
        """A change to version.js during watch mode triggers nothing."""
        rebuild = CountingRebuild()
        watcher = SourceWatcher(config, rebuild, delay=0.01)

        async def scenario():
            watcher.start()
            await watcher.idle()
            watcher.notify(config.version_file)
            await asyncio.sleep(0.05)
            await watcher.idle()
            await watcher.stop()

        asyncio.run(scenario())
        assert rebuild.calls == 1

    def test_events_are_debounced(self, config):
        rebuild = CountingRebuild()
        watcher = SourceWatcher(config, rebuild, delay=0.05)

        async def scenario():
            watcher.start()
            await watcher.idle()
            for _ in range(5):
                watcher.notify(config.src_dir / "add.js")
            await asyncio.sleep(0.01)
            await watcher.idle()
            await watcher.stop()

        asyncio.run(scenario())
        assert rebuild.calls == 2

    def test_rebuilds_never_overlap(self, config):
        async def scenario():
            hold = asyncio.Event()
            rebuild = CountingRebuild(hold)
            watcher = SourceWatcher(config, rebuild, delay=0.01)

            watcher.trigger()
            await asyncio.sleep(0.03)
            assert rebuild.calls == 1

            # two more triggers while the first rebuild is in flight
            watcher.trigger()
            await asyncio.sleep(0.03)
            watcher.trigger()
            await asyncio.sleep(0.03)
            assert rebuild.calls == 1

            hold.set()
            await watcher.idle()
            return rebuild

        rebuild = asyncio.run(scenario())
        assert rebuild.calls == 2
        assert rebuild.max_active == 1

    def test_failed_rebuild_keeps_watching(self, config):
        calls = []

        async def failing():
            calls.append(1)
            raise RuntimeError("boom")

        async def scenario():
            watcher = SourceWatcher(config, failing, delay=0.01)
            watcher.trigger()
            await asyncio.sleep(0.03)
            await watcher.idle()
            watcher.trigger()
            await asyncio.sleep(0.03)
            await watcher.idle()

        asyncio.run(scenario())
        assert len(calls) == 2
