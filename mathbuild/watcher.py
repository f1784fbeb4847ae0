"""
Watch mode: rebuild the bundle and the commonjs tree when package.json or a
source file changes.

File system events arrive on the watchdog observer thread and are handed to
the event loop. Events within the debounce window coalesce into one rebuild,
and rebuilds never overlap: a trigger arriving while one is in flight
schedules exactly one follow-up rebuild.
"""

import re
import asyncio
import logging
from pathlib import Path
from typing import Optional, Callable, Awaitable, Any, List

from watchdog.events import FileSystemEventHandler, FileSystemEvent
from watchdog.observers import Observer

from .config import BuildConfig

logger = logging.getLogger(__name__)

# version.js is rewritten during the build, watching it would loop forever
IGNORED = re.compile(r"version\.js")

# opened/closed events fire whenever babel or webpack read a source
CHANGE_EVENTS = {"created", "modified", "deleted", "moved"}


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, watcher: "SourceWatcher"):
        self.watcher = watcher

    def on_any_event(self, event: FileSystemEvent):
        if event.is_directory or event.event_type not in CHANGE_EVENTS:
            return
        for path in (event.src_path, getattr(event, "dest_path", "")):
            if path:
                self.watcher.notify(Path(path))


class SourceWatcher:
    """Debounced, single-flight rebuild trigger"""

    def __init__(
        self,
        config: BuildConfig,
        rebuild: Callable[[], Awaitable[List[Any]]],
        delay: Optional[float] = None,
    ):
        self.config = config
        self.rebuild = rebuild
        self.delay = config.watch_delay_ms / 1000 if delay is None else delay

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None
        self._pending = False
        self._observer = None
        self._stopped = None

    def should_rebuild(self, path: Path) -> bool:
        """True for package.json and source files, except the version fragment."""
        path = Path(path)
        if IGNORED.search(path.as_posix()):
            return False
        path = path.resolve()
        if path == self.config.package_json:
            return True
        return path.suffix == ".js" and self.config.src_dir in path.parents

    def notify(self, path: Path):
        """Report a changed path. Safe to call from any thread."""
        if not self.should_rebuild(path):
            logger.debug(f"[Watcher] Ignoring {path}")
            return
        logger.debug(f"[Watcher] Changed: {path}")
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self.trigger)

    def trigger(self):
        """Schedule a rebuild after the debounce delay. Loop thread only."""
        if self._timer is not None:
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().call_later(self.delay, self._fire)

    def _fire(self):
        self._timer = None
        if self._task is not None and not self._task.done():
            self._pending = True
            return
        self._task = asyncio.get_running_loop().create_task(self._run_rebuilds())

    async def _run_rebuilds(self):
        while True:
            self._pending = False
            try:
                results = await self.rebuild()
            except Exception as e:
                results = [e]
            for result in results or []:
                if isinstance(result, Exception):
                    logger.error(f"[Watcher] Rebuild failed: {result}")
            if not self._pending:
                break

    async def idle(self):
        """Wait until no rebuild is scheduled or running."""
        while self._timer is not None or (self._task is not None and not self._task.done()):
            if self._task is not None and not self._task.done():
                await self._task
            else:
                await asyncio.sleep(self.delay)

    def start(self):
        """Start observing and schedule the initial build."""
        self._loop = asyncio.get_running_loop()
        self._stopped = asyncio.Event()

        handler = _ChangeHandler(self)
        self._observer = Observer()
        self._observer.schedule(handler, str(self.config.root), recursive=False)
        if self.config.src_dir.is_dir():
            self._observer.schedule(handler, str(self.config.src_dir), recursive=True)
        self._observer.start()
        logger.info(f"[Watcher] Watching {self.config.package_json.name} and {self.config.src_dir}")

        self.trigger()

    async def stop(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._observer is not None:
            self._observer.stop()
            await asyncio.to_thread(self._observer.join)
            self._observer = None
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)
        if self._stopped is not None:
            self._stopped.set()

    async def run_forever(self):
        """Watch until cancelled."""
        self.start()
        try:
            await self._stopped.wait()
        finally:
            await self.stop()
