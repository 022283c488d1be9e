"""Filesystem watching with a per-path quiet window.

watchdog delivers raw events on its observer thread. They are handed to the
asyncio loop, merged per path, and emitted once the path has been quiet for
``delay`` seconds.
"""

import asyncio
import enum
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from liveserver.config import DEBOUNCE_DELAY

logger = logging.getLogger(__name__)


class ChangeKind(enum.Enum):
    CREATED = "CREATE"
    MODIFIED = "UPDATE"
    REMOVED = "REMOVE"
    RENAMED = "RENAME"


_KINDS = {
    EVENT_TYPE_CREATED: ChangeKind.CREATED,
    EVENT_TYPE_MODIFIED: ChangeKind.MODIFIED,
    EVENT_TYPE_DELETED: ChangeKind.REMOVED,
    EVENT_TYPE_MOVED: ChangeKind.RENAMED,
}


@dataclass(frozen=True)
class ChangeEvent:
    kind: ChangeKind
    path: str
    dest_path: Optional[str] = None

    def __str__(self):
        if self.kind is ChangeKind.RENAMED:
            return f"[{self.kind.value}] {self.path} -> {self.dest_path}"
        return f"[{self.kind.value}] {self.path}"


def _merge(pending, kind):
    """Combine a pending kind with a newer one; None means nothing to emit."""
    if pending is ChangeKind.CREATED and kind is ChangeKind.MODIFIED:
        return ChangeKind.CREATED
    if pending is ChangeKind.CREATED and kind is ChangeKind.REMOVED:
        return None
    if pending is ChangeKind.REMOVED and kind is ChangeKind.CREATED:
        return ChangeKind.MODIFIED
    return kind


class _Relay(FileSystemEventHandler):
    def __init__(self, loop, callback):
        super().__init__()
        self._loop = loop
        self._callback = callback

    def on_any_event(self, event):
        self._loop.call_soon_threadsafe(self._callback, event)


class DebouncedWatcher:
    def __init__(self, root: Path, delay: float = DEBOUNCE_DELAY, observer_factory=Observer):
        self.root = Path(root)
        self.delay = delay
        self._observer_factory = observer_factory
        self._observer = None
        self._queue = asyncio.Queue()
        # relative source path -> (ChangeEvent, TimerHandle)
        self._pending = {}

    def start(self):
        loop = asyncio.get_running_loop()
        self._observer = self._observer_factory()
        try:
            self._observer.schedule(_Relay(loop, self.feed), str(self.root), recursive=True)
        except OSError as err:
            logger.warning("Watcher: %s", err)
        self._observer.start()
        logger.info("Watching %s", self.root)

    def stop(self):
        for _, timer in self._pending.values():
            timer.cancel()
        self._pending.clear()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None

    def _relative(self, path):
        return str(Path(os.fsdecode(path)).relative_to(self.root))

    def feed(self, raw_event):
        """Classify one raw watchdog event and (re)arm its quiet window."""
        try:
            self._feed(raw_event)
        except Exception:
            logger.exception("Skipping filesystem notification %r", raw_event)

    def _feed(self, raw_event):
        kind = _KINDS.get(raw_event.event_type)
        if kind is None:
            return
        # watchdog adds one synthetic move per child when a directory moves
        if getattr(raw_event, "is_synthetic", False):
            return
        if raw_event.is_directory and kind is ChangeKind.MODIFIED:
            return

        path = self._relative(raw_event.src_path)
        dest_path = None
        if kind is ChangeKind.RENAMED:
            dest_path = self._relative(raw_event.dest_path)

        previous = self._pending.pop(path, None)
        if previous is not None:
            event, timer = previous
            timer.cancel()
            if kind is not ChangeKind.RENAMED:
                kind = _merge(event.kind, kind)
                if kind is None:
                    logger.debug("Dropping %s, created and removed within window", path)
                    return

        event = ChangeEvent(kind, path, dest_path)
        loop = asyncio.get_running_loop()
        timer = loop.call_later(self.delay, self._settle, path)
        self._pending[path] = (event, timer)

    def _settle(self, path):
        event, _ = self._pending.pop(path)
        self._queue.put_nowait(event)

    async def events(self):
        while True:
            yield await self._queue.get()
