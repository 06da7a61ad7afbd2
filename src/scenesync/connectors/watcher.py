"""Document-change connector — polls the scenes folder for edited files."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from scenesync.connectors.base import PassTrigger, TriggerKind

if TYPE_CHECKING:
    from scenesync.connectors.base import TriggerHandler
    from scenesync.scenes.store import DocumentStore

logger = logging.getLogger(__name__)


class SceneWatcher:
    """Emit DOCUMENT_CHANGED for scene files created or modified since the last scan."""

    def __init__(self, store: DocumentStore, interval: float = 2.0) -> None:
        self.store = store
        self.interval = interval
        self._seen: dict[str, int] = {}  # path → mtime_ns
        self._stop = asyncio.Event()
        self._pending: set[asyncio.Task] = set()

    @property
    def name(self) -> str:
        return "watcher"

    def scan(self) -> list[str]:
        """Paths whose mtime changed since the previous scan."""
        changed: list[str] = []
        current: dict[str, int] = {}
        for document in self.store.iter_documents():
            try:
                mtime = (self.store.root / document.path).stat().st_mtime_ns
            except OSError:
                continue
            current[document.path] = mtime
            if self._seen.get(document.path) != mtime:
                changed.append(document.path)
        self._seen = current
        return changed

    async def start(self, handler: TriggerHandler) -> None:
        self._stop.clear()
        # First scan only records the baseline; existing files are the timer's job.
        self.scan()
        logger.info("Watching %s every %.1fs", self.store.scenes_folder or ".", self.interval)

        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
                break
            except asyncio.TimeoutError:
                pass

            for path in self.scan():
                trigger = PassTrigger(TriggerKind.DOCUMENT_CHANGED, path=path, source=self.name)
                # Each change settles independently; do not block the scan loop.
                task = asyncio.create_task(self._dispatch(handler, trigger))
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)

    async def _dispatch(self, handler: TriggerHandler, trigger: PassTrigger) -> None:
        try:
            await handler(trigger)
        except Exception as e:
            logger.error("Error handling change of %s: %s", trigger.path, e)

    async def stop(self) -> None:
        self._stop.set()
        for task in list(self._pending):
            task.cancel()
