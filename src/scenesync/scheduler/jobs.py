"""Scheduler for periodic reconciliation using pure asyncio.

Jobs:
- Poll: one reconciliation pass every `polling.interval_minutes`
- Initial pass right after start, like a manual check
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from scenesync.connectors.base import PassTrigger, TriggerKind

if TYPE_CHECKING:
    from scenesync.config import SceneSyncConfig
    from scenesync.connectors.base import TriggerHandler

logger = logging.getLogger(__name__)


class Scheduler:
    """Simple asyncio-based timer that feeds TIMER triggers to the engine."""

    def __init__(self, handler: TriggerHandler, config: SceneSyncConfig) -> None:
        self._handler = handler
        self._config = config

    @property
    def interval_seconds(self) -> float:
        return self._config.polling.interval_minutes * 60

    async def start(self, shutdown_event: asyncio.Event) -> None:
        """Run timed passes until shutdown_event is set."""
        logger.info(
            "Scheduler started (poll every %d min, enabled=%s)",
            self._config.polling.interval_minutes,
            self._config.polling.enabled,
        )

        await self._tick()

        while not shutdown_event.is_set():
            try:
                # Re-read each round so a config reload changes the cadence.
                await asyncio.wait_for(shutdown_event.wait(), timeout=self.interval_seconds)
                break  # shutdown requested
            except asyncio.TimeoutError:
                pass  # interval elapsed, run a pass

            await self._tick()

        logger.info("Scheduler stopped.")

    async def _tick(self) -> None:
        try:
            await self._handler(PassTrigger(TriggerKind.TIMER, source="scheduler"))
        except Exception as e:
            logger.error("Scheduled pass failed: %s", e)
