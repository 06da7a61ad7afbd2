"""Daemon process — always-on mode.

Usage: python -m scenesync serve

Manages:
- Scheduler (timed reconciliation passes)
- Scene watcher (document-change triggers)
- PID file (prevent duplicate instances)
- Graceful shutdown (SIGTERM/SIGINT), config reload (SIGHUP)
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
from dataclasses import dataclass
from pathlib import Path

from scenesync.config import SceneSyncConfig, load_config
from scenesync.connectors.base import Connector, Notifier
from scenesync.connectors.cli import ConsoleNotifier
from scenesync.connectors.watcher import SceneWatcher
from scenesync.core import Reconciler
from scenesync.remote.http import MultimuseClient
from scenesync.remote.identity import IdentityCache, IdentityResolver
from scenesync.scenes.poster import MessagePoster
from scenesync.scenes.provision import ScenePlanner
from scenesync.scenes.store import DocumentStore
from scenesync.scenes.tracker_table import TrackerTable
from scenesync.scheduler.jobs import Scheduler

logger = logging.getLogger(__name__)


@dataclass
class Components:
    """Everything wired together for one configuration."""

    config: SceneSyncConfig
    client: MultimuseClient
    cache: IdentityCache
    identity: IdentityResolver
    store: DocumentStore
    notifier: Notifier
    reconciler: Reconciler
    planner: ScenePlanner
    poster: MessagePoster

    async def close(self) -> None:
        await self.client.close()


def build_components(config: SceneSyncConfig, notifier: Notifier | None = None) -> Components:
    notifier = notifier or ConsoleNotifier()
    client = MultimuseClient(config.api.url, config.api.api_key, timeout=config.api.timeout)
    cache = IdentityCache()
    identity = IdentityResolver(client, cache, notifier, legacy_ids=config.api.user_ids)
    identity.update_credential(config.api.api_key)
    store = DocumentStore(config.vault.root, config.vault.scenes_folder)
    table = TrackerTable(store, config.vault.base_path) if config.vault.base_path else None
    return Components(
        config=config,
        client=client,
        cache=cache,
        identity=identity,
        store=store,
        notifier=notifier,
        reconciler=Reconciler(config, client, store, identity, notifier),
        planner=ScenePlanner(client, store, identity, notifier, table=table),
        poster=MessagePoster(client, store, identity, notifier),
    )


class SceneSyncDaemon:
    """Always-on daemon process."""

    def __init__(
        self, config: SceneSyncConfig | None = None, config_path: Path | None = None
    ) -> None:
        self.config_path = config_path
        self.config = config or load_config(config_path)
        self._shutdown_event = asyncio.Event()
        self._components: Components | None = None
        self._connectors: list[Connector] = []
        self._reload_task: asyncio.Task | None = None

    # ── PID file management ──────────────────────────────────

    def _write_pid(self) -> None:
        self.config.pid_file.parent.mkdir(parents=True, exist_ok=True)
        self.config.pid_file.write_text(str(os.getpid()))
        logger.info("PID file written: %s (pid=%d)", self.config.pid_file, os.getpid())

    def _remove_pid(self) -> None:
        if self.config.pid_file.exists():
            self.config.pid_file.unlink()

    def _check_existing(self) -> None:
        if not self.config.pid_file.exists():
            return
        try:
            pid = int(self.config.pid_file.read_text().strip())
            os.kill(pid, 0)  # Check if process exists
            print(f"scenesync daemon already running (pid={pid}). Exiting.", file=sys.stderr)
            sys.exit(1)
        except (ProcessLookupError, ValueError):
            # Stale PID file, remove it
            self._remove_pid()

    # ── Signal handling ──────────────────────────────────────

    def _setup_signals(self) -> None:
        loop = asyncio.get_event_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._handle_signal, sig)
        if hasattr(signal, "SIGHUP"):
            loop.add_signal_handler(signal.SIGHUP, self._schedule_reload)

    def _handle_signal(self, sig: signal.Signals) -> None:
        logger.info("Received %s, shutting down...", sig.name)
        self._shutdown_event.set()

    def _schedule_reload(self) -> asyncio.Task:
        self._reload_task = asyncio.ensure_future(self.reload())
        return self._reload_task

    async def reload(self) -> None:
        """Re-read configuration; a new API key drops the cached identity."""
        if self._components is None:
            return
        try:
            new = load_config(self.config_path)
        except (OSError, ValueError) as e:
            # tomllib.TOMLDecodeError is a ValueError
            logger.error("Config reload failed, keeping current settings: %s", e)
            return
        polling = self._components.config.polling
        polling.enabled = new.polling.enabled
        polling.interval_minutes = new.polling.interval_minutes
        self._components.config.api.api_key = new.api.api_key
        if self._components.identity.update_credential(new.api.api_key):
            await self._components.identity.resolve()
            await self._components.reconciler.sync_personas()
        logger.info("Configuration reloaded")

    # ── Build components ─────────────────────────────────────

    def _build(self) -> Components:
        components = build_components(self.config)
        self._connectors.append(
            SceneWatcher(components.store, interval=self.config.polling.watch_interval)
        )
        return components

    # ── Main run loop ────────────────────────────────────────

    async def run(self) -> None:
        self._check_existing()
        self._write_pid()
        self._setup_signals()

        components = self._components = self._build()
        reconciler = components.reconciler
        scheduler = Scheduler(reconciler.handle_trigger, self.config)

        if not self.config.api.api_key:
            logger.warning("No API key configured; passes will be skipped until one is set")
        else:
            await reconciler.sync_personas()

        logger.info(
            "scenesync daemon starting (vault=%s, scenes=%s)",
            self.config.vault.root,
            self.config.vault.scenes_folder,
        )

        tasks = [connector.start(reconciler.handle_trigger) for connector in self._connectors]
        try:
            await asyncio.gather(
                scheduler.start(self._shutdown_event),
                self._stop_connectors_on_shutdown(),
                *tasks,
            )
        except asyncio.CancelledError:
            pass
        finally:
            await components.close()
            self._remove_pid()
            logger.info("scenesync daemon stopped.")

    async def _stop_connectors_on_shutdown(self) -> None:
        await self._shutdown_event.wait()
        for connector in self._connectors:
            await connector.stop()
