"""Tests for trigger sources: scheduler, scene watcher and daemon wiring."""

import asyncio
import os

import pytest

from scenesync.connectors.base import Connector, PassTrigger, TriggerKind
from scenesync.connectors.cli import CLIConnector
from scenesync.connectors.watcher import SceneWatcher
from scenesync.daemon import SceneSyncDaemon, build_components
from scenesync.scheduler.jobs import Scheduler


class RecordingHandler:
    def __init__(self) -> None:
        self.triggers: list[PassTrigger] = []

    async def __call__(self, trigger: PassTrigger):
        self.triggers.append(trigger)
        return None


def touch(path, text: str, bump_ns: int) -> None:
    path.write_text(text)
    stat = path.stat()
    os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + bump_ns))


class TestScheduler:
    @pytest.mark.asyncio
    async def test_initial_pass_then_stops(self, config):
        handler = RecordingHandler()
        shutdown = asyncio.Event()
        shutdown.set()

        await Scheduler(handler, config).start(shutdown)

        assert [t.kind for t in handler.triggers] == [TriggerKind.TIMER]

    @pytest.mark.asyncio
    async def test_ticks_on_interval(self, config, monkeypatch):
        handler = RecordingHandler()
        shutdown = asyncio.Event()
        scheduler = Scheduler(handler, config)
        monkeypatch.setattr(Scheduler, "interval_seconds", property(lambda self: 0.01))

        task = asyncio.create_task(scheduler.start(shutdown))
        await asyncio.sleep(0.1)
        shutdown.set()
        await task

        assert len(handler.triggers) >= 3

    @pytest.mark.asyncio
    async def test_handler_errors_do_not_stop_loop(self, config):
        calls = []

        async def failing(trigger):
            calls.append(trigger)
            raise RuntimeError("boom")

        shutdown = asyncio.Event()
        shutdown.set()
        await Scheduler(failing, config).start(shutdown)
        assert len(calls) == 1


class TestSceneWatcher:
    def test_is_connector(self, store):
        assert isinstance(SceneWatcher(store), Connector)

    def test_first_scan_is_baseline(self, store, vault):
        (vault / "RP Scenes" / "A.md").write_text("a")
        watcher = SceneWatcher(store)
        assert watcher.scan() == ["RP Scenes/A.md"]
        assert watcher.scan() == []

    def test_detects_modified_and_new(self, store, vault):
        a = vault / "RP Scenes" / "A.md"
        a.write_text("a")
        watcher = SceneWatcher(store)
        watcher.scan()

        touch(a, "changed", 1_000_000_000)
        (vault / "RP Scenes" / "B.md").write_text("b")

        assert sorted(watcher.scan()) == ["RP Scenes/A.md", "RP Scenes/B.md"]

    @pytest.mark.asyncio
    async def test_emits_document_changed(self, store, vault):
        a = vault / "RP Scenes" / "A.md"
        a.write_text("a")
        handler = RecordingHandler()
        watcher = SceneWatcher(store, interval=0.01)

        task = asyncio.create_task(watcher.start(handler))
        await asyncio.sleep(0.05)
        touch(a, "changed", 1_000_000_000)
        await asyncio.sleep(0.1)
        await watcher.stop()
        await task

        assert handler.triggers
        assert handler.triggers[0].kind is TriggerKind.DOCUMENT_CHANGED
        assert handler.triggers[0].path == "RP Scenes/A.md"


class TestDaemon:
    def test_build_components(self, config):
        config.api.api_key = "k"
        config.vault.base_path = "Tracker.md"
        components = build_components(config)
        assert components.identity.cache.credential == "k"
        assert components.planner.table is not None
        assert components.reconciler.store is components.store

    def test_stale_pid_file_removed(self, config):
        config.pid_file.write_text("not-a-pid")
        daemon = SceneSyncDaemon(config)
        daemon._check_existing()
        assert not config.pid_file.exists()

    def test_pid_roundtrip(self, config):
        daemon = SceneSyncDaemon(config)
        daemon._write_pid()
        assert config.pid_file.read_text() == str(os.getpid())
        daemon._remove_pid()
        assert not config.pid_file.exists()

    @pytest.mark.asyncio
    async def test_reload_swaps_credential(self, config, tmp_path, monkeypatch):
        monkeypatch.delenv("SCENESYNC_API_KEY", raising=False)
        monkeypatch.delenv("SCENESYNC_POLL_INTERVAL", raising=False)
        config_path = tmp_path / "scenesync.toml"
        config_path.write_text('[api]\napi_key = ""\n\n[polling]\ninterval_minutes = 30\n')
        config.api.api_key = "old"
        daemon = SceneSyncDaemon(config, config_path=config_path)
        daemon._components = build_components(config)
        daemon._components.identity.cache.identity = "cached"

        await daemon.reload()

        assert daemon._components.identity.cache.identity is None
        assert daemon._components.identity.cache.credential == ""
        assert config.polling.interval_minutes == 30
        await daemon._components.close()

    @pytest.mark.asyncio
    async def test_reload_with_broken_file_keeps_settings(self, config, tmp_path, caplog):
        config_path = tmp_path / "scenesync.toml"
        config_path.write_text("[api\napi_key = \n")
        config.api.api_key = "old"
        config.polling.interval_minutes = 15
        daemon = SceneSyncDaemon(config, config_path=config_path)
        daemon._components = build_components(config)

        with caplog.at_level("ERROR", logger="scenesync.daemon"):
            task = daemon._schedule_reload()
            await task

        assert daemon._reload_task is task
        assert task.exception() is None
        assert config.api.api_key == "old"
        assert config.polling.interval_minutes == 15
        assert daemon._components.identity.cache.credential == "old"
        assert "Config reload failed" in caplog.text
        await daemon._components.close()


class TestCLIConnector:
    @pytest.mark.asyncio
    async def test_check_and_toggle(self, config, capsys):
        components = build_components(config)
        cli = CLIConnector(components)
        handler = RecordingHandler()

        await cli._dispatch(handler, "check", [])
        await cli._dispatch(handler, "toggle", [])

        assert handler.triggers[0].kind is TriggerKind.COMMAND
        assert config.polling.enabled is False
        assert "[scenesync] Polling disabled" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_unknown_command(self, config, capsys):
        cli = CLIConnector(build_components(config))
        await cli._dispatch(RecordingHandler(), "dance", [])
        assert "Unknown command: dance" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_post_outside_vault_is_reported(self, config, capsys, monkeypatch):
        components = build_components(config)
        cli = CLIConnector(components)

        async def answer(prompt, default=""):
            return "hello"

        monkeypatch.setattr(cli, "_ask", answer)
        await cli._dispatch(RecordingHandler(), "post", ["../outside.md"])

        assert "No such scene: ../outside.md" in capsys.readouterr().err
        await components.close()
