"""Shared fakes for the engine and scene flow tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from scenesync.config import PollingConfig, SceneSyncConfig, VaultConfig
from scenesync.errors import AuthError
from scenesync.remote.base import (
    LinkedThread,
    Persona,
    SceneQuery,
    SceneRegistration,
    ThreadState,
    TrackedThread,
)
from scenesync.remote.identity import IdentityCache, IdentityResolver
from scenesync.scenes.store import DocumentStore

USER_ID = "111111111111111111"
GUILD_ID = "222222222222222222"


class MockRemote:
    """In-memory bot API. Tests set fields to shape responses."""

    def __init__(self) -> None:
        self.api_key = ""
        self.user_id: str | None = USER_ID
        self.personas: list[Persona] = [Persona(name="Alice"), Persona(name="Bob")]
        self.linked: list[LinkedThread] = []
        self.states: dict[str, ThreadState] = {}  # thread_id → state (absent = untracked)
        self.tracked: list[TrackedThread] = []
        self.fail_with: dict[str, Exception] = {}  # method → exception to raise
        self.queries: list[tuple[str, list[str], str]] = []
        self.posted: list[tuple[str, str, str, str]] = []
        self.created: list[SceneRegistration] = []
        self.track_calls: list[tuple[SceneRegistration, str]] = []
        self.whoami_calls = 0
        self.closed = False

    def _maybe_fail(self, method: str) -> None:
        if method in self.fail_with:
            raise self.fail_with[method]

    def set_api_key(self, api_key: str) -> None:
        self.api_key = api_key

    async def whoami(self) -> str | None:
        self.whoami_calls += 1
        self._maybe_fail("whoami")
        return self.user_id

    async def list_personas(self, identities) -> list[Persona]:
        self._maybe_fail("list_personas")
        return list(self.personas)

    async def linked_threads(self, identity: str) -> list[LinkedThread]:
        self._maybe_fail("linked_threads")
        return list(self.linked)

    async def query_scene(self, thread_id, personas, identity) -> SceneQuery:
        self.queries.append((thread_id, list(personas), identity))
        self._maybe_fail("query_scene")
        state = self.states.get(thread_id)
        return SceneQuery(tracked=state is not None, state=state)

    async def tracked_threads(self, identity: str) -> list[TrackedThread]:
        self._maybe_fail("tracked_threads")
        return list(self.tracked)

    async def post_message(self, thread_id, persona_name, content, identity) -> dict:
        self._maybe_fail("post_message")
        self.posted.append((thread_id, persona_name, content, identity))
        return {"success": True}

    async def create_scene(self, registration: SceneRegistration) -> dict:
        self._maybe_fail("create_scene")
        self.created.append(registration)
        return {"success": True}

    async def track_thread(self, registration: SceneRegistration, persona_name: str) -> dict:
        self.track_calls.append((registration, persona_name))
        self._maybe_fail("track_thread")
        return {"success": True}

    async def close(self) -> None:
        self.closed = True


class MockNotifier:
    def __init__(self) -> None:
        self.messages: list[str] = []

    def notify(self, message: str) -> None:
        self.messages.append(message)


class CountingAuthRemote(MockRemote):
    """Rejects every scene query with 401."""

    async def query_scene(self, thread_id, personas, identity) -> SceneQuery:
        self.queries.append((thread_id, list(personas), identity))
        raise AuthError()


@pytest.fixture
def vault(tmp_path: Path) -> Path:
    root = tmp_path / "vault"
    (root / "RP Scenes").mkdir(parents=True)
    return root


@pytest.fixture
def config(vault: Path) -> SceneSyncConfig:
    return SceneSyncConfig(
        vault=VaultConfig(root=vault, scenes_folder="RP Scenes"),
        polling=PollingConfig(enabled=True, interval_minutes=15, settle_delay=0.0),
        pid_file=vault.parent / "scenesync.pid",
    )


@pytest.fixture
def store(vault: Path) -> DocumentStore:
    return DocumentStore(vault, "RP Scenes")


@pytest.fixture
def remote() -> MockRemote:
    return MockRemote()


@pytest.fixture
def notifier() -> MockNotifier:
    return MockNotifier()


@pytest.fixture
def identity(remote: MockRemote, notifier: MockNotifier) -> IdentityResolver:
    resolver = IdentityResolver(remote, IdentityCache(), notifier)
    resolver.update_credential("test-key")
    return resolver


def thread_link(thread_id: str, channel_id: str = "333333333333333333") -> str:
    return f"https://discord.com/channels/{GUILD_ID}/{channel_id}/{thread_id}"


def write_scene(vault: Path, name: str, front: str, body: str = "Scene body.\n") -> str:
    path = f"RP Scenes/{name}.md"
    target = vault / path
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(f"---\n{front}---\n{body}".encode("utf-8"))
    return path
