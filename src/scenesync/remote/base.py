"""Remote client protocol and the records exchanged with the bot API.

All Discord ids stay decimal strings on this side of the boundary; they do not
fit in a double and must never round-trip through one.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


def _id(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _int_or_none(value: Any) -> int | None:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _required_id(data: dict) -> str:
    thread_id = _id(data["thread_id"])
    if thread_id is None:
        raise ValueError("record has an empty thread_id")
    return thread_id


def _names(value: Any) -> list[str]:
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    return []


@dataclass
class Persona:
    """A muse the user can post as."""

    name: str
    trigger: str = ""
    tags: str = ""
    owner_id: str | None = None
    is_shared: bool = False

    @classmethod
    def from_json(cls, data: dict) -> Persona:
        return cls(
            name=str(data.get("name", "")),
            trigger=str(data.get("trigger") or ""),
            tags=str(data.get("tags") or ""),
            owner_id=_id(data.get("owner_id")),
            is_shared=bool(data.get("is_shared", False)),
        )


@dataclass
class LinkedThread:
    """A thread the server already associates with a scene document."""

    thread_id: str
    scene_path: str | None = None
    characters: list[str] = field(default_factory=list)
    container_id: str | None = None

    @classmethod
    def from_json(cls, data: dict) -> LinkedThread:
        return cls(
            thread_id=_required_id(data),
            scene_path=data.get("scene_path") or None,
            characters=_names(data.get("characters")),
            container_id=_id(data.get("guild_id")),
        )


@dataclass
class ThreadState:
    """Live turn-order flag and participant count of a thread."""

    replied: bool
    participants: int | None = None

    @classmethod
    def from_json(cls, data: dict) -> ThreadState:
        replied = data.get("replied")
        return cls(
            replied=replied is True or replied == "true",
            participants=_int_or_none(data.get("participants")),
        )


@dataclass
class SceneQuery:
    """Result of a per-thread query; untracked carries no state."""

    tracked: bool
    state: ThreadState | None = None

    @classmethod
    def from_json(cls, data: dict) -> SceneQuery:
        state = data.get("state")
        tracked = bool(data.get("tracked")) and isinstance(state, dict)
        return cls(tracked=tracked, state=ThreadState.from_json(state) if tracked else None)


@dataclass
class TrackedThread:
    """One thread on the user's tracker."""

    thread_id: str
    persona_name: str
    participants: int | None = None
    scene_path: str | None = None
    container_id: str | None = None
    thread_name: str | None = None

    @classmethod
    def from_json(cls, data: dict) -> TrackedThread:
        return cls(
            thread_id=_required_id(data),
            persona_name=str(data.get("muse_name") or ""),
            participants=_int_or_none(data.get("participants")),
            scene_path=data.get("scene_path") or None,
            container_id=_id(data.get("guild_id")),
            thread_name=data.get("thread_name") or None,
        )


@dataclass
class SceneRegistration:
    """Payload for registering a scene document with the bot."""

    thread_id: str
    user_id: str
    scene_path: str
    characters: list[str]
    participants: int
    container_id: str | None = None
    is_active: bool = True


@runtime_checkable
class RemoteClient(Protocol):
    """Everything the engine and the scene flows need from the bot API.

    Implementations raise AuthError on 401, ApiError on other non-200
    responses and TransportError on network or decoding failures.
    """

    def set_api_key(self, api_key: str) -> None: ...

    async def whoami(self) -> str | None: ...

    async def list_personas(self, identities: Sequence[str]) -> list[Persona]: ...

    async def linked_threads(self, identity: str) -> list[LinkedThread]: ...

    async def query_scene(
        self, thread_id: str, personas: Sequence[str], identity: str
    ) -> SceneQuery: ...

    async def tracked_threads(self, identity: str) -> list[TrackedThread]: ...

    async def post_message(
        self, thread_id: str, persona_name: str, content: str, identity: str
    ) -> dict: ...

    async def create_scene(self, registration: SceneRegistration) -> dict: ...

    async def track_thread(self, registration: SceneRegistration, persona_name: str) -> dict: ...

    async def close(self) -> None: ...
