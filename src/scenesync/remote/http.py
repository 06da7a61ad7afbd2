"""aiohttp client for the Multimuse bot HTTP API."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable, Sequence
from typing import Any, TypeVar

import aiohttp

from scenesync.errors import ApiError, AuthError, TransportError
from scenesync.remote.base import (
    LinkedThread,
    Persona,
    SceneQuery,
    SceneRegistration,
    TrackedThread,
)

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"

T = TypeVar("T")


class MultimuseClient:
    """Thin async wrapper around the bot API endpoints."""

    def __init__(self, base_url: str, api_key: str = "", timeout: int = 30) -> None:
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key.strip()
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None

    @property
    def name(self) -> str:
        return "multimuse"

    def set_api_key(self, api_key: str) -> None:
        self._api_key = api_key.strip()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> MultimuseClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # ── Transport ────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        payload: dict | None = None,
    ) -> dict:
        url = f"{self.base_url}{API_PREFIX}{path}"
        body = json.dumps(payload) if payload is not None else None
        try:
            async with self._get_session().request(
                method, url, params=params, data=body, headers=self._headers()
            ) as response:
                text = await response.text()
                return self._handle_response(path, response.status, text)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"{method} {path} failed: {str(e) or type(e).__name__}") from e
        except UnicodeDecodeError as e:
            raise TransportError(f"Invalid response format from {path}") from e

    @staticmethod
    def _handle_response(path: str, status: int, text: str) -> dict:
        if status == 401:
            raise AuthError()
        if status != 200:
            message = f"API error: {status}"
            try:
                data = json.loads(text)
                if isinstance(data, dict):
                    message = data.get("message") or data.get("error") or data.get("detail") or message
            except json.JSONDecodeError:
                pass
            raise ApiError(str(message), status=status)
        try:
            data = json.loads(text) if text else {}
        except json.JSONDecodeError as e:
            raise TransportError(f"Invalid response format from {path}") from e
        if not isinstance(data, dict):
            raise TransportError(f"Unexpected response shape from {path}")
        return data

    @staticmethod
    def _decode(path: str, build: Callable[[], T]) -> T:
        """Run a record builder; a malformed 200 body is a transport failure."""
        try:
            return build()
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            raise TransportError(f"Invalid response format from {path}") from e

    def _records(self, path: str, data: dict, key: str, build: Callable[[Any], T]) -> list[T]:
        items = data.get(key) or []
        if not isinstance(items, list):
            raise TransportError(f"Unexpected response shape from {path}")
        return self._decode(path, lambda: [build(item) for item in items])

    # ── Reads ────────────────────────────────────────────────

    async def whoami(self) -> str | None:
        data = await self._request("GET", "/auth/me")
        user_id = data.get("user_id")
        return str(user_id) if user_id else None

    async def list_personas(self, identities: Sequence[str]) -> list[Persona]:
        data = await self._request("GET", "/muses/list", params={"user_ids": ",".join(identities)})
        return self._records("/muses/list", data, "muses", Persona.from_json)

    async def linked_threads(self, identity: str) -> list[LinkedThread]:
        data = await self._request("GET", "/scenes/linked", params={"user_id": identity})
        return self._records("/scenes/linked", data, "linked_threads", LinkedThread.from_json)

    async def query_scene(
        self, thread_id: str, personas: Sequence[str], identity: str
    ) -> SceneQuery:
        data = await self._request(
            "GET",
            "/scenes/query",
            params={"thread_id": thread_id, "characters": ",".join(personas), "user_id": identity},
        )
        return self._decode("/scenes/query", lambda: SceneQuery.from_json(data))

    async def tracked_threads(self, identity: str) -> list[TrackedThread]:
        data = await self._request("GET", "/threads/tracked", params={"user_id": identity})
        return self._records("/threads/tracked", data, "threads", TrackedThread.from_json)

    # ── Writes ───────────────────────────────────────────────

    async def post_message(
        self, thread_id: str, persona_name: str, content: str, identity: str
    ) -> dict:
        return await self._request(
            "POST",
            "/messages/post",
            payload={
                "thread_id": thread_id,
                "muse_name": persona_name,
                "content": content,
                "user_id": identity,
            },
        )

    async def create_scene(self, registration: SceneRegistration) -> dict:
        logger.debug(
            "Registering scene: thread=%s guild=%s path=%s",
            registration.thread_id,
            registration.container_id,
            registration.scene_path,
        )
        return await self._request(
            "POST",
            "/scenes/create",
            payload={
                "thread_id": registration.thread_id,
                "user_id": registration.user_id,
                "scene_path": registration.scene_path,
                "characters": registration.characters,
                "participants": registration.participants,
                "is_active": registration.is_active,
                "guild_id": registration.container_id,
            },
        )

    async def track_thread(self, registration: SceneRegistration, persona_name: str) -> dict:
        return await self._request(
            "POST",
            "/threads/track",
            payload={
                "thread_id": registration.thread_id,
                "user_id": registration.user_id,
                "muse_name": persona_name,
                "participants": registration.participants,
                "scene_path": registration.scene_path,
                "guild_id": registration.container_id,
            },
        )
