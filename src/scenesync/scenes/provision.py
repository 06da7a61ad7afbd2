"""Scene creation and tracker import.

Both flows write a complete front-block from scratch and then register the new
document with the bot. The document is the user's work: a failed registration
never removes it.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import date
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Any

from scenesync.errors import AuthError, RemoteError, ValidationError
from scenesync.remote.base import SceneRegistration
from scenesync.scenes import frontblock
from scenesync.scenes.matcher import (
    CHARACTERS_KEY,
    CREATED_KEY,
    LINK_KEY,
    PARTICIPANTS_KEY,
    REPLIED_KEY,
)
from scenesync.scenes.refs import resolve, thread_url
from scenesync.scenes.store import Document

if TYPE_CHECKING:
    from scenesync.connectors.base import Notifier
    from scenesync.remote.base import RemoteClient, TrackedThread
    from scenesync.remote.identity import IdentityResolver
    from scenesync.scenes.store import DocumentStore
    from scenesync.scenes.tracker_table import TrackerTable

logger = logging.getLogger(__name__)

DEFAULT_PARTICIPANTS = 2

# Receives a label (e.g. 'muse "Alice"') and returns a folder, or None to skip.
LocationChooser = Callable[[str], Awaitable["str | None"]]


@dataclass
class TrackerSyncResult:
    created: int = 0
    updated: int = 0
    skipped: int = 0


def scene_front_block(link: str, persona: str, participants: int) -> dict[str, Any]:
    return {
        LINK_KEY: link,
        CHARACTERS_KEY: [persona],
        PARTICIPANTS_KEY: participants,
        REPLIED_KEY: False,
        CREATED_KEY: date.today(),
    }


def _safe_name(name: str) -> str:
    return name.replace("/", "-").replace("\\", "-").strip()


class ScenePlanner:
    """Create scene documents and link them to threads on the bot."""

    def __init__(
        self,
        client: RemoteClient,
        store: DocumentStore,
        identity: IdentityResolver,
        notifier: Notifier,
        table: TrackerTable | None = None,
    ) -> None:
        self.client = client
        self.store = store
        self.identity = identity
        self.notifier = notifier
        self.table = table

    def _write_scene(self, location: str, name: str, front: dict[str, Any]) -> Document:
        location = location.strip("/")
        filename = f"{_safe_name(name)}.md"
        path = str(PurePosixPath(location) / filename) if location else filename
        if location:
            self.store.create_folder(location)
        return self.store.create_document(path, frontblock.render_document(front))

    # ── Create ───────────────────────────────────────────────

    async def create_scene(
        self,
        persona: str,
        reference: str,
        location: str,
        name: str,
        participants: int = DEFAULT_PARTICIPANTS,
    ) -> Document:
        """Write a new scene document and register it with the bot.

        Raises ValidationError (after a notice) when the reference or name is
        unusable, and FileExistsError when the document already exists.
        """
        ref = resolve(reference)
        if ref is None:
            self.notifier.notify("Invalid Discord URL format.")
            raise ValidationError(f"Invalid Discord URL: {reference}")
        if not _safe_name(name):
            self.notifier.notify("Scene name is required.")
            raise ValidationError("Scene name is required")
        participants = participants if participants and participants > 0 else DEFAULT_PARTICIPANTS

        front = scene_front_block(reference, persona, participants)
        document = self._write_scene(location, name, front)

        identity = await self.identity.resolve()
        if not identity:
            self.notifier.notify(
                "Failed to get user ID from API key. Please check your API key in settings."
            )
            return document

        registration = SceneRegistration(
            thread_id=ref.thread_id,
            user_id=identity,
            scene_path=document.path,
            characters=[persona],
            participants=participants,
            container_id=ref.container_id,
        )
        try:
            await self.client.create_scene(registration)
        except AuthError:
            self.identity.report_auth_failure("scenes/create")
            self.notifier.notify(
                "Scene created but failed to register with bot: Authentication failed. "
                "Check your API key."
            )
            return document
        except RemoteError as e:
            logger.error("Failed to register scene %s: %s", document.path, e)
            self.notifier.notify(
                f"Scene created but failed to register with bot: {e.status or e}"
            )
            return document

        await self._track(registration, persona)

        if self.table is not None:
            self.table.add_scene(document, front)

        self.notifier.notify(f"Scene created: {document.name}")
        return document

    async def _track(self, registration: SceneRegistration, persona: str) -> None:
        """Best-effort thread tracking; the bot may not see every thread."""
        try:
            await self.client.track_thread(registration, persona)
            logger.debug("Thread tracking created for %s", registration.thread_id)
        except RemoteError as e:
            if e.status == 400:
                logger.debug("Thread %s not trackable by bot: %s", registration.thread_id, e)
            else:
                logger.error("Thread tracking error (non-fatal): %s", e)

    # ── Import from tracker ──────────────────────────────────

    async def sync_from_tracker(
        self, choose_location: LocationChooser | None = None
    ) -> TrackerSyncResult | None:
        """Create scene documents for tracked threads that lack one.

        Returns None when the tracker could not be read at all.
        """
        identity = await self.identity.resolve()
        if not identity:
            self.notifier.notify(
                "Failed to get user ID from API key. Please check your API key in settings."
            )
            return None

        try:
            threads = await self.client.tracked_threads(identity)
        except AuthError:
            self.identity.report_auth_failure("threads/tracked")
            return None
        except RemoteError as e:
            logger.error("Failed to fetch tracked threads: %s", e)
            self.notifier.notify("Failed to fetch tracked threads from bot.")
            return None

        result = TrackerSyncResult()
        if not threads:
            self.notifier.notify("No tracked threads found.")
            return result

        for thread in threads:
            try:
                await self._import_thread(thread, identity, result, choose_location)
            except Exception as e:
                logger.error("Error importing thread %s: %s", thread.thread_id, e)
                result.skipped += 1

        self.notifier.notify(f"Sync complete: {result.created} created, {result.updated} updated")
        return result

    async def _import_thread(
        self,
        thread: TrackedThread,
        identity: str,
        result: TrackerSyncResult,
        choose_location: LocationChooser | None,
    ) -> None:
        # Threads without a scene path are not meant to be documents.
        if not thread.scene_path:
            result.skipped += 1
            return

        if self.store.exists(thread.scene_path):
            if self.table is not None:
                self.table.update_record(Document(path=thread.scene_path), thread)
            result.updated += 1
            return

        link = thread_url(thread.container_id, thread.thread_id)
        if link is None:
            logger.debug("Skipping thread %s - no valid guild_id", thread.thread_id)
            result.skipped += 1
            return

        if choose_location is not None:
            location = await choose_location(f'muse "{thread.persona_name}"')
        else:
            location = self.store.scenes_folder
        if location is None:
            result.skipped += 1
            return

        participants = thread.participants or DEFAULT_PARTICIPANTS
        name = thread.thread_name or f"{thread.persona_name} - Thread {thread.thread_id}"
        front = scene_front_block(link, thread.persona_name, participants)
        document = self._write_scene(location, name, front)

        registration = SceneRegistration(
            thread_id=thread.thread_id,
            user_id=identity,
            scene_path=document.path,
            characters=[thread.persona_name],
            participants=participants,
            container_id=thread.container_id,
        )
        try:
            await self.client.create_scene(registration)
        except RemoteError as e:
            logger.error("Failed to register imported scene %s: %s", document.path, e)
        if self.table is not None:
            self.table.add_scene(document, front)
        result.created += 1
