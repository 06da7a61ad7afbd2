"""Post text into a scene's thread as one of its personas."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from scenesync.errors import AuthError, RemoteError, ValidationError
from scenesync.scenes import frontblock
from scenesync.scenes.matcher import LINK_KEY, persona_names
from scenesync.scenes.refs import resolve

if TYPE_CHECKING:
    from scenesync.connectors.base import Notifier
    from scenesync.remote.base import Persona, RemoteClient
    from scenesync.remote.identity import IdentityResolver
    from scenesync.scenes.store import DocumentStore

logger = logging.getLogger(__name__)


def persona_visible(name: str, personas: list[Persona]) -> bool:
    """Loose match: case-insensitive, either name may contain the other."""
    wanted = name.lower().strip()
    for persona in personas:
        have = persona.name.lower().strip()
        if have == wanted or wanted in have or have in wanted:
            return True
    return False


class MessagePoster:
    """Send content to the thread linked from a scene document."""

    def __init__(
        self,
        client: RemoteClient,
        store: DocumentStore,
        identity: IdentityResolver,
        notifier: Notifier,
    ) -> None:
        self.client = client
        self.store = store
        self.identity = identity
        self.notifier = notifier

    async def post_from_document(
        self, path: str, content: str, persona: str | None = None
    ) -> bool:
        """Post `content` as `persona` (or the scene's only character).

        Every problem is reported to the user as a notice; returns True on a
        successful post.
        """
        try:
            thread_id, chosen = self._validate(path, content, persona)
        except ValidationError as e:
            self.notifier.notify(str(e))
            return False

        identity = await self.identity.resolve()
        if not identity:
            self.notifier.notify(
                "Failed to get user ID from API key. Please check your API key in settings."
            )
            return False

        try:
            personas = await self.identity.personas()
        except AuthError:
            self.identity.report_auth_failure("muses/list")
            return False
        except RemoteError as e:
            logger.error("Error fetching muses: %s", e)
            self.notifier.notify(
                "Failed to fetch muses from bot API. Check your API URL and connection."
            )
            return False

        if not persona_visible(chosen, personas):
            available = ", ".join(p.name for p in personas)
            self.notifier.notify(
                f'Muse "{chosen}" not found or not accessible. Available muses: {available}'
            )
            return False

        try:
            await self.client.post_message(thread_id, chosen, content.strip(), identity)
        except AuthError:
            self.identity.report_auth_failure("messages/post")
            return False
        except RemoteError as e:
            logger.error("Error sending message: %s", e)
            self.notifier.notify(f"Failed to send message: {e}")
            return False

        self.notifier.notify(f"Message sent as {chosen}!")
        return True

    def _validate(self, path: str, content: str, persona: str | None) -> tuple[str, str]:
        if not content or not content.strip():
            raise ValidationError("No text selected. Please select text to send as muse.")
        try:
            found = self.store.exists(path)
        except ValueError:  # outside the vault
            found = False
        if not found:
            raise ValidationError(f"No such scene: {path}")

        front = self.store.read_front_block(path)
        if front is None:
            raise ValidationError(
                "File does not have frontmatter. Please add Link and Characters properties."
            )
        link = frontblock.get(front, LINK_KEY)
        if not link:
            raise ValidationError(
                "No Link property found in frontmatter. Please add a Discord thread URL."
            )
        characters = persona_names(front)
        if not characters:
            raise ValidationError(
                "No Characters property found in frontmatter. "
                "Please add at least one character name."
            )
        ref = resolve(link)
        if ref is None:
            raise ValidationError("Invalid Discord URL format in Link property.")

        if persona is None:
            if len(characters) > 1:
                raise ValidationError(
                    f"Scene has several characters, choose one of: {', '.join(characters)}"
                )
            return ref.thread_id, characters[0]
        if persona not in characters:
            raise ValidationError(f'"{persona}" is not a character of this scene.')
        return ref.thread_id, persona
