"""Identity and persona caches, and the resolver that fills them."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from scenesync.errors import AuthError, RemoteError

if TYPE_CHECKING:
    from scenesync.connectors.base import Notifier
    from scenesync.remote.base import Persona, RemoteClient

logger = logging.getLogger(__name__)

AUTH_FAILED_NOTICE = "API authentication failed. Please check your API key in settings."


@dataclass
class IdentityCache:
    """Transient state tied to one credential.

    Nothing here outlives the API key it was resolved with.
    """

    credential: str = ""
    identity: str | None = None
    personas: dict[str, list[Persona]] = field(default_factory=dict)  # identity → muses

    def set_credential(self, credential: str) -> bool:
        """Swap the credential; returns True when it actually changed."""
        credential = credential.strip()
        if credential == self.credential:
            return False
        self.credential = credential
        self.invalidate_on_credential_change()
        return True

    def invalidate_on_credential_change(self) -> None:
        self.identity = None
        self.personas.clear()


class IdentityResolver:
    """Resolve and cache who the API key belongs to."""

    def __init__(
        self,
        client: RemoteClient,
        cache: IdentityCache,
        notifier: Notifier,
        legacy_ids: list[str] | None = None,
    ) -> None:
        self.client = client
        self.cache = cache
        self.notifier = notifier
        self._legacy_ids = list(legacy_ids or [])

    def update_credential(self, api_key: str) -> bool:
        changed = self.cache.set_credential(api_key)
        if changed:
            self.client.set_api_key(api_key)
            logger.info("API key changed, identity cache cleared")
        return changed

    def report_auth_failure(self, site: str) -> None:
        logger.error("%s: %s", site, AUTH_FAILED_NOTICE)
        self.notifier.notify(AUTH_FAILED_NOTICE)

    async def resolve(self) -> str | None:
        """Return the cached identity, fetching it once per credential.

        None means "not configured": no key, or the key could not be resolved.
        """
        if self.cache.identity and self.cache.credential:
            return self.cache.identity
        if not self.cache.credential:
            return None
        try:
            identity = await self.client.whoami()
        except AuthError:
            self.report_auth_failure("auth/me")
            return None
        except RemoteError as e:
            logger.error("Failed to get user ID from API key: %s", e)
            return None
        if identity:
            self.cache.identity = identity
            logger.info("Resolved user ID %s from API key", identity)
        return identity

    async def all_identities(self) -> list[str]:
        identity = await self.resolve()
        if identity:
            return [identity]
        # Fall back to identities configured before API keys existed.
        ids: list[str] = []
        for legacy in self._legacy_ids:
            if legacy not in ids:
                ids.append(legacy)
        return ids

    async def personas(self, refresh: bool = False) -> list[Persona]:
        """Muses visible to any of the identities, cached per identity.

        Raises RemoteError; callers decide whether that is worth a notice.
        """
        identities = await self.all_identities()
        if not identities:
            return []
        if not refresh and all(i in self.cache.personas for i in identities):
            return self.cache.personas[identities[0]]

        muses = await self.client.list_personas(identities)
        # The API returns everything owned by or shared with any of the ids.
        for identity in identities:
            self.cache.personas[identity] = muses
        logger.info("Synced %d muse(s) for %d user(s)", len(muses), len(identities))
        return muses
