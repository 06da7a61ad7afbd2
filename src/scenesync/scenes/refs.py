"""Thread reference resolution from Discord channel URLs."""

from __future__ import annotations

import re
from dataclasses import dataclass

# https://discord.com/channels/GUILD/CHANNEL/THREAD  (thread inside a channel)
# https://discord.com/channels/GUILD/THREAD          (standalone thread or channel)
# Host variants: canary.discord.com, ptb.discord.com, discordapp.com
_CHANNELS_RE = re.compile(r"discord(?:app)?(?:canary)?\.com/channels/(\d+)/(\d+)(?:/(\d+))?")

CANONICAL_HOST = "https://discord.com"


@dataclass(frozen=True)
class ThreadReference:
    """Opaque decimal-string ids extracted from a reference."""

    thread_id: str
    container_id: str | None = None
    channel_id: str | None = None

    @property
    def url(self) -> str:
        return f"{CANONICAL_HOST}/channels/{self.container_id or 0}/{self.thread_id}"


def resolve(reference: object) -> ThreadReference | None:
    """Extract the thread id (and guild id) from a reference string."""
    if not isinstance(reference, str) or not reference:
        return None
    match = _CHANNELS_RE.search(reference)
    if not match:
        return None
    guild_id, second, third = match.groups()
    if third:
        return ThreadReference(thread_id=third, container_id=guild_id, channel_id=second)
    return ThreadReference(thread_id=second, container_id=guild_id, channel_id=second)


def thread_url(container_id: str | None, thread_id: str) -> str | None:
    """Build a link for a tracked thread; None without a usable guild id."""
    if not container_id or str(container_id) == "0":
        return None
    return ThreadReference(thread_id=str(thread_id), container_id=str(container_id)).url
