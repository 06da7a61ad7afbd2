"""Decide whether a scene document is an active, trackable scene."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from scenesync.scenes import frontblock
from scenesync.scenes.refs import ThreadReference, resolve

LINK_KEY = "Link"
CHARACTERS_KEY = "Characters"
REPLIED_KEY = "Replied?"
PARTICIPANTS_KEY = "Participants"
ACTIVE_KEY = "Is Active?"
CREATED_KEY = "Created"


@dataclass(frozen=True)
class Skip:
    reason: str


@dataclass(frozen=True)
class Candidate:
    ref: ThreadReference
    personas: list[str] = field(default_factory=list)


def persona_names(front: Mapping[str, Any] | None) -> list[str]:
    """Characters of a scene, trimmed and deduplicated in order."""
    names: list[str] = []
    for name in frontblock.as_list(frontblock.get(front, CHARACTERS_KEY)):
        if name and name not in names:
            names.append(name)
    return names


def is_inactive(front: Mapping[str, Any] | None) -> bool:
    return frontblock.is_false(frontblock.get(front, ACTIVE_KEY))


def classify(front: Mapping[str, Any] | None) -> Skip | Candidate:
    if front is None:
        return Skip("no front-block")
    if is_inactive(front):
        return Skip("inactive")
    link = frontblock.get(front, LINK_KEY)
    if not link:
        return Skip("no link")
    personas = persona_names(front)
    if not personas:
        return Skip("no characters")
    ref = resolve(link)
    if ref is None:
        return Skip("unrecognized link")
    return Candidate(ref=ref, personas=personas)
