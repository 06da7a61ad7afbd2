"""Optional markdown table listing every scene (one row per document)."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Any

from scenesync.scenes import frontblock
from scenesync.scenes.matcher import LINK_KEY, PARTICIPANTS_KEY, REPLIED_KEY, persona_names
from scenesync.scenes.refs import ThreadReference

if TYPE_CHECKING:
    from scenesync.remote.base import TrackedThread
    from scenesync.scenes.store import Document, DocumentStore

logger = logging.getLogger(__name__)

TABLE_HEADER = (
    "| Scene | Characters | Link | Participants | Replied? |\n"
    "|-------|------------|------|--------------|----------|\n"
)


def _row(name: str, characters: list[str], link: str, participants: Any, replied: Any) -> str:
    return f"| {name} | {', '.join(characters)} | {link} | {participants} | {replied} |"


class TrackerTable:
    """Markdown table at `path` inside the vault; disabled when path is empty."""

    def __init__(self, store: DocumentStore, path: str) -> None:
        self.store = store
        self.path = path.strip("/")

    @property
    def enabled(self) -> bool:
        # .base files belong to their own plugin format; only plain markdown is edited.
        return bool(self.path) and PurePosixPath(self.path).suffix == ".md"

    def add_scene(self, document: Document, front: Mapping[str, Any]) -> bool:
        if not self.enabled or not self.store.exists(self.path):
            return False
        try:
            content = self.store.read_text(self.path)
            if f"| {document.name} |" in content:
                return False

            replied = frontblock.is_true(front.get(REPLIED_KEY))
            line = _row(
                document.name,
                persona_names(front),
                str(front.get(LINK_KEY) or ""),
                front.get(PARTICIPANTS_KEY) or 2,
                "true" if replied else "false",
            )
            if content and not content.endswith("\n"):
                content += "\n"
            if "|" not in content:
                # Start a table below whatever the note already holds.
                content += ("\n" if content else "") + TABLE_HEADER
            self.store.write_text(self.path, content + line + "\n")
            return True
        except OSError as e:
            logger.error("Error adding scene to tracker table: %s", e)
            return False

    def update_record(self, document: Document, thread: TrackedThread) -> bool:
        if not self.enabled or not self.store.exists(self.path):
            return False
        try:
            content = self.store.read_text(self.path)
            marker = f"| {document.name} |"
            link = ThreadReference(thread.thread_id, thread.container_id).url
            lines = [
                _row(document.name, [thread.persona_name], link, thread.participants or 2, "false")
                if marker in line
                else line
                for line in content.split("\n")
            ]
            updated = "\n".join(lines)
            if updated == content:
                return False
            self.store.write_text(self.path, updated)
            return True
        except OSError as e:
            logger.error("Error updating tracker table record: %s", e)
            return False
