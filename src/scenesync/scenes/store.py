"""File-system vault holding scene documents.

Paths handed out by the store are vault-relative with forward slashes, the
same form the bot uses for `scene_path`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any, Union

from scenesync.scenes import frontblock

logger = logging.getLogger(__name__)

DOCUMENT_SUFFIX = ".md"


@dataclass(frozen=True)
class Document:
    path: str

    @property
    def name(self) -> str:
        return PurePosixPath(self.path).stem


@dataclass
class Folder:
    path: str
    children: list[Node] = field(default_factory=list)


Node = Union[Document, Folder]


def walk(node: Node) -> Iterator[Document]:
    """Yield every document under a node, depth first."""
    if isinstance(node, Document):
        yield node
        return
    for child in node.children:
        yield from walk(child)


class DocumentStore:
    """Read/write access to the markdown documents of a vault."""

    def __init__(self, root: Path, scenes_folder: str = "") -> None:
        self.root = Path(root).resolve()
        self.scenes_folder = scenes_folder.strip("/")
        self._front_cache: dict[str, tuple[int, int, dict[str, Any] | None]] = {}

    # ── Paths ─────────────────────────────────────────────────

    def _abs(self, path: str) -> Path:
        resolved = (self.root / path).resolve()
        if not resolved.is_relative_to(self.root):
            raise ValueError(f"Path escapes vault: {path}")
        return resolved

    def _rel(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    def in_scenes_folder(self, path: str) -> bool:
        if not self.scenes_folder:
            return True
        return path.startswith(self.scenes_folder + "/")

    def exists(self, path: str) -> bool:
        return self._abs(path).is_file()

    # ── Enumeration ───────────────────────────────────────────

    def tree(self, folder: str | None = None) -> Node | None:
        """Build the tagged tree under a folder (scenes folder by default)."""
        folder = self.scenes_folder if folder is None else folder
        start = self.root / folder if folder else self.root
        if not start.is_dir():
            return None
        return self._build(start)

    def _build(self, directory: Path) -> Folder:
        node = Folder(path=self._rel(directory) if directory != self.root else "")
        for entry in sorted(directory.iterdir()):
            if entry.name.startswith("."):
                continue
            if entry.is_dir():
                node.children.append(self._build(entry))
            elif entry.is_file() and entry.suffix == DOCUMENT_SUFFIX:
                node.children.append(Document(path=self._rel(entry)))
        return node

    def iter_documents(self) -> list[Document]:
        node = self.tree()
        return list(walk(node)) if node is not None else []

    def folders(self, under: str | None = None) -> list[str]:
        """Every folder below `under` (scenes folder by default), itself included."""
        node = self.tree(under)
        found: list[str] = []

        def collect(folder: Folder) -> None:
            found.append(folder.path)
            for child in folder.children:
                if isinstance(child, Folder):
                    collect(child)

        if isinstance(node, Folder):
            collect(node)
        return found

    # ── Read / write ──────────────────────────────────────────

    def read_text(self, path: str) -> str:
        with self._abs(path).open(encoding="utf-8", newline="") as f:
            return f.read()

    def write_text(self, path: str, text: str) -> None:
        target = self._abs(path)
        # newline="" keeps \r\n documents byte-identical outside the edit.
        with target.open("w", encoding="utf-8", newline="") as f:
            f.write(text)
        self._front_cache.pop(path, None)

    def read_front_block(self, path: str) -> dict[str, Any] | None:
        """Parsed front-block, cached until the file changes on disk."""
        target = self._abs(path)
        stat = target.stat()
        cached = self._front_cache.get(path)
        if cached and cached[0] == stat.st_mtime_ns and cached[1] == stat.st_size:
            return cached[2]
        front = frontblock.parse(self.read_text(path))
        self._front_cache[path] = (stat.st_mtime_ns, stat.st_size, front)
        return front

    def create_folder(self, path: str) -> None:
        self._abs(path).mkdir(parents=True, exist_ok=True)

    def create_document(self, path: str, text: str) -> Document:
        target = self._abs(path)
        if target.exists():
            raise FileExistsError(f"Document already exists: {path}")
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("x", encoding="utf-8", newline="") as f:
            f.write(text)
        logger.info("Created document %s", path)
        return Document(path=self._rel(target))
