"""Front-block codec — the `---` delimited key/value header of a scene document.

Parsing goes through python-frontmatter so hand-edited YAML reads the way any
other front-matter tool would read it. Writing is line based: only the entries
being mutated are touched, so everything else in the block and the whole body
survive byte-for-byte.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Mapping
from typing import Any

import frontmatter
import yaml

logger = logging.getLogger(__name__)

DELIMITER = "---"

_TRUE_STRINGS = ("true", "True")
_FALSE_STRINGS = ("false",)


def split_front_block(text: str) -> tuple[str, list[str], str, str] | None:
    """Split text into (opening line, block lines, closing line, body).

    Returns None unless the first line is a delimiter and a closing delimiter
    follows. Every returned piece keeps its original line endings.
    """
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip() != DELIMITER:
        return None
    for i in range(1, len(lines)):
        if lines[i].rstrip() == DELIMITER:
            return lines[0], lines[1:i], lines[i], "".join(lines[i + 1 :])
    return None


def parse(text: str) -> dict[str, Any] | None:
    """Parse the front-block of a document, or None when it has none."""
    parts = split_front_block(text)
    if parts is None:
        return None
    _, block, _, _ = parts
    if not "".join(block).strip():
        return {}
    try:
        post = frontmatter.loads(text)
    except yaml.YAMLError as e:
        logger.debug("Unreadable front-block: %s", e)
        return None
    return dict(post.metadata)


def get(front: Mapping[str, Any] | None, key: str, default: Any = None) -> Any:
    if not front:
        return default
    return front.get(key, default)


def is_true(value: Any) -> bool:
    """Normalize a hand-edited boolean: True, "true" and "True" are true."""
    return value is True or (isinstance(value, str) and value in _TRUE_STRINGS)


def is_false(value: Any) -> bool:
    """Explicit falsehood only; a missing value is not false."""
    return value is False or (isinstance(value, str) and value in _FALSE_STRINGS)


def as_list(value: Any) -> list[str]:
    """Read a list value given either as a YAML list or a comma-separated string."""
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if item is not None]
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return [str(value).strip()]


# ── Writing ───────────────────────────────────────────────────


def _format_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    if isinstance(value, str):
        return _quote_if_needed(value)
    return str(value)


def _quote_if_needed(value: str) -> str:
    if value == "":
        return '""'
    try:
        reads_back = yaml.safe_load(value) == value
    except yaml.YAMLError:
        reads_back = False
    return value if reads_back and "\n" not in value else json.dumps(value, ensure_ascii=False)


def _render_entry(key: str, value: Any, newline: str) -> list[str]:
    if isinstance(value, (list, tuple)):
        lines = [f"{key}:{newline}"]
        lines.extend(f"  - {_format_scalar(item)}{newline}" for item in value)
        return lines
    formatted = _format_scalar(value)
    return [f"{key}: {formatted}{newline}" if formatted else f"{key}:{newline}"]


def _key_pattern(key: str) -> re.Pattern[str]:
    return re.compile(rf"^{re.escape(key)}:(?P<rest>[ \t].*|)$")


def _is_continuation(line: str, block_style: bool) -> bool:
    if line[:1] in (" ", "\t"):
        return True
    return block_style and line.startswith("-")


def _set_key(lines: list[str], key: str, value: Any, newline: str) -> list[str]:
    pattern = _key_pattern(key)
    rendered = _render_entry(key, value, newline)
    out: list[str] = []
    found = False
    i = 0
    while i < len(lines):
        match = pattern.match(lines[i].rstrip("\r\n"))
        if not match:
            out.append(lines[i])
            i += 1
            continue
        found = True
        block_style = not match.group("rest").strip()
        i += 1
        while i < len(lines) and _is_continuation(lines[i], block_style):
            i += 1
        out.extend(rendered)
    if not found:
        out.extend(rendered)
    return out


def _newline_of(line: str) -> str:
    return "\r\n" if line.endswith("\r\n") else "\n"


def set_mutations(text: str, mutations: Iterable[tuple[str, Any]]) -> str | None:
    """Rewrite the named keys, appending any that are missing.

    Returns the new document text, or None when the document has no
    front-block to mutate.
    """
    parts = split_front_block(text)
    if parts is None:
        return None
    opening, block, closing, body = parts
    newline = _newline_of(opening)
    for key, value in mutations:
        block = _set_key(block, key, value, newline)
    return opening + "".join(block) + closing + body


def render_document(front: Mapping[str, Any], body: str = "") -> str:
    """Render a complete document from scratch (scene creation only)."""
    lines = [f"{DELIMITER}\n"]
    for key, value in front.items():
        lines.extend(_render_entry(key, value, "\n"))
    lines.append(f"{DELIMITER}\n")
    return "".join(lines) + body
