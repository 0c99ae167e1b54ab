"""Manifest text encoding and decoding.

The manifest is a JavaScript file declaring one array literal per collection::

    const PhotoshopFiles = [
      { src: "a.png", title: "A" },
      { src: "b.png", title: "B" }
    ];

    const videoFiles = [

    ];

Declarations always appear in collection order and only ``src`` and
``title`` are written. Strings are JSON string literals, which are also valid
JavaScript, so any text survives a round trip.
"""

from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING

from foliosync.exceptions import ParseError
from foliosync.models.asset import (
    COLLECTION_ORDER,
    DEFAULT_COLLECTION_SPECS,
    Collections,
    ManifestEntry,
    empty_collections,
)

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from foliosync.models.asset import CollectionId, CollectionSpec

logger = logging.getLogger(__name__)

_STRING = r'"(?:[^"\\\n]|\\.)*"'
_DECLARATION_RE = re.compile(r"\b(?:const|let|var)\s+([A-Za-z_$][\w$]*)\s*=\s*\[")
_ENTRY_RE = re.compile(
    r"\{\s*"
    rf"(?:src|\"src\")\s*:\s*(?P<src>{_STRING})\s*,\s*"
    rf"(?:title|\"title\")\s*:\s*(?P<title>{_STRING})\s*"
    r",?\s*\}"
)
_WHITESPACE_RE = re.compile(r"\s*")


def _literal(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def _format_array(name: str, entries: Sequence[ManifestEntry]) -> str:
    items = ",\n".join(
        f"  {{ src: {_literal(entry.src)}, title: {_literal(entry.title)} }}" for entry in entries
    )
    return f"const {name} = [\n{items}\n];"


def encode(
    collections: Mapping[CollectionId, Sequence[ManifestEntry]],
    specs: Mapping[CollectionId, CollectionSpec] | None = None,
) -> str:
    """Render collections as manifest text, deterministically."""
    specs = specs or DEFAULT_COLLECTION_SPECS
    blocks = [
        _format_array(specs[collection].manifest_name, collections.get(collection, []))
        for collection in COLLECTION_ORDER
    ]
    return "\n\n".join(blocks)


def _skip_ws(text: str, pos: int) -> int:
    match = _WHITESPACE_RE.match(text, pos)
    return match.end() if match else pos


def _decode_string(raw: str, pos: int) -> str:
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as exc:
        msg = f"Invalid string literal at offset {pos}: {exc.msg}"
        raise ParseError(msg) from exc
    if not isinstance(value, str):
        msg = f"Expected a string literal at offset {pos}"
        raise ParseError(msg)
    return value


def _parse_array(text: str, pos: int, name: str) -> tuple[list[ManifestEntry], int]:
    """Parse array items starting just after ``[``; return entries and the end offset."""
    entries: list[ManifestEntry] = []
    pos = _skip_ws(text, pos)
    while True:
        if text.startswith("]", pos):
            pos += 1
            break
        match = _ENTRY_RE.match(text, pos)
        if match is None:
            msg = f"Malformed entry in {name} at offset {pos}"
            raise ParseError(msg)
        entries.append(
            ManifestEntry(
                src=_decode_string(match.group("src"), match.start("src")),
                title=_decode_string(match.group("title"), match.start("title")),
            )
        )
        pos = _skip_ws(text, match.end())
        if text.startswith(",", pos):
            pos = _skip_ws(text, pos + 1)
        elif not text.startswith("]", pos):
            msg = f"Expected ',' or ']' in {name} at offset {pos}"
            raise ParseError(msg)
    pos = _skip_ws(text, pos)
    if text.startswith(";", pos):
        pos += 1
    return entries, pos


def decode(
    text: str,
    specs: Mapping[CollectionId, CollectionSpec] | None = None,
) -> Collections:
    """Parse manifest text back into collections.

    Declarations for unknown names are ignored, a collection without a
    declaration is empty. Raises ParseError on malformed or duplicated
    declarations.
    """
    specs = specs or DEFAULT_COLLECTION_SPECS
    by_name = {specs[collection].manifest_name: collection for collection in COLLECTION_ORDER}
    result = empty_collections()
    seen: set[str] = set()

    pos = 0
    while True:
        match = _DECLARATION_RE.search(text, pos)
        if match is None:
            break
        name = match.group(1)
        if name not in by_name:
            pos = match.end()
            continue
        if name in seen:
            msg = f"Duplicate declaration of {name}"
            raise ParseError(msg)
        seen.add(name)
        entries, pos = _parse_array(text, match.end(), name)
        result[by_name[name]] = entries

    if not seen and text.strip():
        msg = "No asset declarations found in manifest"
        raise ParseError(msg)
    return result


def load_manifest_text(
    text: str,
    specs: Mapping[CollectionId, CollectionSpec] | None = None,
) -> Collections:
    """Decode manifest text, falling back to empty collections when it is malformed."""
    try:
        collections = decode(text, specs)
    except ParseError as exc:
        logger.warning("Could not parse manifest, starting with empty collections: %s", exc)
        return empty_collections()
    logger.info(
        "Manifest loaded: %s",
        ", ".join(f"{collection}={len(collections[collection])}" for collection in COLLECTION_ORDER),
    )
    return collections


def default_commit_message(add_count: int, delete_count: int) -> str:
    """Suggest a commit title from the number of added and deleted files."""
    if add_count > 0 and delete_count > 0:
        return f"Add {add_count} and delete {delete_count} portfolio files"
    if add_count > 0:
        noun = "file" if add_count == 1 else "files"
        return f"Add {add_count} new portfolio {noun}"
    if delete_count > 0:
        noun = "file" if delete_count == 1 else "files"
        return f"Delete {delete_count} portfolio {noun}"
    return "Update portfolio assets"


def compose_commit_message(title: str, description: str = "") -> str:
    """Join a commit title and optional description the way git expects."""
    title = title.strip()
    description = description.strip()
    if description:
        return f"{title}\n\n{description}"
    return title
