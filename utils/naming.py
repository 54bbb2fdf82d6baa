"""Deterministic key and collection-name derivation.

Each key part is escaped so that only ``[A-Za-z0-9.-]`` survive verbatim;
every other character (including ``_``, the part separator) becomes ``%XX``
for each of its UTF-8 bytes. Joining escaped parts with ``_`` is therefore
injective: two different part tuples never produce the same key.
"""

from typing import Any

from utils.hashing import generate_hash

PART_SEPARATOR = "_"
MAX_COLLECTION_NAME_LENGTH = 120
_HASH_SUFFIX_LENGTH = 16


def escape_key_part(part: Any) -> str:
    text = "null" if part is None else str(part)
    escaped = []
    for ch in text:
        if ch.isascii() and (ch.isalnum() or ch in "-."):
            escaped.append(ch)
        else:
            escaped.extend(f"%{byte:02X}" for byte in ch.encode("utf-8"))
    return "".join(escaped)


def join_key_parts(*parts: Any) -> str:
    return PART_SEPARATOR.join(escape_key_part(p) for p in parts)


def collection_name(prefix: str, key: str) -> str:
    """Name of the dedicated collection for an already-escaped key.

    Names over the length limit keep a readable head and end in a hash of the
    full name.
    """
    name = f"{prefix}{PART_SEPARATOR}{key}"
    if len(name) <= MAX_COLLECTION_NAME_LENGTH:
        return name
    head = name[: MAX_COLLECTION_NAME_LENGTH - _HASH_SUFFIX_LENGTH - 1]
    return f"{head}{PART_SEPARATOR}{generate_hash(name)[:_HASH_SUFFIX_LENGTH]}"
