# -*- coding: utf-8 -*-
"""
Canonical payload hashing for documents.

The payload is a compact JSON object with exactly four keys in a fixed order:

    {"title":...,"content":...,"user_id":...,"created_at":...}

- No whitespace between tokens, non-ASCII left unescaped, UTF-8 encoded.
- A high+low surrogate pair is joined into one code point; a lone surrogate is
  written as a lowercase \\uXXXX escape (well-formed JSON.stringify output).
- created_at is the persisted creation timestamp string, never a fresh one.
- Key order is fixed, NOT sorted.

Any change to the field set, order or encoding invalidates every signature
issued so far. Signer and verifier must both go through this module.
"""

from __future__ import annotations

import hashlib
import json
import re
from typing import Any, Dict, Final, Optional, Protocol, Tuple

CANONICAL_FIELDS: Final[Tuple[str, ...]] = ("title", "content", "user_id", "created_at")
HASH_HEX_LEN: Final[int] = 64

_SURROGATE_RE: Final = re.compile("([\ud800-\udbff][\udc00-\udfff])|[\ud800-\udfff]")


class CanonicalDocument(Protocol):
    """Anything exposing the four cryptographically relevant document fields."""

    title: str
    content: Optional[str]
    user_id: str
    created_at: Optional[str]


def _field_values(document: Any) -> Dict[str, Any]:
    if isinstance(document, dict):
        return {name: document.get(name) for name in CANONICAL_FIELDS}
    return {name: getattr(document, name) for name in CANONICAL_FIELDS}


def _fix_surrogates(match: re.Match[str]) -> str:
    pair = match.group(1)
    if pair:
        high, low = ord(pair[0]), ord(pair[1])
        return chr(0x10000 + ((high - 0xD800) << 10) + (low - 0xDC00))
    return "\\u%04x" % ord(match.group(0))


def canonicalize(document: Any) -> bytes:
    """
    Build the canonical payload bytes for a document (object or mapping).

    Raises:
        AttributeError: if an object lacks one of the canonical fields.
    """
    payload = _field_values(document)
    text = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
    return _SURROGATE_RE.sub(_fix_surrogates, text).encode("utf-8")


def payload_hash(payload: bytes) -> str:
    """Lowercase hex SHA-256 of payload (64 chars)."""
    return hashlib.sha256(payload).hexdigest()


def document_hash(document: Any) -> str:
    """canonicalize + payload_hash in one step."""
    return payload_hash(canonicalize(document))


def signing_input(hex_hash: str) -> bytes:
    """
    Bytes that get signed and verified: the ASCII hex digest itself.

    Signing the fixed-size digest rather than the document keeps the signed
    artifact constant-size and lets the verifier re-check from the stored hash.
    """
    return hex_hash.encode("ascii")


__all__ = [
    "CANONICAL_FIELDS",
    "HASH_HEX_LEN",
    "canonicalize",
    "payload_hash",
    "document_hash",
    "signing_input",
]
