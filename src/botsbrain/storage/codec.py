# src/botsbrain/storage/codec.py
"""
JSON codec shared by every storage tier.

All tiers hold the encoded text of a value, so a value read back from
memory, Redis or PostgreSQL has the same shape.
"""

from __future__ import annotations

import json
import re
from typing import Any

from ..exceptions import SerializationError

# An escaped NUL that is not itself part of an escaped backslash.
_NUL_ESCAPE_RE = re.compile(r"(?<!\\)(?:\\\\)*\\u0000")


def encode_value(key: str, value: Any) -> str:
    """Encode *value* as compact JSON text.

    Strings containing NUL are refused because PostgreSQL JSONB cannot
    store them, and every tier must accept the same values.

    Raises:
        SerializationError: If the value is not JSON-serialisable.
    """
    try:
        encoded = json.dumps(value, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise SerializationError(key, f"Cannot encode value of type {type(value).__name__}: {e}") from e
    if _NUL_ESCAPE_RE.search(encoded):
        raise SerializationError(key, "Cannot encode strings containing NUL characters")
    return encoded


def decode_value(key: str, raw: str) -> Any:
    """Decode JSON text produced by :func:`encode_value`.

    Raises:
        SerializationError: If the stored text is not valid JSON.
    """
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as e:
        raise SerializationError(key, f"Stored value is not valid JSON: {e}") from e


__all__ = ["decode_value", "encode_value"]
