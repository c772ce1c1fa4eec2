"""Product identifier normalization.

Carts are written by the client and may hold anything. Every identifier is
normalized exactly once, here, before it is used to look up a snapshot or
sent to the order service.

Two shapes are accepted: a 24 character hexadecimal object id (the
marketplace backend's native key, compared case-insensitively) and, unless
``strict`` is set, a plain token of letters, digits and ``_.:-``.
"""

import os
import re

OBJECT_ID = re.compile(r"^[0-9a-f]{24}$")
TOKEN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.:-]{0,127}$")


def strict_identifiers() -> bool:
    return os.environ.get("STRICT_IDENTIFIERS", "false").lower() in ("1", "true", "yes")


def normalize_identifier(value, strict: bool = False) -> str | None:
    """Canonical form of ``value``, or None when it is not a valid identifier."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        value = str(value)
    if not isinstance(value, str):
        return None

    candidate = value.strip()
    if OBJECT_ID.match(candidate.lower()):
        return candidate.lower()
    if strict:
        return None
    if TOKEN.match(candidate):
        return candidate
    return None


def is_valid_identifier(value, strict: bool = False) -> bool:
    return normalize_identifier(value, strict=strict) is not None
