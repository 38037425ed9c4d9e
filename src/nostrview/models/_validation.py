"""Shared validation helpers for frozen dataclass models.

Private module -- not part of the public API. Used by ``__post_init__``
and ``from_dict`` methods in sibling model modules to enforce runtime type
constraints on data received from untrusted relays.
"""

from __future__ import annotations

import re
from typing import Any


HEX64_RE = re.compile(r"^[0-9a-fA-F]{64}\Z")


def validate_instance(value: Any, expected: type, name: str) -> None:
    """Raise ``TypeError`` if *value* is not an instance of *expected*."""
    if not isinstance(value, expected):
        article = "an" if expected.__name__[0] in "AEIOUaeiou" else "a"
        raise TypeError(f"{name} must be {article} {expected.__name__}, got {type(value).__name__}")


def validate_non_negative_int(value: Any, name: str) -> None:
    """Raise if *value* is not a non-negative ``int`` (``bool`` excluded)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{name} must be non-negative")


def validate_hex64(value: Any, name: str) -> str:
    """Return *value* lowercased if it is exactly 64 hex characters.

    Raises:
        TypeError: If *value* is not a ``str``.
        ValueError: If *value* is not 64 hex characters.
    """
    validate_instance(value, str, name)
    if not HEX64_RE.match(value):
        raise ValueError(f"{name} must be 64 hex characters, got {value[:16]!r}")
    return value.lower()


def validate_tags(value: Any, name: str) -> tuple[tuple[str, ...], ...]:
    """Convert a JSON tag array into a tuple of string tuples.

    Raises:
        TypeError: If *value* is not a list of lists of strings.
    """
    validate_instance(value, list, name)
    result: list[tuple[str, ...]] = []
    for tag in value:
        validate_instance(tag, list, f"{name}[]")
        for item in tag:
            validate_instance(item, str, f"{name}[][]")
        result.append(tuple(tag))
    return tuple(result)
