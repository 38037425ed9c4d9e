"""Bech32 identifiers for Nostr keys and event ids.

Identifiers such as ``npub1...`` and ``note1...`` carry a 32-byte value as
``<hrp>1<data><checksum>``. The checksum and the 8-to-5 bit repacking come
from the ``bech32`` package; this module only decides which payloads are
acceptable.

Two payload layouts exist in the wild:

* the NIP-19 form: the 32 bytes alone (``witness_version=False``);
* the versioned form: a zero byte followed by the 32 bytes, as produced by
  the viewer's original encoder (``witness_version=True``, the default).

[decode()][nostrview.utils.nip19.decode] accepts both. In strict mode (the
default) it rejects every non-canonical encoding: non-zero or oversized
padding, a payload that is neither 32 bytes nor a zero byte plus 32 bytes.
``strict=False`` keeps the legacy behaviour of ignoring the padding and
dropping one leading zero byte when present.

Examples:
    ```python
    >>> value = bytes(32)
    >>> text = encode("npub", value, witness_version=False)
    >>> decode(text, "npub") == value
    True
    ```
"""

from __future__ import annotations

from typing import Final

import bech32

from nostrview.core.exceptions import DecodeError


SEPARATOR: Final[str] = "1"
CHECKSUM_LENGTH: Final[int] = 6
MAX_LENGTH: Final[int] = 90
PAYLOAD_LENGTH: Final[int] = 32


def _check_hrp(hrp: str) -> None:
    if not hrp or any(ord(c) < 33 or ord(c) > 126 for c in hrp):
        raise DecodeError(f"invalid human-readable part: {hrp!r}")


def encode(hrp: str, data: bytes, *, witness_version: bool = True) -> str:
    """Encode *data* as a bech32 string with prefix *hrp*.

    Args:
        hrp: Human-readable prefix, e.g. ``"npub"``.
        data: Raw bytes to encode.
        witness_version: Prepend a zero version byte before repacking.
            Pass False for the NIP-19 layout.

    Raises:
        DecodeError: If *hrp* is empty or contains non-printable characters.
    """
    hrp = hrp.lower()
    _check_hrp(hrp)
    payload = b"\x00" + bytes(data) if witness_version else bytes(data)
    return bech32.bech32_encode(hrp, bech32.convertbits(payload, 8, 5))


def _rejection(text: str) -> str:
    """Name the first structural fault of a string the decoder refused."""
    if text.lower() != text and text.upper() != text:
        return "mixed-case bech32 string"
    text = text.lower()
    pos = text.rfind(SEPARATOR)
    if pos < 1:
        return "missing human-readable part or separator"
    if len(text) - pos - 1 < CHECKSUM_LENGTH:
        return "data part shorter than the checksum"
    if len(text) > MAX_LENGTH:
        return f"longer than {MAX_LENGTH} characters"
    for c in text[pos + 1 :]:
        if c not in bech32.CHARSET:
            return f"invalid character: {c!r}"
    if any(ord(c) < 33 or ord(c) > 126 for c in text[:pos]):
        return f"invalid human-readable part: {text[:pos]!r}"
    return "checksum mismatch"


def split(text: str) -> tuple[str, list[int]]:
    """Split and checksum-verify a bech32 string.

    Returns:
        The lowercase prefix and the 5-bit data groups without checksum.

    Raises:
        DecodeError: On mixed case, a missing separator, an unknown
            character or a checksum mismatch.
    """
    if not isinstance(text, str):
        raise DecodeError(f"expected str, got {type(text).__name__}")
    hrp, groups = bech32.bech32_decode(text)
    if hrp is None or groups is None:
        raise DecodeError(_rejection(text))
    return hrp, groups


def decode(text: str, hrp: str | None = None, *, strict: bool = True) -> bytes:
    """Decode a bech32 string into its 32-byte value.

    Args:
        text: The bech32 string, e.g. ``"npub1..."``.
        hrp: Required prefix; any prefix is accepted when None.
        strict: Reject non-canonical padding and payload layouts.

    Raises:
        DecodeError: If the string is malformed, has the wrong prefix or
            fails the checksum, or (strict mode) is non-canonical.
    """
    found, groups = split(text)
    if hrp is not None and found != hrp.lower():
        raise DecodeError(f"expected prefix {hrp!r}, got {found!r}")

    if not strict:
        # whole bytes only; trailing padding bits are dropped unchecked
        payload = bytes(bech32.convertbits(groups, 5, 8, True)[: len(groups) * 5 // 8])
        return payload[1:] if payload[:1] == b"\x00" else payload

    converted = bech32.convertbits(groups, 5, 8, False)
    if converted is None:
        raise DecodeError("non-canonical padding")
    payload = bytes(converted)
    if len(payload) == PAYLOAD_LENGTH + 1 and payload[0] == 0:
        return payload[1:]
    if len(payload) == PAYLOAD_LENGTH:
        return payload
    raise DecodeError(f"unexpected payload length {len(payload)}")
