"""Conversions between Nostr bech32 identifiers and hex keys.

Public keys travel as ``npub1...`` and event ids as ``note1...``; relays and
filters always use 64-character lowercase hex. The helpers here accept
either form from user input and never touch private keys.

Examples:
    ```python
    from nostrview.utils.keys import normalize_key, validate_pubkey

    hex_key = normalize_key("npub1...")
    assert validate_pubkey(hex_key)
    ```

See Also:
    [nostrview.utils.nip19][nostrview.utils.nip19]: The underlying codec.
"""

from __future__ import annotations

import logging
import re
from typing import Final, NamedTuple

from nostrview.core.exceptions import DecodeError
from nostrview.models.constants import ReferenceType

from . import nip19


logger = logging.getLogger(__name__)

NPUB_PREFIX: Final[str] = "npub"
NOTE_PREFIX: Final[str] = "note"
SELF_CHECK_HEX: Final[str] = "82341f882b6eabcd2ba7f1ef90aad961cf074af15b9ef44a09f9d2a8fbfbe6a2"

_HEX64_RE = re.compile(r"^[0-9a-fA-F]{64}\Z")
_REFERENCE_RE = re.compile(r"nostr:((?:note1|npub1|nevent1|nprofile1)[a-z0-9]+)")


class Reference(NamedTuple):
    """A decoded ``npub``/``note`` identifier."""

    type: ReferenceType
    hex: str


def _hex_to_bytes(value: str) -> bytes:
    text = value.removeprefix("0x").rjust(64, "0")
    if not _HEX64_RE.match(text):
        raise DecodeError(f"not a 32-byte hex value: {value!r}")
    return bytes.fromhex(text)


def _encode(hrp: str, value: str, witness_version: bool) -> str:
    return nip19.encode(hrp, _hex_to_bytes(value), witness_version=witness_version)


def _decode(hrp: str, text: str, strict: bool) -> str:
    return nip19.decode(text, hrp, strict=strict).hex().rjust(64, "0")


def hex_to_npub(value: str, *, witness_version: bool = True) -> str:
    """Encode a hex public key as ``npub1...``.

    A ``0x`` prefix is stripped and short values are left-padded to 64
    characters.

    Raises:
        DecodeError: If *value* is not hex of at most 32 bytes.
    """
    return _encode(NPUB_PREFIX, value, witness_version)


def npub_to_hex(npub: str, *, strict: bool = True) -> str:
    """Decode ``npub1...`` to 64-character lowercase hex.

    Raises:
        DecodeError: If *npub* is not a valid public key identifier.
    """
    return _decode(NPUB_PREFIX, npub, strict)


def hex_to_note(value: str, *, witness_version: bool = True) -> str:
    """Encode a hex event id as ``note1...``."""
    return _encode(NOTE_PREFIX, value, witness_version)


def note_to_hex(note: str, *, strict: bool = True) -> str:
    """Decode ``note1...`` to 64-character lowercase hex.

    Raises:
        DecodeError: If *note* is not a valid event identifier.
    """
    return _decode(NOTE_PREFIX, note, strict)


def normalize_key(value: str) -> str:
    """Return the hex form of an ``npub`` key; any other input is returned unchanged.

    Non-bech32 input is not validated here, see
    [validate_pubkey()][nostrview.utils.keys.validate_pubkey].

    Raises:
        DecodeError: If *value* starts with ``npub`` but does not decode.
    """
    if value.lower().startswith(NPUB_PREFIX):
        return npub_to_hex(value)
    return value


def validate_pubkey(value: str) -> bool:
    """Whether *value* normalizes to exactly 64 hex characters."""
    try:
        return bool(_HEX64_RE.match(normalize_key(value)))
    except (DecodeError, AttributeError, TypeError):
        return False


def decode_reference(identifier: str) -> Reference:
    """Decode an ``npub1...`` or ``note1...`` identifier.

    Raises:
        DecodeError: If the identifier has another prefix or does not decode.
    """
    lowered = identifier.lower()
    if lowered.startswith(NPUB_PREFIX + nip19.SEPARATOR):
        return Reference(ReferenceType.PUBKEY, npub_to_hex(identifier))
    if lowered.startswith(NOTE_PREFIX + nip19.SEPARATOR):
        return Reference(ReferenceType.EVENT_ID, note_to_hex(identifier))
    raise DecodeError(f"unsupported reference type: {identifier[:16]!r}")


def find_references(content: str) -> list[Reference]:
    """Extract the decodable ``nostr:npub1...``/``nostr:note1...`` references in *content*.

    ``nevent``/``nprofile`` references and identifiers that fail to decode
    are skipped. Order follows the text; repeats are kept.
    """
    found: list[Reference] = []
    for match in _REFERENCE_RE.finditer(content):
        identifier = match.group(1)
        if identifier.startswith(("nevent1", "nprofile1")):
            continue
        try:
            found.append(decode_reference(identifier))
        except DecodeError as e:
            logger.debug("reference_skipped identifier=%s error=%s", identifier[:16], e)
    return found


def self_check() -> tuple[str, str]:
    """Encode [SELF_CHECK_HEX][nostrview.utils.keys.SELF_CHECK_HEX] and decode it back.

    Returns:
        ``(npub, hex)``; the conversion is sound when ``hex`` equals the
        input constant.
    """
    npub = hex_to_npub(SELF_CHECK_HEX)
    return npub, npub_to_hex(npub)
