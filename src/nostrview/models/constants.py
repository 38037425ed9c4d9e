"""Shared constants for the models layer.

Defines enumerations used across model modules and by the client layer.
Placing them here avoids circular dependencies between
[nostrview.models][nostrview.models] and [nostrview.client][nostrview.client].

See Also:
    [nostrview.models.relay][]: Uses [NetworkType][nostrview.models.constants.NetworkType]
        to classify relay URLs during construction.
    [nostrview.models.message][]: Uses [MessageType][nostrview.models.constants.MessageType]
        to tag parsed wire frames.
"""

from __future__ import annotations

from enum import IntEnum, StrEnum
from typing import Final


class NetworkType(StrEnum):
    """Network type enum for relay classification.

    Each relay URL is classified into exactly one network type during
    [Relay][nostrview.models.relay.Relay] construction.

    Attributes:
        CLEARNET: Public internet relay, dialled directly.
        TOR: Tor hidden service identified by a ``.onion`` hostname.
        I2P: I2P eepsite identified by a ``.i2p`` hostname.
        LOKI: Lokinet service identified by a ``.loki`` hostname.
        LOCAL: Loopback or private address (a developer relay).
        UNKNOWN: Hostname that could not be classified (rejected).
    """

    CLEARNET = "clearnet"
    TOR = "tor"
    I2P = "i2p"
    LOKI = "loki"
    LOCAL = "local"
    UNKNOWN = "unknown"


OVERLAY_NETWORKS: Final[frozenset[NetworkType]] = frozenset(
    {NetworkType.TOR, NetworkType.I2P, NetworkType.LOKI}
)


class ConnectionState(StrEnum):
    """Lifecycle of a single relay connection.

    Transitions are strictly ``CONNECTING -> OPEN -> CLOSED`` (or
    ``CONNECTING -> CLOSED`` on a failed attempt). A closed connection is
    never reopened; reconnection means creating a new one.
    """

    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class MessageType(StrEnum):
    """First element of a relay-to-client wire frame (NIP-01)."""

    EVENT = "EVENT"
    EOSE = "EOSE"
    CLOSED = "CLOSED"
    AUTH = "AUTH"
    NOTICE = "NOTICE"


class EventKind(IntEnum):
    """Nostr event kinds consumed by the viewer services.

    Attributes:
        SET_METADATA: Kind 0 -- user profile metadata, JSON content (NIP-01).
        TEXT_NOTE: Kind 1 -- short text note (NIP-01).
        CONTACTS: Kind 3 -- follow list carried as ``p`` tags (NIP-02).
        REACTION: Kind 7 -- reaction, content holds the emoji (NIP-25).
    """

    SET_METADATA = 0
    TEXT_NOTE = 1
    CONTACTS = 3
    REACTION = 7


class ReferenceType(StrEnum):
    """Kind of entity a bech32 reference points at."""

    PUBKEY = "pubkey"
    EVENT_ID = "eventid"


EVENT_KIND_MAX: Final[int] = 65_535
