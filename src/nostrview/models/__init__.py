"""Pure immutable models with zero I/O for relays, events, filters and frames.

The models layer is the foundation of the package. It has no dependencies on
any other nostrview package; validation happens in constructors so invalid
instances never escape.

Attributes:
    Relay: Validated relay URL with RFC 3986 parsing and automatic
        [NetworkType][nostrview.models.constants.NetworkType] detection.
    Event: Immutable NIP-01 event parsed from relay JSON. Signatures are
        carried but never verified.
    Filter: Typed NIP-01 filter builder rendering the ``REQ`` wire object.
    Profile: Parsed kind 0 metadata.
    RelayMessage: Union of the parsed relay-to-client frames.

See Also:
    [nostrview.client][nostrview.client]: Connection and subscription layer
        built on these models.
"""

from .constants import (
    EVENT_KIND_MAX,
    ConnectionState,
    EventKind,
    MessageType,
    NetworkType,
    ReferenceType,
)
from .event import Event
from .filter import Filter, filter_to_wire
from .message import (
    AuthMessage,
    ClosedMessage,
    EoseMessage,
    EventMessage,
    NoticeMessage,
    RelayMessage,
    close_frame,
    parse_relay_message,
    req_frame,
)
from .profile import DEFAULT_REACTION, Profile, follow_list, reaction_emoji
from .relay import Relay


__all__ = [
    "DEFAULT_REACTION",
    "EVENT_KIND_MAX",
    "AuthMessage",
    "ClosedMessage",
    "ConnectionState",
    "EoseMessage",
    "Event",
    "EventKind",
    "EventMessage",
    "Filter",
    "MessageType",
    "NetworkType",
    "NoticeMessage",
    "Profile",
    "ReferenceType",
    "Relay",
    "RelayMessage",
    "close_frame",
    "filter_to_wire",
    "follow_list",
    "parse_relay_message",
    "reaction_emoji",
    "req_frame",
]
