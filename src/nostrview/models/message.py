"""NIP-01 wire frames exchanged with relays.

Relay-to-client frames are parsed into small immutable message objects by
[parse_relay_message()][nostrview.models.message.parse_relay_message];
client-to-relay frames are built by
[req_frame()][nostrview.models.message.req_frame] and
[close_frame()][nostrview.models.message.close_frame].

Only the envelope is validated here. The event object inside an ``EVENT``
frame is kept as a raw ``dict`` so that the registry can skip parsing it
for subscriptions it no longer tracks.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .constants import MessageType
from .filter import Filter, filter_to_wire


@dataclass(frozen=True, slots=True)
class EventMessage:
    """``["EVENT", <subscription_id>, <event>]``"""

    subscription_id: str
    event: dict[str, Any]
    type: MessageType = MessageType.EVENT


@dataclass(frozen=True, slots=True)
class EoseMessage:
    """``["EOSE", <subscription_id>]`` -- end of stored events."""

    subscription_id: str
    type: MessageType = MessageType.EOSE


@dataclass(frozen=True, slots=True)
class ClosedMessage:
    """``["CLOSED", <subscription_id>, <message>]`` -- server ended a subscription."""

    subscription_id: str
    message: str
    type: MessageType = MessageType.CLOSED


@dataclass(frozen=True, slots=True)
class AuthMessage:
    """``["AUTH", <challenge>]`` -- NIP-42 challenge (observed, never answered)."""

    challenge: str
    type: MessageType = MessageType.AUTH


@dataclass(frozen=True, slots=True)
class NoticeMessage:
    """``["NOTICE", <message>]`` -- human-readable relay notice."""

    message: str
    type: MessageType = MessageType.NOTICE


RelayMessage = EventMessage | EoseMessage | ClosedMessage | AuthMessage | NoticeMessage


def _str_at(frame: list[Any], index: int, what: str) -> str:
    if len(frame) <= index or not isinstance(frame[index], str):
        raise ValueError(f"{frame[0]} frame requires a string {what} at position {index}")
    return frame[index]


def parse_relay_message(text: str | bytes) -> RelayMessage | None:
    """Parse a single relay-to-client frame.

    Args:
        text: Raw WebSocket TEXT payload.

    Returns:
        The typed message, or ``None`` when the frame type is not one the
        client understands (such frames are ignored by the caller).

    Raises:
        ValueError: If the payload is not JSON, not a non-empty array, or
            a known frame type is missing required elements.
    """
    try:
        frame = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValueError(f"frame is not valid JSON: {e}") from None

    if not isinstance(frame, list) or not frame or not isinstance(frame[0], str):
        raise ValueError("frame must be a JSON array starting with a string")

    kind = frame[0]
    if kind == MessageType.EVENT:
        sub_id = _str_at(frame, 1, "subscription id")
        if len(frame) < 3 or not isinstance(frame[2], dict):
            raise ValueError("EVENT frame requires an event object at position 2")
        return EventMessage(sub_id, frame[2])
    if kind == MessageType.EOSE:
        return EoseMessage(_str_at(frame, 1, "subscription id"))
    if kind == MessageType.CLOSED:
        sub_id = _str_at(frame, 1, "subscription id")
        message = frame[2] if len(frame) > 2 and isinstance(frame[2], str) else ""
        return ClosedMessage(sub_id, message)
    if kind == MessageType.AUTH:
        return AuthMessage(_str_at(frame, 1, "challenge"))
    if kind == MessageType.NOTICE:
        return NoticeMessage(_str_at(frame, 1, "message"))
    return None


def _dumps(frame: list[Any]) -> str:
    return json.dumps(frame, separators=(",", ":"), ensure_ascii=False)


def req_frame(subscription_id: str, filter_: Filter | Mapping[str, Any]) -> str:
    """Build ``["REQ", <subscription_id>, <filter>]``."""
    return _dumps(["REQ", subscription_id, filter_to_wire(filter_)])


def close_frame(subscription_id: str) -> str:
    """Build ``["CLOSE", <subscription_id>]``."""
    return _dumps(["CLOSE", subscription_id])
