"""
Named subscriptions multiplexed across every relay in the pool.

[SubscriptionRegistry][nostrview.client.registry.SubscriptionRegistry] maps
subscription ids to callbacks. Subscribing sends ``["REQ", id, filter]`` to
the relays live at that moment; unsubscribing sends ``["CLOSE", id]``. Every
inbound frame from every relay passes through
[dispatch()][nostrview.client.registry.SubscriptionRegistry.dispatch], which
routes ``EVENT`` and ``EOSE`` to the owning subscription.

All methods are synchronous and run on the event loop thread, so a frame is
either dispatched before an ``unsubscribe`` or dropped after it: an event
for an id that is no longer registered never reaches a callback.

Note:
    The registry does not deduplicate. The same event delivered by three
    relays invokes ``on_event`` three times, once per relay URL.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from nostrview.core.exceptions import ProtocolError, SubscriptionError
from nostrview.core.logger import Logger
from nostrview.core.metrics import (
    EVENTS_DISPATCHED,
    FRAMES_DROPPED,
    FRAMES_RECEIVED,
    SUBSCRIPTIONS_ACTIVE,
)
from nostrview.models.event import Event
from nostrview.models.filter import Filter, filter_to_wire
from nostrview.models.message import (
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


EventCallback = Callable[[Event, str], None]
EoseCallback = Callable[[str], None]


class FrameSender(Protocol):
    """Anything that can fan a text frame out to relays."""

    def send(self, frame: str) -> int: ...


@dataclass(frozen=True, slots=True)
class Subscription:
    """A registered subscription.

    Attributes:
        id: Subscription id as sent in ``REQ``/``CLOSE``.
        filter: Wire filter object.
        on_event: Called with ``(event, relay_url)`` per delivered event.
        on_eose: Called with ``relay_url`` per end-of-stored-events marker.
    """

    id: str
    filter: dict[str, Any]
    on_event: EventCallback
    on_eose: EoseCallback | None = None


def _parse_frame(text: str) -> RelayMessage | None:
    try:
        return parse_relay_message(text)
    except ValueError as e:
        raise ProtocolError(str(e)) from e


def _parse_event(payload: dict[str, Any]) -> Event:
    try:
        return Event.from_dict(payload)
    except (ValueError, TypeError) as e:
        raise ProtocolError(f"malformed event: {e}") from e


class SubscriptionRegistry:
    """Subscription table and inbound frame router.

    Args:
        sender: Destination for ``REQ``/``CLOSE`` frames, normally the
            [RelayPool][nostrview.client.pool.RelayPool].
    """

    def __init__(self, sender: FrameSender) -> None:
        self._sender = sender
        self._subscriptions: dict[str, Subscription] = {}
        self._logger = Logger("registry")

    def __contains__(self, subscription_id: object) -> bool:
        return subscription_id in self._subscriptions

    def __len__(self) -> int:
        return len(self._subscriptions)

    @property
    def ids(self) -> list[str]:
        return list(self._subscriptions)

    def get(self, subscription_id: str) -> Subscription | None:
        return self._subscriptions.get(subscription_id)

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def subscribe(
        self,
        subscription_id: str,
        filter_: Filter | Mapping[str, Any],
        on_event: EventCallback,
        on_eose: EoseCallback | None = None,
    ) -> int:
        """Register a subscription and send its ``REQ`` to the live relays.

        Relays connected later do not receive the ``REQ``.

        Returns:
            Number of relays the ``REQ`` was queued on.

        Raises:
            SubscriptionError: If *subscription_id* is empty or already active.
            TypeError: If *filter_* is neither a Filter nor a mapping.
        """
        if not isinstance(subscription_id, str) or not subscription_id:
            raise SubscriptionError("subscription id must be a non-empty string")
        if subscription_id in self._subscriptions:
            raise SubscriptionError(f"subscription {subscription_id!r} is already active")

        wire = filter_to_wire(filter_)
        self._subscriptions[subscription_id] = Subscription(subscription_id, wire, on_event, on_eose)
        SUBSCRIPTIONS_ACTIVE.set(len(self._subscriptions))
        sent = self._sender.send(req_frame(subscription_id, wire))
        self._logger.debug("subscription_opened", subscription=subscription_id, relays=sent)
        return sent

    def unsubscribe(self, subscription_id: str) -> bool:
        """Remove a subscription and send ``CLOSE``.

        Returns:
            False, without sending anything, if the id was not registered.
        """
        if self._subscriptions.pop(subscription_id, None) is None:
            return False
        SUBSCRIPTIONS_ACTIVE.set(len(self._subscriptions))
        sent = self._sender.send(close_frame(subscription_id))
        self._logger.debug("subscription_closed", subscription=subscription_id, relays=sent)
        return True

    def clear(self) -> None:
        """Forget every subscription without sending ``CLOSE``."""
        if self._subscriptions:
            self._logger.debug("subscriptions_cleared", count=len(self._subscriptions))
        self._subscriptions.clear()
        SUBSCRIPTIONS_ACTIVE.set(0)

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def dispatch(self, relay_url: str, text: str) -> None:
        """Route one inbound frame from *relay_url*.

        Malformed frames and events are logged and dropped. Exceptions from
        callbacks are logged and do not propagate to the connection.
        """
        try:
            message = _parse_frame(text)
        except ProtocolError as e:
            self._drop("malformed_frame", relay_url, str(e))
            return

        if message is None:
            FRAMES_RECEIVED.labels(type="unknown").inc()
            self._logger.debug("frame_ignored", relay=relay_url)
            return
        FRAMES_RECEIVED.labels(type=message.type.value).inc()

        if isinstance(message, EventMessage):
            self._dispatch_event(relay_url, message)
        elif isinstance(message, EoseMessage):
            self._dispatch_eose(relay_url, message)
        elif isinstance(message, ClosedMessage):
            self._logger.info(
                "subscription_closed_by_relay",
                relay=relay_url,
                subscription=message.subscription_id,
                message=message.message,
            )
        elif isinstance(message, AuthMessage):
            self._logger.info("auth_challenge_ignored", relay=relay_url)
        elif isinstance(message, NoticeMessage):
            self._logger.info("relay_notice", relay=relay_url, message=message.message)

    def _dispatch_event(self, relay_url: str, message: EventMessage) -> None:
        subscription = self._subscriptions.get(message.subscription_id)
        if subscription is None:
            self._drop("unknown_subscription", relay_url, message.subscription_id)
            return
        try:
            event = _parse_event(message.event)
        except ProtocolError as e:
            self._drop("malformed_event", relay_url, str(e))
            return

        EVENTS_DISPATCHED.inc()
        try:
            subscription.on_event(event, relay_url)
        except Exception as e:
            self._logger.error(
                "callback_failed",
                subscription=subscription.id,
                relay=relay_url,
                error=f"{type(e).__name__}: {e}",
            )

    def _dispatch_eose(self, relay_url: str, message: EoseMessage) -> None:
        subscription = self._subscriptions.get(message.subscription_id)
        if subscription is None:
            self._drop("unknown_subscription", relay_url, message.subscription_id)
            return
        if subscription.on_eose is None:
            return
        try:
            subscription.on_eose(relay_url)
        except Exception as e:
            self._logger.error(
                "callback_failed",
                subscription=subscription.id,
                relay=relay_url,
                error=f"{type(e).__name__}: {e}",
            )

    def _drop(self, reason: str, relay_url: str, detail: str) -> None:
        FRAMES_DROPPED.labels(reason=reason).inc()
        if reason == "unknown_subscription":
            self._logger.debug("frame_dropped", reason=reason, relay=relay_url, detail=detail)
        else:
            self._logger.warning("frame_dropped", reason=reason, relay=relay_url, detail=detail)
