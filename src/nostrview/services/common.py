"""Shared helpers for the page loaders.

Only primitives used by more than one loader live here; page-specific
logic belongs in its own module.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Mapping
from typing import Any

from nostrview.client.client import Client
from nostrview.models.event import Event
from nostrview.models.filter import Filter


async def collect_events(
    client: Client,
    filter_: Filter | Mapping[str, Any],
    *,
    wait: float,
    prefix: str = "collect",
) -> list[Event]:
    """Run a one-shot subscription and return its events.

    The subscription ends after *wait* seconds, or as soon as every relay
    that received the ``REQ`` has sent ``EOSE``. It is always closed before
    returning, including on cancellation.

    Returns:
        Distinct events (by id), newest first.
    """
    loop = asyncio.get_running_loop()
    finished: asyncio.Future[None] = loop.create_future()
    events: dict[str, Event] = {}
    expected = set(client.connected_urls)
    eosed: set[str] = set()

    def on_event(event: Event, _relay_url: str) -> None:
        events.setdefault(event.id, event)

    def on_eose(relay_url: str) -> None:
        eosed.add(relay_url)
        if expected <= eosed and not finished.done():
            finished.set_result(None)

    subscription_id = client.new_subscription_id(prefix)
    sent = client.subscribe(subscription_id, filter_, on_event, on_eose)
    try:
        if sent:
            with contextlib.suppress(TimeoutError):
                async with asyncio.timeout(wait):
                    await finished
    finally:
        client.unsubscribe(subscription_id)

    return sorted(events.values(), key=lambda e: e.created_at, reverse=True)
