"""Notes quoted inside other notes.

A note can embed another one by writing ``nostr:note1...`` in its text.
[resolve_references()][nostrview.services.content.resolve_references] looks
every quoted note up once through an
[EventFetcher][nostrview.client.client.EventFetcher] so a page can show it
inline. Profile references (``nostr:npub1...``) are left to the renderer.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from functools import partial

from nostrview.client.client import EventFetcher
from nostrview.core.logger import Logger
from nostrview.models.constants import ReferenceType
from nostrview.models.event import Event
from nostrview.utils.keys import find_references


MAX_EMBEDS = 20

_logger = Logger("content")


def referenced_notes(events: Iterable[Event]) -> list[str]:
    """Return the distinct event ids quoted by *events*, in reading order."""
    ids: dict[str, None] = {}
    for event in events:
        for reference in find_references(event.content):
            if reference.type is ReferenceType.EVENT_ID:
                ids.setdefault(reference.hex, None)
    return list(ids)


def _settle(future: asyncio.Future[Event | None], event: Event | None) -> None:
    if not future.done():
        future.set_result(event)


async def resolve_references(
    fetcher: EventFetcher,
    events: Iterable[Event],
    *,
    wait: float = 3.0,
    limit: int = MAX_EMBEDS,
) -> dict[str, Event]:
    """Fetch the notes quoted in the content of *events*.

    Notes already among *events* are not fetched again. At most *limit*
    lookups run, all at once; the call returns after *wait* seconds or
    when every lookup has either matched or been reported missing.

    Returns:
        The quoted notes that were found, keyed by event id.
    """
    events = list(events)
    known = {event.id for event in events}
    wanted = [event_id for event_id in referenced_notes(events) if event_id not in known][:limit]
    if not wanted:
        return {}

    loop = asyncio.get_running_loop()
    pending: dict[str, asyncio.Future[Event | None]] = {}
    for event_id in wanted:
        future: asyncio.Future[Event | None] = loop.create_future()
        pending[event_id] = future
        fetcher.fetch_event(event_id, partial(_settle, future), on_missing=partial(_settle, future, None))

    await asyncio.wait(pending.values(), timeout=wait)

    resolved: dict[str, Event] = {}
    for event_id, future in pending.items():
        event = future.result() if future.done() else None
        if event is not None:
            resolved[event_id] = event
    _logger.debug("references_resolved", wanted=len(wanted), found=len(resolved))
    return resolved
