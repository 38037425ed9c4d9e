"""Thread view: a note, its direct replies, its author and their reactions."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from nostrview.client.client import Client
from nostrview.core.logger import Logger
from nostrview.models.constants import EventKind
from nostrview.models.event import Event
from nostrview.models.filter import Filter
from nostrview.models.profile import Profile

from .common import collect_events
from .content import resolve_references
from .profile import REACTION_WINDOW, Reactions, load_profile, load_reactions


_logger = Logger("thread")


@dataclass(slots=True)
class Thread:
    """A root note with the notes that reference it.

    ``root`` is None when no relay served the note; replies may still be
    present in that case. ``embedded`` holds the notes quoted by the root
    or a reply, ``reactions`` the reactions per note id.
    """

    event_id: str
    root: Event | None = None
    replies: list[Event] = field(default_factory=list)
    author: Profile | None = None
    embedded: dict[str, Event] = field(default_factory=dict)
    reactions: dict[str, Reactions] = field(default_factory=dict)

    @property
    def found(self) -> bool:
        return self.root is not None

    @property
    def notes(self) -> list[Event]:
        """The root (when found) followed by the replies."""
        return ([self.root] if self.root is not None else []) + self.replies


async def _fetch_root(client: Client, event_id: str, wait: float) -> Event | None:
    try:
        async with asyncio.timeout(wait):
            return await client.get_event(event_id)
    except TimeoutError:
        return None


async def _load_author(client: Client, root: Event | None) -> Profile | None:
    return await load_profile(client, root.pubkey) if root is not None else None


async def _load_reactions(client: Client, notes: list[Event], wait: float) -> dict[str, Reactions]:
    results = await asyncio.gather(*(load_reactions(client, note.id, wait) for note in notes))
    return {r.event_id: r for r in results}


async def load_thread(
    client: Client,
    event_id: str,
    wait: float = 5.0,
    *,
    reactions_for: int = 20,
    reaction_window: float = REACTION_WINDOW,
) -> Thread:
    """Fetch the root note and its replies concurrently, then everything around them.

    The second phase runs concurrently too: the author profile, the notes
    quoted in the thread and the reactions to the first *reactions_for*
    notes (root first, then replies oldest first), all bounded by
    *reaction_window* or *wait*.
    """
    root, replies = await asyncio.gather(
        _fetch_root(client, event_id, wait),
        collect_events(
            client,
            Filter(kinds=[EventKind.TEXT_NOTE], tags={"e": [event_id]}, limit=100),
            wait=wait,
            prefix="replies",
        ),
    )
    replies = sorted((r for r in replies if r.id != event_id), key=lambda e: e.created_at)
    thread = Thread(event_id, root, replies)
    if root is None:
        _logger.info("thread_root_not_found", event=event_id[:8], replies=len(replies))

    notes = thread.notes
    thread.author, thread.embedded, thread.reactions = await asyncio.gather(
        _load_author(client, root),
        resolve_references(client, notes, wait=wait),
        _load_reactions(client, notes[:reactions_for], reaction_window),
    )
    return thread
