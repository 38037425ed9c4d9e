"""
Profile page loaders: metadata, posts, follow list and reactions.

Each loader opens its own subscription through the
[Client][nostrview.client.client.Client] and closes it before returning.
"Not found" is expressed as ``None`` or an empty result, never as an
exception.

Examples:
    ```python
    async with Client() as client:
        page = await load_profile_page(client, normalize_key("npub1..."))
        print(page.profile.label if page.profile else "unknown")
    ```
"""

from __future__ import annotations

import asyncio
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field

from nostrview.client.client import Client
from nostrview.core.logger import Logger
from nostrview.models.constants import EventKind
from nostrview.models.event import Event
from nostrview.models.filter import Filter
from nostrview.models.profile import Profile, follow_list, reaction_emoji

from .common import collect_events


REACTION_WINDOW = 3.0
REACTION_LIFETIME = 8.0

_logger = Logger("profile")


def newest_profile(events: list[Event]) -> Profile | None:
    """Parse the newest well-formed kind 0 event in *events*."""
    for event in sorted(events, key=lambda e: e.created_at, reverse=True):
        try:
            return Profile.from_event(event)
        except ValueError as e:
            _logger.warning("profile_malformed", pubkey=event.pubkey[:16], event=event.id[:8], error=str(e))
    return None


async def load_profile(client: Client, pubkey: str, wait: float = 2.0) -> Profile | None:
    """Return the newest profile metadata published by *pubkey*."""
    events = await collect_events(
        client, Filter(kinds=[EventKind.SET_METADATA], authors=[pubkey], limit=1), wait=wait, prefix="profile"
    )
    return newest_profile(events)


async def load_posts(client: Client, pubkey: str, limit: int = 50, wait: float = 2.0) -> list[Event]:
    """Return up to *limit* text notes by *pubkey*, newest first."""
    events = await collect_events(
        client, Filter(kinds=[EventKind.TEXT_NOTE], authors=[pubkey], limit=limit), wait=wait, prefix="posts"
    )
    return events[:limit]


async def load_following(client: Client, pubkey: str, timeout: float = 5.0) -> list[str] | None:  # noqa: ASYNC109
    """Return the pubkeys followed by *pubkey*.

    Contact lists are collected until every relay has sent EOSE or
    *timeout* seconds pass. Relays may hold different versions of the
    list, so all non-empty lists are merged without duplicates, entries
    of the newest list first.

    Returns:
        The followed pubkeys, or None when no relay delivered a non-empty
        list.
    """
    events = await collect_events(
        client,
        Filter(kinds=[EventKind.CONTACTS], authors=[pubkey], limit=1),
        wait=timeout,
        prefix="following",
    )
    lists = [follow_list(e) for e in events if e.kind == EventKind.CONTACTS]
    following = list(dict.fromkeys(key for keys in lists for key in keys))
    if not following:
        _logger.info("following_not_found", pubkey=pubkey[:16])
        return None

    _logger.debug("following_loaded", pubkey=pubkey[:16], count=len(following), lists=sum(1 for k in lists if k))
    return following


# ---------------------------------------------------------------------------
# Reactions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Reactions:
    """Distinct kind 7 reactions to one event."""

    event_id: str
    events: tuple[Event, ...] = ()

    @property
    def total(self) -> int:
        return len(self.events)

    @property
    def counts(self) -> dict[str, int]:
        """Reaction count per emoji, most frequent first."""
        return dict(Counter(reaction_emoji(e) for e in self.events).most_common())


class ReactionTracker:
    """Live collection of reactions to a single event.

    After ``window`` seconds an update is pushed even when nothing arrived,
    so a front end can show "no reactions yet"; after ``lifetime`` seconds
    the subscription is closed regardless of activity.

    Args:
        client: Session used for the subscription.
        event_id: Hex id of the reacted-to event.
        on_update: Called with a fresh snapshot on every new reaction and
            at the end of the window.
        limit: ``limit`` of the reaction filter.
        window: Collection window in seconds.
        lifetime: Subscription lifetime in seconds.
    """

    def __init__(
        self,
        client: Client,
        event_id: str,
        on_update: Callable[[Reactions], None] | None = None,
        *,
        limit: int = 100,
        window: float = REACTION_WINDOW,
        lifetime: float = REACTION_LIFETIME,
    ) -> None:
        self._client = client
        self._event_id = event_id
        self._on_update = on_update
        self._limit = limit
        self._window = window
        self._lifetime = lifetime
        self._events: dict[str, Event] = {}
        self._subscription_id: str | None = None
        self._handles: list[asyncio.TimerHandle] = []
        self._window_closed: asyncio.Event = asyncio.Event()

    @property
    def active(self) -> bool:
        return self._subscription_id is not None

    def snapshot(self) -> Reactions:
        return Reactions(self._event_id, tuple(self._events.values()))

    def start(self) -> None:
        """Open the subscription and arm the window and lifetime timers."""
        if self._subscription_id is not None:
            return
        loop = asyncio.get_running_loop()
        self._subscription_id = self._client.new_subscription_id(f"reactions_{self._event_id[:8]}")
        self._client.subscribe(
            self._subscription_id,
            Filter(kinds=[EventKind.REACTION], tags={"e": [self._event_id]}, limit=self._limit),
            self._on_event,
        )
        self._handles = [
            loop.call_later(self._window, self._end_window),
            loop.call_later(self._lifetime, self.stop),
        ]

    def stop(self) -> None:
        """Close the subscription. Idempotent."""
        for handle in self._handles:
            handle.cancel()
        self._handles.clear()
        self._window_closed.set()
        if self._subscription_id is not None:
            self._client.unsubscribe(self._subscription_id)
            self._subscription_id = None

    async def wait_window(self) -> Reactions:
        """Wait for the collection window to end and return the snapshot."""
        await self._window_closed.wait()
        return self.snapshot()

    def _on_event(self, event: Event, _relay_url: str) -> None:
        if event.id in self._events:
            return
        self._events[event.id] = event
        self._notify()

    def _end_window(self) -> None:
        self._window_closed.set()
        if not self._events:
            _logger.debug("reactions_empty", event=self._event_id[:8])
            self._notify()

    def _notify(self) -> None:
        if self._on_update is None:
            return
        try:
            self._on_update(self.snapshot())
        except Exception as e:
            _logger.error("reaction_update_failed", event=self._event_id[:8], error=str(e))


async def load_reactions(client: Client, event_id: str, wait: float = REACTION_WINDOW) -> Reactions:
    """Collect reactions to *event_id* for *wait* seconds."""
    tracker = ReactionTracker(client, event_id, window=wait, lifetime=max(wait, REACTION_LIFETIME))
    tracker.start()
    try:
        return await tracker.wait_window()
    finally:
        tracker.stop()


# ---------------------------------------------------------------------------
# Page
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class ProfilePage:
    """Everything the profile view renders for one pubkey."""

    pubkey: str
    profile: Profile | None = None
    posts: list[Event] = field(default_factory=list)
    following: list[str] | None = None
    reactions: dict[str, Reactions] = field(default_factory=dict)


async def load_profile_page(
    client: Client,
    pubkey: str,
    *,
    posts_limit: int = 50,
    wait: float = 2.0,
    reactions_for: int = 10,
    reaction_window: float = REACTION_WINDOW,
) -> ProfilePage:
    """Load profile, posts and follow list concurrently, then reactions.

    Reactions are collected for the newest *reactions_for* posts, all during
    the same *reaction_window*.
    """
    profile, posts, following = await asyncio.gather(
        load_profile(client, pubkey, wait=wait),
        load_posts(client, pubkey, limit=posts_limit, wait=wait),
        load_following(client, pubkey),
    )
    page = ProfilePage(pubkey, profile, posts, following)

    targets = posts[:reactions_for]
    if targets:
        results = await asyncio.gather(*(load_reactions(client, post.id, reaction_window) for post in targets))
        page.reactions = {r.event_id: r for r in results}
    return page
