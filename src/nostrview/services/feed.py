"""Home feed: recent notes from the accounts a pubkey follows."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field

from nostrview.client.client import Client
from nostrview.core.logger import Logger
from nostrview.models.constants import EventKind
from nostrview.models.event import Event
from nostrview.models.filter import Filter
from nostrview.models.profile import Profile

from .common import collect_events
from .content import resolve_references
from .profile import load_following, newest_profile


PROFILE_BATCH_SIZE = 20

_logger = Logger("feed")


@dataclass(slots=True)
class Feed:
    """Timeline of the accounts followed by ``pubkey``.

    An empty ``following`` list means no contact list was found.
    ``embedded`` holds the notes quoted by the posts, keyed by event id.
    """

    pubkey: str
    following: list[str] = field(default_factory=list)
    posts: list[Event] = field(default_factory=list)
    profiles: dict[str, Profile] = field(default_factory=dict)
    embedded: dict[str, Event] = field(default_factory=dict)

    def author_label(self, pubkey: str) -> str:
        profile = self.profiles.get(pubkey)
        return profile.label if profile else f"{pubkey[:8]}..."


async def load_profiles(
    client: Client,
    pubkeys: Sequence[str],
    *,
    batch_size: int = PROFILE_BATCH_SIZE,
    wait: float = 2.0,
) -> dict[str, Profile]:
    """Load profile metadata for *pubkeys*, ``batch_size`` authors per subscription.

    Batches run concurrently. Authors without a well-formed profile are
    absent from the result.
    """
    unique = list(dict.fromkeys(pubkeys))
    batches = [unique[i : i + batch_size] for i in range(0, len(unique), batch_size)]
    if not batches:
        return {}

    results = await asyncio.gather(
        *(
            collect_events(
                client,
                Filter(kinds=[EventKind.SET_METADATA], authors=batch, limit=len(batch)),
                wait=wait,
                prefix="profiles",
            )
            for batch in batches
        )
    )

    by_author: dict[str, list[Event]] = {}
    for events in results:
        for event in events:
            by_author.setdefault(event.pubkey, []).append(event)

    profiles: dict[str, Profile] = {}
    for author, events in by_author.items():
        profile = newest_profile(events)
        if profile is not None:
            profiles[author] = profile
    return profiles


async def load_feed(client: Client, pubkey: str, limit: int = 100, wait: float = 3.0) -> Feed:
    """Load the follow list of *pubkey*, then their notes and profiles.

    Notes quoted by the posts are looked up once the posts are in, while
    the profiles are still loading.

    Returns:
        The feed, empty when *pubkey* has no contact list on the relays.
    """
    following = await load_following(client, pubkey)
    if not following:
        return Feed(pubkey)

    async def timeline(authors: list[str]) -> tuple[list[Event], dict[str, Event]]:
        posts = await collect_events(
            client,
            Filter(kinds=[EventKind.TEXT_NOTE], authors=authors, limit=limit),
            wait=wait,
            prefix="timeline",
        )
        posts = posts[:limit]
        return posts, await resolve_references(client, posts, wait=wait)

    (posts, embedded), profiles = await asyncio.gather(
        timeline(following),
        load_profiles(client, following, wait=wait),
    )
    _logger.info(
        "feed_loaded", pubkey=pubkey[:16], following=len(following), posts=len(posts), embedded=len(embedded)
    )
    return Feed(pubkey, following, posts, profiles, embedded)
