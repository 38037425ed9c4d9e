"""Page loaders built on the [Client][nostrview.client.client.Client].

Attributes:
    profile: Profile metadata, posts, follow list and reactions.
    feed: Home feed of followed accounts with batched profile loading.
    thread: A note with its replies, author and reactions.
    content: Lookup of the notes quoted as ``nostr:note1...`` in content.
    common: ``collect_events``, the one-shot subscription primitive.
"""

from .common import collect_events
from .content import referenced_notes, resolve_references
from .feed import Feed, load_feed, load_profiles
from .profile import (
    ProfilePage,
    Reactions,
    ReactionTracker,
    load_following,
    load_posts,
    load_profile,
    load_profile_page,
    load_reactions,
)
from .thread import Thread, load_thread


__all__ = [
    "Feed",
    "ProfilePage",
    "ReactionTracker",
    "Reactions",
    "Thread",
    "collect_events",
    "load_feed",
    "load_following",
    "load_posts",
    "load_profile",
    "load_profile_page",
    "load_profiles",
    "load_reactions",
    "load_thread",
    "referenced_notes",
    "resolve_references",
]
