"""
Unit tests for services.profile module.

Tests:
- newest_profile() selection and malformed metadata
- load_profile(), load_posts(), load_following()
- Reactions counting
- ReactionTracker window, lifetime, de-duplication and teardown
- load_reactions() and load_profile_page()
"""

from __future__ import annotations

import asyncio

from nostrview.models import DEFAULT_REACTION, Event
from nostrview.services import (
    Reactions,
    ReactionTracker,
    load_following,
    load_posts,
    load_profile,
    load_profile_page,
    load_reactions,
)
from nostrview.services.profile import newest_profile
from tests.fixtures.clients import StubClient
from tests.fixtures.events import (
    ALICE,
    BOB,
    CAROL,
    make_contacts_event,
    make_event,
    make_profile_event,
    make_reaction_event,
)


NOTE_ID = "5c83da77af1dec6d7289834998ad7aafbd9e2191396d75ec3cc27f5a77226f36"


# =============================================================================
# Profile metadata
# =============================================================================


class TestNewestProfile:
    """newest_profile()."""

    def test_newest_wins(self) -> None:
        events = [
            Event.from_dict(make_profile_event(created_at=100, name="old")),
            Event.from_dict(make_profile_event(created_at=200, name="new")),
        ]
        profile = newest_profile(events)
        assert profile is not None
        assert profile.name == "new"

    def test_skips_malformed(self) -> None:
        """A newer event with broken content falls back to the next one."""
        events = [
            Event.from_dict(make_event(kind=0, created_at=300, content="not json")),
            Event.from_dict(make_profile_event(created_at=100, name="valid")),
        ]
        profile = newest_profile(events)
        assert profile is not None
        assert profile.name == "valid"

    def test_empty(self) -> None:
        assert newest_profile([]) is None


class TestLoadProfile:
    """load_profile()."""

    async def test_found(self) -> None:
        client = StubClient(
            [
                make_profile_event(ALICE, 100, name="alice-old"),
                make_profile_event(ALICE, 200, name="alice"),
                make_profile_event(BOB, 300, name="bob"),
            ]
        )
        profile = await load_profile(client, ALICE, wait=1.0)
        assert profile is not None
        assert profile.name == "alice"
        assert client.filters_with_prefix("profile") == [{"kinds": [0], "authors": [ALICE], "limit": 1}]
        assert client.active == {}

    async def test_not_found(self, stub_client: StubClient) -> None:
        assert await load_profile(stub_client, ALICE, wait=1.0) is None


class TestLoadPosts:
    """load_posts()."""

    async def test_newest_first_and_limited(self) -> None:
        client = StubClient([make_event(created_at=t) for t in (100, 300, 200)] + [make_event(pubkey=BOB)])
        posts = await load_posts(client, ALICE, limit=2, wait=1.0)
        assert [p.created_at for p in posts] == [300, 200]
        assert client.filters_with_prefix("posts") == [{"kinds": [1], "authors": [ALICE], "limit": 2}]

    async def test_only_text_notes(self) -> None:
        client = StubClient([make_event(kind=1), make_event(kind=7)])
        posts = await load_posts(client, ALICE, wait=1.0)
        assert [p.kind for p in posts] == [1]


class TestLoadFollowing:
    """load_following()."""

    async def test_found(self) -> None:
        client = StubClient([make_contacts_event(ALICE, [BOB, CAROL])])
        assert await load_following(client, ALICE, timeout=1.0) == [BOB, CAROL]
        assert client.active == {}

    async def test_lists_merged_newest_first(self) -> None:
        """A stale list on one relay adds to the newest list instead of replacing it."""
        dave = "d" * 64
        client = StubClient(
            [
                make_contacts_event(ALICE, [CAROL, BOB], created_at=100),
                make_contacts_event(ALICE, [dave, BOB], created_at=200),
            ]
        )
        assert await load_following(client, ALICE, timeout=1.0) == [dave, BOB, CAROL]

    async def test_newer_empty_list_skipped(self) -> None:
        client = StubClient(
            [make_contacts_event(ALICE, [BOB], created_at=100), make_contacts_event(ALICE, [], created_at=200)]
        )
        assert await load_following(client, ALICE, timeout=1.0) == [BOB]

    async def test_lists_until_timeout_without_eose(self) -> None:
        client = StubClient([make_contacts_event(ALICE, [BOB])], eose=False)
        assert await load_following(client, ALICE, timeout=0.1) == [BOB]
        assert client.active == {}

    async def test_empty_list_ignored(self) -> None:
        """An empty contact list counts as no list."""
        client = StubClient([make_contacts_event(ALICE, [])])
        assert await load_following(client, ALICE, timeout=0.1) is None
        assert client.active == {}

    async def test_not_found(self, stub_client: StubClient) -> None:
        assert await load_following(stub_client, ALICE, timeout=0.1) is None
        assert len(stub_client.closed) == 1
        assert stub_client.filters_with_prefix("following") == [{"kinds": [3], "authors": [ALICE], "limit": 1}]


# =============================================================================
# Reactions
# =============================================================================


class TestReactions:
    """Reactions summary."""

    def test_counts_most_common_first(self) -> None:
        events = tuple(
            Event.from_dict(make_reaction_event(NOTE_ID, content)) for content in ("🔥", "+", "", "🔥", "🔥")
        )
        reactions = Reactions(NOTE_ID, events)
        assert reactions.total == 5
        assert list(reactions.counts.items()) == [("🔥", 3), (DEFAULT_REACTION, 2)]

    def test_empty(self) -> None:
        reactions = Reactions(NOTE_ID)
        assert reactions.total == 0
        assert reactions.counts == {}


class TestReactionTracker:
    """ReactionTracker lifecycle."""

    async def test_subscription_filter(self, stub_client: StubClient) -> None:
        tracker = ReactionTracker(stub_client, NOTE_ID, limit=25)
        tracker.start()
        try:
            assert tracker.active is True
            assert stub_client.filters_with_prefix("reactions_") == [{"kinds": [7], "#e": [NOTE_ID], "limit": 25}]
        finally:
            tracker.stop()

    async def test_start_twice(self, stub_client: StubClient) -> None:
        tracker = ReactionTracker(stub_client, NOTE_ID)
        tracker.start()
        tracker.start()
        tracker.stop()
        assert len(stub_client.opened) == 1

    async def test_updates_deduplicated(self) -> None:
        """Each distinct reaction notifies once even though both relays serve it."""
        client = StubClient([make_reaction_event(NOTE_ID, "+"), make_reaction_event(NOTE_ID, "🔥")])
        updates: list[Reactions] = []
        tracker = ReactionTracker(client, NOTE_ID, updates.append, window=0.05)
        tracker.start()
        try:
            snapshot = await asyncio.wait_for(tracker.wait_window(), timeout=1.0)
        finally:
            tracker.stop()
        assert [u.total for u in updates] == [1, 2]
        assert snapshot.total == 2

    async def test_empty_window_notifies(self, stub_client: StubClient) -> None:
        updates: list[Reactions] = []
        tracker = ReactionTracker(stub_client, NOTE_ID, updates.append, window=0.05)
        tracker.start()
        try:
            await asyncio.wait_for(tracker.wait_window(), timeout=1.0)
        finally:
            tracker.stop()
        assert len(updates) == 1
        assert updates[0].total == 0
        assert updates[0].event_id == NOTE_ID

    async def test_lifetime_closes_subscription(self, stub_client: StubClient) -> None:
        tracker = ReactionTracker(stub_client, NOTE_ID, window=0.02, lifetime=0.05)
        tracker.start()
        await asyncio.sleep(0.15)
        assert tracker.active is False
        assert stub_client.active == {}

    async def test_stop_idempotent(self, stub_client: StubClient) -> None:
        tracker = ReactionTracker(stub_client, NOTE_ID)
        tracker.start()
        tracker.stop()
        tracker.stop()
        assert tracker.active is False
        assert len(stub_client.closed) == 1

    async def test_stop_releases_waiter(self, stub_client: StubClient) -> None:
        tracker = ReactionTracker(stub_client, NOTE_ID, window=30.0)
        tracker.start()
        waiter = asyncio.create_task(tracker.wait_window())
        await asyncio.sleep(0)
        tracker.stop()
        snapshot = await asyncio.wait_for(waiter, timeout=1.0)
        assert snapshot.total == 0

    async def test_callback_error_contained(self) -> None:
        client = StubClient([make_reaction_event(NOTE_ID)])

        def on_update(_reactions: Reactions) -> None:
            raise RuntimeError("render failed")

        tracker = ReactionTracker(client, NOTE_ID, on_update, window=0.05)
        tracker.start()
        try:
            snapshot = await asyncio.wait_for(tracker.wait_window(), timeout=1.0)
        finally:
            tracker.stop()
        assert snapshot.total == 1


class TestLoadReactions:
    """load_reactions()."""

    async def test_collects_and_closes(self) -> None:
        other = "a" * 64
        client = StubClient(
            [
                make_reaction_event(NOTE_ID, "+"),
                make_reaction_event(NOTE_ID, "+", pubkey=CAROL),
                make_reaction_event(other, "🔥"),
            ]
        )
        reactions = await load_reactions(client, NOTE_ID, wait=0.05)
        assert reactions.event_id == NOTE_ID
        assert reactions.counts == {DEFAULT_REACTION: 2}
        assert client.active == {}


# =============================================================================
# Page
# =============================================================================


class TestLoadProfilePage:
    """load_profile_page()."""

    async def test_full_page(self) -> None:
        first = make_event(created_at=200, content="second post")
        second = make_event(created_at=100, content="first post")
        client = StubClient(
            [
                make_profile_event(ALICE, name="alice"),
                first,
                second,
                make_contacts_event(ALICE, [BOB]),
                make_reaction_event(first["id"], "🔥"),
            ]
        )
        page = await load_profile_page(client, ALICE, wait=1.0, reaction_window=0.05)

        assert page.pubkey == ALICE
        assert page.profile is not None
        assert page.profile.name == "alice"
        assert [p.content for p in page.posts] == ["second post", "first post"]
        assert page.following == [BOB]
        assert page.reactions[first["id"]].counts == {"🔥": 1}
        assert page.reactions[second["id"]].total == 0
        assert client.active == {}

    async def test_reactions_limited_to_newest(self) -> None:
        posts = [make_event(created_at=t) for t in (100, 200, 300)]
        client = StubClient([*posts, make_contacts_event(ALICE, [BOB])])
        page = await load_profile_page(client, ALICE, wait=1.0, reactions_for=2, reaction_window=0.05)
        assert set(page.reactions) == {posts[2]["id"], posts[1]["id"]}

    async def test_no_posts_skips_reactions(self) -> None:
        client = StubClient([make_contacts_event(ALICE, [BOB])])
        page = await load_profile_page(client, ALICE, wait=1.0)
        assert page.profile is None
        assert page.posts == []
        assert page.reactions == {}
        assert client.filters_with_prefix("reactions_") == []
