"""
Unit tests for client.client module.

Tests:
- Construction from dict/YAML and the async context manager
- subscribe() end to end against local relays
- fetch_event(): found, not found, timeout, zero relays, cancellation
- get_event() awaitable wrapper
- close_all() finishing pending fetches
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path

import pytest

from nostrview.client import Client, ClientConfig, FetchConfig, PoolConfig
from nostrview.core.exceptions import DecodeError
from nostrview.models import Event, Filter
from tests.fixtures.events import ALICE, make_event
from tests.fixtures.relays import FakeRelay, wait_until


RelayFactory = Callable[..., Awaitable[FakeRelay]]

FAST_FETCH = FetchConfig(success_grace=0.05, not_found_grace=0.05, timeout=1.0)


def make_client(*urls: str, fetch: FetchConfig = FAST_FETCH) -> Client:
    return Client(ClientConfig(pool=PoolConfig(relays=list(urls), connect_timeout=2.0), fetch=fetch))


class FetchResult:
    def __init__(self) -> None:
        self.found: list[Event] = []
        self.missing = 0
        self.done = asyncio.Event()

    def on_found(self, event: Event) -> None:
        self.found.append(event)

    def on_missing(self) -> None:
        self.missing += 1
        self.done.set()


# =============================================================================
# Construction
# =============================================================================


class TestConstruction:
    """Client configuration entry points."""

    def test_defaults(self) -> None:
        client = Client()
        assert client.config == ClientConfig()
        assert client.connected_count == 0
        assert client.connected_urls == []

    def test_from_dict(self) -> None:
        client = Client.from_dict({"pool": {"relays": ["wss://nos.lol"]}, "fetch": {"timeout": 3}})
        assert client.config.pool.relays == ["wss://nos.lol"]
        assert client.config.fetch.timeout == 3.0

    def test_from_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "nostrview.yaml"
        path.write_text("pool:\n  relays:\n    - wss://nos.lol\nfetch:\n  not_found_grace: 0.5\n")
        client = Client.from_yaml(path)
        assert client.config.pool.relays == ["wss://nos.lol"]
        assert client.config.fetch.not_found_grace == 0.5

    def test_from_yaml_missing(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            Client.from_yaml(tmp_path / "missing.yaml")

    def test_subscription_ids_unique(self) -> None:
        client = Client()
        ids = {client.new_subscription_id() for _ in range(50)}
        assert len(ids) == 50
        assert client.new_subscription_id("feed").startswith("feed_")


class TestContextManager:
    """async with Client(...)."""

    async def test_connects_and_closes(self, relay_factory: RelayFactory) -> None:
        first, second = await relay_factory(), await relay_factory()
        async with make_client(first.url, second.url, "ws://127.0.0.1:1") as client:
            assert client.connected_count == 2
        assert client.connected_count == 0
        await wait_until(lambda: first.open_sockets == 0 and second.open_sockets == 0)


# =============================================================================
# Subscriptions
# =============================================================================


class TestSubscribe:
    """subscribe() against live relays."""

    async def test_events_and_eose(self, relay_factory: RelayFactory) -> None:
        note = make_event(kind=1)
        relay = await relay_factory([note, make_event(kind=0, content="{}")])
        events: list[tuple[Event, str]] = []
        eose: list[str] = []
        async with make_client(relay.url) as client:
            sent = client.subscribe("sub1", Filter(kinds=[1]), lambda e, r: events.append((e, r)), eose.append)
            assert sent == 1
            await wait_until(lambda: eose == [relay.url])
            assert [(e.id, r) for e, r in events] == [(note["id"], relay.url)]

    async def test_unsubscribe_sends_close(self, fake_relay: FakeRelay) -> None:
        async with make_client(fake_relay.url) as client:
            client.subscribe("sub1", {"kinds": [1]}, lambda e, r: None)
            assert client.unsubscribe("sub1") is True
            await wait_until(lambda: fake_relay.frames("CLOSE") == [["CLOSE", "sub1"]])
            assert "sub1" not in client.registry

    async def test_close_all_clears_registry(self, fake_relay: FakeRelay) -> None:
        client = make_client(fake_relay.url)
        await client.connect()
        client.subscribe("sub1", {}, lambda e, r: None)
        await client.close_all()
        assert len(client.registry) == 0


# =============================================================================
# Fetch by id
# =============================================================================


class TestFetchEvent:
    """fetch_event() lifecycle."""

    async def test_found(self, fake_relay: FakeRelay) -> None:
        note = make_event()
        fake_relay.events.append(note)
        result = FetchResult()
        async with make_client(fake_relay.url) as client:
            sub_id = client.fetch_event(note["id"], result.on_found, on_missing=result.on_missing)
            assert sub_id.startswith(f"event_{note['id'][:8]}_")
            await wait_until(lambda: sub_id not in client.registry)
            assert [e.id for e in result.found] == [note["id"]]
            assert result.missing == 0
            await wait_until(lambda: ["CLOSE", sub_id] in fake_relay.received)

    async def test_found_on_two_relays_delivered_once(self, relay_factory: RelayFactory) -> None:
        note = make_event()
        first, second = await relay_factory([note]), await relay_factory([note])
        result = FetchResult()
        async with make_client(first.url, second.url) as client:
            sub_id = client.fetch_event(note["id"], result.on_found)
            await wait_until(lambda: sub_id not in client.registry)
            assert len(result.found) == 1

    async def test_not_found(self, fake_relay: FakeRelay) -> None:
        """EOSE with no match reports not found after the grace window."""
        result = FetchResult()
        async with make_client(fake_relay.url) as client:
            sub_id = client.fetch_event("a" * 64, result.on_found, on_missing=result.on_missing)
            await asyncio.wait_for(result.done.wait(), timeout=2.0)
            assert result.found == []
            assert result.missing == 1
            assert sub_id not in client.registry
            assert len(client.registry) == 0
            await wait_until(lambda: ["CLOSE", sub_id] in fake_relay.received)

    async def test_request_shape(self, fake_relay: FakeRelay) -> None:
        async with make_client(fake_relay.url) as client:
            sub_id = client.fetch_event("A" * 64, lambda e: None)
            await wait_until(lambda: bool(fake_relay.frames("REQ")))
            assert fake_relay.frames("REQ")[0] == ["REQ", sub_id, {"ids": ["a" * 64], "limit": 1}]

    async def test_timeout_without_eose(self, fake_relay: FakeRelay) -> None:
        """A relay that never answers is bounded by fetch.timeout."""
        fake_relay.send_eose = False
        result = FetchResult()
        fetch = FetchConfig(success_grace=0.05, not_found_grace=0.05, timeout=0.2)
        async with make_client(fake_relay.url, fetch=fetch) as client:
            client.fetch_event("b" * 64, result.on_found, on_missing=result.on_missing)
            await asyncio.wait_for(result.done.wait(), timeout=2.0)
            assert result.missing == 1
            assert len(client.registry) == 0

    async def test_zero_relays(self) -> None:
        """With nothing connected the lookup fails on the next loop iteration."""
        client = make_client()
        result = FetchResult()
        sub_id = client.fetch_event("c" * 64, result.on_found, on_missing=result.on_missing)
        await asyncio.wait_for(result.done.wait(), timeout=0.5)
        assert result.missing == 1
        assert sub_id not in client.registry

    @pytest.mark.parametrize("event_id", ["abc", "g" * 64, "a" * 63, ALICE + "\n", 42])
    def test_invalid_id(self, event_id: object) -> None:
        with pytest.raises(DecodeError):
            Client().fetch_event(event_id, lambda e: None)  # type: ignore[arg-type]

    async def test_cancel_fetch(self, fake_relay: FakeRelay) -> None:
        fake_relay.send_eose = False
        result = FetchResult()
        async with make_client(fake_relay.url) as client:
            sub_id = client.fetch_event("d" * 64, result.on_found, on_missing=result.on_missing)
            client.cancel_fetch(sub_id)
            assert sub_id not in client.registry
            await asyncio.sleep(0.1)
            assert result.missing == 0

    async def test_close_all_reports_pending(self, fake_relay: FakeRelay) -> None:
        fake_relay.send_eose = False
        result = FetchResult()
        client = make_client(fake_relay.url, fetch=FetchConfig(timeout=30.0))
        await client.connect()
        client.fetch_event("e" * 64, result.on_found, on_missing=result.on_missing)
        await client.close_all()
        assert result.missing == 1
        assert len(client.registry) == 0

    async def test_missing_callback_error_contained(self) -> None:
        def on_missing() -> None:
            raise RuntimeError("render failed")

        client = make_client()
        sub_id = client.fetch_event("f" * 64, lambda e: None, on_missing=on_missing)
        await asyncio.sleep(0.05)
        assert sub_id not in client.registry


class TestGetEvent:
    """get_event()."""

    async def test_found(self, fake_relay: FakeRelay) -> None:
        note = make_event(content="the one")
        fake_relay.events.append(note)
        async with make_client(fake_relay.url) as client:
            event = await client.get_event(note["id"])
        assert event is not None
        assert event.content == "the one"

    async def test_not_found(self, fake_relay: FakeRelay) -> None:
        async with make_client(fake_relay.url) as client:
            assert await client.get_event("1" * 64) is None
            assert len(client.registry) == 0

    async def test_cancelled(self, fake_relay: FakeRelay) -> None:
        """Cancelling the awaiting task closes the lookup subscription."""
        fake_relay.send_eose = False
        async with make_client(fake_relay.url, fetch=FetchConfig(timeout=30.0)) as client:
            task = asyncio.create_task(client.get_event("2" * 64))
            await wait_until(lambda: len(client.registry) == 1)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            assert len(client.registry) == 0
