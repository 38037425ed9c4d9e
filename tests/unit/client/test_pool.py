"""
Unit tests for client.pool module.

Tests:
- PoolConfig defaults and validation
- connect() outcomes: connected, refused, invalid, overlay without proxy,
  refusing proxy, unexpected errors
- Live relays are not connected twice
- send() fan-out and inbound routing to on_message
- Dropped connections leave the live set
- close_all() teardown, idempotence and the on_close_all hook
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from unittest.mock import AsyncMock

import aiohttp
import pytest
from pydantic import ValidationError

from nostrview.client.connection import RelayConnection
from nostrview.client.pool import DEFAULT_RELAYS, ConnectStatus, PoolConfig, RelayPool
from nostrview.models import Relay
from tests.fixtures.relays import FakeRelay, wait_until


RelayFactory = Callable[..., Awaitable[FakeRelay]]

REFUSED = "ws://127.0.0.1:1"


@pytest.fixture
async def pool() -> AsyncIterator[RelayPool]:
    relay_pool = RelayPool(PoolConfig(relays=[], connect_timeout=2.0))
    yield relay_pool
    await relay_pool.close_all()


# =============================================================================
# Configuration
# =============================================================================


class TestPoolConfig:
    """PoolConfig defaults and validation."""

    def test_defaults(self) -> None:
        config = PoolConfig()
        assert config.relays == list(DEFAULT_RELAYS)
        assert config.connect_timeout == 5.0
        assert config.allow_insecure is False
        assert config.proxy_url is None

    def test_default_relays_are_valid(self) -> None:
        assert all(Relay(url).url == url for url in DEFAULT_RELAYS)

    @pytest.mark.parametrize("field", ["connect_timeout", "close_timeout", "heartbeat"])
    def test_non_positive_timeouts(self, field: str) -> None:
        with pytest.raises(ValidationError):
            PoolConfig(**{field: 0})


# =============================================================================
# Connect
# =============================================================================


class TestConnect:
    """connect() outcomes."""

    async def test_partial_success(self, pool: RelayPool, relay_factory: RelayFactory) -> None:
        """M reachable relays connect; the N-M others fail without affecting them."""
        first, second = await relay_factory(), await relay_factory()
        outcomes = await pool.connect([first.url, REFUSED, second.url])

        assert set(outcomes) == {first.url, REFUSED, second.url}
        assert outcomes[first.url].status is ConnectStatus.CONNECTED
        assert outcomes[second.url].connected is True
        assert outcomes[REFUSED].status is ConnectStatus.FAILED
        assert outcomes[REFUSED].error
        assert pool.connected_count == 2
        assert set(pool.connected_urls) == {first.url, second.url}

    async def test_all_fail(self, pool: RelayPool) -> None:
        outcomes = await pool.connect([REFUSED, "ws://127.0.0.1:2"])
        assert not any(o.connected for o in outcomes.values())
        assert pool.connected_count == 0

    async def test_invalid_url(self, pool: RelayPool) -> None:
        outcomes = await pool.connect(["https://not-a-relay.example.com"])
        outcome = outcomes["https://not-a-relay.example.com"]
        assert outcome.status is ConnectStatus.FAILED
        assert outcome.url == "https://not-a-relay.example.com"
        assert outcome.error is not None
        assert outcome.error.startswith("invalid relay url")

    async def test_overlay_without_proxy(self, pool: RelayPool) -> None:
        onion = f"ws://{'a' * 56}.onion"
        outcome = (await pool.connect([onion]))[onion]
        assert outcome.status is ConnectStatus.FAILED
        assert outcome.error is not None
        assert "proxy_url" in outcome.error

    async def test_refusing_proxy(self, fake_relay: FakeRelay, refusing_proxy: str) -> None:
        """A proxy that refuses the overlay relay does not abort the other attempts."""
        onion = f"ws://{'c' * 56}.onion"
        relay_pool = RelayPool(PoolConfig(relays=[], connect_timeout=2.0, proxy_url=refusing_proxy))
        try:
            outcomes = await relay_pool.connect([fake_relay.url, onion])
            assert outcomes[onion].status is ConnectStatus.FAILED
            assert outcomes[onion].error
            assert outcomes[fake_relay.url].connected is True
            assert relay_pool.connected_count == 1
        finally:
            await relay_pool.close_all()

    async def test_unexpected_error_is_a_failure(
        self, pool: RelayPool, fake_relay: FakeRelay, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(RelayConnection, "open", AsyncMock(side_effect=KeyError("boom")))
        outcomes = await pool.connect([fake_relay.url, REFUSED])
        assert outcomes[fake_relay.url].status is ConnectStatus.FAILED
        assert outcomes[fake_relay.url].error == "KeyError: 'boom'"
        assert outcomes[REFUSED].status is ConnectStatus.FAILED
        assert pool.connected_count == 0

    async def test_default_relays_from_config(self, relay_factory: RelayFactory) -> None:
        relay = await relay_factory()
        relay_pool = RelayPool(PoolConfig(relays=[relay.url]))
        try:
            outcomes = await relay_pool.connect()
            assert outcomes[relay.url].connected
        finally:
            await relay_pool.close_all()

    async def test_live_relay_not_reconnected(self, pool: RelayPool, fake_relay: FakeRelay) -> None:
        await pool.connect([fake_relay.url])
        connection = pool.get(fake_relay.url)
        outcomes = await pool.connect([fake_relay.url])
        assert outcomes[fake_relay.url].connected
        assert pool.get(fake_relay.url) is connection
        await wait_until(lambda: fake_relay.open_sockets == 1)
        assert len(fake_relay.sockets) == 1

    async def test_equivalent_urls_share_one_connection(self, pool: RelayPool, fake_relay: FakeRelay) -> None:
        """Inputs that normalize to the same URL open a single socket."""
        variant = fake_relay.url + "/"
        outcomes = await pool.connect([fake_relay.url, variant])
        assert outcomes[fake_relay.url].connected
        assert outcomes[variant].connected
        assert outcomes[variant].url == fake_relay.url
        assert pool.connected_count == 1
        await wait_until(lambda: len(fake_relay.sockets) == 1)

    async def test_empty(self, pool: RelayPool) -> None:
        assert await pool.connect([]) == {}


# =============================================================================
# Traffic
# =============================================================================


class TestTraffic:
    """send() fan-out and inbound routing."""

    async def test_send_to_all(self, pool: RelayPool, relay_factory: RelayFactory) -> None:
        relays = [await relay_factory() for _ in range(3)]
        await pool.connect([r.url for r in relays])
        assert pool.send('["CLOSE","sub1"]') == 3
        for relay in relays:
            await wait_until(lambda relay=relay: relay.received == [["CLOSE", "sub1"]])

    async def test_send_with_nothing_connected(self, pool: RelayPool) -> None:
        assert pool.send('["CLOSE","sub1"]') == 0

    async def test_inbound_routed(self, relay_factory: RelayFactory) -> None:
        received: list[tuple[str, str]] = []
        relay = await relay_factory()
        relay_pool = RelayPool(on_message=lambda url, text: received.append((url, text)))
        try:
            await relay_pool.connect([relay.url])
            relay_pool.send('["REQ","sub1",{}]')
            await wait_until(lambda: len(received) == 1)
            assert received == [(relay.url, '["EOSE", "sub1"]')]
        finally:
            await relay_pool.close_all()

    async def test_dropped_connection_forgotten(self, pool: RelayPool, relay_factory: RelayFactory) -> None:
        stable, flaky = await relay_factory(), await relay_factory()
        await pool.connect([stable.url, flaky.url])
        await wait_until(lambda: flaky.open_sockets == 1)
        await flaky.drop_clients()
        await wait_until(lambda: pool.connected_count == 1)
        assert pool.connected_urls == [stable.url]
        assert pool.get(flaky.url) is None
        assert pool.send('["CLOSE","x"]') == 1


# =============================================================================
# Teardown
# =============================================================================


class TestCloseAll:
    """close_all()."""

    async def test_closes_everything(self, pool: RelayPool, relay_factory: RelayFactory) -> None:
        relays = [await relay_factory() for _ in range(2)]
        await pool.connect([r.url for r in relays])
        await pool.close_all()
        assert pool.connected_count == 0
        assert pool.send('["CLOSE","x"]') == 0
        for relay in relays:
            await wait_until(lambda relay=relay: relay.open_sockets == 0)

    async def test_idempotent_and_hook(self, fake_relay: FakeRelay) -> None:
        calls: list[int] = []
        relay_pool = RelayPool(on_close_all=lambda: calls.append(1))
        await relay_pool.connect([fake_relay.url])
        await relay_pool.close_all()
        await relay_pool.close_all()
        assert relay_pool.connected_count == 0
        assert len(calls) == 2

    async def test_reconnect_after_close(self, pool: RelayPool, fake_relay: FakeRelay) -> None:
        """A fresh connect() after teardown opens new connections."""
        await pool.connect([fake_relay.url])
        await pool.close_all()
        outcomes = await pool.connect([fake_relay.url])
        assert outcomes[fake_relay.url].connected
        assert pool.connected_count == 1


class TestSessions:
    """HTTP session selection."""

    async def test_overlay_uses_proxy_session(self) -> None:
        relay_pool = RelayPool(PoolConfig(relays=[], proxy_url="socks5://127.0.0.1:9050"))
        try:
            onion = Relay(f"ws://{'b' * 56}.onion")
            proxy_session = relay_pool._session_for(onion)
            plain_session = relay_pool._session_for(Relay("wss://nos.lol"))
            assert isinstance(proxy_session, aiohttp.ClientSession)
            assert proxy_session is not plain_session
            assert relay_pool._session_for(onion) is proxy_session
        finally:
            await relay_pool.close_all()
        assert proxy_session.closed
        assert plain_session.closed
