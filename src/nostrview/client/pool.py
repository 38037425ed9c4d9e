"""
Pool of concurrent relay connections.

[RelayPool][nostrview.client.pool.RelayPool] opens WebSocket connections to
many independent relays at once, keeps the set of live connections and fans
outbound frames out to all of them. Relays that fail to connect are
reported in a per-relay [ConnectOutcome][nostrview.client.pool.ConnectOutcome]
and never retried; connections that drop later are removed from the live
set as soon as they close. There is no reconnection.

Examples:
    ```python
    pool = RelayPool(PoolConfig(relays=["wss://relay.damus.io"]))
    outcomes = await pool.connect()
    pool.send('["REQ","sub",{"kinds":[1],"limit":10}]')
    await pool.close_all()
    ```
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import StrEnum
from typing import Final

import aiohttp
from aiohttp_socks import ProxyConnector
from pydantic import BaseModel, Field

from nostrview.core.exceptions import ConnectivityError
from nostrview.core.logger import Logger
from nostrview.core.metrics import CONNECT_ATTEMPTS, CONNECT_DURATION_SECONDS, RELAYS_OPEN
from nostrview.models.relay import Relay

from .connection import DEFAULT_CLOSE_TIMEOUT, DEFAULT_HEARTBEAT, MessageHandler, RelayConnection


DEFAULT_RELAYS: Final[tuple[str, ...]] = (
    "wss://relay.damus.io",
    "wss://nostr-pub.wellorder.net",
    "wss://eden.nostr.land",
    "wss://nostr.fmt.wiz.biz",
    "wss://relay.nostr.info",
)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class PoolConfig(BaseModel):
    """Relay set and transport settings for the pool.

    Overlay relays (Tor, I2P, Lokinet) can only be reached through
    ``proxy_url``; without it they fail at connect time.
    """

    relays: list[str] = Field(
        default_factory=lambda: list(DEFAULT_RELAYS),
        description="Relay URLs used when connect() is called without urls",
    )
    connect_timeout: float = Field(default=5.0, gt=0.0, description="Per-relay connect timeout (seconds)")
    close_timeout: float = Field(
        default=DEFAULT_CLOSE_TIMEOUT, gt=0.0, description="Closing handshake timeout (seconds)"
    )
    heartbeat: float = Field(default=DEFAULT_HEARTBEAT, gt=0.0, description="WebSocket ping interval (seconds)")
    allow_insecure: bool = Field(
        default=False, description="Retry without certificate verification after a TLS failure"
    )
    proxy_url: str | None = Field(default=None, description="SOCKS5 proxy for overlay networks")


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


class ConnectStatus(StrEnum):
    CONNECTED = "connected"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class ConnectOutcome:
    """Result of one relay connection attempt.

    Attributes:
        url: Normalized relay URL, or the input string when it did not parse.
        status: Whether the relay ended up in the live set.
        error: Failure description; None when connected.
    """

    url: str
    status: ConnectStatus
    error: str | None = None

    @property
    def connected(self) -> bool:
        return self.status is ConnectStatus.CONNECTED


# ---------------------------------------------------------------------------
# Pool
# ---------------------------------------------------------------------------


class RelayPool:
    """Set of live [RelayConnection][nostrview.client.connection.RelayConnection] objects.

    Only OPEN connections are ever in the live set. ``connect`` and
    ``close_all`` are serialized by an internal lock; everything else runs
    synchronously on the event loop.

    Args:
        config: Pool settings; defaults to the public relay list.
        on_message: Receives ``(relay_url, text)`` for every inbound frame
            of every connection.
        on_close_all: Called at the end of
            [close_all()][nostrview.client.pool.RelayPool.close_all].
    """

    def __init__(
        self,
        config: PoolConfig | None = None,
        *,
        on_message: MessageHandler | None = None,
        on_close_all: Callable[[], None] | None = None,
    ) -> None:
        self._config = config or PoolConfig()
        self._on_message = on_message
        self._on_close_all = on_close_all
        self._live: dict[str, RelayConnection] = {}
        self._lock = asyncio.Lock()
        self._session: aiohttp.ClientSession | None = None
        self._proxy_session: aiohttp.ClientSession | None = None
        self._logger = Logger("pool")

    @property
    def config(self) -> PoolConfig:
        return self._config

    @property
    def connected_count(self) -> int:
        return len(self._live)

    @property
    def connected_urls(self) -> list[str]:
        return list(self._live)

    def get(self, url: str) -> RelayConnection | None:
        return self._live.get(url)

    # -------------------------------------------------------------------------
    # Connect
    # -------------------------------------------------------------------------

    async def connect(
        self,
        urls: Iterable[str] | None = None,
        timeout: float | None = None,  # noqa: ASYNC109
    ) -> dict[str, ConnectOutcome]:
        """Connect to every relay in *urls* concurrently.

        All attempts are awaited; a failing or slow relay never cancels
        another. Relays already live are reported as connected without a
        second connection.

        Args:
            urls: Relay URLs; defaults to ``config.relays``.
            timeout: Per-relay timeout; defaults to ``config.connect_timeout``.

        Returns:
            One outcome per input URL, keyed by the URL as given.
        """
        requested = list(self._config.relays if urls is None else urls)
        per_relay = self._config.connect_timeout if timeout is None else timeout

        async with self._lock:
            outcomes: dict[str, ConnectOutcome] = {}
            pending: dict[str, Relay] = {}
            aliases: dict[str, str] = {}

            for raw in requested:
                try:
                    relay = Relay(raw)
                except (ValueError, TypeError) as e:
                    CONNECT_ATTEMPTS.labels(status="invalid").inc()
                    self._logger.warning("relay_invalid", relay=raw, error=str(e))
                    outcomes[raw] = ConnectOutcome(raw, ConnectStatus.FAILED, f"invalid relay url: {e}")
                    continue
                if relay.url in self._live:
                    outcomes[raw] = ConnectOutcome(relay.url, ConnectStatus.CONNECTED)
                    continue
                if relay.is_overlay and not self._config.proxy_url:
                    CONNECT_ATTEMPTS.labels(status="failed").inc()
                    outcomes[raw] = ConnectOutcome(
                        relay.url,
                        ConnectStatus.FAILED,
                        f"proxy_url required for {relay.network} relays",
                    )
                    continue
                pending.setdefault(relay.url, relay)
                aliases[raw] = relay.url

            if pending:
                self._logger.info("connect_started", relays=len(pending), timeout=per_relay)
                results = await asyncio.gather(*(self._open(relay, per_relay) for relay in pending.values()))
                by_url = {outcome.url: outcome for outcome in results}
                for raw, url in aliases.items():
                    outcomes[raw] = by_url[url]

            connected = sum(1 for o in outcomes.values() if o.connected)
            self._logger.info(
                "connect_finished",
                connected=connected,
                failed=len(outcomes) - connected,
                live=len(self._live),
            )
            return outcomes

    async def _open(self, relay: Relay, timeout: float) -> ConnectOutcome:  # noqa: ASYNC109
        connection = RelayConnection(
            relay,
            self._session_for(relay),
            self._dispatch,
            self._forget,
            heartbeat=self._config.heartbeat,
            close_timeout=self._config.close_timeout,
            allow_insecure=self._config.allow_insecure,
        )
        start = time.monotonic()
        try:
            await connection.open(timeout)
        except ConnectivityError as e:
            CONNECT_ATTEMPTS.labels(status="failed").inc()
            self._logger.warning("relay_connect_failed", relay=relay.url, error=str(e))
            return ConnectOutcome(relay.url, ConnectStatus.FAILED, str(e))
        except Exception as e:
            CONNECT_ATTEMPTS.labels(status="failed").inc()
            self._logger.error("relay_connect_error", relay=relay.url, error=f"{type(e).__name__}: {e}")
            return ConnectOutcome(relay.url, ConnectStatus.FAILED, f"{type(e).__name__}: {e}")
        finally:
            CONNECT_DURATION_SECONDS.observe(time.monotonic() - start)

        if not connection.is_open:
            CONNECT_ATTEMPTS.labels(status="failed").inc()
            return ConnectOutcome(relay.url, ConnectStatus.FAILED, "closed during handshake")

        self._live[relay.url] = connection
        RELAYS_OPEN.set(len(self._live))
        CONNECT_ATTEMPTS.labels(status="connected").inc()
        self._logger.info("relay_connected", relay=relay.url, elapsed_s=round(time.monotonic() - start, 3))
        return ConnectOutcome(relay.url, ConnectStatus.CONNECTED)

    def _session_for(self, relay: Relay) -> aiohttp.ClientSession:
        if relay.is_overlay:
            if self._proxy_session is None:
                assert self._config.proxy_url is not None
                connector = ProxyConnector.from_url(self._config.proxy_url, rdns=True)
                self._proxy_session = aiohttp.ClientSession(connector=connector)
            return self._proxy_session
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self._session

    # -------------------------------------------------------------------------
    # Traffic
    # -------------------------------------------------------------------------

    def send(self, frame: str) -> int:
        """Queue *frame* on every open connection.

        Returns:
            Number of connections the frame was queued on.
        """
        return sum(1 for connection in list(self._live.values()) if connection.send(frame))

    def _dispatch(self, relay_url: str, text: str) -> None:
        if self._on_message is not None:
            self._on_message(relay_url, text)

    def _forget(self, connection: RelayConnection) -> None:
        if self._live.get(connection.url) is connection:
            del self._live[connection.url]
            RELAYS_OPEN.set(len(self._live))
            self._logger.info("relay_dropped", relay=connection.url, live=len(self._live))

    # -------------------------------------------------------------------------
    # Teardown
    # -------------------------------------------------------------------------

    async def close_all(self) -> None:
        """Close every connection and the HTTP sessions. Idempotent.

        The live set is emptied before any socket is closed, so nothing is
        sent during teardown. ``on_close_all`` runs last.
        """
        async with self._lock:
            connections = list(self._live.values())
            self._live.clear()
            RELAYS_OPEN.set(0)
            if connections:
                await asyncio.gather(*(c.close() for c in connections))

            for session in (self._session, self._proxy_session):
                if session is not None and not session.closed:
                    await session.close()
            self._session = None
            self._proxy_session = None

            if connections:
                self._logger.info("pool_closed", relays=len(connections))
            if self._on_close_all is not None:
                self._on_close_all()
