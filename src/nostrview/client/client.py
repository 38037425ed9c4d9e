"""
Read-only Nostr client session.

[Client][nostrview.client.client.Client] owns one
[RelayPool][nostrview.client.pool.RelayPool] and one
[SubscriptionRegistry][nostrview.client.registry.SubscriptionRegistry],
wires the registry in as the pool's frame handler, and adds fetch-by-id on
top of them. There is no module-level state: every session is an explicit
object, normally used as an async context manager.

Examples:
    ```python
    async with Client.from_yaml("config/nostrview.yaml") as client:
        event = await client.get_event(event_id)
    ```
"""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from types import TracebackType
from typing import Any, Protocol, Self

from pydantic import BaseModel, Field

from nostrview.core.exceptions import DecodeError
from nostrview.core.logger import Logger
from nostrview.core.metrics import MetricsConfig
from nostrview.core.yaml import load_yaml
from nostrview.models._validation import HEX64_RE
from nostrview.models.event import Event
from nostrview.models.filter import Filter

from .pool import ConnectOutcome, PoolConfig, RelayPool
from .registry import EoseCallback, EventCallback, SubscriptionRegistry


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class FetchConfig(BaseModel):
    """Timers for [fetch_event()][nostrview.client.client.Client.fetch_event]."""

    success_grace: float = Field(
        default=1.0, ge=0.0, description="Delay before closing a fetch that found its event"
    )
    not_found_grace: float = Field(
        default=2.0, ge=0.0, description="Wait after an EOSE before reporting not found"
    )
    timeout: float = Field(default=10.0, gt=0.0, description="Overall fetch deadline")


class ClientConfig(BaseModel):
    """Top-level configuration, one section per component."""

    pool: PoolConfig = Field(default_factory=PoolConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)


class EventFetcher(Protocol):
    """The fetch-by-id capability, for collaborators that need nothing else."""

    def fetch_event(
        self,
        event_id: str,
        callback: Callable[[Event], None],
        *,
        on_missing: Callable[[], None] | None = None,
    ) -> str: ...


# ---------------------------------------------------------------------------
# Fetch-by-id state
# ---------------------------------------------------------------------------


class _EventFetch:
    """One in-flight fetch: delivers at most once, finishes exactly once."""

    __slots__ = ("_client", "_handles", "callback", "delivered", "done", "event_id", "on_missing", "subscription_id")

    def __init__(
        self,
        client: Client,
        subscription_id: str,
        event_id: str,
        callback: Callable[[Event], None],
        on_missing: Callable[[], None] | None,
    ) -> None:
        self._client = client
        self._handles: list[asyncio.TimerHandle] = []
        self.subscription_id = subscription_id
        self.event_id = event_id
        self.callback = callback
        self.on_missing = on_missing
        self.delivered = False
        self.done = False

    def schedule(self, delay: float) -> None:
        loop = asyncio.get_running_loop()
        self._handles.append(loop.call_later(delay, self.finish))

    def on_event(self, event: Event, _relay_url: str) -> None:
        if self.done or self.delivered or event.id != self.event_id:
            return
        self.delivered = True
        self.cancel_timers()
        self.schedule(self._client.config.fetch.success_grace)
        self.callback(event)

    def on_eose(self, _relay_url: str) -> None:
        if not self.done and not self.delivered:
            self.schedule(self._client.config.fetch.not_found_grace)

    def cancel_timers(self) -> None:
        for handle in self._handles:
            handle.cancel()
        self._handles.clear()

    def finish(self, *, notify: bool = True, unsubscribe: bool = True) -> None:
        if self.done:
            return
        self.done = True
        self.cancel_timers()
        self._client._fetches.pop(self.subscription_id, None)
        if unsubscribe:
            self._client.unsubscribe(self.subscription_id)
        if notify and not self.delivered and self.on_missing is not None:
            try:
                self.on_missing()
            except Exception as e:
                self._client._logger.error(
                    "callback_failed", subscription=self.subscription_id, error=f"{type(e).__name__}: {e}"
                )


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class Client:
    """Relay pool, subscription registry and fetch-by-id in one session.

    Args:
        config: Client configuration; defaults apply when omitted.
    """

    def __init__(self, config: ClientConfig | None = None) -> None:
        self._config = config or ClientConfig()
        self._pool = RelayPool(
            self._config.pool,
            on_message=self._on_message,
            on_close_all=self._on_pool_closed,
        )
        self._registry = SubscriptionRegistry(self._pool)
        self._fetches: dict[str, _EventFetch] = {}
        self._ids = itertools.count(1)
        self._logger = Logger("client")

    @classmethod
    def from_yaml(cls, config_path: str | Path) -> Client:
        """Create a Client from a YAML configuration file.

        Raises:
            FileNotFoundError: If the file does not exist.
            ConfigurationError: If the file is not a YAML mapping.
        """
        return cls.from_dict(load_yaml(config_path))

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> Client:
        return cls(config=ClientConfig(**config_dict))

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close_all()

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def pool(self) -> RelayPool:
        return self._pool

    @property
    def registry(self) -> SubscriptionRegistry:
        return self._registry

    @property
    def connected_count(self) -> int:
        return self._pool.connected_count

    @property
    def connected_urls(self) -> list[str]:
        return self._pool.connected_urls

    # -------------------------------------------------------------------------
    # Connections
    # -------------------------------------------------------------------------

    async def connect(
        self,
        urls: Iterable[str] | None = None,
        timeout: float | None = None,  # noqa: ASYNC109
    ) -> dict[str, ConnectOutcome]:
        """Connect to *urls* (default: the configured relays). See [RelayPool.connect()][nostrview.client.pool.RelayPool.connect]."""
        return await self._pool.connect(urls, timeout)

    async def close_all(self) -> None:
        """Close every connection, cancel fetch timers and clear subscriptions.

        Pending fetches are reported as not found.
        """
        await self._pool.close_all()

    def _on_message(self, relay_url: str, text: str) -> None:
        self._registry.dispatch(relay_url, text)

    def _on_pool_closed(self) -> None:
        for fetch in list(self._fetches.values()):
            fetch.finish(unsubscribe=False)
        self._registry.clear()

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def new_subscription_id(self, prefix: str = "sub") -> str:
        """Return an id not yet used by this client."""
        return f"{prefix}_{next(self._ids)}"

    def subscribe(
        self,
        subscription_id: str,
        filter_: Filter | Mapping[str, Any],
        on_event: EventCallback,
        on_eose: EoseCallback | None = None,
    ) -> int:
        """Register a subscription. See [SubscriptionRegistry.subscribe()][nostrview.client.registry.SubscriptionRegistry.subscribe]."""
        return self._registry.subscribe(subscription_id, filter_, on_event, on_eose)

    def unsubscribe(self, subscription_id: str) -> bool:
        return self._registry.unsubscribe(subscription_id)

    # -------------------------------------------------------------------------
    # Fetch by id
    # -------------------------------------------------------------------------

    def fetch_event(
        self,
        event_id: str,
        callback: Callable[[Event], None],
        *,
        on_missing: Callable[[], None] | None = None,
    ) -> str:
        """Look up one event by id across all connected relays.

        ``callback`` runs at most once, with the first matching event. The
        subscription is closed ``success_grace`` seconds after a match, or
        ``not_found_grace`` seconds after an EOSE when nothing matched (then
        ``on_missing`` runs). ``fetch.timeout`` bounds the whole lookup.
        Must be called from a running event loop.

        Returns:
            The subscription id used for the lookup.

        Raises:
            DecodeError: If *event_id* is not 64-char hex.
        """
        if not isinstance(event_id, str) or not HEX64_RE.match(event_id):
            raise DecodeError(f"event id must be 64 hex characters, got {event_id!r}")
        event_id = event_id.lower()

        subscription_id = self.new_subscription_id(f"event_{event_id[:8]}")
        fetch = _EventFetch(self, subscription_id, event_id, callback, on_missing)
        self._fetches[subscription_id] = fetch
        relays = self._registry.subscribe(
            subscription_id,
            {"ids": [event_id], "limit": 1},
            fetch.on_event,
            fetch.on_eose,
        )
        fetch.schedule(self._config.fetch.timeout)
        if relays == 0:
            fetch.schedule(0)
        self._logger.debug("fetch_started", event=event_id[:8], subscription=subscription_id, relays=relays)
        return subscription_id

    def cancel_fetch(self, subscription_id: str) -> None:
        """Stop a fetch without invoking its ``on_missing`` callback."""
        fetch = self._fetches.get(subscription_id)
        if fetch is not None:
            fetch.finish(notify=False)

    async def get_event(self, event_id: str) -> Event | None:
        """Await the result of [fetch_event()][nostrview.client.client.Client.fetch_event].

        Returns:
            The event, or None when no relay has it.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Event | None] = loop.create_future()

        def found(event: Event) -> None:
            if not future.done():
                future.set_result(event)

        def missing() -> None:
            if not future.done():
                future.set_result(None)

        subscription_id = self.fetch_event(event_id, found, on_missing=missing)
        try:
            return await future
        except asyncio.CancelledError:
            self.cancel_fetch(subscription_id)
            raise
