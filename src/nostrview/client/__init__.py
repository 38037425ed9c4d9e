"""Relay connections, subscription multiplexing and the client session.

Depends on [nostrview.models][nostrview.models] and
[nostrview.core][nostrview.core]; used by
[nostrview.services][nostrview.services] and the CLI.

Attributes:
    RelayConnection: One supervised WebSocket with reader and writer tasks.
        See [RelayConnection][nostrview.client.connection.RelayConnection].
    RelayPool: Concurrent connect, fan-out send and teardown across relays.
        See [RelayPool][nostrview.client.pool.RelayPool].
    SubscriptionRegistry: Subscription table and inbound frame router.
        See [SubscriptionRegistry][nostrview.client.registry.SubscriptionRegistry].
    Client: Session object composing the above with fetch-by-id.
        See [Client][nostrview.client.client.Client].
"""

from .client import Client, ClientConfig, EventFetcher, FetchConfig
from .connection import RelayConnection
from .pool import DEFAULT_RELAYS, ConnectOutcome, ConnectStatus, PoolConfig, RelayPool
from .registry import Subscription, SubscriptionRegistry


__all__ = [
    "DEFAULT_RELAYS",
    "Client",
    "ClientConfig",
    "ConnectOutcome",
    "ConnectStatus",
    "EventFetcher",
    "FetchConfig",
    "PoolConfig",
    "RelayConnection",
    "RelayPool",
    "Subscription",
    "SubscriptionRegistry",
]
