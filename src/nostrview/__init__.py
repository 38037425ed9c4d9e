r"""nostrview -- read-only Nostr client and viewer.

Opens concurrent WebSocket connections to public relays, multiplexes named
subscriptions across them and renders profiles, feeds and threads. Nothing
is ever published or signed.

Architecture follows a **diamond DAG** dependency structure where imports
flow strictly downward:

```text
            services          Page loaders, CLI
               |
            client            Connections, pool, registry, session
             /    \
          core    utils       Exceptions, logging, config, metrics | nip19, keys
             \    /
            models            Pure frozen dataclasses (zero I/O)
```

Note:
    For lightweight usage, import directly from subpackages::

        from nostrview.models import Relay
        from nostrview.client import Client

    Top-level imports (``from nostrview import Client``) use lazy loading
    and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("nostrview")

__all__ = [
    "Client",
    "ClientConfig",
    "DecodeError",
    "Event",
    "Filter",
    "Logger",
    "NetworkType",
    "NostrViewError",
    "PoolConfig",
    "Profile",
    "Relay",
    "RelayPool",
    "SubscriptionRegistry",
    "normalize_key",
    "validate_pubkey",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "Client": ("nostrview.client", "Client"),
    "ClientConfig": ("nostrview.client", "ClientConfig"),
    "PoolConfig": ("nostrview.client", "PoolConfig"),
    "RelayPool": ("nostrview.client", "RelayPool"),
    "SubscriptionRegistry": ("nostrview.client", "SubscriptionRegistry"),
    "DecodeError": ("nostrview.core", "DecodeError"),
    "Logger": ("nostrview.core", "Logger"),
    "NostrViewError": ("nostrview.core", "NostrViewError"),
    "Event": ("nostrview.models", "Event"),
    "Filter": ("nostrview.models", "Filter"),
    "NetworkType": ("nostrview.models", "NetworkType"),
    "Profile": ("nostrview.models", "Profile"),
    "Relay": ("nostrview.models", "Relay"),
    "normalize_key": ("nostrview.utils.keys", "normalize_key"),
    "validate_pubkey": ("nostrview.utils.keys", "validate_pubkey"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value  # Cache for subsequent access
        return value
    raise AttributeError(f"module 'nostrview' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
