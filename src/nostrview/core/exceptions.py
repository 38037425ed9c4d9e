"""nostrview exception hierarchy.

Typed exceptions for every error category, so callers can tell contained
transport problems from the errors that are surfaced to the user.

Exception hierarchy:

```text
NostrViewError (base -- never raised directly)
├── ConfigurationError       -- config validation, bad YAML
├── ConnectivityError        -- relay unreachable, network failures
│   ├── RelayConnectionError -- refused, reset, DNS, handshake rejected
│   ├── RelayTimeoutError    -- connection attempt timed out
│   └── RelaySSLError        -- certificate issues
├── ProtocolError            -- malformed frame or event payload
├── DecodeError              -- invalid bech32 / key input (also a ValueError)
└── SubscriptionError        -- duplicate active subscription id (also a ValueError)
```

Note:
    This module imports nothing from the package and is the one ``core``
    module the ``utils`` layer may depend on.

See Also:
    [RelayPool][nostrview.client.pool.RelayPool]: Records
        [ConnectivityError][nostrview.core.exceptions.ConnectivityError]
        per relay instead of raising it.
    [SubscriptionRegistry][nostrview.client.registry.SubscriptionRegistry]:
        Logs and drops [ProtocolError][nostrview.core.exceptions.ProtocolError].
    [nostrview.utils.nip19][]: Raises
        [DecodeError][nostrview.core.exceptions.DecodeError].
"""

from __future__ import annotations


class NostrViewError(Exception):
    """Base exception for all nostrview errors.

    Never raised directly -- always use a specific subclass.
    """


class ConfigurationError(NostrViewError):
    """Invalid or missing configuration (YAML, CLI flags)."""


# ---------------------------------------------------------------------------
# Connectivity
# ---------------------------------------------------------------------------


class ConnectivityError(NostrViewError):
    """Base for all relay/network connectivity errors.

    Never fatal to the pool: a failed relay is reported in its
    [ConnectOutcome][nostrview.client.pool.ConnectOutcome] and skipped.
    """


class RelayConnectionError(ConnectivityError):
    """Transport failure while opening a relay WebSocket."""


class RelayTimeoutError(ConnectivityError):
    """Connection attempt did not complete within the per-relay timeout."""


class RelaySSLError(ConnectivityError):
    """TLS/SSL certificate or handshake failure."""


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ProtocolError(NostrViewError):
    """Malformed inbound frame or event payload.

    Contained by the registry: the frame is logged and dropped without
    affecting the subscription or other relays.
    """


# ---------------------------------------------------------------------------
# Caller-facing
# ---------------------------------------------------------------------------


class DecodeError(NostrViewError, ValueError):
    """Input is not a valid bech32 identifier or hex key.

    Raised synchronously so a front end can render a message. Subclasses
    ``ValueError`` so generic validation code catches it too.
    """


class SubscriptionError(NostrViewError, ValueError):
    """A subscription id is already active in the registry."""
