"""
Relay endpoints.

A [Relay][nostrview.models.relay.Relay] is the normalized form of a
``ws://``/``wss://`` URL. Its ``url`` is the key the pool uses for the live
connection set, so equivalent spellings of one endpoint (case, trailing
slash, default port) collapse to one value. The scheme is kept as given:
``ws://`` and ``wss://`` of one host are different relays.

The host decides the route: ``.onion``, ``.i2p`` and ``.loki`` hosts go
through a SOCKS5 proxy, every other host is dialled directly.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from ipaddress import ip_address
from typing import NamedTuple

from rfc3986 import uri_reference
from rfc3986.exceptions import UnpermittedComponentError, ValidationError
from rfc3986.validators import Validator

from .constants import OVERLAY_NETWORKS, NetworkType


DEFAULT_PORTS = {"ws": 80, "wss": 443}

_OVERLAY_SUFFIXES = (
    (".onion", NetworkType.TOR),
    (".i2p", NetworkType.I2P),
    (".loki", NetworkType.LOKI),
)
_LOCAL_HOSTNAMES = frozenset({"localhost", "localhost.localdomain"})
_LABEL_RE = re.compile(r"^[a-z0-9_](?:[a-z0-9_-]*[a-z0-9_])?$")

_validator = (
    Validator()
    .require_presence_of("scheme", "host")
    .allow_schemes("ws", "wss")
    .check_validity_of("scheme", "host", "port", "path")
)


def classify_host(host: str) -> NetworkType:
    """Return the network a bare host (no brackets) belongs to.

    Dotless names other than ``localhost`` and names with empty or
    hyphen-edged labels are ``UNKNOWN``.
    """
    host = host.lower()
    if not host:
        return NetworkType.UNKNOWN
    for suffix, network in _OVERLAY_SUFFIXES:
        if host.endswith(suffix):
            return network
    if host in _LOCAL_HOSTNAMES:
        return NetworkType.LOCAL

    try:
        ip = ip_address(host)
    except ValueError:
        labels = host.split(".")
        if len(labels) < 2 or not all(_LABEL_RE.match(label) for label in labels):
            return NetworkType.UNKNOWN
        return NetworkType.CLEARNET

    if ip.is_loopback or ip.is_private or ip.is_link_local:
        return NetworkType.LOCAL
    return NetworkType.CLEARNET


class _Endpoint(NamedTuple):
    scheme: str
    host: str
    port: int | None
    path: str | None
    network: NetworkType

    def render(self) -> str:
        netloc = f"[{self.host}]" if ":" in self.host else self.host
        if self.port is not None and self.port != DEFAULT_PORTS[self.scheme]:
            netloc = f"{netloc}:{self.port}"
        return f"{self.scheme}://{netloc}{self.path or ''}"


def _parse_endpoint(raw: str) -> _Endpoint:
    uri = uri_reference(raw.strip()).normalize()
    try:
        _validator.validate(uri)
    except UnpermittedComponentError:
        raise ValueError(f"unsupported scheme in {raw!r}: expected ws or wss") from None
    except ValidationError as e:
        raise ValueError(f"malformed relay URL {raw!r}: {e}") from None
    if uri.query or uri.fragment:
        raise ValueError(f"relay URL must not carry a query or fragment: {raw!r}")

    host = uri.host.strip("[]")
    network = classify_host(host)
    if network is NetworkType.UNKNOWN:
        raise ValueError(f"unrecognized relay host {host!r}")

    path = re.sub(r"/{2,}", "/", uri.path or "").rstrip("/") or None
    return _Endpoint(uri.scheme, host, int(uri.port) if uri.port else None, path, network)


@dataclass(frozen=True, slots=True)
class Relay:
    """Immutable, normalized relay endpoint.

    Equality and hashing use the normalized ``url`` only.

    Attributes:
        url: Normalized URL (``scheme://host[:port][/path]``).
        network: Network the host belongs to.
        scheme: ``ws`` or ``wss``, as given.
        host: Host name or IP address, without IPv6 brackets.
        port: Port given in the URL, if any.
        path: Path without trailing slash, or ``None``.

    Raises:
        ValueError: If the input is not a string, is not a ``ws``/``wss``
            URL, carries a query or fragment, or names an unrecognized host.

    Examples:
        ```python
        Relay("wss://Relay.Damus.io:443/").url  # 'wss://relay.damus.io'
        Relay("ws://127.0.0.1:7447").network    # NetworkType.LOCAL
        ```
    """

    raw_url: str = field(repr=False, compare=False)

    url: str = field(init=False)
    network: NetworkType = field(init=False, compare=False)
    scheme: str = field(init=False, compare=False)
    host: str = field(init=False, compare=False)
    port: int | None = field(init=False, compare=False)
    path: str | None = field(init=False, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.raw_url, str):
            raise ValueError(f"relay URL must be a str, got {type(self.raw_url).__name__}")
        if "\x00" in self.raw_url:
            raise ValueError("relay URL contains a null byte")

        endpoint = _parse_endpoint(self.raw_url)
        object.__setattr__(self, "url", endpoint.render())
        for name in ("network", "scheme", "host", "port", "path"):
            object.__setattr__(self, name, getattr(endpoint, name))

    def __str__(self) -> str:
        return self.url

    @property
    def is_overlay(self) -> bool:
        """Whether the relay needs a SOCKS5 proxy (Tor, I2P or Lokinet)."""
        return self.network in OVERLAY_NETWORKS
