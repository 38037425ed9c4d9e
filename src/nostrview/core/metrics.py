"""
Prometheus metrics for relay connections and subscription traffic.

Metric objects are module-level singletons updated by the client layer
whether or not the HTTP endpoint is running; the
[MetricsServer][nostrview.core.metrics.MetricsServer] only exposes them.
It is started by long-running commands such as ``watch`` when
``metrics.enabled`` is set.

Architecture:
    CONNECT_ATTEMPTS:           Connection attempts by outcome status.
    CONNECT_DURATION_SECONDS:   Histogram of handshake latency.
    RELAYS_OPEN:                Live connections in the pool.
    FRAMES_RECEIVED:            Inbound frames by NIP-01 type.
    FRAMES_DROPPED:             Inbound frames discarded, by reason.
    EVENTS_DISPATCHED:          Events delivered to subscription callbacks.
    SUBSCRIPTIONS_ACTIVE:       Subscriptions currently registered.
"""

from __future__ import annotations

from aiohttp import web
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class MetricsConfig(BaseModel):
    """Configuration for the Prometheus metrics endpoint.

    The endpoint is only started when ``enabled`` is True.
    """

    enabled: bool = Field(default=False, description="Serve metrics over HTTP")
    port: int = Field(default=8000, ge=1024, le=65535, description="Metrics HTTP port")
    host: str = Field(default="127.0.0.1", description="Metrics HTTP bind address")
    path: str = Field(default="/metrics", description="Metrics endpoint path")


# ---------------------------------------------------------------------------
# Pool metrics
# ---------------------------------------------------------------------------

CONNECT_ATTEMPTS = Counter(
    "nostrview_connect_attempts",
    "Relay connection attempts by outcome",
    ["status"],
)

# Handshake latency; bounded above by the per-relay connect timeout
CONNECT_DURATION_SECONDS = Histogram(
    "nostrview_connect_duration_seconds",
    "Duration of relay connection attempts in seconds",
    buckets=(0.1, 0.25, 0.5, 1, 2, 3, 5, 10),
)

RELAYS_OPEN = Gauge(
    "nostrview_relays_open",
    "Relay connections currently open",
)


# ---------------------------------------------------------------------------
# Registry metrics
# ---------------------------------------------------------------------------

FRAMES_RECEIVED = Counter(
    "nostrview_frames_received",
    "Inbound relay frames by message type",
    ["type"],
)

FRAMES_DROPPED = Counter(
    "nostrview_frames_dropped",
    "Inbound relay frames discarded before delivery",
    ["reason"],
)

EVENTS_DISPATCHED = Counter(
    "nostrview_events_dispatched",
    "Events delivered to subscription callbacks",
)

SUBSCRIPTIONS_ACTIVE = Gauge(
    "nostrview_subscriptions_active",
    "Subscriptions currently registered",
)


# ---------------------------------------------------------------------------
# HTTP Server
# ---------------------------------------------------------------------------


class MetricsServer:
    """Async HTTP server exposing a Prometheus-compatible endpoint.

    Example:
        server = MetricsServer(MetricsConfig(enabled=True, port=8001))
        await server.start()
        # ... watch runs ...
        await server.stop()
    """

    def __init__(self, config: MetricsConfig) -> None:
        self._config = config
        self._runner: web.AppRunner | None = None

    @property
    def running(self) -> bool:
        return self._runner is not None

    async def start(self) -> None:
        """Bind the endpoint; a no-op when metrics are disabled.

        Raises:
            OSError: If the port is already in use or binding fails.
        """
        if not self._config.enabled or self._runner is not None:
            return

        app = web.Application()
        app.router.add_get(self._config.path, self._handle_metrics)

        runner = web.AppRunner(app, access_log=None)
        await runner.setup()
        site = web.TCPSite(runner, self._config.host, self._config.port)
        try:
            await site.start()
        except OSError:
            await runner.cleanup()
            raise
        self._runner = runner

    async def stop(self) -> None:
        """Stop the server. Safe to call when it was never started."""
        if self._runner is not None:
            runner, self._runner = self._runner, None
            await runner.cleanup()

    @staticmethod
    async def _handle_metrics(_request: web.Request) -> web.Response:
        return web.Response(
            body=generate_latest(),
            headers={"Content-Type": CONTENT_TYPE_LATEST},
        )


async def start_metrics_server(config: MetricsConfig | None = None) -> MetricsServer:
    """Create and start a [MetricsServer][nostrview.core.metrics.MetricsServer].

    The caller owns the returned server and should ``stop()`` it on shutdown.
    """
    server = MetricsServer(config or MetricsConfig())
    await server.start()
    return server
