"""Core layer: exceptions, structured logging, configuration loading, metrics.

Sits beside ``nostrview.utils`` in the diamond DAG and is depended upon by
``nostrview.client`` and ``nostrview.services``.

Attributes:
    Logger: Structured logger supporting key=value and JSON output modes.
        See [Logger][nostrview.core.logger.Logger].
    MetricsServer: Prometheus ``/metrics`` HTTP endpoint.
        See [MetricsServer][nostrview.core.metrics.MetricsServer].
    YAML: Safe YAML loading with ``yaml.safe_load()``.
        See [load_yaml()][nostrview.core.yaml.load_yaml].
    Exceptions: The [NostrViewError][nostrview.core.exceptions.NostrViewError]
        hierarchy.
"""

from .exceptions import (
    ConfigurationError,
    ConnectivityError,
    DecodeError,
    NostrViewError,
    ProtocolError,
    RelayConnectionError,
    RelaySSLError,
    RelayTimeoutError,
    SubscriptionError,
)
from .logger import Logger, StructuredFormatter, format_kv_pairs, setup_logging
from .metrics import MetricsConfig, MetricsServer, start_metrics_server
from .yaml import load_yaml


__all__ = [
    "ConfigurationError",
    "ConnectivityError",
    "DecodeError",
    "Logger",
    "MetricsConfig",
    "MetricsServer",
    "NostrViewError",
    "ProtocolError",
    "RelayConnectionError",
    "RelaySSLError",
    "RelayTimeoutError",
    "StructuredFormatter",
    "SubscriptionError",
    "format_kv_pairs",
    "load_yaml",
    "setup_logging",
    "start_metrics_server",
]
