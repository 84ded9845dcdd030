"""Core layer: infrastructure shared by every service.

Sits in the middle of the diamond DAG -- depends only on
``georelay.models`` and is depended upon by ``georelay.services``.

Attributes:
    BaseService: Abstract generic service with lifecycle management
        ([run()][georelay.core.base_service.BaseService.run] /
        [run_forever()][georelay.core.base_service.BaseService.run_forever] /
        shutdown), YAML/dict factories, and Prometheus metrics.
    Logger: Structured logger supporting key=value and JSON output modes.
    MetricsServer: Prometheus ``/metrics`` HTTP endpoint.
    RetryPolicy: Backoff value object consumed by
        [retry_async()][georelay.core.retry.retry_async].
    StateStore: JSON-file key-value persistence.
    load_yaml: Safe YAML loading with ``yaml.safe_load()``.
"""

from .base_service import BaseService, BaseServiceConfig, ConfigT
from .exceptions import (
    ConfigurationError,
    ConnectivityError,
    DirectoryFetchError,
    GeolocationError,
    GeoRelayError,
    StateStoreError,
)
from .logger import Logger, StructuredFormatter, format_kv_pairs
from .metrics import (
    CYCLE_DURATION_SECONDS,
    SERVICE_COUNTER,
    SERVICE_GAUGE,
    SERVICE_INFO,
    MetricsConfig,
    MetricsServer,
    start_metrics_server,
)
from .retry import RetryPolicy, retry_async
from .state import StateStore
from .yaml import load_yaml


__all__ = [
    "CYCLE_DURATION_SECONDS",
    "SERVICE_COUNTER",
    "SERVICE_GAUGE",
    "SERVICE_INFO",
    "BaseService",
    "BaseServiceConfig",
    "ConfigT",
    "ConfigurationError",
    "ConnectivityError",
    "DirectoryFetchError",
    "GeoRelayError",
    "GeolocationError",
    "Logger",
    "MetricsConfig",
    "MetricsServer",
    "RetryPolicy",
    "StateStore",
    "StateStoreError",
    "StructuredFormatter",
    "format_kv_pairs",
    "load_yaml",
    "retry_async",
    "start_metrics_server",
]
