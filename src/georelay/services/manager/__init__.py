"""Connection manager package.

Re-exports all public symbols::

    from georelay.services.manager import ConnectionManager, ConnectionManagerConfig
"""

from .configs import (
    DEFAULT_RELAYS,
    DEFAULT_SPREAD_PREFIXES,
    ConnectionManagerConfig,
    EventStoreConfig,
    GeolocationConfig,
    InitialRelaysConfig,
    PrivateMessagesConfig,
    RelayPoolConfig,
    SubscriptionConfig,
)
from .geolocation import locate_host
from .service import ActivityObserver, ConnectionManager, StateObserver
from .stats import StatsAggregator
from .store import EventStore, EventStoreStats
from .utils import (
    Admission,
    aggregate_status,
    build_content_filter,
    build_private_filter,
    classify_event,
    extract_tag,
    format_status_text,
    plan_local_relays,
    select_spread_relays,
)


__all__ = [
    "DEFAULT_RELAYS",
    "DEFAULT_SPREAD_PREFIXES",
    "ActivityObserver",
    "Admission",
    "ConnectionManager",
    "ConnectionManagerConfig",
    "EventStore",
    "EventStoreConfig",
    "EventStoreStats",
    "GeolocationConfig",
    "InitialRelaysConfig",
    "PrivateMessagesConfig",
    "RelayPoolConfig",
    "StateObserver",
    "StatsAggregator",
    "SubscriptionConfig",
    "aggregate_status",
    "build_content_filter",
    "build_private_filter",
    "classify_event",
    "extract_tag",
    "format_status_text",
    "locate_host",
    "plan_local_relays",
    "select_spread_relays",
]
