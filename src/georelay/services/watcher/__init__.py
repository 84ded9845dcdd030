"""Watcher service package.

Re-exports all public symbols::

    from georelay.services.watcher import Watcher, WatcherConfig
"""

from .configs import WatcherConfig
from .service import Watcher


__all__ = [
    "Watcher",
    "WatcherConfig",
]
