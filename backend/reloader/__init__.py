"""
AssetWatch Reloader Package.

Live-reload batching and the notification server.
Requires Python 3.11+.
"""

from reloader.coordinator import LiveReloadCoordinator
from reloader.server import LiveReloadServer, ReloadClientManager, create_app

__all__ = [
    "LiveReloadCoordinator",
    "LiveReloadServer",
    "ReloadClientManager",
    "create_app",
]
