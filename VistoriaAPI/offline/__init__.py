"""
Offline support for the field client.

Mutations made without connectivity go to an `OfflineQueue`; a
`ConnectivityMonitor` asks the `SyncEngine` to replay them through a
`VistoriaClient` once the API is reachable again.
"""

from .client import TransientNetworkError, VistoriaClient
from .monitor import ConnectivityMonitor
from .queue import INSPECTION, ITEM_UPDATE, PHOTO, OfflineQueue
from .sync import DrainReport, SyncEngine


def build_offline_stack(token=None, db_path=None, base_url=None):
    """
    Wire queue, client, engine and monitor from the environment settings.

    Returns:
        tuple: (OfflineQueue, VistoriaClient, SyncEngine, ConnectivityMonitor)
    """
    from VistoriaAPI import config

    queue = OfflineQueue.from_path(db_path or config.OFFLINE_DB_PATH)
    client = VistoriaClient(base_url or config.OFFLINE_API_URL, token=token or config.OFFLINE_API_TOKEN)
    engine = SyncEngine(queue, client)
    monitor = ConnectivityMonitor(
        engine,
        probe=client.ping,
        interval=config.OFFLINE_DRAIN_INTERVAL_SECONDS,
        probe_interval=config.OFFLINE_PROBE_INTERVAL_SECONDS,
    )
    return queue, client, engine, monitor


__all__ = [
    "build_offline_stack",
    "ConnectivityMonitor",
    "DrainReport",
    "INSPECTION",
    "ITEM_UPDATE",
    "OfflineQueue",
    "PHOTO",
    "SyncEngine",
    "TransientNetworkError",
    "VistoriaClient",
]
