"""
Replays the offline queue against the API.

A drain pass runs three phases in a fixed order (inspection creates, then item
updates, then photo uploads), each oldest first. Every entry is attempted on
its own: a TransientNetworkError, or any other exception raised while
replaying, leaves that entry unsynced and the pass moves on. The next drain
is the only retry.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from VistoriaAPI.offline.client import TransientNetworkError
from VistoriaAPI.offline.queue import INSPECTION, ITEM_UPDATE, PHOTO, OfflineQueue

logger = logging.getLogger(__name__)

PHASES = (INSPECTION, ITEM_UPDATE, PHOTO)


@dataclass
class DrainReport:
    """Outcome of one drain pass."""
    synced: dict = field(default_factory=lambda: {kind: 0 for kind in PHASES})
    failed: dict = field(default_factory=lambda: {kind: 0 for kind in PHASES})
    pending: int = 0
    finished_at: Optional[datetime] = None
    order: List[str] = field(default_factory=list)


class SyncEngine:
    """
    Args:
        queue (OfflineQueue): Local storage context.
        client: Object exposing `create_inspection`, `update_item` and
            `upload_photo` coroutines (normally a VistoriaClient).
    """

    def __init__(self, queue: OfflineQueue, client):
        self.queue = queue
        self.client = client
        self.pending_count = queue.pending_count()
        self.last_sync: Optional[datetime] = None
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def drain(self) -> Optional[DrainReport]:
        """
        Run one full pass.

        Returns:
            DrainReport, or None if a pass was already running (the request is dropped).
        """
        if self._in_flight:
            logger.debug("Drain already in flight; request dropped")
            return None
        self._in_flight = True
        try:
            report = DrainReport()
            for kind in PHASES:
                for entry in self.queue.list_unsynced(kind):
                    try:
                        server_id = await self._replay(kind, entry)
                    except TransientNetworkError as exc:
                        report.failed[kind] += 1
                        logger.warning("Replay of %s #%s failed: %s", kind, entry.id, exc)
                        continue
                    except Exception:
                        report.failed[kind] += 1
                        logger.exception("Replay of %s #%s raised unexpectedly", kind, entry.id)
                        continue
                    confirmed = self.queue.mark_synced(
                        kind,
                        entry.id,
                        server_id=server_id,
                        revision=getattr(entry, "revision", None),
                    )
                    if not confirmed:
                        logger.info("%s #%s changed during replay; kept for the next pass", kind, entry.id)
                    report.synced[kind] += 1
                    report.order.append(kind)

            self.queue.sweep()
            self.pending_count = self.queue.pending_count()
            self.last_sync = datetime.now(timezone.utc)
            report.pending = self.pending_count
            report.finished_at = self.last_sync
            logger.info(
                "Drain finished: synced=%s failed=%s pending=%s",
                report.synced,
                report.failed,
                report.pending,
            )
            return report
        finally:
            self._in_flight = False

    async def _replay(self, kind: str, entry) -> Optional[int]:
        if kind == INSPECTION:
            created = await self.client.create_inspection(entry.payload)
            return (created or {}).get("id")
        if kind == ITEM_UPDATE:
            await self.client.update_item(entry.inspection_id, entry.item_id, entry.condition, entry.note)
            return None
        await self.client.upload_photo(entry.item_id, entry.content, entry.filename, entry.content_type, entry.caption)
        return None
