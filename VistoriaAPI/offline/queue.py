"""
Device-local queue of mutations not yet confirmed by the API.

Everything lives in a small SQLite database owned by the field client. The
queue object wraps an engine handed in by the caller, so tests can use an
in-memory database and the app can point it at a file that survives restarts.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterator, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    JSON,
    LargeBinary,
    String,
    Text,
    UniqueConstraint,
    and_,
    create_engine,
    func,
    or_,
)
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import declarative_base, sessionmaker

logger = logging.getLogger(__name__)

LocalBase = declarative_base()

INSPECTION = "INSPECTION"
ITEM_UPDATE = "ITEM_UPDATE"
PHOTO = "PHOTO"

SYNCED_RETENTION = timedelta(days=7)
DEFAULT_CACHE_TTL_MINUTES = 60


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class PendingInspection(LocalBase):
    """
    An inspection created while offline.

    Attributes:
        temp_id (str): Locally generated identifier, used until the server assigns one.
        payload (dict): Body for POST /inspections.
        server_id (int): Id returned by the server once synced.
    """
    __tablename__ = "pending_inspections"

    id = Column(Integer, primary_key=True)
    temp_id = Column(String, unique=True, nullable=False)
    payload = Column(JSON, nullable=False)
    server_id = Column(Integer)
    synced = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=_utcnow, index=True)


class PendingItemUpdate(LocalBase):
    """
    At most one row per (inspection_id, item_id); a newer write replaces the older one.

    `revision` is bumped on every replacement so a replay only confirms the
    payload it actually sent.
    """
    __tablename__ = "pending_item_updates"
    __table_args__ = (UniqueConstraint("inspection_id", "item_id", name="uq_pending_item"),)

    id = Column(Integer, primary_key=True)
    inspection_id = Column(String, nullable=False)
    item_id = Column(String, nullable=False)
    condition = Column(String, nullable=False)
    note = Column(Text)
    synced = Column(Boolean, nullable=False, default=False)
    revision = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=_utcnow, index=True)


class PendingPhoto(LocalBase):
    __tablename__ = "pending_photos"

    id = Column(Integer, primary_key=True)
    item_id = Column(String, nullable=False)
    content = Column(LargeBinary, nullable=False)
    filename = Column(String, nullable=False)
    content_type = Column(String, nullable=False, default="image/jpeg")
    caption = Column(String)
    synced = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=_utcnow, index=True)


class CacheEntry(LocalBase):
    __tablename__ = "cache_entries"

    id = Column(Integer, primary_key=True)
    key = Column(String, unique=True, nullable=False)
    value = Column(JSON)
    expires_at = Column(DateTime, nullable=False, index=True)


_MODELS = {
    INSPECTION: PendingInspection,
    ITEM_UPDATE: PendingItemUpdate,
    PHOTO: PendingPhoto,
}


class OfflineQueue:
    """
    Storage context for pending mutations and the expiring cache.

    Args:
        engine: SQLAlchemy engine for the local database. Tables are created on init.
        batch_size (int): Rows fetched per round trip by `list_unsynced`.
    """

    def __init__(self, engine, batch_size: int = 50):
        self.engine = engine
        self.batch_size = batch_size
        self.Session = sessionmaker(bind=engine, expire_on_commit=False)
        LocalBase.metadata.create_all(bind=engine)

    @classmethod
    def from_path(cls, path: str, **kwargs) -> "OfflineQueue":
        return cls(create_engine(f"sqlite:///{path}"), **kwargs)

    @staticmethod
    def _model(kind: str):
        try:
            return _MODELS[kind]
        except KeyError:
            raise ValueError(f"Unknown queue kind: {kind}")

    # Enqueue
    def enqueue_inspection(self, payload: Dict[str, Any], temp_id: Optional[str] = None) -> PendingInspection:
        row = PendingInspection(
            temp_id=temp_id or f"temp-{uuid.uuid4().hex}",
            payload=payload,
            synced=False,
            created_at=_utcnow(),
        )
        with self.Session() as session:
            session.add(row)
            session.commit()
        return row

    def enqueue_item_update(self, inspection_id, item_id, condition: str, note: Optional[str] = None) -> PendingItemUpdate:
        """
        Queue an item update, replacing any queued update for the same item.

        The replacement is a single upsert on (inspection_id, item_id); the row
        is reset to unsynced, gets a new revision and moves to the back of the
        replay order.
        """
        now = _utcnow()
        values = {
            "inspection_id": str(inspection_id),
            "item_id": str(item_id),
            "condition": getattr(condition, "value", condition),
            "note": note,
            "synced": False,
            "revision": 0,
            "created_at": now,
        }
        stmt = sqlite_insert(PendingItemUpdate).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["inspection_id", "item_id"],
            set_={
                "condition": stmt.excluded.condition,
                "note": stmt.excluded.note,
                "synced": False,
                "revision": PendingItemUpdate.__table__.c.revision + 1,
                "created_at": stmt.excluded.created_at,
            },
        )
        with self.Session() as session:
            session.execute(stmt)
            session.commit()
            return (
                session.query(PendingItemUpdate)
                .filter_by(inspection_id=values["inspection_id"], item_id=values["item_id"])
                .one()
            )

    def enqueue_photo(
        self,
        item_id,
        content: bytes,
        filename: str,
        content_type: str = "image/jpeg",
        caption: Optional[str] = None,
    ) -> PendingPhoto:
        row = PendingPhoto(
            item_id=str(item_id),
            content=content,
            filename=filename,
            content_type=content_type,
            caption=caption,
            synced=False,
            created_at=_utcnow(),
        )
        with self.Session() as session:
            session.add(row)
            session.commit()
        return row

    # Replay
    def list_unsynced(self, kind: str) -> Iterator:
        """
        Lazily yield unsynced entries of one kind, oldest first.

        Rows are read in keyset batches over (created_at, id) and yielded
        detached, so the caller may mark entries synced while iterating.
        Calling again starts a fresh pass.
        """
        model = self._model(kind)
        last = None
        while True:
            with self.Session() as session:
                query = session.query(model).filter(model.synced.is_(False))
                if last is not None:
                    query = query.filter(or_(
                        model.created_at > last[0],
                        and_(model.created_at == last[0], model.id > last[1]),
                    ))
                batch = query.order_by(model.created_at, model.id).limit(self.batch_size).all()
                session.expunge_all()
            if not batch:
                return
            for row in batch:
                yield row
            if len(batch) < self.batch_size:
                return
            last = (batch[-1].created_at, batch[-1].id)

    def mark_synced(
        self,
        kind: str,
        entry_id: int,
        server_id: Optional[int] = None,
        revision: Optional[int] = None,
    ) -> bool:
        """
        Flag an entry as synced. Repeating the call is harmless.

        Args:
            revision (int, optional): For item updates, the revision that was
                replayed. If the row was replaced since, it stays unsynced.

        Returns:
            bool: False when no row matched, e.g. a newer item update superseded the replayed one.
        """
        model = self._model(kind)
        values = {"synced": True}
        if server_id is not None and kind == INSPECTION:
            values["server_id"] = server_id
        with self.Session() as session:
            query = session.query(model).filter(model.id == entry_id)
            if revision is not None and kind == ITEM_UPDATE:
                query = query.filter(model.revision == revision)
            matched = query.update(values, synchronize_session=False)
            session.commit()
        return bool(matched)

    # Housekeeping
    def sweep(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Delete synced entries older than the retention window and expired cache rows.

        Unsynced entries are never deleted, whatever their age.

        Returns:
            dict: Deleted row count per table.
        """
        now = now or _utcnow()
        cutoff = now - SYNCED_RETENTION
        removed = {}
        with self.Session() as session:
            for kind, model in _MODELS.items():
                removed[kind] = (
                    session.query(model)
                    .filter(model.synced.is_(True), model.created_at < cutoff)
                    .delete(synchronize_session=False)
                )
            removed["CACHE"] = (
                session.query(CacheEntry)
                .filter(CacheEntry.expires_at <= now)
                .delete(synchronize_session=False)
            )
            session.commit()
        if any(removed.values()):
            logger.info("Queue sweep removed %s", removed)
        return removed

    def pending_count(self) -> int:
        with self.Session() as session:
            return sum(
                session.query(func.count(model.id)).filter(model.synced.is_(False)).scalar() or 0
                for model in _MODELS.values()
            )

    # Cache
    def cache_put(self, key: str, value: Any, ttl_minutes: int = DEFAULT_CACHE_TTL_MINUTES, now: Optional[datetime] = None) -> None:
        expires_at = (now or _utcnow()) + timedelta(minutes=ttl_minutes)
        stmt = sqlite_insert(CacheEntry).values(key=key, value=value, expires_at=expires_at)
        stmt = stmt.on_conflict_do_update(
            index_elements=["key"],
            set_={"value": stmt.excluded.value, "expires_at": stmt.excluded.expires_at},
        )
        with self.Session() as session:
            session.execute(stmt)
            session.commit()

    def cache_get(self, key: str, now: Optional[datetime] = None) -> Any:
        """Return the cached value, or None if missing or expired (expired rows are removed)."""
        now = now or _utcnow()
        with self.Session() as session:
            entry = session.query(CacheEntry).filter(CacheEntry.key == key).first()
            if entry is None:
                return None
            if entry.expires_at <= now:
                session.delete(entry)
                session.commit()
                return None
            return entry.value
