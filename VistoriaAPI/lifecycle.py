"""
Inspection lifecycle.

An inspection is created IN_PROGRESS with a fixed set of checklist items and
moves once, irreversibly, to FINALIZED. Every mutation of an inspection, its
items or their photos goes through this module so that the finalized gate is
checked before anything is written, whether the request arrived live or was
replayed by an offline client.
"""

import logging
import time
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload, selectinload

from VistoriaAPI.checklist import build_checklist_items, select_rooms
from VistoriaAPI.constants import SEVERITY_ORDER
from VistoriaAPI.errors import InvalidInputError, InvalidStateError, NotFoundError, StorageBackendError
from VistoriaAPI.image_utils import prepare_photo
from VistoriaAPI.models import (
    ChecklistItem,
    Inspection,
    InspectionStatus,
    ItemCondition,
    Photo,
    Property,
    User,
)
from VistoriaAPI.storage import BlobStore
from VistoriaAPI.utils import log_activity, utcnow

logger = logging.getLogger(__name__)

FINALIZED_EDIT_MESSAGE = "Inspection already finalized, cannot edit"


def _detail_options():
    return (
        joinedload(Inspection.property).selectinload(Property.rooms),
        joinedload(Inspection.inspector),
        selectinload(Inspection.items).joinedload(ChecklistItem.room),
        selectinload(Inspection.items).selectinload(ChecklistItem.photos),
    )


def get_inspection(db: Session, inspection_id: int, detailed: bool = False) -> Inspection:
    """
    Load an inspection or raise NotFoundError.

    Args:
        db (Session): The database session.
        inspection_id (int): The inspection id.
        detailed (bool): Eager-load property, rooms, items and photos.
    """
    query = db.query(Inspection)
    if detailed:
        query = query.options(*_detail_options())
    inspection = query.filter(Inspection.id == inspection_id).first()
    if not inspection:
        raise NotFoundError("Inspection not found")
    return inspection


def _ensure_editable(inspection: Inspection) -> None:
    if inspection.status == InspectionStatus.FINALIZED:
        raise InvalidStateError(FINALIZED_EDIT_MESSAGE)


def create_inspection(
    db: Session,
    property_id: int,
    inspection_type,
    inspector: User,
    notes: Optional[str] = None,
    room_ids: Optional[List[int]] = None,
    ip: Optional[str] = None,
) -> Inspection:
    """
    Create an inspection and its checklist in one transaction.

    Raises:
        NotFoundError: If the property (or a selected room) does not exist.
    """
    prop = (
        db.query(Property)
        .options(selectinload(Property.rooms))
        .filter(Property.id == property_id)
        .first()
    )
    if not prop:
        raise NotFoundError("Property not found")

    rooms = select_rooms(prop.rooms, room_ids)

    inspection = Inspection(
        property_id=prop.id,
        inspector_id=inspector.id,
        type=inspection_type,
        status=InspectionStatus.IN_PROGRESS,
        notes=notes,
    )
    db.add(inspection)
    db.flush()

    db.add_all(build_checklist_items(inspection.id, rooms))
    log_activity(
        db,
        "CREATE",
        "Inspection",
        inspection.id,
        user_id=inspector.id,
        data={"type": getattr(inspection_type, "value", inspection_type), "property_id": prop.id},
        ip=ip,
    )
    db.commit()
    logger.info("Inspection %s created with %s rooms", inspection.id, len(rooms))
    return get_inspection(db, inspection.id, detailed=True)


def update_notes(db: Session, inspection_id: int, notes: Optional[str]) -> Inspection:
    inspection = get_inspection(db, inspection_id)
    _ensure_editable(inspection)
    inspection.notes = notes
    db.commit()
    db.refresh(inspection)
    return inspection


def update_item(
    db: Session,
    inspection_id: int,
    item_id: int,
    condition: ItemCondition,
    note: Optional[str] = None,
) -> ChecklistItem:
    """
    Set the condition and note of a checklist item.

    Any condition may follow any other; only the parent inspection's status
    gates the edit.

    Raises:
        NotFoundError: If the item does not exist within the inspection.
        InvalidStateError: If the inspection is finalized.
    """
    item = (
        db.query(ChecklistItem)
        .options(joinedload(ChecklistItem.inspection))
        .filter(ChecklistItem.id == item_id, ChecklistItem.inspection_id == inspection_id)
        .first()
    )
    if not item:
        raise NotFoundError("Item not found")
    _ensure_editable(item.inspection)

    item.condition = condition
    item.note = note
    db.commit()

    return (
        db.query(ChecklistItem)
        .options(joinedload(ChecklistItem.room), selectinload(ChecklistItem.photos))
        .filter(ChecklistItem.id == item_id)
        .first()
    )


def add_photo(
    db: Session,
    item_id: int,
    content: bytes,
    store: BlobStore,
    caption: Optional[str] = None,
) -> Photo:
    """
    Process an uploaded image, store it and attach it to a checklist item.

    The Photo row is only created once the blob store has accepted the file.

    Raises:
        NotFoundError: If the item does not exist.
        InvalidStateError: If the item's inspection is finalized.
        InvalidInputError: If the payload is not a readable image.
        StorageBackendError: If the blob store rejects the file.
    """
    item = (
        db.query(ChecklistItem)
        .options(joinedload(ChecklistItem.inspection))
        .filter(ChecklistItem.id == item_id)
        .first()
    )
    if not item:
        raise NotFoundError("Item not found")
    if item.inspection.status == InspectionStatus.FINALIZED:
        raise InvalidStateError("Inspection finalized")

    processed = prepare_photo(content)
    filename = f"{int(time.time() * 1000)}-{item_id}.webp"
    try:
        url = store.store(processed, filename)
    except StorageBackendError:
        raise
    except Exception as exc:
        logger.exception("Blob store failed for item %s", item_id)
        raise StorageBackendError(f"Failed to store photo: {exc}") from exc

    photo = Photo(item_id=item_id, url=url, caption=caption)
    db.add(photo)
    db.commit()
    db.refresh(photo)
    return photo


def delete_photo(db: Session, photo_id: int, store: BlobStore) -> None:
    """
    Remove a photo and its blob.

    Blob removal failures are logged and do not keep the row alive.

    Raises:
        NotFoundError: If the photo does not exist.
        InvalidStateError: If the owning inspection is finalized.
    """
    photo = (
        db.query(Photo)
        .options(joinedload(Photo.item).joinedload(ChecklistItem.inspection))
        .filter(Photo.id == photo_id)
        .first()
    )
    if not photo:
        raise NotFoundError("Photo not found")
    if photo.item.inspection.status == InspectionStatus.FINALIZED:
        raise InvalidStateError("Inspection finalized")

    try:
        store.delete(photo.url)
    except Exception:
        logger.exception("Failed to delete blob %s", photo.url)

    db.delete(photo)
    db.commit()


def finalize_inspection(db: Session, inspection_id: int, user: User, ip: Optional[str] = None) -> Inspection:
    """
    Move an inspection from IN_PROGRESS to FINALIZED.

    The transition is a conditional UPDATE on the current status, so of two
    concurrent finalize calls only one changes the row; the other fails as
    already finalized.

    Raises:
        NotFoundError: If the inspection does not exist.
        InvalidStateError: If it is already finalized or has unverified items
            (the count is carried in `unverified_count`).
    """
    inspection = get_inspection(db, inspection_id)
    if inspection.status == InspectionStatus.FINALIZED:
        raise InvalidStateError("Inspection is already finalized")

    unverified = (
        db.query(func.count(ChecklistItem.id))
        .filter(
            ChecklistItem.inspection_id == inspection_id,
            ChecklistItem.condition == ItemCondition.UNVERIFIED,
        )
        .scalar()
    ) or 0
    if unverified:
        raise InvalidStateError(
            f"There are still {unverified} unverified items",
            unverified_count=unverified,
        )

    changed = (
        db.query(Inspection)
        .filter(Inspection.id == inspection_id, Inspection.status == InspectionStatus.IN_PROGRESS)
        .update(
            {Inspection.status: InspectionStatus.FINALIZED, Inspection.finalized_at: utcnow()},
            synchronize_session=False,
        )
    )
    if not changed:
        db.rollback()
        raise InvalidStateError("Inspection is already finalized")

    log_activity(db, "FINALIZE", "Inspection", inspection_id, user_id=user.id, ip=ip)
    db.commit()
    db.expire_all()
    logger.info("Inspection %s finalized by user %s", inspection_id, user.id)
    return get_inspection(db, inspection_id, detailed=True)


def sign_inspection(
    db: Session,
    inspection_id: int,
    user: User,
    inspector_signature: Optional[str] = None,
    client_signature: Optional[str] = None,
    client_name: Optional[str] = None,
    ip: Optional[str] = None,
) -> Inspection:
    """Store signatures. Allowed in any status and never changes it."""
    inspection = get_inspection(db, inspection_id)
    inspection.inspector_signature = inspector_signature
    inspection.client_signature = client_signature
    inspection.client_name = client_name
    log_activity(db, "SIGN", "Inspection", inspection_id, user_id=user.id, ip=ip)
    db.commit()
    db.refresh(inspection)
    return inspection


def inspection_progress(db: Session, inspection_id: int) -> Dict:
    inspection = get_inspection(db, inspection_id, detailed=True)
    total = len(inspection.items)
    verified = 0
    by_room: Dict[str, Dict[str, int]] = {}
    for item in inspection.items:
        bucket = by_room.setdefault(item.room.name, {"total": 0, "verified": 0})
        bucket["total"] += 1
        if item.condition != ItemCondition.UNVERIFIED:
            verified += 1
            bucket["verified"] += 1
    # half-up rounding
    percentage = (verified * 100 + total // 2) // total if total else 0
    return {"total": total, "verified": verified, "percentage": percentage, "by_room": by_room}


def severity_rank(condition) -> int:
    return SEVERITY_ORDER.index(getattr(condition, "value", condition))


def classify_change(entry_condition, exit_condition) -> str:
    """
    Compare two conditions by severity rank.

    Returns:
        str: "improved" if the exit side ranks strictly better, "worsened" if
        strictly worse, otherwise "unchanged".
    """
    entry_rank = severity_rank(entry_condition)
    exit_rank = severity_rank(exit_condition)
    if exit_rank < entry_rank:
        return "improved"
    if exit_rank > entry_rank:
        return "worsened"
    return "unchanged"


def _side(item: ChecklistItem) -> Dict:
    return {"condition": item.condition, "note": item.note, "photos": list(item.photos)}


def compare_inspections(db: Session, entry_id: Optional[int], exit_id: Optional[int]) -> Dict:
    """
    Diff an entry inspection against an exit inspection, keyed by (room name, label).

    Raises:
        InvalidInputError: If either id is missing.
        NotFoundError: If either inspection does not exist.
    """
    if entry_id is None or exit_id is None:
        raise InvalidInputError("Entry and exit inspection ids are required")

    entry = db.query(Inspection).options(*_detail_options()).filter(Inspection.id == entry_id).first()
    exit_ = db.query(Inspection).options(*_detail_options()).filter(Inspection.id == exit_id).first()
    if not entry or not exit_:
        raise NotFoundError("One or more inspections not found")

    exit_index: Dict[tuple, ChecklistItem] = {}
    for item in exit_.items:
        exit_index.setdefault((item.room.name, item.label), item)

    rows = []
    for item in entry.items:
        match = exit_index.get((item.room.name, item.label))
        rows.append({
            "room": item.room.name,
            "label": item.label,
            "entry": _side(item),
            "exit": _side(match) if match else None,
            "changed": match is not None and match.condition != item.condition,
            "change": classify_change(item.condition, match.condition) if match else None,
        })

    return {
        "entry": entry,
        "exit": exit_,
        "property": entry.property,
        "comparison": rows,
    }
