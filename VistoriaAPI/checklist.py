"""
Checklist generation for new inspections.

An inspection gets one ChecklistItem per (room, label) pair, where the rooms
are either the caller's explicit selection or every room flagged as existing,
and the labels are the fixed `CHECKLIST_ITEMS` vocabulary.
"""

from typing import Iterable, List, Optional, Sequence

from VistoriaAPI.constants import CHECKLIST_ITEMS
from VistoriaAPI.errors import NotFoundError
from VistoriaAPI.models import ChecklistItem, ItemCondition, Room


def select_rooms(rooms: Sequence[Room], room_ids: Optional[Iterable[int]] = None) -> List[Room]:
    """
    Pick the rooms an inspection should cover.

    Args:
        rooms: The property's rooms, already in display order.
        room_ids: Explicit selection. `None` means every room with `exists=True`.

    Returns:
        list[Room]: Selected rooms in display order.

    Raises:
        NotFoundError: If a requested id is not a room of the property.
    """
    if room_ids is None:
        return [room for room in rooms if room.exists]

    wanted = list(dict.fromkeys(room_ids))
    known = {room.id for room in rooms}
    missing = [room_id for room_id in wanted if room_id not in known]
    if missing:
        raise NotFoundError(f"Room(s) not found for this property: {', '.join(str(m) for m in missing)}")
    selected = set(wanted)
    return [room for room in rooms if room.id in selected]


def build_checklist_items(inspection_id: int, rooms: Sequence[Room]) -> List[ChecklistItem]:
    """Cross product of rooms and labels, every item UNVERIFIED."""
    return [
        ChecklistItem(
            inspection_id=inspection_id,
            room_id=room.id,
            label=label,
            condition=ItemCondition.UNVERIFIED,
        )
        for room in rooms
        for label in CHECKLIST_ITEMS
    ]
