import math
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload, selectinload

from VistoriaAPI.constants import DEFAULT_ROOMS, RECENT_INSPECTIONS_LIMIT
from VistoriaAPI.database import get_db
from VistoriaAPI.models import ChecklistItem, Inspection, Property, PropertyType, Room, User
from VistoriaAPI.schemas import (
    InspectionSummary,
    PropertyCreate,
    PropertyDetail,
    PropertyListResponse,
    PropertyResponse,
    PropertyUpdate,
    RoomCreate,
    RoomResponse,
    RoomUpdate,
)
from VistoriaAPI.utils import client_ip, log_activity
from .auth import get_current_user

router = APIRouter()


def _get_property(db: Session, property_id: int, active_only: bool = False) -> Property:
    query = db.query(Property).options(selectinload(Property.rooms)).filter(Property.id == property_id)
    if active_only:
        query = query.filter(Property.active.is_(True))
    prop = query.first()
    if not prop:
        raise HTTPException(status_code=404, detail="Property not found")
    return prop


@router.get("/properties", response_model=PropertyListResponse)
def list_properties(
    search: Optional[str] = None,
    type: Optional[PropertyType] = None,
    city: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    List active properties, newest first.

    Args:
        search (str): Matches street, district or owner name (case-insensitive).
        type (PropertyType): Filter by property type.
        city (str): Case-insensitive substring of the city.
        page (int): 1-based page number.
        limit (int): Page size.

    Returns:
        PropertyListResponse: The page plus pagination metadata.
    """
    query = db.query(Property).filter(Property.active.is_(True))
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            Property.street.ilike(pattern),
            Property.district.ilike(pattern),
            Property.owner_name.ilike(pattern),
        ))
    if type:
        query = query.filter(Property.type == type)
    if city:
        query = query.filter(Property.city.ilike(f"%{city}%"))

    total = query.count()
    rows = (
        query.options(selectinload(Property.rooms))
        .order_by(Property.created_at.desc(), Property.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "data": rows,
        "pagination": {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)},
    }


@router.get("/properties/default-rooms", response_model=List[str])
def default_rooms(current_user: User = Depends(get_current_user)):
    return DEFAULT_ROOMS


@router.get("/properties/{property_id}", response_model=PropertyDetail)
def get_property(
    property_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    prop = _get_property(db, property_id)
    recent = (
        db.query(Inspection)
        .options(joinedload(Inspection.inspector))
        .filter(Inspection.property_id == property_id)
        .order_by(Inspection.created_at.desc(), Inspection.id.desc())
        .limit(RECENT_INSPECTIONS_LIMIT)
        .all()
    )
    detail = PropertyDetail.model_validate(prop)
    detail.inspections = [InspectionSummary.model_validate(i) for i in recent]
    return detail


@router.post("/properties", response_model=PropertyResponse, status_code=201)
def create_property(
    payload: PropertyCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Create a property and its rooms.

    When `rooms` is omitted the default room list is used. Room positions
    follow the order given, starting at 1.
    """
    data = payload.model_dump(exclude={"rooms"})
    room_names = payload.rooms if payload.rooms is not None else DEFAULT_ROOMS

    prop = Property(**data)
    prop.rooms = [Room(name=name, position=index + 1, exists=True) for index, name in enumerate(room_names)]
    db.add(prop)
    db.flush()
    log_activity(db, "CREATE", "Property", prop.id, user_id=current_user.id, ip=client_ip(request))
    db.commit()
    return _get_property(db, prop.id)


@router.put("/properties/{property_id}", response_model=PropertyResponse)
def update_property(
    property_id: int,
    payload: PropertyUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    prop = _get_property(db, property_id)
    changes = payload.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(prop, field, value)
    log_activity(
        db,
        "UPDATE",
        "Property",
        prop.id,
        user_id=current_user.id,
        data={"fields": sorted(changes)},
        ip=client_ip(request),
    )
    db.commit()
    return _get_property(db, prop.id)


@router.delete("/properties/{property_id}")
def delete_property(
    property_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Soft delete: the property is hidden from listings, its inspections are kept."""
    prop = _get_property(db, property_id)
    prop.active = False
    log_activity(db, "DEACTIVATE", "Property", prop.id, user_id=current_user.id, ip=client_ip(request))
    db.commit()
    return {"detail": "Property deactivated"}


# Rooms
@router.post("/properties/{property_id}/rooms", response_model=RoomResponse, status_code=201)
def add_room(
    property_id: int,
    payload: RoomCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    prop = _get_property(db, property_id, active_only=True)
    position = payload.position
    if position is None:
        position = (max((room.position for room in prop.rooms), default=0)) + 1
    room = Room(property_id=prop.id, name=payload.name, position=position, exists=payload.exists)
    db.add(room)
    db.commit()
    db.refresh(room)
    return room


def _get_room(db: Session, property_id: int, room_id: int) -> Room:
    room = db.query(Room).filter(Room.id == room_id, Room.property_id == property_id).first()
    if not room:
        raise HTTPException(status_code=404, detail="Room not found")
    return room


@router.put("/properties/{property_id}/rooms/{room_id}", response_model=RoomResponse)
def update_room(
    property_id: int,
    room_id: int,
    payload: RoomUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    _get_property(db, property_id, active_only=True)
    room = _get_room(db, property_id, room_id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(room, field, value)
    db.commit()
    db.refresh(room)
    return room


@router.delete("/properties/{property_id}/rooms/{room_id}")
def delete_room(
    property_id: int,
    room_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Remove a room.

    Rooms already referenced by checklist items cannot be removed; mark them
    as not existing instead.
    """
    _get_property(db, property_id, active_only=True)
    room = _get_room(db, property_id, room_id)
    in_use = db.query(func.count(ChecklistItem.id)).filter(ChecklistItem.room_id == room.id).scalar()
    if in_use:
        raise HTTPException(
            status_code=400,
            detail="Room is used by existing inspections; set exists=false instead",
        )
    db.delete(room)
    db.commit()
    return {"detail": "Room deleted"}
