import math
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from VistoriaAPI import lifecycle
from VistoriaAPI.constants import CHECKLIST_ITEMS
from VistoriaAPI.database import get_db
from VistoriaAPI.models import ChecklistItem, Inspection, InspectionStatus, InspectionType, User, UserRole
from VistoriaAPI.notifications import dispatch_finalized_notice, notice_from_inspection
from VistoriaAPI.schemas import (
    ComparisonResponse,
    InspectionCreate,
    InspectionDetail,
    InspectionListItem,
    InspectionListResponse,
    InspectionNotesUpdate,
    InspectionResponse,
    ItemResponse,
    ItemUpdate,
    ProgressResponse,
    SignatureRequest,
)
from VistoriaAPI.utils import client_ip
from .auth import get_current_user

router = APIRouter()


@router.get("/inspections", response_model=InspectionListResponse)
def list_inspections(
    property_id: Optional[int] = None,
    status: Optional[InspectionStatus] = None,
    type: Optional[InspectionType] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    List inspections, newest first.

    Inspectors only see inspections they performed; administrators see all.
    """
    query = db.query(Inspection)
    if property_id is not None:
        query = query.filter(Inspection.property_id == property_id)
    if status:
        query = query.filter(Inspection.status == status)
    if type:
        query = query.filter(Inspection.type == type)
    if current_user.role != UserRole.ADMIN:
        query = query.filter(Inspection.inspector_id == current_user.id)

    total = query.count()
    rows = (
        query.options(joinedload(Inspection.property), joinedload(Inspection.inspector))
        .order_by(Inspection.created_at.desc(), Inspection.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        "data": summarize_inspections(db, rows),
        "pagination": {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)},
    }


def summarize_inspections(db: Session, rows) -> List[InspectionListItem]:
    """List entries for already loaded inspections, with their checklist item counts."""
    counts = {}
    if rows:
        counts = dict(
            db.query(ChecklistItem.inspection_id, func.count(ChecklistItem.id))
            .filter(ChecklistItem.inspection_id.in_([r.id for r in rows]))
            .group_by(ChecklistItem.inspection_id)
            .all()
        )

    data = []
    for row in rows:
        item = InspectionListItem.model_validate(row)
        item.item_count = counts.get(row.id, 0)
        data.append(item)
    return data


@router.get("/inspections/checklist-items", response_model=List[str])
def checklist_items(current_user: User = Depends(get_current_user)):
    return CHECKLIST_ITEMS


@router.get("/inspections/compare", response_model=ComparisonResponse)
def compare_inspections(
    entry: Optional[int] = None,
    exit: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Diff an entry inspection against an exit inspection.

    Items are matched by (room name, label). Each row reports whether the
    condition changed and, when an exit match exists, whether it improved or
    worsened.
    """
    return lifecycle.compare_inspections(db, entry, exit)


@router.post("/inspections", response_model=InspectionDetail, status_code=201)
def create_inspection(
    payload: InspectionCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Create an inspection with its checklist.

    Args:
        payload (InspectionCreate): Property, type, optional notes and room selection.

    Returns:
        InspectionDetail: The inspection with every generated item.

    Raises:
        NotFoundError: If the property or a selected room does not exist.
    """
    return lifecycle.create_inspection(
        db,
        payload.property_id,
        payload.type,
        current_user,
        notes=payload.notes,
        room_ids=payload.room_ids,
        ip=client_ip(request),
    )


@router.get("/inspections/{inspection_id}", response_model=InspectionDetail)
def get_inspection(
    inspection_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return lifecycle.get_inspection(db, inspection_id, detailed=True)


@router.put("/inspections/{inspection_id}", response_model=InspectionResponse)
def update_inspection(
    inspection_id: int,
    payload: InspectionNotesUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Update the general notes. Rejected once the inspection is finalized."""
    return lifecycle.update_notes(db, inspection_id, payload.notes)


@router.post("/inspections/{inspection_id}/finalize", response_model=InspectionResponse)
def finalize_inspection(
    inspection_id: int,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Finalize an inspection.

    Notifications are scheduled after the state change is committed and do
    not affect the response.

    Raises:
        InvalidStateError: Already finalized, or items still unverified.
    """
    inspection = lifecycle.finalize_inspection(db, inspection_id, current_user, ip=client_ip(request))
    background_tasks.add_task(dispatch_finalized_notice, notice_from_inspection(inspection))
    return inspection


@router.put("/inspections/{inspection_id}/items/{item_id}", response_model=ItemResponse)
def update_item(
    inspection_id: int,
    item_id: int,
    payload: ItemUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return lifecycle.update_item(db, inspection_id, item_id, payload.condition, payload.note)


@router.get("/inspections/{inspection_id}/progress", response_model=ProgressResponse)
def inspection_progress(
    inspection_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return lifecycle.inspection_progress(db, inspection_id)


@router.post("/inspections/{inspection_id}/sign", response_model=InspectionResponse)
def sign_inspection(
    inspection_id: int,
    payload: SignatureRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Store inspector/client signatures. Allowed in any status."""
    return lifecycle.sign_inspection(
        db,
        inspection_id,
        current_user,
        inspector_signature=payload.inspector_signature,
        client_signature=payload.client_signature,
        client_name=payload.client_name,
        ip=client_ip(request),
    )
