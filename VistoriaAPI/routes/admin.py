"""
Administrator dashboard: headline totals, monthly volume and the active team.

Every route requires the ADMIN role.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from VistoriaAPI.constants import DASHBOARD_LATEST_INSPECTIONS, DASHBOARD_MONTHS
from VistoriaAPI.database import get_db
from VistoriaAPI.models import Inspection, InspectionStatus, Property, User
from VistoriaAPI.schemas import DashboardMetrics, MonthlyCount, UserAdminResponse
from VistoriaAPI.utils import utcnow
from .auth import require_admin
from .inspections import summarize_inspections
from .users import admin_view, inspection_counts

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


def month_starts(today: Optional[datetime] = None, count: int = DASHBOARD_MONTHS) -> List[datetime]:
    """First instant of each of the last `count` months, oldest first, current month last."""
    today = today or utcnow()
    index = today.year * 12 + today.month - 1
    return [
        datetime((index - offset) // 12, (index - offset) % 12 + 1, 1)
        for offset in range(count - 1, -1, -1)
    ]


@router.get("/metrics", response_model=DashboardMetrics)
def metrics(db: Session = Depends(get_db)):
    """
    Headline numbers for the dashboard.

    Returns:
        DashboardMetrics: Totals, inspections per type and the latest inspections.
    """
    by_status = dict(
        db.query(Inspection.status, func.count(Inspection.id)).group_by(Inspection.status).all()
    )
    by_type = {
        getattr(kind, "value", kind): total
        for kind, total in db.query(Inspection.type, func.count(Inspection.id)).group_by(Inspection.type).all()
    }
    this_month = month_starts(count=1)[0]

    latest = (
        db.query(Inspection)
        .options(joinedload(Inspection.property), joinedload(Inspection.inspector))
        .order_by(Inspection.created_at.desc(), Inspection.id.desc())
        .limit(DASHBOARD_LATEST_INSPECTIONS)
        .all()
    )

    return {
        "totals": {
            "inspections": sum(by_status.values()),
            "finalized": by_status.get(InspectionStatus.FINALIZED, 0),
            "in_progress": by_status.get(InspectionStatus.IN_PROGRESS, 0),
            "properties": db.query(func.count(Property.id)).filter(Property.active.is_(True)).scalar() or 0,
            "users": db.query(func.count(User.id)).filter(User.active.is_(True)).scalar() or 0,
            "inspections_this_month": (
                db.query(func.count(Inspection.id)).filter(Inspection.created_at >= this_month).scalar() or 0
            ),
        },
        "by_type": by_type,
        "latest": summarize_inspections(db, latest),
    }


@router.get("/inspections-per-month", response_model=List[MonthlyCount])
def inspections_per_month(db: Session = Depends(get_db)):
    """Inspections created in each of the last twelve months, oldest first, empty months included."""
    starts = month_starts()
    totals = {start.strftime("%Y-%m"): 0 for start in starts}
    for (created_at,) in db.query(Inspection.created_at).filter(Inspection.created_at >= starts[0]):
        key = created_at.strftime("%Y-%m")
        if key in totals:
            totals[key] += 1
    return [{"month": month, "total": total} for month, total in totals.items()]


@router.get("/active-users", response_model=List[UserAdminResponse])
def active_users(db: Session = Depends(get_db)):
    users = db.query(User).filter(User.active.is_(True)).order_by(User.name, User.id).all()
    return admin_view(users, inspection_counts(db, [u.id for u in users]))
