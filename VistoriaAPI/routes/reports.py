from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse, Response
from sqlalchemy.orm import Session

from VistoriaAPI import lifecycle
from VistoriaAPI.database import get_db
from VistoriaAPI.models import User
from VistoriaAPI.reports import build_report_html, build_report_pdf
from .auth import get_current_user

router = APIRouter()


@router.get("/reports/{inspection_id}")
def inspection_report_pdf(
    inspection_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Download the inspection report as a PDF attachment."""
    inspection = lifecycle.get_inspection(db, inspection_id, detailed=True)
    pdf = build_report_pdf(inspection)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename=inspection-{inspection.id}.pdf"},
    )


@router.get("/reports/{inspection_id}/html", response_class=HTMLResponse)
def inspection_report_html(
    inspection_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    inspection = lifecycle.get_inspection(db, inspection_id, detailed=True)
    return HTMLResponse(build_report_html(inspection))
