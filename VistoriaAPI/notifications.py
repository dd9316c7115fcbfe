"""
Notifications emitted after an inspection is finalized.

The finalize route commits the state change first, then schedules
`dispatch_finalized_notice` as a background task with a plain snapshot of
the data it needs. The dispatcher never raises: each channel's failure is
logged and the other channel still runs.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from VistoriaAPI import chat_relay, config, email_service
from VistoriaAPI.models import Inspection

logger = logging.getLogger(__name__)


@dataclass
class FinalizedNotice:
    """
    Snapshot of a finalized inspection, detached from the database session.

    Attributes:
        inspection_id (int): The inspection id.
        inspection_type (str): MOVE_IN, MOVE_OUT or PERIODIC.
        finalized_at (datetime): Finalization time.
        inspector_name (str): Inspector display name.
        inspector_email (str): Email recipient.
        address (str): "street, number" of the property.
        district (str): Property district.
        owner_phone (str): Chat recipient; no chat message when empty.
    """
    inspection_id: int
    inspection_type: str
    finalized_at: Optional[datetime]
    inspector_name: Optional[str]
    inspector_email: Optional[str]
    address: str
    district: Optional[str]
    owner_phone: Optional[str]


def notice_from_inspection(inspection: Inspection) -> FinalizedNotice:
    prop = inspection.property
    inspector = inspection.inspector
    return FinalizedNotice(
        inspection_id=inspection.id,
        inspection_type=getattr(inspection.type, "value", inspection.type),
        finalized_at=inspection.finalized_at,
        inspector_name=inspector.name if inspector else None,
        inspector_email=inspector.email if inspector else None,
        address=f"{prop.street}, {prop.number or 'no number'}",
        district=prop.district,
        owner_phone=prop.phone,
    )


def build_chat_text(notice: FinalizedNotice) -> str:
    date = notice.finalized_at.strftime("%d/%m/%Y") if notice.finalized_at else ""
    return "\n".join([
        "*Inspection finalized*",
        "",
        "Hello! The inspection of your property is complete.",
        "",
        f"*Address:* {notice.address}",
        f"*District:* {notice.district or ''}",
        f"*Date:* {date}",
        f"*Inspector:* {notice.inspector_name or ''}",
        "",
        "Full report:",
        f"{config.FRONTEND_BASE_URL}/inspections/{notice.inspection_id}/report",
    ])


def dispatch_finalized_notice(notice: FinalizedNotice) -> dict:
    """
    Send the inspector email and, when the property has a phone, the owner chat message.

    Returns:
        dict: Per-channel outcome, e.g. {"email": True, "chat": False}.
    """
    outcome = {"email": False, "chat": False}

    try:
        html = email_service.build_finalized_html(
            notice.inspection_id,
            notice.inspector_name,
            notice.address,
            notice.inspection_type,
        )
        outcome["email"] = email_service.send_email(
            notice.inspector_email,
            f"Inspection finalized - {notice.address}",
            html,
        )
    except Exception:
        logger.exception("Finalize email failed for inspection %s", notice.inspection_id)

    if notice.owner_phone:
        try:
            outcome["chat"] = chat_relay.send_message(notice.owner_phone, build_chat_text(notice))
        except Exception:
            logger.exception("Finalize chat message failed for inspection %s", notice.inspection_id)

    logger.info("Finalize notifications for inspection %s: %s", notice.inspection_id, outcome)
    return outcome
