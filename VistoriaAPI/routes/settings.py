from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from VistoriaAPI.constants import SENSITIVE_MASK
from VistoriaAPI.database import get_db
from VistoriaAPI.models import AppSetting, User
from VistoriaAPI.schemas import SettingResponse, SettingUpsert, SettingValue
from VistoriaAPI.utils import client_ip, log_activity
from .auth import require_admin

router = APIRouter(prefix="/settings", tags=["settings"])


def masked(setting: AppSetting) -> SettingResponse:
    """Response view of a setting; sensitive values never leave the server in listings."""
    view = SettingResponse.model_validate(setting)
    if setting.sensitive:
        view.value = SENSITIVE_MASK
    return view


def upsert_setting(db: Session, payload: SettingUpsert) -> AppSetting:
    """
    Create or update the setting identified by (category, key). The caller owns the commit.

    `sensitive` is left unchanged on update when the payload omits it.
    """
    setting = (
        db.query(AppSetting)
        .filter(AppSetting.category == payload.category, AppSetting.key == payload.key)
        .first()
    )
    if setting is None:
        setting = AppSetting(category=payload.category, key=payload.key, sensitive=bool(payload.sensitive))
        db.add(setting)
    elif payload.sensitive is not None:
        setting.sensitive = payload.sensitive
    setting.value = payload.value
    if payload.description is not None:
        setting.description = payload.description
    db.flush()
    return setting


@router.get("", response_model=List[SettingResponse])
def list_settings(db: Session = Depends(get_db), current_user: User = Depends(require_admin)):
    settings = db.query(AppSetting).order_by(AppSetting.category, AppSetting.key).all()
    return [masked(s) for s in settings]


@router.put("", response_model=SettingResponse)
def save_setting(
    payload: SettingUpsert,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """
    Create or update one setting.

    Args:
        payload (SettingUpsert): Category, key, value and optional description/sensitivity.

    Returns:
        SettingResponse: The stored setting, masked when sensitive.
    """
    setting = upsert_setting(db, payload)
    log_activity(
        db,
        "UPDATE_SETTING",
        "AppSetting",
        setting.id,
        user_id=current_user.id,
        data={"category": setting.category, "key": setting.key},
        ip=client_ip(request),
    )
    db.commit()
    db.refresh(setting)
    return masked(setting)


@router.put("/batch", response_model=List[SettingResponse])
def save_settings_batch(
    payload: List[SettingUpsert],
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Upsert several settings in one transaction."""
    settings = [upsert_setting(db, item) for item in payload]
    log_activity(
        db,
        "UPDATE_SETTINGS_BATCH",
        "AppSetting",
        "batch",
        user_id=current_user.id,
        data={"count": len(settings)},
        ip=client_ip(request),
    )
    db.commit()
    for setting in settings:
        db.refresh(setting)
    return [masked(s) for s in settings]


# Raw value for internal consumers
@router.get("/value/{category}/{key}", response_model=SettingValue)
def get_setting_value(
    category: str,
    key: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    setting = (
        db.query(AppSetting)
        .filter(AppSetting.category == category, AppSetting.key == key)
        .first()
    )
    if not setting:
        raise HTTPException(status_code=404, detail="Setting not found")
    return {"value": setting.value}


@router.get("/{category}", response_model=List[SettingResponse])
def list_category(category: str, db: Session = Depends(get_db), current_user: User = Depends(require_admin)):
    settings = db.query(AppSetting).filter(AppSetting.category == category).order_by(AppSetting.key).all()
    return [masked(s) for s in settings]


@router.delete("/{setting_id}")
def delete_setting(
    setting_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    setting = db.query(AppSetting).filter(AppSetting.id == setting_id).first()
    if not setting:
        raise HTTPException(status_code=404, detail="Setting not found")
    log_activity(
        db,
        "DELETE_SETTING",
        "AppSetting",
        setting.id,
        user_id=current_user.id,
        data={"category": setting.category, "key": setting.key},
        ip=client_ip(request),
    )
    db.delete(setting)
    db.commit()
    return {"detail": "Setting deleted"}
