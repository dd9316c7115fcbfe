from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from VistoriaAPI.constants import RECENT_INSPECTIONS_LIMIT
from VistoriaAPI.database import get_db
from VistoriaAPI.models import Inspection, User
from VistoriaAPI.schemas import UserAdminResponse, UserCreate, UserDetail, UserUpdate
from VistoriaAPI.utils import client_ip, hash_password, log_activity
from .auth import require_admin
from .inspections import summarize_inspections

router = APIRouter()


def inspection_counts(db: Session, user_ids) -> dict:
    if not user_ids:
        return {}
    return dict(
        db.query(Inspection.inspector_id, func.count(Inspection.id))
        .filter(Inspection.inspector_id.in_(user_ids))
        .group_by(Inspection.inspector_id)
        .all()
    )


def admin_view(users, counts) -> List[UserAdminResponse]:
    result = []
    for user in users:
        view = UserAdminResponse.model_validate(user)
        view.inspection_count = counts.get(user.id, 0)
        result.append(view)
    return result


def _get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _email_taken(db: Session, email: str, exclude_id: int = None) -> bool:
    query = db.query(User.id).filter(User.email == email)
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    return query.first() is not None


# Show all the users
@router.get("/users", response_model=List[UserAdminResponse])
def get_users(db: Session = Depends(get_db), current_user: User = Depends(require_admin)):
    """
    Get all users, active or not, ordered by name.

    Returns:
        list[UserAdminResponse]: Users with the number of inspections each performed.
    """
    users = db.query(User).order_by(User.name, User.id).all()
    return admin_view(users, inspection_counts(db, [u.id for u in users]))


# Get a specific user by ID
@router.get("/users/{user_id}", response_model=UserDetail)
def get_user(user_id: int, db: Session = Depends(get_db), current_user: User = Depends(require_admin)):
    """
    Get a user with their most recent inspections.

    Raises:
        HTTPException: If user not found.
    """
    user = _get_user(db, user_id)
    recent = (
        db.query(Inspection)
        .options(joinedload(Inspection.property), joinedload(Inspection.inspector))
        .filter(Inspection.inspector_id == user.id)
        .order_by(Inspection.created_at.desc(), Inspection.id.desc())
        .limit(RECENT_INSPECTIONS_LIMIT)
        .all()
    )
    (view,) = admin_view([user], inspection_counts(db, [user.id]))
    detail = UserDetail(**view.model_dump())
    detail.inspections = summarize_inspections(db, recent)
    return detail


# Create a new user
@router.post("/users", response_model=UserAdminResponse, status_code=201)
def create_user(
    payload: UserCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """
    Create a user. Inspectors are the default role.

    Raises:
        HTTPException: 400 if the email is already registered.
    """
    if _email_taken(db, payload.email):
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        name=payload.name,
        email=payload.email,
        encrypted_password=hash_password(payload.password),
        role=payload.role,
        active=True,
    )
    db.add(user)
    db.flush()
    log_activity(
        db,
        "CREATE",
        "User",
        user.id,
        user_id=current_user.id,
        data={"name": user.name, "email": user.email, "role": user.role.value},
        ip=client_ip(request),
    )
    db.commit()
    db.refresh(user)
    return UserAdminResponse.model_validate(user)


# Update a user
@router.put("/users/{user_id}", response_model=UserAdminResponse)
def update_user(
    user_id: int,
    payload: UserUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """
    Partially update a user. A new password is hashed before it is stored.

    Raises:
        HTTPException: 404 if the user does not exist, 400 if the new email is taken.
    """
    user = _get_user(db, user_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("email") and _email_taken(db, changes["email"], exclude_id=user.id):
        raise HTTPException(status_code=400, detail="Email already registered")

    password = changes.pop("password", None)
    if password:
        user.encrypted_password = hash_password(password)
    for field, value in changes.items():
        if value is not None:
            setattr(user, field, value)

    fields = sorted(changes)
    if password:
        fields.append("password")
    log_activity(db, "UPDATE", "User", user.id, user_id=current_user.id, data={"fields": fields}, ip=client_ip(request))
    db.commit()
    db.refresh(user)
    (view,) = admin_view([user], inspection_counts(db, [user.id]))
    return view


# Deactivate a user
@router.delete("/users/{user_id}")
def deactivate_user(
    user_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """
    Soft delete: the user can no longer log in, their inspections are kept.

    Raises:
        HTTPException: 400 when an admin targets their own account, 404 if not found.
    """
    if user_id == current_user.id:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")
    user = _get_user(db, user_id)
    user.active = False
    log_activity(db, "DEACTIVATE", "User", user.id, user_id=current_user.id, ip=client_ip(request))
    db.commit()
    return {"detail": "User deactivated"}
