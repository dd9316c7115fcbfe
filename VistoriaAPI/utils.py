from datetime import datetime, timezone
from typing import Optional

from passlib.context import CryptContext
from sqlalchemy.orm import Session

from VistoriaAPI.models import ActivityLog

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

def verify_password(plain_password, encrypted_password):
    """
    Verify a password against its hash.

    Args:
        plain_password (str): The plain text password.
        encrypted_password (str): The hashed password.

    Returns:
        bool: True if the password matches, False otherwise.
    """
    return pwd_context.verify(plain_password, encrypted_password)

def hash_password(password):
    """
    Hash a password.

    Args:
        password (str): The password to hash.

    Returns:
        str: The hashed password.
    """
    return pwd_context.hash(password)

def utcnow() -> datetime:
    """Naive UTC timestamp, matching the naive DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

def log_activity(
    db: Session,
    action: str,
    entity: str,
    entity_id,
    user_id: Optional[int] = None,
    data: Optional[dict] = None,
    ip: Optional[str] = None,
) -> ActivityLog:
    """
    Add an audit row to the session. The caller owns the commit.

    Args:
        db (Session): The database session.
        action (str): Action name, e.g. "FINALIZE".
        entity (str): Entity name, e.g. "Inspection".
        entity_id: Identifier of the affected row.
        user_id (int, optional): Acting user.
        data (dict, optional): Extra payload stored as JSON.
        ip (str, optional): Client address.

    Returns:
        ActivityLog: The pending row.
    """
    row = ActivityLog(
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        user_id=user_id,
        data=data,
        ip=ip,
    )
    db.add(row)
    return row

def client_ip(request) -> Optional[str]:
    """Address of the caller, or None when the transport does not expose one."""
    return request.client.host if request.client else None
