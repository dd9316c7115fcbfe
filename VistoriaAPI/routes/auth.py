from datetime import datetime, timedelta, timezone
from typing import Union

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from sqlalchemy.orm import Session
import jwt

from VistoriaAPI import config
from VistoriaAPI.database import get_db
from VistoriaAPI.models import User, UserRole
from VistoriaAPI.schemas import AccessTokenResponse, RefreshRequest, TokenResponse, UserResponse
from VistoriaAPI.utils import client_ip, log_activity, verify_password

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/login")

router = APIRouter()


def _create_token(user_id: int, token_type: str, expires_delta: timedelta) -> str:
    expire = datetime.now(timezone.utc) + expires_delta
    payload = {"sub": str(user_id), "type": token_type, "exp": expire}
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def create_access_token(user_id: int, expires_delta: Union[timedelta, None] = None) -> str:
    return _create_token(user_id, "access", expires_delta or timedelta(hours=config.ACCESS_TOKEN_EXPIRE_HOURS))


def create_refresh_token(user_id: int, expires_delta: Union[timedelta, None] = None) -> str:
    return _create_token(user_id, "refresh", expires_delta or timedelta(days=config.REFRESH_TOKEN_EXPIRE_DAYS))


def _decode(token: str, expected_type: str) -> int:
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
        if payload.get("type") != expected_type:
            raise ValueError("unexpected token type")
        return int(payload.get("sub"))
    except (jwt.PyJWTError, TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    user_id = _decode(token, "access")
    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")
    return user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != UserRole.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Administrator access required")
    return current_user


# login
@router.post("/login", response_model=TokenResponse)
async def login(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
):
    """
    Authenticate user and return access and refresh tokens.

    Args:
        form_data (OAuth2PasswordRequestForm): Login credentials; `username` is the email.
        db (Session): The database session.

    Returns:
        TokenResponse: Tokens plus the authenticated user.

    Raises:
        HTTPException: If authentication fails or the user is inactive.
    """
    user = db.query(User).filter(User.email == form_data.username.strip().lower()).first()
    if not user or not verify_password(form_data.password, user.encrypted_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User is inactive")

    log_activity(db, "LOGIN", "User", user.id, user_id=user.id, ip=client_ip(request))
    db.commit()

    return {
        "access_token": create_access_token(user.id),
        "refresh_token": create_refresh_token(user.id),
        "token_type": "bearer",
        "user": user,
    }


@router.post("/refresh", response_model=AccessTokenResponse)
def refresh(body: RefreshRequest, db: Session = Depends(get_db)):
    """Exchange a refresh token for a new access token."""
    user_id = _decode(body.refresh_token, "refresh")
    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")
    return {"access_token": create_access_token(user.id), "token_type": "bearer"}


# Get the current user
@router.get("/me", response_model=UserResponse)
def read_users_me(current_user: User = Depends(get_current_user)):
    return current_user
