import os
import sys
import tempfile
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

DEFAULT_SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
SQLALCHEMY_DATABASE_URL = os.getenv("TEST_DATABASE_URL") or DEFAULT_SQLALCHEMY_DATABASE_URL
TEST_UPLOAD_DIR = tempfile.mkdtemp(prefix="vistoria-uploads-")

# Ensure the application itself uses the test database and never reaches external services.
os.environ.setdefault("DATABASE_URL", SQLALCHEMY_DATABASE_URL)
os.environ["STORAGE_TYPE"] = "local"
os.environ["UPLOAD_DIR"] = TEST_UPLOAD_DIR
os.environ["EMAIL_ENABLED"] = "false"
os.environ["CHATWOOT_API_TOKEN"] = ""

from VistoriaAPI import config
from VistoriaAPI.main import app
from VistoriaAPI.database import Base, get_db
from VistoriaAPI.models import Property, PropertyType, Room, User, UserRole
from VistoriaAPI.storage import LocalBlobStore, get_blob_store
from VistoriaAPI.utils import hash_password


def _create_engine(url: str):
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, pool_pre_ping=True, connect_args=connect_args)


engine = _create_engine(SQLALCHEMY_DATABASE_URL)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

try:
    with engine.begin() as connection:
        Base.metadata.drop_all(bind=connection)
        Base.metadata.create_all(bind=connection)
except OperationalError as exc:
    raise RuntimeError(
        "Unable to initialize the database schema for tests. "
        "Set TEST_DATABASE_URL to a reachable database URL or ensure SQLite is available."
    ) from exc


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db
app.dependency_overrides[get_blob_store] = lambda: LocalBlobStore(TEST_UPLOAD_DIR)


@pytest.fixture(scope="module")
def test_client():
    with TestClient(app) as client:
        yield client


@pytest.fixture
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}@example.com"


def create_user(db, email=None, role=UserRole.INSPECTOR, password="secret123", active=True, name="Test User"):
    user = User(
        name=name,
        email=email or unique_email(),
        encrypted_password=hash_password(password),
        role=role,
        active=active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def get_token_for_user(user_id: int, token_type: str = "access"):
    payload = {
        "sub": str(user_id),
        "type": token_type,
        "exp": datetime.now(timezone.utc) + timedelta(hours=1),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {get_token_for_user(user.id)}"}


def create_property(db, room_names=("Living Room", "Kitchen"), phone=None, **overrides):
    data = dict(
        type=PropertyType.APARTMENT,
        street="Rua Teste",
        number="10",
        district="Centro",
        city="Sao Paulo",
        state="SP",
        phone=phone,
    )
    data.update(overrides)
    prop = Property(**data)
    prop.rooms = [Room(name=name, position=index + 1, exists=True) for index, name in enumerate(room_names)]
    db.add(prop)
    db.commit()
    db.refresh(prop)
    return prop


@pytest.fixture
def inspector(db):
    return create_user(db, email=unique_email("inspector"), name="Ana Inspector")


@pytest.fixture
def admin(db):
    return create_user(db, email=unique_email("admin"), role=UserRole.ADMIN, name="Admin")


@pytest.fixture
def headers(inspector):
    return auth_headers(inspector)
