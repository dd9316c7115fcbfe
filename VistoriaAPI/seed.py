"""
Seed development data.

Run with `python -m VistoriaAPI.seed`. Safe to run repeatedly: users are
matched by email and the sample property by street and number.
"""

import logging
import os

from VistoriaAPI.database import Base, SessionLocal, engine
from VistoriaAPI.models import Property, PropertyType, Room, User, UserRole
from VistoriaAPI.utils import hash_password

logger = logging.getLogger(__name__)

SAMPLE_ROOMS = ["Living Room", "Kitchen", "Bedroom 1", "Bedroom 2", "Main Bathroom", "Laundry"]


def _ensure_user(db, name, email, password, role):
    user = db.query(User).filter(User.email == email).first()
    if user:
        return user, False
    user = User(name=name, email=email, encrypted_password=hash_password(password), role=role, active=True)
    db.add(user)
    return user, True


def seed(db) -> dict:
    admin_email = os.getenv("ADMIN_EMAIL", "admin@vistoria.app")
    admin_password = os.getenv("ADMIN_PASSWORD", "Admin@2026!")

    _, admin_created = _ensure_user(db, "Administrator", admin_email, admin_password, UserRole.ADMIN)
    _, inspector_created = _ensure_user(
        db, "Sample Inspector", "inspector@vistoria.app", "Vistoria@2026!", UserRole.INSPECTOR
    )

    prop = db.query(Property).filter(Property.street == "Rua Exemplo", Property.number == "123").first()
    property_created = prop is None
    if property_created:
        prop = Property(
            type=PropertyType.APARTMENT,
            street="Rua Exemplo",
            number="123",
            complement="Apt 101",
            district="Centro",
            city="Sao Paulo",
            state="SP",
            postal_code="01310-100",
            owner_name="Joao da Silva",
            phone="(11) 99999-9999",
            notes="Sample property for testing",
        )
        prop.rooms = [Room(name=name, position=index + 1) for index, name in enumerate(SAMPLE_ROOMS)]
        db.add(prop)

    db.commit()
    return {"admin": admin_created, "inspector": inspector_created, "property": property_created}


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        created = seed(db)
        logger.info("Seed finished: %s", created)
    except Exception:
        db.rollback()
        logger.exception("Seed failed")
        raise
    finally:
        db.close()
