import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text, JSON, Enum, UniqueConstraint, func
from sqlalchemy.orm import relationship, declarative_base


Base = declarative_base()


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    INSPECTOR = "INSPECTOR"


class PropertyType(str, enum.Enum):
    HOUSE = "HOUSE"
    APARTMENT = "APARTMENT"
    COMMERCIAL = "COMMERCIAL"
    LAND = "LAND"
    RURAL = "RURAL"


class InspectionType(str, enum.Enum):
    MOVE_IN = "MOVE_IN"
    MOVE_OUT = "MOVE_OUT"
    PERIODIC = "PERIODIC"


class InspectionStatus(str, enum.Enum):
    IN_PROGRESS = "IN_PROGRESS"
    FINALIZED = "FINALIZED"


class ItemCondition(str, enum.Enum):
    GOOD = "GOOD"
    FAIR = "FAIR"
    POOR = "POOR"
    NOT_APPLICABLE = "NOT_APPLICABLE"
    UNVERIFIED = "UNVERIFIED"


# Users
class User(Base):
    """
    Represents an application user (administrator or field inspector).

    Attributes:
        id (int): Primary key.
        name (str): Display name.
        email (str): Unique login email.
        encrypted_password (str): bcrypt hash of the password.
        role (UserRole): Access role.
        active (bool): Inactive users cannot authenticate.
        created_at (datetime): Creation timestamp.
        updated_at (datetime): Update timestamp.
        inspections (list[Inspection]): Inspections performed by the user.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, default="")
    email = Column(String, unique=True, index=True, nullable=False)
    encrypted_password = Column(String, nullable=False)
    role = Column(Enum(UserRole, name="user_role"), nullable=False, default=UserRole.INSPECTOR)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    inspections = relationship("Inspection", back_populates="inspector")


# Properties
class Property(Base):
    """
    Represents a property (imovel) that can be inspected.

    Properties are never hard-deleted; `active=False` hides them from listings
    while keeping their historical inspections.

    Attributes:
        id (int): Primary key.
        type (PropertyType): Kind of property.
        street (str): Street address.
        number (str): Street number.
        complement (str): Unit / complement.
        district (str): District or neighbourhood.
        city (str): City.
        state (str): Two-letter state code, upper case.
        postal_code (str): Postal code.
        owner_name (str): Owner or contact name.
        phone (str): Owner phone, used for chat notifications.
        notes (str): Free-text notes.
        active (bool): Soft-delete flag.
        rooms (list[Room]): Rooms ordered by position.
        inspections (list[Inspection]): Inspections of this property.
    """
    __tablename__ = "properties"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(Enum(PropertyType, name="property_type"), nullable=False)
    street = Column(String, nullable=False)
    number = Column(String)
    complement = Column(String)
    district = Column(String, nullable=False)
    city = Column(String, nullable=False)
    state = Column(String(2), nullable=False)
    postal_code = Column(String)
    owner_name = Column(String)
    phone = Column(String)
    notes = Column(Text)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    rooms = relationship("Room", back_populates="property", order_by="Room.position", cascade="all, delete-orphan")
    inspections = relationship("Inspection", back_populates="property")


# Rooms
class Room(Base):
    """
    Represents a room (ambiente) of a property.

    Attributes:
        id (int): Primary key.
        property_id (int): Foreign key to the Property table.
        name (str): Room name.
        position (int): Display order.
        exists (bool): Rooms flagged as not present are skipped by checklist generation.
    """
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    property_id = Column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    position = Column(Integer, nullable=False, default=0)
    exists = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    property = relationship("Property", back_populates="rooms")
    items = relationship("ChecklistItem", back_populates="room")


# Inspections
class Inspection(Base):
    """
    Represents one checklist-based inspection (vistoria) of a property.

    Attributes:
        id (int): Primary key.
        property_id (int): Foreign key to the Property table.
        inspector_id (int): Foreign key to the User table.
        type (InspectionType): Move-in, move-out or periodic.
        status (InspectionStatus): IN_PROGRESS until finalized, then FINALIZED for good.
        inspection_date (datetime): When the inspection took place.
        finalized_at (datetime): Set exactly when status becomes FINALIZED.
        notes (str): General notes.
        inspector_signature (str): Signature image (data URL).
        client_signature (str): Signature image (data URL).
        client_name (str): Name of the signing client.
        items (list[ChecklistItem]): Checklist items, fixed at creation.
    """
    __tablename__ = "inspections"

    id = Column(Integer, primary_key=True, index=True)
    property_id = Column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    inspector_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(Enum(InspectionType, name="inspection_type"), nullable=False)
    status = Column(
        Enum(InspectionStatus, name="inspection_status"),
        nullable=False,
        default=InspectionStatus.IN_PROGRESS,
    )
    inspection_date = Column(DateTime, default=func.now(), nullable=False)
    finalized_at = Column(DateTime)
    notes = Column(Text)
    inspector_signature = Column(Text)
    client_signature = Column(Text)
    client_name = Column(String)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    property = relationship("Property", back_populates="inspections")
    inspector = relationship("User", back_populates="inspections")
    items = relationship(
        "ChecklistItem",
        back_populates="inspection",
        order_by="ChecklistItem.id",
        cascade="all, delete-orphan",
    )


# Checklist items
class ChecklistItem(Base):
    """
    One (room, label) condition record within an inspection.

    Attributes:
        id (int): Primary key.
        inspection_id (int): Foreign key to the Inspection table.
        room_id (int): Foreign key to the Room table.
        label (str): Item label from the fixed checklist vocabulary.
        condition (ItemCondition): Condition, UNVERIFIED until filled.
        note (str): Free-text note.
        photos (list[Photo]): Photos ordered by creation.
    """
    __tablename__ = "checklist_items"

    id = Column(Integer, primary_key=True, index=True)
    inspection_id = Column(Integer, ForeignKey("inspections.id"), nullable=False, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False, index=True)
    label = Column(String, nullable=False)
    condition = Column(
        Enum(ItemCondition, name="item_condition"),
        nullable=False,
        default=ItemCondition.UNVERIFIED,
    )
    note = Column(Text)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    inspection = relationship("Inspection", back_populates="items")
    room = relationship("Room", back_populates="items")
    photos = relationship(
        "Photo",
        back_populates="item",
        order_by="Photo.id",
        cascade="all, delete-orphan",
    )


# Photos
class Photo(Base):
    """
    Represents a photo attached to a checklist item.

    Attributes:
        id (int): Primary key.
        item_id (int): Foreign key to the ChecklistItem table.
        url (str): URL or path returned by the blob store.
        caption (str): Optional caption.
    """
    __tablename__ = "photos"

    id = Column(Integer, primary_key=True, index=True)
    item_id = Column(Integer, ForeignKey("checklist_items.id"), nullable=False, index=True)
    url = Column(String, nullable=False)
    caption = Column(String)
    created_at = Column(DateTime, default=func.now(), nullable=False)

    item = relationship("ChecklistItem", back_populates="photos")


# Audit log
class ActivityLog(Base):
    """
    Audit trail of user actions.

    Attributes:
        id (int): Primary key.
        action (str): e.g. LOGIN, CREATE, FINALIZE.
        entity (str): Entity name, e.g. "Inspection".
        entity_id (str): Identifier of the affected row.
        user_id (int): Acting user.
        data (dict): Extra payload.
        ip (str): Client address.
    """
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, index=True)
    action = Column(String, nullable=False)
    entity = Column(String, nullable=False)
    entity_id = Column(String)
    user_id = Column(Integer, ForeignKey("users.id"))
    data = Column(JSON)
    ip = Column(String)
    created_at = Column(DateTime, default=func.now(), nullable=False)

    user = relationship("User")


# Runtime settings
class AppSetting(Base):
    """
    Admin-editable setting, grouped by category.

    Attributes:
        id (int): Primary key.
        category (str): Group name, e.g. "email" or "chat".
        key (str): Setting name, unique within its category.
        value (str): Stored value.
        description (str): Free-text help shown in the admin screen.
        sensitive (bool): Masked in listings (tokens, passwords).
        updated_at (datetime): The timestamp when the setting was last updated.
    """
    __tablename__ = "app_settings"
    __table_args__ = (UniqueConstraint("category", "key", name="uq_app_settings_category_key"),)

    id = Column(Integer, primary_key=True, index=True)
    category = Column(String, nullable=False, index=True)
    key = Column(String, nullable=False)
    value = Column(Text, nullable=False, default="")
    description = Column(String)
    sensitive = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)
