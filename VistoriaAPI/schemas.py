from pydantic import BaseModel, validator, Field
from typing import Optional, List, Dict
from datetime import datetime

from VistoriaAPI.models import (
    InspectionStatus,
    InspectionType,
    ItemCondition,
    PropertyType,
    UserRole,
)


# Auth
class RefreshRequest(BaseModel):
    refresh_token: str


class UserBrief(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    role: UserRole
    active: bool

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserResponse


class AccessTokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


# Pagination
class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


# Rooms
class RoomCreate(BaseModel):
    name: str = Field(..., min_length=1)
    position: Optional[int] = None
    exists: bool = True


class RoomUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    position: Optional[int] = None
    exists: Optional[bool] = None


class RoomResponse(BaseModel):
    id: int
    property_id: int
    name: str
    position: int
    exists: bool

    class Config:
        from_attributes = True


# Properties
class PropertyBase(BaseModel):
    type: PropertyType
    street: str = Field(..., min_length=1)
    number: Optional[str] = None
    complement: Optional[str] = None
    district: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=2, max_length=2)
    postal_code: Optional[str] = None
    owner_name: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None

    @validator("state")
    def upper_state(cls, value):
        return value.upper()


class PropertyCreate(PropertyBase):
    rooms: Optional[List[str]] = None  # Room names; the default list is used when omitted


class PropertyUpdate(BaseModel):
    type: Optional[PropertyType] = None
    street: Optional[str] = Field(None, min_length=1)
    number: Optional[str] = None
    complement: Optional[str] = None
    district: Optional[str] = Field(None, min_length=1)
    city: Optional[str] = Field(None, min_length=1)
    state: Optional[str] = Field(None, min_length=2, max_length=2)
    postal_code: Optional[str] = None
    owner_name: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None

    @validator("state")
    def upper_state(cls, value):
        if value is None:
            return value
        return value.upper()


class PropertyResponse(PropertyBase):
    id: int
    active: bool
    created_at: datetime
    updated_at: datetime
    rooms: List[RoomResponse] = []

    class Config:
        from_attributes = True


class PropertyBrief(BaseModel):
    id: int
    street: str
    number: Optional[str] = None
    district: str
    city: str

    class Config:
        from_attributes = True


class PropertyListResponse(BaseModel):
    data: List[PropertyResponse]
    pagination: Pagination


# Photos
class PhotoResponse(BaseModel):
    id: int
    item_id: int
    url: str
    caption: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


# Checklist items
class ItemUpdate(BaseModel):
    condition: ItemCondition
    note: Optional[str] = None


class ItemResponse(BaseModel):
    id: int
    inspection_id: int
    room_id: int
    label: str
    condition: ItemCondition
    note: Optional[str] = None
    room: RoomResponse
    photos: List[PhotoResponse] = []

    class Config:
        from_attributes = True


# Inspections
class InspectionCreate(BaseModel):
    property_id: int
    type: InspectionType
    notes: Optional[str] = None
    room_ids: Optional[List[int]] = None  # Defaults to every room flagged as existing


class InspectionNotesUpdate(BaseModel):
    notes: Optional[str] = None


class SignatureRequest(BaseModel):
    inspector_signature: Optional[str] = None
    client_signature: Optional[str] = None
    client_name: Optional[str] = None


class InspectionResponse(BaseModel):
    id: int
    property_id: int
    inspector_id: int
    type: InspectionType
    status: InspectionStatus
    inspection_date: datetime
    finalized_at: Optional[datetime] = None
    notes: Optional[str] = None
    inspector_signature: Optional[str] = None
    client_signature: Optional[str] = None
    client_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class InspectionDetail(InspectionResponse):
    property: PropertyResponse
    inspector: UserBrief
    items: List[ItemResponse] = []


class InspectionSummary(BaseModel):
    id: int
    type: InspectionType
    status: InspectionStatus
    inspection_date: datetime
    finalized_at: Optional[datetime] = None
    inspector: Optional[UserBrief] = None

    class Config:
        from_attributes = True


class InspectionListItem(InspectionSummary):
    created_at: datetime
    property: PropertyBrief
    item_count: int = 0


class InspectionListResponse(BaseModel):
    data: List[InspectionListItem]
    pagination: Pagination


class PropertyDetail(PropertyResponse):
    inspections: List[InspectionSummary] = []


# Progress
class RoomProgress(BaseModel):
    total: int
    verified: int


class ProgressResponse(BaseModel):
    total: int
    verified: int
    percentage: int
    by_room: Dict[str, RoomProgress]


# Comparison
class ComparisonSide(BaseModel):
    condition: ItemCondition
    note: Optional[str] = None
    photos: List[PhotoResponse] = []


class ComparisonRow(BaseModel):
    room: str
    label: str
    entry: ComparisonSide
    exit: Optional[ComparisonSide] = None
    changed: bool
    change: Optional[str] = None  # improved | worsened | unchanged


class ComparisonResponse(BaseModel):
    entry: InspectionSummary
    exit: InspectionSummary
    property: PropertyResponse
    comparison: List[ComparisonRow]


# User management
def _normalize_email(value):
    if value is None:
        return value
    value = value.strip().lower()
    if "@" not in value or value.startswith("@") or value.endswith("@"):
        raise ValueError("Invalid email")
    return value


class UserCreate(BaseModel):
    name: str = Field(..., min_length=2)
    email: str
    password: str = Field(..., min_length=6)
    role: UserRole = UserRole.INSPECTOR

    @validator("email")
    def normalize_email(cls, value):
        return _normalize_email(value)


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2)
    email: Optional[str] = None
    password: Optional[str] = Field(None, min_length=6)
    role: Optional[UserRole] = None
    active: Optional[bool] = None

    @validator("email")
    def normalize_email(cls, value):
        return _normalize_email(value)


class UserAdminResponse(UserResponse):
    created_at: datetime
    inspection_count: int = 0


class UserDetail(UserAdminResponse):
    inspections: List[InspectionListItem] = []


# Admin dashboard
class DashboardTotals(BaseModel):
    inspections: int
    finalized: int
    in_progress: int
    properties: int
    users: int
    inspections_this_month: int


class DashboardMetrics(BaseModel):
    totals: DashboardTotals
    by_type: Dict[str, int]
    latest: List[InspectionListItem]


class MonthlyCount(BaseModel):
    month: str  # YYYY-MM
    total: int


# Settings
class SettingUpsert(BaseModel):
    category: str = Field(..., min_length=1)
    key: str = Field(..., min_length=1)
    value: str
    description: Optional[str] = None
    sensitive: Optional[bool] = None


class SettingResponse(BaseModel):
    id: int
    category: str
    key: str
    value: str
    description: Optional[str] = None
    sensitive: bool
    updated_at: datetime

    class Config:
        from_attributes = True


class SettingValue(BaseModel):
    value: str
