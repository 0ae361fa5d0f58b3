"""
Data Schemas for GiveHope

Each record model below maps to one in-memory collection of the store
(database.py). Request payload models live at the bottom of the file.

JSON uses camelCase keys (fullName, goalAmount, isApproved ...); the
models accept camelCase or snake_case on input and emit camelCase.
"""

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, ValidationInfo, field_validator, model_validator
from pydantic.alias_generators import to_camel

Role = Literal["donor", "organization", "admin"]
ROLES = ("donor", "organization", "admin")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ===== Records =====

class User(CamelModel):
    """
    Users collection
    Roles:
    - donor: gives to campaigns
    - organization: runs campaigns once approved by an admin
    - admin: approves organizations and campaigns
    """
    id: int
    username: str
    email: str
    password_hash: str = Field(..., exclude=True, description="scrypt hash, never serialized")
    full_name: str
    role: Role = "donor"
    bio: Optional[str] = None
    profile_image_url: Optional[str] = None
    is_approved: bool = Field(True, description="Only meaningful for organizations")
    created_at: datetime = Field(default_factory=utcnow)


class Campaign(CamelModel):
    """Campaigns collection"""
    id: int
    title: str
    description: str
    organization_id: int
    goal_amount: float = Field(..., gt=0)
    current_amount: float = Field(0, ge=0, description="Sum of donations, maintained by the store")
    category: str
    image_url: Optional[str] = None
    start_date: datetime = Field(default_factory=utcnow)
    end_date: Optional[datetime] = None
    is_active: bool = True
    is_approved: bool = False
    created_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _end_after_start(self):
        _check_dates(self.start_date, self.end_date)
        return self


class Donation(CamelModel):
    """Donations collection (append-only)"""
    id: int
    campaign_id: int
    donor_id: int
    amount: float = Field(..., gt=0)
    message: Optional[str] = None
    is_anonymous: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class Category(CamelModel):
    """Categories collection"""
    id: int
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    campaign_count: int = Field(0, ge=0, description="Campaigns ever created in this category")


class Session(BaseModel):
    """Login session bound to a user"""
    token: str
    user_id: int
    created_at: datetime
    expires_at: datetime


class Stats(CamelModel):
    total_projects: int
    total_donors: int
    total_donated: float


def _check_dates(start: Optional[datetime], end: Optional[datetime]) -> None:
    if start is None or end is None:
        return
    # naive datetimes are taken as UTC so they compare with aware ones
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    if end.tzinfo is None:
        end = end.replace(tzinfo=timezone.utc)
    if end < start:
        raise ValueError("endDate must not be before startDate")


# ===== Request payloads =====

class RegisterPayload(CamelModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6)
    confirm_password: str
    full_name: str = Field(..., min_length=1, max_length=100)
    role: Literal["donor", "organization"] = "donor"
    bio: Optional[str] = None
    profile_image_url: Optional[str] = None

    @field_validator("confirm_password")
    @classmethod
    def _passwords_match(cls, v: str, info: ValidationInfo) -> str:
        if "password" in info.data and v != info.data["password"]:
            raise ValueError("Passwords do not match")
        return v


class LoginPayload(CamelModel):
    username: str
    password: str


class ProfileUpdate(CamelModel):
    """Self-service profile fields; username, email, role and password are not accepted"""
    full_name: Optional[str] = Field(None, min_length=1, max_length=100)
    bio: Optional[str] = None
    profile_image_url: Optional[str] = None


class CampaignCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    goal_amount: float = Field(..., gt=0)
    category: str
    image_url: Optional[str] = None
    start_date: datetime = Field(default_factory=utcnow)
    end_date: Optional[datetime] = None
    is_active: bool = True

    @model_validator(mode="after")
    def _end_after_start(self):
        _check_dates(self.start_date, self.end_date)
        return self


class CampaignUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1)
    goal_amount: Optional[float] = Field(None, gt=0)
    image_url: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: Optional[bool] = None


class DonationCreate(CamelModel):
    campaign_id: int
    amount: float = Field(..., gt=0)
    message: Optional[str] = Field(None, max_length=1000)
    is_anonymous: bool = False


class MessageResponse(BaseModel):
    message: str
