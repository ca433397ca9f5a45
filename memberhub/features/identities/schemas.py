"""
Pydantic schemas for members and membership applications.
"""
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from memberhub.features.identities.contact import is_valid_phone, normalize_email, normalize_phone
from memberhub.features.identities.models import ApplicationStatus
from memberhub.features.identities.prants import is_known_prant
from memberhub.features.roles.catalog import Role
from memberhub.utils import UtcDatetime


def _check_phone(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    if not is_valid_phone(value):
        raise ValueError("Phone number must contain at least 10 digits")
    return normalize_phone(value)


# ============================================================================
# Application Schemas
# ============================================================================

class ApplicationCreate(BaseModel):
    """Public membership application."""
    full_name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: str = Field(..., max_length=20)
    state: str = Field(..., description="Prant the applicant belongs to")
    district: Optional[str] = Field(None, max_length=100)
    designation: Optional[str] = Field(None, max_length=255)
    institution: Optional[str] = Field(None, max_length=255)
    motivation: Optional[str] = Field(None, max_length=5000)
    photo_url: Optional[str] = Field(None, max_length=500)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("phone")
    @classmethod
    def phone_shape(cls, v: str) -> str:
        return _check_phone(v)

    @field_validator("state")
    @classmethod
    def known_state(cls, v: str) -> str:
        if not is_known_prant(v):
            raise ValueError(f"Unknown prant: {v}")
        return v


class ApplicationResponse(BaseModel):
    id: str
    full_name: str
    email: str
    phone: str
    state: str
    district: Optional[str] = None
    designation: Optional[str] = None
    institution: Optional[str] = None
    status: ApplicationStatus
    rejection_reason: Optional[str] = None
    applied_at: UtcDatetime
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[UtcDatetime] = None
    user_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ApplicationSubmitted(BaseModel):
    id: str
    status: ApplicationStatus


class RejectApplication(BaseModel):
    reason: str = Field("", max_length=2000)


class MembershipIssued(BaseModel):
    application_id: str
    user_id: str
    membership_id: str


# ============================================================================
# Member Schemas
# ============================================================================

class MemberResponse(BaseModel):
    """Full member view for the member themselves and their administrators."""
    user_id: str
    full_name: str
    email: str
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    designation: Optional[str] = None
    state: Optional[str] = None
    district: Optional[str] = None
    membership_id: Optional[str] = None
    id_card_issued_at: Optional[UtcDatetime] = None
    event_manager_expiry: Optional[UtcDatetime] = None
    allow_email_sharing: bool
    allow_mobile_sharing: bool
    role: Role
    role_label: str
    created_at: UtcDatetime

    model_config = ConfigDict(from_attributes=True)


class ProfileUpdate(BaseModel):
    """Profile edits. ``designation`` and ``district`` are administrator-only."""
    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)
    avatar_url: Optional[str] = Field(None, max_length=500)
    designation: Optional[str] = Field(None, max_length=255)
    district: Optional[str] = Field(None, max_length=100)

    @field_validator("phone")
    @classmethod
    def phone_shape(cls, v: Optional[str]) -> Optional[str]:
        return _check_phone(v)


ConsentField = Literal["allow_email_sharing", "allow_mobile_sharing"]


class ConsentUpdate(BaseModel):
    field: ConsentField
    value: bool


class RoleChange(BaseModel):
    role: Role


class TransferRequest(BaseModel):
    state: str

    @field_validator("state")
    @classmethod
    def known_state(cls, v: str) -> str:
        if not is_known_prant(v):
            raise ValueError(f"Unknown prant: {v}")
        return v
