"""
Pydantic schemas for event manager grants, registration forms and delegates.
"""
from datetime import date
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from memberhub.features.delegation.fields import FormField
from memberhub.utils import UtcDatetime


# ============================================================================
# Grant Schemas
# ============================================================================

class EventManagerGrant(BaseModel):
    user_id: str
    event_name: str = Field(..., min_length=1, max_length=200)
    expiry_date: date = Field(..., description="Last day the grant is valid, inclusive")


class EventManagerResponse(BaseModel):
    user_id: str
    full_name: str
    email: str
    designation: Optional[str] = None
    event_manager_expiry: Optional[UtcDatetime] = None
    is_active: bool


# ============================================================================
# Form Schemas
# ============================================================================

class FormSave(BaseModel):
    title: Optional[str] = Field(None, max_length=255)
    fields: List[FormField] = Field(default_factory=list)
    is_active: bool = True


class FormResponse(BaseModel):
    id: str
    manager_id: str
    title: Optional[str] = None
    fields: List[Dict[str, Any]]
    is_active: bool
    updated_at: Optional[UtcDatetime] = None

    model_config = ConfigDict(from_attributes=True)


class PublicFormResponse(BaseModel):
    """What a prospective delegate sees before registering."""
    manager_id: str
    event_name: str
    title: Optional[str] = None
    fields: List[Dict[str, Any]]


# ============================================================================
# Delegate Schemas
# ============================================================================

class DelegateSubmit(BaseModel):
    answers: Dict[str, Any] = Field(default_factory=dict, description="Answers keyed by field id or label")


class DelegateResponse(BaseModel):
    id: str
    manager_id: str
    event_name: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    role_in_event: str
    delegation: Optional[str] = None
    custom_data: Dict[str, Any]
    created_at: UtcDatetime

    model_config = ConfigDict(from_attributes=True)


class DelegateRegistered(BaseModel):
    id: str
    event_name: str
    name: str
