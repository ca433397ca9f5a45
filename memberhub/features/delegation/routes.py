"""
Event management API routes.

Administrators grant and revoke event manager access. Event managers edit
their registration form and read their delegates. Form reads and
registrations are public.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from memberhub.core import config
from memberhub.core.database.engine import get_db
from memberhub.core.rate_limit import limiter
from memberhub.features.access.dependencies import get_actor, request_meta
from memberhub.features.access.subjects import Subject
from memberhub.features.delegation import service
from memberhub.features.delegation.models import EventForm
from memberhub.features.delegation.schemas import (
    DelegateRegistered,
    DelegateResponse,
    DelegateSubmit,
    EventManagerGrant,
    EventManagerResponse,
    FormResponse,
    FormSave,
    PublicFormResponse,
)
from memberhub.features.identities.models import Profile
from memberhub.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


def _manager_response(profile: Profile, is_active: bool) -> EventManagerResponse:
    return EventManagerResponse(
        user_id=profile.user_id,
        full_name=profile.full_name,
        email=profile.email,
        designation=profile.designation,
        event_manager_expiry=profile.event_manager_expiry,
        is_active=is_active,
    )


def _public_form(form: EventForm, event_name: str) -> PublicFormResponse:
    return PublicFormResponse(
        manager_id=form.manager_id,
        event_name=event_name,
        title=form.title,
        fields=form.fields,
    )


# ============================================================================
# Grant Routes
# ============================================================================

@router.post("/managers", response_model=EventManagerResponse, status_code=status.HTTP_201_CREATED)
async def grant_event_manager(
    body: EventManagerGrant,
    request: Request,
    db: AsyncSession = Depends(get_db),
    actor: Subject = Depends(get_actor),
):
    """Make a member event manager until the end of ``expiry_date`` (admin only)."""
    profile = await service.grant(
        db, actor, body.user_id, body.event_name, body.expiry_date, meta=request_meta(request)
    )
    return _manager_response(profile, True)


@router.delete("/managers/{user_id}", response_model=EventManagerResponse)
async def revoke_event_manager(
    user_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    actor: Subject = Depends(get_actor),
):
    """End an event manager grant now (admin only)."""
    profile = await service.revoke(db, actor, user_id, meta=request_meta(request))
    return _manager_response(profile, False)


@router.get("/managers", response_model=List[EventManagerResponse])
async def list_event_managers(
    db: AsyncSession = Depends(get_db),
    actor: Subject = Depends(get_actor),
):
    """All stored grants, including expired ones not yet revoked."""
    managers = await service.list_event_managers(db, actor)
    return [_manager_response(profile, active) for profile, active in managers]


# ============================================================================
# Form Routes (event manager)
# ============================================================================

@router.get("/form", response_model=FormResponse)
async def get_my_form(
    db: AsyncSession = Depends(get_db),
    actor: Subject = Depends(get_actor),
):
    return await service.get_own_form(db, actor)


@router.put("/form", response_model=FormResponse)
async def save_my_form(
    body: FormSave,
    request: Request,
    db: AsyncSession = Depends(get_db),
    actor: Subject = Depends(get_actor),
):
    """Create or replace the caller's registration form."""
    return await service.save_form(
        db, actor, body.fields, is_active=body.is_active, title=body.title, meta=request_meta(request)
    )


@router.get("/delegates", response_model=List[DelegateResponse])
async def list_delegates(
    manager_id: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    actor: Subject = Depends(get_actor),
):
    """Registrations for the caller's event, or any manager's for administrators."""
    return await service.list_delegates(db, actor, manager_id, skip, limit)


# ============================================================================
# Public Routes
# ============================================================================

@router.get("/{manager_id}/form", response_model=PublicFormResponse)
async def get_public_form(
    manager_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Registration form for an event that is still open."""
    form, event_name = await service.get_public_form(db, manager_id)
    return _public_form(form, event_name)


@router.post("/{manager_id}/register", response_model=DelegateRegistered, status_code=status.HTTP_201_CREATED)
@limiter.limit(config.VERIFY_RATE_LIMIT)
async def register_delegate(
    request: Request,
    manager_id: str,
    body: DelegateSubmit,
    db: AsyncSession = Depends(get_db),
):
    """Register as a delegate through an event manager's form."""
    delegate = await service.submit_delegate(db, manager_id, body.answers, meta=request_meta(request))
    return DelegateRegistered(id=delegate.id, event_name=delegate.event_name, name=delegate.name)
