"""
Membership application and member API routes.

Applications are submitted publicly and reviewed by office holders within
their jurisdiction. Member routes cover self-service and administration.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from memberhub.core.database.engine import get_db
from memberhub.core.rate_limit import limiter
from memberhub.features.access import engine
from memberhub.features.access.dependencies import get_actor, request_meta
from memberhub.features.access.subjects import Subject, get_profile
from memberhub.features.delegation.expiry import effective_role
from memberhub.features.identities import service
from memberhub.features.identities.models import ApplicationStatus, Profile
from memberhub.features.identities.schemas import (
    ApplicationCreate,
    ApplicationResponse,
    ApplicationSubmitted,
    ConsentUpdate,
    MemberResponse,
    MembershipIssued,
    ProfileUpdate,
    RejectApplication,
    RoleChange,
    TransferRequest,
)
from memberhub.features.roles.catalog import Role, assignable_roles, label
from memberhub.features.roles.store import get_stored_role
from memberhub.features.users.provisioning import AccountProvisioner, get_provisioner
from memberhub.utils import get_logger


log = get_logger(__name__)
application_router = APIRouter()
member_router = APIRouter()


def to_member_response(profile: Profile, role: Role) -> MemberResponse:
    data = {name: getattr(profile, name) for name in MemberResponse.model_fields if hasattr(profile, name)}
    return MemberResponse(**data, role=role, role_label=label(role))


async def _current_view(db: AsyncSession, profile: Profile) -> MemberResponse:
    role = effective_role(await get_stored_role(db, profile.user_id), profile.event_manager_expiry)
    return to_member_response(profile, role)


# ============================================================================
# Application Routes
# ============================================================================

@application_router.post("", response_model=ApplicationSubmitted, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
async def submit_application(
    request: Request,
    application: ApplicationCreate,
    db: AsyncSession = Depends(get_db),
):
    """Apply for membership (public)."""
    created = await service.submit_application(db, application)
    return ApplicationSubmitted(id=created.id, status=created.status)


@application_router.get("", response_model=List[ApplicationResponse])
async def list_applications(
    application_status: Optional[ApplicationStatus] = Query(ApplicationStatus.PENDING, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    actor: Subject = Depends(get_actor),
):
    """Applications inside the caller's jurisdiction, oldest first."""
    return await service.list_applications(db, actor, application_status, skip, limit)


@application_router.get("/{application_id}", response_model=ApplicationResponse)
async def get_application(
    application_id: str,
    db: AsyncSession = Depends(get_db),
    actor: Subject = Depends(get_actor),
):
    application = await service.get_application(db, application_id)
    engine.require(
        engine.can_review_application(actor, application.state, application.district),
        "Application is outside your jurisdiction",
        actor,
    )
    return application


@application_router.post("/{application_id}/approve", response_model=MembershipIssued)
async def approve_application(
    application_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    actor: Subject = Depends(get_actor),
    provisioner: AccountProvisioner = Depends(get_provisioner),
):
    """Approve a pending application and issue a membership id."""
    user_id, membership_id = await service.issue_membership(
        db, actor, application_id, provisioner, meta=request_meta(request)
    )
    return MembershipIssued(application_id=application_id, user_id=user_id, membership_id=membership_id)


@application_router.post("/{application_id}/reject", response_model=ApplicationResponse)
async def reject_application(
    application_id: str,
    body: RejectApplication,
    request: Request,
    db: AsyncSession = Depends(get_db),
    actor: Subject = Depends(get_actor),
):
    """Reject a pending application. A reason is required."""
    await service.reject_application(db, actor, application_id, body.reason, meta=request_meta(request))
    return await service.get_application(db, application_id)


# ============================================================================
# Member Routes
# ============================================================================

@member_router.get("/me", response_model=MemberResponse)
async def get_me(
    db: AsyncSession = Depends(get_db),
    actor: Subject = Depends(get_actor),
):
    """The caller's own profile."""
    profile, role = await service.get_member(db, actor, actor.user_id)
    return to_member_response(profile, role)


@member_router.get("/assignable-roles")
async def get_assignable_roles(actor: Subject = Depends(get_actor)):
    """Ranked roles the caller may hand out."""
    return [{"role": role.value, "label": label(role)} for role in assignable_roles(actor.role)]


@member_router.get("", response_model=List[MemberResponse])
async def list_members(
    state: Optional[str] = None,
    district: Optional[str] = None,
    search: Optional[str] = Query(None, max_length=100),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    actor: Subject = Depends(get_actor),
):
    """Members inside the caller's jurisdiction."""
    members = await service.list_members(db, actor, state, district, search, skip, limit)
    return [to_member_response(profile, role) for profile, role in members]


@member_router.get("/{user_id}", response_model=MemberResponse)
async def get_member(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    actor: Subject = Depends(get_actor),
):
    profile, role = await service.get_member(db, actor, user_id)
    return to_member_response(profile, role)


@member_router.patch("/{user_id}", response_model=MemberResponse)
async def update_member(
    user_id: str,
    changes: ProfileUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    actor: Subject = Depends(get_actor),
):
    """Edit a profile. Designation and district need an administrator."""
    profile = await service.update_profile(db, actor, user_id, changes, meta=request_meta(request))
    return await _current_view(db, profile)


@member_router.put("/{user_id}/consent", response_model=MemberResponse)
async def update_consent(
    user_id: str,
    body: ConsentUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    actor: Subject = Depends(get_actor),
):
    """Toggle email or phone sharing on public verification."""
    profile = await service.set_consent(db, actor, user_id, body.field, body.value, meta=request_meta(request))
    return await _current_view(db, profile)


@member_router.put("/{user_id}/role", response_model=MemberResponse)
async def change_role(
    user_id: str,
    body: RoleChange,
    request: Request,
    db: AsyncSession = Depends(get_db),
    actor: Subject = Depends(get_actor),
):
    await service.change_role(db, actor, user_id, body.role, meta=request_meta(request))
    return await _current_view(db, await get_profile(db, user_id))


@member_router.post("/{user_id}/transfer", response_model=MemberResponse)
async def transfer_member(
    user_id: str,
    body: TransferRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    actor: Subject = Depends(get_actor),
):
    """Move a member to another state."""
    profile = await service.transfer_scope(db, actor, user_id, body.state, meta=request_meta(request))
    return await _current_view(db, profile)


@member_router.post("/{user_id}/card", response_model=MemberResponse)
async def issue_card(
    user_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    actor: Subject = Depends(get_actor),
):
    profile = await service.issue_card(db, actor, user_id, meta=request_meta(request))
    return await _current_view(db, profile)


@member_router.delete("/{user_id}/card", response_model=MemberResponse)
async def revoke_card(
    user_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    actor: Subject = Depends(get_actor),
):
    profile = await service.revoke_card(db, actor, user_id, meta=request_meta(request))
    return await _current_view(db, profile)
