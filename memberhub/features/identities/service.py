"""
Identity registry: applications, membership ids, cards, consent, roles and scope.

Every administrative operation follows the same order: load snapshots with
effective roles, ask the authorization engine, write, commit, then append to
the audit log.
"""
from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy import select, update, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from memberhub.core import config
from memberhub.core.errors import AlreadyProcessed, Conflict, Forbidden, NotFound, ValidationFailed
from memberhub.features.access import engine
from memberhub.features.access.scope import StateScoped, Unscoped, resolve
from memberhub.features.access.subjects import Subject, get_profile, subject_from_profile
from memberhub.features.audit import service as audit
from memberhub.features.audit.service import AuditAction, RequestMeta
from memberhub.features.delegation.models import EventForm
from memberhub.features.identities.contact import normalize_email
from memberhub.features.identities.membership_ids import generate_membership_id
from memberhub.features.identities.models import ApplicationStatus, MembershipApplication, Profile
from memberhub.features.identities.schemas import ApplicationCreate, ConsentField, ProfileUpdate
from memberhub.features.roles.catalog import Role, PLATFORM_ROLES
from memberhub.features.roles.models import UserRole
from memberhub.features.roles.store import ensure_role_row, get_stored_role, upsert_role
from memberhub.features.users.provisioning import AccountProvisioner
from memberhub.utils import get_logger, utcnow


log = get_logger(__name__)

EVENT_MANAGER_DESIGNATION_PREFIX = "Event Manager – "


async def _target(db: AsyncSession, user_id: str, now: Optional[datetime]) -> Tuple[Profile, Subject]:
    profile = await get_profile(db, user_id)
    return profile, subject_from_profile(profile, await get_stored_role(db, user_id), now)


# ============================================================================
# Applications
# ============================================================================

async def submit_application(db: AsyncSession, data: ApplicationCreate) -> MembershipApplication:
    """Public submission. One pending application per email."""
    email = normalize_email(data.email)
    pending = await db.scalar(
        select(MembershipApplication.id).where(
            func.lower(MembershipApplication.email) == email,
            MembershipApplication.status == ApplicationStatus.PENDING,
        )
    )
    if pending:
        raise Conflict("An application for this email is already pending")

    member = await db.scalar(
        select(Profile.id).where(func.lower(Profile.email) == email, Profile.membership_id.is_not(None))
    )
    if member:
        raise Conflict("This email already belongs to a member")

    application = MembershipApplication(**data.model_dump())
    db.add(application)
    await db.commit()
    await db.refresh(application)
    log.info("Application %s submitted for %s", application.id, application.state)
    return application


async def get_application(db: AsyncSession, application_id: str) -> MembershipApplication:
    application = await db.get(MembershipApplication, application_id)
    if application is None:
        raise NotFound("Application not found")
    return application


async def list_applications(
    db: AsyncSession,
    actor: Subject,
    status: Optional[ApplicationStatus] = ApplicationStatus.PENDING,
    skip: int = 0,
    limit: int = 50,
) -> List[MembershipApplication]:
    scope = resolve(actor)
    engine.require(not isinstance(scope, Unscoped), "No administrative scope", actor)

    stmt = select(MembershipApplication)
    if status is not None:
        stmt = stmt.where(MembershipApplication.status == status)
    if isinstance(scope, StateScoped) and actor.role != Role.SUPER_CONTROLLER:
        if scope.state is None:
            return []
        stmt = stmt.where(MembershipApplication.state == scope.state)
        if scope.district_tier:
            if scope.district is None:
                return []
            stmt = stmt.where(MembershipApplication.district == scope.district)
    stmt = stmt.order_by(MembershipApplication.applied_at, MembershipApplication.id).offset(skip).limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def _assign_membership_id(db: AsyncSession, profile_id: str, state: Optional[str], now: datetime) -> str:
    """Retry inside a savepoint until the unique constraint accepts a generated id."""
    for attempt in range(1, config.MEMBERSHIP_ID_ATTEMPTS + 1):
        candidate = generate_membership_id(state, now)
        try:
            async with db.begin_nested():
                await db.execute(
                    update(Profile).where(Profile.id == profile_id).values(membership_id=candidate)
                )
            return candidate
        except IntegrityError:
            log.warning("Membership id %s already taken (attempt %d)", candidate, attempt)
    raise Conflict("Could not allocate a unique membership id; retry the approval")


async def issue_membership(
    db: AsyncSession,
    actor: Subject,
    application_id: str,
    provisioner: AccountProvisioner,
    now: Optional[datetime] = None,
    meta: Optional[RequestMeta] = None,
) -> Tuple[str, str]:
    """
    Approve a pending application and materialize the identity.

    Returns (user_id, membership_id). The pending -> approved transition is a
    conditional UPDATE, so two concurrent approvals cannot both succeed.
    """
    now = now or utcnow()
    application = await get_application(db, application_id)
    engine.require(
        engine.can_review_application(actor, application.state, application.district),
        "Application is outside your jurisdiction",
        actor,
    )
    if application.status != ApplicationStatus.PENDING:
        raise AlreadyProcessed(f"Application is already {application.status.value}")

    result = await db.execute(
        update(MembershipApplication)
        .where(
            MembershipApplication.id == application_id,
            MembershipApplication.status == ApplicationStatus.PENDING,
        )
        .values(status=ApplicationStatus.APPROVED, reviewed_by=actor.user_id, reviewed_at=now)
    )
    if result.rowcount != 1:
        await db.rollback()
        raise AlreadyProcessed("Application was processed concurrently")

    provisioned = None
    try:
        profile = await db.scalar(
            select(Profile).where(func.lower(Profile.email) == normalize_email(application.email))
        )
        if profile is not None and profile.membership_id:
            raise Conflict("This email already belongs to a member")
        if profile is None:
            account = await provisioner.provision(application.email, application.full_name)
            provisioned = account.user_id
            profile = Profile(
                user_id=account.user_id,
                full_name=application.full_name,
                email=application.email,
                phone=application.phone,
                avatar_url=application.photo_url,
                designation=application.designation,
                state=application.state,
                district=application.district,
            )
        else:
            profile.state = profile.state or application.state
            profile.district = profile.district or application.district
            profile.phone = profile.phone or application.phone

        db.add(profile)
        await db.flush()
        user_id = profile.user_id
        membership_id = await _assign_membership_id(db, profile.id, application.state, now)
        await ensure_role_row(db, user_id, Role.MEMBER)
        await db.execute(
            update(MembershipApplication)
            .where(MembershipApplication.id == application_id)
            .values(user_id=user_id)
        )
        await db.commit()
    except Exception:
        await db.rollback()
        if provisioned:
            log.error("Approval of %s failed after provisioning account %s", application_id, provisioned)
        raise

    log.info("Issued membership %s for application %s", membership_id, application_id)
    await audit.record(
        db, actor, AuditAction.MEMBERSHIP_ISSUED, "application", application_id,
        {"membership_id": membership_id, "user_id": user_id}, meta,
    )
    return user_id, membership_id


async def reject_application(
    db: AsyncSession,
    actor: Subject,
    application_id: str,
    reason: str,
    now: Optional[datetime] = None,
    meta: Optional[RequestMeta] = None,
) -> None:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationFailed("A rejection reason is required", {"reason": "required"})
    now = now or utcnow()

    application = await get_application(db, application_id)
    engine.require(
        engine.can_review_application(actor, application.state, application.district),
        "Application is outside your jurisdiction",
        actor,
    )
    result = await db.execute(
        update(MembershipApplication)
        .where(
            MembershipApplication.id == application_id,
            MembershipApplication.status == ApplicationStatus.PENDING,
        )
        .values(
            status=ApplicationStatus.REJECTED,
            rejection_reason=reason,
            reviewed_by=actor.user_id,
            reviewed_at=now,
        )
    )
    if result.rowcount != 1:
        await db.rollback()
        raise AlreadyProcessed(f"Application is already {application.status.value}")
    await db.commit()

    await audit.record(
        db, actor, AuditAction.APPLICATION_REJECTED, "application", application_id,
        {"reason": reason, "email": application.email}, meta,
    )


# ============================================================================
# Cards and consent
# ============================================================================

async def issue_card(
    db: AsyncSession,
    actor: Subject,
    user_id: str,
    now: Optional[datetime] = None,
    meta: Optional[RequestMeta] = None,
) -> Profile:
    """Mark an ID card as issued. Re-issuing refreshes the timestamp."""
    now = now or utcnow()
    profile, target = await _target(db, user_id, now)
    engine.require(engine.can_manage_profile(actor, target), "Not allowed to manage this member", actor)
    if not profile.membership_id:
        raise ValidationFailed("Member has no membership id yet")

    profile.id_card_issued_at = now
    await db.commit()
    await audit.record(
        db, actor, AuditAction.ID_CARD_ISSUED, "profile", user_id,
        {"membership_id": profile.membership_id}, meta,
    )
    return profile


async def revoke_card(
    db: AsyncSession,
    actor: Subject,
    user_id: str,
    now: Optional[datetime] = None,
    meta: Optional[RequestMeta] = None,
) -> Profile:
    profile, target = await _target(db, user_id, now)
    engine.require(engine.can_manage_profile(actor, target), "Not allowed to manage this member", actor)

    profile.id_card_issued_at = None
    await db.commit()
    await audit.record(db, actor, AuditAction.ID_CARD_REVOKED, "profile", user_id, None, meta)
    return profile


async def set_consent(
    db: AsyncSession,
    actor: Subject,
    user_id: str,
    field: ConsentField,
    value: bool,
    now: Optional[datetime] = None,
    meta: Optional[RequestMeta] = None,
) -> Profile:
    """Toggle one sharing flag. Members may always change their own."""
    if field not in ("allow_email_sharing", "allow_mobile_sharing"):
        raise ValidationFailed(f"Unknown consent field: {field}")
    profile, target = await _target(db, user_id, now)
    if actor.user_id != user_id:
        engine.require(engine.can_manage_profile(actor, target), "Not allowed to manage this member", actor)

    setattr(profile, field, value)
    await db.commit()
    await audit.record(
        db, actor, AuditAction.CONSENT_UPDATED, "profile", user_id, {"field": field, "value": value}, meta,
    )
    return profile


# ============================================================================
# Profiles, roles and scope
# ============================================================================

ADMIN_ONLY_FIELDS = ("designation", "district")


async def update_profile(
    db: AsyncSession,
    actor: Subject,
    user_id: str,
    changes: ProfileUpdate,
    now: Optional[datetime] = None,
    meta: Optional[RequestMeta] = None,
) -> Profile:
    profile, target = await _target(db, user_id, now)
    update_data = changes.model_dump(exclude_unset=True)

    is_self = actor.user_id == user_id
    restricted = [key for key in ADMIN_ONLY_FIELDS if key in update_data]
    if not is_self or restricted:
        engine.require(
            engine.can_manage_profile(actor, target) and (not is_self or actor.role == Role.SUPER_CONTROLLER),
            "Not allowed to edit these fields",
            actor,
        )

    for key, value in update_data.items():
        setattr(profile, key, value)
    await db.commit()
    await db.refresh(profile)
    await audit.record(
        db, actor, AuditAction.PROFILE_UPDATED, "profile", user_id, {"fields": sorted(update_data)}, meta,
    )
    return profile


async def change_role(
    db: AsyncSession,
    actor: Subject,
    user_id: str,
    new_role: Role,
    now: Optional[datetime] = None,
    meta: Optional[RequestMeta] = None,
) -> Role:
    if new_role == Role.EVENT_MANAGER:
        raise ValidationFailed("Event managers are assigned through an event manager grant")
    profile, target = await _target(db, user_id, now)
    engine.require(engine.can_mutate_role(actor, target, new_role), "Not allowed to assign this role", actor)

    stored = await get_stored_role(db, user_id)
    await upsert_role(db, user_id, new_role, actor.user_id)
    if stored == Role.EVENT_MANAGER:
        # Replacing a grant ends it: same cleanup as a revoke
        profile.event_manager_expiry = None
        if profile.designation and profile.designation.startswith(EVENT_MANAGER_DESIGNATION_PREFIX):
            profile.designation = None
        await db.execute(update(EventForm).where(EventForm.manager_id == user_id).values(is_active=False))
    await db.commit()

    await audit.record(
        db, actor, AuditAction.ROLE_CHANGED, "profile", user_id,
        {"previous_role": (stored or Role.MEMBER).value, "new_role": new_role.value}, meta,
    )
    return new_role


async def transfer_scope(
    db: AsyncSession,
    actor: Subject,
    user_id: str,
    new_state: str,
    now: Optional[datetime] = None,
    meta: Optional[RequestMeta] = None,
) -> Profile:
    """Move a member to another state. The district is cleared since it belonged to the old state."""
    profile, target = await _target(db, user_id, now)
    engine.require(engine.can_transfer_scope(actor, target), "Not allowed to transfer this member", actor)
    if profile.state == new_state:
        raise ValidationFailed("Member already belongs to this state")

    previous_state, previous_district = profile.state, profile.district
    profile.state = new_state
    profile.district = None
    await db.commit()

    await audit.record(
        db, actor, AuditAction.MEMBER_TRANSFERRED, "profile", user_id,
        {"previous_state": previous_state, "previous_district": previous_district, "new_state": new_state},
        meta,
    )
    return profile


async def get_member(db: AsyncSession, actor: Subject, user_id: str, now: Optional[datetime] = None) -> Tuple[Profile, Role]:
    profile, target = await _target(db, user_id, now)
    if actor.user_id != user_id:
        engine.require(engine.can_view(actor, target), "Not allowed to view this member", actor)
    return profile, target.role


async def list_members(
    db: AsyncSession,
    actor: Subject,
    state: Optional[str] = None,
    district: Optional[str] = None,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 50,
    now: Optional[datetime] = None,
) -> List[Tuple[Profile, Role]]:
    """
    Members the actor may see, filtered in the query itself.

    Records outside the actor's jurisdiction, and platform roles the actor may
    not see, never leave the database.
    """
    scope = resolve(actor)
    if isinstance(scope, Unscoped):
        raise Forbidden("No administrative scope")

    stmt = select(Profile, UserRole.role).outerjoin(UserRole, UserRole.user_id == Profile.user_id)

    if actor.role != Role.SUPER_CONTROLLER:
        hidden = [Role.SUPER_CONTROLLER] if actor.role == Role.ADMIN else list(PLATFORM_ROLES)
        stmt = stmt.where(or_(UserRole.role.is_(None), UserRole.role.not_in(hidden)))
        if isinstance(scope, StateScoped):
            if scope.state is None or (scope.district_tier and scope.district is None):
                return []
            stmt = stmt.where(Profile.state == scope.state)
            if scope.district_tier:
                stmt = stmt.where(Profile.district == scope.district)

    if state:
        stmt = stmt.where(Profile.state == state)
    if district:
        stmt = stmt.where(Profile.district == district)
    if search:
        pattern = f"%{search.strip().lower()}%"
        stmt = stmt.where(or_(
            func.lower(Profile.full_name).like(pattern),
            func.lower(Profile.email).like(pattern),
            func.lower(Profile.membership_id).like(pattern),
        ))
    stmt = stmt.order_by(Profile.full_name, Profile.id).offset(skip).limit(limit)

    result = await db.execute(stmt)
    members = []
    for profile, stored_role in result.all():
        target = subject_from_profile(profile, stored_role, now)
        if engine.can_view(actor, target):
            members.append((profile, target.role))
    return members
