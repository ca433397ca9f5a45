"""
Event manager delegation.

Granting EVENT_MANAGER gives a member a bounded, time-limited capability: they
may run one registration form and see the delegates it collects. The grant is
never swept; ``effective_role`` makes it inert once the expiry passes, and an
explicit revoke returns the row to MEMBER.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from memberhub.core.errors import Conflict, NotFound, ValidationFailed
from memberhub.features.access import engine
from memberhub.features.access.subjects import Subject, get_profile, subject_from_profile
from memberhub.features.audit import service as audit
from memberhub.features.audit.service import AuditAction, RequestMeta
from memberhub.features.delegation.expiry import end_of_day, is_grant_active
from memberhub.features.delegation.fields import FormField, parse_fields, validate_answers
from memberhub.features.delegation.models import Delegate, EventForm
from memberhub.features.identities.models import Profile
from memberhub.features.identities.service import EVENT_MANAGER_DESIGNATION_PREFIX
from memberhub.features.roles.catalog import Role
from memberhub.features.roles.models import UserRole
from memberhub.features.roles.store import get_stored_role, replace_role_if, upsert_role
from memberhub.utils import as_utc, get_logger, utcnow


log = get_logger(__name__)

NAME_LABELS = ("full name", "name")
DELEGATION_LABELS = ("delegation", "affiliation", "institution", "organization", "college")
ROLE_LABELS = ("role", "role in event")
DEFAULT_DELEGATE_NAME = "Guest"
DEFAULT_ROLE_IN_EVENT = "Delegate"


def event_name_for(profile: Profile, form: Optional[EventForm] = None) -> str:
    """Event label carried in the manager's designation."""
    designation = profile.designation or ""
    if designation.startswith(EVENT_MANAGER_DESIGNATION_PREFIX):
        return designation[len(EVENT_MANAGER_DESIGNATION_PREFIX):]
    if form is not None and form.title:
        return form.title
    return "Event"


# ============================================================================
# Grants
# ============================================================================

async def grant(
    db: AsyncSession,
    actor: Subject,
    user_id: str,
    event_name: str,
    expiry_date: date,
    now: Optional[datetime] = None,
    meta: Optional[RequestMeta] = None,
) -> Profile:
    """Make ``user_id`` an event manager until the end of ``expiry_date``."""
    now = now or utcnow()
    event_name = (event_name or "").strip()
    if not event_name:
        raise ValidationFailed("An event name is required", {"event_name": "required"})
    expiry = end_of_day(expiry_date)
    if expiry <= as_utc(now):
        log.warning("Grant for %s expires %s and is inert from the start", user_id, expiry.isoformat())

    profile = await get_profile(db, user_id)
    target = subject_from_profile(profile, await get_stored_role(db, user_id), now)
    engine.require(
        engine.can_mutate_role(actor, target, Role.EVENT_MANAGER),
        "Not allowed to delegate event management to this member",
        actor,
    )
    if target.role not in (Role.MEMBER, Role.EVENT_MANAGER):
        log.info("Grant replaces %s role %s with EVENT_MANAGER", user_id, target.role.value)

    await upsert_role(db, user_id, Role.EVENT_MANAGER, actor.user_id)
    profile.designation = f"{EVENT_MANAGER_DESIGNATION_PREFIX}{event_name}"
    profile.event_manager_expiry = expiry
    await db.commit()

    log.info("Event manager grant for %s until %s", user_id, expiry.isoformat())
    await audit.record(
        db, actor, AuditAction.EVENT_MANAGER_ASSIGNED, "profile", user_id,
        {"event_name": event_name, "expiry": expiry.isoformat()}, meta,
    )
    return profile


async def revoke(
    db: AsyncSession,
    actor: Subject,
    user_id: str,
    now: Optional[datetime] = None,
    meta: Optional[RequestMeta] = None,
) -> Profile:
    """
    End a grant before (or after) its expiry.

    The role row is swapped EVENT_MANAGER -> MEMBER in one conditional UPDATE,
    so the member is left with exactly one row and never with no row.
    """
    profile = await get_profile(db, user_id)
    target = subject_from_profile(profile, await get_stored_role(db, user_id), now)
    engine.require(engine.can_delegate(actor, target), "Not allowed to revoke this grant", actor)

    swapped = await replace_role_if(db, user_id, Role.EVENT_MANAGER, Role.MEMBER, actor.user_id)
    if not swapped:
        await db.rollback()
        raise NotFound("Member holds no event manager grant")

    event_name = event_name_for(profile)
    profile.event_manager_expiry = None
    if profile.designation and profile.designation.startswith(EVENT_MANAGER_DESIGNATION_PREFIX):
        profile.designation = None
    await db.execute(update(EventForm).where(EventForm.manager_id == user_id).values(is_active=False))
    await db.commit()

    await audit.record(
        db, actor, AuditAction.EVENT_MANAGER_REVOKED, "profile", user_id, {"event_name": event_name}, meta,
    )
    return profile


async def list_event_managers(
    db: AsyncSession,
    actor: Subject,
    now: Optional[datetime] = None,
) -> List[Tuple[Profile, bool]]:
    """Every stored grant, expired ones included, with whether it is still in force."""
    engine.require(actor.role in (Role.ADMIN, Role.SUPER_CONTROLLER), "Not allowed to list event managers", actor)
    result = await db.execute(
        select(Profile)
        .join(UserRole, UserRole.user_id == Profile.user_id)
        .where(UserRole.role == Role.EVENT_MANAGER)
        .order_by(Profile.event_manager_expiry, Profile.id)
    )
    return [
        (profile, is_grant_active(Role.EVENT_MANAGER, profile.event_manager_expiry, now))
        for profile in result.scalars().all()
    ]


# ============================================================================
# Registration forms
# ============================================================================

async def save_form(
    db: AsyncSession,
    actor: Subject,
    fields: Sequence[FormField | Dict[str, Any]],
    is_active: bool = True,
    title: Optional[str] = None,
    meta: Optional[RequestMeta] = None,
) -> EventForm:
    """Create or replace the actor's own registration form."""
    engine.require(engine.can_manage_event_forms(actor), "Only active event managers can edit forms", actor)
    parsed = parse_fields(fields)

    form = await db.scalar(select(EventForm).where(EventForm.manager_id == actor.user_id))
    if form is None:
        form = EventForm(manager_id=actor.user_id)
        db.add(form)
    form.title = title
    form.fields = [field.model_dump() for field in parsed]
    form.is_active = is_active
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise Conflict("The form was created concurrently; retry the save")
    await db.refresh(form)

    await audit.record(
        db, actor, AuditAction.EVENT_FORM_SAVED, "event_form", form.id,
        {"fields": len(parsed), "is_active": is_active}, meta,
    )
    return form


async def get_own_form(db: AsyncSession, actor: Subject) -> EventForm:
    engine.require(engine.can_manage_event_forms(actor), "Only active event managers have forms", actor)
    form = await db.scalar(select(EventForm).where(EventForm.manager_id == actor.user_id))
    if form is None:
        raise NotFound("No form saved yet")
    return form


async def _open_form(db: AsyncSession, manager_id: str, now: Optional[datetime]) -> Tuple[EventForm, Profile]:
    """The manager's form, provided it is active and the grant is still in force."""
    form = await db.scalar(select(EventForm).where(EventForm.manager_id == manager_id))
    profile = await db.scalar(select(Profile).where(Profile.user_id == manager_id))
    if form is None or profile is None or not form.is_active:
        raise NotFound("Registration form not found")
    if not is_grant_active(await get_stored_role(db, manager_id), profile.event_manager_expiry, now):
        raise NotFound("Registration for this event is closed")
    return form, profile


async def get_public_form(
    db: AsyncSession,
    manager_id: str,
    now: Optional[datetime] = None,
) -> Tuple[EventForm, str]:
    """Public read of an open form. Returns the form and the event name."""
    form, profile = await _open_form(db, manager_id, now)
    return form, event_name_for(profile, form)


def _first_by_label(values: Dict[str, Any], labels: Sequence[str]) -> Optional[str]:
    for label, value in values.items():
        if label.lower() in labels:
            return str(value)
    return None


def _first_by_kind(fields: Sequence[FormField], values: Dict[str, Any], kind: str) -> Optional[str]:
    for field in fields:
        if field.type == kind and field.label in values:
            return str(values[field.label])
    return None


async def submit_delegate(
    db: AsyncSession,
    manager_id: str,
    answers: Dict[str, Any],
    now: Optional[datetime] = None,
    meta: Optional[RequestMeta] = None,
) -> Delegate:
    """
    Public registration through a manager's form.

    Nothing is written unless every required field is answered and every
    answer fits its field kind.
    """
    form, profile = await _open_form(db, manager_id, now)
    fields = parse_fields(form.fields)
    values = validate_answers(fields, answers or {})

    name = _first_by_label(values, NAME_LABELS)
    if name is None:
        name = next((str(values[f.label]) for f in fields if f.type == "text" and f.label in values), None)

    delegate = Delegate(
        manager_id=manager_id,
        event_name=event_name_for(profile, form),
        name=name or DEFAULT_DELEGATE_NAME,
        email=_first_by_kind(fields, values, "email"),
        phone=_first_by_kind(fields, values, "tel"),
        role_in_event=_first_by_label(values, ROLE_LABELS) or DEFAULT_ROLE_IN_EVENT,
        delegation=_first_by_label(values, DELEGATION_LABELS),
        custom_data=values,
    )
    db.add(delegate)
    await db.commit()
    await db.refresh(delegate)

    log.info("Delegate %s registered for %s", delegate.id, delegate.event_name)
    await audit.record(
        db, None, AuditAction.DELEGATE_REGISTERED, "delegate", delegate.id,
        {"manager_id": manager_id, "event_name": delegate.event_name}, meta,
    )
    return delegate


async def list_delegates(
    db: AsyncSession,
    actor: Subject,
    manager_id: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[Delegate]:
    """Event managers see their own registrations; platform roles may see any manager's."""
    manager_id = manager_id or actor.user_id
    engine.require(engine.can_list_delegates(actor, manager_id), "Not allowed to list these delegates", actor)
    result = await db.execute(
        select(Delegate)
        .where(Delegate.manager_id == manager_id)
        .order_by(Delegate.created_at.desc(), Delegate.id.desc())
        .offset(skip)
        .limit(limit)
    )
    return list(result.scalars().all())


async def get_delegate(db: AsyncSession, delegate_id: str) -> Delegate:
    delegate = await db.get(Delegate, delegate_id)
    if delegate is None:
        raise NotFound("Delegate not found")
    return delegate
