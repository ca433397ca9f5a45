"""
Immutable snapshots of the people an authorization decision is about.

The engine only ever sees these snapshots, never ORM rows, so decisions stay
pure. The role on a snapshot is always the effective role.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from memberhub.core import config
from memberhub.core.errors import NotFound
from memberhub.features.delegation.expiry import effective_role
from memberhub.features.identities.models import Profile
from memberhub.features.roles.catalog import Role
from memberhub.features.roles.store import get_stored_role
from memberhub.features.users.schemas import ActorContext
from memberhub.utils import get_logger


log = get_logger(__name__)


@dataclass(frozen=True)
class Subject:
    user_id: str
    role: Role
    state: Optional[str] = None
    district: Optional[str] = None
    break_glass: bool = False


def subject_from_profile(
    profile: Profile,
    stored_role: Optional[Role],
    now: Optional[datetime] = None,
) -> Subject:
    return Subject(
        user_id=profile.user_id,
        role=effective_role(stored_role, profile.event_manager_expiry, now),
        state=profile.state,
        district=profile.district,
    )


async def get_profile(db: AsyncSession, user_id: str) -> Profile:
    profile = await db.scalar(select(Profile).where(Profile.user_id == user_id))
    if profile is None:
        raise NotFound("Member not found")
    return profile


async def load_subject(db: AsyncSession, user_id: str, now: Optional[datetime] = None) -> Subject:
    profile = await get_profile(db, user_id)
    return subject_from_profile(profile, await get_stored_role(db, user_id), now)


def is_break_glass(authenticated_email: Optional[str]) -> bool:
    return bool(authenticated_email) and authenticated_email.strip().lower() in config.BREAK_GLASS_EMAILS


async def load_actor(db: AsyncSession, context: ActorContext, now: Optional[datetime] = None) -> Subject:
    """
    Build the acting subject for a request.

    Break-glass operators get maximum privilege whatever their stored role,
    and even without a profile row. Every such resolution is logged.
    """
    profile = await db.scalar(select(Profile).where(Profile.user_id == context.user_id))
    if is_break_glass(context.authenticated_email):
        log.warning(
            "Break-glass access used by %s (user %s)", context.authenticated_email, context.user_id
        )
        return Subject(
            user_id=context.user_id,
            role=Role.SUPER_CONTROLLER,
            state=profile.state if profile else None,
            district=profile.district if profile else None,
            break_glass=True,
        )
    if profile is None:
        # No profile yet: stored role still applies, with no location
        stored = await get_stored_role(db, context.user_id)
        return Subject(user_id=context.user_id, role=effective_role(stored, None, now))
    return subject_from_profile(profile, await get_stored_role(db, context.user_id), now)
