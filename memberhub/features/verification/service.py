"""
Public identity verification.

No actor and no authorization: anyone holding a membership id, email or phone
number may ask whether it belongs to the organization. What comes back is
filtered by the member's sharing consent. Contact keys the member has not
agreed to share are left out of the payload entirely.
"""
import enum
from datetime import datetime
from typing import Any, Dict, Optional
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from memberhub.core.errors import NotFound
from memberhub.features.delegation.expiry import effective_role
from memberhub.features.delegation.models import Delegate
from memberhub.features.identities.contact import looks_like_phone, normalize_email, normalize_phone
from memberhub.features.identities.models import ApplicationStatus, MembershipApplication, Profile
from memberhub.features.roles.catalog import Role, label
from memberhub.features.roles.store import get_stored_role
from memberhub.utils import as_utc


class TokenKind(str, enum.Enum):
    EMAIL = "email"
    PHONE = "phone"
    MEMBERSHIP_ID = "membership_id"


class VerificationKind(str, enum.Enum):
    ACTIVE = "active"
    PENDING = "pending"
    REJECTED = "rejected"
    NOT_FOUND = "not_found"


def classify_token(token: str) -> TokenKind:
    token = token.strip()
    if "@" in token:
        return TokenKind.EMAIL
    if looks_like_phone(token):
        return TokenKind.PHONE
    return TokenKind.MEMBERSHIP_ID


def member_payload(profile: Profile, role: Role) -> Dict[str, Any]:
    """Disclosure filter for a member. The only place a member's contact fields are exposed."""
    payload: Dict[str, Any] = {
        "full_name": profile.full_name,
        "membership_id": profile.membership_id,
        "role": label(role),
        "state": profile.state,
        "designation": profile.designation,
        "avatar_url": profile.avatar_url,
        "created_at": as_utc(profile.created_at),
    }
    if profile.allow_email_sharing is not False:
        payload["email"] = profile.email
    if profile.allow_mobile_sharing is not False:
        payload["phone"] = profile.phone
    return payload


def application_payload(application: MembershipApplication) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "full_name": application.full_name,
        "membership_id": None,
        "role": label(Role.MEMBER),
        "state": application.state,
        "designation": application.designation,
        "avatar_url": application.photo_url,
        "created_at": as_utc(application.applied_at),
        "email": application.email,
        "phone": application.phone,
    }
    if application.status == ApplicationStatus.REJECTED:
        payload["rejection_reason"] = application.rejection_reason
    return payload


async def verify_token(db: AsyncSession, token: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Resolve a free-text token to ``{kind, payload}``."""
    token = (token or "").strip()
    if not token:
        return {"kind": VerificationKind.NOT_FOUND, "payload": None}

    kind = classify_token(token)
    members = select(Profile).where(Profile.membership_id.is_not(None))
    applications = select(MembershipApplication).where(
        MembershipApplication.status.in_([ApplicationStatus.PENDING, ApplicationStatus.REJECTED])
    )
    if kind == TokenKind.MEMBERSHIP_ID:
        members = members.where(func.upper(Profile.membership_id) == token.upper())
        applications = None
    elif kind == TokenKind.EMAIL:
        email = normalize_email(token)
        members = members.where(func.lower(Profile.email) == email)
        applications = applications.where(func.lower(MembershipApplication.email) == email)
    else:
        phone = normalize_phone(token)
        members = members.where(Profile.phone == phone)
        applications = applications.where(MembershipApplication.phone == phone)

    profile = await db.scalar(members.order_by(Profile.created_at.desc()).limit(1))
    if profile is not None:
        role = effective_role(await get_stored_role(db, profile.user_id), profile.event_manager_expiry, now)
        return {"kind": VerificationKind.ACTIVE, "payload": member_payload(profile, role)}

    if applications is not None:
        application = await db.scalar(
            applications.order_by(MembershipApplication.applied_at.desc(), MembershipApplication.id.desc()).limit(1)
        )
        if application is not None:
            kind = (
                VerificationKind.REJECTED
                if application.status == ApplicationStatus.REJECTED
                else VerificationKind.PENDING
            )
            return {"kind": kind, "payload": application_payload(application)}

    return {"kind": VerificationKind.NOT_FOUND, "payload": None}


async def verify_delegate(db: AsyncSession, delegate_id: str) -> Delegate:
    """Delegates carry no consent flags; everything on the record is public once the id is known."""
    delegate = await db.get(Delegate, delegate_id)
    if delegate is None:
        raise NotFound("Delegate not found")
    return delegate
