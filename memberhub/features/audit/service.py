"""
Audit writes and reads.

``record`` runs after the primary mutation has committed. A failed audit write
is rolled back on its own and logged with the full traceback; it never undoes
the mutation it describes and never reaches the caller as an error.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from memberhub.features.access.subjects import Subject
from memberhub.features.audit.models import AuditLog
from memberhub.utils import get_logger


log = get_logger(__name__)


class AuditAction:
    MEMBERSHIP_ISSUED = "MEMBERSHIP_ISSUED"
    APPLICATION_REJECTED = "APPLICATION_REJECTED"
    ID_CARD_ISSUED = "ID_CARD_ISSUED"
    ID_CARD_REVOKED = "ID_CARD_REVOKED"
    CONSENT_UPDATED = "CONSENT_UPDATED"
    PROFILE_UPDATED = "PROFILE_UPDATED"
    ROLE_CHANGED = "ROLE_CHANGED"
    MEMBER_TRANSFERRED = "MEMBER_TRANSFERRED"
    EVENT_MANAGER_ASSIGNED = "EVENT_MANAGER_ASSIGNED"
    EVENT_MANAGER_REVOKED = "EVENT_MANAGER_REVOKED"
    EVENT_FORM_SAVED = "EVENT_FORM_SAVED"
    DELEGATE_REGISTERED = "DELEGATE_REGISTERED"
    CONTROLLER_BOOTSTRAPPED = "CONTROLLER_BOOTSTRAPPED"


@dataclass(frozen=True)
class RequestMeta:
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


async def record(
    db: AsyncSession,
    actor: Optional[Subject],
    action: str,
    target_type: Optional[str] = None,
    target_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    meta: Optional[RequestMeta] = None,
) -> Optional[AuditLog]:
    """Append one entry. Returns None if the write failed."""
    details = dict(details or {})
    if actor is not None and actor.break_glass:
        details["break_glass"] = True
    actor_id = actor.user_id if actor else None
    entry = AuditLog(
        user_id=actor_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        details=details or None,
        ip_address=meta.ip_address if meta else None,
        user_agent=meta.user_agent[:255] if meta and meta.user_agent else None,
    )
    try:
        db.add(entry)
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        log.exception(
            "Audit write failed: user=%s action=%s target=%s:%s",
            actor_id, action, target_type, target_id,
        )
        return None

    log.info(
        "Audit: user=%s action=%s target=%s:%s", actor_id, action, target_type, target_id
    )
    return entry


async def list_entries(
    db: AsyncSession,
    action: Optional[str] = None,
    user_id: Optional[str] = None,
    target_id: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[AuditLog]:
    stmt = select(AuditLog)
    if action:
        stmt = stmt.where(AuditLog.action == action)
    if user_id:
        stmt = stmt.where(AuditLog.user_id == user_id)
    if target_id:
        stmt = stmt.where(AuditLog.target_id == target_id)
    stmt = stmt.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).offset(skip).limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())
