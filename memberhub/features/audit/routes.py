"""
Audit log API routes (administrators only).
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from memberhub.core.database.engine import get_db
from memberhub.features.access import engine
from memberhub.features.access.dependencies import get_actor
from memberhub.features.access.subjects import Subject
from memberhub.features.audit import service
from memberhub.features.audit.schemas import AuditLogResponse


router = APIRouter()


@router.get("", response_model=List[AuditLogResponse])
async def list_audit_logs(
    action: Optional[str] = None,
    user_id: Optional[str] = None,
    target_id: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    actor: Subject = Depends(get_actor),
):
    """Newest entries first, optionally filtered by action, actor or target."""
    engine.require(engine.can_read_audit(actor), "Audit log is restricted to administrators", actor)
    return await service.list_entries(db, action, user_id, target_id, skip, limit)
