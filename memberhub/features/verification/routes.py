"""
Public verification API routes.

No authentication. Both endpoints are rate limited per client address.
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from memberhub.core import config
from memberhub.core.database.engine import get_db
from memberhub.core.rate_limit import limiter
from memberhub.features.delegation.schemas import DelegateResponse
from memberhub.features.verification import service
from memberhub.features.verification.schemas import VerificationResult
from memberhub.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


@router.get("/delegates/{delegate_id}", response_model=DelegateResponse)
@limiter.limit(config.VERIFY_RATE_LIMIT)
async def verify_delegate(
    request: Request,
    delegate_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Look up an event delegate by registration id."""
    return await service.verify_delegate(db, delegate_id)


@router.get("/{token}", response_model=VerificationResult)
@limiter.limit(config.VERIFY_RATE_LIMIT)
async def verify(
    request: Request,
    token: str,
    db: AsyncSession = Depends(get_db),
):
    """
    Verify a membership id, email address or phone number.

    Returns ``kind`` = active, pending, rejected or not_found. Contact details
    appear only where the member allows sharing them.
    """
    result = await service.verify_token(db, token)
    log.debug("Verification lookup resolved to %s", result["kind"].value)
    return result
