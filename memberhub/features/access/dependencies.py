"""
FastAPI dependencies that turn a request into an authorization subject.
"""
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from memberhub.core.database.engine import get_db
from memberhub.features.access.subjects import Subject, load_actor
from memberhub.features.audit.service import RequestMeta
from memberhub.features.users.dependencies import get_actor_context
from memberhub.features.users.schemas import ActorContext


async def get_actor(
    context: ActorContext = Depends(get_actor_context),
    db: AsyncSession = Depends(get_db),
) -> Subject:
    """The caller as a Subject carrying their effective role."""
    return await load_actor(db, context)


def request_meta(request: Request) -> RequestMeta:
    """Client address and user agent recorded on audit entries."""
    return RequestMeta(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
