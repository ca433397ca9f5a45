"""
FastAPI dependency for the authenticated caller.
"""
from typing import Annotated
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from memberhub.features.users.auth import resolve_actor_context
from memberhub.features.users.schemas import ActorContext


bearer = HTTPBearer()


async def get_actor_context(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer)],
) -> ActorContext:
    """``{user_id, authenticated_email}`` for the Appwrite session in the Bearer token."""
    return await resolve_actor_context(credentials.credentials)
