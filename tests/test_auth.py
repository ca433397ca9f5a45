from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi import HTTPException

from memberhub.features.users import auth


def _token(**claims) -> str:
    return jwt.encode(claims, "appwrite-signs-this", algorithm="HS256")


def test_session_user_id() -> None:
    exp = datetime.now(timezone.utc) + timedelta(minutes=15)

    assert auth.session_user_id(_token(userId="aw-123", exp=exp)) == "aw-123"


@pytest.mark.parametrize(
    "token, detail",
    [
        (_token(userId="aw-123", exp=datetime(2020, 1, 1, tzinfo=timezone.utc)), "Token has expired"),
        (_token(sessionId="s-1"), "Invalid token payload"),
        ("not-a-jwt", "Invalid token"),
    ],
)
def test_session_user_id_rejects(token: str, detail: str) -> None:
    with pytest.raises(HTTPException) as exc:
        auth.session_user_id(token)

    assert exc.value.status_code == 401
    assert exc.value.detail.startswith(detail)


@pytest.mark.asyncio
async def test_only_verified_email_is_authenticated(monkeypatch) -> None:
    accounts = {
        "verified": {"status": True, "email": "ops@example.org", "emailVerification": True},
        "unverified": {"status": True, "email": "ops@example.org", "emailVerification": False},
    }

    async def fake_fetch(user_id: str) -> dict:
        return accounts[user_id]

    monkeypatch.setattr(auth, "fetch_account", fake_fetch)

    verified = await auth.resolve_actor_context(_token(userId="verified"))
    unverified = await auth.resolve_actor_context(_token(userId="unverified"))

    assert verified.authenticated_email == "ops@example.org"
    assert unverified.authenticated_email is None


@pytest.mark.asyncio
async def test_blocked_account(monkeypatch) -> None:
    async def fake_fetch(user_id: str) -> dict:
        return {"status": False, "email": "x@example.org", "emailVerification": True}

    monkeypatch.setattr(auth, "fetch_account", fake_fetch)

    with pytest.raises(HTTPException) as exc:
        await auth.resolve_actor_context(_token(userId="blocked"))

    assert exc.value.status_code == 403
