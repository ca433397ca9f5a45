"""Shared pytest fixtures for registry tests."""

from __future__ import annotations

import os

os.environ.setdefault("RATE_LIMIT_ENABLED", "0")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from collections.abc import AsyncIterator, Awaitable, Callable  # noqa: E402
from datetime import datetime  # noqa: E402
from typing import Any, Optional  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from memberhub.core.database.base import generate_ulid  # noqa: E402
from memberhub.core.database.engine import get_db, init_db  # noqa: E402
from memberhub.core.rate_limit import limiter  # noqa: E402
from memberhub.features.access.subjects import Subject  # noqa: E402
from memberhub.features.identities.models import MembershipApplication, Profile  # noqa: E402
from memberhub.features.roles.catalog import Role  # noqa: E402
from memberhub.features.roles.store import upsert_role  # noqa: E402
from memberhub.features.users.dependencies import get_actor_context  # noqa: E402
from memberhub.features.users.provisioning import get_provisioner  # noqa: E402
from memberhub.features.users.schemas import ActorContext  # noqa: E402
from memberhub.main import app  # noqa: E402

from tests.support import GUJARAT, FakeProvisioner  # noqa: E402


@pytest_asyncio.fixture()
async def engine() -> AsyncIterator[AsyncEngine]:
    """A private in-memory database per test."""

    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture()
async def db(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture()
def provisioner() -> FakeProvisioner:
    return FakeProvisioner()


MakeMember = Callable[..., Awaitable[Subject]]


@pytest.fixture()
def make_member(db: AsyncSession) -> MakeMember:
    """Create a profile plus role row and return its subject snapshot."""

    async def _make(
        user_id: Optional[str] = None,
        role: Optional[Role] = Role.MEMBER,
        state: Optional[str] = GUJARAT,
        district: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        expiry: Optional[datetime] = None,
        **fields: Any,
    ) -> Subject:
        user_id = user_id or f"user-{generate_ulid().lower()}"
        profile = Profile(
            user_id=user_id,
            full_name=fields.pop("full_name", user_id.replace("-", " ").title()),
            email=email or f"{user_id}@example.org",
            phone=phone,
            state=state,
            district=district,
            membership_id=fields.pop("membership_id", f"SAV-TST-2026-{generate_ulid()[-6:]}"),
            event_manager_expiry=expiry,
            **fields,
        )
        db.add(profile)
        if role is not None:
            await upsert_role(db, user_id, role)
        await db.commit()
        return Subject(user_id=user_id, role=role or Role.MEMBER, state=state, district=district)

    return _make


MakeApplication = Callable[..., Awaitable[MembershipApplication]]


@pytest.fixture()
def make_application(db: AsyncSession) -> MakeApplication:
    async def _make(
        email: str = "applicant@example.org",
        phone: str = "9876543210",
        state: str = GUJARAT,
        district: Optional[str] = None,
        **fields: Any,
    ) -> MembershipApplication:
        application = MembershipApplication(
            full_name=fields.pop("full_name", "Asha Patel"),
            email=email,
            phone=phone,
            state=state,
            district=district,
            **fields,
        )
        db.add(application)
        await db.commit()
        await db.refresh(application)
        return application

    return _make


# ============================================================================
# HTTP
# ============================================================================

class ActingAs:
    """Mutable stand-in for the authenticated caller."""

    def __init__(self) -> None:
        self.context: Optional[ActorContext] = None

    def __call__(self, user_id: str, email: Optional[str] = None) -> None:
        self.context = ActorContext(user_id=user_id, authenticated_email=email)


@pytest.fixture()
def acting_as() -> ActingAs:
    return ActingAs()


@pytest_asyncio.fixture()
async def client(
    engine: AsyncEngine,
    provisioner: FakeProvisioner,
    acting_as: ActingAs,
) -> AsyncIterator[AsyncClient]:
    """HTTPX client bound to the app, with storage and identity overridden."""

    async def _get_db() -> AsyncIterator[AsyncSession]:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def _get_actor_context() -> ActorContext:
        assert acting_as.context is not None, "call acting_as(user_id) first"
        return acting_as.context

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_actor_context] = _get_actor_context
    app.dependency_overrides[get_provisioner] = lambda: provisioner
    limiter.enabled = False

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as http:
        yield http

    app.dependency_overrides.clear()
