"""
Role row reads and atomic writes.

Writes never read-then-insert: two concurrent grants would both see "no row"
and race. Instead every write is a single INSERT .. ON CONFLICT DO UPDATE or a
conditional UPDATE against the unique user_id.
"""
from typing import Optional
from sqlalchemy import select, update, func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from memberhub.core.database.base import generate_ulid
from memberhub.features.roles.catalog import Role
from memberhub.features.roles.models import UserRole


def _dialect_insert(db: AsyncSession):
    name = db.get_bind().dialect.name
    if name == "postgresql":
        return postgresql.insert
    if name == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"Atomic role upsert not supported on {name}")


async def get_stored_role(db: AsyncSession, user_id: str) -> Optional[Role]:
    """Stored role, or None when the user has no row (meaning MEMBER)."""
    return await db.scalar(select(UserRole.role).where(UserRole.user_id == user_id))


async def upsert_role(
    db: AsyncSession,
    user_id: str,
    role: Role,
    assigned_by_id: Optional[str] = None,
) -> None:
    """Set the single role row for a user, creating it if needed."""
    insert = _dialect_insert(db)
    stmt = insert(UserRole).values(
        id=generate_ulid(),
        user_id=user_id,
        role=role,
        assigned_by_id=assigned_by_id,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[UserRole.user_id],
        set_={
            "role": stmt.excluded.role,
            "assigned_by_id": stmt.excluded.assigned_by_id,
            "updated_at": func.now(),
        },
    )
    await db.execute(stmt)


async def replace_role_if(
    db: AsyncSession,
    user_id: str,
    expected: Role,
    new_role: Role,
    assigned_by_id: Optional[str] = None,
) -> bool:
    """Compare-and-swap on the role row. Returns False when the row held something else."""
    result = await db.execute(
        update(UserRole)
        .where(UserRole.user_id == user_id, UserRole.role == expected)
        .values(role=new_role, assigned_by_id=assigned_by_id, updated_at=func.now())
    )
    return result.rowcount == 1


async def roles_for(db: AsyncSession, user_ids: list[str]) -> dict[str, Role]:
    if not user_ids:
        return {}
    result = await db.execute(
        select(UserRole.user_id, UserRole.role).where(UserRole.user_id.in_(user_ids))
    )
    return {user_id: role for user_id, role in result.all()}


async def ensure_role_row(db: AsyncSession, user_id: str, role: Role = Role.MEMBER) -> None:
    """Create the baseline row if the user has none; leaves an existing row alone."""
    insert = _dialect_insert(db)
    stmt = insert(UserRole).values(id=generate_ulid(), user_id=user_id, role=role)
    await db.execute(stmt.on_conflict_do_nothing(index_elements=[UserRole.user_id]))
