"""
Role store: at most one role row per user.

No row means MEMBER. The unique constraint on user_id is what lets role
writes be a single atomic upsert.
"""
from sqlalchemy import String, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from memberhub.core.database.base import Base, TimestampMixin, generate_ulid
from memberhub.features.roles.catalog import Role


class UserRole(Base, TimestampMixin):
    __tablename__ = "user_roles"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    user_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    role: Mapped[Role] = mapped_column(
        SQLEnum(Role, name="app_role", native_enum=False, length=32),
        nullable=False,
        default=Role.MEMBER,
    )
    assigned_by_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<UserRole(user_id={self.user_id!r}, role={self.role.value})>"
