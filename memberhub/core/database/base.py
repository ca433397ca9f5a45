"""
SQLAlchemy declarative base and shared column helpers.

Every table in the registry inherits from Base; mutable records also mix in
TimestampMixin. Primary keys are ULIDs so ids sort by creation time.
"""
from datetime import datetime
from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
import ulid


def generate_ulid() -> str:
    """Generate a new ULID string."""
    return ulid.new().str


class Base(DeclarativeBase):
    """Declarative base for registry models."""
    pass


class TimestampMixin:
    """
    Adds created_at / updated_at maintained by the database.

    Defaults are fetched back on flush so async code never lazy-loads them.

    Usage:
        class Profile(Base, TimestampMixin):
            __tablename__ = "profiles"
    """
    __mapper_args__ = {"eager_defaults": True}

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
