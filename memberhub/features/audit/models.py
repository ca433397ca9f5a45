"""
Append-only audit log of privileged mutations.
"""
from datetime import datetime
from typing import Any, Dict
from sqlalchemy import String, JSON, DateTime, event, func
from sqlalchemy.orm import Mapped, mapped_column

from memberhub.core.database.base import Base, generate_ulid


class AuditLog(Base):
    """
    Who did what to which record, and when.

    Rows are written once. The ORM refuses to flush updates or deletes.
    """
    __tablename__ = "audit_logs"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    # Actor; null for public submissions
    user_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)

    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    target_type: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    target_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    details: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, user_id={self.user_id}, action={self.action}, target={self.target_type}:{self.target_id})>"


@event.listens_for(AuditLog, "before_update")
def _refuse_update(mapper, connection, target):
    raise RuntimeError("Audit log entries are append-only")


@event.listens_for(AuditLog, "before_delete")
def _refuse_delete(mapper, connection, target):
    raise RuntimeError("Audit log entries are append-only")
