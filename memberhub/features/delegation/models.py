"""
Event registration models.

An EventForm belongs to exactly one event manager. Delegates are registrations
made through that form; they belong to the manager's scope and stay
verifiable after the manager's grant is revoked.
"""
from datetime import datetime
from typing import Any, Dict, List
from sqlalchemy import String, Boolean, JSON, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column

from memberhub.core.database.base import Base, TimestampMixin, generate_ulid


class EventForm(Base, TimestampMixin):
    __tablename__ = "event_forms"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    manager_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Ordered list of {id, label, type, required, options}
    fields: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<EventForm(id={self.id}, manager_id={self.manager_id!r}, active={self.is_active})>"


class Delegate(Base):
    __tablename__ = "event_delegates"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    manager_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    event_name: Mapped[str] = mapped_column(String(255), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    role_in_event: Mapped[str] = mapped_column(String(100), nullable=False, default="Delegate")
    delegation: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Answers keyed by field label, as they were at submission time
    custom_data: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Delegate(id={self.id}, event={self.event_name!r}, name={self.name!r})>"
